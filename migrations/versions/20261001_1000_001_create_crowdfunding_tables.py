"""Create crowdfunding tables

Revision ID: 001
Revises:
Create Date: 2026-10-01 10:00:00.000000

Creates the following tables:
- users: Wallet-identified users
- projects: Projects mirrored from the chain
- contributions: One row per contribution transaction

and the trigger that maintains project aggregates on contribution insert.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ========================================
    # 1. users table
    # ========================================
    op.create_table(
        "users",
        sa.Column("wallet_address", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("wallet_address"),
    )

    # ========================================
    # 2. projects table
    # ========================================
    op.create_table(
        "projects",
        # Primary key
        sa.Column("id", sa.Uuid(), nullable=False),
        # On-chain identity
        sa.Column("contract_id", sa.BigInteger(), nullable=False),
        # Descriptive
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("creator_address", sa.String(100), nullable=False),
        # Amounts in base units
        sa.Column("goal_amount", sa.BigInteger(), nullable=False),
        sa.Column("current_amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("contributor_count", sa.Integer(), nullable=False, server_default="0"),
        # Lifecycle
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        # Constraints
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("contract_id"),
        sa.ForeignKeyConstraint(["creator_address"], ["users.wallet_address"]),
        sa.CheckConstraint("goal_amount > 0", name="ck_projects_goal_positive"),
        sa.CheckConstraint(
            "status IN ('active', 'funded', 'expired', 'withdrawn')",
            name="ck_projects_status",
        ),
    )
    op.create_index("ix_projects_contract_id", "projects", ["contract_id"])
    op.create_index("ix_projects_creator_address", "projects", ["creator_address"])
    op.create_index("ix_projects_deadline", "projects", ["deadline"])
    op.create_index("ix_projects_status", "projects", ["status"])

    # ========================================
    # 3. contributions table
    # ========================================
    op.create_table(
        "contributions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("contributor_address", sa.String(100), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("tx_id", sa.String(100), nullable=False),
        sa.Column("block_height", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tx_id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contributor_address"], ["users.wallet_address"]),
    )
    op.create_index("ix_contributions_project_id", "contributions", ["project_id"])
    op.create_index("ix_contributions_contributor_address", "contributions", ["contributor_address"])

    # ========================================
    # 4. project aggregates trigger
    # ========================================
    # Only active projects move to funded, so a withdrawn or expired project
    # keeps its status when a late contribution lands.
    op.execute(
        """
        CREATE OR REPLACE FUNCTION update_project_metrics()
        RETURNS TRIGGER AS $$
        BEGIN
            UPDATE projects
            SET
                current_amount = current_amount + NEW.amount,
                contributor_count = (
                    SELECT COUNT(DISTINCT contributor_address)
                    FROM contributions
                    WHERE project_id = NEW.project_id
                ),
                status = CASE
                    WHEN status = 'active' AND current_amount + NEW.amount >= goal_amount
                        THEN 'funded'
                    ELSE status
                END,
                updated_at = NOW()
            WHERE id = NEW.project_id;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """
    )
    op.execute(
        """
        CREATE TRIGGER trigger_update_project_metrics
        AFTER INSERT ON contributions
        FOR EACH ROW
        EXECUTE FUNCTION update_project_metrics()
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trigger_update_project_metrics ON contributions")
    op.execute("DROP FUNCTION IF EXISTS update_project_metrics()")
    op.drop_table("contributions")
    op.drop_table("projects")
    op.drop_table("users")
