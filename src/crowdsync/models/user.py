"""User model."""

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from crowdsync.models.base import Base


class User(Base):
    """Wallet-identified platform user.

    Rows are created on demand because projects and contributions reference them.
    """

    __tablename__ = "users"

    wallet_address: Mapped[str] = mapped_column(String(100), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
