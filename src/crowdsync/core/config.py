"""Application configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="crowdsync", description="Application name")
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development", description="Runtime environment"
    )
    debug: bool = Field(default=False, description="Debug mode flag")
    cron_secret: str | None = Field(
        default=None, description="Bearer secret required by cron endpoints"
    )

    # API
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )

    # Database
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_user: str = Field(default="postgres", description="PostgreSQL user")
    db_password: str = Field(default="postgres", description="PostgreSQL password")
    db_name: str = Field(default="crowdfunding", description="PostgreSQL database name")

    # Redis
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_db: int = Field(default=0, description="Redis database number")
    redis_password: str | None = Field(default=None, description="Redis password")

    # Flow Access API
    flow_network: Literal["testnet", "mainnet"] = Field(
        default="testnet", description="Flow network selection"
    )
    flow_access_url: str = Field(
        default="https://rest-mainnet.onflow.org",
        description="Flow mainnet Access REST endpoint",
    )
    flow_access_backup_urls: list[str] = Field(
        default=[], description="Backup Flow mainnet Access REST endpoints"
    )
    flow_testnet_access_url: str = Field(
        default="https://rest-testnet.onflow.org",
        description="Flow testnet Access REST endpoint",
    )
    flow_testnet_backup_urls: list[str] = Field(
        default=[], description="Backup Flow testnet Access REST endpoints"
    )
    crowdfunding_contract_address: str = Field(
        default="0x0000000000000000",
        description="Address of the account holding the crowdfunding contract",
    )
    crowdfunding_contract_name: str = Field(
        default="Crowdfunding", description="Crowdfunding contract name"
    )
    chain_request_timeout: float = Field(
        default=15.0, description="HTTP timeout for Access API calls (seconds)"
    )
    chain_max_retries: int = Field(
        default=3, description="Retries per Access endpoint before failing over"
    )
    chain_retry_delay: float = Field(
        default=1.0, description="Base delay between Access API retries (seconds)"
    )
    chain_max_height_range: int = Field(
        default=250, description="Maximum block span of one events query"
    )

    # Reconciliation
    sync_poll_interval: float = Field(
        default=60.0, description="Seconds between reconciliation cycles"
    )
    sync_max_retries: int = Field(
        default=5, description="Attempts per cycle before waiting for the next tick"
    )
    sync_base_delay: float = Field(
        default=1.0, description="Base backoff delay, doubled on every retry (seconds)"
    )
    sync_start_height: int = Field(
        default=0, description="Cursor value used for streams never synced before"
    )
    sync_autostart: bool = Field(
        default=False, description="Start the scheduler with the API process"
    )
    sync_cursor_backend: Literal["file", "redis", "memory"] = Field(
        default="file", description="Where sync cursors are persisted"
    )
    sync_cursor_path: str = Field(
        default=".crowdsync/cursors.json", description="Cursor file location"
    )
    sync_cursor_redis_key: str = Field(
        default="crowdsync:cursors", description="Redis key holding the cursors"
    )

    # Transaction confirmation
    confirmation_poll_interval: float = Field(
        default=2.0, description="Fixed delay between status polls (seconds)"
    )
    confirmation_max_attempts: int = Field(
        default=30, description="Default number of status polls before timing out"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="json", description="Log output format"
    )

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def database_url_sync(self) -> str:
        """Construct synchronous database URL for migrations."""
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @computed_field
    @property
    def active_access_urls(self) -> list[str]:
        """Access endpoints (primary first) for the selected network."""
        if self.flow_network == "testnet":
            return [self.flow_testnet_access_url, *self.flow_testnet_backup_urls]
        return [self.flow_access_url, *self.flow_access_backup_urls]

    @computed_field
    @property
    def explorer_base_url(self) -> str:
        """Block explorer base URL for the selected network."""
        if self.flow_network == "testnet":
            return "https://testnet.flowscan.io"
        return "https://www.flowscan.io"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
