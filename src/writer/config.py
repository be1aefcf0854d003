"""
Writer Configuration Module

Configuration for the order writer: Kafka consumer settings, the orders_ops
database and its connection pool, and the retry/backoff schedule applied to
every store write. Loads settings from environment variables (and an optional
.env file) with Pydantic validation.
"""

from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.writer.retry import RetryPolicy

# Load .env file if present (local development)
load_dotenv()


class WriterConfig(BaseSettings):
    """
    Writer service configuration with validation.

    Offsets are always committed manually, one message at a time, after the
    message reached a terminal outcome, so auto-commit is not configurable.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === KAFKA CONSUMER SETTINGS ===
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka broker addresses (comma-separated)",
    )

    kafka_topic_orders: str = Field(
        default="orders.transformed",
        description="Topic carrying order lifecycle events",
    )

    consumer_group_id: str = Field(
        default="orders-ops-writer",
        description="Consumer group ID; partitions are shared across its members",
    )

    consumer_client_id: str = Field(
        default="orders-ops-writer",
        description="Consumer client identifier",
    )

    consumer_auto_offset_reset: str = Field(
        default="earliest",
        pattern="^(earliest|latest)$",
        description="Where to start when the group has no committed offset",
    )

    consumer_poll_timeout: float = Field(
        default=1.0,
        gt=0,
        le=30,
        description="Seconds to block in a single poll",
    )

    consumer_workers: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Independent consumers (threads) in this process",
    )

    # === DATABASE SETTINGS ===
    database_url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides the postgres_* settings",
    )

    postgres_host: str = Field(default="localhost", description="PostgreSQL host")
    postgres_port: int = Field(default=5432, description="PostgreSQL port")
    postgres_db: str = Field(default="ops", description="PostgreSQL database name")
    postgres_user: str = Field(default="app", description="PostgreSQL username")
    postgres_password: str = Field(default="app", description="PostgreSQL password")

    db_pool_size: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Connection pool size (hard limit, no overflow)",
    )

    db_pool_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for a free pooled connection",
    )

    db_connect_timeout: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Seconds to wait when opening a new database connection",
    )

    # === RETRY SETTINGS ===
    retry_max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries after the initial attempt (2 = 3 attempts total)",
    )

    retry_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Exponential backoff factor",
    )

    retry_min_wait_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Wait before the first retry",
    )

    retry_max_wait_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Upper bound for any single wait",
    )

    # === LOGGING ===
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log output format (json or text)")

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "WriterConfig":
        if self.retry_max_wait_seconds < self.retry_min_wait_seconds:
            raise ValueError("retry_max_wait_seconds must be >= retry_min_wait_seconds")
        return self

    def get_kafka_config(self) -> dict:
        """Get Kafka consumer configuration dictionary."""
        return {
            "bootstrap.servers": self.kafka_bootstrap_servers,
            "group.id": self.consumer_group_id,
            "client.id": self.consumer_client_id,
            "auto.offset.reset": self.consumer_auto_offset_reset,
            "enable.auto.commit": False,
        }

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    def get_retry_policy(self) -> RetryPolicy:
        """Backoff schedule for store writes."""
        return RetryPolicy(
            retries=self.retry_max_retries,
            factor=self.retry_factor,
            min_wait=self.retry_min_wait_seconds,
            max_wait=self.retry_max_wait_seconds,
        )


def load_config() -> WriterConfig:
    """Load and validate writer configuration."""
    return WriterConfig()
