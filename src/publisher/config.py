"""
Publisher Configuration Module

Settings for the order event publisher: Kafka connection, topic provisioning,
publishing rate, mock data seed and logging. Loaded from environment variables
(and an optional .env file) with Pydantic validation.

CONFIGURATION SOURCES (priority order):
1. Environment variables (highest priority)
2. .env file (loaded by python-dotenv)
3. Default values (fallback)
"""

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if present (local development)
load_dotenv()


class PublisherConfig(BaseSettings):
    """
    Publisher service configuration with validation.

    Example:
        >>> config = PublisherConfig()
        >>> config.kafka_topic_orders
        'orders.transformed'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === KAFKA CONNECTION ===
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka broker addresses (comma-separated for multiple brokers)",
    )

    kafka_topic_orders: str = Field(
        default="orders.transformed",
        description="Topic for order lifecycle events",
    )

    publisher_client_id: str = Field(
        default="orders-ops-publisher",
        description="Producer client identifier (visible in broker logs)",
    )

    # === TOPIC PROVISIONING ===
    topic_partitions: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Partitions when the topic has to be created",
    )

    topic_replication_factor: int = Field(
        default=1,
        ge=1,
        le=5,
        description="Replication factor when the topic has to be created",
    )

    # === PUBLISHING ===
    publish_count: int = Field(
        default=100,
        ge=0,
        description="Events to publish per run (0 = until stopped)",
    )

    publish_rate: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Events per second",
    )

    mock_seed: int = Field(
        default=42,
        description="Random seed for reproducible mock orders",
    )

    # === LOGGING ===
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log output format (json or text)")

    def get_kafka_config(self) -> dict:
        """
        Kafka producer configuration dictionary.

        Idempotence keeps broker-side retries from duplicating events; the
        writer's upsert would absorb duplicates anyway.
        """
        return {
            "bootstrap.servers": self.kafka_bootstrap_servers,
            "client.id": self.publisher_client_id,
            "enable.idempotence": True,
            "acks": "all",
            "linger.ms": 5,
        }


def load_config() -> PublisherConfig:
    """Load and validate publisher configuration."""
    return PublisherConfig()
