"""
Unit Tests for Configuration Classes

Tests Pydantic configuration validation for the writer and publisher configs:
defaults, constraints, environment loading and the helper methods.
"""

import pytest
from pydantic import ValidationError

from src.publisher.config import PublisherConfig
from src.publisher.config import load_config as load_publisher_config
from src.writer.config import WriterConfig
from src.writer.config import load_config as load_writer_config
from src.writer.retry import RetryPolicy

# ==============================================================================
# WRITER CONFIG TESTS
# ==============================================================================


@pytest.mark.unit
def test_writer_config_defaults(monkeypatch):
    """Test WriterConfig default values."""
    for var in ("DATABASE_URL", "LOG_LEVEL", "KAFKA_TOPIC_ORDERS", "DB_POOL_SIZE"):
        monkeypatch.delenv(var, raising=False)

    config = WriterConfig()

    assert config.kafka_bootstrap_servers == "localhost:9092"
    assert config.kafka_topic_orders == "orders.transformed"
    assert config.consumer_group_id == "orders-ops-writer"
    assert config.consumer_auto_offset_reset == "earliest"
    assert config.consumer_workers == 1

    assert config.db_pool_size == 5

    assert config.retry_max_retries == 2
    assert config.retry_factor == 2.0
    assert config.retry_min_wait_seconds == 2.0
    assert config.retry_max_wait_seconds == 5.0

    assert config.log_format == "json"


@pytest.mark.unit
def test_writer_config_from_environment(monkeypatch):
    monkeypatch.setenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:29092")
    monkeypatch.setenv("CONSUMER_GROUP_ID", "ops-writer-2")
    monkeypatch.setenv("DB_POOL_SIZE", "8")
    monkeypatch.setenv("RETRY_MAX_RETRIES", "4")

    config = load_writer_config()

    assert config.kafka_bootstrap_servers == "kafka:29092"
    assert config.consumer_group_id == "ops-writer-2"
    assert config.db_pool_size == 8
    assert config.retry_max_retries == 4


@pytest.mark.unit
def test_writer_kafka_config_disables_auto_commit():
    """Offsets are committed manually after each terminal outcome."""
    kafka_config = WriterConfig(consumer_group_id="g1").get_kafka_config()

    assert kafka_config["enable.auto.commit"] is False
    assert kafka_config["group.id"] == "g1"
    assert kafka_config["auto.offset.reset"] == "earliest"
    assert "bootstrap.servers" in kafka_config


@pytest.mark.unit
def test_writer_database_url_from_parts(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = WriterConfig(
        postgres_host="db",
        postgres_port=5433,
        postgres_db="ops",
        postgres_user="app",
        postgres_password="secret",
    )

    assert config.get_database_url() == "postgresql://app:secret@db:5433/ops"


@pytest.mark.unit
def test_writer_database_url_override():
    config = WriterConfig(database_url="sqlite:///orders.db", postgres_host="ignored")

    assert config.get_database_url() == "sqlite:///orders.db"


@pytest.mark.unit
def test_writer_retry_policy():
    config = WriterConfig(retry_max_retries=3, retry_min_wait_seconds=1.0, retry_max_wait_seconds=3.0)

    policy = config.get_retry_policy()

    assert policy == RetryPolicy(retries=3, factor=2.0, min_wait=1.0, max_wait=3.0)
    assert policy.schedule() == [1.0, 2.0, 3.0]


@pytest.mark.unit
def test_writer_config_rejects_inverted_backoff_bounds():
    with pytest.raises(ValidationError):
        WriterConfig(retry_min_wait_seconds=10.0, retry_max_wait_seconds=5.0)


@pytest.mark.unit
@pytest.mark.parametrize(
    "field, value",
    [
        ("db_pool_size", 0),
        ("db_pool_size", 100),
        ("consumer_workers", 0),
        ("retry_max_retries", -1),
        ("retry_factor", 0.5),
        ("consumer_auto_offset_reset", "newest"),
    ],
)
def test_writer_config_validation(field, value):
    with pytest.raises(ValidationError) as exc_info:
        WriterConfig(**{field: value})

    assert field in str(exc_info.value)


# ==============================================================================
# PUBLISHER CONFIG TESTS
# ==============================================================================


@pytest.mark.unit
def test_publisher_config_defaults(monkeypatch):
    monkeypatch.delenv("KAFKA_TOPIC_ORDERS", raising=False)

    config = load_publisher_config()

    assert config.kafka_topic_orders == "orders.transformed"
    assert config.publisher_client_id == "orders-ops-publisher"
    assert config.topic_partitions == 1
    assert config.publish_rate == 10
    assert config.mock_seed == 42


@pytest.mark.unit
def test_publisher_kafka_config():
    kafka_config = PublisherConfig(
        kafka_bootstrap_servers="kafka:9092", publisher_client_id="pub-1"
    ).get_kafka_config()

    assert kafka_config["bootstrap.servers"] == "kafka:9092"
    assert kafka_config["client.id"] == "pub-1"
    assert kafka_config["enable.idempotence"] is True
    assert kafka_config["acks"] == "all"


@pytest.mark.unit
@pytest.mark.parametrize(
    "field, value",
    [("publish_rate", 0), ("publish_rate", 10000), ("publish_count", -1), ("topic_partitions", 0)],
)
def test_publisher_config_validation(field, value):
    with pytest.raises(ValidationError) as exc_info:
        PublisherConfig(**{field: value})

    assert field in str(exc_info.value)
