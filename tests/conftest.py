"""
Pytest Configuration and Shared Fixtures

UNIT FIXTURES (no external services):
- writer_config / executor: writer settings and a retry executor that records
  its backoff waits instead of sleeping
- sqlite_db_manager / sqlite_store: real gateway on a throwaway SQLite file

Kafka and store doubles live in tests/fakes.py.

INTEGRATION FIXTURES (testcontainers):
- postgres_container / kafka_container: started once per session; tests that
  need them are skipped when Docker is not available
"""

import os
import uuid
from typing import Generator, List

import pytest

from src.writer.config import WriterConfig
from src.writer.database import DatabaseManager
from src.writer.models import Base
from src.writer.retry import RetryingExecutor, RetryPolicy
from src.writer.store import OrderStore

# ==============================================================================
# SAMPLE EVENTS
# ==============================================================================


@pytest.fixture
def order_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def sample_order_event(order_id):
    """A valid order event as it appears on the topic."""
    return {
        "orderId": order_id,
        "partnerId": "p-1001",
        "status": "PLACED",
        "totalAmount": 25.99,
        "currency": "USD",
        "isDeleted": False,
    }


# ==============================================================================
# WRITER FIXTURES
# ==============================================================================


@pytest.fixture
def writer_config() -> WriterConfig:
    return WriterConfig(
        kafka_bootstrap_servers="localhost:9092",
        kafka_topic_orders="orders.transformed",
        consumer_group_id="test-writer",
        consumer_poll_timeout=0.01,
    )


@pytest.fixture
def recorded_waits() -> List[float]:
    return []


@pytest.fixture
def executor(recorded_waits) -> RetryingExecutor:
    """Default 2s/4s policy with the waits recorded instead of slept."""
    return RetryingExecutor(RetryPolicy(), sleep=recorded_waits.append)


# ==============================================================================
# SQLITE FIXTURES
# ==============================================================================


@pytest.fixture
def sqlite_db_manager(tmp_path) -> Generator[DatabaseManager, None, None]:
    """DatabaseManager on a fresh SQLite file with orders_ops created."""
    config = WriterConfig(database_url=f"sqlite:///{tmp_path / 'orders.db'}", db_pool_size=2)
    db_manager = DatabaseManager(config)
    db_manager.create_schema()
    try:
        yield db_manager
    finally:
        db_manager.close()


@pytest.fixture
def sqlite_store(sqlite_db_manager) -> OrderStore:
    return OrderStore(sqlite_db_manager)


# ==============================================================================
# CONTAINER FIXTURES
# ==============================================================================


@pytest.fixture(scope="session")
def postgres_container():
    """
    PostgreSQL testcontainer for the whole session.

    Skips the requesting test when Docker is unavailable.
    """
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer("postgres:15")
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker not available for PostgreSQL container: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session")
def kafka_container():
    """Kafka testcontainer for the whole session; skips without Docker."""
    from testcontainers.kafka import KafkaContainer

    container = KafkaContainer()
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker not available for Kafka container: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture
def postgres_db_manager(postgres_container) -> Generator[DatabaseManager, None, None]:
    """DatabaseManager on the container; orders_ops is dropped after each test."""
    config = WriterConfig(database_url=postgres_container.get_connection_url())
    db_manager = DatabaseManager(config)
    db_manager.create_schema()
    try:
        yield db_manager
    finally:
        Base.metadata.drop_all(db_manager.engine)
        db_manager.close()


@pytest.fixture
def pipeline_config(kafka_container, postgres_container) -> WriterConfig:
    """WriterConfig pointing at both containers, with a per-test topic and group."""
    suffix = uuid.uuid4().hex[:8]
    return WriterConfig(
        kafka_bootstrap_servers=kafka_container.get_bootstrap_server(),
        kafka_topic_orders=f"orders-transformed-{suffix}",
        consumer_group_id=f"test-writer-{suffix}",
        consumer_auto_offset_reset="earliest",
        consumer_poll_timeout=0.5,
        database_url=postgres_container.get_connection_url(),
    )


# ==============================================================================
# TEST ENVIRONMENT CONFIGURATION
# ==============================================================================


def pytest_configure(config):
    """Register custom markers."""
    os.environ["ENVIRONMENT"] = "test"

    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires containers)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 5 seconds)")
    config.addinivalue_line("markers", "unit: mark test as unit test (no external dependencies)")
