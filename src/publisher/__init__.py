"""
Order Event Publisher Package

Publishes order lifecycle events (orderId-keyed JSON) to the topic the writer
consumes. Used for local runs, load tests and the end-to-end tests.

PACKAGE STRUCTURE:
- producer.py: message shaping, OrderPublisher, topic provisioning
- mock_data.py: seeded order lifecycle generator
- config.py: publisher settings from environment variables
- main.py: CLI entry point
"""

__version__ = "1.0.0"

from src.publisher.config import PublisherConfig, load_config
from src.publisher.mock_data import MockOrderGenerator
from src.publisher.producer import OrderPublisher, build_order_message, create_topic_if_missing

__all__ = [
    "MockOrderGenerator",
    "OrderPublisher",
    "PublisherConfig",
    "build_order_message",
    "create_topic_if_missing",
    "load_config",
]
