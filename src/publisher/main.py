"""
Order Event Publisher - Main Entry Point

Publishes mock order lifecycle events to the writer's topic, for local runs and
load tests.

USAGE:
    python -m src.publisher.main [options]

    # 500 events at 50/s, creating the topic first
    python -m src.publisher.main --count 500 --rate 50 --create-topic

    # Publish until Ctrl+C
    python -m src.publisher.main --count 0
"""

import argparse
import logging
import signal
import sys
import threading
import time
from functools import partial

from confluent_kafka import KafkaException

from src.publisher.config import PublisherConfig, load_config
from src.publisher.mock_data import MockOrderGenerator
from src.publisher.producer import OrderPublisher, create_topic_if_missing
from src.shared.logger import setup_logger

SERVICE_NAME = "orders-ops-publisher"


def request_shutdown(stop_event: threading.Event, signum: int, frame) -> None:
    logging.getLogger(__name__).info(
        f"Received {signal.Signals(signum).name}, stopping publisher..."
    )
    stop_event.set()


def run_publisher(
    config: PublisherConfig,
    publisher: OrderPublisher,
    generator: MockOrderGenerator,
    stop_event: threading.Event,
) -> int:
    """
    Publish ``config.publish_count`` events (0 = until stopped) at
    ``config.publish_rate`` events per second.

    Returns:
        Events published
    """
    logger = logging.getLogger(__name__)
    interval = 1.0 / config.publish_rate
    published = 0
    errors = 0
    start_time = time.time()

    while not stop_event.is_set():
        if config.publish_count and published >= config.publish_count:
            break

        event = generator.next_event()
        try:
            publisher.publish_order(event)
            published += 1
        except (BufferError, KafkaException):
            errors += 1
            # Let the local queue drain before the next send
            publisher.producer.poll(1.0)
            continue

        if published % 100 == 0:
            elapsed = time.time() - start_time
            logger.info(
                "Publishing progress",
                extra={
                    "published": published,
                    "errors": errors,
                    "elapsed_seconds": round(elapsed, 2),
                    "actual_rate": round(published / elapsed, 2) if elapsed > 0 else 0,
                },
            )

        stop_event.wait(interval)

    logger.info("Publishing finished", extra={"published": published, "errors": errors})
    return published


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Publish mock order lifecycle events to Kafka",
    )
    parser.add_argument("--bootstrap-servers", type=str, help="Kafka bootstrap servers")
    parser.add_argument("--topic", type=str, help="Topic name")
    parser.add_argument("--count", type=int, help="Events to publish (0 = until stopped)")
    parser.add_argument("--rate", type=int, help="Events per second")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible events")
    parser.add_argument(
        "--create-topic",
        action="store_true",
        help="Create the topic if it does not exist",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument("--log-format", type=str, choices=["json", "text"], help="Log format")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Returns:
        Exit code (0 = success, 1 = error)
    """
    args = parse_args(argv)

    try:
        config = load_config()
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    overrides = {
        "kafka_bootstrap_servers": args.bootstrap_servers,
        "kafka_topic_orders": args.topic,
        "publish_count": args.count,
        "publish_rate": args.rate,
        "mock_seed": args.seed,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    for field, value in overrides.items():
        if value is not None:
            setattr(config, field, value)

    setup_logger(
        name="src",
        service_name=SERVICE_NAME,
        log_level=config.log_level,
        log_format=config.log_format,
    )
    logger = logging.getLogger(__name__)

    if args.create_topic:
        try:
            create_topic_if_missing(
                config.kafka_bootstrap_servers,
                config.kafka_topic_orders,
                num_partitions=config.topic_partitions,
                replication_factor=config.topic_replication_factor,
            )
        except KafkaException:
            logger.error("Failed to create topic", exc_info=True)
            return 1

    try:
        publisher = OrderPublisher(config.get_kafka_config(), config.kafka_topic_orders)
    except KafkaException:
        return 1

    stop_event = threading.Event()
    handler = partial(request_shutdown, stop_event)
    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)

    try:
        run_publisher(config, publisher, MockOrderGenerator(seed=config.mock_seed), stop_event)
    finally:
        publisher.close()

    return 0 if publisher.messages_failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
