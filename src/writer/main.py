"""
Order Writer Service - Main Entry Point

USAGE:
    python -m src.writer.main [options]

OPTIONS:
    --log-level       Logging level (DEBUG, INFO, WARNING, ERROR)
    --log-format      Log format (json or text)
    --workers         Number of consumer threads (default: CONSUMER_WORKERS)
    --create-schema   Create orders_ops before consuming

ENVIRONMENT VARIABLES:
    See src/writer/config.py for the full list, e.g.
    KAFKA_BOOTSTRAP_SERVERS, KAFKA_TOPIC_ORDERS, CONSUMER_GROUP_ID,
    DATABASE_URL or POSTGRES_HOST/PORT/DB/USER/PASSWORD, DB_POOL_SIZE,
    RETRY_MAX_RETRIES, RETRY_MIN_WAIT_SECONDS, RETRY_MAX_WAIT_SECONDS

GRACEFUL SHUTDOWN (SIGINT / SIGTERM):
1. Every writer stops polling
2. In-flight messages finish, or are abandoned uncommitted at a backoff wait
3. Kafka consumers close (leaving the group)
4. The connection pool is disposed, after all writers are done
"""

import argparse
import logging
import signal
import sys
import threading
from functools import partial
from typing import List

from src.shared.logger import setup_logger
from src.writer.config import load_config
from src.writer.consumer import OrderWriter
from src.writer.database import init_database
from src.writer.store import OrderStore

SERVICE_NAME = "orders-ops-writer"


def request_shutdown(writers: List[OrderWriter], signum: int, frame) -> None:
    """Signal handler: stop every writer."""
    logging.getLogger(__name__).info(
        f"Received {signal.Signals(signum).name}, initiating graceful shutdown..."
    )
    for writer in writers:
        writer.stop()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Apply order events from Kafka to the orders_ops table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default settings
  python -m src.writer.main

  # Local run against SQLite with readable logs
  DATABASE_URL=sqlite:///orders.db python -m src.writer.main --create-schema --log-format text

  # Three consumers sharing one connection pool
  python -m src.writer.main --workers 3
        """,
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides LOG_LEVEL env var)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Log output format (overrides LOG_FORMAT env var)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Consumer threads (overrides CONSUMER_WORKERS env var)",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create the orders_ops table if it is missing",
    )

    return parser.parse_args(argv)


def run_writers(writers: List[OrderWriter]) -> None:
    """Run one writer in this thread, or each in its own thread."""
    if len(writers) == 1:
        writers[0].start()
        return

    threads = [
        threading.Thread(target=writer.start, name=f"order-writer-{i}", daemon=True)
        for i, writer in enumerate(writers)
    ]
    for thread in threads:
        thread.start()
    # join with a timeout so signal handlers keep running in the main thread
    while any(thread.is_alive() for thread in threads):
        for thread in threads:
            thread.join(timeout=0.5)


def main(argv=None) -> int:
    """
    Returns:
        Exit code (0 = clean shutdown, 1 = startup or fatal error)
    """
    args = parse_args(argv)

    try:
        config = load_config()
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    if args.workers:
        config.consumer_workers = args.workers

    setup_logger(
        name="src",
        service_name=SERVICE_NAME,
        log_level=config.log_level,
        log_format=config.log_format,
    )
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting Order Writer Service",
        extra={
            "kafka_bootstrap_servers": config.kafka_bootstrap_servers,
            "kafka_topic": config.kafka_topic_orders,
            "consumer_group": config.consumer_group_id,
            "workers": config.consumer_workers,
            "db_pool_size": config.db_pool_size,
            "retry_schedule": config.get_retry_policy().schedule(),
        },
    )

    try:
        db_manager = init_database(config, create_schema=args.create_schema)
    except Exception:
        logger.error("Failed to initialize database", exc_info=True)
        return 1

    writers: List[OrderWriter] = []
    try:
        store = OrderStore(db_manager)
        for _ in range(config.consumer_workers):
            writers.append(OrderWriter(config, store))
    except Exception:
        logger.error("Failed to create order writers", exc_info=True)
        for writer in writers:
            writer.close()
        db_manager.close()
        return 1

    handler = partial(request_shutdown, writers)
    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)

    try:
        logger.info("Writers starting, press Ctrl+C to stop...")
        run_writers(writers)
        logger.info("Writers stopped")
        return 0
    except Exception:
        logger.error("Fatal error in writer", exc_info=True)
        return 1
    finally:
        for writer in writers:
            writer.stop()
            writer.close()
        db_manager.close()


if __name__ == "__main__":
    sys.exit(main())
