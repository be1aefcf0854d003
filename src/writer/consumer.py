"""
Kafka Order Writer (Ingestion Loop)

Reads order events from the 'orders.transformed' topic and applies each one to
orders_ops, committing the Kafka offset only once the message has reached a
terminal outcome.

PER-MESSAGE STATE MACHINE:
┌──────────┐   ┌──────────┐   ┌────────────────────────┐
│ Received │──▶│ Decoding │──▶│ Applying (attempt 1..3) │
└──────────┘   └────┬─────┘   └───────────┬────────────┘
                    │ DecodeError          │
                    ▼                      ├── success ──────────▶ APPLIED            (commit)
          DROPPED_MALFORMED (commit)       ├── permanent failure ▶ DROPPED_PERMANENT  (commit)
                                           └── retries exhausted ▶ ABORTED            (seek back)

OFFSET RULES:
- Commit is synchronous and per message: commit(message=msg) stores
  msg.offset() + 1 for that partition only
- APPLIED / DROPPED_* commit; malformed and permanently failing messages must
  not block their partition forever
- ABORTED never commits. The partition is rewound to the failed message so the
  next poll delivers it again after a max_wait pause. The partition stalls
  until the store accepts the write or an operator steps in
- Messages are handled strictly one at a time, in delivery order

Multiple OrderWriter instances in the same consumer group may run in separate
threads; each gets its own partitions and they share only the store's pool.
"""

import logging
import threading
import time
from enum import Enum
from typing import Optional

from confluent_kafka import Consumer, KafkaError, KafkaException, Message, TopicPartition

from src.shared.logger import CorrelationAdapter
from src.writer.codec import DecodeError, decode
from src.writer.config import WriterConfig
from src.writer.retry import PermanentFailure, RetriesExhausted, RetryingExecutor
from src.writer.store import OrderStore


class Outcome(str, Enum):
    """Terminal state of one message."""

    APPLIED = "applied"
    DROPPED_MALFORMED = "dropped_malformed"
    DROPPED_PERMANENT = "dropped_permanent"
    ABORTED = "aborted"

    @property
    def commits(self) -> bool:
        """Whether the offset advances past the message."""
        return self is not Outcome.ABORTED


_FATAL_KAFKA_ERRORS = {
    KafkaError._ALL_BROKERS_DOWN,
    KafkaError._AUTHENTICATION,
    KafkaError.TOPIC_AUTHORIZATION_FAILED,
    KafkaError.GROUP_AUTHORIZATION_FAILED,
}


class OrderWriter:
    """
    One pull-based worker: poll → decode → apply with retry → commit or stall.

    Args:
        config: Writer configuration
        store: Store gateway (shared, owns the connection pool)
        consumer: Kafka consumer; built from config when omitted
        executor: Retry executor; built from config when omitted

    Attributes:
        messages_applied: Messages written to the store
        messages_dropped: Malformed or permanently failing messages skipped
        messages_aborted: Times a message exhausted its retries
    """

    def __init__(
        self,
        config: WriterConfig,
        store: OrderStore,
        consumer: Optional[Consumer] = None,
        executor: Optional[RetryingExecutor] = None,
    ):
        self.config = config
        self.store = store
        self.logger = logging.getLogger(__name__)

        self._stop_event = threading.Event()
        self.executor = executor or RetryingExecutor(
            config.get_retry_policy(), stop_event=self._stop_event
        )
        # A supplied executor still has to observe this writer's shutdown
        self.executor.stop_event = self._stop_event

        self.messages_applied = 0
        self.messages_dropped = 0
        self.messages_aborted = 0
        self._closed = False

        self.consumer = consumer if consumer is not None else self._create_consumer()
        self.consumer.subscribe([config.kafka_topic_orders])

        self.logger.info(
            "Order writer initialized",
            extra={
                "topic": config.kafka_topic_orders,
                "group_id": config.consumer_group_id,
                "bootstrap_servers": config.kafka_bootstrap_servers,
                "retry_schedule": self.executor.policy.schedule(),
            },
        )

    def _create_consumer(self) -> Consumer:
        kafka_config = self.config.get_kafka_config()
        self.logger.debug("Creating Kafka consumer", extra={"config": kafka_config})
        return Consumer(kafka_config)

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    # ==========================================================================
    # LOOPS
    # ==========================================================================

    def start(self) -> None:
        """Consume until ``stop()`` is called, then close the consumer."""
        self.logger.info("Starting writer loop...")

        try:
            while self.running:
                self._poll_once(self.config.consumer_poll_timeout)
        except Exception:
            self.logger.error("Fatal error in writer loop", exc_info=True)
            raise
        finally:
            self.close()

    def process_messages(self, max_messages: int, timeout: float = 10.0) -> int:
        """
        Handle up to ``max_messages`` messages or until ``timeout`` seconds pass.

        Returns:
            Number of messages that reached a terminal outcome
        """
        deadline = time.monotonic() + timeout
        handled = 0

        while self.running and handled < max_messages:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            if self._poll_once(min(self.config.consumer_poll_timeout, remaining)) is not None:
                handled += 1

        return handled

    def _poll_once(self, timeout: float) -> Optional[Outcome]:
        msg = self.consumer.poll(timeout=timeout)

        if msg is None:
            return None

        if msg.error():
            self._handle_kafka_error(msg.error())
            return None

        return self.handle_message(msg)

    # ==========================================================================
    # MESSAGE HANDLING
    # ==========================================================================

    def handle_message(self, msg: Message) -> Outcome:
        """Drive one message to a terminal outcome, then commit or rewind."""
        outcome = self._process(msg)

        if outcome.commits:
            self._commit(msg)
        else:
            self._rewind(msg)

        return outcome

    def _process(self, msg: Message) -> Outcome:
        start_time = time.time()
        position = {"partition": msg.partition(), "offset": msg.offset()}

        try:
            record = decode(msg.value())
        except DecodeError as e:
            self.messages_dropped += 1
            self.logger.error(
                "Malformed order event, skipping",
                extra={**position, "error": str(e), "messages_dropped": self.messages_dropped},
            )
            return Outcome.DROPPED_MALFORMED

        order_logger = CorrelationAdapter(self.logger, {"correlation_id": record.order_id})
        order_logger.debug("Applying order event", extra={**position, "status": record.status})

        try:
            result = self.executor.execute(lambda: self.store.apply(record), logger=order_logger)

        except PermanentFailure as e:
            self.messages_dropped += 1
            order_logger.error(
                "Permanent store failure, dropping order event",
                extra={
                    **position,
                    "attempts": e.attempts,
                    "cause": e.last_error.cause.value,
                    "error": str(e.last_error),
                    "event": record.to_event(),
                    "messages_dropped": self.messages_dropped,
                },
            )
            return Outcome.DROPPED_PERMANENT

        except RetriesExhausted as e:
            self.messages_aborted += 1
            order_logger.error(
                "Store unavailable, retries exhausted; partition stalled",
                extra={
                    **position,
                    "attempts": e.attempts,
                    "abandoned": e.abandoned,
                    "cause": e.last_error.cause.value,
                    "error": str(e.last_error),
                    "messages_aborted": self.messages_aborted,
                },
            )
            return Outcome.ABORTED

        except Exception:
            # Not a store failure: a retry cannot fix it either
            self.messages_dropped += 1
            order_logger.error(
                "Unexpected error applying order event, dropping",
                exc_info=True,
                extra={**position, "event": record.to_event()},
            )
            return Outcome.DROPPED_PERMANENT

        self.messages_applied += 1
        order_logger.info(
            "Order applied",
            extra={
                **position,
                "partner_id": record.partner_id,
                "status": record.status,
                "inserted": result.inserted,
                "processing_time_ms": round((time.time() - start_time) * 1000, 2),
                "messages_applied": self.messages_applied,
            },
        )
        return Outcome.APPLIED

    def _commit(self, msg: Message) -> None:
        try:
            self.consumer.commit(message=msg, asynchronous=False)
        except KafkaException:
            # The message will be redelivered; re-applying it is idempotent
            self.logger.error(
                "Failed to commit offset",
                exc_info=True,
                extra={"partition": msg.partition(), "offset": msg.offset()},
            )

    def _rewind(self, msg: Message) -> None:
        if not self.running:
            # Shutting down: the uncommitted offset is enough for redelivery
            return

        # Next round starts no sooner than the longest backoff wait
        self.logger.info(
            f"Partition stalled, redelivering in {self.executor.policy.max_wait}s",
            extra={"partition": msg.partition(), "offset": msg.offset()},
        )
        if not self.executor.cool_down():
            return

        try:
            self.consumer.seek(TopicPartition(msg.topic(), msg.partition(), msg.offset()))
        except KafkaException:
            self.logger.error(
                "Failed to rewind partition after aborted write",
                exc_info=True,
                extra={"partition": msg.partition(), "offset": msg.offset()},
            )

    def _handle_kafka_error(self, error: KafkaError) -> None:
        """Log consumer errors; stop on the ones that cannot heal."""
        if error.code() == KafkaError._PARTITION_EOF:
            self.logger.debug("Reached end of partition")
            return

        self.logger.error(
            f"Kafka error: {error.str()}",
            extra={"error_code": error.code(), "error_name": error.name()},
        )

        if error.code() in _FATAL_KAFKA_ERRORS or error.fatal():
            self.logger.critical("Fatal Kafka error, shutting down")
            self.stop()

    # ==========================================================================
    # SHUTDOWN
    # ==========================================================================

    def stop(self) -> None:
        """
        Ask the loop to stop.

        The in-flight message finishes, or is abandoned at its next backoff
        wait without committing. Safe to call from a signal handler.
        """
        self.logger.info("Stopping writer...")
        self._stop_event.set()

    def close(self) -> None:
        """Leave the consumer group. The store pool is closed by its owner."""
        if self._closed:
            return
        self._closed = True

        self.logger.info(
            "Writer shutting down",
            extra={
                "messages_applied": self.messages_applied,
                "messages_dropped": self.messages_dropped,
                "messages_aborted": self.messages_aborted,
            },
        )

        try:
            self.consumer.close()
            self.logger.info("Kafka consumer closed")
        except KafkaException:
            self.logger.error("Error closing Kafka consumer", exc_info=True)
