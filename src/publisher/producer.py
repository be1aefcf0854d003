"""
Kafka Order Event Publisher

Fire-and-forget publishing of order lifecycle events, plus topic provisioning.

MESSAGE SHAPE (one per order mutation):
- Key:   orderId (UTF-8) → every event of one order lands on one partition,
         which is what gives the writer per-order ordering
- Value: {"orderId", "partnerId", "status", "totalAmount", "currency", "isDeleted"}
         as UTF-8 JSON
"""

import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from confluent_kafka import KafkaError, KafkaException, Producer
from confluent_kafka.admin import AdminClient, NewTopic

DEFAULT_CURRENCY = "USD"


def build_order_message(order: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalise an order into the outbound event shape.

    Missing currency becomes USD and isDeleted is coerced to a bool; extra keys
    are dropped.

    Raises:
        ValueError: If orderId is missing (it is the partition key)
    """
    if not order.get("orderId"):
        raise ValueError("Order missing 'orderId' field (required for partition key)")

    total_amount = order.get("totalAmount")
    if isinstance(total_amount, Decimal):
        total_amount = str(total_amount)

    currency = order.get("currency")
    return {
        "orderId": order["orderId"],
        "partnerId": order.get("partnerId"),
        "status": order.get("status"),
        "totalAmount": total_amount,
        "currency": DEFAULT_CURRENCY if currency is None else currency,
        "isDeleted": bool(order.get("isDeleted")),
    }


def create_topic_if_missing(
    bootstrap_servers: str,
    topic: str,
    num_partitions: int = 1,
    replication_factor: int = 1,
    timeout: float = 10.0,
) -> bool:
    """
    Create ``topic`` unless the cluster already has it.

    Returns:
        True if the topic was created, False if it already existed

    Raises:
        KafkaException: Metadata lookup or topic creation failed
    """
    logger = logging.getLogger(__name__)
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})

    metadata = admin.list_topics(timeout=timeout)
    if topic in metadata.topics:
        logger.info("Topic already exists", extra={"topic": topic})
        return False

    futures = admin.create_topics(
        [NewTopic(topic, num_partitions=num_partitions, replication_factor=replication_factor)]
    )
    try:
        futures[topic].result(timeout=timeout)
    except KafkaException as e:
        # Lost a race with another creator
        if e.args and e.args[0].code() == KafkaError.TOPIC_ALREADY_EXISTS:
            return False
        raise

    logger.info(
        "Topic created",
        extra={"topic": topic, "partitions": num_partitions, "replication_factor": replication_factor},
    )
    return True


class OrderPublisher:
    """
    Kafka producer for order events.

    Attributes:
        topic: Target topic
        producer: confluent_kafka.Producer instance
        messages_sent: Events handed to the producer
        messages_delivered: Events acknowledged by the broker
        messages_failed: Events the broker rejected
    """

    def __init__(
        self,
        kafka_config: Dict[str, Any],
        topic: str,
        delivery_callback: Optional[Callable] = None,
        producer: Optional[Producer] = None,
    ):
        """
        Args:
            kafka_config: confluent_kafka producer configuration
            topic: Topic to publish to
            delivery_callback: Optional custom delivery report callback
            producer: Pre-built producer (tests)
        """
        self.topic = topic
        self.logger = logging.getLogger(__name__)
        self.delivery_callback = delivery_callback or self._default_delivery_callback

        self.messages_sent = 0
        self.messages_delivered = 0
        self.messages_failed = 0

        try:
            self.producer = producer if producer is not None else Producer(kafka_config)
        except KafkaException:
            self.logger.error("Failed to initialize Kafka producer", exc_info=True)
            raise

        self.logger.info(
            "Kafka producer initialized",
            extra={"topic": topic, "bootstrap_servers": kafka_config.get("bootstrap.servers")},
        )

    def _default_delivery_callback(self, err: Optional[KafkaError], msg) -> None:
        """Count and log broker acknowledgements (runs inside poll/flush)."""
        order_id = msg.key().decode("utf-8") if msg is not None and msg.key() else None

        if err is not None:
            self.messages_failed += 1
            self.logger.error(
                "Order event delivery failed",
                extra={"correlation_id": order_id, "error": err.str(), "error_code": err.code()},
            )
            return

        self.messages_delivered += 1
        self.logger.debug(
            "Order event delivered",
            extra={
                "correlation_id": order_id,
                "topic": msg.topic(),
                "partition": msg.partition(),
                "offset": msg.offset(),
            },
        )

    def publish_order(self, order: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Publish one order event keyed by its orderId.

        Returns:
            The message body that was sent

        Raises:
            ValueError: Order has no orderId
            BufferError: Local producer queue is full
            KafkaException: Kafka client error
        """
        message = build_order_message(order)
        order_id = message["orderId"]

        try:
            self.producer.produce(
                topic=self.topic,
                key=str(order_id).encode("utf-8"),
                value=json.dumps(message).encode("utf-8"),
                on_delivery=self.delivery_callback,
            )
        except BufferError:
            self.logger.error(
                "Producer buffer full",
                exc_info=True,
                extra={"correlation_id": order_id},
            )
            raise
        except KafkaException:
            self.logger.error(
                "Kafka error publishing order event",
                exc_info=True,
                extra={"correlation_id": order_id},
            )
            raise

        # Serve delivery callbacks of earlier sends without blocking
        self.producer.poll(0)
        self.messages_sent += 1

        self.logger.debug(
            "Order event published",
            extra={"correlation_id": order_id, "status": message["status"], "topic": self.topic},
        )
        return message

    def flush(self, timeout: float = 30.0) -> int:
        """
        Wait for outstanding deliveries.

        Returns:
            Messages still undelivered (0 = all acknowledged)
        """
        remaining = self.producer.flush(timeout)

        if remaining > 0:
            self.logger.warning(
                "Producer flush timeout",
                extra={"remaining_messages": remaining, "timeout": timeout},
            )
        return remaining

    def close(self, timeout: float = 30.0) -> None:
        """Flush and report what could not be delivered."""
        remaining = self.flush(timeout=timeout)

        self.logger.info(
            "Publisher closed",
            extra={
                "messages_sent": self.messages_sent,
                "messages_delivered": self.messages_delivered,
                "messages_failed": self.messages_failed,
                "undelivered": remaining,
            },
        )
