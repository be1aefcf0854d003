"""
In-memory test doubles for the Kafka consumer and the order store.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from confluent_kafka import KafkaError

from src.writer.store import OrderStore, WriteResult


def make_event(order_id: Optional[str] = None, **overrides) -> dict:
    event = {
        "orderId": order_id or str(uuid.uuid4()),
        "partnerId": "p-1001",
        "status": "PLACED",
        "totalAmount": "25.99",
        "currency": "USD",
        "isDeleted": False,
    }
    event.update(overrides)
    return event


# ==============================================================================
# KAFKA FAKES
# ==============================================================================


class FakeMessage:
    """Minimal confluent_kafka.Message lookalike."""

    def __init__(
        self,
        value,
        offset: int,
        partition: int = 0,
        topic: str = "orders.transformed",
        key: Optional[bytes] = None,
        error: Optional[KafkaError] = None,
    ):
        self._value = value
        self._offset = offset
        self._partition = partition
        self._topic = topic
        self._key = key
        self._error = error

    def value(self):
        return self._value

    def key(self):
        return self._key

    def offset(self):
        return self._offset

    def partition(self):
        return self._partition

    def topic(self):
        return self._topic

    def error(self):
        return self._error


class FakeConsumer:
    """
    Replays a fixed message log.

    Attributes:
        commits: (partition, next offset) per synchronous commit, in order
        seeks: (partition, offset) per seek
    """

    def __init__(self, messages: List[FakeMessage]):
        self.log = list(messages)
        self.position = 0
        self.subscriptions: List[str] = []
        self.commits: List[tuple] = []
        self.seeks: List[tuple] = []
        self.closed = False

    def subscribe(self, topics):
        self.subscriptions.extend(topics)

    def poll(self, timeout=None):
        if self.position >= len(self.log):
            return None
        msg = self.log[self.position]
        self.position += 1
        return msg

    def commit(self, message=None, asynchronous=True):
        assert asynchronous is False, "offsets must be committed synchronously"
        self.commits.append((message.partition(), message.offset() + 1))

    def seek(self, partition):
        self.seeks.append((partition.partition, partition.offset))
        for index, msg in enumerate(self.log):
            if msg.partition() == partition.partition and msg.offset() == partition.offset:
                self.position = index
                return

    def close(self):
        self.closed = True

    @property
    def committed_offsets(self) -> List[int]:
        return [offset for _, offset in self.commits]


def as_messages(payloads, start_offset: int = 0) -> List[FakeMessage]:
    """Wrap payloads (dicts are JSON-encoded, bytes pass through) as messages."""
    messages = []
    for offset, payload in enumerate(payloads, start=start_offset):
        value = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        messages.append(FakeMessage(value, offset=offset))
    return messages


# ==============================================================================
# STORE DOUBLES
# ==============================================================================


class ScriptedStore:
    """
    Store double: raises the scripted errors in order, then succeeds.

    Attributes:
        applied: Every record that was stored, in order
        calls: Number of apply() calls
    """

    def __init__(self, failures=None):
        self.failures = list(failures or [])
        self.applied = []
        self.calls = 0

    def apply(self, record):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        self.applied.append(record)
        now = datetime.now(timezone.utc)
        return WriteResult(record.order_id, now, now)


class FlakyStore:
    """Real OrderStore that is "down" for its first ``outage_calls`` writes."""

    def __init__(self, store: OrderStore, outage_error: Exception, outage_calls: int):
        self.store = store
        self.outage_error = outage_error
        self.outage_calls = outage_calls
        self.failed_calls = 0

    def apply(self, record):
        if self.failed_calls < self.outage_calls:
            self.failed_calls += 1
            raise self.outage_error
        return self.store.apply(record)
