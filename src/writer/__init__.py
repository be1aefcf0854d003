"""
Order Writer Service Package

Consumes order lifecycle events from Kafka and applies them to the orders_ops
table so that every event is reflected exactly once in effect, on top of
at-least-once delivery and an unreliable database.

PIPELINE:
┌────────────────────┐   ┌──────────┐   ┌─────────────────────┐   ┌──────────────┐
│ orders.transformed │──▶│  decode  │──▶│ apply (with retry)  │──▶│ commit / stall│
│   (Kafka topic)    │   │ codec.py │   │ retry.py + store.py │   │ consumer.py  │
└────────────────────┘   └──────────┘   └─────────────────────┘   └──────────────┘

WHY EXACTLY-ONCE IN EFFECT WORKS:
- The store write is an idempotent upsert keyed on order_id
- The offset is committed only after the write succeeded (or the message was
  deliberately dropped), so a crash can only cause a re-apply, never a loss

FAILURE POLICY:
- Malformed event           → log, drop, commit
- Permanent store failure   → log, drop, commit
- Transient store failure   → retry 2s, 4s; if still failing, do not commit and
                              rewind the partition (stall until the store is back)

Package components:
- codec.py: event → OrderRecord, order id text <-> 16 bytes
- errors.py: StoreError variants and their causes
- retry.py: classifier, RetryPolicy, RetryingExecutor
- models.py: orders_ops ORM model
- database.py: engine, bounded pool, driver error translation
- store.py: OrderStore gateway (apply, get_by_id, list_by_partner)
- consumer.py: OrderWriter ingestion loop
- config.py / main.py: configuration and entry point
"""

__version__ = "1.0.0"

from src.writer.codec import DecodeError, InvalidIdentifier, OrderRecord, decode, decode_id, encode_id
from src.writer.config import WriterConfig, load_config

__all__ = [
    "DecodeError",
    "InvalidIdentifier",
    "OrderRecord",
    "WriterConfig",
    "decode",
    "decode_id",
    "encode_id",
    "load_config",
]
