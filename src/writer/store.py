"""
Order Store Gateway

The only component that talks to the orders_ops table.

apply(record) is a single atomic upsert:

    INSERT INTO orders_ops (order_id, partner_id, status, total_amount,
                            currency, is_deleted, created_ts, updated_ts)
    VALUES (...,  <db clock>, <db clock>)
    ON CONFLICT (order_id) DO UPDATE SET
        partner_id = excluded.partner_id,  status = excluded.status,
        total_amount = excluded.total_amount, currency = excluded.currency,
        is_deleted = excluded.is_deleted, updated_ts = <db clock>
    RETURNING created_ts, updated_ts

Re-applying the same record converges on the same row (only updated_ts moves),
which is what makes at-least-once delivery safe. Failures leave the gateway
only as TransientStoreError / PermanentStoreError; the gateway never retries.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from src.writer.codec import OrderRecord, decode_id, encode_id
from src.writer.database import DatabaseManager, translate_error
from src.writer.models import OrderOps

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _write_clock(dialect_name: str):
    """Database-side timestamp for a write, identical for every use within one statement."""
    if dialect_name == "sqlite":
        # CURRENT_TIMESTAMP is whole seconds on SQLite; keep milliseconds
        return func.strftime("%Y-%m-%d %H:%M:%f", "now")
    return func.now()


@dataclass(frozen=True)
class WriteResult:
    """Row timestamps after a successful apply."""

    order_id: str
    created_ts: datetime
    updated_ts: datetime

    @property
    def inserted(self) -> bool:
        """True when this write created the row."""
        return self.created_ts == self.updated_ts


class StoredOrder(OrderRecord):
    """An ``OrderRecord`` as read back from orders_ops, with its timestamps."""

    created_ts: datetime
    updated_ts: datetime


class OrderStore:
    """
    Gateway over orders_ops.

    Args:
        db_manager: Owner of the engine and pool (shared across writers)
    """

    def __init__(self, db_manager: DatabaseManager):
        dialect_name = db_manager.dialect_name
        if dialect_name not in _INSERT_BY_DIALECT:
            raise ValueError(f"Unsupported database dialect: {dialect_name}")

        self.db_manager = db_manager
        self.logger = logging.getLogger(__name__)
        self._insert = _INSERT_BY_DIALECT[dialect_name]
        self._clock = _write_clock(dialect_name)

    def apply(self, record: OrderRecord) -> WriteResult:
        """
        Upsert ``record``.

        Raises:
            TransientStoreError: Connectivity, timeout, lock or deadlock failure
            PermanentStoreError: Any other failure
        """
        stmt = self._upsert_statement(record)

        try:
            with self.db_manager.get_session() as session:
                created_ts, updated_ts = session.execute(stmt).one()
        except SQLAlchemyError as e:
            raise translate_error(e) from e

        result = WriteResult(record.order_id, created_ts, updated_ts)
        self.logger.debug(
            "Order upserted",
            extra={
                "correlation_id": record.order_id,
                "inserted": result.inserted,
                "updated_ts": updated_ts,
            },
        )
        return result

    def _upsert_statement(self, record: OrderRecord):
        table = OrderOps.__table__
        stmt = self._insert(table).values(
            order_id=record.order_key,
            partner_id=record.partner_id,
            status=record.status,
            total_amount=record.total_amount,
            currency=record.currency,
            is_deleted=record.is_deleted,
            created_ts=self._clock,
            updated_ts=self._clock,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.order_id],
            set_={
                "partner_id": stmt.excluded.partner_id,
                "status": stmt.excluded.status,
                "total_amount": stmt.excluded.total_amount,
                "currency": stmt.excluded.currency,
                "is_deleted": stmt.excluded.is_deleted,
                "updated_ts": self._clock,
            },
        )
        return stmt.returning(table.c.created_ts, table.c.updated_ts)

    # ==========================================================================
    # READ ACCESSORS (verification / reporting, not on the write path)
    # ==========================================================================

    def get_by_id(self, order_id: str) -> Optional[StoredOrder]:
        """
        Fetch one order, or ``None`` when it does not exist.

        Raises:
            InvalidIdentifier: ``order_id`` is not a valid UUID string
            StoreError: The read itself failed
        """
        key = encode_id(order_id)
        try:
            with self.db_manager.get_session() as session:
                row = session.get(OrderOps, key)
                return self._to_stored(row) if row is not None else None
        except SQLAlchemyError as e:
            raise translate_error(e) from e

    def list_by_partner(self, partner_id: str) -> List[StoredOrder]:
        """All orders of ``partner_id``, newest ``created_ts`` first."""
        query = (
            select(OrderOps)
            .where(OrderOps.partner_id == partner_id)
            .order_by(OrderOps.created_ts.desc())
        )
        try:
            with self.db_manager.get_session() as session:
                return [self._to_stored(row) for row in session.scalars(query)]
        except SQLAlchemyError as e:
            raise translate_error(e) from e

    @staticmethod
    def _to_stored(row: OrderOps) -> StoredOrder:
        return StoredOrder(
            order_id=decode_id(row.order_id),
            partner_id=row.partner_id,
            status=row.status,
            total_amount=row.total_amount,
            currency=row.currency,
            is_deleted=row.is_deleted,
            created_ts=row.created_ts,
            updated_ts=row.updated_ts,
        )
