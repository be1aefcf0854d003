"""
SQLAlchemy ORM Model for the orders_ops Table

orders_ops is a materialized "latest snapshot" view of the order event stream:
one row per order id, overwritten by every applied event. No history is kept,
and rows are never removed (deletion is the is_deleted flag).

TIMESTAMPS ARE OWNED BY THE DATABASE:
- created_ts: written once, by the first insert for an order id
- updated_ts: rewritten by every insert or update
The writer never sends its own clock for either column.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Index,
    LargeBinary,
    Numeric,
    String,
    false,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.writer.codec import decode_id


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class OrderOps(Base):
    """
    One row per order id.

    Attributes:
        order_id: 16-byte binary order id (PRIMARY KEY)
        partner_id: Owning partner
        status: Latest status (open enumeration, not validated)
        total_amount: Order total, 2 decimal places
        currency: 3-letter currency code
        created_ts: First write time
        updated_ts: Latest write time
        is_deleted: Soft-delete flag
    """

    __tablename__ = "orders_ops"

    order_id: Mapped[bytes] = mapped_column(
        LargeBinary(16),
        CheckConstraint("length(order_id) = 16", name="check_order_id_length"),
        primary_key=True,
        comment="Order UUID in 16-byte binary form",
    )

    partner_id: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[str] = mapped_column(String(64), nullable=False)

    # NUMERIC, never FLOAT, for money
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        CheckConstraint("total_amount >= 0", name="check_non_negative_amount"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default=text("'USD'")
    )

    created_ts: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_ts: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())

    __table_args__ = (
        # list_by_partner: filter on partner, newest first
        Index("idx_orders_ops_partner_created", "partner_id", "created_ts"),
        {"comment": "Latest state per order, applied from the order event topic"},
    )

    def __repr__(self) -> str:
        return (
            f"<OrderOps(order_id={decode_id(self.order_id)}, "
            f"partner_id={self.partner_id}, "
            f"status={self.status}, "
            f"total_amount={self.total_amount})>"
        )
