"""
Order Event Codec

Turns a raw Kafka message value into a canonical ``OrderRecord`` and converts
order identifiers between their text form and their storage form.

IDENTIFIER FORMS:
- Text:    "1b4e28ba-2fa1-11d2-883f-0016d3cca427" (36 chars, 8-4-4-4-12 hex)
- Storage: 16 raw bytes (BINARY/BYTEA primary key)

Text input is case-insensitive; text output is always lowercase. Converting
text -> bytes -> text yields the lowercase input.

INBOUND EVENT SHAPE:
{
  "orderId": "uuid",
  "partnerId": "p-1001",
  "status": "PLACED",
  "totalAmount": 25.99,        # number or numeric string
  "currency": "USD",           # optional, defaults to USD
  "isDeleted": false           # optional, defaults to false
}
Unknown fields are ignored. Everything here is a pure transformation.
"""

import json
import re
import uuid
from decimal import Decimal
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_CURRENCY = "USD"

_HEX32 = re.compile(r"[0-9a-f]{32}")


class DecodeError(ValueError):
    """Malformed or unparseable order event."""


class InvalidIdentifier(DecodeError):
    """Order id is not 32 hex digits once hyphens are removed."""


# ==============================================================================
# IDENTIFIER CONVERSION
# ==============================================================================


def encode_id(order_id: str) -> bytes:
    """
    Convert a textual order id to its 16-byte storage form.

    Hyphens are stripped and case is ignored; anything that is not then
    exactly 32 hex digits is rejected.

    Raises:
        InvalidIdentifier: If the id cannot be encoded
    """
    if not isinstance(order_id, str):
        raise InvalidIdentifier(f"Invalid order id: {order_id!r}")

    hex_digits = order_id.replace("-", "").lower()
    if not _HEX32.fullmatch(hex_digits):
        raise InvalidIdentifier(f"Invalid order id: {order_id!r}")

    return bytes.fromhex(hex_digits)


def decode_id(raw: bytes) -> str:
    """Convert a 16-byte stored order id to canonical lowercase text."""
    return str(uuid.UUID(bytes=bytes(raw)))


# ==============================================================================
# ORDER RECORD
# ==============================================================================


class OrderRecord(BaseModel):
    """
    Canonical order state carried by one event.

    Field names are snake_case; the camelCase wire names are accepted as
    aliases so ``OrderRecord.model_validate(payload)`` reads events directly.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    order_id: str = Field(alias="orderId")
    partner_id: str = Field(alias="partnerId", coerce_numbers_to_str=True)
    status: str
    total_amount: Decimal = Field(alias="totalAmount")
    currency: str = DEFAULT_CURRENCY
    is_deleted: bool = Field(default=False, alias="isDeleted")

    @field_validator("order_id", mode="before")
    @classmethod
    def _canonical_order_id(cls, value: Any) -> str:
        return decode_id(encode_id(value))

    @field_validator("currency", mode="before")
    @classmethod
    def _default_currency(cls, value: Any) -> Any:
        return DEFAULT_CURRENCY if value is None else value

    @field_validator("is_deleted", mode="before")
    @classmethod
    def _truthy_flag(cls, value: Any) -> bool:
        return bool(value)

    @property
    def order_key(self) -> bytes:
        """Storage form of ``order_id``."""
        return encode_id(self.order_id)

    def to_event(self) -> dict:
        """Event-shaped dict (camelCase keys, JSON-safe amount)."""
        return {
            "orderId": self.order_id,
            "partnerId": self.partner_id,
            "status": self.status,
            "totalAmount": str(self.total_amount),
            "currency": self.currency,
            "isDeleted": self.is_deleted,
        }


def decode(raw_payload: Union[bytes, str, Mapping[str, Any]]) -> OrderRecord:
    """
    Decode one message value into an ``OrderRecord``.

    Args:
        raw_payload: UTF-8 JSON bytes, a JSON string, or an already parsed mapping

    Raises:
        DecodeError: Bad encoding, bad JSON, not an object, missing or invalid fields
    """
    if isinstance(raw_payload, (bytes, bytearray)):
        try:
            raw_payload = raw_payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Message is not valid UTF-8: {e}") from e

    if isinstance(raw_payload, str):
        try:
            raw_payload = json.loads(raw_payload)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Message is not valid JSON: {e}") from e

    if not isinstance(raw_payload, Mapping):
        raise DecodeError(f"Expected a JSON object, got {type(raw_payload).__name__}")

    try:
        return OrderRecord.model_validate(dict(raw_payload))
    except ValidationError as e:
        raise DecodeError(f"Invalid order event: {e}") from e
