"""
Mock Order Event Generator

Generates order lifecycle events for exercising the writer end to end.

DATA GENERATION STRATEGY:
1. Fixed pool of partners (Faker company slugs)
2. New orders start as PLACED with a random amount
3. Existing orders advance PLACED → CAPTURED, and sometimes → CANCELLED
   (a cancelled order is soft-deleted: isDeleted = true)
4. A small share of events are exact replays, as at-least-once delivery
   would produce

Seeded generators give the same event stream for the same seed.
"""

import random
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from faker import Faker

NUM_PARTNERS = 20

CURRENCIES = ["USD", "USD", "USD", "EUR", "GBP"]

# Lifecycle: next status for each non-terminal status
NEXT_STATUS = {
    "PLACED": "CAPTURED",
    "CAPTURED": "CANCELLED",
}

# Probabilities per generated event
NEW_ORDER_PROBABILITY = 0.5
REPLAY_PROBABILITY = 0.05
CANCEL_PROBABILITY = 0.2


class MockOrderGenerator:
    """
    Stateful generator of order events.

    Attributes:
        partners: Partner ids orders are spread over
        open_orders: Orders that can still change status, by orderId

    Example:
        >>> generator = MockOrderGenerator(seed=42)
        >>> event = generator.generate_order()
        >>> event["status"]
        'PLACED'
    """

    def __init__(self, seed: Optional[int] = 42, num_partners: int = NUM_PARTNERS):
        self.fake = Faker()
        self.rng = random.Random(seed)
        if seed is not None:
            self.fake.seed_instance(seed)

        self.partners = self._generate_partners(num_partners)
        self.open_orders: Dict[str, Dict[str, Any]] = {}
        self._last_event: Optional[Dict[str, Any]] = None

    def _generate_partners(self, count: int) -> List[str]:
        partners = []
        while len(partners) < count:
            slug = self.fake.slug(self.fake.company())[:48]
            if slug and slug not in partners:
                partners.append(slug)
        return partners

    def _new_order_id(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))

    def generate_order(self) -> Dict[str, Any]:
        """A brand new PLACED order."""
        order = {
            "orderId": self._new_order_id(),
            "partnerId": self.rng.choice(self.partners),
            "status": "PLACED",
            "totalAmount": str(Decimal(self.rng.randint(100, 50_000)) / 100),
            "currency": self.rng.choice(CURRENCIES),
            "isDeleted": False,
        }
        self.open_orders[order["orderId"]] = order
        return dict(order)

    def advance(self, order: Dict[str, Any]) -> Dict[str, Any]:
        """
        Next lifecycle event for ``order``.

        CAPTURED orders are cancelled with CANCEL_PROBABILITY, otherwise they
        are considered done and leave the open pool unchanged.
        """
        event = dict(order)
        status = order["status"]

        if status == "PLACED":
            event["status"] = NEXT_STATUS[status]
        elif status == "CAPTURED" and self.rng.random() < CANCEL_PROBABILITY:
            event["status"] = NEXT_STATUS[status]
            event["isDeleted"] = True

        if event["status"] in NEXT_STATUS and event != order:
            self.open_orders[event["orderId"]] = event
        else:
            self.open_orders.pop(event["orderId"], None)
        return event

    def next_event(self) -> Dict[str, Any]:
        """One event: a new order, a status change, or a replay."""
        roll = self.rng.random()

        if self._last_event is not None and roll < REPLAY_PROBABILITY:
            event = dict(self._last_event)
        elif not self.open_orders or roll < REPLAY_PROBABILITY + NEW_ORDER_PROBABILITY:
            event = self.generate_order()
        else:
            order_id = self.rng.choice(sorted(self.open_orders))
            event = self.advance(self.open_orders[order_id])

        self._last_event = event
        return event

    def generate_events(self, count: int) -> List[Dict[str, Any]]:
        """``count`` consecutive events."""
        return [self.next_event() for _ in range(count)]
