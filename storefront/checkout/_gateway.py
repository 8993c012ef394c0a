"""
Payment collaborator interface and the callback event it delivers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from storefront.order._types import Order


class PaymentGateway(Protocol):
    """Opens a hosted payment session for an order."""

    async def create_session(self, order: Order) -> str:
        """Redirect URL for the shopper. Raises on gateway failure."""
        ...


class PaymentOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PaymentEvent:
    """
    Gateway callback.

    event_id is the gateway's delivery id; redeliveries reuse it.
    """

    event_id: str
    tracking_id: str
    outcome: PaymentOutcome
    payment_method: str | None = None


__all__ = (
    "PaymentGateway",
    "PaymentOutcome",
    "PaymentEvent",
)
