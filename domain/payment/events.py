"""
Payment domain events.

Dataclass events record the terminal outcome of a payment attempt (the barcode
flow reports through them). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
import uuid


@dataclass
class PaymentEvent:
    order_id: str
    provider: str
    provider_ref: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Provider payload the outcome was decided from (e.g. the last Notify)
    payload: Any = None


@dataclass
class PaymentSucceeded(PaymentEvent):
    pass


@dataclass
class PaymentFailed(PaymentEvent):
    reason: Optional[str] = None


@dataclass
class PaymentCanceled(PaymentEvent):
    pass
