"""
Subscription Domain Models

Enums, DTOs and the entitlement predicate for the subscription ledger.
The predicate is always evaluated over ledger rows, never over the
``User.has_subscription`` display cache.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# =============================================================================
# Domain Entities
# =============================================================================

class Subscription(BaseModel):
    """Core subscription domain entity."""
    id: UUID
    user_id: UUID
    amount: Decimal
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    payment_id: Optional[str] = None
    purchased_at: datetime
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CreateSubscriptionRequest(BaseModel):
    """
    Request DTO for activating access after checkout.

    Any user id the client might send is ignored; the owner is always the
    authenticated caller.
    """
    amount: Decimal = Field(..., gt=0, description="Amount paid")
    payment_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Processor payment reference to verify",
    )


class GrantSubscriptionRequest(BaseModel):
    """Admin-only manual grant."""
    user_id: UUID
    amount: Decimal = Field(default=Decimal("0.00"), ge=0)


class SubscriptionStatusResponse(BaseModel):
    """Response DTO for the caller's derived entitlement."""
    has_active_subscription: bool
    expires_at: Optional[datetime] = None
    days_remaining: int = 0


# =============================================================================
# Business Logic
# =============================================================================

def compute_expiry(purchased_at: datetime, days: int) -> datetime:
    """Expiry is fixed at creation: purchase time plus the access period."""
    return purchased_at + timedelta(days=days)


def is_active_at(status: str, expires_at: Optional[datetime], now: datetime) -> bool:
    """Whether a single ledger row grants access at ``now``."""
    return (
        status == SubscriptionStatus.ACTIVE.value
        and expires_at is not None
        and expires_at > now
    )


def active_until(subscriptions: Iterable, now: datetime) -> Optional[datetime]:
    """Latest expiry among rows active at ``now``, or None if there are none."""
    expiries = [
        s.expires_at
        for s in subscriptions
        if is_active_at(_status_value(s.status), s.expires_at, now)
    ]
    return max(expiries) if expiries else None


def has_active_subscription(subscriptions: Iterable, now: datetime) -> bool:
    """True iff at least one row is active and unexpired at ``now``."""
    return active_until(subscriptions, now) is not None


def days_remaining(expires_at: Optional[datetime], now: datetime) -> int:
    """Whole days of access left, rounded up. 0 when there is no access."""
    if expires_at is None or expires_at <= now:
        return 0
    return math.ceil((expires_at - now).total_seconds() / 86400)


def _status_value(status) -> str:
    return status.value if isinstance(status, Enum) else status
