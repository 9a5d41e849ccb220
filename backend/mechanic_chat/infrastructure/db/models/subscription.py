"""
Subscription Database Model

SQLModel table for the time-boxed access grants.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, Numeric, String
from sqlmodel import Field

from mechanic_chat.infrastructure.db.models.base import UUIDMixin, utcnow


class SubscriptionModel(UUIDMixin, table=True):
    """
    Subscription table.

    A user may hold many rows; renewal inserts a new row rather than
    extending an old one.
    """

    __tablename__ = "subscriptions"

    user_id: UUID = Field(..., foreign_key="users.id", index=True, nullable=False)

    amount: Decimal = Field(
        ...,
        sa_column=Column(Numeric(10, 2), nullable=False),
    )
    status: str = Field(default="active", max_length=20, index=True)

    # Verified processor reference. NULL for manual admin grants.
    payment_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), unique=True, nullable=True),
    )

    purchased_at: datetime = Field(default_factory=utcnow, nullable=False)
    expires_at: datetime = Field(..., nullable=False, index=True)
