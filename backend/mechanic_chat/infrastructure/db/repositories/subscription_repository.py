"""
Subscription Repository

Data access layer for the subscription ledger. Rows are only ever
inserted; entitlement is derived from them on every request.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.domain.subscription import Subscription, SubscriptionStatus
from mechanic_chat.infrastructure.db.models.subscription import SubscriptionModel
from mechanic_chat.infrastructure.exceptions import ConflictError


logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """
    Repository for subscription data access.

    Returns domain models; the ORM rows never leave this class.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def list_for_user(self, user_id: UUID) -> List[Subscription]:
        """
        All ledger rows for a user, newest purchase first.

        Args:
            user_id: Owning user

        Returns:
            List of Subscription domain models
        """
        stmt = (
            select(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .order_by(SubscriptionModel.purchased_at.desc())
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_active_for_user(
        self,
        user_id: UUID,
        now: datetime,
    ) -> List[Subscription]:
        """Rows that grant access at ``now``."""
        stmt = (
            select(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .where(SubscriptionModel.status == SubscriptionStatus.ACTIVE.value)
            .where(SubscriptionModel.expires_at > now)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def get_by_payment_id(self, payment_id: str) -> Optional[Subscription]:
        stmt = select(SubscriptionModel).where(
            SubscriptionModel.payment_id == payment_id
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def count_active_subscribers(self, now: datetime) -> int:
        """Distinct users holding at least one row active at ``now``."""
        stmt = (
            select(func.count(func.distinct(SubscriptionModel.user_id)))
            .where(SubscriptionModel.status == SubscriptionStatus.ACTIVE.value)
            .where(SubscriptionModel.expires_at > now)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def total_revenue(self) -> Decimal:
        stmt = select(func.coalesce(func.sum(SubscriptionModel.amount), 0))
        result = await self._session.execute(stmt)
        return Decimal(str(result.scalar_one()))

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def create(
        self,
        user_id: UUID,
        amount: Decimal,
        purchased_at: datetime,
        expires_at: datetime,
        payment_id: Optional[str] = None,
    ) -> Subscription:
        """
        Insert a new active ledger row.

        Raises:
            ConflictError: If ``payment_id`` already backs a subscription
        """
        model = SubscriptionModel(
            user_id=user_id,
            amount=amount,
            status=SubscriptionStatus.ACTIVE.value,
            payment_id=payment_id,
            purchased_at=purchased_at,
            expires_at=expires_at,
        )
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ConflictError(
                "Payment has already been used",
                operation="insert",
                table="subscriptions",
                original_error=e,
            )

        await self._session.refresh(model)
        logger.info(f"Created subscription {model.id} for user {model.user_id}")
        return self._to_domain(model)

    # =========================================================================
    # Mappers
    # =========================================================================

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain model."""
        return Subscription(
            id=model.id,
            user_id=model.user_id,
            amount=model.amount,
            status=SubscriptionStatus(model.status),
            payment_id=model.payment_id,
            purchased_at=model.purchased_at,
            expires_at=model.expires_at,
        )
