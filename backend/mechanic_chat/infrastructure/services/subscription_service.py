"""
Subscription Service

Business rules for the subscription ledger: verified purchases, manual
admin grants and the per-request entitlement check.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.config.settings import get_settings
from mechanic_chat.domain.access import authorize_active_subscriber, authorize_admin
from mechanic_chat.domain.subscription import (
    CreateSubscriptionRequest,
    GrantSubscriptionRequest,
    Subscription,
    SubscriptionStatusResponse,
    active_until,
    compute_expiry,
    days_remaining,
)
from mechanic_chat.infrastructure.db.models.base import utcnow
from mechanic_chat.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from mechanic_chat.infrastructure.db.repositories.user_repository import UserRepository
from mechanic_chat.infrastructure.exceptions import (
    ConflictError,
    NotFoundError,
    PaymentVerificationError,
    ValidationError,
)
from mechanic_chat.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    get_stripe_service,
)


logger = logging.getLogger(__name__)


class SubscriptionService:
    """
    Service for subscription business logic.

    Entitlement is always derived from ledger rows read in the current
    request; ``User.has_subscription`` is only refreshed for display.
    """

    def __init__(
        self,
        session: AsyncSession,
        stripe_service: Optional[StripeService] = None,
    ):
        self._repository = SubscriptionRepository(session)
        self._users = UserRepository(session)
        self._stripe = stripe_service or get_stripe_service()
        self._settings = get_settings()

    # =========================================================================
    # Entitlement
    # =========================================================================

    async def require_active(self, user, now: Optional[datetime] = None):
        """
        Gate a request on an active subscription.

        Raises:
            SubscriptionRequiredError: No active, unexpired ledger row
        """
        now = now or utcnow()
        if user.is_admin:
            return user
        subscriptions = await self._repository.list_active_for_user(user.id, now)
        return authorize_active_subscriber(user, subscriptions, now)

    async def get_status(self, user, now: Optional[datetime] = None) -> SubscriptionStatusResponse:
        now = now or utcnow()
        subscriptions = await self._repository.list_for_user(user.id)
        expires_at = active_until(subscriptions, now)
        return SubscriptionStatusResponse(
            has_active_subscription=expires_at is not None,
            expires_at=expires_at,
            days_remaining=days_remaining(expires_at, now),
        )

    async def list_for_user(self, user) -> List[Subscription]:
        return await self._repository.list_for_user(user.id)

    # =========================================================================
    # Purchases
    # =========================================================================

    async def create_subscription(
        self,
        user,
        request: CreateSubscriptionRequest,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """
        Record a purchase after verifying it with the payment processor.

        The owner is always ``user``; the expiry is computed here.

        Raises:
            ValidationError: Amount differs from the configured price
            ConflictError: The payment id already backs a subscription
            PaymentVerificationError: The processor did not confirm the payment
        """
        price = self._settings.subscription_price
        if Decimal(request.amount) != price:
            raise ValidationError(
                f"Amount must be {price}",
                field="amount",
                constraint=f"equals {price}",
            )

        if await self._repository.get_by_payment_id(request.payment_id):
            raise ConflictError(
                "Payment has already been used",
                operation="create_subscription",
                table="subscriptions",
            )

        try:
            await self._stripe.verify_payment(request.payment_id, price)
        except StripeServiceError as e:
            logger.warning(f"Payment verification failed for user {user.id}: {e}")
            raise PaymentVerificationError(payment_id=request.payment_id, original_error=e)

        return await self._record(user.id, price, request.payment_id, now)

    async def grant(
        self,
        admin,
        request: GrantSubscriptionRequest,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """
        Manual admin grant, without processor verification.

        Raises:
            ForbiddenError: Caller is not an admin
            NotFoundError: Target user does not exist
        """
        authorize_admin(admin)
        target = await self._users.get_by_id(request.user_id)
        if target is None or target.is_admin:
            raise NotFoundError("User not found", table="users")

        subscription = await self._record(target.id, request.amount, None, now)
        logger.info(f"Admin {admin.id} granted subscription {subscription.id} to {target.id}")
        return subscription

    async def _record(
        self,
        user_id,
        amount: Decimal,
        payment_id: Optional[str],
        now: Optional[datetime],
    ) -> Subscription:
        purchased_at = now or utcnow()
        subscription = await self._repository.create(
            user_id=user_id,
            amount=amount,
            purchased_at=purchased_at,
            expires_at=compute_expiry(purchased_at, self._settings.subscription_days),
            payment_id=payment_id,
        )
        await self._users.set_subscription_flag(user_id, True)
        return subscription
