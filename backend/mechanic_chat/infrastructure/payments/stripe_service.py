"""
Stripe Payment Service

Infrastructure service that independently verifies a payment reference
with Stripe before any access is granted. The client never asserts
"I paid"; it only hands over the PaymentIntent id it received at checkout.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import stripe
from stripe import StripeError

from mechanic_chat.config.settings import get_settings


logger = logging.getLogger(__name__)


class StripeServiceError(Exception):
    """Base exception for Stripe service errors."""
    pass


@dataclass(frozen=True)
class VerifiedPayment:
    """A payment confirmed by the processor."""
    payment_id: str
    amount: Decimal
    currency: str


def to_minor_units(amount: Decimal) -> int:
    """Decimal price in major units to Stripe's integer cents."""
    return int((amount * 100).quantize(Decimal("1")))


class StripeService:
    """
    Stripe payment verification service.

    Stripe's Python client is synchronous, so every call runs in a worker
    thread and is bounded by ``payment_verification_timeout_seconds``.
    """

    SUCCEEDED = "succeeded"

    def __init__(self):
        """Initialize Stripe with API key from settings."""
        settings = get_settings()
        self._api_key = settings.stripe_secret_key
        self._timeout = settings.payment_verification_timeout_seconds
        self._currency = settings.subscription_currency.lower()

        if self._api_key:
            stripe.api_key = self._api_key

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def verify_payment(
        self,
        payment_id: str,
        expected_amount: Decimal,
    ) -> VerifiedPayment:
        """
        Confirm that ``payment_id`` is a succeeded PaymentIntent for the
        expected amount and currency.

        Args:
            payment_id: Stripe PaymentIntent id
            expected_amount: Price in major units

        Returns:
            VerifiedPayment

        Raises:
            StripeServiceError: Not configured, unreachable, timed out, or the
                intent does not match
        """
        if not self.is_configured:
            raise StripeServiceError("Stripe is not configured")

        try:
            intent = await asyncio.wait_for(
                asyncio.to_thread(stripe.PaymentIntent.retrieve, payment_id),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Stripe verification timed out for {payment_id}")
            raise StripeServiceError("Payment verification timed out")
        except StripeError as e:
            logger.error(f"Failed to retrieve payment intent {payment_id}: {e}")
            raise StripeServiceError(f"Failed to verify payment: {e}")

        status = getattr(intent, "status", None)
        if status != self.SUCCEEDED:
            raise StripeServiceError(f"Payment is not complete (status: {status})")

        received = getattr(intent, "amount_received", None) or 0
        if received != to_minor_units(expected_amount):
            raise StripeServiceError(
                f"Payment amount mismatch: received {received}, "
                f"expected {to_minor_units(expected_amount)}"
            )

        currency = (getattr(intent, "currency", None) or "").lower()
        if currency != self._currency:
            raise StripeServiceError(f"Unexpected payment currency: {currency}")

        logger.info(f"Verified payment {payment_id}")
        return VerifiedPayment(
            payment_id=payment_id,
            amount=expected_amount,
            currency=currency,
        )


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_stripe_service_instance: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service singleton."""
    global _stripe_service_instance

    if _stripe_service_instance is None:
        _stripe_service_instance = StripeService()

    return _stripe_service_instance
