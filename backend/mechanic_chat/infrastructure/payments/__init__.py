"""
Payments Infrastructure Module

Server-side payment verification with Stripe.
"""

from mechanic_chat.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    VerifiedPayment,
    get_stripe_service,
)

__all__ = [
    "StripeService",
    "StripeServiceError",
    "VerifiedPayment",
    "get_stripe_service",
]
