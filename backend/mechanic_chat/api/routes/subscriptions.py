"""
Subscription API Routes

Purchase (after server-side payment verification) and listing of the
caller's ledger rows.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from mechanic_chat.api.dependencies import get_current_user, get_subscription_service
from mechanic_chat.domain.subscription import (
    CreateSubscriptionRequest,
    Subscription,
    SubscriptionStatusResponse,
)
from mechanic_chat.infrastructure.db.models.user import User
from mechanic_chat.infrastructure.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/subscriptions",
    response_model=Subscription,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    body: CreateSubscriptionRequest,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Activate 30 days of access.

    The payment id is verified with the processor before anything is
    written. The owner is always the caller.
    """
    return await service.create_subscription(user, body)


@router.get("/subscriptions", response_model=List[Subscription])
async def list_subscriptions(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.list_for_user(user)


@router.get("/subscriptions/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Derived entitlement for the caller."""
    return await service.get_status(user)
