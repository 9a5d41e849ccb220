"""
Access Control Gate

The single authorization chokepoint for chat and attachment operations.
Every check is a pure predicate over already-loaded state; callers compose
them in sequence and the first failure short-circuits by raising.
"""

from datetime import datetime
from typing import Iterable, Optional

from mechanic_chat.domain.subscription import has_active_subscription
from mechanic_chat.infrastructure.exceptions import (
    ForbiddenError,
    NotFoundError,
    SubscriptionRequiredError,
    UnauthenticatedError,
)


def authenticate(user):
    """
    Return the user resolved from the server-side auth session.

    ``user`` is None when the request carried no valid token.
    """
    if user is None:
        raise UnauthenticatedError()
    return user


def authorize_active_subscriber(user, subscriptions: Iterable, now: datetime):
    """
    Require an active, unexpired subscription.

    ``subscriptions`` must be freshly read from the ledger for this request.
    Admins are never subscription-gated. ``user.has_subscription`` is
    deliberately not consulted.
    """
    if user.is_admin:
        return user
    if not has_active_subscription(subscriptions, now):
        raise SubscriptionRequiredError()
    return user


def authorize_session_ownership(user, session, hide_existence: bool = True):
    """
    Require that ``user`` owns ``session`` or is an admin.

    With ``hide_existence`` a foreign session is reported exactly like a
    missing one, so callers cannot probe other users' session ids.
    """
    if session is None:
        raise NotFoundError("Chat session not found", table="chat_sessions")
    if user.is_admin or session.user_id == user.id:
        return session
    if hide_existence:
        raise NotFoundError("Chat session not found", table="chat_sessions")
    raise ForbiddenError()


def authorize_admin(user: Optional[object]):
    """Require an administrator."""
    if user is None or not getattr(user, "is_admin", False):
        raise ForbiddenError("Admin access required")
    return user
