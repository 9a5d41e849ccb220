"""
Presence & Admin Console Models

Read-time aggregates for the polling surfaces. Nothing here is persisted;
every value is recomputed from the source tables on each call.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from mechanic_chat.domain.chat import MessageView, SessionPreview
from mechanic_chat.domain.users import UserView


def online_cutoff(now: datetime, stale_seconds: int) -> datetime:
    """Oldest ``last_seen`` that still counts as online."""
    return now - timedelta(seconds=stale_seconds)


class LiveCounters(BaseModel):
    """Admin live-data counters."""
    unread_count: int
    active_session_count: int
    online_user_count: int
    as_of: datetime


class DashboardStats(BaseModel):
    total_users: int
    subscribed_users: int
    online_users: int
    active_chats: int
    unread_messages: int
    total_messages: int
    total_revenue: Decimal = Decimal("0.00")


class DashboardResponse(BaseModel):
    """Aggregate stats plus sanitised lists for the admin console."""
    stats: DashboardStats
    users: List[UserView] = Field(default_factory=list)
    active_sessions: List[SessionPreview] = Field(default_factory=list)
    recent_messages: List[MessageView] = Field(default_factory=list)
