"""
User and AuthSession SQLModels for Mechanic Chat

Identity records and the server-side auth sessions that map an opaque
cookie token to a user.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from mechanic_chat.infrastructure.db.models.base import UUIDMixin, utcnow


class User(UUIDMixin, table=True):
    """
    User database table model.

    ``has_subscription`` and ``is_online`` are display caches. Authorization
    never reads them.
    """

    __tablename__ = "users"

    username: str = Field(
        ...,
        sa_column=Column(String(20), unique=True, nullable=False, index=True),
        description="Public handle, unique"
    )
    email: str = Field(
        ...,
        sa_column=Column(String(255), unique=True, nullable=False, index=True),
        description="Lower-cased login e-mail, unique"
    )
    password_hash: str = Field(
        ...,
        sa_column=Column(String(255), nullable=False),
        description="passlib hash string"
    )

    is_admin: bool = Field(default=False, nullable=False)
    has_subscription: bool = Field(default=False, nullable=False)
    is_online: bool = Field(default=False, nullable=False)

    last_seen: datetime = Field(default_factory=utcnow, nullable=False)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)


class AuthSession(SQLModel, table=True):
    """
    Server-side auth session.

    The cookie carries only ``token``; user and admin sessions share the
    table but are told apart by ``is_admin``.
    """

    __tablename__ = "auth_sessions"

    token: str = Field(
        ...,
        sa_column=Column(String(128), primary_key=True),
        description="Opaque random token stored in the cookie"
    )
    user_id: UUID = Field(..., foreign_key="users.id", index=True, nullable=False)
    is_admin: bool = Field(default=False, nullable=False)

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    expires_at: datetime = Field(..., nullable=False, index=True)
