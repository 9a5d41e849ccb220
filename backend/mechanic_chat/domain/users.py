"""
User Domain Models

Registration/login DTOs and the public projection of a user. The password
hash never appears in any model defined here.
"""

import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"


def password_policy_error(password: str) -> Optional[str]:
    """
    Return an error string if the password does not meet the minimum policy,
    or None if it is acceptable.

    Policy: >= 8 chars, at least one uppercase, one lowercase, one digit.
    """
    if len(password) < 8:
        return "Password must be at least 8 characters long"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain at least one number"
    return None


class RegisterRequest(BaseModel):
    """Request DTO for account registration."""
    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., max_length=128)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        error = password_policy_error(value)
        if error:
            raise ValueError(error)
        return value


class LoginRequest(BaseModel):
    """Request DTO for user and admin login."""
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class UserView(BaseModel):
    """Public projection of a user record."""
    id: UUID
    username: str
    email: str
    is_admin: bool
    has_subscription: bool
    is_online: bool
    last_seen: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MeResponse(BaseModel):
    """Identity plus derived entitlement for the current user."""
    user: UserView
    has_active_subscription: bool
    subscription_expires_at: Optional[datetime] = None
    days_remaining: int = 0
