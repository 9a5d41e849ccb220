"""
Application Settings for Mechanic Chat

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MIB = 1024 * 1024


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Only the database URL has a meaningful production value to set; every
    other setting has a development-friendly default.
    """

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    allowed_origins: list[str] = [
        "http://localhost:5000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Database Configuration (SQLModel/SQLAlchemy)
    database_url: str = "sqlite+aiosqlite:///./mechanic_chat.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    # Auth sessions (opaque server-side tokens carried in httpOnly cookies)
    session_cookie_name: str = "chatwithmechanic.sid"
    admin_session_cookie_name: str = "chatwithmechanic.admin.sid"
    session_ttl_hours: int = 24
    session_cookie_secure: Optional[bool] = None

    # Administrator bootstrap. Inert once the admin row exists.
    admin_email: str = ""
    admin_username: str = "admin"
    admin_password: str = ""

    # Subscription pricing
    subscription_days: int = 30
    subscription_price: Decimal = Decimal("9.99")
    subscription_currency: str = "usd"

    # Stripe payment verification
    stripe_secret_key: Optional[str] = None
    payment_verification_timeout_seconds: float = 10.0

    # Attachments
    upload_dir: str = "./uploads"
    attachment_ttl_days: int = 30
    max_image_bytes: int = 30 * MIB
    max_video_bytes: int = 150 * MIB
    attachment_sweep_enabled: bool = True
    attachment_sweep_interval_seconds: int = 24 * 60 * 60

    # Staff notifications (Resend)
    resend_api_key: Optional[str] = None
    notification_from_email: str = "Chat With Mechanic <notifications@chatwithmechanic.com>"
    notification_to_email: Optional[str] = None
    notification_timeout_seconds: float = 10.0

    # Presence
    presence_stale_seconds: int = 90

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def normalize(self) -> "Settings":
        """Derive dependent values and normalize the database URL."""
        if self.session_cookie_secure is None:
            self.session_cookie_secure = self.is_production

        if self.database_url.startswith("postgresql://"):
            self.database_url = self.database_url.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )
        elif self.database_url.startswith("postgres://"):
            self.database_url = self.database_url.replace(
                "postgres://", "postgresql+asyncpg://", 1
            )

        self.admin_email = self.admin_email.strip().lower()
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
