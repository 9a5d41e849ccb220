"""
Unit tests for Pydantic Settings configuration.

Tests defaults and the derived values computed at load time.
"""

from decimal import Decimal

from mechanic_chat.config.settings import MIB, Settings


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_has_defaults(self):
        """Settings should have development-friendly defaults."""
        s = Settings(_env_file=None)

        assert s.subscription_days == 30
        assert s.subscription_price == Decimal("9.99")
        assert s.attachment_ttl_days == 30
        assert s.max_image_bytes == 30 * MIB
        assert s.max_video_bytes == 150 * MIB
        assert s.session_cookie_name != s.admin_session_cookie_name

    def test_postgres_url_uses_asyncpg(self):
        s = Settings(_env_file=None, database_url="postgres://u:p@db:5432/chat")
        assert s.database_url == "postgresql+asyncpg://u:p@db:5432/chat"

        s = Settings(_env_file=None, database_url="postgresql://u:p@db/chat")
        assert s.database_url == "postgresql+asyncpg://u:p@db/chat"
        assert s.is_sqlite is False

    def test_sqlite_url_untouched(self):
        s = Settings(_env_file=None, database_url="sqlite+aiosqlite:///./x.db")
        assert s.database_url == "sqlite+aiosqlite:///./x.db"
        assert s.is_sqlite is True

    def test_cookie_secure_follows_environment(self):
        """Secure cookies default on in production only."""
        assert Settings(_env_file=None, environment="production").session_cookie_secure is True
        assert Settings(_env_file=None, environment="development").session_cookie_secure is False

    def test_explicit_cookie_secure_wins(self):
        s = Settings(_env_file=None, environment="production", session_cookie_secure=False)
        assert s.session_cookie_secure is False

    def test_admin_email_normalized(self):
        s = Settings(_env_file=None, admin_email="  Boss@Example.COM ")
        assert s.admin_email == "boss@example.com"

    def test_is_production_property(self):
        s = Settings(_env_file=None, environment="Production")
        assert s.is_production is True
        assert s.is_development is False
