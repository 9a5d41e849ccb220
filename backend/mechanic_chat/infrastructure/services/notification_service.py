"""
Staff Notification Service

Sends the "first message in a session" e-mail to staff through Resend.
Delivery is fire-and-forget: every failure is logged and swallowed so the
chat send that triggered it is never affected.
"""

import asyncio
import html
import logging
from typing import Optional

import resend

from mechanic_chat.config.settings import get_settings
from mechanic_chat.infrastructure.db.models.base import utcnow


logger = logging.getLogger(__name__)


class NotificationService:
    """Outbound staff e-mail, bounded by ``notification_timeout_seconds``."""

    def __init__(self):
        settings = get_settings()
        self._api_key = settings.resend_api_key
        self._sender = settings.notification_from_email
        self._recipient = settings.notification_to_email
        self._timeout = settings.notification_timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._recipient)

    async def notify_first_message(
        self,
        username: str,
        email: str,
        content: str,
        session_id: str,
    ) -> bool:
        """
        Tell staff a user opened a conversation.

        Returns:
            True if the e-mail was handed to Resend, False otherwise
        """
        if not self.is_configured:
            logger.info("Skipping first-message notification: Resend not configured")
            return False

        html_body = f"""
        <div style="font-family: Arial, sans-serif; padding: 20px;">
            <h2>User Started First Chat</h2>
            <p><strong>{html.escape(username)}</strong> ({html.escape(email)}) has sent their first message:</p>
            <div style="background-color: #f3f4f6; padding: 15px; border-radius: 8px; margin: 15px 0;">
                <p style="margin: 0;">{html.escape(content)}</p>
            </div>
            <p><strong>Session ID:</strong> {html.escape(session_id)}</p>
            <p><strong>Time:</strong> {utcnow().strftime('%Y-%m-%d %H:%M:%S')} UTC</p>
        </div>
        """

        try:
            resend.api_key = self._api_key
            await asyncio.wait_for(
                asyncio.to_thread(
                    resend.Emails.send,
                    {
                        "from": self._sender,
                        "to": self._recipient,
                        "subject": f"First Chat Message - {username}",
                        "html": html_body,
                    },
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"First-message notification timed out for session {session_id}")
            return False
        except Exception as e:
            logger.warning(f"Failed to send first-message notification for session {session_id}: {e}")
            return False

        logger.info(f"First-message notification sent for session {session_id}")
        return True


_notification_service_instance: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create the notifier singleton."""
    global _notification_service_instance

    if _notification_service_instance is None:
        _notification_service_instance = NotificationService()

    return _notification_service_instance
