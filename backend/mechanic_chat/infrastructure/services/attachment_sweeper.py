"""
Attachment Sweeper

Background loop that runs the expiry sweep at startup and then on a fixed
interval. Each run also purges expired auth sessions. Started and
cancelled by the application lifespan.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from mechanic_chat.infrastructure.db.database import get_session_context
from mechanic_chat.infrastructure.services.attachment_service import (
    AttachmentService,
    SweepResult,
)
from mechanic_chat.infrastructure.services.auth_service import AuthService


logger = logging.getLogger(__name__)


async def run_sweep_once(now: Optional[datetime] = None) -> SweepResult:
    """One sweep in its own database session."""
    async with get_session_context() as session:
        result = await AttachmentService(session).sweep_expired(now)
        await AuthService(session).purge_expired_sessions(now)
        return result


async def sweep_forever(interval_seconds: float) -> None:
    """
    Sweep now, then every ``interval_seconds`` until cancelled.

    A failed run is logged and retried on the next tick.
    """
    logger.info(f"Attachment sweeper started (interval={interval_seconds}s)")
    while True:
        try:
            await run_sweep_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Attachment sweep run failed: {e}", exc_info=True)
        await asyncio.sleep(interval_seconds)


def start_sweeper(interval_seconds: float) -> asyncio.Task:
    return asyncio.create_task(sweep_forever(interval_seconds), name="attachment-sweeper")


async def stop_sweeper(task: Optional[asyncio.Task]) -> None:
    """Cancel the loop and wait for it to unwind."""
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    logger.info("Attachment sweeper stopped")
