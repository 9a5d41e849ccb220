"""
Dependency Injection Providers for Mechanic Chat

Provides the FastAPI dependency for request-scoped database sessions.
Every service built for a request shares the one session yielded here, so
the whole request commits or rolls back together.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.infrastructure.db.database import get_session


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]
