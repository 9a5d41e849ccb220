"""
Database Infrastructure Package for Mechanic Chat

Exports database utilities and the session dependency.
"""

from mechanic_chat.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    get_session_context,
    init_db,
    close_db,
)

from mechanic_chat.infrastructure.db.dependencies import SessionDep


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
]
