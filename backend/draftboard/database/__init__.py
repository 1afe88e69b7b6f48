"""
Database module initialization.
Exports database components for use throughout the application.
"""

from draftboard.database.base import Base
from draftboard.database.session import (
    check_db_connection,
    create_engine,
    create_session_factory,
    init_models,
    session_scope,
)

__all__ = [
    "Base",
    "check_db_connection",
    "create_engine",
    "create_session_factory",
    "init_models",
    "session_scope",
]
