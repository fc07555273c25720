"""Database connection module for blogapi."""

from blogapi.core.database.postgres import (
    check_database,
    create_engine,
    create_session_factory,
    init_database,
    shutdown_database,
)


__all__ = [
    "check_database",
    "create_engine",
    "create_session_factory",
    "init_database",
    "shutdown_database",
]
