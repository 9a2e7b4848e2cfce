"""Configuration module for flusio.

Provides the application settings and the database session management.
"""

from .settings import Settings, settings
from .database import (
    Base,
    SessionLocal,
    configure_database,
    get_engine,
    create_schema,
    check_connection,
    session_scope,
    get_db
)

__all__ = [
    'Settings',
    'settings',
    'Base',
    'SessionLocal',
    'configure_database',
    'get_engine',
    'create_schema',
    'check_connection',
    'session_scope',
    'get_db'
]
