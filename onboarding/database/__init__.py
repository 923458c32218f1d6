"""
Database Package

Engine lifecycle and the declarative base for the onboarding service.
"""

from onboarding.database.base import Base, ModelBase, metadata
from onboarding.database.init_db import (
    initialize_database,
    close_database,
    create_schema,
    get_engine,
    get_session_factory,
)

__all__ = [
    'Base',
    'ModelBase',
    'metadata',
    'initialize_database',
    'close_database',
    'create_schema',
    'get_engine',
    'get_session_factory',
]
