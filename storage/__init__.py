"""
Storage Package.

Persistence for the news store.

Modules:
- database: engine, sessions, initialization
- models/: ORM models
- repositories/: data access layer
"""

from storage.database import (
    DatabaseInitializationError,
    DatabasePersistenceError,
    create_all_tables,
    create_database_engine,
    get_database_url,
    get_db_session,
    get_engine,
    get_session_factory,
    initialize_database,
    reset_engine,
    transaction_scope,
)


__all__ = [
    "create_database_engine",
    "create_all_tables",
    "get_database_url",
    "get_db_session",
    "get_engine",
    "get_session_factory",
    "initialize_database",
    "reset_engine",
    "transaction_scope",
    "DatabasePersistenceError",
    "DatabaseInitializationError",
]
