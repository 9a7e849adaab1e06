"""
Row Store Connectors Module.

Provides row stores for PostgREST/Supabase endpoints, SQLAlchemy
databases and process memory. Importing this package registers every
backend with StoreFactory.
"""

from extsync.sync.connectors.base import (
    ConnectionStatus,
    RowStore,
    StoreConfig,
    StoreFactory,
)
from extsync.sync.connectors.api.postgrest import PostgRESTStore
from extsync.sync.connectors.database.sqlalchemy_store import SQLAlchemyStore
from extsync.sync.connectors.memory import MemoryStore

__all__ = [
    "ConnectionStatus",
    "RowStore",
    "StoreConfig",
    "StoreFactory",
    "PostgRESTStore",
    "SQLAlchemyStore",
    "MemoryStore",
]
