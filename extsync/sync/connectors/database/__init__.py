"""
Database Row Stores.
"""

from extsync.sync.connectors.database.sqlalchemy_store import SQLAlchemyStore

__all__ = [
    "SQLAlchemyStore",
]
