"""
HTTP API Row Stores.
"""

from extsync.sync.connectors.api.postgrest import PostgRESTStore

__all__ = [
    "PostgRESTStore",
]
