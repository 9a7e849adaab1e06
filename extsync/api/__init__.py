"""
API endpoints module for the External Sync Service.
"""

from .sync_external import router as sync_external_router

__all__ = ['sync_external_router']
