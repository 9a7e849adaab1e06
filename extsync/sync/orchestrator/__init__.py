"""
Sync Orchestrator Module.

Provides the replication engine coordinating reader, writer and status
reporter over the table catalog.
"""

from .sync_orchestrator import SyncOrchestrator

__all__ = [
    "SyncOrchestrator",
]
