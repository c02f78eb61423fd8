"""Polling cycle orchestration."""

from .locks import KeyedLock
from .orchestrator import DiffOrchestrator, SnapshotSource

__all__ = [
    "DiffOrchestrator",
    "SnapshotSource",
    "KeyedLock",
]
