"""Previous-snapshot store and bounded change log."""

from .base import ChangeLogStore, MonitoringState, SnapshotStore, StateStore
from .memory_store import InMemoryStateStore
from .postgres_client import PostgresStateStore

__all__ = [
    "MonitoringState",
    "SnapshotStore",
    "ChangeLogStore",
    "StateStore",
    "InMemoryStateStore",
    "PostgresStateStore",
]
