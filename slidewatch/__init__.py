from .snapshot import PresentationSnapshot, SlideSnapshot, ElementSnapshot, snapshot_from_dict, snapshot_to_dict
from .diff import compare, classify, classify_all, summarize_changes, ChangeRecord, ChangeType, Scope, Severity
from .store import InMemoryStateStore, PostgresStateStore, MonitoringState, StateStore
from .monitor import DiffOrchestrator, SnapshotSource
from .config import DEFAULT_MAX_CHANGES, Settings, load_settings, configure_logging
from .errors import (
    SlideWatchError,
    SnapshotValidationError,
    NotInitializedError,
    StoreUnavailableError,
    CaptureError,
    CycleBusyError,
)

__all__ = [
    "PresentationSnapshot", "SlideSnapshot", "ElementSnapshot", "snapshot_from_dict", "snapshot_to_dict",
    "compare", "classify", "classify_all", "summarize_changes",
    "ChangeRecord", "ChangeType", "Scope", "Severity",
    "InMemoryStateStore", "PostgresStateStore", "MonitoringState", "StateStore",
    "DiffOrchestrator", "SnapshotSource",
    "DEFAULT_MAX_CHANGES", "Settings", "load_settings", "configure_logging",
    "SlideWatchError", "SnapshotValidationError", "NotInitializedError",
    "StoreUnavailableError", "CaptureError", "CycleBusyError",
]
