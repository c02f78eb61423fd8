from .export import ChangeLogExporter
from .json_adapter import DirectorySnapshotSource, JsonSnapshotAdapter

__all__ = [
    "JsonSnapshotAdapter",
    "DirectorySnapshotSource",
    "ChangeLogExporter",
]
