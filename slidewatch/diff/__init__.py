"""Snapshot comparison and change classification."""

from .snapshot_diff import (
    compare,
    diff_slide,
    diff_element,
    structurally_equal,
    changed_keys,
    DifferenceKind,
    RawDifference,
)

from .change_events import (
    # Classification
    classify,
    classify_all,
    resolve_change_type,
    summarize_changes,
    records_by_type,
    records_by_severity,
    records_by_scope,
    # Enums
    ChangeType,
    Scope,
    Severity,
    DetectionMethod,
    CLASSIFICATION_TABLE,
    # Data classes
    ChangeRecord,
)

__all__ = [
    # Structural comparison
    "compare",
    "diff_slide",
    "diff_element",
    "structurally_equal",
    "changed_keys",
    "DifferenceKind",
    "RawDifference",
    # Classification
    "classify",
    "classify_all",
    "resolve_change_type",
    "summarize_changes",
    "records_by_type",
    "records_by_severity",
    "records_by_scope",
    "ChangeType",
    "Scope",
    "Severity",
    "DetectionMethod",
    "CLASSIFICATION_TABLE",
    "ChangeRecord",
]
