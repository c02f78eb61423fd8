"""
Change classification for snapshot diffs.

ARCHITECTURE:
- snapshot_diff.py answers "what differs?" (RawDifference)
- this module answers "what kind of change is it, and how much does it matter?"
- interpretation ("why did the author do this?") is left to downstream consumers

Classification is a pure mapping. Scope and severity are fixed per change
type (see CLASSIFICATION_TABLE); nothing is computed from magnitudes. Every
record carries the old and new values of exactly the category that changed,
so consumers never need the snapshots themselves.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..snapshot.models import Position, SlideSnapshot
from ..snapshot.serialization import content_to_wire, element_to_dict, format_timestamp, parse_timestamp
from .snapshot_diff import DifferenceKind, RawDifference, changed_keys


# =============================================================================
# CHANGE TAXONOMY
# =============================================================================

class ChangeType(Enum):
    """Change types downstream consumers can rely on."""
    SLIDE_ADDED = "slide_added"
    SLIDE_REMOVED = "slide_removed"
    BACKGROUND_CHANGED = "background_changed"
    LAYOUT_CHANGED = "layout_changed"
    ELEMENT_ADDED = "element_added"
    ELEMENT_REMOVED = "element_removed"
    ELEMENT_MOVED = "element_moved"
    ELEMENT_RESIZED = "element_resized"
    TEXT_CONTENT_CHANGED = "text_content_changed"
    FORMATTING_CHANGED = "formatting_changed"
    PROPERTIES_CHANGED = "properties_changed"


class Scope(Enum):
    ELEMENT = "ELEMENT"
    SLIDE = "SLIDE"


class Severity(Enum):
    """
    Impact estimate of a change.

    Not an urgency: a HIGH change is one that alters the deck's structure or
    wording, a LOW one is unlikely to be noticed by an audience.
    """
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class DetectionMethod(Enum):
    POLLING = "POLLING"


# Fixed (scope, severity) per change type
CLASSIFICATION_TABLE: Dict[ChangeType, Tuple[Scope, Severity]] = {
    ChangeType.SLIDE_ADDED: (Scope.SLIDE, Severity.HIGH),
    ChangeType.SLIDE_REMOVED: (Scope.SLIDE, Severity.HIGH),
    ChangeType.BACKGROUND_CHANGED: (Scope.SLIDE, Severity.MEDIUM),
    ChangeType.LAYOUT_CHANGED: (Scope.SLIDE, Severity.HIGH),
    ChangeType.ELEMENT_ADDED: (Scope.ELEMENT, Severity.HIGH),
    ChangeType.ELEMENT_REMOVED: (Scope.ELEMENT, Severity.HIGH),
    ChangeType.ELEMENT_MOVED: (Scope.ELEMENT, Severity.MEDIUM),
    ChangeType.ELEMENT_RESIZED: (Scope.ELEMENT, Severity.MEDIUM),
    ChangeType.TEXT_CONTENT_CHANGED: (Scope.ELEMENT, Severity.HIGH),
    ChangeType.FORMATTING_CHANGED: (Scope.ELEMENT, Severity.MEDIUM),
    ChangeType.PROPERTIES_CHANGED: (Scope.ELEMENT, Severity.LOW),
}

# Polling diffs are deterministic
POLLING_CONFIDENCE = 1.0


# =============================================================================
# CHANGE RECORD (Output Type)
# =============================================================================

@dataclass(frozen=True)
class ChangeRecord:
    """
    A classified, persisted description of one detected difference.

    Created only by the classifier and never mutated afterwards. ``details``
    is the variant payload for ``change_type`` (camelCase keys, the schema
    dashboards and commentary services consume).
    """
    id: str
    detected_at: datetime
    slide_index: int
    change_type: ChangeType
    element_id: str
    element_type: str
    details: Dict[str, Any]
    scope: Scope
    severity: Severity
    detection_method: DetectionMethod = DetectionMethod.POLLING
    confidence: float = POLLING_CONFIDENCE
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "detectedAt": format_timestamp(self.detected_at),
            "slideIndex": self.slide_index,
            "changeType": self.change_type.value,
            "elementId": self.element_id,
            "elementType": self.element_type,
            "details": self.details,
            "scope": self.scope.value,
            "severity": self.severity.value,
            "detectionMethod": self.detection_method.value,
            "confidence": self.confidence,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeRecord":
        """Inverse of to_dict (used when reading records back from storage)."""
        return cls(
            id=data["id"],
            detected_at=parse_timestamp(data["detectedAt"]),
            slide_index=int(data["slideIndex"]),
            change_type=ChangeType(data["changeType"]),
            element_id=data["elementId"],
            element_type=data["elementType"],
            details=data.get("details") or {},
            scope=Scope(data["scope"]),
            severity=Severity(data["severity"]),
            detection_method=DetectionMethod(data.get("detectionMethod", "POLLING")),
            confidence=float(data.get("confidence", POLLING_CONFIDENCE)),
            summary=data.get("summary", ""),
        )


# =============================================================================
# CHANGE TYPE RESOLUTION
# =============================================================================

_DIRECT_TYPES = {
    DifferenceKind.SLIDE_ADDED: ChangeType.SLIDE_ADDED,
    DifferenceKind.SLIDE_REMOVED: ChangeType.SLIDE_REMOVED,
    DifferenceKind.BACKGROUND_CHANGED: ChangeType.BACKGROUND_CHANGED,
    DifferenceKind.LAYOUT_CHANGED: ChangeType.LAYOUT_CHANGED,
    DifferenceKind.ELEMENT_ADDED: ChangeType.ELEMENT_ADDED,
    DifferenceKind.ELEMENT_REMOVED: ChangeType.ELEMENT_REMOVED,
    DifferenceKind.CONTENT_CHANGED: ChangeType.TEXT_CONTENT_CHANGED,
    DifferenceKind.FORMATTING_CHANGED: ChangeType.FORMATTING_CHANGED,
    DifferenceKind.PROPERTIES_CHANGED: ChangeType.PROPERTIES_CHANGED,
}


def _is_resize(old: Position, new: Position) -> bool:
    return (
        old.width != new.width
        or old.height != new.height
        or old.scale_x != new.scale_x
        or old.scale_y != new.scale_y
    )


def resolve_change_type(diff: RawDifference) -> ChangeType:
    """
    Map a raw difference kind to its change type.

    A position difference is element_resized when the size or scale changed,
    element_moved when only x, y or rotation changed.
    """
    if diff.kind == DifferenceKind.POSITION_CHANGED:
        if _is_resize(diff.old_value, diff.new_value):
            return ChangeType.ELEMENT_RESIZED
        return ChangeType.ELEMENT_MOVED
    return _DIRECT_TYPES[diff.kind]


# =============================================================================
# DETAILS PAYLOADS
# =============================================================================

def _position_details(old: Position, new: Position) -> Dict[str, Any]:
    return {
        "position": {
            "oldPosition": old.to_dict(),
            "newPosition": new.to_dict(),
            "changes": {
                "xChange": new.x - old.x,
                "yChange": new.y - old.y,
                "widthChange": new.width - old.width,
                "heightChange": new.height - old.height,
                "rotationChange": new.rotation_degrees - old.rotation_degrees,
            },
        }
    }


def _content_details(old: Any, new: Any) -> Dict[str, Any]:
    content = {
        "oldValue": content_to_wire(old),
        "newValue": content_to_wire(new),
    }
    if isinstance(new, str):
        content["textRange"] = {"startIndex": 0, "endIndex": len(new)}
        content["contentLengthChange"] = len(new) - (len(old) if isinstance(old, str) else 0)
    return {"content": content}


def _bag_details(key: str, old_key: str, new_key: str, old: Any, new: Any) -> Dict[str, Any]:
    old_dict = old.to_dict()
    new_dict = new.to_dict()
    return {
        key: {
            old_key: old_dict,
            new_key: new_dict,
            "changedFields": changed_keys(old_dict, new_dict),
        }
    }


def _slide_details(slide: SlideSnapshot) -> Dict[str, Any]:
    return {"slide": {"slideId": slide.slide_id, "elementCount": len(slide.elements)}}


def build_details(change_type: ChangeType, diff: RawDifference) -> Dict[str, Any]:
    """Variant payload carrying old and new values of the changed category."""
    if change_type in (ChangeType.ELEMENT_MOVED, ChangeType.ELEMENT_RESIZED):
        return _position_details(diff.old_value, diff.new_value)
    if change_type == ChangeType.TEXT_CONTENT_CHANGED:
        return _content_details(diff.old_value, diff.new_value)
    if change_type == ChangeType.FORMATTING_CHANGED:
        return _bag_details("formatting", "oldFormatting", "newFormatting", diff.old_value, diff.new_value)
    if change_type == ChangeType.PROPERTIES_CHANGED:
        return _bag_details("properties", "oldProperties", "newProperties", diff.old_value, diff.new_value)
    if change_type == ChangeType.BACKGROUND_CHANGED:
        return {"background": {
            "oldBackground": diff.old_value.to_dict(),
            "newBackground": diff.new_value.to_dict(),
        }}
    if change_type == ChangeType.LAYOUT_CHANGED:
        return {"layout": {
            "oldLayout": diff.old_value.to_dict(),
            "newLayout": diff.new_value.to_dict(),
        }}
    if change_type == ChangeType.ELEMENT_ADDED:
        return {"element": element_to_dict(diff.new_value)}
    if change_type == ChangeType.ELEMENT_REMOVED:
        return {"element": element_to_dict(diff.old_value)}
    if change_type == ChangeType.SLIDE_ADDED:
        return _slide_details(diff.new_value)
    if change_type == ChangeType.SLIDE_REMOVED:
        return _slide_details(diff.old_value)
    raise ValueError(f"No details builder for change type {change_type}")


def _format_delta(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"+{value}" if value >= 0 else f"{value}"


def build_summary(change_type: ChangeType, diff: RawDifference, details: Dict[str, Any]) -> str:
    """Short human-readable line for logs and change log views."""
    if change_type in (ChangeType.ELEMENT_MOVED, ChangeType.ELEMENT_RESIZED):
        changes = details["position"]["changes"]
        if change_type == ChangeType.ELEMENT_MOVED:
            return f"Element moved (x {_format_delta(changes['xChange'])}, y {_format_delta(changes['yChange'])})"
        return (
            f"Element resized (width {_format_delta(changes['widthChange'])}, "
            f"height {_format_delta(changes['heightChange'])})"
        )
    if change_type == ChangeType.TEXT_CONTENT_CHANGED:
        return "Text content changed"
    if change_type in (ChangeType.FORMATTING_CHANGED, ChangeType.PROPERTIES_CHANGED):
        key = "formatting" if change_type == ChangeType.FORMATTING_CHANGED else "properties"
        fields_changed = ", ".join(details[key]["changedFields"])
        return f"{key.capitalize()} changed: {fields_changed}"
    if change_type == ChangeType.ELEMENT_ADDED:
        return f"{diff.element_type.title()} added to slide {diff.slide_index + 1}"
    if change_type == ChangeType.ELEMENT_REMOVED:
        return f"{diff.element_type.title()} removed from slide {diff.slide_index + 1}"
    if change_type == ChangeType.SLIDE_ADDED:
        return f"Slide {diff.slide_index + 1} added"
    if change_type == ChangeType.SLIDE_REMOVED:
        return f"Slide {diff.slide_index + 1} removed"
    if change_type == ChangeType.BACKGROUND_CHANGED:
        return f"Background of slide {diff.slide_index + 1} changed"
    return f"Layout of slide {diff.slide_index + 1} changed"


def make_record_id(
    change_type: ChangeType,
    target_id: str,
    slide_index: int,
    detected_at: datetime,
    ordinal: int = 0,
    presentation_id: str = "",
) -> str:
    """
    Deterministic record id from (change type, target, detection time).

    The presentation id, the slide index and the record's ordinal within its
    batch are folded into the digest so records never collide across decks
    or within one cycle.
    """
    key = "|".join([
        presentation_id,
        change_type.value,
        str(slide_index),
        target_id,
        detected_at.isoformat(),
        str(ordinal),
    ])
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]
    return f"{change_type.value}_{target_id}_{digest}"


# =============================================================================
# MAIN CLASSIFICATION FUNCTIONS
# =============================================================================

def classify(
    diff: RawDifference,
    detected_at: Optional[datetime] = None,
    ordinal: int = 0,
    presentation_id: str = "",
) -> ChangeRecord:
    """
    Classify one RawDifference into a ChangeRecord.

    Args:
        diff: Difference produced by the comparator
        detected_at: Detection time (defaults to now, UTC)
        ordinal: Position of the difference within its batch, used to keep
                 record ids unique
        presentation_id: Deck the difference belongs to, folded into the id

    Returns:
        ChangeRecord with fixed scope/severity for its change type
    """
    if detected_at is None:
        detected_at = datetime.now(timezone.utc)

    change_type = resolve_change_type(diff)
    scope, severity = CLASSIFICATION_TABLE[change_type]
    details = build_details(change_type, diff)

    return ChangeRecord(
        id=make_record_id(
            change_type, diff.element_id, diff.slide_index, detected_at, ordinal, presentation_id
        ),
        detected_at=detected_at,
        slide_index=diff.slide_index,
        change_type=change_type,
        element_id=diff.element_id,
        element_type=diff.element_type,
        details=details,
        scope=scope,
        severity=severity,
        detection_method=DetectionMethod.POLLING,
        confidence=POLLING_CONFIDENCE,
        summary=build_summary(change_type, diff, details),
    )


def classify_all(
    diffs: Sequence[RawDifference],
    detected_at: Optional[datetime] = None,
    presentation_id: str = "",
) -> List[ChangeRecord]:
    """Classify a batch of differences with one shared detection time."""
    if detected_at is None:
        detected_at = datetime.now(timezone.utc)
    return [
        classify(diff, detected_at, ordinal, presentation_id)
        for ordinal, diff in enumerate(diffs)
    ]


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def records_by_type(records: Sequence[ChangeRecord], change_type: ChangeType) -> List[ChangeRecord]:
    return [r for r in records if r.change_type == change_type]


def records_by_severity(records: Sequence[ChangeRecord], severity: Severity) -> List[ChangeRecord]:
    return [r for r in records if r.severity == severity]


def records_by_scope(records: Sequence[ChangeRecord], scope: Scope) -> List[ChangeRecord]:
    return [r for r in records if r.scope == scope]


def summarize_changes(records: Sequence[ChangeRecord]) -> Dict[str, Any]:
    """
    Count records by change type, severity and scope.

    Useful for change log views and quick inspection.
    """
    by_type: Dict[str, int] = {}
    by_severity: Dict[str, int] = {}
    by_scope: Dict[str, int] = {}
    for record in records:
        by_type[record.change_type.value] = by_type.get(record.change_type.value, 0) + 1
        by_severity[record.severity.value] = by_severity.get(record.severity.value, 0) + 1
        by_scope[record.scope.value] = by_scope.get(record.scope.value, 0) + 1

    return {
        "totalChanges": len(records),
        "changesByType": by_type,
        "changesBySeverity": by_severity,
        "changesByScope": by_scope,
        "highSeverityCount": by_severity.get(Severity.HIGH.value, 0),
    }
