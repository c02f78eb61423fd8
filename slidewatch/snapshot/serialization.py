"""
Wire codec for snapshots.

The capture script emits camelCase JSON. Decoding accepts both the current
key names and the older ones still produced by earlier capture scripts:

    elements[].id           or elements[].elementId
    elements[].type         or elements[].elementType
    elements[].style        or elements[].formatting
    position.rotation       or position.rotationDegrees
    slides[].slideIndex     or slides[].positionIndex
    slides[].slideLayout    or slides[].layout
    timestamp               or capturedAt

Encoding always writes the current names.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import SnapshotValidationError
from .models import (
    FORMATTING_VARIANTS,
    PROPERTIES_VARIANTS,
    BackgroundAttrs,
    ElementSnapshot,
    ElementType,
    LayoutAttrs,
    Position,
    PresentationSnapshot,
    SlideSnapshot,
)

logger = logging.getLogger(__name__)


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value:
        raise SnapshotValidationError(f"Invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise SnapshotValidationError(f"Invalid timestamp: {value!r}")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _number(data: Dict[str, Any], key: str, *aliases: str, default: Any = None) -> Any:
    value = _first(data, key, *aliases, default=default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SnapshotValidationError(f"Position field {key!r} must be numeric, got {value!r}")
    return value


def position_from_dict(data: Optional[Dict[str, Any]]) -> Position:
    data = data or {}
    return Position(
        x=_number(data, "x", "left"),
        y=_number(data, "y", "top"),
        width=_number(data, "width"),
        height=_number(data, "height"),
        rotation_degrees=_number(data, "rotationDegrees", "rotation", default=0.0),
        scale_x=_number(data, "scaleX", default=1.0),
        scale_y=_number(data, "scaleY", default=1.0),
    )


def element_from_dict(data: Dict[str, Any]) -> ElementSnapshot:
    """Decode one element; formatting/properties use the variant for its type."""
    element_id = _first(data, "elementId", "id")
    if not element_id:
        raise SnapshotValidationError(f"Element without id: {sorted(data.keys())}")

    element_type = ElementType.parse(_first(data, "elementType", "type", default=""))
    extraction_error = _first(data, "extractionError", "error")

    raw_position = data.get("position")
    if raw_position is None and extraction_error is not None:
        # Capture failed before geometry was read
        position = Position(x=0, y=0, width=0, height=0)
    else:
        position = position_from_dict(raw_position)

    content = data.get("content")
    if element_type in (ElementType.IMAGE, ElementType.VIDEO) and content == "":
        content = None

    formatting_cls = FORMATTING_VARIANTS[element_type]
    properties_cls = PROPERTIES_VARIANTS[element_type]

    return ElementSnapshot(
        element_id=str(element_id),
        element_type=element_type,
        position=position,
        content=content,
        formatting=formatting_cls.from_dict(_first(data, "formatting", "style", default={})),
        properties=properties_cls.from_dict(data.get("properties") or {}),
        extraction_error=None if extraction_error is None else str(extraction_error),
    )


def slide_from_dict(data: Dict[str, Any], index: int) -> SlideSnapshot:
    slide_id = _first(data, "slideId", "id")
    if not slide_id:
        raise SnapshotValidationError(f"Slide at index {index} has no slideId")

    background = dict(data.get("background") or {})
    image = background.get("image")
    if isinstance(image, dict) and "imageUrl" not in background:
        background["imageUrl"] = image.get("url")
        background.pop("image")

    return SlideSnapshot(
        slide_id=str(slide_id),
        position_index=int(_first(data, "positionIndex", "slideIndex", default=index)),
        background=BackgroundAttrs.from_dict(background),
        layout=LayoutAttrs.from_dict(_first(data, "layout", "slideLayout", default={})),
        elements=tuple(element_from_dict(element) for element in data.get("elements") or []),
    )


def snapshot_from_dict(data: Dict[str, Any]) -> PresentationSnapshot:
    """
    Decode a captured presentation snapshot.

    Raises:
        SnapshotValidationError: If the payload is malformed or violates an
            id-uniqueness invariant
    """
    if not isinstance(data, dict):
        raise SnapshotValidationError("Snapshot payload must be a JSON object")

    presentation_id = data.get("presentationId")
    if not presentation_id:
        raise SnapshotValidationError("Snapshot payload has no presentationId")

    raw_captured_at = _first(data, "capturedAt", "timestamp")
    if raw_captured_at is None:
        logger.debug(f"Snapshot for {presentation_id} has no capture time; using now")
        captured_at = datetime.now(timezone.utc)
    else:
        captured_at = parse_timestamp(raw_captured_at)

    slides = [slide_from_dict(slide, index) for index, slide in enumerate(data.get("slides") or [])]

    return PresentationSnapshot(
        presentation_id=str(presentation_id),
        presentation_name=str(data.get("presentationName") or ""),
        captured_at=captured_at,
        slides=tuple(slides),
    )


def content_to_wire(content: Any) -> Any:
    if isinstance(content, tuple):
        return [list(row) for row in content]
    return content


def element_to_dict(element: ElementSnapshot) -> Dict[str, Any]:
    data = {
        "elementId": element.element_id,
        "elementType": element.element_type.value,
        "position": element.position.to_dict(),
        "content": content_to_wire(element.content),
        "formatting": element.formatting.to_dict(),
        "properties": element.properties.to_dict(),
    }
    if element.extraction_error is not None:
        data["extractionError"] = element.extraction_error
    return data


def slide_to_dict(slide: SlideSnapshot) -> Dict[str, Any]:
    return {
        "slideId": slide.slide_id,
        "positionIndex": slide.position_index,
        "background": slide.background.to_dict(),
        "layout": slide.layout.to_dict(),
        "elements": [element_to_dict(element) for element in slide.elements],
    }


def snapshot_to_dict(snapshot: PresentationSnapshot) -> Dict[str, Any]:
    """Encode a snapshot into the JSON-ready wire format."""
    slides: List[Dict[str, Any]] = [slide_to_dict(slide) for slide in snapshot.slides]
    return {
        "presentationId": snapshot.presentation_id,
        "presentationName": snapshot.presentation_name,
        "capturedAt": format_timestamp(snapshot.captured_at),
        "slides": slides,
    }
