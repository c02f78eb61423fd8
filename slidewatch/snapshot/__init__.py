"""Presentation snapshot model and wire codec."""

from .models import (
    ElementType,
    Position,
    ShapeFormatting,
    TableFormatting,
    ImageFormatting,
    GenericFormatting,
    ShapeProperties,
    TableProperties,
    ImageProperties,
    VideoProperties,
    GenericProperties,
    BackgroundAttrs,
    LayoutAttrs,
    ElementSnapshot,
    SlideSnapshot,
    PresentationSnapshot,
)
from .serialization import (
    snapshot_from_dict,
    snapshot_to_dict,
    element_to_dict,
    parse_timestamp,
    format_timestamp,
)

__all__ = [
    "ElementType",
    "Position",
    "ShapeFormatting",
    "TableFormatting",
    "ImageFormatting",
    "GenericFormatting",
    "ShapeProperties",
    "TableProperties",
    "ImageProperties",
    "VideoProperties",
    "GenericProperties",
    "BackgroundAttrs",
    "LayoutAttrs",
    "ElementSnapshot",
    "SlideSnapshot",
    "PresentationSnapshot",
    "snapshot_from_dict",
    "snapshot_to_dict",
    "element_to_dict",
    "parse_timestamp",
    "format_timestamp",
]
