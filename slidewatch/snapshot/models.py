"""
Snapshot model for presentation polling.

A snapshot is the fully materialized state of a presentation at one point in
time:

    PresentationSnapshot -> SlideSnapshot (by position) -> ElementSnapshot (by id)

Snapshots are immutable values. A new capture always produces a new
PresentationSnapshot; nothing in slidewatch mutates one after construction.

Formatting and properties are modelled as a closed set of variants per
element type (ShapeFormatting, TableFormatting, ImageFormatting, ...) so that
structural comparison is exhaustive. Keys the model does not know about are
kept in each variant's ``extra`` mapping for forward compatibility.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import SnapshotValidationError


class ElementType(Enum):
    """Page element types the capture script distinguishes."""
    SHAPE = "SHAPE"
    TABLE = "TABLE"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"

    @classmethod
    def parse(cls, value: Union[str, "ElementType"]) -> "ElementType":
        """Parse a case-insensitive element type name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise SnapshotValidationError(f"Unknown element type: {value!r}")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class _AttributeBag:
    """
    Shared behaviour for the formatting / properties / slide attribute variants.

    Subclasses are frozen dataclasses whose last field is ``extra``.
    """

    # Alternate wire keys accepted when decoding (wire key -> field name)
    ALIASES: Dict[str, str] = {}

    def known_fields(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self) if f.name != "extra")

    def to_dict(self) -> Dict[str, Any]:
        """camelCase dict of all known fields plus unknown extras."""
        data = {_camel(name): getattr(self, name) for name in self.known_fields()}
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        """
        Build the variant from a camelCase dict; unknown keys go to ``extra``.

        The canonical key wins over an alias. When both are present the alias
        is kept in ``extra`` under its own name so ``to_dict`` loses nothing.
        """
        data = dict(data or {})
        key_to_field = {_camel(f.name): f.name for f in fields(cls) if f.name != "extra"}

        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            field_name = key_to_field.get(key)
            if field_name is not None:
                kwargs[field_name] = value
            elif key not in cls.ALIASES:
                extra[key] = value
        for alias, field_name in cls.ALIASES.items():
            if alias not in data:
                continue
            if field_name in kwargs:
                extra[alias] = data[alias]
            else:
                kwargs[field_name] = data[alias]
        return cls(extra=extra, **kwargs)


# =============================================================================
# FORMATTING VARIANTS
# =============================================================================

@dataclass(frozen=True)
class ShapeFormatting(_AttributeBag):
    """Text and fill formatting of a shape (text box, placeholder, etc.)."""
    font_size: Optional[float] = None
    font_family: Optional[str] = None
    font_weight: Optional[str] = None
    font_style: Optional[str] = None
    text_color: Optional[str] = None
    underline: Optional[bool] = None
    strikethrough: Optional[bool] = None
    text_alignment: Optional[str] = None
    vertical_alignment: Optional[str] = None
    line_spacing: Optional[float] = None
    fill_type: Optional[str] = None
    background_color: Optional[str] = None
    background_opacity: Optional[float] = None
    border_color: Optional[str] = None
    border_width: Optional[float] = None
    border_style: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TableFormatting(_AttributeBag):
    """Table border plus the formatting of the sampled (first) cell."""
    border_color: Optional[str] = None
    border_width: Optional[float] = None
    font_size: Optional[float] = None
    font_family: Optional[str] = None
    text_color: Optional[str] = None
    cell_background_color: Optional[str] = None
    text_alignment: Optional[str] = None
    vertical_alignment: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageFormatting(_AttributeBag):
    """Image outline and adjustments."""
    border_color: Optional[str] = None
    border_width: Optional[float] = None
    transparency: Optional[float] = None
    brightness: Optional[float] = None
    contrast: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenericFormatting(_AttributeBag):
    """Unknown-fields bag for element types without a dedicated variant."""
    extra: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# PROPERTIES VARIANTS
# =============================================================================

@dataclass(frozen=True)
class ShapeProperties(_AttributeBag):
    shape_type: Optional[str] = None
    fill_type: Optional[str] = None
    text_alignment: Optional[str] = None
    vertical_alignment: Optional[str] = None
    line_spacing: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TableProperties(_AttributeBag):
    row_count: Optional[int] = None
    column_count: Optional[int] = None
    cell_padding: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageProperties(_AttributeBag):
    ALIASES = {"imageUrl": "source_url"}

    source_url: Optional[str] = None
    content_url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VideoProperties(_AttributeBag):
    source: Optional[str] = None
    video_id: Optional[str] = None
    url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenericProperties(_AttributeBag):
    extra: Dict[str, Any] = field(default_factory=dict)


Formatting = Union[ShapeFormatting, TableFormatting, ImageFormatting, GenericFormatting]
Properties = Union[ShapeProperties, TableProperties, ImageProperties, VideoProperties, GenericProperties]

FORMATTING_VARIANTS = {
    ElementType.SHAPE: ShapeFormatting,
    ElementType.TABLE: TableFormatting,
    ElementType.IMAGE: ImageFormatting,
    ElementType.VIDEO: GenericFormatting,
}

PROPERTIES_VARIANTS = {
    ElementType.SHAPE: ShapeProperties,
    ElementType.TABLE: TableProperties,
    ElementType.IMAGE: ImageProperties,
    ElementType.VIDEO: VideoProperties,
}


# =============================================================================
# SLIDE-LEVEL ATTRIBUTES
# =============================================================================

@dataclass(frozen=True)
class BackgroundAttrs(_AttributeBag):
    fill_type: Optional[str] = None
    color: Optional[str] = None
    image_url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LayoutAttrs(_AttributeBag):
    layout_type: Optional[str] = None
    layout_name: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# SNAPSHOT TREE
# =============================================================================

@dataclass(frozen=True)
class Position:
    """Element geometry in points. Scale and rotation default to identity."""
    x: float
    y: float
    width: float
    height: float
    rotation_degrees: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "rotationDegrees": self.rotation_degrees,
            "scaleX": self.scale_x,
            "scaleY": self.scale_y,
        }


TableGrid = Tuple[Tuple[str, ...], ...]
Content = Union[str, TableGrid, None]


@dataclass(frozen=True)
class ElementSnapshot:
    """
    State of one page element.

    ``element_id`` is the stable identity used to match elements across
    snapshots. When ``extraction_error`` is set the capture could not read the
    element fully; it still counts for add/remove detection but is excluded
    from field-level diffing.
    """
    element_id: str
    element_type: ElementType
    position: Position
    content: Content = None
    formatting: Optional[Formatting] = None
    properties: Optional[Properties] = None
    extraction_error: Optional[str] = None

    def __post_init__(self):
        if not self.element_id:
            raise SnapshotValidationError("ElementSnapshot.element_id must not be empty")

        element_type = ElementType.parse(self.element_type)
        object.__setattr__(self, "element_type", element_type)

        object.__setattr__(self, "content", _coerce_content(element_type, self.content, self.element_id))

        formatting_cls = FORMATTING_VARIANTS[element_type]
        if self.formatting is None:
            object.__setattr__(self, "formatting", formatting_cls())
        elif not isinstance(self.formatting, (formatting_cls, GenericFormatting)):
            raise SnapshotValidationError(
                f"Element {self.element_id} ({element_type.value}) cannot carry "
                f"{type(self.formatting).__name__}"
            )

        properties_cls = PROPERTIES_VARIANTS[element_type]
        if self.properties is None:
            object.__setattr__(self, "properties", properties_cls())
        elif not isinstance(self.properties, (properties_cls, GenericProperties)):
            raise SnapshotValidationError(
                f"Element {self.element_id} ({element_type.value}) cannot carry "
                f"{type(self.properties).__name__}"
            )

    @property
    def has_error(self) -> bool:
        return self.extraction_error is not None


def _coerce_content(element_type: ElementType, content: Any, element_id: str) -> Content:
    if element_type == ElementType.SHAPE:
        if content is None:
            return ""
        if not isinstance(content, str):
            raise SnapshotValidationError(f"Shape {element_id} content must be text")
        return content

    if element_type == ElementType.TABLE:
        if content is None:
            return ()
        if isinstance(content, str):
            raise SnapshotValidationError(f"Table {element_id} content must be a grid of strings")
        return tuple(tuple("" if cell is None else str(cell) for cell in row) for row in content)

    # Images and videos carry no content
    if content not in (None, ""):
        raise SnapshotValidationError(
            f"{element_type.value.title()} {element_id} must not carry content"
        )
    return None


@dataclass(frozen=True)
class SlideSnapshot:
    """One slide. ``slide_id`` is stable; ``position_index`` is not an identity."""
    slide_id: str
    position_index: int
    background: BackgroundAttrs = field(default_factory=BackgroundAttrs)
    layout: LayoutAttrs = field(default_factory=LayoutAttrs)
    elements: Tuple[ElementSnapshot, ...] = ()

    def __post_init__(self):
        elements = tuple(self.elements)
        object.__setattr__(self, "elements", elements)

        seen = set()
        for element in elements:
            if element.element_id in seen:
                raise SnapshotValidationError(
                    f"Duplicate element id {element.element_id!r} on slide {self.slide_id}"
                )
            seen.add(element.element_id)

    def elements_by_id(self) -> Dict[str, ElementSnapshot]:
        return {element.element_id: element for element in self.elements}


@dataclass(frozen=True)
class PresentationSnapshot:
    """A presentation at one point in time. Slide order is capture order."""
    presentation_id: str
    presentation_name: str
    captured_at: datetime
    slides: Tuple[SlideSnapshot, ...] = ()

    def __post_init__(self):
        if not self.presentation_id:
            raise SnapshotValidationError("PresentationSnapshot.presentation_id must not be empty")

        slides = tuple(self.slides)
        object.__setattr__(self, "slides", slides)

        captured_at = self.captured_at
        if captured_at.tzinfo is None:
            object.__setattr__(self, "captured_at", captured_at.replace(tzinfo=timezone.utc))

        seen = set()
        for slide in slides:
            if slide.slide_id in seen:
                raise SnapshotValidationError(
                    f"Duplicate slide id {slide.slide_id!r} in presentation {self.presentation_id}"
                )
            seen.add(slide.slide_id)

    def slide_at(self, index: int) -> Optional[SlideSnapshot]:
        """Slide at ``index``, or None past the end."""
        if 0 <= index < len(self.slides):
            return self.slides[index]
        return None

    def element_count(self) -> int:
        return sum(len(slide.elements) for slide in self.slides)

    def element_type_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for slide in self.slides:
            for element in slide.elements:
                name = element.element_type.value
                counts[name] = counts.get(name, 0) + 1
        return counts
