"""
Structural comparator for presentation snapshots.

This module answers "what differs between two snapshots?" and nothing more.
It produces unclassified RawDifference values; change_events.py turns them
into typed, severity-tagged ChangeRecords.

MATCHING RULES:
1. Slides are matched by position index: slide i is compared with slide i.
   Inserting a slide mid-deck therefore shows up as changes on every later
   slide plus a slide_added at the end, not as a shift.
2. Elements inside a matched slide pair are matched by element id.
3. A matched element pair is compared in four independent categories:
   position, content, formatting, properties. Each differing category yields
   its own RawDifference (never merged).
4. An element with an extraction error on either side still counts for
   add/remove detection but gets no field-level comparison.

Equality is structural: mappings compare by key set and values (insertion
order irrelevant), lists and tuples compare element-wise, numbers compare
exactly with no tolerance.

The comparator is pure: no I/O, no clock, no store access.
"""

import logging
import math
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..snapshot.models import ElementSnapshot, PresentationSnapshot, SlideSnapshot

logger = logging.getLogger(__name__)

SLIDE_ELEMENT_TYPE = "SLIDE"


class DifferenceKind(Enum):
    """Raw structural mismatch categories, before classification."""
    SLIDE_ADDED = "slide_added"
    SLIDE_REMOVED = "slide_removed"
    BACKGROUND_CHANGED = "background_changed"
    LAYOUT_CHANGED = "layout_changed"
    ELEMENT_ADDED = "element_added"
    ELEMENT_REMOVED = "element_removed"
    POSITION_CHANGED = "position_changed"
    CONTENT_CHANGED = "content_changed"
    FORMATTING_CHANGED = "formatting_changed"
    PROPERTIES_CHANGED = "properties_changed"


@dataclass(frozen=True)
class RawDifference:
    """
    One unclassified structural mismatch.

    For slide-level kinds ``element_id`` is the slide id and ``element_type``
    is "SLIDE". ``old_value`` is None for additions, ``new_value`` is None for
    removals. Values are model objects (Position, formatting variant,
    ElementSnapshot, SlideSnapshot, ...), not serialized dicts.
    """
    kind: DifferenceKind
    slide_index: int
    slide_id: str
    element_id: str
    element_type: str
    old_value: Any = None
    new_value: Any = None


# =============================================================================
# STRUCTURAL EQUALITY
# =============================================================================

def structurally_equal(a: Any, b: Any) -> bool:
    """
    Recursive, key-order independent equality.

    - Dataclasses: same type and all fields structurally equal
    - Mappings: same key set and structurally equal values
    - Lists/tuples: same length and element-wise equal (list == tuple allowed)
    - Booleans never equal numbers (True is not 1)
    - Two NaNs are equal, so comparing a snapshot with itself is always clean
    - Everything else: ``==`` (numbers exact, no epsilon)
    """
    if is_dataclass(a) and not isinstance(a, type):
        if type(a) is not type(b):
            return False
        return all(
            structurally_equal(getattr(a, f.name), getattr(b, f.name))
            for f in fields(a)
        )

    if isinstance(a, Mapping):
        if not isinstance(b, Mapping):
            return False
        if set(a.keys()) != set(b.keys()):
            return False
        return all(structurally_equal(a[key], b[key]) for key in a)

    if isinstance(a, (list, tuple)):
        if not isinstance(b, (list, tuple)) or len(a) != len(b):
            return False
        return all(structurally_equal(x, y) for x, y in zip(a, b))

    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b

    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True

    return a == b


def changed_keys(old: Mapping[str, Any], new: Mapping[str, Any]) -> List[str]:
    """Sorted keys whose values differ (including keys present on one side only)."""
    keys = set(old.keys()) | set(new.keys())
    return sorted(
        key for key in keys
        if key not in old or key not in new or not structurally_equal(old[key], new[key])
    )


# =============================================================================
# ELEMENT-LEVEL DIFF
# =============================================================================

def diff_element(
    previous: ElementSnapshot,
    current: ElementSnapshot,
    slide_index: int,
    slide_id: str,
) -> List[RawDifference]:
    """
    Compare one matched element pair, category by category.

    Returns up to four differences (position, content, formatting,
    properties). Returns nothing if either side carries an extraction error.
    """
    if previous.has_error or current.has_error:
        logger.warning(
            f"Skipping field-level diff for element {current.element_id} on slide {slide_index}: "
            f"{current.extraction_error or previous.extraction_error}"
        )
        return []

    def _difference(kind: DifferenceKind, old: Any, new: Any) -> RawDifference:
        return RawDifference(
            kind=kind,
            slide_index=slide_index,
            slide_id=slide_id,
            element_id=current.element_id,
            element_type=current.element_type.value,
            old_value=old,
            new_value=new,
        )

    differences = []

    if not structurally_equal(previous.position, current.position):
        differences.append(_difference(DifferenceKind.POSITION_CHANGED, previous.position, current.position))

    if not structurally_equal(previous.content, current.content):
        differences.append(_difference(DifferenceKind.CONTENT_CHANGED, previous.content, current.content))

    if not structurally_equal(previous.formatting, current.formatting):
        differences.append(_difference(DifferenceKind.FORMATTING_CHANGED, previous.formatting, current.formatting))

    if not structurally_equal(previous.properties, current.properties):
        differences.append(_difference(DifferenceKind.PROPERTIES_CHANGED, previous.properties, current.properties))

    return differences


# =============================================================================
# SLIDE-LEVEL DIFF
# =============================================================================

def diff_slide(
    previous: SlideSnapshot,
    current: SlideSnapshot,
    slide_index: int,
) -> List[RawDifference]:
    """
    Compare two slides that share a position index.

    Order of results: background, layout, removed elements (previous order),
    added elements (current order), then field-level changes (current order).
    """
    differences = []

    if not structurally_equal(previous.background, current.background):
        differences.append(RawDifference(
            kind=DifferenceKind.BACKGROUND_CHANGED,
            slide_index=slide_index,
            slide_id=current.slide_id,
            element_id=current.slide_id,
            element_type=SLIDE_ELEMENT_TYPE,
            old_value=previous.background,
            new_value=current.background,
        ))

    if not structurally_equal(previous.layout, current.layout):
        differences.append(RawDifference(
            kind=DifferenceKind.LAYOUT_CHANGED,
            slide_index=slide_index,
            slide_id=current.slide_id,
            element_id=current.slide_id,
            element_type=SLIDE_ELEMENT_TYPE,
            old_value=previous.layout,
            new_value=current.layout,
        ))

    previous_elements: Dict[str, ElementSnapshot] = previous.elements_by_id()
    current_elements: Dict[str, ElementSnapshot] = current.elements_by_id()

    for element in previous.elements:
        if element.element_id not in current_elements:
            differences.append(RawDifference(
                kind=DifferenceKind.ELEMENT_REMOVED,
                slide_index=slide_index,
                slide_id=previous.slide_id,
                element_id=element.element_id,
                element_type=element.element_type.value,
                old_value=element,
            ))

    for element in current.elements:
        if element.element_id not in previous_elements:
            differences.append(RawDifference(
                kind=DifferenceKind.ELEMENT_ADDED,
                slide_index=slide_index,
                slide_id=current.slide_id,
                element_id=element.element_id,
                element_type=element.element_type.value,
                new_value=element,
            ))

    for element in current.elements:
        before = previous_elements.get(element.element_id)
        if before is not None:
            differences.extend(diff_element(before, element, slide_index, current.slide_id))

    return differences


# =============================================================================
# PRESENTATION-LEVEL DIFF
# =============================================================================

def compare(
    previous: Optional[PresentationSnapshot],
    current: PresentationSnapshot,
) -> List[RawDifference]:
    """
    Compare two presentation snapshots.

    A ``previous`` of None is a baseline call (first capture) and yields no
    differences.

    Args:
        previous: Snapshot from the last cycle, or None
        current: Freshly captured snapshot

    Returns:
        RawDifferences in deterministic order: per shared index the slide's
        differences, then slide_removed for indexes beyond the current deck,
        then slide_added for indexes beyond the previous deck.
    """
    if previous is None:
        return []

    differences: List[RawDifference] = []
    shared = min(len(previous.slides), len(current.slides))

    for index in range(shared):
        differences.extend(diff_slide(previous.slides[index], current.slides[index], index))

    for index in range(shared, len(previous.slides)):
        slide = previous.slides[index]
        differences.append(RawDifference(
            kind=DifferenceKind.SLIDE_REMOVED,
            slide_index=index,
            slide_id=slide.slide_id,
            element_id=slide.slide_id,
            element_type=SLIDE_ELEMENT_TYPE,
            old_value=slide,
        ))

    for index in range(shared, len(current.slides)):
        slide = current.slides[index]
        differences.append(RawDifference(
            kind=DifferenceKind.SLIDE_ADDED,
            slide_index=index,
            slide_id=slide.slide_id,
            element_id=slide.slide_id,
            element_type=SLIDE_ELEMENT_TYPE,
            new_value=slide,
        ))

    logger.debug(
        f"Compared {previous.presentation_id}: {len(previous.slides)} -> {len(current.slides)} slides, "
        f"{len(differences)} differences"
    )
    return differences
