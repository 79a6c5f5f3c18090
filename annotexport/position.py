"""Page number and vertical offset resolution for stored annotations.

Stored annotations come from several generations of the highlighter and carry
position data in different shapes. Both resolvers are total: when nothing
usable is present they return ``None`` and downstream ordering treats the
annotation as coming last.
"""
from __future__ import annotations

from typing import Iterable

from annotexport.types import Rect, ScreenshotAnnotation, TextAnnotation


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def _is_unit(value: float | None) -> bool:
    return value is not None and 0.0 <= value <= 1.0


def resolve_page_number(annotation: TextAnnotation | ScreenshotAnnotation | None) -> int | None:
    if annotation is None:
        return None

    if isinstance(annotation, ScreenshotAnnotation) and annotation.screenshot.page_number is not None:
        return annotation.screenshot.page_number

    position = annotation.position
    if position is None:
        return None
    if position.page_number is not None:
        return position.page_number
    if position.bounding_rect is not None and position.bounding_rect.page_number is not None:
        return position.bounding_rect.page_number
    # a highlight spanning a page break is assigned to its first rect's page
    for rect in position.rects:
        if rect.page_number is not None:
            return rect.page_number
    return None


def normalized_top(rect: Rect | None) -> float | None:
    """Top edge of ``rect`` as a fraction of the page height.

    ``y1`` is taken as already normalized when it lies in [0, 1]. Otherwise
    ``top / height`` is used for pixel-space rects, and a raw ``top`` that is
    itself in [0, 1] is accepted as-is. A ``top`` above 1 without a usable
    height stays unresolved.
    """
    if rect is None:
        return None
    if _is_unit(rect.y1):
        return rect.y1
    if rect.top is not None and rect.height is not None and rect.height > 0:
        return _clamp_unit(rect.top / rect.height)
    if _is_unit(rect.top):
        return rect.top
    return None


def _rect_candidates(annotation: TextAnnotation | ScreenshotAnnotation) -> Iterable[Rect | None]:
    position = annotation.position
    if position is None:
        return ()
    return (position.bounding_rect, *position.rects)


def resolve_vertical_offset(annotation: TextAnnotation | ScreenshotAnnotation | None) -> float | None:
    if annotation is None:
        return None

    if annotation.page_relative_y is not None:
        return _clamp_unit(annotation.page_relative_y)

    if isinstance(annotation, ScreenshotAnnotation) and annotation.screenshot.page_relative_y is not None:
        return _clamp_unit(annotation.screenshot.page_relative_y)

    tops = [top for top in (normalized_top(rect) for rect in _rect_candidates(annotation)) if top is not None]
    if not tops:
        return None
    return _clamp_unit(min(tops))
