from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

from annotexport.position import resolve_page_number, resolve_vertical_offset
from annotexport.types import UNASSIGNED_PAGE_KEY, PageGroup, ScreenshotAnnotation, TextAnnotation


AnnotationLike = TextAnnotation | ScreenshotAnnotation
FilterTab = Literal['all', 'annotations', 'screenshots']


@dataclass(frozen=True)
class KindCounts:
    annotations: int
    screenshots: int

    @property
    def total(self) -> int:
        return self.annotations + self.screenshots


def _reading_key(index: int, annotation: AnnotationLike) -> tuple[float, float, int]:
    page = resolve_page_number(annotation)
    vertical = resolve_vertical_offset(annotation)
    return (
        float(page) if page is not None else math.inf,
        vertical if vertical is not None else math.inf,
        index,
    )


def order_annotations(annotations: Sequence[AnnotationLike]) -> list[AnnotationLike]:
    """Sort by (page, vertical offset, insertion index); unresolved values sort last."""
    decorated = [(_reading_key(index, item), item) for index, item in enumerate(annotations)]
    decorated.sort(key=lambda row: row[0])
    return [item for _, item in decorated]


def group_by_page(ordered: Iterable[AnnotationLike]) -> list[PageGroup]:
    buckets: dict[str, PageGroup] = {}
    for item in ordered:
        page = resolve_page_number(item)
        key = str(page) if page is not None else UNASSIGNED_PAGE_KEY
        group = buckets.get(key)
        if group is None:
            group = PageGroup(page_key=key, page_number=page)
            buckets[key] = group
        group.items.append(item)

    return sorted(
        buckets.values(),
        key=lambda group: (group.page_number is None, group.page_number or 0),
    )


def count_items(groups: Iterable[PageGroup]) -> int:
    return sum(len(group.items) for group in groups)


def filter_annotations(
    annotations: Sequence[AnnotationLike],
    *,
    tab: FilterTab = 'all',
    query: str = '',
) -> list[AnnotationLike]:
    """Side-panel view: reading order, narrowed by kind tab and a search query.

    The query matches highlighted text or comment text, case-insensitively.
    Screenshots only match on their comment.
    """
    needle = (query or '').strip().lower()
    output: list[AnnotationLike] = []
    for item in order_annotations(annotations):
        if tab == 'annotations' and isinstance(item, ScreenshotAnnotation):
            continue
        if tab == 'screenshots' and not isinstance(item, ScreenshotAnnotation):
            continue
        if needle:
            text = item.text.lower() if isinstance(item, TextAnnotation) else ''
            if needle not in text and needle not in item.comment_text.lower():
                continue
        output.append(item)
    return output


def count_by_kind(annotations: Iterable[AnnotationLike]) -> KindCounts:
    screenshots = 0
    total = 0
    for item in annotations:
        total += 1
        if isinstance(item, ScreenshotAnnotation):
            screenshots += 1
    return KindCounts(annotations=total - screenshots, screenshots=screenshots)
