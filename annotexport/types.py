from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel


logger = logging.getLogger(__name__)

UNASSIGNED_PAGE_KEY = 'unassigned'


def new_annotation_id() -> str:
    return uuid4().hex


def _coerce_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


def _coerce_page(value: Any) -> int | None:
    number = _coerce_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _coerce_text_holder(value: Any) -> Any:
    if value is None or isinstance(value, (dict, BaseModel)):
        return value
    if isinstance(value, str):
        return {'text': value}
    return None


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
        frozen=True,
    )


class Rect(_Record):
    page_number: int | None = None
    top: float | None = None
    left: float | None = None
    height: float | None = None
    width: float | None = None
    x1: float | None = None
    y1: float | None = None
    x2: float | None = None
    y2: float | None = None

    @field_validator('page_number', mode='before')
    @classmethod
    def _page(cls, value: Any) -> int | None:
        return _coerce_page(value)

    @field_validator('top', 'left', 'height', 'width', 'x1', 'y1', 'x2', 'y2', mode='before')
    @classmethod
    def _number(cls, value: Any) -> float | None:
        return _coerce_number(value)


class Position(_Record):
    page_number: int | None = None
    bounding_rect: Rect | None = None
    rects: list[Rect] = Field(default_factory=list)

    @field_validator('page_number', mode='before')
    @classmethod
    def _page(cls, value: Any) -> int | None:
        return _coerce_page(value)

    @field_validator('bounding_rect', mode='before')
    @classmethod
    def _bounding_rect(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, Rect)) else None

    @field_validator('rects', mode='before')
    @classmethod
    def _rects(cls, value: Any) -> list[Any]:
        if not isinstance(value, (list, tuple)):
            return []
        return [item for item in value if isinstance(item, (dict, Rect))]


class Comment(_Record):
    text: str | None = None

    @field_validator('text', mode='before')
    @classmethod
    def _text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class Content(_Record):
    text: str | None = None

    @field_validator('text', mode='before')
    @classmethod
    def _text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class ScreenshotData(_Record):
    data_url: str | None = None
    page_number: int | None = None
    page_relative_y: float | None = None
    css_width: float | None = None
    css_height: float | None = None
    device_pixel_ratio: float | None = None

    @field_validator('data_url', mode='before')
    @classmethod
    def _data_url(cls, value: Any) -> str | None:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @field_validator('page_number', mode='before')
    @classmethod
    def _page(cls, value: Any) -> int | None:
        return _coerce_page(value)

    @field_validator('page_relative_y', 'css_width', 'css_height', 'device_pixel_ratio', mode='before')
    @classmethod
    def _number(cls, value: Any) -> float | None:
        return _coerce_number(value)


class _AnnotationBase(_Record):
    id: str = Field(default_factory=new_annotation_id)
    comment: Comment | None = None
    page_relative_y: float | None = None
    position: Position | None = None

    @field_validator('id', mode='before')
    @classmethod
    def _id(cls, value: Any) -> str:
        token = str(value).strip() if value is not None else ''
        return token or new_annotation_id()

    @field_validator('comment', mode='before')
    @classmethod
    def _comment(cls, value: Any) -> Any:
        return _coerce_text_holder(value)

    @field_validator('page_relative_y', mode='before')
    @classmethod
    def _relative_y(cls, value: Any) -> float | None:
        return _coerce_number(value)

    @field_validator('position', mode='before')
    @classmethod
    def _position(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, Position)) else None

    @property
    def comment_text(self) -> str:
        if self.comment is None:
            return ''
        return (self.comment.text or '').strip()


class TextAnnotation(_AnnotationBase):
    kind: Literal['text'] = 'text'
    content: Content | None = None

    @field_validator('content', mode='before')
    @classmethod
    def _content(cls, value: Any) -> Any:
        return _coerce_text_holder(value)

    @property
    def text(self) -> str:
        if self.content is None:
            return ''
        return (self.content.text or '').strip()


class ScreenshotAnnotation(_AnnotationBase):
    kind: Literal['screenshot'] = 'screenshot'
    screenshot: ScreenshotData = Field(default_factory=ScreenshotData)

    @field_validator('screenshot', mode='before')
    @classmethod
    def _screenshot(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ScreenshotData)) else {}

    @property
    def data_url(self) -> str | None:
        return self.screenshot.data_url


Annotation = Annotated[Union[TextAnnotation, ScreenshotAnnotation], Field(discriminator='kind')]

_ANNOTATION_ADAPTER: TypeAdapter[Any] = TypeAdapter(Annotation)


def parse_annotation(raw: Any) -> TextAnnotation | ScreenshotAnnotation:
    if isinstance(raw, (TextAnnotation, ScreenshotAnnotation)):
        return raw
    if not isinstance(raw, dict):
        raise TypeError(f'annotation must be an object, got {type(raw).__name__}')
    payload = dict(raw)
    # every record that is not a screenshot is a text highlight
    payload['kind'] = 'screenshot' if payload.get('kind') == 'screenshot' else 'text'
    return _ANNOTATION_ADAPTER.validate_python(payload)


def parse_annotations(rows: list[Any] | None) -> list[TextAnnotation | ScreenshotAnnotation]:
    output: list[TextAnnotation | ScreenshotAnnotation] = []
    for index, row in enumerate(rows or []):
        try:
            output.append(parse_annotation(row))
        except (TypeError, ValidationError) as exc:
            logger.warning('Skipping annotation #%d: %s', index, exc)
    return output


@dataclass(frozen=True)
class PageGroup:
    page_key: str
    page_number: int | None
    items: list[TextAnnotation | ScreenshotAnnotation] = field(default_factory=list)

    @property
    def label(self) -> str:
        if self.page_number is None:
            return 'Unassigned'
        return f'Page {self.page_number}'


@dataclass(frozen=True)
class ExportArtifact:
    content: bytes
    file_name: str
    media_type: str

    @property
    def size(self) -> int:
        return len(self.content)
