from __future__ import annotations

import re
from typing import Iterable

from annotexport.errors import EmptyInput
from annotexport.ordering import count_items
from annotexport.types import PageGroup


_EXTENSION_PATTERN = re.compile(r'\.[^/.]+$')
_NEWLINE_PATTERN = re.compile(r'\r\n|\r|\n')


def sanitize_file_base(file_name: str) -> str:
    base = _EXTENSION_PATTERN.sub('', str(file_name or '')).strip()
    return base or 'document'


def split_lines(text: str) -> list[str]:
    return [line.strip() for line in _NEWLINE_PATTERN.split(text or '')]


def ensure_not_empty(groups: Iterable[PageGroup], *, export_format: str) -> list[PageGroup]:
    materialized = list(groups)
    if count_items(materialized) == 0:
        raise EmptyInput(export_format=export_format)
    return materialized
