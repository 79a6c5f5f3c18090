from __future__ import annotations

import logging
from typing import Iterable

from annotexport.report.common import ensure_not_empty, sanitize_file_base, split_lines
from annotexport.types import ExportArtifact, PageGroup, ScreenshotAnnotation, TextAnnotation


logger = logging.getLogger(__name__)

MARKDOWN_MEDIA_TYPE = 'text/markdown; charset=utf-8'
INDENT = '  '


def markdown_file_name(file_name: str) -> str:
    return f'annotations_{sanitize_file_base(file_name)}.md'


def _list_item(text: str) -> list[str]:
    """Lay out ``text`` as one list item: first line after ``- ``, the rest indented."""
    body = (text or '').strip()
    if not body:
        return ['-']
    first, *rest = split_lines(body)
    lines = [f'- {first}']
    lines.extend(f'{INDENT}{line}' if line else '' for line in rest)
    return lines


def _comment_block(comment: str) -> list[str]:
    if not comment:
        return []
    first, *rest = split_lines(comment)
    lines = ['', f'{INDENT}Comment: {first}'.rstrip()]
    lines.extend(f'{INDENT}{line}' if line else '' for line in rest)
    return lines


def _text_entry(item: TextAnnotation) -> list[str]:
    return _list_item(item.text) + _comment_block(item.comment_text)


def _screenshot_entry(item: ScreenshotAnnotation, counter: int) -> list[str]:
    lines = ['- Screenshot']
    if item.data_url:
        lines.append(f'{INDENT}![Screenshot {counter}]({item.data_url})')
    else:
        lines.append(f'{INDENT}_(image unavailable)_')
    return lines + _comment_block(item.comment_text)


def build_markdown(groups: Iterable[PageGroup], file_name: str) -> str:
    title = ' '.join(str(file_name or '').split()) or 'document'
    lines: list[str] = [f'# Annotations: {title}', '']

    screenshot_counter = 0
    for group_index, group in enumerate(groups):
        if group_index > 0:
            lines.append('')
        lines.append(f'## {group.label}')
        lines.append('')
        for entry_index, item in enumerate(group.items):
            if entry_index > 0:
                lines.append('')
            if isinstance(item, ScreenshotAnnotation):
                screenshot_counter += 1
                lines.extend(_screenshot_entry(item, screenshot_counter))
            else:
                lines.extend(_text_entry(item))

    return '\n'.join(lines) + '\n'


def render_markdown(groups: Iterable[PageGroup], file_name: str) -> ExportArtifact:
    materialized = ensure_not_empty(groups, export_format='markdown')
    markdown = build_markdown(materialized, file_name)
    artifact = ExportArtifact(
        content=markdown.encode('utf-8'),
        file_name=markdown_file_name(file_name),
        media_type=MARKDOWN_MEDIA_TYPE,
    )
    logger.debug('Rendered markdown export %s (%d bytes)', artifact.file_name, artifact.size)
    return artifact
