from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal, Sequence

from annotexport.config import Settings
from annotexport.errors import EmptyInput, ExportError, RenderFailure
from annotexport.ordering import group_by_page, order_annotations
from annotexport.report.markdown_export import render_markdown
from annotexport.report.pdf_export import render_pdf
from annotexport.types import ExportArtifact, PageGroup, parse_annotations


logger = logging.getLogger(__name__)

ExportFormat = Literal['markdown', 'pdf']

_FORMAT_ALIASES: dict[str, ExportFormat] = {
    'md': 'markdown',
    'markdown': 'markdown',
    'pdf': 'pdf',
}

_FORMAT_LABELS: dict[str, str] = {
    'markdown': 'Markdown',
    'pdf': 'PDF',
}


def normalize_format(value: str) -> ExportFormat:
    token = str(value or '').strip().lower()
    try:
        return _FORMAT_ALIASES[token]
    except KeyError as exc:
        raise ValueError(f'unsupported export format: {value!r}') from exc


def prepare_groups(annotations: Sequence[Any]) -> list[PageGroup]:
    """Parse a snapshot, put it in reading order and bucket it by page."""
    return group_by_page(order_annotations(parse_annotations(list(annotations or []))))


async def export_annotations(
    annotations: Sequence[Any],
    file_name: str,
    export_format: str,
    *,
    exported_at: datetime | None = None,
    settings: Settings | None = None,
) -> ExportArtifact:
    fmt = normalize_format(export_format)
    label = _FORMAT_LABELS[fmt]
    if not annotations:
        raise EmptyInput(export_format=fmt)

    logger.info('Exporting %d annotations of %s as %s', len(annotations), file_name, label)
    try:
        groups = prepare_groups(annotations)
        if fmt == 'markdown':
            artifact = render_markdown(groups, file_name)
        else:
            artifact = await render_pdf(groups, file_name, exported_at=exported_at, settings=settings)
    except EmptyInput:
        raise
    except ExportError as exc:
        logger.error('%s export of %s failed: %s', label, file_name, exc.message)
        raise
    except Exception as exc:
        logger.exception('%s export of %s failed', label, file_name)
        raise RenderFailure(
            f'Failed to export {label}: {type(exc).__name__}: {exc}',
            export_format=fmt,
        ) from exc

    logger.info('Exported %s (%d bytes)', artifact.file_name, artifact.size)
    return artifact


def export_markdown(annotations: Sequence[Any], file_name: str) -> ExportArtifact:
    """Synchronous Markdown export; the Markdown path never awaits."""
    fmt: ExportFormat = 'markdown'
    if not annotations:
        raise EmptyInput(export_format=fmt)
    try:
        return render_markdown(prepare_groups(annotations), file_name)
    except ExportError:
        raise
    except Exception as exc:
        logger.exception('Markdown export of %s failed', file_name)
        raise RenderFailure(f'Failed to export Markdown: {type(exc).__name__}: {exc}', export_format=fmt) from exc
