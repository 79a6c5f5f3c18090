from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from annotexport.config import get_settings
from annotexport.errors import ExportError
from annotexport.exporter import export_annotations
from annotexport.ordering import count_by_kind, filter_annotations, group_by_page
from annotexport.position import resolve_vertical_offset
from annotexport.storage import read_json, save_artifact
from annotexport.types import ExportArtifact, ScreenshotAnnotation, parse_annotations


_FORMATS_BY_CHOICE: dict[str, tuple[str, ...]] = {
    'md': ('markdown',),
    'pdf': ('pdf',),
    'all': ('markdown', 'pdf'),
}


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _error(message: str, **extra: Any) -> int:
    _print_json({'status': 'error', 'message': message, **extra})
    return 2


def _load_snapshot(path: Path) -> list[Any]:
    settings = get_settings()
    if not path.exists() or not path.is_file():
        raise FileNotFoundError(f'Annotation snapshot not found: {path}')
    file_size = int(path.stat().st_size)
    if file_size > int(settings.max_snapshot_bytes):
        raise ValueError(
            f'Annotation snapshot too large: {file_size} bytes, '
            f'max allowed {int(settings.max_snapshot_bytes)} bytes'
        )

    payload = read_json(path)
    if isinstance(payload, dict):
        for key in ('highlights', 'annotations'):
            rows = payload.get(key)
            if isinstance(rows, list):
                return rows
        raise ValueError('Snapshot object has no "highlights" or "annotations" list')
    if isinstance(payload, list):
        return payload
    raise ValueError(f'Snapshot must be a JSON list or object, got {type(payload).__name__}')


async def _render_all(rows: list[Any], file_name: str, formats: tuple[str, ...]) -> list[tuple[str, ExportArtifact]]:
    rendered: list[tuple[str, ExportArtifact]] = []
    for fmt in formats:
        rendered.append((fmt, await export_annotations(rows, file_name, fmt)))
    return rendered


def cmd_export(args: argparse.Namespace) -> int:
    snapshot_path = Path(args.annotations).expanduser().resolve()
    try:
        rows = _load_snapshot(snapshot_path)
    except (OSError, ValueError) as exc:
        return _error(str(exc))

    file_name = str(args.file_name or snapshot_path.stem)
    out_dir = Path(args.out_dir).expanduser().resolve() if args.out_dir else get_settings().export_dir

    # every format is rendered before anything is written, so a failure leaves no partial output
    try:
        rendered = asyncio.run(_render_all(rows, file_name, _FORMATS_BY_CHOICE[args.format]))
    except ExportError as exc:
        return _error(exc.message, format=exc.export_format)

    written = []
    try:
        for fmt, artifact in rendered:
            path = save_artifact(artifact, out_dir)
            written.append({'format': fmt, 'path': str(path), 'size_bytes': artifact.size})
    except (OSError, ValueError) as exc:
        for entry in written:
            Path(entry['path']).unlink(missing_ok=True)
        return _error(f'Failed to write export: {type(exc).__name__}: {exc}')

    _print_json(
        {
            'status': 'ok',
            'file_name': file_name,
            'annotation_count': len(rows),
            'artifacts': written,
        }
    )
    return 0


def cmd_order(args: argparse.Namespace) -> int:
    snapshot_path = Path(args.annotations).expanduser().resolve()
    try:
        rows = _load_snapshot(snapshot_path)
    except (OSError, ValueError) as exc:
        return _error(str(exc))

    annotations = parse_annotations(rows)
    visible = filter_annotations(annotations, tab=args.tab, query=args.query or '')
    counts = count_by_kind(annotations)

    groups = []
    for group in group_by_page(visible):
        groups.append(
            {
                'page': group.page_number,
                'label': group.label,
                'items': [
                    {
                        'id': item.id,
                        'kind': 'screenshot' if isinstance(item, ScreenshotAnnotation) else 'text',
                        'vertical_offset': resolve_vertical_offset(item),
                    }
                    for item in group.items
                ],
            }
        )

    _print_json(
        {
            'status': 'ok',
            'counts': {
                'annotations': counts.annotations,
                'screenshots': counts.screenshots,
                'total': counts.total,
                'visible': len(visible),
            },
            'groups': groups,
        }
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Export PDF highlights and screenshots as Markdown or PDF')
    sub = parser.add_subparsers(dest='command', required=True)

    export = sub.add_parser('export', help='Render an annotation snapshot into export files')
    export.add_argument('--annotations', required=True, help='Path to the JSON annotation snapshot')
    export.add_argument('--file-name', required=False, help='Display name of the annotated PDF')
    export.add_argument('--format', choices=sorted(_FORMATS_BY_CHOICE), default='all')
    export.add_argument('--out-dir', required=False, help='Directory for the exported files')
    export.set_defaults(func=cmd_export)

    order = sub.add_parser('order', help='Print annotations in reading order, grouped by page')
    order.add_argument('--annotations', required=True, help='Path to the JSON annotation snapshot')
    order.add_argument('--tab', choices=['all', 'annotations', 'screenshots'], default='all')
    order.add_argument('--query', required=False, help='Case-insensitive text/comment filter')
    order.set_defaults(func=cmd_order)

    return parser


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
