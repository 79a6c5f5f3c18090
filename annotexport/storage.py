from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .config import get_settings
from .types import ExportArtifact


def export_root() -> Path:
    root = get_settings().export_dir
    root.mkdir(parents=True, exist_ok=True)
    return root


def _safe_file_name(file_name: str) -> str:
    # suggested names are display strings, never paths
    token = str(file_name or '').replace('\\', '/').split('/')[-1].strip()
    if not token or token in {'.', '..'}:
        raise ValueError(f'invalid artifact file name: {file_name!r}')
    return token


def write_bytes_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_bytes(data)
    tmp.replace(path)


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding='utf-8'))


def save_artifact(artifact: ExportArtifact, directory: Path | None = None) -> Path:
    target_dir = directory if directory is not None else export_root()
    path = target_dir / _safe_file_name(artifact.file_name)
    write_bytes_atomic(path, artifact.content)
    return path
