from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
        populate_by_name=True,
    )

    app_name: str = 'Annotation Export'

    export_dir: Path = Field(
        default=Path('./exports'),
        validation_alias=AliasChoices('ANNOTEXPORT_EXPORT_DIR', 'EXPORT_DIR'),
    )
    log_level: str = Field(
        default='INFO',
        validation_alias=AliasChoices('ANNOTEXPORT_LOG_LEVEL', 'LOG_LEVEL'),
    )

    # CLI input guard
    max_snapshot_bytes: int = 200 * 1024 * 1024

    # PDF export
    pdf_font_name: str = 'Helvetica'
    pdf_title_font_size: int = 14
    pdf_subtitle_font_size: int = 10
    pdf_page_heading_font_size: int = 12
    pdf_body_font_size: int = 11
    pdf_page_margin: int = 24
    # 96 CSS pixels per inch, 72 points per inch
    pdf_px_to_pt: float = 72 / 96
    pdf_fallback_image_width_px: int = 320


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
