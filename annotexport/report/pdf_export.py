from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, StyleSheet1, getSampleStyleSheet
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.platypus import BaseDocTemplate, Frame, Image, KeepTogether, PageTemplate, Paragraph, Spacer

from annotexport.config import Settings, get_settings
from annotexport.errors import ExportError, RenderFailure
from annotexport.report.common import ensure_not_empty, sanitize_file_base
from annotexport.report.images import ImageSize, decode_data_url, measure_data_url
from annotexport.types import ExportArtifact, PageGroup, ScreenshotAnnotation, ScreenshotData, TextAnnotation


logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
PDF_MEDIA_TYPE = 'application/pdf'
CJK_FONT_NAME = 'STSong-Light'

# share of the frame height a single screenshot may take, leaving room for its comment
MAX_IMAGE_HEIGHT_RATIO = 0.85


@dataclass(frozen=True)
class ImageBox:
    width: float
    height: float
    # True when only a bounding box is known and reportlab must keep the aspect ratio itself
    proportional: bool = False


def pdf_file_name(file_name: str) -> str:
    return f'{sanitize_file_base(file_name)} - highlights.pdf'


def content_width_pt(settings: Settings) -> float:
    return PAGE_WIDTH - 2 * settings.pdf_page_margin


def content_height_pt(settings: Settings) -> float:
    return PAGE_HEIGHT - 2 * settings.pdf_page_margin


def _has_css_size(screenshot: ScreenshotData) -> bool:
    return (
        screenshot.css_width is not None
        and screenshot.css_height is not None
        and screenshot.css_width > 0
        and screenshot.css_height > 0
    )


def resolve_image_box(
    screenshot: ScreenshotData,
    measured: ImageSize | None,
    *,
    content_width: float,
    max_height: float,
    px_to_pt: float,
    fallback_width_px: float,
) -> ImageBox:
    """Size a screenshot in points, scaling down uniformly to fit the frame.

    Capture-time CSS size wins; a decoded pixel size is divided by the device
    pixel ratio first. Without either, the image is drawn at the fallback width
    and its height follows the aspect ratio, bounded by ``max_height``.
    """
    width_pt: float | None = None
    height_pt: float | None = None

    if _has_css_size(screenshot):
        width_pt = float(screenshot.css_width) * px_to_pt
        height_pt = float(screenshot.css_height) * px_to_pt
    elif measured is not None:
        ratio = screenshot.device_pixel_ratio
        if ratio is None or ratio <= 0:
            ratio = 1.0
        width_pt = measured.width / ratio * px_to_pt
        height_pt = measured.height / ratio * px_to_pt

    if width_pt is None or height_pt is None or width_pt <= 0 or height_pt <= 0:
        side = min(fallback_width_px * px_to_pt, content_width)
        return ImageBox(width=side, height=max_height, proportional=True)

    scale = min(1.0, content_width / width_pt, max_height / height_pt)
    return ImageBox(width=width_pt * scale, height=height_pt * scale)


def _needs_measurement(item: ScreenshotAnnotation) -> bool:
    return bool(item.screenshot.data_url) and not _has_css_size(item.screenshot)


async def measure_screenshots(groups: Iterable[PageGroup]) -> dict[str, ImageSize | None]:
    targets = [
        item
        for group in groups
        for item in group.items
        if isinstance(item, ScreenshotAnnotation) and _needs_measurement(item)
    ]
    if not targets:
        return {}
    sizes = await asyncio.gather(*(measure_data_url(item.screenshot.data_url or '') for item in targets))
    measured = {item.id: size for item, size in zip(targets, sizes)}
    failed = sum(1 for size in sizes if size is None)
    if failed:
        logger.info('Measured %d screenshots, %d fell back to default width', len(targets), failed)
    return measured


def _contains_cjk(text: str) -> bool:
    for ch in text:
        if '\u4e00' <= ch <= '\u9fff':
            return True
    return False


def _pick_font(groups: list[PageGroup], file_name: str, preferred: str) -> str:
    texts = [file_name]
    for group in groups:
        for item in group.items:
            texts.append(item.comment_text)
            if isinstance(item, TextAnnotation):
                texts.append(item.text)
    if not any(_contains_cjk(text) for text in texts):
        return preferred
    try:
        pdfmetrics.registerFont(UnicodeCIDFont(CJK_FONT_NAME))
        return CJK_FONT_NAME
    except Exception as exc:
        logger.warning('Failed to register CJK font %s: %s', CJK_FONT_NAME, exc)
        return preferred


def _build_styles(font: str, settings: Settings) -> StyleSheet1:
    styles = getSampleStyleSheet()
    body_size = settings.pdf_body_font_size

    styles.add(
        ParagraphStyle(
            name='ExportTitle',
            parent=styles['Normal'],
            fontName=font,
            fontSize=settings.pdf_title_font_size,
            leading=int(settings.pdf_title_font_size * 1.3),
            spaceAfter=12,
        )
    )
    styles.add(
        ParagraphStyle(
            name='ExportSubtitle',
            parent=styles['Normal'],
            fontName=font,
            fontSize=settings.pdf_subtitle_font_size,
            leading=int(settings.pdf_subtitle_font_size * 1.3),
            textColor=colors.HexColor('#666666'),
            spaceAfter=12,
        )
    )
    styles.add(
        ParagraphStyle(
            name='PageHeading',
            parent=styles['Normal'],
            fontName=font,
            fontSize=settings.pdf_page_heading_font_size,
            leading=int(settings.pdf_page_heading_font_size * 1.3),
            spaceBefore=4,
            spaceAfter=8,
        )
    )
    styles.add(
        ParagraphStyle(
            name='HighlightText',
            parent=styles['Normal'],
            fontName=font,
            fontSize=body_size,
            leading=body_size * 1.35,
        )
    )
    styles.add(
        ParagraphStyle(
            name='HighlightComment',
            parent=styles['Normal'],
            fontName=font,
            fontSize=body_size,
            leading=body_size * 1.35,
            leftIndent=12,
            spaceBefore=6,
        )
    )
    return styles


def _markup(text: str) -> str:
    return escape(text).replace('\r\n', '\n').replace('\r', '\n').replace('\n', '<br/>')


def _comment_flowables(item: TextAnnotation | ScreenshotAnnotation, styles: StyleSheet1) -> list:
    comment = item.comment_text
    if not comment:
        return []
    return [Paragraph('• ' + _markup(comment), styles['HighlightComment'])]


def _text_flowables(item: TextAnnotation, styles: StyleSheet1) -> list:
    text = item.text
    body = f'- {_markup(text)}' if text else '-'
    return [Paragraph(body, styles['HighlightText']), *_comment_flowables(item, styles)]


def _screenshot_flowables(
    item: ScreenshotAnnotation,
    styles: StyleSheet1,
    *,
    measured: ImageSize | None,
    settings: Settings,
) -> list:
    data_url = item.screenshot.data_url
    if not data_url:
        return [
            Paragraph('- Screenshot (image unavailable)', styles['HighlightText']),
            *_comment_flowables(item, styles),
        ]

    try:
        decoded = decode_data_url(data_url)
    except ValueError as exc:
        raise RenderFailure(
            f'Failed to export PDF: screenshot {item.id} has an unreadable image ({exc})',
            export_format='pdf',
        ) from exc

    box = resolve_image_box(
        item.screenshot,
        measured,
        content_width=content_width_pt(settings),
        max_height=content_height_pt(settings) * MAX_IMAGE_HEIGHT_RATIO,
        px_to_pt=settings.pdf_px_to_pt,
        fallback_width_px=settings.pdf_fallback_image_width_px,
    )
    image = Image(
        io.BytesIO(decoded.data),
        width=box.width,
        height=box.height,
        kind='proportional' if box.proportional else 'direct',
        hAlign='LEFT',
    )
    return [KeepTogether([image, *_comment_flowables(item, styles)])]


def _format_exported_at(exported_at: datetime) -> str:
    if exported_at.tzinfo is None:
        exported_at = exported_at.replace(tzinfo=timezone.utc)
    exported_at = exported_at.astimezone(timezone.utc)
    return exported_at.strftime('%Y-%m-%d %H:%M:%S UTC')


def _draw_footer(canvas, doc, *, font: str, file_name: str) -> None:
    canvas.saveState()
    footer_y = doc.bottomMargin / 2
    canvas.setFillColor(colors.HexColor('#6B7280'))
    canvas.setFont(font, 7.5)
    canvas.drawString(doc.leftMargin, footer_y, file_name)
    canvas.drawRightString(PAGE_WIDTH - doc.rightMargin, footer_y, f'Page {canvas.getPageNumber()}')
    canvas.restoreState()


def build_pdf_bytes(
    groups: list[PageGroup],
    file_name: str,
    *,
    measured: dict[str, ImageSize | None],
    exported_at: datetime,
    settings: Settings,
) -> bytes:
    font = _pick_font(groups, file_name, settings.pdf_font_name)
    styles = _build_styles(font, settings)
    margin = settings.pdf_page_margin

    story: list = [
        Paragraph(f'Highlights Export: {_markup(file_name)}', styles['ExportTitle']),
        Paragraph(f'Exported {_format_exported_at(exported_at)}', styles['ExportSubtitle']),
    ]

    for group in groups:
        story.append(Paragraph(_markup(group.label), styles['PageHeading']))
        for item in group.items:
            if isinstance(item, ScreenshotAnnotation):
                story.extend(
                    _screenshot_flowables(item, styles, measured=measured.get(item.id), settings=settings)
                )
            else:
                story.extend(_text_flowables(item, styles))
            story.append(Spacer(1, 14))
        story.append(Spacer(1, 4))

    buffer = io.BytesIO()
    document = BaseDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=margin,
        rightMargin=margin,
        topMargin=margin,
        bottomMargin=margin,
        title=f'Highlights - {file_name}',
        author=settings.app_name,
        subject='Exported highlights and screenshots',
        invariant=1,
    )
    frame = Frame(
        document.leftMargin,
        document.bottomMargin,
        document.width,
        document.height,
        leftPadding=0,
        rightPadding=0,
        topPadding=0,
        bottomPadding=0,
        id='content',
    )

    def _on_page(canvas, doc):
        canvas.setProducer(settings.app_name)
        _draw_footer(canvas, doc, font=font, file_name=file_name)

    document.addPageTemplates([PageTemplate(id='highlights', frames=[frame], onPage=_on_page)])
    document.build(story)
    return buffer.getvalue()


async def render_pdf(
    groups: Iterable[PageGroup],
    file_name: str,
    *,
    exported_at: datetime | None = None,
    settings: Settings | None = None,
) -> ExportArtifact:
    materialized = ensure_not_empty(groups, export_format='pdf')
    settings = settings or get_settings()
    display_name = ' '.join(str(file_name or '').split()) or 'document'

    try:
        measured = await measure_screenshots(materialized)
        content = build_pdf_bytes(
            materialized,
            display_name,
            measured=measured,
            exported_at=exported_at or datetime.now(timezone.utc),
            settings=settings,
        )
    except ExportError:
        raise
    except Exception as exc:
        raise RenderFailure(f'Failed to export PDF: {type(exc).__name__}: {exc}', export_format='pdf') from exc

    artifact = ExportArtifact(content=content, file_name=pdf_file_name(file_name), media_type=PDF_MEDIA_TYPE)
    logger.debug('Rendered PDF export %s (%d bytes)', artifact.file_name, artifact.size)
    return artifact
