from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
from dataclasses import dataclass
from urllib.parse import unquote_to_bytes

from PIL import Image, UnidentifiedImageError

from annotexport.errors import MeasurementFailure


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedDataUrl:
    media_type: str
    data: bytes


@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int


def decode_data_url(data_url: str) -> DecodedDataUrl:
    """Split a ``data:`` URL into its media type and payload bytes.

    Raises ``ValueError`` for anything that is not a well-formed data URL.
    """
    text = str(data_url or '').strip()
    if not text.lower().startswith('data:'):
        raise ValueError('not a data URL')
    header, sep, payload = text[5:].partition(',')
    if not sep:
        raise ValueError('data URL has no payload separator')

    params = [part.strip() for part in header.split(';')]
    media_type = params[0].lower() or 'text/plain'
    if any(part.lower() == 'base64' for part in params[1:]):
        compact = ''.join(payload.split())
        try:
            data = base64.b64decode(compact, validate=True)
        except binascii.Error as exc:
            raise ValueError(f'invalid base64 payload: {exc}') from exc
    else:
        data = unquote_to_bytes(payload)

    if not data:
        raise ValueError('data URL payload is empty')
    return DecodedDataUrl(media_type=media_type, data=data)


def measure_image_bytes(data: bytes) -> ImageSize:
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise MeasurementFailure(f'cannot decode image: {exc}') from exc
    if width <= 0 or height <= 0:
        raise MeasurementFailure(f'image has no area: {width}x{height}')
    return ImageSize(width=int(width), height=int(height))


def measure_data_url_sync(data_url: str) -> ImageSize:
    try:
        decoded = decode_data_url(data_url)
    except ValueError as exc:
        raise MeasurementFailure(str(exc)) from exc
    return measure_image_bytes(decoded.data)


async def measure_data_url(data_url: str) -> ImageSize | None:
    """Intrinsic pixel size of an embedded image, or ``None`` if it cannot be decoded."""
    try:
        return await asyncio.to_thread(measure_data_url_sync, data_url)
    except MeasurementFailure as exc:
        logger.debug('Screenshot measurement failed, using fallback size: %s', exc)
        return None
