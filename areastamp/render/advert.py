from __future__ import annotations

import logging

from PIL import ImageDraw, ImageFont

from areastamp.constants import DEFAULT_JPEG_QUALITY, PIXEL_COORD_MAX
from areastamp.errors import TextTooWideError
from areastamp.models import Advert, Align, Case
from areastamp.render.encoding import encode_image
from areastamp.render.typography import text_width

LOGGER = logging.getLogger(__name__)


def apply_case(location: str, text_case: Case) -> str:
    if text_case is Case.UPPER:
        return location.upper()
    return location


def build_text(advert: Advert, location: str) -> str:
    return f"{advert.text_prefix}{apply_case(location, advert.text_case)}"


def text_origin_x(text_x: int, width: int, text_align: Align) -> int:
    if text_align is Align.CENTER:
        return max(0, text_x - width // 2)
    return text_x


def measure_text(text: str, font: ImageFont.FreeTypeFont | ImageFont.ImageFont) -> int:
    width = text_width(text, font)
    if width > PIXEL_COORD_MAX:
        raise TextTooWideError(f"error calculating text width: {width}px exceeds {PIXEL_COORD_MAX}")
    return width


def _log_hit(advert: Advert, x: int, width: int) -> None:
    overflow = x + width - advert.image_width
    if overflow > 0:
        LOGGER.info("hit %s, overflowed by %dpx", advert.name, overflow)
    else:
        LOGGER.info("hit %s", advert.name)


def render_advert(
    advert: Advert,
    location: str,
    font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
    *,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """Draw ``text_prefix + location`` onto every frame of the advert and encode it.

    ``font`` must already be scaled to ``advert.text_scale``. The shared base
    image is copied before drawing; the advert itself is never touched.
    Raises ``TextTooWideError`` or ``EncodeError``.
    """
    text = build_text(advert, location)
    width = measure_text(text, font)
    x = text_origin_x(advert.text_x, width, advert.text_align)
    _log_hit(advert, x, width)

    canvas = advert.image.copy()
    # RGB canvases blend the text alpha; RGBA canvases take it as-is
    draw = ImageDraw.Draw(canvas, "RGBA" if canvas.mode == "RGB" else None)
    for frame in range(advert.frames):
        y = advert.text_y + frame * advert.image_height
        draw.text((x, y), text, fill=advert.text_color, font=font)

    return encode_image(canvas, advert.output_format, jpeg_quality=jpeg_quality)
