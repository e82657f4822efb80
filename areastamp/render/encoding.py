from __future__ import annotations

import io

from PIL import Image

from areastamp.constants import DEFAULT_JPEG_QUALITY
from areastamp.errors import EncodeError
from areastamp.models import OutputFormat

_ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa", "La"}


def has_alpha(image: Image.Image) -> bool:
    return image.mode in _ALPHA_MODES or "transparency" in image.info


def prepare_for_format(image: Image.Image, output_format: OutputFormat) -> Image.Image:
    """Drop the alpha channel when the target format cannot store it."""
    if has_alpha(image) and not output_format.supports_alpha:
        return image.convert("RGB")
    return image


def encode_image(
    image: Image.Image,
    output_format: OutputFormat,
    *,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    image = prepare_for_format(image, output_format)
    buffer = io.BytesIO()
    try:
        if output_format is OutputFormat.JPEG:
            image.save(buffer, format="JPEG", quality=max(1, min(100, jpeg_quality)))
        else:
            image.save(buffer, format=output_format.pil_format)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"failed to encode {output_format.value} image: {exc}") from exc
    return buffer.getvalue()
