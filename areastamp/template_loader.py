from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from PIL import Image, UnidentifiedImageError

from areastamp.constants import PIXEL_COORD_MAX
from areastamp.errors import StartupError
from areastamp.models import Advert, AdvertDefinition, Align, Case, OutputFormat

LOGGER = logging.getLogger(__name__)

_REQUIRED_KEYS = (
    "image",
    "image_width",
    "image_height",
    "frames",
    "text_align",
    "text_x",
    "text_y",
    "text_color",
    "text_scale",
    "text_case",
    "output_format",
)

_FORMAT_ALIASES = {"jpg": "jpeg"}


def _pixel_int(name: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise StartupError(f"advert {name!r}: {key} must be an integer, got {value!r}")
    if value < 0:
        raise StartupError(f"advert {name!r}: {key} must not be negative, got {value}")
    if value > PIXEL_COORD_MAX:
        raise StartupError(f"advert {name!r}: {key} must be less than {PIXEL_COORD_MAX}")
    return value


def _parse_enum(name: str, key: str, value: Any, enum_cls: type, aliases: Mapping[str, str] | None = None):
    token = str(value or "").strip().lower()
    if aliases:
        token = aliases.get(token, token)
    try:
        return enum_cls(token)
    except ValueError:
        choices = "|".join(member.value for member in enum_cls)
        raise StartupError(f"advert {name!r}: {key} must be one of {choices}, got {value!r}") from None


def _parse_color(name: str, value: Any) -> tuple[int, int, int, int]:
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        raise StartupError(f"advert {name!r}: text_color must be a list of 4 RGBA values")
    channels: list[int] = []
    for channel in value:
        if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel <= 255:
            raise StartupError(f"advert {name!r}: text_color values must be integers in 0..255, got {value!r}")
        channels.append(channel)
    return channels[0], channels[1], channels[2], channels[3]


def _parse_scale(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StartupError(f"advert {name!r}: text_scale must be a number, got {value!r}")
    scale = float(value)
    if scale <= 0:
        raise StartupError(f"advert {name!r}: text_scale must be positive, got {value!r}")
    return scale


def normalize_advert_dict(name: str, data: Any, base_dir: Path | None = None) -> AdvertDefinition:
    if not isinstance(data, dict):
        raise StartupError(f"advert {name!r} is not a mapping")
    missing = [key for key in _REQUIRED_KEYS if key not in data]
    if missing:
        raise StartupError(f"advert {name!r} is missing keys: {', '.join(missing)}")

    image = Path(str(data["image"]))
    if base_dir is not None and not image.is_absolute():
        image = base_dir / image

    prefix = data.get("text_prefix")
    return AdvertDefinition(
        image=image,
        image_width=_pixel_int(name, "image_width", data["image_width"]),
        image_height=_pixel_int(name, "image_height", data["image_height"]),
        frames=_pixel_int(name, "frames", data["frames"]),
        text_align=_parse_enum(name, "text_align", data["text_align"], Align),
        text_x=_pixel_int(name, "text_x", data["text_x"]),
        text_y=_pixel_int(name, "text_y", data["text_y"]),
        text_color=_parse_color(name, data["text_color"]),
        text_scale=_parse_scale(name, data["text_scale"]),
        text_case=_parse_enum(name, "text_case", data["text_case"], Case),
        output_format=_parse_enum(name, "output_format", data["output_format"], OutputFormat, _FORMAT_ALIASES),
        text_prefix="" if prefix is None else str(prefix),
    )


def _decode_png(name: str, path: Path) -> Image.Image:
    try:
        with Image.open(path, formats=["PNG"]) as image:
            image.load()
            has_alpha = image.mode in {"RGBA", "LA", "PA"} or "transparency" in image.info
            return image.convert("RGBA" if has_alpha else "RGB")
    except FileNotFoundError as exc:
        raise StartupError(f"advert {name!r}: failed to open image {str(path)!r}") from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise StartupError(f"advert {name!r}: failed to decode image {str(path)!r}: {exc}") from exc


def open_advert(name: str, definition: AdvertDefinition) -> Advert:
    """Load an advert from its definition. Notably this decodes the PNG from disk into memory."""
    image = _decode_png(name, definition.image)
    expected = (definition.image_width, definition.image_height * definition.frames)
    if image.size != expected:
        LOGGER.warning(
            "advert %s: image %s is %sx%s, config declares %sx%s (%s frames)",
            name,
            definition.image,
            image.width,
            image.height,
            expected[0],
            expected[1],
            definition.frames,
        )
    return Advert(
        name=name,
        image=image,
        image_width=definition.image_width,
        image_height=definition.image_height,
        frames=definition.frames,
        text_align=definition.text_align,
        text_x=definition.text_x,
        text_y=definition.text_y,
        text_color=definition.text_color,
        text_scale=definition.text_scale,
        text_case=definition.text_case,
        output_format=definition.output_format,
        text_prefix=definition.text_prefix,
    )


def load_advert(name: str, data: Any, base_dir: Path | None = None) -> Advert:
    return open_advert(name, normalize_advert_dict(name, data, base_dir=base_dir))


def load_adverts(raw: Any, base_dir: Path | None = None) -> dict[str, Advert]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise StartupError("adverts must be a mapping of name -> advert definition")
    adverts: dict[str, Advert] = {}
    for name, data in raw.items():
        adverts[str(name)] = load_advert(str(name), data, base_dir=base_dir)
        LOGGER.debug("loaded advert %s", name)
    return adverts
