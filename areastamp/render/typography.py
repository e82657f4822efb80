from __future__ import annotations

import logging
import platform
import threading
from pathlib import Path

from PIL import ImageFont

LOGGER = logging.getLogger(__name__)


def _system_font_candidates() -> list[Path]:
    system = platform.system().lower()
    if "windows" in system:
        return [
            Path(r"C:\Windows\Fonts\DejaVuSans-Bold.ttf"),
            Path(r"C:\Windows\Fonts\arialbd.ttf"),
            Path(r"C:\Windows\Fonts\arial.ttf"),
        ]
    if "darwin" in system:
        return [
            Path("/Library/Fonts/DejaVuSans-Bold.ttf"),
            Path("/System/Library/Fonts/Supplemental/Arial Bold.ttf"),
            Path("/Library/Fonts/Arial Unicode.ttf"),
        ]
    return [
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
        Path("/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf"),
        Path("/usr/share/fonts/TTF/DejaVuSans-Bold.ttf"),
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    ]


def resolve_font_path(font_path: Path | None) -> Path | None:
    """Pick the first usable font file, or None for Pillow's built-in font."""
    candidates: list[Path] = []
    if font_path:
        candidates.append(font_path)
    candidates.extend(_system_font_candidates())
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def load_font(font_path: Path | None, size: float) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    if font_path is not None:
        return ImageFont.truetype(str(font_path), size=size)
    return ImageFont.load_default(size=size)


class FontSource:
    """Scaled fonts for one font file.

    FreeType faces are not shared between threads; every render worker keeps
    its own cache of scaled fonts.
    """

    def __init__(self, font_path: Path | None = None) -> None:
        self.path = resolve_font_path(font_path)
        if font_path is not None and self.path != font_path:
            LOGGER.warning("font %s not found, using %s", font_path, self.path or "built-in default")
        # fail at startup, not on the first request
        load_font(self.path, 12)
        self._local = threading.local()

    def get(self, scale: float) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        cache = getattr(self._local, "fonts", None)
        if cache is None:
            cache = self._local.fonts = {}
        font = cache.get(scale)
        if font is None:
            font = cache[scale] = load_font(self.path, scale)
        return font


def text_width(text: str, font: ImageFont.FreeTypeFont | ImageFont.ImageFont) -> int:
    """Width of ``text`` laid out from x=0: the right edge of its bounding box."""
    if not text:
        return 0
    _, _, right, _ = font.getbbox(text)
    return max(0, int(right))
