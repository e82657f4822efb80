from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from PIL import Image


class Align(str, Enum):
    LEFT = "left"
    CENTER = "center"


class Case(str, Enum):
    # the exact string the location lookup gives us
    DEFAULT = "default"
    UPPER = "upper"


class OutputFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"

    @property
    def pil_format(self) -> str:
        return "PNG" if self is OutputFormat.PNG else "JPEG"

    @property
    def mime_type(self) -> str:
        return "image/png" if self is OutputFormat.PNG else "image/jpeg"

    @property
    def supports_alpha(self) -> bool:
        return self is OutputFormat.PNG


@dataclass(slots=True)
class AdvertDefinition:
    """One raw advert entry, as written in the config file."""

    image: Path
    image_width: int
    image_height: int
    # number of frames in a vertically stacked sprite sheet
    frames: int
    text_align: Align
    # left OR center of text, depending on text_align
    text_x: int
    # top of text
    text_y: int
    text_color: tuple[int, int, int, int]
    text_scale: float
    text_case: Case
    output_format: OutputFormat
    text_prefix: str = ""


@dataclass(frozen=True, slots=True)
class Advert:
    name: str
    image: Image.Image
    image_width: int
    image_height: int
    frames: int
    text_align: Align
    text_x: int
    text_y: int
    text_color: tuple[int, int, int, int]
    text_scale: float
    text_case: Case
    output_format: OutputFormat
    text_prefix: str = ""

    @property
    def mime_type(self) -> str:
        return self.output_format.mime_type


@dataclass(slots=True)
class IpDetails:
    ip: str
    city: str | None = None
    country: str | None = None
    isp: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "ip": self.ip,
            "isp": self.isp,
            "city": self.city,
            "country": self.country,
        }
