from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from areastamp.config import resolve_config_path
from areastamp.constants import DEFAULT_JPEG_QUALITY, DEFAULT_RENDER_PERMITS
from areastamp.errors import StartupError
from areastamp.gate import RenderGate
from areastamp.geo.locate import LocationResolver, open_resolver
from areastamp.models import Advert
from areastamp.render.advert import render_advert
from areastamp.render.typography import FontSource
from areastamp.template_loader import load_adverts

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RenderJob:
    advert: Advert
    location: str


@dataclass
class ServiceState:
    """Everything a request needs, built once before the listener binds."""

    adverts: dict[str, Advert]
    fonts: FontSource
    resolver: LocationResolver
    gate: RenderGate
    jpeg_quality: int = DEFAULT_JPEG_QUALITY

    def render(self, job: RenderJob) -> bytes:
        font = self.fonts.get(job.advert.text_scale)
        return render_advert(job.advert, job.location, font, jpeg_quality=self.jpeg_quality)

    def close(self) -> None:
        self.gate.close()
        self.resolver.close()


def _int_option(cfg: dict[str, Any], key: str, default: int) -> int:
    value = cfg.get(key, default)
    if isinstance(value, bool):
        raise StartupError(f"{key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise StartupError(f"{key} must be an integer, got {value!r}") from exc


def build_state(cfg: dict[str, Any], resolver: LocationResolver | None = None) -> ServiceState:
    """Load adverts, font and geoip databases. Any failure raises StartupError."""
    adverts = load_adverts(cfg.get("adverts"), base_dir=cfg.get("config_dir"))
    LOGGER.info("Done loading images (%d adverts)", len(adverts))

    try:
        fonts = FontSource(resolve_config_path(cfg, cfg.get("font")))
    except OSError as exc:
        raise StartupError(f"failed to load font: {exc}") from exc

    if resolver is None:
        city_db = resolve_config_path(cfg, cfg.get("geoip_city_db"))
        if city_db is None:
            raise StartupError("geoip_city_db is not configured")
        resolver = open_resolver(city_db, resolve_config_path(cfg, cfg.get("geoip_asn_db")))

    permits = _int_option(cfg, "render_permits", DEFAULT_RENDER_PERMITS)
    if permits < 1:
        raise StartupError(f"render_permits must be at least 1, got {permits}")

    return ServiceState(
        adverts=adverts,
        fonts=fonts,
        resolver=resolver,
        gate=RenderGate(permits),
        jpeg_quality=_int_option(cfg, "jpeg_quality", DEFAULT_JPEG_QUALITY),
    )
