from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

import yaml

from areastamp.constants import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_NAME,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_RENDER_PERMITS,
)
from areastamp.errors import StartupError

DEFAULT_CONFIG: dict[str, Any] = {
    "host": "0.0.0.0",
    "port": 3035,
    "geoip_city_db": "GeoLite2-City.mmdb",
    "geoip_asn_db": None,
    "font": None,
    "render_permits": DEFAULT_RENDER_PERMITS,
    "jpeg_quality": DEFAULT_JPEG_QUALITY,
    "log_level": "info",
    "adverts": {},
}

_DEFAULT_CONFIG_TEXT = """\
# areastamp service config
host: 0.0.0.0
port: 3035
# MaxMind GeoLite2 City database, required
geoip_city_db: GeoLite2-City.mmdb
# optional GeoLite2 ASN database, used for the isp line of /info
geoip_asn_db: null
# optional TTF font; defaults to DejaVu Sans Bold when installed
font: null
render_permits: 2
jpeg_quality: 75
log_level: info

# name -> advert, served at /ads/<name>
# image paths are relative to this file
adverts:
  example.png:
    image: example.png
    image_width: 468
    image_height: 60
    frames: 1
    text_align: center
    text_x: 234
    text_y: 18
    text_color: [255, 255, 255, 255]
    text_scale: 24.0
    text_case: upper
    output_format: png
    text_prefix: "Singles in "
"""


def get_config_path(path: Path | None = None) -> Path:
    if path is not None:
        return path
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path.cwd() / DEFAULT_CONFIG_NAME


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_config_text(text: str, suffix: str) -> Any:
    if suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load the service config, merged over DEFAULT_CONFIG.

    The returned dict carries ``config_dir`` so relative paths inside the file
    (images, databases, font) resolve against the file's own directory.
    """
    cfg_path = get_config_path(path)
    try:
        text = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise StartupError(f"failed to open {cfg_path}") from exc
    except OSError as exc:
        raise StartupError(f"failed to read {cfg_path}: {exc}") from exc

    try:
        loaded = _parse_config_text(text, cfg_path.suffix.lower()) or {}
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise StartupError(f"failed to deserialize {cfg_path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise StartupError(f"config file is not a mapping: {cfg_path}")

    cfg = _deep_merge(DEFAULT_CONFIG, loaded)
    cfg["config_dir"] = cfg_path.resolve().parent
    return cfg


def resolve_config_path(cfg: dict[str, Any], value: Any) -> Path | None:
    if not value:
        return None
    path = Path(str(value)).expanduser()
    base_dir = cfg.get("config_dir")
    if not path.is_absolute() and base_dir is not None:
        path = Path(base_dir) / path
    return path


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = get_config_path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg_path.write_text(_DEFAULT_CONFIG_TEXT, encoding="utf-8")
    return cfg_path
