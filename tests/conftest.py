from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from geoip2.errors import AddressNotFoundError
from PIL import Image

from areastamp.geo.locate import LocationResolver
from areastamp.service import ServiceState, build_state


class FakeCityReader:
    """Stands in for geoip2.database.Reader: ip -> (city names, country names)."""

    def __init__(self, records: dict[str, tuple[dict[str, str], dict[str, str]]]) -> None:
        self.records = records
        self.closed = False

    def city(self, ip: str) -> Any:
        if ip not in self.records:
            if "." not in ip and ":" not in ip:
                raise ValueError(f"{ip!r} does not appear to be an IPv4 or IPv6 address")
            raise AddressNotFoundError(f"The address {ip} is not in the database.")
        city_names, country_names = self.records[ip]
        return SimpleNamespace(
            city=SimpleNamespace(names=city_names),
            country=SimpleNamespace(names=country_names),
        )

    def close(self) -> None:
        self.closed = True


class FakeAsnReader:
    def __init__(self, records: dict[str, str]) -> None:
        self.records = records

    def asn(self, ip: str) -> Any:
        if ip not in self.records:
            raise AddressNotFoundError(f"The address {ip} is not in the database.")
        return SimpleNamespace(autonomous_system_organization=self.records[ip])


def make_png(path: Path, size: tuple[int, int], mode: str = "RGB", color: Any = "#FFFFFF") -> Path:
    Image.new(mode, size, color=color).save(path, format="PNG")
    return path


def advert_dict(image: str, **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "image": image,
        "image_width": 200,
        "image_height": 40,
        "frames": 1,
        "text_align": "left",
        "text_x": 4,
        "text_y": 8,
        "text_color": [0, 0, 0, 255],
        "text_scale": 16.0,
        "text_case": "default",
        "output_format": "png",
        "text_prefix": "Singles in ",
    }
    data.update(overrides)
    return data


@pytest.fixture()
def fake_resolver() -> LocationResolver:
    reader = FakeCityReader(
        {
            "203.0.113.7": ({"en": "Springfield", "de": "Springfeld"}, {"en": "United States"}),
            "testclient": ({"en": "Testville"}, {"en": "Testland"}),
            "198.51.100.1": ({}, {"en": "Nowhere"}),
        }
    )
    return LocationResolver(reader, FakeAsnReader({"203.0.113.7": "Example Telecom"}))


@pytest.fixture()
def service_config(tmp_path: Path) -> dict[str, Any]:
    make_png(tmp_path / "banner.png", (200, 40))
    make_png(tmp_path / "sprite.png", (120, 90), mode="RGBA", color=(30, 60, 90, 128))
    return {
        "config_dir": tmp_path,
        "font": None,
        "render_permits": 2,
        "jpeg_quality": 75,
        "adverts": {
            "banner.png": advert_dict("banner.png"),
            "sprite.jpg": advert_dict(
                "sprite.png",
                image_width=120,
                image_height=30,
                frames=3,
                text_align="center",
                text_x=60,
                text_y=5,
                text_color=[255, 255, 0, 255],
                text_scale=12.0,
                text_case="upper",
                output_format="jpeg",
            ),
        },
    }


@pytest.fixture()
def state(service_config: dict[str, Any], fake_resolver: LocationResolver):
    service = build_state(service_config, resolver=fake_resolver)
    yield service
    service.close()


@pytest.fixture()
def banner(state: ServiceState):
    return state.adverts["banner.png"]
