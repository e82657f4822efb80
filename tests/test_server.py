import asyncio
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from areastamp.constants import APP_NAME, APP_VERSION
from areastamp.errors import EncodeError
from areastamp.server import create_app, serve_advert


@pytest.fixture()
def client(state):
    with TestClient(create_app(state)) as test_client:
        yield test_client


def test_index_reports_name_and_version(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == f"{APP_NAME} {APP_VERSION}"
    assert response.headers["content-type"].startswith("text/plain")


def test_unknown_advert_is_404_with_text_body(client: TestClient) -> None:
    response = client.get("/ads/does-not-exist.png")
    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text


@pytest.mark.parametrize(
    ("name", "mime", "size", "mode"),
    [
        ("banner.png", "image/png", (200, 40), "RGB"),
        ("sprite.jpg", "image/jpeg", (120, 90), "RGB"),
    ],
)
def test_advert_is_rendered_with_declared_mime_type(
    client: TestClient, name: str, mime: str, size: tuple[int, int], mode: str
) -> None:
    response = client.get(f"/ads/{name}")

    assert response.status_code == 200
    assert response.headers["content-type"] == mime
    image = Image.open(io.BytesIO(response.content))
    image.load()
    assert image.get_format_mimetype() == mime
    assert image.size == size
    assert image.mode == mode


def test_ip_echoes_client_address(client: TestClient) -> None:
    response = client.get("/ip")
    assert response.status_code == 200
    assert response.text == "testclient"


def test_info_dumps_headers_and_location(client: TestClient) -> None:
    response = client.get("/info", headers={"X-Probe": "42"})
    assert response.status_code == 200
    lines = response.text.splitlines()
    assert "x-probe: 42" in lines
    assert "ip: testclient" in lines
    assert "city: Testville" in lines
    assert "country: Testland" in lines
    assert "isp: unknown" in lines


def test_missing_client_address_is_500(state) -> None:
    response = asyncio.run(serve_advert(state, "banner.png", None))
    assert response.status_code == 500
    assert response.body == b"no remote address"


def test_unknown_name_wins_over_missing_address(state) -> None:
    response = asyncio.run(serve_advert(state, "nope", None))
    assert response.status_code == 404


def test_render_error_is_500_with_description(state) -> None:
    def failing_render(job):
        raise EncodeError("failed to encode jpeg image: disk on fire")

    state.render = failing_render
    response = asyncio.run(serve_advert(state, "banner.png", "203.0.113.7"))

    assert response.status_code == 500
    assert response.media_type == "text/plain"
    assert b"disk on fire" in response.body
    assert state.gate.in_flight == 0


def test_unexpected_worker_failure_is_500(state) -> None:
    def crashing_render(job):
        raise MemoryError("out of pixels")

    state.render = crashing_render
    response = asyncio.run(serve_advert(state, "banner.png", "203.0.113.7"))

    assert response.status_code == 500
    assert b"out of pixels" in response.body


def test_location_is_resolved_from_client_address(state) -> None:
    seen: list[str] = []
    original = state.render

    def recording_render(job):
        seen.append(job.location)
        return original(job)

    state.render = recording_render
    for host in ("203.0.113.7", "192.0.2.55"):
        response = asyncio.run(serve_advert(state, "banner.png", host))
        assert response.status_code == 200

    assert seen == ["Springfield", "your area"]
