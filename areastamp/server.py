from __future__ import annotations

import logging

import uvicorn
from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.responses import PlainTextResponse

from areastamp.constants import APP_NAME, APP_VERSION
from areastamp.errors import RenderError
from areastamp.service import RenderJob, ServiceState

LOGGER = logging.getLogger(__name__)

NO_REMOTE_ADDRESS = "no remote address"
NOT_FOUND = "resource not found on server"


def get_state(request: Request) -> ServiceState:
    return request.app.state.service


def client_host(request: Request) -> str | None:
    if request.client is None or not request.client.host:
        return None
    return request.client.host


async def serve_advert(state: ServiceState, name: str, host: str | None) -> Response:
    advert = state.adverts.get(name)
    if advert is None:
        LOGGER.warning("404: %s", name)
        return PlainTextResponse(NOT_FOUND, status_code=status.HTTP_404_NOT_FOUND)
    if host is None:
        LOGGER.error("%s: %s", name, NO_REMOTE_ADDRESS)
        return PlainTextResponse(NO_REMOTE_ADDRESS, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    job = RenderJob(advert=advert, location=state.resolver.resolve(host))
    try:
        image = await state.gate.run(state.render, job)
    except RenderError as exc:
        message = f"error rendering {name}: {exc}"
        LOGGER.error(message)
        return PlainTextResponse(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception as exc:
        message = f"render worker failed for {name}: {exc!r}"
        LOGGER.exception(message)
        return PlainTextResponse(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(content=image, media_type=advert.mime_type)


def _info_text(request: Request, state: ServiceState) -> str:
    lines = [f"{key}: {value}" for key, value in request.headers.items()]
    host = client_host(request)
    if host is None:
        lines.append(f"ip: {NO_REMOTE_ADDRESS}")
        return "\n".join(lines) + "\n"
    details = state.resolver.describe(host)
    lines.append("")
    for key, value in details.to_dict().items():
        lines.append(f"{key}: {value if value is not None else 'unknown'}")
    return "\n".join(lines) + "\n"


def create_app(state: ServiceState) -> FastAPI:
    app = FastAPI(title=APP_NAME, version=APP_VERSION, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.service = state

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return f"{APP_NAME} {APP_VERSION}"

    @app.get("/ip", response_class=PlainTextResponse)
    async def ip(request: Request) -> Response:
        host = client_host(request)
        if host is None:
            LOGGER.error("/ip: %s", NO_REMOTE_ADDRESS)
            return PlainTextResponse(NO_REMOTE_ADDRESS, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return PlainTextResponse(host)

    @app.get("/info", response_class=PlainTextResponse)
    async def info(request: Request, service: ServiceState = Depends(get_state)) -> str:
        return _info_text(request, service)

    @app.get("/ads/{name}")
    async def advert(name: str, request: Request, service: ServiceState = Depends(get_state)) -> Response:
        return await serve_advert(service, name, client_host(request))

    return app


def run_server(state: ServiceState, host: str, port: int, log_level: str = "info") -> None:
    app = create_app(state)
    LOGGER.info("Starting web server on %s:%s...", host, port)
    try:
        uvicorn.run(app, host=host, port=port, log_level=log_level.lower(), workers=1)
    finally:
        state.close()


__all__ = ["create_app", "run_server", "serve_advert"]
