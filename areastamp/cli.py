from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NoReturn

import typer

from areastamp.config import load_config, resolve_config_path, write_default_config
from areastamp.constants import APP_NAME, APP_VERSION
from areastamp.errors import RenderError, StartupError
from areastamp.geo.locate import LocationResolver, open_resolver
from areastamp.service import RenderJob, build_state

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Location-personalized advert image server.")
LOGGER = logging.getLogger("areastamp")

_CONFIG_HELP = "Config file (default: $AREASTAMP_CONFIG or ./config.yaml)."


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def _fail(message: str) -> NoReturn:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(1)


def _load(config: Path | None) -> dict:
    try:
        return load_config(config)
    except StartupError as exc:
        _fail(str(exc))


@app.command()
def serve(
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
    host: str | None = typer.Option(None, "--host", help="Bind address (overrides config)."),
    port: int | None = typer.Option(None, "--port", min=1, max=65535, help="Bind port (overrides config)."),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Load every advert and database, then serve HTTP."""
    cfg = _load(config)
    level = log_level or str(cfg.get("log_level") or "info")
    _setup_logging(level)
    LOGGER.info("Initializing %s %s", APP_NAME, APP_VERSION)

    try:
        state = build_state(cfg)
    except StartupError as exc:
        LOGGER.error("startup failed: %s", exc)
        _fail(f"Startup failed: {exc}")

    from areastamp.server import run_server

    run_server(
        state,
        host=host or str(cfg.get("host") or "0.0.0.0"),
        port=int(port or cfg.get("port") or 3035),
        log_level=level,
    )


@app.command()
def render(
    name: str = typer.Argument(..., help="Advert name from the config."),
    out: Path = typer.Option(..., "--out", help="Output file."),
    location: str | None = typer.Option(None, "--location", help="Literal location text."),
    ip: str | None = typer.Option(None, "--ip", help="Resolve the location from this address."),
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render one advert to a file without starting the server."""
    _setup_logging(log_level)
    if (location is None) == (ip is None):
        _fail("Pass exactly one of --location or --ip.")

    cfg = _load(config)
    # a literal location needs no database
    resolver = LocationResolver(city_reader=None) if location is not None else None
    try:
        state = build_state(cfg, resolver=resolver)
    except StartupError as exc:
        _fail(f"Startup failed: {exc}")

    try:
        advert = state.adverts.get(name)
        if advert is None:
            _fail(f"Unknown advert: {name}")
        text = location if location is not None else state.resolver.resolve(str(ip))
        try:
            image = state.render(RenderJob(advert=advert, location=text))
        except RenderError as exc:
            _fail(f"Render failed: {exc}")
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(image)
    finally:
        state.close()
    typer.echo(f"Rendered {name} ({advert.mime_type}, {len(image)} bytes) -> {out}")


@app.command()
def lookup(
    ip: str = typer.Argument(..., help="IPv4 or IPv6 address."),
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Print what the location databases know about an address."""
    cfg = _load(config)
    try:
        city_db = resolve_config_path(cfg, cfg.get("geoip_city_db"))
        if city_db is None:
            raise StartupError("geoip_city_db is not configured")
        resolver = open_resolver(city_db, resolve_config_path(cfg, cfg.get("geoip_asn_db")))
    except StartupError as exc:
        _fail(str(exc))
    try:
        payload = resolver.describe(ip).to_dict()
        payload["location"] = resolver.resolve(ip)
    finally:
        resolver.close()
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command()
def check(
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
    log_level: str = typer.Option("warning", "--log-level"),
) -> None:
    """Load the config, adverts and databases, and report any startup error."""
    _setup_logging(log_level)
    cfg = _load(config)
    try:
        state = build_state(cfg)
    except StartupError as exc:
        _fail(f"Startup failed: {exc}")
    try:
        for name, advert in sorted(state.adverts.items()):
            typer.echo(
                f"{name}: {advert.image_width}x{advert.image_height} x{advert.frames} "
                f"{advert.output_format.value} align={advert.text_align.value}"
            )
    finally:
        state.close()
    typer.echo(f"OK. adverts={len(state.adverts)} font={state.fonts.path or 'built-in'}")


@app.command("init-config")
def init_config(
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    path = write_default_config(config, force=force)
    typer.echo(f"Config initialized: {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
