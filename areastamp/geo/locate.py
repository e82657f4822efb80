from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import geoip2.database
import maxminddb
from geoip2.errors import GeoIP2Error

from areastamp.constants import DEFAULT_LOCATION
from areastamp.errors import StartupError
from areastamp.models import IpDetails

LOGGER = logging.getLogger(__name__)

_LOOKUP_ERRORS = (GeoIP2Error, maxminddb.InvalidDatabaseError, ValueError, TypeError)


def _first_name(record: Any) -> str | None:
    # no locale preference: whatever the database lists first wins
    names = getattr(record, "names", None)
    if not names:
        return None
    for value in names.values():
        return value
    return None


class LocationResolver:
    """Maps client addresses to place names using MaxMind readers.

    ``city_reader`` must provide ``city(ip)``; ``asn_reader`` (optional) must
    provide ``asn(ip)``. Every lookup failure degrades to ``fallback`` or None.
    """

    def __init__(self, city_reader: Any, asn_reader: Any | None = None, fallback: str = DEFAULT_LOCATION) -> None:
        self.city_reader = city_reader
        self.asn_reader = asn_reader
        self.fallback = fallback

    def _city_response(self, ip: str) -> Any | None:
        try:
            return self.city_reader.city(ip)
        except _LOOKUP_ERRORS as exc:
            LOGGER.debug("city lookup failed for %s: %s", ip, exc)
            return None

    def resolve(self, ip: str) -> str:
        response = self._city_response(ip)
        if response is None:
            return self.fallback
        return _first_name(getattr(response, "city", None)) or self.fallback

    def isp(self, ip: str) -> str | None:
        if self.asn_reader is None:
            return None
        try:
            response = self.asn_reader.asn(ip)
        except _LOOKUP_ERRORS as exc:
            LOGGER.debug("asn lookup failed for %s: %s", ip, exc)
            return None
        return getattr(response, "autonomous_system_organization", None)

    def describe(self, ip: str) -> IpDetails:
        details = IpDetails(ip=ip, isp=self.isp(ip))
        response = self._city_response(ip)
        if response is not None:
            details.city = _first_name(getattr(response, "city", None))
            details.country = _first_name(getattr(response, "country", None))
        return details

    def close(self) -> None:
        for reader in (self.city_reader, self.asn_reader):
            close = getattr(reader, "close", None)
            if close is not None:
                close()


def _open_reader(path: Path) -> geoip2.database.Reader:
    try:
        return geoip2.database.Reader(str(path))
    except FileNotFoundError as exc:
        raise StartupError(f"failed to load geoip database {path}: file not found") from exc
    except (maxminddb.InvalidDatabaseError, OSError, ValueError) as exc:
        raise StartupError(f"failed to load geoip database {path}: {exc}") from exc


def open_resolver(city_db: Path, asn_db: Path | None = None) -> LocationResolver:
    city_reader = _open_reader(city_db)
    asn_reader = _open_reader(asn_db) if asn_db is not None else None
    LOGGER.info("geoip database %s loaded", city_db)
    return LocationResolver(city_reader, asn_reader)
