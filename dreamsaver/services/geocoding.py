"""Nominatim-style geocoding client used to place shipping addresses on a map."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from dreamsaver.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Coordinates:
    latitude: float
    longitude: float


class Geocoder(Protocol):
    def geocode(self, query: str) -> Coordinates | None:
        """Resolve free text to coordinates, or ``None`` when nothing matches."""


class NominatimGeocoder:
    """Synchronous wrapper around the ``/search`` endpoint. Failures resolve to ``None``."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._base_url = self._settings.geocoder_url.rstrip("/")
        self._client = client or httpx.Client()
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def geocode(self, query: str) -> Coordinates | None:
        if not query.strip():
            return None
        try:
            response = self._client.get(
                f"{self._base_url}/search",
                params={"format": "json", "limit": 1, "q": query},
                headers={"User-Agent": self._settings.geocoder_user_agent},
                timeout=self._settings.geocoder_timeout_seconds,
            )
            response.raise_for_status()
            results = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("geocoding failed", extra={"query": query, "error": str(exc)})
            return None

        if not isinstance(results, list) or not results:
            return None
        try:
            return Coordinates(latitude=float(results[0]["lat"]), longitude=float(results[0]["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("geocoder returned an unreadable result", extra={"query": query})
            return None


def geocode_address(
    geocoder: Geocoder,
    *,
    street: str,
    city: str,
    state: str,
    country: str,
) -> Coordinates | None:
    """Try the full address first, then fall back to a coarser city-level match."""

    full_query = ", ".join(part for part in (street, city, state, country) if part)
    coordinates = geocoder.geocode(full_query)
    if coordinates is None:
        coordinates = geocoder.geocode(", ".join(part for part in (city, country) if part))
    return coordinates


__all__ = ["Coordinates", "Geocoder", "NominatimGeocoder", "geocode_address"]
