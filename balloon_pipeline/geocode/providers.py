"""External geocoding lookups: Nominatim reverse and GeoNames nearby features."""

from __future__ import annotations

from typing import Any

from balloon_pipeline.common.errors import ResolutionError
from balloon_pipeline.common.http import HttpClient, HttpRequestError, RetryConfig, TimeoutConfig
from balloon_pipeline.common.models import Coordinate

NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
GEONAMES_NEARBY_URL = "http://api.geonames.org/extendedFindNearbyJSON"


class NominatimReverse:
    """Primary lookup against an administrative-boundary service."""

    def __init__(self, client: HttpClient, endpoint: str = NOMINATIM_REVERSE_URL, zoom: int = 1) -> None:
        self.client = client
        self.endpoint = endpoint
        self.zoom = zoom

    def country(self, coordinate: Coordinate) -> str | None:
        """Return the country name, or None when the point has no country.

        Raises ResolutionError when the service cannot be reached or answers
        with something other than an address structure.
        """
        params = {
            "format": "json",
            "lat": coordinate.lat,
            "lon": coordinate.lon,
            "zoom": self.zoom,
            "addressdetails": 1,
        }
        try:
            payload = self.client.get_json(self.endpoint, params=params)
        except HttpRequestError as exc:
            raise ResolutionError(f"Nominatim lookup failed for {coordinate.key}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ResolutionError(f"Unexpected Nominatim payload for {coordinate.key}")

        address = payload.get("address") or {}
        country = address.get("country") if isinstance(address, dict) else None
        if country in (None, ""):
            return None
        return str(country)


class GeoNamesNearby:
    """Secondary lookup for named features such as oceans and seas."""

    def __init__(self, client: HttpClient, username: str, endpoint: str = GEONAMES_NEARBY_URL) -> None:
        self.client = client
        self.username = username
        self.endpoint = endpoint

    def water_body(self, coordinate: Coordinate) -> tuple[str, str] | None:
        """Return ``(category, name)`` of the nearby feature, or None."""
        params = {"lat": coordinate.lat, "lng": coordinate.lon, "username": self.username}
        try:
            payload = self.client.get_json(self.endpoint, params=params)
        except HttpRequestError as exc:
            raise ResolutionError(f"GeoNames lookup failed for {coordinate.key}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ResolutionError(f"Unexpected GeoNames payload for {coordinate.key}")
        if "status" in payload:
            # GeoNames reports quota and auth problems in-band with HTTP 200.
            status = payload["status"]
            message = status.get("message", "unknown error") if isinstance(status, dict) else str(status)
            raise ResolutionError(f"GeoNames error for {coordinate.key}: {message}")
        return _first_named_feature(payload)


def _first_named_feature(payload: dict[str, Any]) -> tuple[str, str] | None:
    for category, feature in payload.items():
        if isinstance(feature, dict) and feature.get("name"):
            return str(category), str(feature["name"])
    return None


def build_providers(geocoding_config: dict) -> tuple[HttpClient, NominatimReverse, GeoNamesNearby]:
    timeout_seconds = float(geocoding_config.get("timeout_seconds", 20))
    client = HttpClient(
        timeout=TimeoutConfig(connect=min(timeout_seconds, 10.0), read=timeout_seconds),
        retry=RetryConfig(max_attempts=int(geocoding_config.get("http_retry_attempts", 1))),
    )
    nominatim_cfg = geocoding_config["nominatim"]
    geonames_cfg = geocoding_config["geonames"]
    primary = NominatimReverse(client, endpoint=nominatim_cfg["endpoint"], zoom=int(nominatim_cfg["zoom"]))
    secondary = GeoNamesNearby(client, username=str(geonames_cfg["username"]), endpoint=geonames_cfg["endpoint"])
    return client, primary, secondary
