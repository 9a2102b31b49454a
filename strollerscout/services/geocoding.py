"""Geocoding and destination-intent resolution.

- Converts user text into US coordinates (Nominatim).
- Expands fuzzy intents ("2 hours from X") into nearby destination
  suggestions (Overpass), falling back to the base city when Overpass
  is unavailable.
"""

import math
import re
from typing import Any

import structlog
from pydantic import ValidationError

from strollerscout.cache.content import ContentCache
from strollerscout.cache.keys import text_key
from strollerscout.fetch.executor import RetryingExecutor
from strollerscout.fetch.models import (
    FailureClass,
    RequestDescriptor,
    RetryPolicy,
    UpstreamError,
)
from strollerscout.services.errors import DestinationQueryError, GeocodingError
from strollerscout.services.models import (
    DestinationMode,
    DestinationResult,
    GeoLocation,
    LocationQuery,
    NearbyPlace,
)


logger = structlog.get_logger()

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
OVERPASS_INTERPRETER_URL = "https://overpass-api.de/api/interpreter"

NOMINATIM_POLICY = RetryPolicy(max_retries=1, per_attempt_timeout_ms=8000)
OVERPASS_POLICY = RetryPolicy(max_retries=0, per_attempt_timeout_ms=12000)

GEOCODE_CACHE_TTL_SECONDS = 6 * 60 * 60
GEOCODE_CACHE_MAX_ENTRIES = 500

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 500

MAX_RADIUS_MILES = 500
MIN_RADIUS_MILES = 20
NEAR_RADIUS_MILES = 60
MIN_OVERPASS_RADIUS_METERS = 10000
DEFAULT_DRIVE_SPEED_MPH = 60
MAX_SUGGESTIONS = 3
OVERPASS_RESULT_LIMIT = 20

METERS_PER_MILE = 1609.34
EARTH_RADIUS_MILES = 3958.8

_HOURS_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*(hour|hr|hrs|hours)\s*(drive|driving)?\s*(from|of)\s+(.+)",
    re.IGNORECASE,
)
_MILES_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*(mile|miles|mi)\s*(from|of|around|near)\s+(.+)",
    re.IGNORECASE,
)
_NEAR_PATTERN = re.compile(r"(near|around|close to)\s+(.+)", re.IGNORECASE)

_TIMEOUT_MESSAGE = "Geocoding timed out. Please try again."
_UNAVAILABLE_MESSAGE = "Failed to geocode location: Geocoding service unavailable"
_NOT_FOUND_MESSAGE = "Failed to geocode location: Location not found. Please enter a US city."
_INVALID_COORDINATES_MESSAGE = (
    "Failed to geocode location: Invalid coordinates from geocoding service"
)


def parse_location_query(text: str) -> LocationQuery:
    """Classify a destination query as drive-time, distance, near, or city.

    Args:
        text: Raw destination text.

    Returns:
        Parsed query.
    """
    normalized = text.strip()

    match = _HOURS_PATTERN.search(normalized)
    if match:
        return LocationQuery(
            kind="drive_time", hours=float(match.group(1)), base=match.group(5).strip()
        )

    match = _MILES_PATTERN.search(normalized)
    if match:
        return LocationQuery(
            kind="distance", miles=float(match.group(1)), base=match.group(4).strip()
        )

    match = _NEAR_PATTERN.search(normalized)
    if match:
        return LocationQuery(kind="near", base=match.group(2).strip())

    return LocationQuery(kind="city", base=normalized)


def haversine_distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def extract_state_code(result: dict[str, Any]) -> str | None:
    """Normalize Nominatim's ISO 3166-2 fields into a US two-letter code.

    Args:
        result: One Nominatim search result.

    Returns:
        State code such as ``"CA"``, or None.
    """
    address = result.get("address")
    if not isinstance(address, dict):
        return None

    iso_code = (
        address.get("ISO3166-2-lvl4")
        or address.get("ISO3166-2-lvl3")
        or address.get("ISO3166-2-lvl2")
    )
    if isinstance(iso_code, str) and iso_code.startswith("US-"):
        return iso_code[3:].upper()

    fallback = address.get("state_code")
    if isinstance(fallback, str) and len(fallback) >= 2:  # noqa: PLR2004
        return fallback[:2].upper()

    return None


def extract_nearby_cities(
    elements: list[Any],
    origin_lat: float,
    origin_lon: float,
    limit: int = MAX_SUGGESTIONS,
) -> list[NearbyPlace]:
    """Turn Overpass elements into ranked, de-duplicated suggestions.

    Args:
        elements: Raw Overpass ``elements`` array.
        origin_lat: Origin latitude.
        origin_lon: Origin longitude.
        limit: Maximum suggestions returned.

    Returns:
        Places sorted by distance from the origin.
    """
    places: list[NearbyPlace] = []
    for element in elements:
        if not isinstance(element, dict):
            continue
        tags = element.get("tags")
        if not isinstance(tags, dict) or not tags.get("name"):
            continue
        lat, lon = element.get("lat"), element.get("lon")
        if not isinstance(lat, int | float) or not isinstance(lon, int | float):
            continue

        name = str(tags["name"])
        state = tags.get("addr:state") or tags.get("is_in:state") or tags.get("state")
        distance = haversine_distance_miles(origin_lat, origin_lon, lat, lon)
        places.append(
            NearbyPlace(
                name=name,
                display_name=f"{name}, {state}" if state else name,
                lat=lat,
                lon=lon,
                distance_miles=math.floor(distance + 0.5),
            )
        )

    places.sort(key=lambda place: place.distance_miles)

    unique: list[NearbyPlace] = []
    seen: set[str] = set()
    for place in places:
        key = place.display_name.lower()
        if key in seen:
            continue
        unique.append(place)
        seen.add(key)
        if len(unique) >= limit:
            break

    return unique


def search_radius_miles(query: LocationQuery) -> float:
    """Derive the suggestion search radius from the query intent."""
    if query.kind == "drive_time" and query.hours is not None:
        return min(
            MAX_RADIUS_MILES,
            max(MIN_RADIUS_MILES, query.hours * DEFAULT_DRIVE_SPEED_MPH),
        )
    if query.kind == "distance" and query.miles is not None:
        return min(MAX_RADIUS_MILES, max(MIN_RADIUS_MILES, query.miles))
    return NEAR_RADIUS_MILES


class GeocodingService:
    """Resolves destination text into coordinates and nearby suggestions."""

    def __init__(
        self,
        executor: RetryingExecutor,
        *,
        user_agent: str,
        geocode_cache: ContentCache[str, GeoLocation] | None = None,
        suggestion_cache: ContentCache[str, DestinationResult] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            executor: Executor for Nominatim and Overpass calls.
            user_agent: User-Agent sent upstream (required by Nominatim policy).
            geocode_cache: Cache of geocoded locations keyed by normalized text.
            suggestion_cache: Cache of resolved destination queries.
        """
        self._executor = executor
        self._user_agent = user_agent
        if geocode_cache is None:
            geocode_cache = ContentCache(
                GEOCODE_CACHE_TTL_SECONDS, GEOCODE_CACHE_MAX_ENTRIES, name="geocode"
            )
        if suggestion_cache is None:
            suggestion_cache = ContentCache(
                GEOCODE_CACHE_TTL_SECONDS, GEOCODE_CACHE_MAX_ENTRIES, name="suggestions"
            )
        self._geocode_cache = geocode_cache
        self._suggestion_cache = suggestion_cache
        self._log = logger.bind(component="services", subcomponent="geocoding")

    def reset(self) -> None:
        """Clear both caches (test harness use)."""
        self._geocode_cache.reset()
        self._suggestion_cache.reset()

    async def geocode_location(self, location: str) -> GeoLocation:
        """Geocode a US location.

        Args:
            location: Free-text location such as ``"Austin, TX"``.

        Returns:
            Geocoded location.

        Raises:
            GeocodingError: With a user-safe message on any failure.
        """
        cache_key = text_key(location)
        cached = self._geocode_cache.get(cache_key)
        if cached is not None:
            return cached

        request = RequestDescriptor(
            url=NOMINATIM_SEARCH_URL,
            headers={"User-Agent": self._user_agent},
            params={
                "q": location,
                "format": "json",
                "addressdetails": 1,
                "limit": 1,
                "countrycodes": "us",
            },
        )

        try:
            data = await self._executor.execute(request, policy=NOMINATIM_POLICY)
        except UpstreamError as exc:
            self._log.warning("geocode_failed", **exc.to_dict())
            if exc.failure.failure_class == FailureClass.NETWORK_TIMEOUT:
                raise GeocodingError(_TIMEOUT_MESSAGE) from exc
            raise GeocodingError(_UNAVAILABLE_MESSAGE) from exc

        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise GeocodingError(_NOT_FOUND_MESSAGE)

        parsed = self._parse_location(data[0])
        self._geocode_cache.set(cache_key, parsed)
        return parsed

    def _parse_location(self, result: dict[str, Any]) -> GeoLocation:
        """Validate one Nominatim result before it is cached.

        Raises:
            GeocodingError: If the coordinates are missing or out of range.
        """
        try:
            lat = float(result.get("lat", "nan"))
            lon = float(result.get("lon", "nan"))
        except (TypeError, ValueError) as exc:
            raise GeocodingError(_INVALID_COORDINATES_MESSAGE) from exc
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise GeocodingError(_INVALID_COORDINATES_MESSAGE)

        address = result.get("address")
        state_name = address.get("state") if isinstance(address, dict) else None

        try:
            return GeoLocation(
                lat=lat,
                lon=lon,
                display_name=str(result.get("display_name") or ""),
                state_name=state_name if isinstance(state_name, str) else None,
                state_code=extract_state_code(result),
            )
        except ValidationError as exc:
            raise GeocodingError(_INVALID_COORDINATES_MESSAGE) from exc

    async def resolve_destination_query(self, text: str | None) -> DestinationResult:
        """Resolve free-text destination intent.

        Plain city names resolve directly. Drive-time, distance and "near"
        queries return up to three nearby suggestions, or fall back to the
        base city when no suggestions are available.

        Args:
            text: Destination text.

        Returns:
            Direct or suggestions result.

        Raises:
            DestinationQueryError: If the text is too short or too long.
            GeocodingError: If the base location cannot be geocoded.
        """
        trimmed = (text or "").strip()
        if len(trimmed) < MIN_QUERY_LENGTH:
            msg = f"Destination must be at least {MIN_QUERY_LENGTH} characters"
            raise DestinationQueryError(msg)
        if len(trimmed) > MAX_QUERY_LENGTH:
            msg = f"Destination is too long (max {MAX_QUERY_LENGTH} characters)"
            raise DestinationQueryError(msg)

        cache_key = text_key(trimmed)
        cached = self._suggestion_cache.get(cache_key)
        if cached is not None:
            return cached

        query = parse_location_query(trimmed)
        base = await self.geocode_location(query.base)

        if query.kind == "city":
            result = DestinationResult(
                mode=DestinationMode.DIRECT,
                destination=base.display_name or query.base,
            )
        else:
            result = await self._build_nearby_result(query, base)

        self._suggestion_cache.set(cache_key, result)
        return result

    async def _build_nearby_result(
        self, query: LocationQuery, base: GeoLocation
    ) -> DestinationResult:
        """Build suggestions around a base location, degrading to direct mode."""
        base_name = base.display_name or query.base

        try:
            nearby = await self._get_nearby_cities(
                base.lat, base.lon, search_radius_miles(query)
            )
        except UpstreamError as exc:
            self._log.warning("nearby_suggestions_unavailable", **exc.to_dict())
            nearby = []

        nearby = [
            place
            for place in nearby
            if place.display_name.lower() != base_name.lower()
        ]

        if not nearby:
            return DestinationResult(mode=DestinationMode.DIRECT, destination=base_name)

        return DestinationResult(
            mode=DestinationMode.SUGGESTIONS,
            origin=base_name,
            suggestions=nearby,
        )

    async def _get_nearby_cities(
        self, lat: float, lon: float, radius_miles: float
    ) -> list[NearbyPlace]:
        """Query Overpass for populated places around a point.

        Raises:
            UpstreamError: If Overpass fails.
        """
        radius_meters = min(
            MAX_RADIUS_MILES * METERS_PER_MILE,
            max(MIN_OVERPASS_RADIUS_METERS, radius_miles * METERS_PER_MILE),
        )
        overpass_query = (
            "[out:json][timeout:25];"
            f'(node["place"~"city|town|village"](around:{round(radius_meters)},{lat},{lon}););'
            f"out body {OVERPASS_RESULT_LIMIT};"
        )
        request = RequestDescriptor(
            url=OVERPASS_INTERPRETER_URL,
            method="POST",
            headers={"User-Agent": self._user_agent},
            data={"data": overpass_query},
        )

        body = await self._executor.execute(request, policy=OVERPASS_POLICY)
        elements = body.get("elements") if isinstance(body, dict) else None
        if not isinstance(elements, list):
            return []
        return extract_nearby_cities(elements, lat, lon)
