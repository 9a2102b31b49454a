"""Unit tests for geocoding and destination resolution."""

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from strollerscout.fetch.executor import RetryingExecutor
from strollerscout.fetch.metrics import FetchMetrics
from strollerscout.services.errors import DestinationQueryError, GeocodingError
from strollerscout.services.geocoding import (
    GeocodingService,
    extract_nearby_cities,
    extract_state_code,
    haversine_distance_miles,
    parse_location_query,
    search_radius_miles,
)
from strollerscout.services.models import DestinationMode


AUSTIN = {
    "lat": "30.2672",
    "lon": "-97.7431",
    "display_name": "Austin, Travis County, Texas, United States",
    "address": {"state": "Texas", "ISO3166-2-lvl4": "US-TX"},
}

OVERPASS_ELEMENTS = [
    {"lat": 29.4241, "lon": -98.4936, "tags": {"name": "San Antonio", "addr:state": "TX"}},
    {"lat": 30.5083, "lon": -97.6789, "tags": {"name": "Round Rock", "addr:state": "TX"}},
    {"lat": 30.5083, "lon": -97.6789, "tags": {"name": "Round Rock", "addr:state": "TX"}},
    {"lat": 29.8833, "lon": -97.9414, "tags": {"name": "San Marcos", "addr:state": "TX"}},
    {"lat": 31.5493, "lon": -97.1467, "tags": {"name": "Waco", "addr:state": "TX"}},
    {"lat": 30.0, "lon": -97.0},
]

Handler = Callable[[httpx.Request], httpx.Response]


async def _no_sleep(_seconds: float) -> None:
    return None


def _service(handler: Handler) -> GeocodingService:
    executor = RetryingExecutor(
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=_no_sleep,
        metrics=FetchMetrics(),
    )
    return GeocodingService(executor, user_agent="StrollerScout/1.0 (test)")


def _router(
    nominatim: list[dict[str, Any]] | int,
    overpass: dict[str, Any] | int = 200,
    calls: list[str] | None = None,
) -> Handler:
    """Route Nominatim and Overpass requests to canned responses."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.host)
        if request.url.host == "nominatim.openstreetmap.org":
            if isinstance(nominatim, int):
                return httpx.Response(nominatim)
            return httpx.Response(200, json=nominatim)
        if isinstance(overpass, int):
            return httpx.Response(overpass, json={"elements": []})
        return httpx.Response(200, json=overpass)

    return handler


class TestParseLocationQuery:
    """Tests for destination intent parsing."""

    def test_drive_time(self) -> None:
        """Test "N hours from X" parsing."""
        query = parse_location_query("2 hours from Austin, TX")

        assert query.kind == "drive_time"
        assert query.hours == 2.0
        assert query.base == "Austin, TX"

    def test_drive_time_with_drive_word(self) -> None:
        """Test "1.5 hr drive from X" parsing."""
        query = parse_location_query("1.5 hr drive from Denver")

        assert query.kind == "drive_time"
        assert query.hours == 1.5
        assert query.base == "Denver"

    def test_distance(self) -> None:
        """Test "N miles from X" parsing."""
        query = parse_location_query("100 miles around Seattle")

        assert query.kind == "distance"
        assert query.miles == 100.0
        assert query.base == "Seattle"

    def test_near(self) -> None:
        """Test "near X" parsing."""
        query = parse_location_query("close to Portland, OR")

        assert query.kind == "near"
        assert query.base == "Portland, OR"

    def test_plain_city(self) -> None:
        """Test that anything else is a city name."""
        query = parse_location_query("  Boston  ")

        assert query.kind == "city"
        assert query.base == "Boston"


class TestSearchRadius:
    """Tests for search radius derivation."""

    def test_drive_time_uses_60_mph(self) -> None:
        """Test 2 hours -> 120 miles."""
        assert search_radius_miles(parse_location_query("2 hours from Austin")) == 120

    def test_radius_clamped(self) -> None:
        """Test clamping to 20..500 miles."""
        assert search_radius_miles(parse_location_query("5 miles from Austin")) == 20
        assert search_radius_miles(parse_location_query("12 hours from Austin")) == 500

    def test_near_default(self) -> None:
        """Test the fixed radius for "near" queries."""
        assert search_radius_miles(parse_location_query("near Austin")) == 60


class TestHelpers:
    """Tests for pure helpers."""

    def test_haversine_known_distance(self) -> None:
        """Test Austin to San Antonio is about 73 miles."""
        distance = haversine_distance_miles(30.2672, -97.7431, 29.4241, -98.4936)

        assert 70 < distance < 76

    def test_state_code_from_iso(self) -> None:
        """Test extraction from the ISO 3166-2 field."""
        assert extract_state_code(AUSTIN) == "TX"

    def test_state_code_fallback(self) -> None:
        """Test the state_code fallback and missing data."""
        assert extract_state_code({"address": {"state_code": "ca"}}) == "CA"
        assert extract_state_code({"address": {"ISO3166-2-lvl4": "MX-JAL"}}) is None
        assert extract_state_code({}) is None

    def test_nearby_sorted_deduplicated_and_limited(self) -> None:
        """Test ranking, de-duplication and the three result cap."""
        places = extract_nearby_cities(OVERPASS_ELEMENTS, 30.2672, -97.7431)

        assert [p.name for p in places] == ["Round Rock", "San Marcos", "San Antonio"]
        assert places[0].display_name == "Round Rock, TX"
        assert places[0].distance_miles <= places[1].distance_miles


class TestGeocodeLocation:
    """Tests for GeocodingService.geocode_location."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        """Test that a Nominatim result becomes a GeoLocation."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[AUSTIN])

        location = await _service(handler).geocode_location("Austin, TX")

        assert location.lat == pytest.approx(30.2672)
        assert location.lon == pytest.approx(-97.7431)
        assert location.state_code == "TX"
        assert location.state_name == "Texas"
        assert seen[0].url.params["countrycodes"] == "us"
        assert seen[0].headers["User-Agent"] == "StrollerScout/1.0 (test)"

    @pytest.mark.asyncio
    async def test_cached_by_normalized_text(self) -> None:
        """Test that equivalent queries hit the cache."""
        calls: list[str] = []
        service = _service(_router([AUSTIN], calls=calls))

        await service.geocode_location("Austin, TX")
        await service.geocode_location("  austin, tx ")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        """Test the user-facing message for empty results."""
        service = _service(_router([]))

        with pytest.raises(GeocodingError, match="Location not found"):
            await service.geocode_location("Atlantis")

    @pytest.mark.asyncio
    async def test_invalid_coordinates(self) -> None:
        """Test that out-of-range coordinates are rejected, not cached."""
        service = _service(_router([{**AUSTIN, "lat": "123.0"}]))

        with pytest.raises(GeocodingError, match="Invalid coordinates"):
            await service.geocode_location("Nowhere")

    @pytest.mark.asyncio
    async def test_upstream_failure(self) -> None:
        """Test that HTTP failures surface as GeocodingError."""
        service = _service(_router(503))

        with pytest.raises(GeocodingError, match="service unavailable"):
            await service.geocode_location("Austin")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test the dedicated timeout message."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GeocodingError, match="timed out"):
            await _service(handler).geocode_location("Austin")


class TestResolveDestinationQuery:
    """Tests for GeocodingService.resolve_destination_query."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", [None, "", " a "])
    async def test_too_short(self, text: str | None) -> None:
        """Test that short input fails before any upstream call."""
        calls: list[str] = []
        service = _service(_router([AUSTIN], calls=calls))

        with pytest.raises(DestinationQueryError):
            await service.resolve_destination_query(text)
        assert calls == []

    @pytest.mark.asyncio
    async def test_too_long(self) -> None:
        """Test the 500 character limit."""
        service = _service(_router([AUSTIN]))

        with pytest.raises(DestinationQueryError, match="too long"):
            await service.resolve_destination_query("x" * 501)

    @pytest.mark.asyncio
    async def test_city_is_direct(self) -> None:
        """Test that a plain city resolves directly without Overpass."""
        calls: list[str] = []
        service = _service(_router([AUSTIN], calls=calls))

        result = await service.resolve_destination_query("Austin, TX")

        assert result.mode == DestinationMode.DIRECT
        assert result.destination == AUSTIN["display_name"]
        assert calls == ["nominatim.openstreetmap.org"]

    @pytest.mark.asyncio
    async def test_drive_time_returns_suggestions(self) -> None:
        """Test that fuzzy intents produce nearby suggestions."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "overpass-api.de":
                return httpx.Response(200, json={"elements": OVERPASS_ELEMENTS})
            return httpx.Response(200, json=[AUSTIN])

        result = await _service(handler).resolve_destination_query("2 hours from Austin")

        assert result.mode == DestinationMode.SUGGESTIONS
        assert result.origin == AUSTIN["display_name"]
        assert len(result.suggestions) == 3
        overpass = seen[-1]
        assert overpass.method == "POST"
        assert b"around%3A193121" in overpass.content

    @pytest.mark.asyncio
    async def test_overpass_failure_degrades_to_direct(self) -> None:
        """Test that an Overpass outage falls back to the base city."""
        service = _service(_router([AUSTIN], overpass=504))

        result = await service.resolve_destination_query("near Austin")

        assert result.mode == DestinationMode.DIRECT
        assert result.destination == AUSTIN["display_name"]

    @pytest.mark.asyncio
    async def test_results_cached(self) -> None:
        """Test that resolved queries are served from cache."""
        calls: list[str] = []
        service = _service(
            _router([AUSTIN], overpass={"elements": OVERPASS_ELEMENTS}, calls=calls)
        )

        first = await service.resolve_destination_query("near Austin")
        second = await service.resolve_destination_query("NEAR austin")

        assert first == second
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_reset_clears_caches(self) -> None:
        """Test that reset forces new upstream calls."""
        calls: list[str] = []
        service = _service(_router([AUSTIN], calls=calls))

        await service.resolve_destination_query("Austin")
        service.reset()
        await service.resolve_destination_query("Austin")

        assert len(calls) == 2
