"""Daily weather forecasts for trip planning.

US destinations use Weather.gov (two calls: the points lookup resolves the
gridpoint forecast URL, then that URL returns day/night periods).
International destinations use the OpenWeatherMap 5-day/3-hour forecast.
Both are folded into the same WeatherForecast shape.

Failures raise WeatherError with a user-safe message; callers decide
whether to degrade.
"""

import math
import re
from collections import Counter
from collections.abc import Callable
from datetime import date
from typing import Any

import structlog

from strollerscout.cache.content import ContentCache
from strollerscout.cache.keys import coordinate_key
from strollerscout.fetch.executor import RetryingExecutor
from strollerscout.fetch.models import (
    FailureClass,
    RequestDescriptor,
    RetryPolicy,
    UpstreamError,
)
from strollerscout.services.errors import WeatherError
from strollerscout.services.models import DailyForecast, WeatherForecast
from strollerscout.settings import get_settings


logger = structlog.get_logger()

ApiKeyProvider = Callable[[], str | None]

WEATHER_GOV_BASE_URL = "https://api.weather.gov"
OPENWEATHERMAP_FORECAST_URL = "https://api.openweathermap.org/data/2.5/forecast"
WEATHER_GOV_POLICY = RetryPolicy(per_attempt_timeout_ms=10000)
OPENWEATHERMAP_POLICY = RetryPolicy(per_attempt_timeout_ms=8000)
WEATHER_CACHE_TTL_SECONDS = 60 * 60
WEATHER_CACHE_MAX_ENTRIES = 100

DOMESTIC_COUNTRY_CODE = "US"
# 7 days of alternating day/night periods
WEATHER_GOV_MAX_PERIODS = 14
# 40 x 3-hour intervals is the free-tier maximum (5 days)
OPENWEATHERMAP_INTERVALS = 40
OPENWEATHERMAP_MAX_DAYS = 5
OPENWEATHERMAP_DEFAULT_CONDITION_ID = 800

WEATHER_FAILURE_PREFIX = "Failed to fetch weather: "
WEATHER_TIMEOUT_MESSAGE = "Weather service timed out. Please try again."
WEATHER_GOV_UNAVAILABLE_MESSAGE = (
    "Weather service unavailable for this location. Please try a US location."
)
OPENWEATHERMAP_KEY_MISSING_MESSAGE = (
    "OpenWeatherMap API key not configured. "
    "Set OPENWEATHERMAP_API_KEY environment variable."
)
UNAVAILABLE_SUMMARY = "Weather data unavailable"

_PRECIPITATION_PATTERN = re.compile(r"(\d+)%\s+chance", re.IGNORECASE)

# Estimated chance of precipitation per condition (OpenWeatherMap has no daily figure)
CONDITION_PRECIPITATION = {
    "Rainy": 70,
    "Stormy": 70,
    "Snowy": 60,
    "Cloudy": 20,
    "Foggy": 15,
    "Partly Cloudy": 10,
}

CONDITION_DESCRIPTORS = {
    "Sunny": "sunny skies",
    "Partly Cloudy": "partly cloudy skies",
    "Cloudy": "cloudy skies",
    "Rainy": "rain",
    "Snowy": "snow",
    "Stormy": "storms",
    "Foggy": "fog",
    "Unknown": "mixed conditions",
}


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def kelvin_to_fahrenheit(kelvin: float) -> int:
    """Convert Kelvin to whole degrees Fahrenheit."""
    return _round_half_up((kelvin - 273.15) * 9 / 5 + 32)


def map_condition_code(condition_id: Any) -> str:
    """Map an OpenWeatherMap condition id (e.g. 500, 800) to a label."""
    if not isinstance(condition_id, int) or isinstance(condition_id, bool):
        return "Unknown"
    if 200 <= condition_id <= 299:
        return "Stormy"
    if 300 <= condition_id <= 399 or 500 <= condition_id <= 599:
        return "Rainy"
    if 600 <= condition_id <= 699:
        return "Snowy"
    if 700 <= condition_id <= 799:
        return "Foggy"
    if condition_id == 800:
        return "Sunny"
    if condition_id == 801:
        return "Partly Cloudy"
    if 802 <= condition_id <= 804:
        return "Cloudy"
    return "Unknown"


def extract_precipitation_chance(text: Any) -> int:
    """Read ``"40% chance"`` style figures from forecast prose; 0 when absent."""
    if not isinstance(text, str):
        return 0
    match = _PRECIPITATION_PATTERN.search(text)
    if not match:
        return 0
    return min(int(match.group(1)), 100)


def dominant_condition(conditions: list[str]) -> str:
    """Most frequent condition; ties go to the one seen first."""
    return Counter(conditions).most_common(1)[0][0]


def summarize_weather_gov(forecast: list[DailyForecast]) -> str:
    """Summarize a Weather.gov forecast by temperature range and rain chance.

    Args:
        forecast: Daily forecast.

    Returns:
        A sentence such as ``"Expect temperatures between 62°F and 84°F
        with possible rain and warm weather."``.
    """
    highs = [day.high for day in forecast if day.high is not None]
    if not highs:
        return UNAVAILABLE_SUMMARY

    min_temp = min(highs)
    max_temp = max(highs)
    avg_precipitation = sum(day.precipitation for day in forecast) / len(forecast)

    conditions = []
    if avg_precipitation > 50:
        conditions.append("high chance of rain")
    elif avg_precipitation > 30:
        conditions.append("possible rain")

    if max_temp > 80:
        conditions.append("warm weather")
    elif min_temp < 50:
        conditions.append("cool temperatures")

    suffix = " with " + " and ".join(conditions) if conditions else ""
    return f"Expect temperatures between {min_temp}°F and {max_temp}°F{suffix}."


def summarize_openweathermap(forecast: list[DailyForecast]) -> str:
    """Summarize an OpenWeatherMap forecast by dominant condition and mean high."""
    highs = [day.high for day in forecast if day.high is not None]
    if not highs:
        return UNAVAILABLE_SUMMARY

    condition = dominant_condition([day.condition for day in forecast])
    descriptor = CONDITION_DESCRIPTORS.get(condition, "mixed conditions")
    avg_high = _round_half_up(sum(highs) / len(highs))
    return f"Expect {descriptor} with highs around {avg_high}°F."


def _owm_key_from_settings() -> str | None:
    return get_settings().openweathermap_key()


class WeatherService:
    """Routes forecasts by country and caches them by rounded coordinates."""

    def __init__(
        self,
        executor: RetryingExecutor,
        *,
        user_agent: str,
        api_key: ApiKeyProvider | None = None,
        cache: ContentCache[str, WeatherForecast] | None = None,
        weather_gov_url: str = WEATHER_GOV_BASE_URL,
        openweathermap_url: str = OPENWEATHERMAP_FORECAST_URL,
    ) -> None:
        """Initialize the service.

        Args:
            executor: Executor for all forecast calls.
            user_agent: User-Agent sent upstream (Weather.gov requires one).
            api_key: OpenWeatherMap key provider; defaults to reading
                OPENWEATHERMAP_API_KEY on every international lookup.
            cache: Forecast cache; OpenWeatherMap keys carry an ``owm:`` prefix.
            weather_gov_url: Weather.gov base URL.
            openweathermap_url: OpenWeatherMap forecast endpoint.
        """
        self._executor = executor
        self._user_agent = user_agent
        self._api_key = api_key or _owm_key_from_settings
        if cache is None:
            cache = ContentCache(
                WEATHER_CACHE_TTL_SECONDS,
                WEATHER_CACHE_MAX_ENTRIES,
                name="weather",
            )
        self._cache = cache
        self._weather_gov_url = weather_gov_url.rstrip("/")
        self._openweathermap_url = openweathermap_url
        self._log = logger.bind(component="services", subcomponent="weather")

    @property
    def cache(self) -> ContentCache[str, WeatherForecast]:
        """Forecast cache."""
        return self._cache

    def reset(self) -> None:
        """Drop cached forecasts (test harness use)."""
        self._cache.reset()

    async def get_weather_forecast(
        self,
        lat: float,
        lon: float,
        country_code: str | None = None,
    ) -> WeatherForecast:
        """Fetch a daily forecast for a location.

        Args:
            lat: Latitude.
            lon: Longitude.
            country_code: ISO 3166-1 alpha-2 code; anything other than US
                (or empty) is served by OpenWeatherMap.

        Returns:
            Daily forecast with summary.

        Raises:
            WeatherError: If no forecast could be produced.
        """
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise WeatherError(WEATHER_FAILURE_PREFIX + "Invalid coordinates")

        if country_code and country_code.upper() != DOMESTIC_COUNTRY_CODE:
            return await self._openweathermap_forecast(lat, lon)
        return await self._weather_gov_forecast(lat, lon)

    async def _fetch(
        self,
        request: RequestDescriptor,
        policy: RetryPolicy,
        failure_message: str,
    ) -> Any:
        try:
            return await self._executor.execute(request, policy=policy)
        except UpstreamError as exc:
            self._log.warning("weather_fetch_failed", **exc.to_dict())
            if exc.failure.failure_class == FailureClass.NETWORK_TIMEOUT:
                failure_message = WEATHER_TIMEOUT_MESSAGE
            raise WeatherError(WEATHER_FAILURE_PREFIX + failure_message) from exc

    async def _weather_gov_forecast(self, lat: float, lon: float) -> WeatherForecast:
        cache_key = coordinate_key(lat, lon)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        headers = {"User-Agent": self._user_agent, "Accept": "application/geo+json"}
        points = await self._fetch(
            RequestDescriptor(
                url=f"{self._weather_gov_url}/points/{lat:.4f},{lon:.4f}",
                headers=headers,
            ),
            WEATHER_GOV_POLICY,
            WEATHER_GOV_UNAVAILABLE_MESSAGE,
        )
        properties = points.get("properties") if isinstance(points, dict) else None
        forecast_url = properties.get("forecast") if isinstance(properties, dict) else None
        if not isinstance(forecast_url, str) or not forecast_url.startswith("https://"):
            self._log.warning("weather_points_invalid")
            raise WeatherError(WEATHER_FAILURE_PREFIX + WEATHER_GOV_UNAVAILABLE_MESSAGE)

        body = await self._fetch(
            RequestDescriptor(url=forecast_url, headers=headers),
            WEATHER_GOV_POLICY,
            "Failed to fetch weather forecast",
        )
        properties = body.get("properties") if isinstance(body, dict) else None
        periods = properties.get("periods") if isinstance(properties, dict) else None
        if not isinstance(periods, list):
            self._log.warning("weather_forecast_invalid")
            raise WeatherError(WEATHER_FAILURE_PREFIX + "No forecast periods returned")

        days = self._fold_periods(
            [p for p in periods[:WEATHER_GOV_MAX_PERIODS] if isinstance(p, dict)]
        )
        result = WeatherForecast(
            summary=summarize_weather_gov(days),
            forecast=days,
            source="weather.gov",
        )
        self._cache.set(cache_key, result)
        return result

    def _fold_periods(self, periods: list[dict[str, Any]]) -> list[DailyForecast]:
        """Fold alternating day/night periods into one entry per day."""
        days = []
        for index in range(0, len(periods), 2):
            day = periods[index]
            night = periods[index + 1] if index + 1 < len(periods) else None
            start_time = day.get("startTime")
            high = day.get("temperature")
            low = night.get("temperature") if night is not None else None
            detailed = day.get("detailedForecast")
            icon = day.get("icon")
            days.append(
                DailyForecast(
                    date=start_time.split("T")[0] if isinstance(start_time, str) else "",
                    name=str(day.get("name") or ""),
                    high=_round_half_up(high) if _is_number(high) else None,
                    low=_round_half_up(low) if _is_number(low) else None,
                    condition=str(day.get("shortForecast") or "Unknown"),
                    precipitation=extract_precipitation_chance(detailed),
                    detailed_forecast=detailed if isinstance(detailed, str) else None,
                    icon=icon if isinstance(icon, str) else None,
                )
            )
        return days

    async def _openweathermap_forecast(self, lat: float, lon: float) -> WeatherForecast:
        try:
            api_key = self._api_key()
        except Exception as exc:  # noqa: BLE001
            self._log.warning("weather_api_key_unavailable", error_type=type(exc).__name__)
            api_key = None
        if not api_key:
            raise WeatherError(OPENWEATHERMAP_KEY_MISSING_MESSAGE)

        cache_key = "owm:" + coordinate_key(lat, lon)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            body = await self._executor.execute(
                RequestDescriptor(
                    url=self._openweathermap_url,
                    headers={"User-Agent": self._user_agent},
                    params={
                        "lat": f"{lat:.4f}",
                        "lon": f"{lon:.4f}",
                        "appid": api_key,
                        "cnt": OPENWEATHERMAP_INTERVALS,
                    },
                ),
                policy=OPENWEATHERMAP_POLICY,
            )
        except UpstreamError as exc:
            self._log.warning("weather_fetch_failed", provider="openweathermap", **exc.to_dict())
            if exc.failure.failure_class == FailureClass.NETWORK_TIMEOUT:
                message = "OpenWeatherMap service timed out. Please try again."
            elif exc.failure.is_transport:
                message = exc.message
            else:
                message = f"OpenWeatherMap API error ({exc.status_code})"
            raise WeatherError(WEATHER_FAILURE_PREFIX + message) from exc

        intervals = body.get("list") if isinstance(body, dict) else None
        days = self._aggregate_intervals(intervals if isinstance(intervals, list) else [])
        if not days:
            raise WeatherError(
                WEATHER_FAILURE_PREFIX + "No forecast data returned from OpenWeatherMap"
            )

        result = WeatherForecast(
            summary=summarize_openweathermap(days),
            forecast=days,
            source="openweathermap",
        )
        self._cache.set(cache_key, result)
        return result

    def _aggregate_intervals(self, intervals: list[Any]) -> list[DailyForecast]:
        """Group 3-hour intervals by calendar date into at most five days.

        Intervals without a timestamp or temperatures are skipped.
        """
        grouped: dict[str, dict[str, list[Any]]] = {}
        for interval in intervals:
            if not isinstance(interval, dict):
                continue
            timestamp = interval.get("dt_txt")
            main = interval.get("main")
            if not isinstance(timestamp, str) or not isinstance(main, dict):
                continue
            temp_max = main.get("temp_max")
            temp_min = main.get("temp_min")
            if not (_is_number(temp_max) and _is_number(temp_min)):
                continue

            weather = interval.get("weather")
            condition_id = OPENWEATHERMAP_DEFAULT_CONDITION_ID
            if isinstance(weather, list) and weather and isinstance(weather[0], dict):
                condition_id = weather[0].get("id", OPENWEATHERMAP_DEFAULT_CONDITION_ID)

            day = grouped.setdefault(
                timestamp.split(" ")[0], {"highs": [], "lows": [], "conditions": []}
            )
            day["highs"].append(temp_max)
            day["lows"].append(temp_min)
            day["conditions"].append(map_condition_code(condition_id))

        days = []
        for date_text, day in list(grouped.items())[:OPENWEATHERMAP_MAX_DAYS]:
            condition = dominant_condition(day["conditions"])
            try:
                weekday = date.fromisoformat(date_text).strftime("%A")
            except ValueError:
                weekday = date_text
            days.append(
                DailyForecast(
                    date=date_text,
                    name=weekday,
                    high=kelvin_to_fahrenheit(max(day["highs"])),
                    low=kelvin_to_fahrenheit(min(day["lows"])),
                    condition=condition,
                    precipitation=CONDITION_PRECIPITATION.get(condition, 0),
                )
            )
        return days
