"""Domain models returned by the service adapters."""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


GeoSureScore = Annotated[int, Field(ge=0, le=100)]


class GeoLocation(BaseModel):
    """A geocoded US location."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    lat: Annotated[float, Field(ge=-90.0, le=90.0)]
    lon: Annotated[float, Field(ge=-180.0, le=180.0)]
    display_name: str
    state_name: str | None = None
    state_code: str | None = None


class NearbyPlace(BaseModel):
    """A populated place suggested near an origin."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    display_name: str
    lat: float
    lon: float
    distance_miles: int


class DestinationMode(str, Enum):
    """How a destination query was resolved."""

    DIRECT = "direct"
    SUGGESTIONS = "suggestions"


class DestinationResult(BaseModel):
    """Resolution of a free-text destination query."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: DestinationMode
    destination: str | None = None
    origin: str | None = None
    suggestions: list[NearbyPlace] = Field(default_factory=list)


class LocationQuery(BaseModel):
    """Parsed intent of a destination query."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["city", "drive_time", "distance", "near"]
    base: str
    hours: float | None = None
    miles: float | None = None


class SafetyCategories(BaseModel):
    """GeoSure category scores (1-100, higher is safer)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    physical_harm: GeoSureScore | None = None
    theft: GeoSureScore | None = None
    health_medical: GeoSureScore | None = None
    womens_safety: GeoSureScore | None = None
    lgbtq_safety: GeoSureScore | None = None
    political_freedoms: GeoSureScore | None = None


class SafetyScores(BaseModel):
    """Neighborhood safety scores for a location."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    overall_score: GeoSureScore | None = None
    categories: SafetyCategories
    source: Literal["geosure"] = "geosure"


class TravelAdvisory(BaseModel):
    """US State Department advisory for one country."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    level: Annotated[int, Field(ge=0, le=4)]
    title: str
    summary: str
    risk_categories: list[str] = Field(default_factory=list)
    last_updated: str = ""
    source_url: str = ""


class DailyForecast(BaseModel):
    """One day of forecast, folded from day/night periods or 3-hour intervals."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    date: str
    name: str
    high: int | None = None
    low: int | None = None
    condition: str
    precipitation: Annotated[int, Field(ge=0, le=100)] = 0
    detailed_forecast: str | None = None
    icon: str | None = None


class WeatherForecast(BaseModel):
    """Daily forecast plus a one-sentence summary (temperatures in Fahrenheit)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    summary: str
    forecast: list[DailyForecast] = Field(default_factory=list)
    source: Literal["weather.gov", "openweathermap"]
