"""Adapters for third-party travel data services."""

from strollerscout.services.errors import (
    DestinationQueryError,
    GeocodingError,
    WeatherError,
)
from strollerscout.services.geocoding import GeocodingService, parse_location_query
from strollerscout.services.models import (
    DailyForecast,
    DestinationMode,
    DestinationResult,
    GeoLocation,
    LocationQuery,
    NearbyPlace,
    SafetyCategories,
    SafetyScores,
    TravelAdvisory,
    WeatherForecast,
)
from strollerscout.services.neighborhood_safety import (
    NeighborhoodSafetyService,
    create_neighborhood_safety_service,
)
from strollerscout.services.oauth import ClientCredentialsExchange
from strollerscout.services.travel_advisory import TravelAdvisoryService
from strollerscout.services.weather import WeatherService


__all__ = [
    "ClientCredentialsExchange",
    "DailyForecast",
    "DestinationMode",
    "DestinationQueryError",
    "DestinationResult",
    "GeoLocation",
    "GeocodingError",
    "GeocodingService",
    "LocationQuery",
    "NearbyPlace",
    "NeighborhoodSafetyService",
    "SafetyCategories",
    "SafetyScores",
    "TravelAdvisory",
    "TravelAdvisoryService",
    "WeatherError",
    "WeatherForecast",
    "WeatherService",
    "create_neighborhood_safety_service",
    "parse_location_query",
]
