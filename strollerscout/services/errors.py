"""Domain-specific error types for the service adapters."""


class GeocodingError(Exception):
    """A location could not be geocoded; the message is user-safe."""


class DestinationQueryError(ValueError):
    """Destination text failed validation before any upstream call."""


class WeatherError(Exception):
    """A forecast could not be produced; the message is user-safe."""
