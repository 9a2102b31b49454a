"""Cache key construction shared by service adapters."""

# 2 decimal places is roughly 1.1 km of latitude
COORDINATE_KEY_PRECISION = 2


def round_coordinate(value: float, precision: int = COORDINATE_KEY_PRECISION) -> float:
    """Round a coordinate for cache keying, folding -0.0 into 0.0."""
    return round(value, precision) or 0.0


def coordinate_key(
    lat: float,
    lon: float,
    precision: int = COORDINATE_KEY_PRECISION,
) -> str:
    """Build a cache key that groups nearby coordinates.

    Args:
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        precision: Decimal places kept.

    Returns:
        Key such as ``"48.86,2.35"``.
    """
    return (
        f"{round_coordinate(lat, precision):.{precision}f},"
        f"{round_coordinate(lon, precision):.{precision}f}"
    )


def text_key(text: str) -> str:
    """Normalize free text (trimmed, lower-cased) for cache keying."""
    return text.strip().lower()
