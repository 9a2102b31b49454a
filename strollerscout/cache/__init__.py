"""In-memory caches for upstream content and credentials."""

from strollerscout.cache.content import CachedEntry, ContentCache
from strollerscout.cache.credentials import (
    ClientCredentials,
    CredentialCache,
    IssuedToken,
    Token,
    TokenExchangeError,
)
from strollerscout.cache.keys import coordinate_key, round_coordinate, text_key
from strollerscout.cache.metrics import CacheMetrics


__all__ = [
    "CacheMetrics",
    "CachedEntry",
    "ClientCredentials",
    "ContentCache",
    "CredentialCache",
    "IssuedToken",
    "Token",
    "TokenExchangeError",
    "coordinate_key",
    "round_coordinate",
    "text_key",
]
