"""Amadeus Safe Place client (GeoSure neighborhood safety scores).

Safety data is supplemental: every failure path returns None so trip
planning never blocks on it.
"""

import math
from http import HTTPStatus
from typing import Any

import structlog
from pydantic import ValidationError

from strollerscout.cache.content import ContentCache
from strollerscout.cache.credentials import (
    ClientCredentials,
    CredentialCache,
    CredentialsProvider,
)
from strollerscout.cache.keys import coordinate_key, round_coordinate
from strollerscout.fetch.executor import RetryingExecutor
from strollerscout.fetch.models import RequestDescriptor, RetryPolicy, UpstreamError
from strollerscout.services.models import SafetyCategories, SafetyScores
from strollerscout.services.oauth import ClientCredentialsExchange
from strollerscout.settings import get_settings


logger = structlog.get_logger()

TOKEN_PATH = "/v1/security/oauth2/token"  # noqa: S105
SAFETY_PATH = "/v1/safety/safety-rated-locations"
SAFETY_CACHE_TTL_SECONDS = 12 * 60 * 60
SAFETY_CACHE_MAX_ENTRIES = 500
SAFETY_SEARCH_RADIUS_KM = 1
SAFETY_RETRY_POLICY = RetryPolicy(per_attempt_timeout_ms=10000)

# Amadeus field -> our category field
_CATEGORY_FIELDS = {
    "physicalHarm": "physical_harm",
    "theft": "theft",
    "medical": "health_medical",
    "women": "womens_safety",
    "lgbtq": "lgbtq_safety",
    "politicalFreedom": "political_freedoms",
}


class NeighborhoodSafetyService:
    """Looks up neighborhood safety scores with token and content caching."""

    def __init__(
        self,
        executor: RetryingExecutor,
        credential_cache: CredentialCache,
        *,
        base_url: str,
        cache: ContentCache[str, SafetyScores] | None = None,
        policy: RetryPolicy = SAFETY_RETRY_POLICY,
    ) -> None:
        """Initialize the service.

        Args:
            executor: Executor for Safe Place calls.
            credential_cache: Supplies Amadeus bearer tokens.
            base_url: Amadeus API base URL.
            cache: Score cache keyed by rounded coordinates.
            policy: Retry policy for Safe Place calls.
        """
        self._executor = executor
        self._credential_cache = credential_cache
        self._base_url = base_url.rstrip("/")
        if cache is None:
            cache = ContentCache(
                SAFETY_CACHE_TTL_SECONDS,
                SAFETY_CACHE_MAX_ENTRIES,
                name="neighborhood_safety",
            )
        self._cache = cache
        self._policy = policy
        self._log = logger.bind(component="services", subcomponent="neighborhood_safety")

    @property
    def cache(self) -> ContentCache[str, SafetyScores]:
        """Score cache."""
        return self._cache

    def reset(self) -> None:
        """Clear cached scores and the cached token (test harness use)."""
        self._cache.reset()
        self._credential_cache.invalidate()

    async def get_neighborhood_safety(self, lat: float, lon: float) -> SafetyScores | None:
        """Fetch safety scores near a location.

        Coordinates are rounded to 2 decimals (about 1.1 km) for both the
        cache key and the upstream query.

        Args:
            lat: Latitude.
            lon: Longitude.

        Returns:
            Safety scores, or None when unavailable for any reason.
        """
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return None

        cache_key = coordinate_key(lat, lon)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        token = await self._credential_cache.get_token()
        if token is None:
            return None

        request = RequestDescriptor(
            url=self._base_url + SAFETY_PATH,
            headers={"Authorization": f"Bearer {token}"},
            params={
                "latitude": round_coordinate(lat),
                "longitude": round_coordinate(lon),
                "radius": SAFETY_SEARCH_RADIUS_KM,
            },
        )

        try:
            body = await self._executor.execute(request, policy=self._policy)
        except UpstreamError as exc:
            if exc.status_code == HTTPStatus.UNAUTHORIZED:
                self._credential_cache.invalidate()
            self._log.warning("safety_lookup_failed", **exc.to_dict())
            return None

        scores = self._parse_scores(body)
        if scores is None:
            return None

        self._cache.set(cache_key, scores)
        return scores

    def _parse_scores(self, body: Any) -> SafetyScores | None:
        """Map a Safe Place response into SafetyScores.

        Args:
            body: Decoded response body.

        Returns:
            Scores, or None when the body has no usable data.
        """
        if not isinstance(body, dict):
            return None
        data = body.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        raw_scores = data[0].get("safetyScores")
        if not isinstance(raw_scores, dict):
            return None

        try:
            return SafetyScores(
                overall_score=raw_scores.get("overall"),
                categories=SafetyCategories(
                    **{
                        ours: raw_scores.get(theirs)
                        for theirs, ours in _CATEGORY_FIELDS.items()
                    }
                ),
            )
        except ValidationError as exc:
            self._log.warning("safety_response_invalid", errors=exc.error_count())
            return None


def _credentials_from_settings() -> ClientCredentials | None:
    return get_settings().amadeus_credentials()


def create_neighborhood_safety_service(
    executor: RetryingExecutor,
    *,
    credentials: CredentialsProvider | None = None,
    base_url: str | None = None,
) -> NeighborhoodSafetyService:
    """Build a safety service wired to Amadeus OAuth.

    Args:
        executor: Executor shared by the token and Safe Place calls.
        credentials: Credential provider; defaults to reading AMADEUS_API_KEY
            and AMADEUS_API_SECRET from the environment on every refresh.
        base_url: Amadeus base URL; defaults to the configured one.

    Returns:
        Ready-to-use service.
    """
    if base_url is None:
        base_url = get_settings().amadeus_base_url
    credential_cache = CredentialCache(
        credentials or _credentials_from_settings,
        ClientCredentialsExchange(executor, base_url.rstrip("/") + TOKEN_PATH),
        name="amadeus_token",
    )
    return NeighborhoodSafetyService(executor, credential_cache, base_url=base_url)
