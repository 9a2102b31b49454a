"""US State Department travel advisory lookup.

The full advisory list is fetched once and cached for 24 hours. Lookups
never raise: a missing advisory or an unavailable API yields None.
"""

import re
from typing import Any

import structlog

from strollerscout.cache.content import ContentCache
from strollerscout.fetch.executor import RetryingExecutor
from strollerscout.fetch.models import RequestDescriptor, RetryPolicy, UpstreamError
from strollerscout.services.models import TravelAdvisory


logger = structlog.get_logger()

STATE_DEPT_ADVISORIES_URL = "https://cadataapi.state.gov/api/TravelAdvisories"
ADVISORY_POLICY = RetryPolicy(max_retries=1, per_attempt_timeout_ms=10000)
ADVISORY_CACHE_TTL_SECONDS = 24 * 60 * 60
ADVISORY_LIST_KEY = "advisories"

DOMESTIC_COUNTRY_CODE = "US"
MIN_ADVISORY_LEVEL = 1
MAX_ADVISORY_LEVEL = 4

RISK_KEYWORDS = (
    "terrorism",
    "crime",
    "kidnapping",
    "civil unrest",
    "natural disaster",
)

_HTML_TAG_PATTERN = re.compile(r"<[^>]*>")
_LEVEL_PATTERN = re.compile(r"Level\s+(\d)", re.IGNORECASE)


def strip_html_tags(html: Any) -> str:
    """Remove markup from an advisory summary."""
    if not isinstance(html, str):
        return ""
    return _HTML_TAG_PATTERN.sub("", html).strip()


def extract_risk_categories(summary: str) -> list[str]:
    """Return the known risk keywords mentioned in a summary."""
    lowered = summary.lower()
    return [keyword for keyword in RISK_KEYWORDS if keyword in lowered]


def parse_advisory_level(title: Any) -> int:
    """Parse the advisory level from a title like ``"Mexico - Level 2: ..."``.

    Args:
        title: Advisory title.

    Returns:
        Level 1-4, or 0 when the title carries no valid level.
    """
    if not isinstance(title, str):
        return 0
    match = _LEVEL_PATTERN.search(title)
    if not match:
        return 0
    level = int(match.group(1))
    return level if MIN_ADVISORY_LEVEL <= level <= MAX_ADVISORY_LEVEL else 0


def _matches_country(entry: Any, country_code: str) -> bool:
    if not isinstance(entry, dict):
        return False
    categories = entry.get("Category")
    if not isinstance(categories, list):
        return False
    return any(
        isinstance(code, str) and code.upper() == country_code for code in categories
    )


class TravelAdvisoryService:
    """Per-country advisories backed by a cached State Department list."""

    def __init__(
        self,
        executor: RetryingExecutor,
        *,
        user_agent: str,
        cache: ContentCache[str, list[Any]] | None = None,
        url: str = STATE_DEPT_ADVISORIES_URL,
    ) -> None:
        """Initialize the service.

        Args:
            executor: Executor for the advisory list call.
            user_agent: User-Agent sent upstream.
            cache: Single-entry cache holding the advisory list.
            url: Advisory list endpoint.
        """
        self._executor = executor
        self._user_agent = user_agent
        self._url = url
        if cache is None:
            cache = ContentCache(ADVISORY_CACHE_TTL_SECONDS, 1, name="travel_advisory")
        self._cache = cache
        self._log = logger.bind(component="services", subcomponent="travel_advisory")

    def reset(self) -> None:
        """Drop the cached advisory list (test harness use)."""
        self._cache.reset()

    async def get_travel_advisory(self, country_code: str | None) -> TravelAdvisory | None:
        """Look up the advisory for a country.

        Args:
            country_code: ISO 3166-1 alpha-2 code, e.g. ``"MX"``.

        Returns:
            Advisory, or None for domestic travel, unknown countries or an
            unavailable API.
        """
        if not country_code:
            return None
        normalized = country_code.upper()
        if normalized == DOMESTIC_COUNTRY_CODE:
            return None

        advisories = await self._fetch_advisory_list()
        if advisories is None:
            return None

        entry = next((e for e in advisories if _matches_country(e, normalized)), None)
        if entry is None:
            return None

        title = entry.get("Title") or ""
        summary = strip_html_tags(entry.get("Summary") or "")
        return TravelAdvisory(
            level=parse_advisory_level(title),
            title=str(title),
            summary=summary,
            risk_categories=extract_risk_categories(summary),
            last_updated=str(entry.get("Updated") or entry.get("Published") or ""),
            source_url=str(entry.get("Link") or ""),
        )

    async def _fetch_advisory_list(self) -> list[Any] | None:
        """Return the cached advisory list, fetching it when stale."""
        cached = self._cache.get(ADVISORY_LIST_KEY)
        if cached is not None:
            return cached

        request = RequestDescriptor(
            url=self._url,
            headers={"User-Agent": self._user_agent, "Accept": "application/json"},
        )
        try:
            data = await self._executor.execute(request, policy=ADVISORY_POLICY)
        except UpstreamError as exc:
            self._log.warning("advisory_list_unavailable", **exc.to_dict())
            return None

        if not isinstance(data, list):
            self._log.warning("advisory_list_invalid", body_type=type(data).__name__)
            return None

        self._cache.set(ADVISORY_LIST_KEY, data)
        return data
