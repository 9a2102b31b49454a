"""Cache for a single renewable bearer token."""

import time
from collections.abc import Awaitable, Callable

import structlog
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from strollerscout.fetch.models import UpstreamError


logger = structlog.get_logger()

# Upstream tokens live 30 minutes; cache them for 29
DEFAULT_TOKEN_LIFETIME_SECONDS = 30 * 60
DEFAULT_SAFETY_MARGIN_SECONDS = 60


class TokenExchangeError(Exception):
    """Credential exchange succeeded at HTTP level but yielded no token."""


class ClientCredentials(BaseModel):
    """OAuth client id/secret pair."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    client_id: str = Field(min_length=1)
    client_secret: SecretStr


class IssuedToken(BaseModel):
    """Token as returned by a credential exchange."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: str = Field(min_length=1)
    expires_in: float | None = Field(
        default=None, gt=0, description="Declared lifetime in seconds"
    )


class Token(BaseModel):
    """Cached token with a monotonic expiry already shortened by the margin."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: str
    expires_at: float


CredentialsProvider = Callable[[], ClientCredentials | None]
TokenExchange = Callable[[ClientCredentials], Awaitable[IssuedToken]]


class CredentialCache:
    """Owns one bearer token shared by every call to an upstream.

    ``get_token`` never raises. Missing credentials and failed exchanges
    both yield None, which callers treat as "integration disabled".

    Callers that observe an expired token at the same time each run an
    exchange; the last one to finish wins. Refreshes are not serialized.
    """

    def __init__(
        self,
        credentials: CredentialsProvider,
        exchange: TokenExchange,
        *,
        lifetime_seconds: float = DEFAULT_TOKEN_LIFETIME_SECONDS,
        safety_margin_seconds: float = DEFAULT_SAFETY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        name: str = "credentials",
    ) -> None:
        """Initialize the credential cache.

        Args:
            credentials: Returns the client credentials, or None when the
                integration is not configured. Called once per refresh.
            exchange: Trades credentials for a token; raises UpstreamError
                or TokenExchangeError on failure.
            lifetime_seconds: Token lifetime assumed when the upstream does
                not declare one.
            safety_margin_seconds: How much earlier than the true expiry
                the cached token is dropped.
            clock: Monotonic time source in seconds.
            name: Cache name used in log events.

        Raises:
            ValueError: If the margin is not strictly inside the lifetime.
        """
        if not 0 < safety_margin_seconds < lifetime_seconds:
            msg = (
                "safety_margin_seconds must be positive and shorter than "
                f"lifetime_seconds ({safety_margin_seconds} vs {lifetime_seconds})"
            )
            raise ValueError(msg)

        self._credentials = credentials
        self._exchange = exchange
        self._lifetime_seconds = lifetime_seconds
        self._safety_margin_seconds = safety_margin_seconds
        self._clock = clock
        self._token: Token | None = None
        self._log = logger.bind(component="cache", cache=name)

    @property
    def token(self) -> Token | None:
        """Currently cached token, expired or not."""
        return self._token

    async def get_token(self) -> str | None:
        """Return a valid bearer token, refreshing it when expired.

        Returns:
            Token value, or None when credentials are missing or the
            exchange fails.
        """
        now = self._clock()
        if self._token is not None and now < self._token.expires_at:
            return self._token.value

        try:
            credentials = self._credentials()
        except Exception as exc:  # noqa: BLE001
            self._log.warning(
                "credentials_unavailable",
                error_type=type(exc).__name__,
            )
            return None
        if credentials is None:
            self._log.debug("credentials_not_configured")
            return None

        try:
            issued = await self._exchange(credentials)
        except UpstreamError as exc:
            self._log.warning("credential_exchange_failed", **exc.to_dict())
            return None
        except TokenExchangeError as exc:
            self._log.warning("credential_exchange_failed", error=str(exc))
            return None
        except Exception as exc:  # noqa: BLE001
            self._log.warning(
                "credential_exchange_failed",
                error_type=type(exc).__name__,
            )
            return None

        # Expiry counts from the moment before the exchange was issued
        self._token = Token(
            value=issued.value,
            expires_at=now + self._cache_ttl(issued.expires_in),
        )
        self._log.info("credential_refreshed", expires_in=issued.expires_in)
        return issued.value

    def invalidate(self) -> None:
        """Forget the cached token so the next call exchanges again."""
        self._token = None

    def _cache_ttl(self, expires_in: float | None) -> float:
        lifetime = self._lifetime_seconds if expires_in is None else expires_in
        return max(lifetime - self._safety_margin_seconds, 0.0)
