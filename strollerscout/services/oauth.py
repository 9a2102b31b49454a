"""OAuth2 client-credentials exchange over the retrying executor."""

import math

import structlog

from strollerscout.cache.credentials import (
    ClientCredentials,
    IssuedToken,
    TokenExchangeError,
)
from strollerscout.fetch.executor import RetryingExecutor
from strollerscout.fetch.models import RequestDescriptor, RetryPolicy


logger = structlog.get_logger()


class ClientCredentialsExchange:
    """Trades a client id/secret pair for a bearer token.

    Instances are callables suitable as the ``exchange`` of a
    ``CredentialCache``.
    """

    def __init__(
        self,
        executor: RetryingExecutor,
        token_url: str,
        policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the exchange.

        Args:
            executor: Executor used for the token request.
            token_url: OAuth2 token endpoint.
            policy: Retry policy for the token request.
        """
        self._executor = executor
        self._token_url = token_url
        self._policy = policy
        self._log = logger.bind(component="oauth", token_url=token_url)

    async def __call__(self, credentials: ClientCredentials) -> IssuedToken:
        """Perform the exchange.

        Args:
            credentials: Client credentials.

        Returns:
            Issued token with its declared lifetime, if any.

        Raises:
            UpstreamError: If the token endpoint call fails.
            TokenExchangeError: If the response carries no access token.
        """
        request = RequestDescriptor(
            url=self._token_url,
            method="POST",
            data={
                "grant_type": "client_credentials",
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret.get_secret_value(),
            },
        )
        payload = await self._executor.execute(request, policy=self._policy)

        if not isinstance(payload, dict):
            msg = "Token response is not a JSON object"
            raise TokenExchangeError(msg)

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            msg = "No access_token in token response"
            raise TokenExchangeError(msg)

        expires_in = payload.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int | float):
            expires_in = None
        elif not math.isfinite(expires_in) or expires_in <= 0:
            expires_in = None

        self._log.debug("oauth_token_issued", expires_in=expires_in)
        return IssuedToken(value=access_token, expires_in=expires_in)
