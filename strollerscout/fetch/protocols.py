"""Protocol interface for HTTP responses consumed by the classifier."""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ResponseLike(Protocol):
    """Minimal view of a completed HTTP response.

    ``httpx.Response`` satisfies this protocol directly. Any other client
    can be adapted by exposing the same four members.
    """

    @property
    def status_code(self) -> int:
        """HTTP status code."""
        ...

    @property
    def headers(self) -> Mapping[str, str]:
        """Response headers; lookups should be case-insensitive."""
        ...

    @property
    def text(self) -> str:
        """Response body decoded as text."""
        ...

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        ...
