"""CircleCI API client.

This module wraps the two paginated reads the ledger needs:
- list_builds(): recent builds, newest first
- list_artifacts(): artifacts published by one build

The client keeps no state and never retries. Transport failures raise
TransportError and malformed payloads raise DecodeError; callers decide
when to try again.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import TypeAdapter, ValidationError

from coverage_shortcuts.builds.models import Artifact, Build
from coverage_shortcuts.ci.schema import ARTIFACT_LIST_ADAPTER, BUILD_LIST_ADAPTER
from coverage_shortcuts.config import DEFAULT_CI_BASE_URL

if TYPE_CHECKING:
    from coverage_shortcuts.config import Settings

logger = logging.getLogger(__name__)

# Default timeout for API requests (seconds)
REQUEST_TIMEOUT = 30.0

# Largest page the v1.1 API serves
MAX_PAGE_SIZE = 100


class CIClientError(Exception):
    """Base error for CI provider requests."""

    def __init__(self, message: str, code: str = "ci_error") -> None:
        """Initialize CIClientError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


class TransportError(CIClientError):
    """Raised when the CI provider cannot be reached or answers non-2xx."""

    def __init__(self, message: str, code: str = "network_error") -> None:
        super().__init__(message, code=code)


class DecodeError(CIClientError):
    """Raised when a CI provider response cannot be decoded."""

    def __init__(self, message: str, code: str = "decode_error") -> None:
        super().__init__(message, code=code)


class CIClient:
    """Read-only client for a CircleCI v1.1 project.

    Args:
        base_url: Project API URL, e.g.
            ``https://circleci.com/api/v1.1/project/github/<org>/<repo>``.
        token: Optional API token sent as the ``Circle-Token`` header.
        timeout: Request timeout in seconds.
        client: HTTPX client to use. One is created (and owned) if omitted.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_CI_BASE_URL,
        token: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Circle-Token"] = token
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client()

    @classmethod
    def from_settings(cls, settings: Settings) -> CIClient:
        """Create a client configured from application settings."""
        return cls(
            base_url=settings.ci_base_url,
            token=settings.ci_token,
            timeout=settings.request_timeout,
        )

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> CIClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _get(self, url: str, params: dict[str, Any] | None = None) -> bytes:
        """Issue a GET request and return the raw body.

        Raises:
            TransportError: On network failure, timeout, or non-2xx status.
        """
        try:
            response = self._client.get(
                url, params=params, headers=self._headers, timeout=self.timeout
            )
            response.raise_for_status()
            return response.content

        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"HTTP error fetching {url}: "
                f"{e.response.status_code} {e.response.reason_phrase}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Timeout fetching {url}",
                code="timeout",
            ) from e
        except httpx.RequestError as e:
            raise TransportError(
                f"Network error fetching {url}: {e}",
                code="network_error",
            ) from e

    @staticmethod
    def _decode(adapter: TypeAdapter[Any], body: bytes, what: str) -> Any:
        try:
            return adapter.validate_json(body)
        except ValidationError as e:
            raise DecodeError(f"Malformed {what} response: {e}") from e

    def list_builds(self, limit: int = MAX_PAGE_SIZE, offset: int = 0) -> list[Build]:
        """List recent builds, newest first.

        Args:
            limit: Page size (at most 100).
            offset: Number of builds to skip from the newest.

        Returns:
            Transient Build instances in descending build-number order.

        Raises:
            TransportError: If the request fails.
            DecodeError: If the response is not a list of builds.
        """
        logger.debug("Listing builds (limit=%d, offset=%d)", limit, offset)
        body = self._get(
            self.base_url,
            params={"shallow": "true", "limit": limit, "offset": offset},
        )
        payloads = self._decode(BUILD_LIST_ADAPTER, body, "list-builds")
        return [p.to_build() for p in payloads]

    def list_artifacts(self, build_num: int) -> list[Artifact]:
        """List the artifacts published by a build.

        Args:
            build_num: Build number to query.

        Returns:
            Transient Artifact instances stamped with ``build_num``.

        Raises:
            TransportError: If the request fails.
            DecodeError: If the response is not a list of artifacts.
        """
        logger.debug("Listing artifacts for build %d", build_num)
        body = self._get(f"{self.base_url}/{build_num}/artifacts")
        payloads = self._decode(ARTIFACT_LIST_ADAPTER, body, "list-artifacts")
        return [p.to_artifact(build_num) for p in payloads]


__all__ = [
    "CIClient",
    "CIClientError",
    "DecodeError",
    "MAX_PAGE_SIZE",
    "REQUEST_TIMEOUT",
    "TransportError",
]
