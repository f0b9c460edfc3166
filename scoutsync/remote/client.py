"""HTTP client for the authoritative scouting service."""

import asyncio
import logging
from typing import Any

import httpx

from ..errors import RemoteRejectedError, RemoteTimeoutError, RemoteUnavailableError

logger = logging.getLogger(__name__)


def _parse_body(response: httpx.Response) -> Any:
    """Parse a response body: None when empty, JSON when possible, else text."""
    if response.status_code == 204:
        return None

    text = response.text
    if not text:
        return None

    try:
        return response.json()
    except ValueError:
        return text


def _error_message(body: Any, status_code: int) -> str:
    if isinstance(body, dict):
        for key in ("message", "detail"):
            if body.get(key):
                return str(body[key])
    return f"Request failed with status {status_code}"


class RemoteClient:
    """Thin request/response gateway over ``httpx.AsyncClient``.

    Raises typed errors so callers can tell a rejection by the service
    (``RemoteRejectedError``) from a request that never completed
    (``RemoteTimeoutError``, ``RemoteUnavailableError``).
    """

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        read_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the remote client.

        Args:
            base_url: Base URL of the scouting service.
            api_token: Bearer token sent with every request.
            read_timeout: Transport timeout in seconds; None waits indefinitely.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.read_timeout = read_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def set_token(self, token: str | None) -> None:
        """Set or clear the bearer token."""
        self.api_token = token

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.read_timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        deadline: float | None = None,
    ) -> Any:
        """Send a request and return the parsed response body.

        Args:
            path: Path relative to the base URL, or an absolute URL.
            method: HTTP method.
            body: JSON body.
            params: Query parameters; None values are dropped.
            files: Multipart files (replaces the JSON body).
            data: Multipart form fields.
            deadline: Seconds before the request is cancelled. None means
                no deadline beyond the client's own timeout.

        Returns:
            Parsed JSON, raw text, or None for an empty body.

        Raises:
            RemoteRejectedError: The service answered with a non-2xx status.
            RemoteTimeoutError: The deadline or transport timeout expired.
            RemoteUnavailableError: The service could not be reached.
        """
        if deadline is None:
            return await self._send(path, method, body, params, files, data)

        try:
            return await asyncio.wait_for(
                self._send(path, method, body, params, files, data),
                timeout=deadline,
            )
        except asyncio.TimeoutError as e:
            raise RemoteTimeoutError(
                f"Request timed out after {deadline:g} seconds"
            ) from e

    async def _send(
        self,
        path: str,
        method: str,
        body: Any,
        params: dict[str, Any] | None,
        files: dict[str, Any] | None,
        data: dict[str, Any] | None,
    ) -> Any:
        client = await self._get_client()
        method = method.upper()

        query = {key: value for key, value in (params or {}).items() if value is not None}
        headers = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"

        kwargs: dict[str, Any] = {"params": query or None, "headers": headers}
        if files is not None:
            kwargs["files"] = files
            kwargs["data"] = data
        elif body is not None:
            kwargs["json"] = body

        logger.debug(f"{method} {path}")

        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise RemoteUnavailableError(f"{method} {path} failed: {e}") from e

        parsed = _parse_body(response)

        if not response.is_success:
            message = _error_message(parsed, response.status_code)
            logger.debug(f"{method} {path} rejected: {response.status_code} {message}")
            raise RemoteRejectedError(response.status_code, message)

        return parsed
