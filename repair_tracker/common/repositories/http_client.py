"""
Shared async HTTP plumbing for both backend clients.

Every request carries a bearer token from the injected token provider.
Non-2xx responses raise BackendHTTPError with the backend's own message;
204 and empty bodies return None.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..errors import BackendHTTPError

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            message = error.get("message") or response.reason_phrase
            return f"{code}: {message}" if code else message
        if isinstance(error, str):
            return error
        for key in ("message", "detail"):
            if body.get(key):
                return str(body[key])
    return response.text or response.reason_phrase


class BackendHTTPClient:
    """
    Thin JSON-over-HTTP client.

    A fresh httpx.AsyncClient is opened per request; `transport` is passed
    through so tests can serve requests from httpx.MockTransport.
    """

    backend = "unknown"

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self.timeout = timeout
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[Any]:
        """
        Send a request and decode the JSON response.

        Raises:
            BackendHTTPError: Non-2xx response
            httpx.TransportError: Connection failure or timeout
        """
        token = await self._token_provider()
        request_headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        url = f"{self.base_url}{path}"
        logger.debug(f"[{self.backend}] {method} {url}")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(
                method, url, json=json, params=params, headers=request_headers
            )

        if response.status_code >= 400:
            try:
                details = response.json()
            except ValueError:
                details = response.text or None
            raise BackendHTTPError(
                response.status_code,
                _error_message(response),
                backend=self.backend,
                details=details,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()
