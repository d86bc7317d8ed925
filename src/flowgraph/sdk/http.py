"""
HTTP Client - Timeout-bounded async HTTP requests for nodes.

All HTTP calls MUST use timeouts. This module provides a thin wrapper
around httpx.AsyncClient with sensible defaults and structured responses.
A transport can be injected so tests never touch the network.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

import httpx


logger = logging.getLogger(__name__)

# Default timeout in seconds
DEFAULT_TIMEOUT = 30


class NodeTimeoutError(Exception):
    """Raised when an HTTP request times out."""

    def __init__(self, message: str, timeout: float, url: str):
        self.timeout = timeout
        self.url = url
        super().__init__(message)


class HttpApiError(Exception):
    """Error from HTTP request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        self.url = url
        self.method = method
        super().__init__(message)


class HttpResponse:
    """
    Wrapper for HTTP response with convenient accessors.
    """

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def reason_phrase(self) -> str:
        return self._response.reason_phrase

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._response.headers)

    @property
    def text(self) -> str:
        return self._response.text

    @property
    def content(self) -> bytes:
        return self._response.content

    @property
    def url(self) -> str:
        return str(self._response.url)

    @property
    def is_json(self) -> bool:
        return "json" in self._response.headers.get("content-type", "").lower()

    def json(self) -> Any:
        """Parse response as JSON."""
        return self._response.json()

    @property
    def ok(self) -> bool:
        """True if status code is 2xx."""
        return self._response.is_success

    def raise_for_status(self) -> None:
        """Raise HttpApiError if status code indicates error."""
        if not self.ok:
            raise HttpApiError(
                message=f"HTTP {self.status_code}: {self._response.reason_phrase}",
                status_code=self.status_code,
                response_body=self.text[:1000] if self.text else None,
                url=self.url,
                method=self._response.request.method,
            )


class HttpClient:
    """
    Async HTTP client with timeout enforcement and credential injection.

    Usage:
        client = HttpClient(base_url="https://api.example.com")
        response = await client.request("GET", "/users", params={"limit": 10})
        data = response.json()
    """

    def __init__(
        self,
        base_url: str = "",
        default_headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        bearer_token: Optional[str] = None,
        api_key: Optional[str] = None,
        api_key_header: str = "X-API-Key",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Base URL for all requests
            default_headers: Headers to include in all requests
            timeout: Default timeout in seconds (REQUIRED)
            bearer_token: Bearer token for Authorization header
            api_key: API key value
            api_key_header: Header name for API key
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

        # Build default headers
        self.headers: Dict[str, str] = dict(default_headers or {})

        if bearer_token:
            self.headers["Authorization"] = f"Bearer {bearer_token}"

        if api_key:
            self.headers[api_key_header] = api_key

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[Union[Dict[str, Any], str, bytes]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """
        Make HTTP request with timeout enforcement.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, etc.)
            endpoint: URL endpoint (appended to base_url)
            params: Query parameters
            json: JSON body (auto-serialized)
            data: Form data or raw body
            headers: Additional headers (merged with defaults)
            timeout: Override default timeout

        Returns:
            HttpResponse wrapper

        Raises:
            NodeTimeoutError: If request times out
            HttpApiError: If the request could not be sent
        """
        url = f"{self.base_url}{endpoint}" if self.base_url else endpoint
        request_headers = {**self.headers, **(headers or {})}
        request_timeout = timeout or self.timeout

        content: Optional[Union[str, bytes]] = None
        form: Optional[Dict[str, Any]] = None
        if isinstance(data, (str, bytes)):
            content = data
        elif data is not None:
            form = data

        try:
            async with httpx.AsyncClient(
                timeout=request_timeout,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method=method.upper(),
                    url=url,
                    params=params,
                    json=json,
                    data=form,
                    content=content,
                    headers=request_headers,
                )
            return HttpResponse(response)

        except httpx.TimeoutException as e:
            raise NodeTimeoutError(
                message=f"Request timed out after {request_timeout}s",
                timeout=request_timeout,
                url=url,
            ) from e

        except httpx.HTTPError as e:
            raise HttpApiError(
                message=f"Request failed: {e}",
                url=url,
                method=method,
            ) from e
