"""
HTTP Request Node - one awaited request per input item.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from flowgraph.sdk.basenode import BaseNode, NodeOperationError
from flowgraph.sdk.http import HttpApiError, HttpClient, NodeTimeoutError
from flowgraph.sdk.items import Item


logger = logging.getLogger(__name__)

RESPONSE_KEY = "httpResponse"
METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
BODY_METHODS = ("POST", "PUT", "PATCH")
AUTH_TYPES = ("none", "bearerAuth", "headerAuth")
DEFAULT_AUTH_HEADER = "X-API-Key"


class SoftRequestError(Exception):
    """Request problem that is attached to the item instead of failing the run."""


def _parse_json_param(value: Any, name: str) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise SoftRequestError(f"Invalid JSON in {name}: {e.msg}") from e
    return value


class HttpRequestNode(BaseNode):
    """
    HTTP Request Node - Make HTTP requests.

    url, headers, body and query parameters are resolved against each
    item. A missing or non-http(s) URL fails the node; transport errors,
    timeouts, non-2xx responses and bad JSON are recorded on the item.
    `authentication` selects a bearer token or an API key header; an
    unknown scheme fails the node.
    """

    type = "httpRequest"
    version = 1

    description = {
        "displayName": "HTTP Request",
        "name": "httpRequest",
        "icon": "fa:globe",
        "group": ["input", "output"],
        "description": "Make HTTP requests",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Method",
                "name": "method",
                "type": "options",
                "default": "GET",
                "options": [{"name": method, "value": method} for method in METHODS],
            },
            {
                "displayName": "URL",
                "name": "url",
                "type": "string",
                "default": "",
                "required": True,
            },
            {
                "displayName": "Headers",
                "name": "headers",
                "type": "json",
                "default": "{}",
            },
            {
                "displayName": "Query Parameters",
                "name": "queryParameters",
                "type": "json",
                "default": "{}",
            },
            {
                "displayName": "Body",
                "name": "body",
                "type": "json",
                "default": "",
                "displayOptions": {"show": {"method": list(BODY_METHODS)}},
            },
            {
                "displayName": "Body Content Type",
                "name": "contentType",
                "type": "options",
                "default": "json",
                "options": [
                    {"name": "JSON", "value": "json"},
                    {"name": "Raw", "value": "raw"},
                ],
            },
            {
                "displayName": "Authentication",
                "name": "authentication",
                "type": "options",
                "default": "none",
                "options": [
                    {"name": "None", "value": "none"},
                    {"name": "Bearer Token", "value": "bearerAuth"},
                    {"name": "Header Auth", "value": "headerAuth"},
                ],
            },
            {
                "displayName": "Bearer Token",
                "name": "bearerToken",
                "type": "string",
                "default": "",
                "displayOptions": {"show": {"authentication": ["bearerAuth"]}},
            },
            {
                "displayName": "Header Name",
                "name": "headerAuthName",
                "type": "string",
                "default": DEFAULT_AUTH_HEADER,
                "displayOptions": {"show": {"authentication": ["headerAuth"]}},
            },
            {
                "displayName": "Header Value",
                "name": "headerAuthValue",
                "type": "string",
                "default": "",
                "displayOptions": {"show": {"authentication": ["headerAuth"]}},
            },
            {
                "displayName": "Timeout",
                "name": "timeout",
                "type": "number",
                "default": None,
                "description": "Timeout in seconds",
            },
        ],
    }

    async def execute(self) -> List[Item]:
        """Make one HTTP request per item."""
        settings = self.context.settings
        results = []

        for i, item in enumerate(self.get_input_data()):
            method = str(self.get_node_parameter("method", i, "GET") or "GET").upper()
            url = self.get_node_parameter("url", i, "")
            self._validate(method, url, i)

            try:
                response_json = await self._request(method, str(url), i, settings)
                results.append(item.merged(**{RESPONSE_KEY: response_json}))
            except SoftRequestError as e:
                logger.warning(f"HTTP {method} {url} failed: {e}")
                results.append(item.merged(**{
                    "error": str(e),
                    RESPONSE_KEY: {"error": True, "url": url, "method": method},
                }))

        return results

    def _validate(self, method: str, url: Any, item_index: int) -> None:
        if method not in METHODS:
            raise NodeOperationError(f"HTTP Request: unsupported method '{method}'", node=self, item_index=item_index)
        if not url:
            raise NodeOperationError("HTTP Request: URL is required", node=self, item_index=item_index)
        parsed = urlparse(str(url))
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise NodeOperationError(f"HTTP Request: invalid URL '{url}'", node=self, item_index=item_index)
        auth = self.get_node_parameter("authentication", item_index, "none") or "none"
        if auth not in AUTH_TYPES:
            raise NodeOperationError(f"HTTP Request: unsupported authentication '{auth}'", node=self, item_index=item_index)

    def _credentials(self, item_index: int) -> Dict[str, Any]:
        """HttpClient keyword arguments for the selected authentication."""
        auth = self.get_node_parameter("authentication", item_index, "none") or "none"
        if auth == "bearerAuth":
            return {"bearer_token": str(self.get_node_parameter("bearerToken", item_index, "") or "")}
        if auth == "headerAuth":
            name = self.get_node_parameter("headerAuthName", item_index, DEFAULT_AUTH_HEADER)
            return {
                "api_key": str(self.get_node_parameter("headerAuthValue", item_index, "") or ""),
                "api_key_header": str(name or DEFAULT_AUTH_HEADER),
            }
        return {}

    async def _request(self, method: str, url: str, item_index: int, settings: Any) -> Dict[str, Any]:
        headers = _parse_json_param(self.get_node_parameter("headers", item_index, None), "headers") or {}
        if not isinstance(headers, dict):
            raise SoftRequestError("headers must be a JSON object")
        headers = {str(k): str(v) for k, v in headers.items()}
        headers.setdefault("User-Agent", settings.http_user_agent)

        params = _parse_json_param(self.get_node_parameter("queryParameters", item_index, None), "queryParameters")
        if params is not None and not isinstance(params, dict):
            raise SoftRequestError("queryParameters must be a JSON object")

        json_body: Any = None
        raw_body: Optional[str] = None
        if method in BODY_METHODS:
            body = self.get_node_parameter("body", item_index, None)
            if self.get_node_parameter("contentType", item_index, "json") == "raw":
                raw_body = None if body is None else str(body)
            else:
                json_body = _parse_json_param(body, "body")

        timeout = self.get_node_parameter("timeout", item_index, None) or settings.http_timeout_s
        client = HttpClient(
            timeout=float(timeout),
            transport=self.context.http_transport,
            **self._credentials(item_index),
        )

        try:
            response = await client.request(
                method,
                url,
                params=params,
                json=json_body,
                data=raw_body,
                headers=headers,
            )
        except NodeTimeoutError as e:
            raise SoftRequestError(str(e)) from e
        except HttpApiError as e:
            raise SoftRequestError(str(e)) from e

        try:
            response.raise_for_status()
        except HttpApiError as e:
            raise SoftRequestError(str(e)) from e

        if response.is_json:
            try:
                data: Any = response.json()
            except ValueError as e:
                raise SoftRequestError(f"Invalid JSON in response: {e}") from e
        else:
            data = response.text

        return {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "headers": response.headers,
            "data": data,
            "url": url,
            "method": method,
        }


__all__ = [
    "HttpRequestNode",
    "RESPONSE_KEY",
]
