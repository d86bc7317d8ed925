"""Tests for the HTTP Request node and the async HTTP client."""
import json

import httpx
import pytest

from flowgraph.nodepacks.core.http_request import RESPONSE_KEY, HttpRequestNode
from flowgraph.sdk import NodeOperationError
from flowgraph.sdk.http import HttpApiError, HttpClient, NodeTimeoutError


def _transport(handler):
    """MockTransport recording every request it receives."""
    calls = []

    def _handle(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    transport = httpx.MockTransport(_handle)
    transport.calls = calls
    return transport


class TestHttpClient:
    """Test HttpClient."""

    async def test_base_url_and_auth_headers(self):
        """Test that base_url, bearer token and API key are applied."""
        transport = _transport(lambda request: httpx.Response(200, json={"ok": True}))
        client = HttpClient(
            base_url="https://api.example.com/",
            bearer_token="secret",
            api_key="k-1",
            transport=transport,
        )

        response = await client.request("GET", "/users", params={"limit": 10})

        request = transport.calls[0]
        assert str(request.url) == "https://api.example.com/users?limit=10"
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["X-API-Key"] == "k-1"
        assert response.ok
        assert response.is_json
        assert response.json() == {"ok": True}

    async def test_raise_for_status(self):
        """Test that non-2xx responses raise HttpApiError on demand."""
        transport = _transport(lambda request: httpx.Response(404, text="missing"))
        client = HttpClient(transport=transport)

        response = await client.request("GET", "https://api.example.com/nope")

        with pytest.raises(HttpApiError) as exc_info:
            response.raise_for_status()
        assert exc_info.value.status_code == 404
        assert exc_info.value.response_body == "missing"

    async def test_timeout_mapped(self):
        """Test that transport timeouts become NodeTimeoutError."""
        def _timeout(request):
            raise httpx.ReadTimeout("too slow", request=request)

        client = HttpClient(timeout=1.5, transport=_transport(_timeout))

        with pytest.raises(NodeTimeoutError) as exc_info:
            await client.request("GET", "https://api.example.com/slow")
        assert exc_info.value.timeout == 1.5

    async def test_connection_error_mapped(self):
        """Test that connection failures become HttpApiError."""
        def _refuse(request):
            raise httpx.ConnectError("refused", request=request)

        client = HttpClient(transport=_transport(_refuse))

        with pytest.raises(HttpApiError, match="Request failed"):
            await client.request("POST", "https://api.example.com/x", json={"a": 1})


class TestHttpRequestNode:
    """Test HttpRequestNode."""

    async def test_get_json(self, node_context):
        """Test a successful GET with templated URL."""
        transport = _transport(lambda request: httpx.Response(200, json={"id": 7, "name": "Ada"}))
        node = node_context(
            HttpRequestNode(),
            parameters={"method": "GET", "url": "{{ $vars.apiUrl }}/users/{{ userId }}"},
            items=[{"userId": 7}],
            transport=transport,
        )

        result = await node.execute()

        response = result[0].json[RESPONSE_KEY]
        assert response["status"] == 200
        assert response["data"] == {"id": 7, "name": "Ada"}
        assert response["url"] == "https://api.example.com/users/7"
        assert response["method"] == "GET"
        assert result[0].json["userId"] == 7
        assert transport.calls[0].headers["User-Agent"].startswith("flowgraph-engine/")

    async def test_post_json_body(self, node_context):
        """Test that POST sends a JSON body and custom headers."""
        transport = _transport(lambda request: httpx.Response(201, text="created"))
        node = node_context(
            HttpRequestNode(),
            parameters={
                "method": "post",
                "url": "https://api.example.com/items",
                "headers": '{"X-Trace": "abc"}',
                "body": {"name": "{{ name }}"},
            },
            items=[{"name": "widget"}],
            transport=transport,
        )

        result = await node.execute()

        request = transport.calls[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"name": "widget"}
        assert request.headers["X-Trace"] == "abc"
        assert result[0].json[RESPONSE_KEY]["data"] == "created"

    async def test_one_request_per_item(self, node_context):
        """Test that every input item gets its own request."""
        transport = _transport(lambda request: httpx.Response(200, json={}))
        node = node_context(
            HttpRequestNode(),
            parameters={"url": "https://api.example.com/{{ n }}"},
            items=[{"n": 1}, {"n": 2}, {"n": 3}],
            transport=transport,
        )

        result = await node.execute()

        assert len(result) == 3
        assert [request.url.path for request in transport.calls] == ["/1", "/2", "/3"]

    async def test_error_status_is_soft(self, node_context):
        """Test that a 500 response is attached to the item."""
        transport = _transport(lambda request: httpx.Response(500, text="boom"))
        node = node_context(
            HttpRequestNode(),
            parameters={"url": "https://api.example.com/fail"},
            items=[{"a": 1}],
            transport=transport,
        )

        result = await node.execute()

        assert "HTTP 500" in result[0].json["error"]
        assert result[0].json[RESPONSE_KEY] == {
            "error": True,
            "url": "https://api.example.com/fail",
            "method": "GET",
        }

    @pytest.mark.parametrize("url", ["not-a-url", "", "ftp://example.com/file"])
    async def test_invalid_url_is_hard_failure(self, node_context, url):
        """Test that an invalid URL fails the node."""
        node = node_context(HttpRequestNode(), parameters={"url": url}, items=[{}])

        with pytest.raises(NodeOperationError):
            await node.execute()

    async def test_unsupported_method(self, node_context):
        """Test that an unknown method fails the node."""
        node = node_context(
            HttpRequestNode(),
            parameters={"method": "FETCH", "url": "https://api.example.com"},
            items=[{}],
        )

        with pytest.raises(NodeOperationError, match="unsupported method"):
            await node.execute()

    async def test_bearer_authentication(self, node_context):
        """Test that bearerAuth sends the token resolved against the item."""
        transport = _transport(lambda request: httpx.Response(200, json={}))
        node = node_context(
            HttpRequestNode(),
            parameters={
                "url": "https://api.example.com/me",
                "authentication": "bearerAuth",
                "bearerToken": "{{ token }}",
            },
            items=[{"token": "t-123"}],
            transport=transport,
        )

        await node.execute()

        assert transport.calls[0].headers["Authorization"] == "Bearer t-123"

    async def test_header_authentication(self, node_context):
        """Test that headerAuth sends the key under the configured header."""
        transport = _transport(lambda request: httpx.Response(200, json={}))
        node = node_context(
            HttpRequestNode(),
            parameters={
                "url": "https://api.example.com/me",
                "authentication": "headerAuth",
                "headerAuthName": "X-Token",
                "headerAuthValue": "k-9",
            },
            items=[{}],
            transport=transport,
        )

        await node.execute()

        request = transport.calls[0]
        assert request.headers["X-Token"] == "k-9"
        assert "Authorization" not in request.headers

    async def test_unsupported_authentication(self, node_context):
        """Test that an unknown authentication scheme fails the node."""
        node = node_context(
            HttpRequestNode(),
            parameters={"url": "https://api.example.com", "authentication": "oAuth2Api"},
            items=[{}],
        )

        with pytest.raises(NodeOperationError, match="unsupported authentication"):
            await node.execute()
