"""Tests for tool gateways."""

import asyncio
import json

import httpx
import pytest

from toolflow.config import ToolflowConfig
from toolflow.exceptions import ToolInvocationError
from toolflow.gateway import LocalToolGateway, get_gateway
from toolflow.gateway.http import HttpToolGateway


@pytest.mark.asyncio
async def test_local_gateway_sync_and_async_handlers():
    gateway = LocalToolGateway()

    @gateway.tool()
    def add(a, b):
        return a + b

    @gateway.tool("greet")
    async def greeting(name):
        return f"hello {name}"

    assert gateway.tool_names == ["add", "greet"]

    added = await gateway.execute("add", {"a": 1, "b": 2})
    assert added.success is True
    assert added.data == 3

    greeted = await gateway.execute("greet", {"name": "ada"})
    assert greeted.data == "hello ada"


@pytest.mark.asyncio
async def test_local_gateway_reports_failures():
    def broken():
        raise RuntimeError("upstream 500")

    gateway = LocalToolGateway({"broken": broken})

    unknown = await gateway.execute("nope", {})
    assert unknown.success is False
    assert unknown.error == "Unknown tool: nope"

    failed = await gateway.execute("broken", {})
    assert failed.success is False
    assert failed.error == "upstream 500"


@pytest.mark.asyncio
async def test_local_gateway_timeout():
    async def slow():
        await asyncio.sleep(1)

    gateway = LocalToolGateway({"slow": slow}, timeout=0.01)
    result = await gateway.execute("slow", {})
    assert result.success is False
    assert "timed out" in result.error


def _http_gateway(handler) -> HttpToolGateway:
    client = httpx.AsyncClient(base_url="http://tools", transport=httpx.MockTransport(handler))
    return HttpToolGateway(base_url="http://tools", client=client)


@pytest.mark.asyncio
async def test_http_gateway_posts_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "data": {"rank": 1}})

    gateway = _http_gateway(handler)
    result = await gateway.execute("domain_overview", {"domain": "example.com"})

    assert seen == {"path": "/tools/domain_overview", "body": {"domain": "example.com"}}
    assert result.success is True
    assert result.data == {"rank": 1}


@pytest.mark.asyncio
async def test_http_gateway_passes_tool_level_failure():
    gateway = _http_gateway(
        lambda request: httpx.Response(200, json={"success": False, "error": "quota exceeded"})
    )
    result = await gateway.execute("search", {})
    assert result.success is False
    assert result.error == "quota exceeded"


@pytest.mark.asyncio
async def test_http_gateway_raises_on_transport_errors():
    gateway = _http_gateway(lambda request: httpx.Response(502, text="bad gateway"))
    with pytest.raises(ToolInvocationError, match="HTTP 502"):
        await gateway.execute("search", {})

    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ToolInvocationError, match="timed out"):
        await _http_gateway(timeout).execute("search", {})

    invalid = _http_gateway(lambda request: httpx.Response(200, json=["not", "a", "result"]))
    with pytest.raises(ToolInvocationError, match="invalid response"):
        await invalid.execute("search", {})


def test_get_gateway_selects_backend(monkeypatch):
    monkeypatch.delenv("TOOLFLOW_GATEWAY", raising=False)
    config = ToolflowConfig()
    assert isinstance(get_gateway(config=config), LocalToolGateway)

    config.gateway.backend = "http"
    config.gateway.http.base_url = "http://remote:9000/"
    gateway = get_gateway(config=config)
    assert isinstance(gateway, HttpToolGateway)
    assert gateway.base_url == "http://remote:9000"

    monkeypatch.setenv("TOOLFLOW_GATEWAY", "local")
    assert isinstance(get_gateway(config=config), LocalToolGateway)

    with pytest.raises(ValueError):
        get_gateway("smoke-signals", config=config)
