"""Shared fixtures: quiet Logfire, a scriptable upstream, a proxy client."""

import httpx
import logfire
import pytest

from mcp_id_shim import IdShimProxy, ShimConfig

UPSTREAM_URL = "http://upstream.test"


@pytest.fixture(scope="session", autouse=True)
def quiet_logfire():
    """Keep Logfire local and silent during tests."""
    logfire.configure(send_to_logfire=False, console=False)


class FakeUpstream:
    """Stands in for the MCP server behind the proxy.

    Set status/body/headers (or error) before the call; inspect
    `requests` afterwards.
    """

    def __init__(self):
        self.status = 200
        self.body = b""
        self.headers = {"content-type": "text/event-stream"}
        self.error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, content=self.body, headers=self.headers)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_client(aiohttp_client, upstream):
    """Factory: proxy client with optional config overrides."""

    async def factory(**overrides):
        config = ShimConfig(upstream_url=UPSTREAM_URL + "/", **overrides)
        proxy = IdShimProxy(config, transport=httpx.MockTransport(upstream.handler))
        return await aiohttp_client(proxy.build_app())

    return factory


@pytest.fixture
async def client(make_client):
    return await make_client()
