"""Shared test fixtures.

HTTP is faked with a MagicMock client whose ``get`` is an AsyncMock routed
by URL; unknown URLs answer 404.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock


RSS_FEED = """<?xml version="1.0"?>
<rss version="2.0">
    <channel>
        <title>{title}</title>
        <link>{link}</link>
        <item><title>Post 1</title><link>{link}/post1</link></item>
        <item><title>Post 2</title><link>{link}/post2</link></item>
    </channel>
</rss>
"""


@pytest.fixture
def anyio_backend():
    return "asyncio"


def build_response(status_code=200, text="", content_type="text/html", json_data=None, url=None):
    """Response mock; ``url`` is the final URL after redirects."""
    response = MagicMock()
    response.url = url
    response.status_code = status_code
    response.text = text
    response.headers = {"content-type": content_type} if content_type else {}
    response.json = MagicMock(return_value=json_data)
    return response


def build_client(routes):
    """Client whose GET answers from ``routes`` (url -> response or exception)."""
    calls = []

    async def mock_get(url, **kwargs):
        calls.append(url)
        route = routes.get(url)
        if route is None:
            return build_response(404, "Not Found", url=url)
        if isinstance(route, Exception):
            raise route
        if route.url is None:
            route.url = url
        return route

    client = MagicMock()
    client.get = AsyncMock(side_effect=mock_get)
    client.calls = calls
    return client


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def make_client():
    return build_client


@pytest.fixture
def rss_response():
    def _rss(title="Test Feed", link="https://example.com", content_type="application/rss+xml"):
        return build_response(
            text=RSS_FEED.format(title=title, link=link),
            content_type=content_type,
        )
    return _rss
