"""Shared HTTP helpers for feed discovery and updates.

Every request goes through an httpx.AsyncClient created by create_client(),
so each outbound call carries its own timeout.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

import httpx

from feed_sync.config import DEFAULT_USER_AGENT


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

# Content types accepted as a feed response
FEED_CONTENT_TYPES = frozenset({
    "application/x-rss+xml",
    "application/rss+xml",
    "application/atom+xml",
    "application/xml",
    "text/xml",
})

# Content types worth scanning for feed links
HTML_CONTENT_TYPES = (
    "text/html",
    "application/xhtml+xml",
    "application/xml",
    "text/xml",
)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def create_client(
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
) -> httpx.AsyncClient:
    """Create the HTTP client used for all feed requests."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={
            "Accept-Encoding": "gzip, deflate",
            "User-Agent": user_agent,
        },
    )


def extract_hostname(url: str) -> Optional[str]:
    """Return the lowercase hostname of a URL without its port.

    Returns:
        Hostname, or None if the URL has no network location
    """
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname or None


def media_type(content_type: Optional[str]) -> Optional[str]:
    """Strip parameters from a Content-Type header value."""
    if not content_type:
        return None
    return content_type.split(";")[0].strip().lower() or None


def is_html_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    lowered = content_type.lower()
    return any(t in lowered for t in HTML_CONTENT_TYPES)


async def get_content_type(client: httpx.AsyncClient, url: str) -> Optional[str]:
    """Fetch a URL and return its media type.

    Args:
        client: HTTP client
        url: URL to probe

    Returns:
        Media type such as "application/rss+xml", or None if the request
        failed or returned an error status
    """
    try:
        response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug(f"Failed to fetch content type for {url}: {e}")
        return None

    if response.status_code >= 400:
        logger.debug(f"Content type probe for {url} returned {response.status_code}")
        return None

    return media_type(response.headers.get("content-type"))


async def is_feed_response(client: httpx.AsyncClient, url: str) -> bool:
    """Check whether a URL responds with a feed content type."""
    content_type = await get_content_type(client, url)
    return content_type in FEED_CONTENT_TYPES


async def fetch_html(client: httpx.AsyncClient, url: str) -> Optional[httpx.Response]:
    """Fetch a page as HTML.

    Returns:
        The response, or None on network errors and error statuses
    """
    try:
        response = await client.get(url, headers={"Accept": HTML_ACCEPT})
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Failed to fetch page {url}: {e}")
        return None

    if response.status_code >= 400:
        logger.debug(f"Page {url} returned {response.status_code}")
        return None

    return response
