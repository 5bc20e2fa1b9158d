"""Feed discovery service.

This module finds every RSS/Atom feed reachable from a seed URL or bare
domain:

1. If the URL itself serves a feed content type, it is parsed directly
2. Platform resolvers (Medium, Substack, YouTube) try their URL conventions
3. Otherwise the page is fetched and scanned for feed-like links, which are
   resolved recursively up to ``max_depth`` hops

Discovery never raises; any failure yields an empty result.
"""

import asyncio
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from feed_sync.config import DEFAULT_USER_AGENT
from feed_sync.models.schemas import ResolvedFeed
from feed_sync.services.feed_parser import load_feed_data
from feed_sync.services.http import (
    DEFAULT_TIMEOUT,
    create_client,
    fetch_html,
    is_feed_response,
    is_html_content_type,
)
from feed_sync.services.resolvers import PlatformResolver, default_resolvers


logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 2

# Elements whose attributes suggest a feed
FEED_LINK_SELECTOR = ", ".join([
    '[type="application/rss+xml"][href]',
    '[type="application/atom+xml"][href]',
    '[href*="rss"]',
    '[href*="atom"]',
    '[href*="feed"]',
])

_DOMAIN_RE = re.compile(
    r"^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$",
    re.IGNORECASE,
)


def is_valid_domain(value: str) -> bool:
    """Check that a string is a syntactically valid domain name."""
    return bool(_DOMAIN_RE.match(value))


def normalize_url(url: str) -> Optional[str]:
    """Turn user input into an absolute URL.

    Absolute http(s) URLs are returned unchanged. Bare domains get an
    ``https://`` prefix.

    Returns:
        Absolute URL, or None if the input is neither
    """
    url = url.strip()
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme in ("http", "https") and parts.netloc:
        return url

    if is_valid_domain(url):
        return f"https://{url}"

    return None


def dedupe_feeds(feeds: Iterable[ResolvedFeed]) -> List[ResolvedFeed]:
    """Drop feeds with an already-seen feed URL, keeping first occurrences."""
    seen = set()
    result = []
    for feed in feeds:
        if feed.feed_url in seen:
            continue
        seen.add(feed.feed_url)
        result.append(feed)
    return result


def find_feed_links(html: str, base_url: str) -> List[str]:
    """Collect absolute URLs of feed-like links in a document.

    Args:
        html: Page markup
        base_url: Final URL of the page, after redirects

    Returns:
        Unique absolute URLs in document order
    """
    soup = BeautifulSoup(html, "lxml")

    found = []
    seen = set()
    for element in soup.select(FEED_LINK_SELECTOR):
        href = element.get("href", "").strip()
        if not href:
            continue

        try:
            absolute_url = urljoin(base_url, href)
        except ValueError:
            logger.debug(f"Skipping malformed link {href!r} on {base_url}")
            continue

        if absolute_url in seen:
            continue
        seen.add(absolute_url)
        found.append(absolute_url)

    return found


class FeedFinder:
    """Resolves seed URLs into feed records.

    Args:
        client: HTTP client to use; a new one is opened per ``resolve`` call
            when omitted
        resolvers: Platform resolvers in priority order
        max_depth: Number of link-following hops
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        resolvers: Optional[Sequence[PlatformResolver]] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        if max_depth < 0:
            raise ValueError("max_depth must not be negative")

        self._client = client
        self.resolvers = list(resolvers) if resolvers is not None else default_resolvers()
        self.max_depth = max_depth
        self.timeout = timeout
        self.user_agent = user_agent

    async def resolve(self, url: str) -> List[ResolvedFeed]:
        """Find all feeds for a URL or bare domain.

        Args:
            url: Absolute URL or bare domain

        Returns:
            Feeds found, without duplicate feed URLs; empty if none
        """
        logger.info(f"Resolving feeds for: {url}")

        try:
            if self._client is not None:
                feeds = await self.check_feed(self._client, url)
            else:
                async with create_client(self.timeout, self.user_agent) as client:
                    feeds = await self.check_feed(client, url)
        except Exception as e:
            logger.error(f"Feed resolution failed for {url}: {e}", exc_info=True)
            return []

        logger.info(f"Found {len(feeds)} feed(s) for: {url}")
        return feeds

    async def resolve_many(self, urls: Iterable[str]) -> Dict[str, List[ResolvedFeed]]:
        """Resolve several URLs one after another, e.g. for a bulk import."""
        results = {}
        for url in urls:
            results[url] = await self.resolve(url)
        return results

    async def check_feed(
        self, client: httpx.AsyncClient, url: str, depth: int = 0
    ) -> List[ResolvedFeed]:
        """Resolve one URL at the given recursion depth."""
        normalized = normalize_url(url)
        if normalized is None:
            logger.debug(f"Not a URL or domain: {url}")
            return []

        if await is_feed_response(client, normalized):
            feed = await load_feed_data(client, normalized)
            return [feed] if feed else []

        for resolver in self.resolvers:
            feeds = await resolver.resolve_feeds(client, normalized)
            if feeds:
                return feeds

        if depth < self.max_depth:
            return await self.search_for_feeds(client, normalized, depth + 1)

        return []

    async def search_for_feeds(
        self, client: httpx.AsyncClient, url: str, depth: int
    ) -> List[ResolvedFeed]:
        """Scan a page for feed links and resolve each of them at ``depth``."""
        response = await fetch_html(client, url)
        if response is None:
            return []

        content_type = response.headers.get("content-type", "")
        if not is_html_content_type(content_type):
            logger.warning(f"Skipping non-HTML content at {url} ({content_type})")
            return []

        html = response.text
        try:
            found_urls = find_feed_links(html, str(response.url))
        except Exception as e:
            logger.warning(f"Failed to parse HTML from {url}: {e}")
            found_urls = []

        platform_feeds = []
        for resolver in self.resolvers:
            try:
                platform_feeds.extend(await resolver.resolve_feeds(client, url, html))
            except Exception as e:
                logger.warning(f"Failed to resolve {resolver.name} feeds from HTML: {e}")

        if not found_urls and not platform_feeds:
            return []

        nested = await asyncio.gather(
            *(self.check_feed(client, found_url, depth) for found_url in found_urls)
        )

        combined = list(platform_feeds)
        for feeds in nested:
            combined.extend(feeds)

        return dedupe_feeds(combined)
