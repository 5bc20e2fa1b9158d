"""Base class for platform feed resolvers.

Some blogging and video platforms do not advertise their feeds in page
markup. A platform resolver knows the URL conventions of one platform and
turns a page URL into candidate feed URLs, which are then validated by
content sniffing and parsing.
"""

import asyncio
import logging
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

import httpx

from feed_sync.models.schemas import ResolvedFeed
from feed_sync.services.feed_parser import load_feed_data
from feed_sync.services.http import extract_hostname, is_feed_response


logger = logging.getLogger(__name__)


def unique_candidates(candidates: Iterable[str], original_url: str) -> List[str]:
    """Deduplicate candidates in first-seen order and drop the original URL."""
    seen = set()
    result = []
    for candidate in candidates:
        if candidate == original_url or candidate in seen:
            continue
        seen.add(candidate)
        result.append(candidate)
    return result


def origin(url: str) -> str:
    """Return scheme://host[:port] of a URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


class PlatformResolver:
    """Resolves feeds hidden behind one platform's URL conventions.

    Subclasses set ``name`` and implement ``is_host``, ``build_candidates``
    and ``is_powered_by``. ``resolve_feeds`` never raises.
    """

    name = "platform"

    @classmethod
    def is_host(cls, hostname: str) -> bool:
        raise NotImplementedError

    @classmethod
    def build_candidates(cls, url: str, powered_by: bool = False) -> List[str]:
        raise NotImplementedError

    @classmethod
    def is_powered_by(cls, html: str) -> bool:
        return False

    @classmethod
    def matches_url(cls, url: str) -> bool:
        hostname = extract_hostname(url)
        return bool(hostname) and cls.is_host(hostname)

    async def candidates_for(
        self, client: httpx.AsyncClient, url: str, html: Optional[str] = None
    ) -> List[str]:
        """Candidate feed URLs for a page; platforms needing lookups override this."""
        powered_by = bool(html) and self.is_powered_by(html)
        return self.build_candidates(url, powered_by)

    async def resolve_feeds(
        self, client: httpx.AsyncClient, url: str, html: Optional[str] = None
    ) -> List[ResolvedFeed]:
        """Resolve the feeds of a page through this platform's conventions.

        Args:
            client: HTTP client
            url: Page URL
            html: Already-fetched page markup, if any

        Returns:
            Feeds that responded with a feed content type and parsed
        """
        try:
            candidates = unique_candidates(
                await self.candidates_for(client, url, html), url
            )
            if not candidates:
                return []

            checked = await asyncio.gather(
                *(self._check_candidate(client, candidate) for candidate in candidates)
            )
            feeds = [feed for feed in checked if feed]

            if feeds:
                logger.info(f"{self.name}: resolved {len(feeds)} feed(s) for {url}")
            return feeds
        except Exception as e:
            logger.warning(f"{self.name}: failed to resolve feeds for {url}: {e}")
            return []

    async def _check_candidate(
        self, client: httpx.AsyncClient, candidate: str
    ) -> Optional[ResolvedFeed]:
        try:
            if not await is_feed_response(client, candidate):
                return None
            return await load_feed_data(client, candidate)
        except Exception as e:
            logger.debug(f"{self.name}: candidate {candidate} failed: {e}")
            return None
