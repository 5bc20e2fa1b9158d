"""Batch feed updater.

Refreshes every stored feed and inserts items that are not stored yet.
Requests to the same host are spaced at least ``min_interval`` seconds
apart; different hosts are fetched concurrently. A failing feed only bumps
its own error counter.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import httpx

from feed_sync.config import DEFAULT_USER_AGENT
from feed_sync.exceptions import FeedError
from feed_sync.interfaces import FeedStorage
from feed_sync.models.schemas import Feed
from feed_sync.services.feed_parser import ParsedFeed, parse_feed
from feed_sync.services.http import DEFAULT_TIMEOUT, create_client, extract_hostname


logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 1.0
DEFAULT_MAX_CONCURRENT_HOSTS = 8


@dataclass
class UpdateSummary:
    """Outcome of one batch update."""

    feeds_processed: int = 0
    feeds_failed: int = 0
    new_items: int = 0


class FeedUpdater:
    """Refreshes all feeds from a storage backend.

    Args:
        store: Storage providing feeds and accepting new items
        client: HTTP client to use; a new one is opened per batch when omitted
        min_interval: Minimum seconds between two requests to one host
        max_concurrent_hosts: Number of feed requests in flight at once. A slot
            is held for a single fetch, not while waiting on a host's pacing,
            so a busy host never holds back the others
        clock: Monotonic time source, in seconds
        sleep: Coroutine function used to wait
    """

    def __init__(
        self,
        store: FeedStorage,
        client: Optional[httpx.AsyncClient] = None,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        max_concurrent_hosts: int = DEFAULT_MAX_CONCURRENT_HOSTS,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        if max_concurrent_hosts < 1:
            raise ValueError("max_concurrent_hosts must be at least 1")

        self.store = store
        self._client = client
        self.min_interval = min_interval
        self.max_concurrent_hosts = max_concurrent_hosts
        self.timeout = timeout
        self.user_agent = user_agent
        self._clock = clock
        self._sleep = sleep
        self._fetch_slots = asyncio.Semaphore(max_concurrent_hosts)
        self._update_in_progress = False
        self._domain_last_request: Dict[str, float] = {}

    @property
    def is_update_in_progress(self) -> bool:
        return self._update_in_progress

    @staticmethod
    def extract_domain(feed_url: str) -> str:
        """Rate-limit key for a feed URL: its hostname, or the whole string."""
        return extract_hostname(feed_url) or feed_url

    async def update_items(self) -> UpdateSummary:
        """Fetch all feeds and store their new items.

        Returns:
            Counts of processed feeds, failed feeds and inserted items
        """
        self._update_in_progress = True
        summary = UpdateSummary()
        started = time.monotonic()

        try:
            feeds = await self.store.list_feeds()
            logger.info(f"Updating {len(feeds)} feeds")

            if self._client is not None:
                await self._update_all(self._client, feeds, summary)
            else:
                async with create_client(self.timeout, self.user_agent) as client:
                    await self._update_all(client, feeds, summary)

            logger.info(
                f"Update finished in {time.monotonic() - started:.1f}s: "
                f"{summary.feeds_processed} feeds, {summary.new_items} new items, "
                f"{summary.feeds_failed} failures"
            )
            return summary
        finally:
            self._update_in_progress = False

    async def _update_all(
        self, client: httpx.AsyncClient, feeds: List[Feed], summary: UpdateSummary
    ) -> None:
        groups: Dict[str, List[Feed]] = {}
        for feed in feeds:
            groups.setdefault(self.extract_domain(feed.feed_url), []).append(feed)

        async def update_group(group: List[Feed]) -> None:
            for feed in group:
                await self._update_and_count(client, feed, summary)

        await asyncio.gather(*(update_group(group) for group in groups.values()))

    async def _update_and_count(
        self, client: httpx.AsyncClient, feed: Feed, summary: UpdateSummary
    ) -> None:
        summary.feeds_processed += 1
        try:
            added = await self.update_feed(client, feed)
            summary.new_items += added
        except FeedError as e:
            summary.feeds_failed += 1
            logger.warning(f"Error updating feed {feed.id}: {e}")
            await self._record_failure(feed)
        except Exception:
            summary.feeds_failed += 1
            logger.exception(f"Unexpected error updating feed {feed.id} ({feed.feed_url})")
            await self._record_failure(feed)

    async def _record_failure(self, feed: Feed) -> None:
        try:
            await self.store.increment_feed_error_count(feed.id)
        except Exception as e:
            logger.error(f"Failed to record error for feed {feed.id}: {e}")

    async def update_feed(self, client: httpx.AsyncClient, feed: Feed) -> int:
        """Fetch one feed and insert its unseen items.

        Returns:
            Number of inserted items

        Raises:
            FeedError: If the feed could not be fetched or parsed
        """
        parsed = await self.load_feed_data(client, feed)

        added = 0
        for item in parsed.items:
            if await self.store.item_exists_by_url(item.url):
                continue
            if await self.store.insert_item(item, feed.id):
                added += 1

        if added:
            logger.debug(f"Feed {feed.id}: {added} new items")
        return added

    async def load_feed_data(self, client: httpx.AsyncClient, feed: Feed) -> ParsedFeed:
        """Fetch and parse one feed, waiting for its host's rate limit first."""
        await self.wait_for_domain(self.extract_domain(feed.feed_url))
        async with self._fetch_slots:
            return await parse_feed(client, feed.feed_url)

    async def wait_for_domain(self, domain: str) -> None:
        """Wait until a request to ``domain`` is allowed.

        The slot is reserved before waiting, so concurrent callers for the
        same host queue up behind each other.
        """
        now = self._clock()
        last = self._domain_last_request.get(domain)

        scheduled = now if last is None else max(now, last + self.min_interval)
        self._domain_last_request[domain] = scheduled

        delay = scheduled - now
        if delay > 0:
            logger.debug(f"Rate limiting {domain}: waiting {delay:.2f}s")
            await self._sleep(delay)

