"""Feed sync MCP tools.

This module provides MCP tools for discovering feeds, storing them and
refreshing their items.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

import logging
from typing import Any, Callable, Dict, List

from mcp.server.fastmcp import Context

from feed_sync.models.schemas import ResolvedFeed
from feed_sync.services.feed_discovery import FeedFinder
from feed_sync.services.feed_updater import FeedUpdater
from feed_sync.storage.database import FeedStore


logger = logging.getLogger(__name__)


def _feed_dict(feed) -> Dict[str, Any]:
    if isinstance(feed, ResolvedFeed):
        return {"title": feed.title, "feed_url": feed.feed_url, "url": feed.site_url}
    return {
        "id": feed.id,
        "title": feed.title,
        "url": feed.url,
        "feed_url": feed.feed_url,
        "feed_type": feed.feed_type,
        "error_count": feed.error_count,
        "category_id": feed.category_id,
    }


async def _store_new_feeds(
    store: FeedStore, feeds: List[ResolvedFeed], category_id: int
) -> List[Dict[str, Any]]:
    added = []
    for resolved in feeds:
        if await store.get_feed_by_url(resolved.feed_url):
            continue
        try:
            feed = await store.insert_feed(resolved, category_id=category_id)
        except ValueError as e:
            logger.info(f"Skipping feed: {e}")
            continue
        added.append(_feed_dict(feed))
    return added


def build_feed_tools(
    store: FeedStore, finder: FeedFinder, updater: FeedUpdater
) -> List[Callable]:
    """Create the feed tools bound to the given services.

    Returns:
        Tool functions for registration with the MCP server
    """

    async def check_feed(url: str, ctx: Context = None) -> Dict[str, Any]:
        """Find the RSS/Atom feeds for a website, page or feed URL without saving them.

        Understands Medium, Substack and YouTube URLs (including single videos
        and @handles) and follows feed links found in page markup.

        Args:
            url: Website URL, page URL, feed URL or bare domain (e.g. "example.com")
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - count: number of feeds found
            - feeds: list of objects with title, feed_url, url
        """
        logger.info(f"check_feed called: url={url}")

        feeds = await finder.resolve(url)

        return {
            "success": True,
            "count": len(feeds),
            "feeds": [_feed_dict(f) for f in feeds],
        }

    async def add_feed(url: str, category_id: int = 0, ctx: Context = None) -> Dict[str, Any]:
        """Discover the feeds of a URL and subscribe to every one not yet stored.

        Args:
            url: Website URL, page URL, feed URL or bare domain
            category_id: Category to file the new feeds under (0 for uncategorized)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - found: number of feeds discovered
            - added: list of stored feed objects
            - error: string if no feed was found
        """
        logger.info(f"add_feed called: url={url}, category_id={category_id}")

        feeds = await finder.resolve(url)
        if not feeds:
            return {
                "success": False,
                "error": f"Could not find a feed for {url}",
            }

        added = await _store_new_feeds(store, feeds, category_id)

        return {
            "success": True,
            "found": len(feeds),
            "added": added,
        }

    async def import_feeds(
        urls: List[str], category_id: int = 0, ctx: Context = None
    ) -> Dict[str, Any]:
        """Import many feed URLs at once, e.g. the outlines of an OPML file.

        Each URL is resolved on its own; URLs without a feed are reported
        but do not stop the import.

        Args:
            urls: Feed or website URLs to import
            category_id: Category to file the new feeds under (0 for uncategorized)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - imported: total number of feeds stored
            - results: per-URL objects with url, found, added
        """
        logger.info(f"import_feeds called: {len(urls)} urls")

        resolved = await finder.resolve_many(urls)

        results = []
        imported = 0
        for url, feeds in resolved.items():
            added = await _store_new_feeds(store, feeds, category_id)
            imported += len(added)
            results.append({"url": url, "found": len(feeds), "added": len(added)})

        return {
            "success": True,
            "imported": imported,
            "results": results,
        }

    async def list_feeds(ctx: Context = None) -> Dict[str, Any]:
        """List all stored feeds with their error counts.

        Args:
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - count: number of feeds
            - feeds: list of feed objects
        """
        logger.info("list_feeds called")

        feeds = await store.list_feeds()

        return {
            "success": True,
            "count": len(feeds),
            "feeds": [_feed_dict(f) for f in feeds],
        }

    async def list_items(feed_url: str = "", limit: int = 50, ctx: Context = None) -> Dict[str, Any]:
        """List stored items, newest first.

        Args:
            feed_url: Only items of this feed (empty string for all feeds)
            limit: Maximum number of items to return (default: 50)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - count: number of items returned
            - items: list of item objects
            - error: string if the feed is not stored
        """
        logger.info(f"list_items called: feed_url={feed_url}, limit={limit}")

        feed_id = None
        if feed_url:
            feed = await store.get_feed_by_url(feed_url)
            if not feed:
                return {
                    "success": False,
                    "error": f"Feed '{feed_url}' not found",
                }
            feed_id = feed.id

        items = await store.list_items(feed_id=feed_id, limit=limit)

        return {
            "success": True,
            "count": len(items),
            "items": [
                {
                    "id": i.id,
                    "feed_id": i.feed_id,
                    "title": i.title,
                    "url": i.url,
                    "published_date": i.published_date.isoformat() if i.published_date else None,
                    "discovered_date": i.discovered_date.isoformat() if i.discovered_date else None,
                    "is_read": i.is_read,
                }
                for i in items
            ],
        }

    async def update_feeds(ctx: Context = None) -> Dict[str, Any]:
        """Fetch all stored feeds now and store their new items.

        Requests to the same host are spaced one second apart, so large
        subscriptions lists can take a while.

        Args:
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - feeds_processed, feeds_failed, new_items: counts for the run
            - error: string if an update is already running
        """
        logger.info("update_feeds called")

        if updater.is_update_in_progress:
            return {
                "success": False,
                "error": "An update is already in progress",
            }

        summary = await updater.update_items()

        return {
            "success": True,
            "feeds_processed": summary.feeds_processed,
            "feeds_failed": summary.feeds_failed,
            "new_items": summary.new_items,
        }

    return [
        check_feed,
        add_feed,
        import_feeds,
        list_feeds,
        list_items,
        update_feeds,
    ]
