"""Feed parser service.

This module fetches RSS/Atom feeds and extracts their metadata and items.
"""

import logging
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Optional

import feedparser
import httpx

from feed_sync.exceptions import FeedError, FeedFetchError, FeedParseError
from feed_sync.models.schemas import ParsedFeed, ParsedItem, ResolvedFeed


logger = logging.getLogger(__name__)


async def parse_feed(client: httpx.AsyncClient, feed_url: str) -> ParsedFeed:
    """Fetch and parse an RSS/Atom feed.

    Args:
        client: HTTP client
        feed_url: URL of the feed to parse

    Returns:
        ParsedFeed with the feed title, site link and items

    Raises:
        FeedFetchError: If the feed could not be fetched
        FeedParseError: If the response is not a usable feed
    """
    logger.debug(f"Parsing feed: {feed_url}")

    try:
        response = await client.get(feed_url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise FeedFetchError(feed_url, f"Failed to fetch feed ({e.__class__.__name__})") from e

    if response.status_code >= 400:
        raise FeedFetchError(feed_url, f"Feed returned HTTP {response.status_code}")

    return parse_feed_document(feed_url, response.text)


def parse_feed_document(feed_url: str, text: str) -> ParsedFeed:
    """Parse feed text that has already been fetched.

    Raises:
        FeedParseError: If the document has neither a title nor entries
    """
    feed = feedparser.parse(text)
    title = feed.feed.get("title", "").strip()

    if feed.bozo and not feed.entries and not title:
        raise FeedParseError(feed_url, f"Malformed feed ({feed.get('bozo_exception')})")

    if not feed.version and not feed.entries:
        raise FeedParseError(feed_url, "Not a feed document")

    items = []
    for entry in feed.entries:
        url = _entry_link(entry)
        if not url:
            continue

        items.append(ParsedItem(
            title=entry.get("title", "").strip() or url,
            url=url,
            published_date=_parse_date(entry),
        ))

    return ParsedFeed(
        title=title,
        link=feed.feed.get("link", ""),
        feed_type=_feed_type(feed.version),
        items=items,
    )


async def load_feed_data(client: httpx.AsyncClient, feed_url: str) -> Optional[ResolvedFeed]:
    """Parse a feed into a ResolvedFeed record for discovery.

    Returns:
        ResolvedFeed on success, None if the feed failed to load
    """
    try:
        parsed = await parse_feed(client, feed_url)
    except FeedError as e:
        logger.debug(f"Failed to load feed data: {e}")
        return None

    return ResolvedFeed(title=parsed.title, feed_url=feed_url, site_url=parsed.link)


def _entry_link(entry: dict) -> str:
    url = entry.get("link", "").strip()
    if url:
        return url

    # Try alternate link
    for link in entry.get("links", []):
        if link.get("rel") == "alternate" or link.get("href"):
            return link.get("href", "").strip()

    return ""


def _feed_type(version: str) -> Optional[str]:
    if not version:
        return None
    if version.startswith("atom"):
        return "atom"
    if version.startswith("rss"):
        return "rss"
    return version


def _parse_date(entry: dict) -> Optional[datetime]:
    """Parse the publication date from a feed entry.

    Args:
        entry: Feed entry dict

    Returns:
        datetime if parsed successfully, None otherwise
    """
    for field_name in ["published", "updated", "created"]:
        date_str = entry.get(field_name, "") or entry.get(f"{field_name}_parsed")

        if not date_str:
            continue

        # If it's already a time struct (from feedparser)
        if isinstance(date_str, tuple):
            try:
                return datetime(*date_str[:6])
            except (ValueError, TypeError):
                continue

        # Try RFC 2822 format (common in RSS)
        try:
            return parsedate_to_datetime(date_str)
        except (ValueError, TypeError):
            pass

        # Try ISO format
        try:
            return datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            pass

    return None
