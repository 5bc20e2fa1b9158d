"""Feed resolver for YouTube channels.

YouTube publishes one Atom feed per channel at
``/feeds/videos.xml?channel_id=<id>``. Most URLs people paste (videos,
handles, legacy usernames) do not contain the channel id, so it is traced
through a chain of lookups, cheapest first:

1. ``/channel/<id>`` in the URL path
2. ``channelId``/``externalId`` in already-fetched page markup
3. the oEmbed endpoint for single-video URLs, following ``author_url``
4. the channel's profile page (``/@handle``, ``/user/<name>``, ``/c/<name>``)
5. the page itself, when no markup was given

Each step yields None on failure so the next one can run.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from feed_sync.services.http import fetch_html
from feed_sync.services.resolvers.base import PlatformResolver, unique_candidates


logger = logging.getLogger(__name__)

FEED_URL_TEMPLATE = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"
OEMBED_URL = "https://www.youtube.com/oembed"

_CHANNEL_PATH_RE = re.compile(r"/channel/(UC[\w-]{20,})")
_HANDLE_RE = re.compile(r"/(@[^/]+)")
_USER_OR_CUSTOM_RE = re.compile(r"/(user|c)/([^/]+)")
_VIDEO_PATH_RE = re.compile(r"/(shorts|embed|v)/([^/]+)")
_CHANNEL_HTML_RE = re.compile(r'"(channelId|externalId)":"(UC[\w-]{20,})"')


class YouTubeFeedResolver(PlatformResolver):
    name = "youtube"

    @classmethod
    def is_host(cls, hostname: str) -> bool:
        hostname = hostname.lower()
        return (
            hostname == "youtu.be"
            or hostname == "youtube.com"
            or hostname.endswith(".youtube.com")
            or hostname == "youtube-nocookie.com"
            or hostname.endswith(".youtube-nocookie.com")
        )

    @staticmethod
    def build_feed_url(channel_id: str) -> str:
        return FEED_URL_TEMPLATE.format(channel_id=channel_id)

    @staticmethod
    def extract_channel_id_from_path(path: str) -> Optional[str]:
        match = _CHANNEL_PATH_RE.search(path)
        return match.group(1) if match else None

    @staticmethod
    def extract_channel_id_from_html(html: str) -> Optional[str]:
        match = _CHANNEL_HTML_RE.search(html)
        return match.group(2) if match else None

    @staticmethod
    def extract_handle(path: str) -> Optional[str]:
        """Extract a handle (without the ``@``) from a URL path."""
        match = _HANDLE_RE.search(path)
        return match.group(1)[1:] if match else None

    @staticmethod
    def extract_user_or_custom(path: str) -> Optional[tuple]:
        """Extract a legacy ``/user/<name>`` or ``/c/<name>`` segment as (kind, name)."""
        match = _USER_OR_CUSTOM_RE.search(path)
        return (match.group(1), match.group(2)) if match else None

    @classmethod
    def extract_video_id(cls, url: str) -> Optional[str]:
        parts = urlsplit(url)
        hostname = (parts.hostname or "").lower()

        if hostname == "youtu.be":
            segments = [s for s in parts.path.split("/") if s]
            return segments[0] if segments else None

        if not cls.is_host(hostname):
            return None

        if parts.path.startswith("/watch"):
            values = parse_qs(parts.query).get("v")
            return values[0] if values else None

        match = _VIDEO_PATH_RE.search(parts.path)
        return match.group(2) if match else None

    @classmethod
    def profile_url(cls, path: str) -> Optional[str]:
        """Canonical profile page URL for a handle or legacy username path."""
        handle = cls.extract_handle(path)
        if handle:
            return f"https://www.youtube.com/@{handle}"

        user_or_custom = cls.extract_user_or_custom(path)
        if user_or_custom:
            kind, value = user_or_custom
            return f"https://www.youtube.com/{kind}/{value}"

        return None

    @classmethod
    def build_candidates(cls, url: str, powered_by: bool = False) -> List[str]:
        parts = urlsplit(url)
        if not cls.is_host(parts.hostname or ""):
            return []

        channel_id = cls.extract_channel_id_from_path(parts.path)
        if not channel_id:
            return []

        return unique_candidates([cls.build_feed_url(channel_id)], url)

    async def candidates_for(
        self, client: httpx.AsyncClient, url: str, html: Optional[str] = None
    ) -> List[str]:
        if not self.matches_url(url):
            return []

        channel_id = await self.resolve_channel_id(client, url, html)
        if not channel_id:
            return []

        return [self.build_feed_url(channel_id)]

    async def resolve_channel_id(
        self, client: httpx.AsyncClient, url: str, html: Optional[str] = None
    ) -> Optional[str]:
        """Trace a YouTube URL back to its channel id."""
        parts = urlsplit(url)

        channel_id = self.extract_channel_id_from_path(parts.path)
        if channel_id:
            return channel_id

        if html:
            channel_id = self.extract_channel_id_from_html(html)
            if channel_id:
                return channel_id

        if self.extract_video_id(url):
            channel_id = await self._channel_id_from_video(client, url)
            if channel_id:
                return channel_id

        profile = self.profile_url(parts.path)
        if profile:
            return await self._channel_id_from_page(client, profile)

        if not html:
            return await self._channel_id_from_page(client, url)

        return None

    async def _channel_id_from_video(
        self, client: httpx.AsyncClient, video_url: str
    ) -> Optional[str]:
        oembed_url = f"{OEMBED_URL}?{urlencode({'url': video_url, 'format': 'json'})}"

        try:
            response = await client.get(oembed_url)
            if response.status_code >= 400:
                return None
            author_url = response.json().get("author_url")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug(f"Failed to resolve YouTube video author for {video_url}: {e}")
            return None

        if not isinstance(author_url, str):
            return None

        author_path = urlsplit(author_url).path
        channel_id = self.extract_channel_id_from_path(author_path)
        if channel_id:
            return channel_id

        profile = self.profile_url(author_path)
        if profile:
            channel_id = await self._channel_id_from_page(client, profile)
            if channel_id:
                return channel_id

        if author_url == profile:
            return None

        return await self._channel_id_from_page(client, author_url)

    async def _channel_id_from_page(
        self, client: httpx.AsyncClient, page_url: str
    ) -> Optional[str]:
        try:
            response = await fetch_html(client, page_url)
        except Exception as e:
            logger.debug(f"Failed to fetch YouTube page {page_url}: {e}")
            return None

        if response is None:
            return None

        return self.extract_channel_id_from_html(response.text)
