"""Feed resolver for Medium.

Medium exposes feeds at fixed paths that are never linked from its pages:

- ``https://<user>.medium.com/feed`` for subdomain blogs
- ``https://medium.com/feed/@<handle>`` for personal pages
- ``https://medium.com/feed/<publication>`` for publications
- ``https://<custom domain>/feed`` for publications on their own domain
"""

import re
from typing import List, Optional
from urllib.parse import urlsplit

from feed_sync.services.resolvers.base import PlatformResolver, origin, unique_candidates


# First path segments on medium.com that are not publication names
RESERVED_SEGMENTS = frozenset({
    "p",
    "tag",
    "tags",
    "topic",
    "topics",
    "m",
    "me",
    "about",
    "membership",
    "follow",
    "search",
    "notifications",
    "settings",
    "apps",
    "creators",
    "upgrade",
    "signin",
    "login",
})

_HANDLE_RE = re.compile(r"/(@[^/]+)")
_BRAND_RE = re.compile(r"medium\.com|cdn-client\.medium\.com|mediumcdn", re.IGNORECASE)
_CONTEXT_RE = re.compile(r"publication|writer|membership|stories", re.IGNORECASE)


class MediumFeedResolver(PlatformResolver):
    name = "medium"

    @classmethod
    def is_host(cls, hostname: str) -> bool:
        hostname = hostname.lower()
        return hostname == "medium.com" or hostname.endswith(".medium.com")

    @staticmethod
    def extract_handle(path: str) -> Optional[str]:
        """Extract an ``@handle`` segment from a URL path."""
        match = _HANDLE_RE.search(path)
        return match.group(1) if match else None

    @staticmethod
    def extract_publication(path: str) -> Optional[str]:
        """Extract a publication name from the first path segment.

        Handles and reserved segments such as ``tag`` or ``search`` are not
        publications.
        """
        segments = [s for s in path.split("/") if s]
        if not segments or segments[0].startswith("@"):
            return None

        first = segments[0]
        if first.lower() in RESERVED_SEGMENTS:
            return None

        return first

    @classmethod
    def is_powered_by(cls, html: str) -> bool:
        """Detect a Medium publication served from a custom domain."""
        return bool(_BRAND_RE.search(html)) and bool(_CONTEXT_RE.search(html))

    @classmethod
    def build_candidates(cls, url: str, powered_by: bool = False) -> List[str]:
        parts = urlsplit(url)
        hostname = (parts.hostname or "").lower()
        candidates = []

        if hostname.endswith(".medium.com"):
            subdomain = hostname.split(".")[0]
            if subdomain and subdomain != "www":
                candidates.append(f"https://{subdomain}.medium.com/feed")

        if hostname in ("medium.com", "www.medium.com"):
            handle = cls.extract_handle(parts.path)
            if handle:
                candidates.append(f"https://medium.com/feed/{handle}")

            publication = cls.extract_publication(parts.path)
            if publication:
                candidates.append(f"https://medium.com/feed/{publication}")

        if powered_by and hostname and not cls.is_host(hostname):
            candidates.append(f"{origin(url)}/feed")

        return unique_candidates(candidates, url)
