"""Feed resolver for Substack publications."""

import re
from typing import List, Optional
from urllib.parse import urlsplit

from feed_sync.services.resolvers.base import PlatformResolver, origin, unique_candidates


_USERNAME_RE = re.compile(r"/@([^/]+)")
_BRAND_RE = re.compile(r"substack\.com|substack-powered|substack\.co", re.IGNORECASE)
_CONTEXT_RE = re.compile(r"newsletter|publication|writer", re.IGNORECASE)


class SubstackFeedResolver(PlatformResolver):
    """Resolves ``<publication>.substack.com/feed`` style feeds.

    Profile URLs (``substack.com/@user``) map to the user's publication
    subdomain. Custom domains are only probed when the page markup shows
    the site is hosted by Substack.
    """

    name = "substack"

    @classmethod
    def is_host(cls, hostname: str) -> bool:
        hostname = hostname.lower()
        return hostname == "substack.com" or hostname.endswith(".substack.com")

    @classmethod
    def extract_publication(cls, hostname: str) -> Optional[str]:
        hostname = hostname.lower()
        if not hostname.endswith(".substack.com"):
            return None

        subdomain = hostname.split(".")[0]
        if subdomain and subdomain != "www":
            return subdomain
        return None

    @staticmethod
    def extract_username(path: str) -> Optional[str]:
        match = _USERNAME_RE.search(path)
        return match.group(1) if match else None

    @classmethod
    def is_powered_by(cls, html: str) -> bool:
        return bool(_BRAND_RE.search(html)) and bool(_CONTEXT_RE.search(html))

    @classmethod
    def build_candidates(cls, url: str, powered_by: bool = False) -> List[str]:
        parts = urlsplit(url)
        hostname = (parts.hostname or "").lower()
        candidates = []

        publication = cls.extract_publication(hostname)
        if publication:
            candidates.append(f"https://{publication}.substack.com/feed")

        if hostname in ("substack.com", "www.substack.com"):
            username = cls.extract_username(parts.path)
            if username:
                candidates.append(f"https://{username}.substack.com/feed")

        if powered_by and hostname and not cls.is_host(hostname):
            candidates.append(f"{origin(url)}/feed")

        return unique_candidates(candidates, url)
