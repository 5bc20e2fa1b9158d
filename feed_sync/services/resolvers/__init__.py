"""Platform feed resolvers.

default_resolvers() returns the resolvers in the order FeedFinder tries them.
New platforms are added by subclassing PlatformResolver and listing them here.
"""

from typing import List

from .base import PlatformResolver, unique_candidates
from .medium import MediumFeedResolver
from .substack import SubstackFeedResolver
from .youtube import YouTubeFeedResolver

RESOLVER_CLASSES = (
    MediumFeedResolver,
    SubstackFeedResolver,
    YouTubeFeedResolver,
)


def default_resolvers() -> List[PlatformResolver]:
    return [resolver_class() for resolver_class in RESOLVER_CLASSES]


__all__ = [
    "RESOLVER_CLASSES",
    "default_resolvers",
    "PlatformResolver",
    "MediumFeedResolver",
    "SubstackFeedResolver",
    "YouTubeFeedResolver",
    "unique_candidates",
]
