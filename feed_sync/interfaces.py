"""Collaborator interfaces consumed by the updater and scheduler."""

from typing import List, Protocol

from feed_sync.models.schemas import Feed, ParsedItem


class FeedStorage(Protocol):
    """Storage operations needed to refresh feeds."""

    async def list_feeds(self) -> List[Feed]:
        ...

    async def item_exists_by_url(self, url: str) -> bool:
        ...

    async def insert_item(self, item: ParsedItem, feed_id: int) -> bool:
        ...

    async def increment_feed_error_count(self, feed_id: int) -> None:
        ...


class Categorizer(Protocol):
    """Groups newly stored items into categories after an update."""

    @property
    def is_categorization_in_progress(self) -> bool:
        ...

    async def categorize_uncategorized(self) -> List[dict]:
        ...
