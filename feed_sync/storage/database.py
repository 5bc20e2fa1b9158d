"""Database storage for feed_sync.

This module provides async SQLite storage for feeds and their items.
Database location: ~/.feed_sync/feed_sync.db (or FEED_SYNC_DB_PATH env var)
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

import aiosqlite

from feed_sync.models.schemas import Feed, Item, ParsedItem, ResolvedFeed


MEMORY_DB = ":memory:"


async def init_database(db: aiosqlite.Connection) -> None:
    """Initialize database tables if they don't exist.

    Args:
        db: Database connection
    """
    await db.execute("""
        CREATE TABLE IF NOT EXISTS feeds (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL DEFAULT '',
            url TEXT NOT NULL DEFAULT '',
            feed_url TEXT NOT NULL UNIQUE,
            feed_type TEXT,
            error_count INTEGER NOT NULL DEFAULT 0,
            category_id INTEGER NOT NULL DEFAULT 0
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS items (
            id INTEGER PRIMARY KEY,
            feed_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            url TEXT NOT NULL UNIQUE,
            published_date TIMESTAMP,
            discovered_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            is_read BOOLEAN DEFAULT FALSE,
            FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE
        )
    """)

    # Create index for faster lookups
    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_items_feed_id ON items(feed_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_items_is_read ON items(is_read)
    """)

    await db.commit()


def _row_to_feed(row: aiosqlite.Row) -> Feed:
    return Feed(
        id=row["id"],
        title=row["title"],
        url=row["url"],
        feed_url=row["feed_url"],
        feed_type=row["feed_type"],
        error_count=row["error_count"],
        category_id=row["category_id"],
    )


def _row_to_item(row: aiosqlite.Row) -> Item:
    return Item(
        id=row["id"],
        feed_id=row["feed_id"],
        title=row["title"],
        url=row["url"],
        published_date=datetime.fromisoformat(row["published_date"])
        if row["published_date"]
        else None,
        discovered_date=datetime.fromisoformat(row["discovered_date"])
        if row["discovered_date"]
        else None,
        is_read=bool(row["is_read"]),
    )


class FeedStore:
    """SQLite-backed feed and item storage.

    The connection is opened lazily on first use.

    Args:
        db_path: Database file path, or ":memory:"
        db: Already-open connection to use instead of opening one
    """

    def __init__(self, db_path: str = MEMORY_DB, db: Optional[aiosqlite.Connection] = None):
        self.db_path = db_path
        self._db = db

    async def get_database(self) -> aiosqlite.Connection:
        """Get or open the database connection.

        Returns:
            Active database connection
        """
        if self._db is None:
            if self.db_path != MEMORY_DB:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row
            await init_database(self._db)

        return self._db

    async def close(self) -> None:
        """Close the database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def list_feeds(self) -> List[Feed]:
        """List all feeds ordered by id."""
        db = await self.get_database()

        cursor = await db.execute("SELECT * FROM feeds ORDER BY id")
        return [_row_to_feed(row) async for row in cursor]

    async def get_feed_by_url(self, feed_url: str) -> Optional[Feed]:
        """Get a feed by its feed URL.

        Returns:
            Feed if found, None otherwise
        """
        db = await self.get_database()

        cursor = await db.execute("SELECT * FROM feeds WHERE feed_url = ?", (feed_url,))
        row = await cursor.fetchone()

        return _row_to_feed(row) if row else None

    async def insert_feed(
        self,
        resolved: ResolvedFeed,
        category_id: int = 0,
        feed_type: Optional[str] = None,
    ) -> Feed:
        """Store a discovered feed.

        Args:
            resolved: Feed found by discovery
            category_id: Category to file the feed under
            feed_type: Optional feed kind, e.g. "rss"

        Returns:
            The created Feed object

        Raises:
            ValueError: If a feed with the same feed URL already exists
        """
        db = await self.get_database()

        try:
            cursor = await db.execute(
                """
                INSERT INTO feeds (title, url, feed_url, feed_type, category_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (resolved.title, resolved.site_url, resolved.feed_url, feed_type, category_id),
            )
            await db.commit()
        except aiosqlite.IntegrityError as e:
            raise ValueError(f"Feed '{resolved.feed_url}' already exists") from e

        return Feed(
            id=cursor.lastrowid,
            title=resolved.title,
            url=resolved.site_url,
            feed_url=resolved.feed_url,
            feed_type=feed_type,
            error_count=0,
            category_id=category_id,
        )

    async def item_exists_by_url(self, url: str) -> bool:
        db = await self.get_database()

        cursor = await db.execute("SELECT 1 FROM items WHERE url = ? LIMIT 1", (url,))
        return await cursor.fetchone() is not None

    async def insert_item(self, item: ParsedItem, feed_id: int) -> bool:
        """Store a new item for a feed.

        Returns:
            True if inserted, False if an item with the same URL exists
        """
        db = await self.get_database()

        try:
            await db.execute(
                """
                INSERT INTO items (feed_id, title, url, published_date)
                VALUES (?, ?, ?, ?)
                """,
                (
                    feed_id,
                    item.title,
                    item.url,
                    item.published_date.isoformat() if item.published_date else None,
                ),
            )
            await db.commit()
        except aiosqlite.IntegrityError:
            # Duplicate URL, skip
            return False

        return True

    async def increment_feed_error_count(self, feed_id: int) -> None:
        db = await self.get_database()

        await db.execute(
            "UPDATE feeds SET error_count = error_count + 1 WHERE id = ?",
            (feed_id,),
        )
        await db.commit()

    async def list_items(self, feed_id: Optional[int] = None, limit: int = 50) -> List[Item]:
        """List items, newest first.

        Args:
            feed_id: Optional feed to filter by
            limit: Maximum number of items to return

        Returns:
            List of Item objects ordered by date (newest first)
        """
        db = await self.get_database()

        query = "SELECT * FROM items WHERE 1=1"
        params: List = []

        if feed_id is not None:
            query += " AND feed_id = ?"
            params.append(feed_id)

        query += " ORDER BY COALESCE(published_date, discovered_date) DESC, id DESC LIMIT ?"
        params.append(limit)

        cursor = await db.execute(query, params)
        return [_row_to_item(row) async for row in cursor]
