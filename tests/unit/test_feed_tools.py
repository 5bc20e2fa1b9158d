"""Unit tests for the MCP feed tools and server wiring."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from feed_sync.config import ServerConfig
from feed_sync.models.schemas import ParsedItem, ResolvedFeed
from feed_sync.server.app import build_services, create_mcp_server
from feed_sync.services.feed_updater import UpdateSummary
from feed_sync.storage.database import FeedStore
from feed_sync.tools.feed_tools import build_feed_tools


# Mark all tests as async
pytestmark = pytest.mark.anyio


EXAMPLE_FEED = ResolvedFeed("Example", "https://example.com/feed", "https://example.com")
OTHER_FEED = ResolvedFeed("Other", "https://other.com/feed", "https://other.com")


@pytest.fixture
async def store():
    feed_store = FeedStore(":memory:")
    yield feed_store
    await feed_store.close()


@pytest.fixture
def finder():
    mock_finder = MagicMock()
    mock_finder.resolve = AsyncMock(return_value=[EXAMPLE_FEED])
    mock_finder.resolve_many = AsyncMock(return_value={})
    return mock_finder


@pytest.fixture
def updater():
    mock_updater = MagicMock()
    mock_updater.is_update_in_progress = False
    mock_updater.update_items = AsyncMock(
        return_value=UpdateSummary(feeds_processed=2, feeds_failed=1, new_items=5)
    )
    return mock_updater


@pytest.fixture
def tools(store, finder, updater):
    return {tool.__name__: tool for tool in build_feed_tools(store, finder, updater)}


class TestCheckFeed:
    async def test_reports_feeds_without_storing(self, tools, store):
        result = await tools["check_feed"]("example.com")

        assert result["success"] is True
        assert result["count"] == 1
        assert result["feeds"][0] == {
            "title": "Example",
            "feed_url": "https://example.com/feed",
            "url": "https://example.com",
        }
        assert await store.list_feeds() == []


class TestAddFeed:
    async def test_add_feed_stores_discovered_feeds(self, tools, store):
        result = await tools["add_feed"]("example.com", category_id=2)

        assert result["success"] is True
        assert result["found"] == 1
        assert result["added"][0]["feed_url"] == "https://example.com/feed"
        assert result["added"][0]["category_id"] == 2

        feeds = await store.list_feeds()
        assert [f.feed_url for f in feeds] == ["https://example.com/feed"]

    async def test_add_feed_skips_existing(self, tools, store):
        await store.insert_feed(EXAMPLE_FEED)

        result = await tools["add_feed"]("example.com")

        assert result["success"] is True
        assert result["added"] == []

    async def test_add_feed_not_found(self, tools, finder):
        finder.resolve.return_value = []

        result = await tools["add_feed"]("nothing.example.com")

        assert result["success"] is False
        assert "Could not find a feed" in result["error"]


class TestImportFeeds:
    async def test_import_reports_each_url(self, tools, finder, store):
        finder.resolve_many.return_value = {
            "example.com": [EXAMPLE_FEED],
            "other.com": [OTHER_FEED, EXAMPLE_FEED],
            "nothing.com": [],
        }

        result = await tools["import_feeds"](["example.com", "other.com", "nothing.com"])

        assert result["success"] is True
        assert result["imported"] == 2
        assert result["results"] == [
            {"url": "example.com", "found": 1, "added": 1},
            {"url": "other.com", "found": 2, "added": 1},
            {"url": "nothing.com", "found": 0, "added": 0},
        ]
        assert len(await store.list_feeds()) == 2


class TestListTools:
    async def test_list_feeds(self, tools, store):
        await store.insert_feed(EXAMPLE_FEED)

        result = await tools["list_feeds"]()

        assert result["count"] == 1
        assert result["feeds"][0]["error_count"] == 0

    async def test_list_items_for_feed(self, tools, store):
        feed = await store.insert_feed(EXAMPLE_FEED)
        await store.insert_item(ParsedItem("Post", "https://example.com/post", None), feed.id)

        result = await tools["list_items"](feed_url="https://example.com/feed")

        assert result["success"] is True
        assert result["count"] == 1
        assert result["items"][0]["url"] == "https://example.com/post"
        assert result["items"][0]["published_date"] is None

    async def test_list_items_unknown_feed(self, tools):
        result = await tools["list_items"](feed_url="https://missing.com/feed")

        assert result["success"] is False
        assert "not found" in result["error"]


class TestUpdateFeeds:
    async def test_update_returns_summary(self, tools):
        result = await tools["update_feeds"]()

        assert result == {
            "success": True,
            "feeds_processed": 2,
            "feeds_failed": 1,
            "new_items": 5,
        }

    async def test_update_rejected_while_running(self, tools, updater):
        updater.is_update_in_progress = True

        result = await tools["update_feeds"]()

        assert result["success"] is False
        updater.update_items.assert_not_called()


class TestServer:
    async def test_tools_registered(self):
        config = ServerConfig(db_path=":memory:")
        services = build_services(config)

        server = create_mcp_server(config, services)
        tools = await server.list_tools()

        assert {tool.name for tool in tools} == {
            "check_feed",
            "add_feed",
            "import_feeds",
            "list_feeds",
            "list_items",
            "update_feeds",
        }
        await services.store.close()

    def test_services_follow_config(self):
        config = ServerConfig(
            db_path=":memory:",
            update_interval_seconds=120,
            drift_threshold_seconds=5,
            domain_min_interval=2.0,
            max_depth=1,
        )

        services = build_services(config)

        assert services.scheduler.interval == 120
        assert services.scheduler.drift_threshold == 5
        assert services.updater.min_interval == 2.0
        assert services.finder.max_depth == 1
        assert services.updater.store is services.store
