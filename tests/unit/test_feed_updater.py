"""Unit tests for the batch feed updater."""

import asyncio
import time
from unittest.mock import AsyncMock, patch

import pytest

from feed_sync.models.schemas import Feed, ParsedFeed, ParsedItem
from feed_sync.services.feed_updater import FeedUpdater


# Mark all tests as async
pytestmark = pytest.mark.anyio


class FakeStore:
    """In-memory FeedStorage."""

    def __init__(self, feeds, existing_urls=()):
        self.feeds = list(feeds)
        self.item_urls = set(existing_urls)
        self.inserted = []
        self.error_counts = {}

    async def list_feeds(self):
        return list(self.feeds)

    async def item_exists_by_url(self, url):
        return url in self.item_urls

    async def insert_item(self, item, feed_id):
        await asyncio.sleep(0)
        if item.url in self.item_urls:
            return False
        self.item_urls.add(item.url)
        self.inserted.append((feed_id, item))
        return True

    async def increment_feed_error_count(self, feed_id):
        self.error_counts[feed_id] = self.error_counts.get(feed_id, 0) + 1


class FakeClock:
    """Clock whose sleep advances time instantly."""

    def __init__(self, now=100.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


def make_feed(feed_id, feed_url):
    return Feed(id=feed_id, title=f"Feed {feed_id}", url=feed_url, feed_url=feed_url)


def record_fetch_times(clock):
    """Patch parse_feed to record (url, time) and return an empty feed."""
    fetches = []

    async def fake_parse_feed(client, feed_url):
        fetches.append((feed_url, clock()))
        return ParsedFeed(title="Feed", link=feed_url)

    return fetches, patch(
        "feed_sync.services.feed_updater.parse_feed", side_effect=fake_parse_feed
    )


class TestExtractDomain:
    def test_hostname(self):
        assert FeedUpdater.extract_domain("https://Example.com:8080/feed") == "example.com"

    def test_invalid_url_falls_back_to_whole_string(self):
        assert FeedUpdater.extract_domain("not a url") == "not a url"


class TestConstruction:
    @pytest.mark.parametrize("kwargs", [{"min_interval": -1}, {"max_concurrent_hosts": 0}])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            FeedUpdater(FakeStore([]), **kwargs)


class TestRateLimiting:
    """Tests for per-host request spacing."""

    async def test_concurrent_waits_reserve_slots(self):
        """Concurrent callers for one host are queued one interval apart."""
        clock = FakeClock()
        sleeps = []

        async def record_sleep(delay):
            sleeps.append(delay)

        updater = FeedUpdater(FakeStore([]), clock=clock, sleep=record_sleep)

        await asyncio.gather(*(updater.wait_for_domain("example.com") for _ in range(3)))

        assert sorted(sleeps) == [1.0, 2.0]

    async def test_same_host_requests_are_spaced(self, make_client):
        clock = FakeClock()
        feeds = [make_feed(i, f"https://example.com/feed{i}") for i in range(1, 4)]
        updater = FeedUpdater(FakeStore(feeds), client=make_client({}), clock=clock, sleep=clock.sleep)

        fetches, patcher = record_fetch_times(clock)
        with patcher:
            await updater.update_items()

        times = [t for _, t in fetches]
        assert len(times) == 3
        assert all(b - a >= 1.0 for a, b in zip(times, times[1:]))

    async def test_distinct_hosts_are_not_delayed(self, make_client):
        clock = FakeClock()
        feeds = [
            make_feed(1, "https://a.example.com/feed"),
            make_feed(2, "https://b.example.com/feed"),
            make_feed(3, "https://c.example.com/feed"),
        ]
        updater = FeedUpdater(FakeStore(feeds), client=make_client({}), clock=clock, sleep=clock.sleep)

        fetches, patcher = record_fetch_times(clock)
        with patcher:
            await updater.update_items()

        assert len(fetches) == 3
        assert clock.sleeps == []
        assert {t for _, t in fetches} == {100.0}

    async def test_mixed_hosts_only_space_each_host(self, make_client):
        clock = FakeClock()
        feeds = [
            make_feed(1, "https://a.example.com/one"),
            make_feed(2, "https://b.example.com/one"),
            make_feed(3, "https://a.example.com/two"),
        ]
        updater = FeedUpdater(FakeStore(feeds), client=make_client({}), clock=clock, sleep=clock.sleep)

        fetches, patcher = record_fetch_times(clock)
        with patcher:
            await updater.update_items()

        a_times = [t for url, t in fetches if "a.example.com" in url]
        assert len(fetches) == 3
        assert a_times[1] - a_times[0] >= 1.0

    async def test_real_time_spacing(self, make_client):
        """Two feeds on one host are fetched at least a second apart."""
        feeds = [
            make_feed(1, "https://example.com/feed1"),
            make_feed(2, "https://example.com/feed2"),
        ]
        updater = FeedUpdater(FakeStore(feeds), client=make_client({}), min_interval=1.0)

        fetches, patcher = record_fetch_times(time.monotonic)
        with patcher:
            await updater.update_items()

        (_, first), (_, second) = fetches
        assert second - first >= 0.95

    async def test_paced_host_does_not_hold_back_others(self, make_client):
        """A host waiting on its pacing leaves the fetch slot to other hosts."""
        clock = FakeClock()
        feeds = [
            make_feed(1, "https://a.example.com/one"),
            make_feed(2, "https://a.example.com/two"),
            make_feed(3, "https://a.example.com/three"),
            make_feed(4, "https://b.example.com/one"),
        ]
        updater = FeedUpdater(
            FakeStore(feeds),
            client=make_client({}),
            max_concurrent_hosts=1,
            clock=clock,
            sleep=clock.sleep,
        )

        fetches, patcher = record_fetch_times(clock)
        with patcher:
            await updater.update_items()

        urls = [url for url, _ in fetches]
        assert len(urls) == 4
        assert urls.index("https://b.example.com/one") < urls.index("https://a.example.com/three")


class TestUpdateItems:
    """Tests for the batch update."""

    async def test_inserts_only_new_items(self, make_client, rss_response):
        feed = make_feed(1, "https://example.com/feed")
        store = FakeStore([feed], existing_urls={"https://example.com/post1"})
        client = make_client({"https://example.com/feed": rss_response()})
        clock = FakeClock()
        updater = FeedUpdater(store, client=client, clock=clock, sleep=clock.sleep)

        summary = await updater.update_items()

        assert [item.url for _, item in store.inserted] == ["https://example.com/post2"]
        assert summary.feeds_processed == 1
        assert summary.feeds_failed == 0
        assert summary.new_items == 1

    async def test_second_run_inserts_nothing(self, make_client, rss_response):
        store = FakeStore([make_feed(1, "https://example.com/feed")])
        client = make_client({"https://example.com/feed": rss_response()})
        clock = FakeClock()
        updater = FeedUpdater(store, client=client, clock=clock, sleep=clock.sleep)

        first = await updater.update_items()
        second = await updater.update_items()

        assert first.new_items == 2
        assert second.new_items == 0

    async def test_counts_add_up_across_concurrent_hosts(self, make_client, make_response):
        hosts = ["a", "b", "c", "d"]
        feeds = [make_feed(i, f"https://{host}.example.com/feed") for i, host in enumerate(hosts, 1)]
        routes = {}
        for host in hosts:
            entries = "".join(
                f"<item><title>Post {n}</title><link>https://{host}.example.com/post{n}</link></item>"
                for n in range(1, 4)
            )
            routes[f"https://{host}.example.com/feed"] = make_response(
                text=f'<?xml version="1.0"?><rss version="2.0"><channel><title>{host}</title>{entries}</channel></rss>',
                content_type="application/rss+xml",
            )
        routes["https://d.example.com/feed"] = make_response(500, "Server Error")
        store = FakeStore(feeds)
        clock = FakeClock()
        updater = FeedUpdater(store, client=make_client(routes), clock=clock, sleep=clock.sleep)

        summary = await updater.update_items()

        assert len(store.inserted) == 9
        assert summary.new_items == len(store.inserted)
        assert summary.feeds_processed == 4
        assert summary.feeds_failed == 1

    async def test_failing_feed_is_isolated(self, make_client, make_response, rss_response):
        good = make_feed(1, "https://good.example.com/feed")
        bad = make_feed(2, "https://bad.example.com/feed")
        store = FakeStore([good, bad])
        client = make_client({
            "https://good.example.com/feed": rss_response(link="https://good.example.com"),
            "https://bad.example.com/feed": make_response(500, "Server Error"),
        })
        clock = FakeClock()
        updater = FeedUpdater(store, client=client, clock=clock, sleep=clock.sleep)

        summary = await updater.update_items()

        assert store.error_counts == {2: 1}
        assert {feed_id for feed_id, _ in store.inserted} == {1}
        assert summary.feeds_processed == 2
        assert summary.feeds_failed == 1
        assert summary.new_items == 2

    async def test_unparseable_feed_counts_as_failure(self, make_client, make_response):
        store = FakeStore([make_feed(1, "https://example.com/feed")])
        client = make_client({
            "https://example.com/feed": make_response(text="<html><body>Hi</body></html>"),
        })
        clock = FakeClock()
        updater = FeedUpdater(store, client=client, clock=clock, sleep=clock.sleep)

        summary = await updater.update_items()

        assert store.error_counts == {1: 1}
        assert summary.feeds_failed == 1

    async def test_unexpected_error_is_isolated(self, make_client, rss_response):
        feeds = [make_feed(1, "https://a.example.com/feed"), make_feed(2, "https://b.example.com/feed")]
        store = FakeStore(feeds)
        client = make_client({
            "https://a.example.com/feed": rss_response(link="https://a.example.com"),
            "https://b.example.com/feed": rss_response(link="https://b.example.com"),
        })
        original_insert = store.insert_item

        async def insert_item(item, feed_id):
            if feed_id == 2:
                raise RuntimeError("disk full")
            return await original_insert(item, feed_id)

        store.insert_item = insert_item
        clock = FakeClock()
        updater = FeedUpdater(store, client=client, clock=clock, sleep=clock.sleep)

        summary = await updater.update_items()

        assert store.error_counts == {2: 1}
        assert summary.new_items == 2

    async def test_flag_set_during_update_and_cleared_after_error(self):
        store = FakeStore([])
        updater = FeedUpdater(store)
        seen = []

        async def list_feeds():
            seen.append(updater.is_update_in_progress)
            raise RuntimeError("database locked")

        store.list_feeds = list_feeds

        with pytest.raises(RuntimeError):
            await updater.update_items()

        assert seen == [True]
        assert updater.is_update_in_progress is False

    async def test_error_count_failure_is_logged(self, make_client):
        store = FakeStore([make_feed(1, "https://example.com/feed")])
        store.increment_feed_error_count = AsyncMock(side_effect=RuntimeError("locked"))
        clock = FakeClock()
        updater = FeedUpdater(store, client=make_client({}), clock=clock, sleep=clock.sleep)

        with patch("feed_sync.services.feed_updater.logger") as mock_logger:
            summary = await updater.update_items()

        assert summary.feeds_failed == 1
        assert mock_logger.error.called

    async def test_update_feed_returns_added_count(self, make_client):
        store = FakeStore([], existing_urls={"https://example.com/a"})
        updater = FeedUpdater(store)
        parsed = ParsedFeed(
            title="Feed",
            link="https://example.com",
            items=[
                ParsedItem("A", "https://example.com/a", None),
                ParsedItem("B", "https://example.com/b", None),
            ],
        )

        with patch.object(updater, "load_feed_data", AsyncMock(return_value=parsed)):
            added = await updater.update_feed(make_client({}), make_feed(7, "https://example.com/feed"))

        assert added == 1
        assert store.inserted[0][0] == 7
