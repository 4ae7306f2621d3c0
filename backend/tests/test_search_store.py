"""
MemoHub Backend — Search History and Saved Search Tests
========================================================

Runs against the in-memory store with a controllable clock.
"""

import json
import uuid

import pytest

from memohub.exceptions import NotFoundError, ValidationError
from memohub.schemas.search import SearchFilters
from memohub.services.search_store import (
    DAY_SECONDS,
    InMemoryKeyValueStore,
    SearchFavorites,
    SearchHistory,
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def history(store, clock):
    return SearchHistory(store, uuid.uuid4(), clock=clock)


@pytest.fixture
def favorites(store, clock):
    return SearchFavorites(store, uuid.uuid4(), clock=clock)


class TestSearchHistory:

    async def test_readding_moves_to_front(self, history, clock):
        await history.add("alpha")
        clock.advance(1)
        await history.add("beta")
        clock.advance(1)
        await history.add("alpha", result_count=3)

        items = await history.get()
        assert [i.query for i in items] == ["alpha", "beta"]
        assert items[0].count == 2
        assert items[0].result_count == 3
        assert items[0].timestamp == clock.now

    @pytest.mark.parametrize("query", ["", "   ", "x" * 101])
    async def test_ignored_queries(self, history, query):
        assert await history.add(query) is False
        assert await history.get() == []

    async def test_capped(self, history, clock):
        for i in range(SearchHistory.MAX_HISTORY + 5):
            clock.advance(1)
            await history.add(f"q{i}")
        items = await history.get()
        assert len(items) == SearchHistory.MAX_HISTORY
        assert items[0].query == f"q{SearchHistory.MAX_HISTORY + 4}"

    async def test_popular_recent_and_suggestions(self, history, clock):
        await history.add("python tips")
        clock.advance(1)
        await history.add("Python async")
        await history.add("Python async")
        clock.advance(1)
        await history.add("rust")

        assert [i.query for i in await history.popular(1)] == ["Python async"]
        assert [i.query for i in await history.recent(2)] == ["rust", "Python async"]
        assert await history.suggestions("PYTHON") == ["Python async", "python tips"]
        assert await history.suggestions("  ") == []

    async def test_by_tag(self, history):
        await history.add("budget", tags=["Finance"])
        await history.add("recipes", tags=["home"])
        assert [i.query for i in await history.by_tag("fin")] == ["budget"]

    async def test_remove_and_clear(self, history):
        await history.add("keep")
        await history.add("drop")
        assert await history.remove("drop") is True
        assert await history.remove("drop") is False
        assert [i.query for i in await history.get()] == ["keep"]
        await history.clear()
        assert await history.get() == []

    async def test_stats(self, history):
        assert (await history.stats()).total_searches == 0
        await history.add("a", result_count=4)
        await history.add("a", result_count=4)
        await history.add("b", result_count=1)
        stats = await history.stats()
        assert stats.total_searches == 3
        assert stats.unique_queries == 2
        assert stats.average_results == round(5 / 2)
        assert stats.most_popular_query == "a"

    async def test_cleanup_drops_old_entries(self, history, clock):
        await history.add("old")
        clock.advance(31 * DAY_SECONDS)
        await history.add("new")
        assert await history.cleanup() == 1
        assert [i.query for i in await history.get()] == ["new"]
        assert await history.cleanup() == 0

    async def test_corrupt_value_reads_as_empty(self, history, store):
        await store.set(history._list.key, "{not json")
        assert await history.get() == []
        assert await history.add("fresh") is True

    async def test_users_are_isolated(self, store, clock):
        first = SearchHistory(store, uuid.uuid4(), clock=clock)
        second = SearchHistory(store, uuid.uuid4(), clock=clock)
        await first.add("mine")
        assert await second.get() == []


class TestSearchFavorites:

    async def test_add_and_use(self, favorites, clock):
        first = await favorites.add("Work", "project", filters=SearchFilters(tag_ids=["t1"]))
        clock.advance(10)
        second = await favorites.add("Home", "garden", description="weekend")

        assert [f.id for f in await favorites.get()] == [second.id, first.id]
        assert first.use_count == 1
        assert first.filters.tag_ids == ["t1"]

        clock.advance(10)
        used = await favorites.use(first.id)
        assert used.use_count == 2
        assert used.last_used == clock.now
        assert [f.id for f in await favorites.get()] == [first.id, second.id]
        assert [f.id for f in await favorites.recent(1)] == [first.id]

    @pytest.mark.parametrize("name,query", [("", "q"), ("Name", "  ")])
    async def test_add_requires_name_and_query(self, favorites, name, query):
        with pytest.raises(ValidationError):
            await favorites.add(name, query)

    async def test_unknown_id(self, favorites):
        with pytest.raises(NotFoundError):
            await favorites.use("fav_missing")
        with pytest.raises(NotFoundError):
            await favorites.update("fav_missing", name="x")
        with pytest.raises(NotFoundError):
            await favorites.remove("fav_missing")

    async def test_update_and_search(self, favorites):
        fav = await favorites.add("Old name", "invoices")
        updated = await favorites.update(fav.id, name=" Taxes ", description="yearly")
        assert updated.name == "Taxes"
        assert [f.id for f in await favorites.search("YEAR")] == [fav.id]
        assert [f.id for f in await favorites.search("invoice")] == [fav.id]
        assert await favorites.search("nothing") == []

        cleared = await favorites.update(fav.id, description="")
        assert cleared.description is None

    async def test_stats(self, favorites):
        empty = await favorites.stats()
        assert empty.total_favorites == 0
        assert empty.average_uses == 0.0

        a = await favorites.add("A", "a")
        await favorites.add("B", "b")
        await favorites.use(a.id)
        stats = await favorites.stats()
        assert stats.total_favorites == 2
        assert stats.total_uses == 3
        assert stats.average_uses == 1.5
        assert stats.most_used == "A"

    async def test_export_then_import_replaces(self, favorites, store, clock):
        await favorites.add("A", "a")
        exported = await favorites.export_json()
        assert json.loads(exported)[0]["name"] == "A"

        other = SearchFavorites(store, uuid.uuid4(), clock=clock)
        await other.add("Existing", "x")
        assert await other.import_json(exported) == 1
        assert [f.name for f in await other.get()] == ["A"]

    @pytest.mark.parametrize("data", ["not json", '{"name": "A"}', '[{"name": "A"}]'])
    async def test_import_rejects_bad_documents(self, favorites, data):
        with pytest.raises(ValidationError):
            await favorites.import_json(data)

    async def test_remove_and_clear(self, favorites):
        fav = await favorites.add("A", "a")
        await favorites.add("B", "b")
        await favorites.remove(fav.id)
        assert [f.name for f in await favorites.get()] == ["B"]
        await favorites.clear()
        assert await favorites.get() == []
