"""
MemoHub Backend — Search History & Favorites Store
===================================================

What:  Per-user recent-search history and saved searches ("favorites"),
       kept as JSON documents in a key-value store.
How:   `KeyValueStore` is the storage seam (get/set/delete of strings).
       `SearchHistory` and `SearchFavorites` own the list logic and validate
       every read against the pydantic item schemas.
Who:   Search history/favorites routes, through the `get_search_store`
       dependency (overridden in tests, swappable for Redis later).

Keys:
    "<user_id>:search_history"    JSON array of SearchHistoryItem
    "<user_id>:search_favorites"  JSON array of SearchFavorite

Failure Mode:
    A stored value that is not valid JSON, or that fails schema validation,
    reads as an empty list and logs a warning. The next write replaces it.
"""

import json
import logging
import secrets
import time
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from memohub.exceptions import NotFoundError, ValidationError
from memohub.schemas.search import (
    SearchFavorite,
    SearchFavoriteStats,
    SearchFilters,
    SearchHistoryItem,
    SearchHistoryStats,
)

logger = logging.getLogger(__name__)


HISTORY_KEY = "search_history"
FAVORITES_KEY = "search_favorites"
DAY_SECONDS = 24 * 60 * 60


# ══════════════════════════════════════════════════════════════════════════
# Storage seam
# ══════════════════════════════════════════════════════════════════════════

class KeyValueStore(ABC):
    """String-to-string storage. Async so a networked store fits the same seam."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local dict. Contents vanish on restart and are not shared between workers."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


_default_store = InMemoryKeyValueStore()


def get_search_store() -> KeyValueStore:
    """FastAPI dependency returning the process-wide store."""
    return _default_store


class _JsonList:
    """Typed JSON list under one per-user key."""

    def __init__(self, store: KeyValueStore, user_id: uuid.UUID, name: str, item_type: type):
        self.store = store
        self.key = f"{user_id}:{name}"
        self._adapter = TypeAdapter(List[item_type])

    async def load(self) -> list:
        raw = await self.store.get(self.key)
        if raw is None:
            return []
        try:
            return self._adapter.validate_json(raw)
        except SchemaError as e:
            logger.warning("Discarding unreadable value under %s: %s", self.key, e.error_count())
            return []

    async def save(self, items: list) -> None:
        await self.store.set(self.key, self._adapter.dump_json(items).decode("utf-8"))

    async def clear(self) -> None:
        await self.store.delete(self.key)


# ══════════════════════════════════════════════════════════════════════════
# Search history
# ══════════════════════════════════════════════════════════════════════════

class SearchHistory:
    """
    Most-recent-first list of a user's searches.

    Adding a query already in the list bumps its count and timestamp and
    moves it to the front; new queries are prepended. Capped at
    MAX_HISTORY entries.
    """

    MAX_HISTORY = 20
    MAX_QUERY_LENGTH = 100
    RETENTION_DAYS = 30

    def __init__(
        self,
        store: KeyValueStore,
        user_id: uuid.UUID,
        clock: Callable[[], float] = time.time,
    ):
        self._list = _JsonList(store, user_id, HISTORY_KEY, SearchHistoryItem)
        self._clock = clock

    async def get(self) -> List[SearchHistoryItem]:
        return await self._list.load()

    async def add(
        self,
        query: str,
        tags: Optional[List[str]] = None,
        result_count: Optional[int] = None,
    ) -> bool:
        """Record a search. Returns False (and stores nothing) for blank or over-long queries."""
        query = (query or "").strip()
        if not query or len(query) > self.MAX_QUERY_LENGTH:
            return False

        history = await self.get()
        now = self._clock()
        existing = next((item for item in history if item.query == query), None)
        if existing is not None:
            history.remove(existing)
            existing.count += 1
            existing.timestamp = now
            if tags is not None:
                existing.tags = tags
            if result_count is not None:
                existing.result_count = result_count
            history.insert(0, existing)
        else:
            history.insert(
                0,
                SearchHistoryItem(query=query, timestamp=now, tags=tags, result_count=result_count),
            )

        await self._list.save(history[: self.MAX_HISTORY])
        return True

    async def remove(self, query: str) -> bool:
        history = await self.get()
        kept = [item for item in history if item.query != query]
        if len(kept) == len(history):
            return False
        await self._list.save(kept)
        return True

    async def clear(self) -> None:
        await self._list.clear()

    async def popular(self, limit: int = 10) -> List[SearchHistoryItem]:
        return sorted(await self.get(), key=lambda item: item.count, reverse=True)[:limit]

    async def recent(self, limit: int = 10) -> List[SearchHistoryItem]:
        return sorted(await self.get(), key=lambda item: item.timestamp, reverse=True)[:limit]

    async def by_tag(self, tag: str) -> List[SearchHistoryItem]:
        needle = tag.lower()
        return [
            item for item in await self.get()
            if any(needle in t.lower() for t in (item.tags or []))
        ]

    async def suggestions(self, query: str, limit: int = 5) -> List[str]:
        needle = (query or "").strip().lower()
        if not needle:
            return []
        matches = [item for item in await self.get() if needle in item.query.lower()]
        matches.sort(key=lambda item: item.count, reverse=True)
        return [item.query for item in matches[:limit]]

    async def stats(self) -> SearchHistoryStats:
        history = await self.get()
        if not history:
            return SearchHistoryStats(total_searches=0, unique_queries=0, average_results=0)
        total_results = sum(item.result_count or 0 for item in history)
        return SearchHistoryStats(
            total_searches=sum(item.count for item in history),
            unique_queries=len(history),
            average_results=round(total_results / len(history)),
            most_popular_query=max(history, key=lambda item: item.count).query,
        )

    async def cleanup(self) -> int:
        """Drop entries older than RETENTION_DAYS; returns how many were dropped."""
        history = await self.get()
        cutoff = self._clock() - self.RETENTION_DAYS * DAY_SECONDS
        kept = [item for item in history if item.timestamp > cutoff]
        if len(kept) != len(history):
            await self._list.save(kept)
        return len(history) - len(kept)


# ══════════════════════════════════════════════════════════════════════════
# Search favorites
# ══════════════════════════════════════════════════════════════════════════

class SearchFavorites:
    """Saved searches, newest first until used; `use` re-sorts by use_count."""

    MAX_FAVORITES = 20

    def __init__(
        self,
        store: KeyValueStore,
        user_id: uuid.UUID,
        clock: Callable[[], float] = time.time,
    ):
        self._list = _JsonList(store, user_id, FAVORITES_KEY, SearchFavorite)
        self._clock = clock

    async def get(self) -> List[SearchFavorite]:
        return await self._list.load()

    def _find(self, favorites: List[SearchFavorite], favorite_id: str) -> SearchFavorite:
        for favorite in favorites:
            if favorite.id == favorite_id:
                return favorite
        raise NotFoundError(resource="saved search", resource_id=favorite_id)

    async def add(
        self,
        name: str,
        query: str,
        filters: Optional[SearchFilters] = None,
        description: Optional[str] = None,
    ) -> SearchFavorite:
        name = (name or "").strip()
        if not name:
            raise ValidationError(message="Name is required", field="name")
        if not (query or "").strip():
            raise ValidationError(message="Query is required", field="query")

        now = self._clock()
        favorite = SearchFavorite(
            id=f"fav_{int(now * 1000)}_{secrets.token_hex(4)}",
            name=name,
            query=query.strip(),
            filters=filters or SearchFilters(),
            created_at=now,
            last_used=now,
            use_count=1,
            description=description,
        )
        favorites = await self.get()
        favorites.insert(0, favorite)
        await self._list.save(favorites[: self.MAX_FAVORITES])
        return favorite

    async def use(self, favorite_id: str) -> SearchFavorite:
        favorites = await self.get()
        favorite = self._find(favorites, favorite_id)
        favorite.use_count += 1
        favorite.last_used = self._clock()
        favorites.sort(key=lambda fav: fav.use_count, reverse=True)
        await self._list.save(favorites)
        return favorite

    async def update(
        self, favorite_id: str, name: Optional[str] = None, description: Optional[str] = None
    ) -> SearchFavorite:
        favorites = await self.get()
        favorite = self._find(favorites, favorite_id)
        if name is not None:
            if not name.strip():
                raise ValidationError(message="Name is required", field="name")
            favorite.name = name.strip()
        if description is not None:
            favorite.description = description or None
        await self._list.save(favorites)
        return favorite

    async def remove(self, favorite_id: str) -> None:
        favorites = await self.get()
        kept = [fav for fav in favorites if fav.id != favorite_id]
        if len(kept) == len(favorites):
            raise NotFoundError(resource="saved search", resource_id=favorite_id)
        await self._list.save(kept)

    async def clear(self) -> None:
        await self._list.clear()

    async def popular(self, limit: int = 5) -> List[SearchFavorite]:
        return sorted(await self.get(), key=lambda fav: fav.use_count, reverse=True)[:limit]

    async def recent(self, limit: int = 5) -> List[SearchFavorite]:
        return sorted(await self.get(), key=lambda fav: fav.last_used, reverse=True)[:limit]

    async def search(self, query: str) -> List[SearchFavorite]:
        needle = (query or "").lower()
        return [
            fav for fav in await self.get()
            if needle in fav.name.lower()
            or needle in (fav.description or "").lower()
            or needle in fav.query.lower()
        ]

    async def stats(self) -> SearchFavoriteStats:
        favorites = await self.get()
        total_uses = sum(fav.use_count for fav in favorites)
        most_used = max(favorites, key=lambda fav: fav.use_count).name if favorites else None
        return SearchFavoriteStats(
            total_favorites=len(favorites),
            total_uses=total_uses,
            average_uses=round(total_uses / len(favorites), 2) if favorites else 0.0,
            most_used=most_used,
        )

    async def export_json(self) -> str:
        return json.dumps([fav.model_dump(mode="json") for fav in await self.get()], indent=2)

    async def import_json(self, data: str) -> int:
        """Replace all favorites with a JSON array; returns the number stored."""
        try:
            favorites = TypeAdapter(List[SearchFavorite]).validate_json(data)
        except SchemaError as e:
            raise ValidationError(
                message="Import data is not a valid list of saved searches",
                field="favorites",
                context={"errors": e.error_count()},
            )
        favorites = favorites[: self.MAX_FAVORITES]
        await self._list.save(favorites)
        return len(favorites)
