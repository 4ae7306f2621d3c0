"""
MemoHub Backend — Search Routes
================================

What:  Server-side search log and suggestions, plus the caller's recent
       search history and saved searches.
How:   The log lives in the database (search_logs). History and saved
       searches live in the key-value store from `get_search_store`.

Route Map:
    POST   /api/search/log
    GET    /api/search/popular
    GET    /api/search/suggestions?q=
    GET/POST/DELETE  /api/search/history
    DELETE /api/search/history/{query}
    GET    /api/search/history/suggestions?q=
    GET    /api/search/history/stats
    GET/POST/DELETE  /api/search/favorites
    GET    /api/search/favorites/stats
    GET    /api/search/favorites/export
    POST   /api/search/favorites/import
    POST   /api/search/favorites/{favorite_id}/use
    PATCH/DELETE     /api/search/favorites/{favorite_id}
"""

import logging
from enum import Enum
from typing import List

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.database import get_db_session
from memohub.exceptions import NotFoundError
from memohub.schemas.common import ErrorResponse
from memohub.schemas.search import (
    PopularSearchResponse,
    SearchFavorite,
    SearchFavoriteCreate,
    SearchFavoriteStats,
    SearchFavoriteUpdate,
    SearchHistoryAdd,
    SearchHistoryItem,
    SearchHistoryStats,
    SearchLogRequest,
    SearchSuggestions,
)
from memohub.security import CurrentUser, get_current_user
from memohub.services.search_service import search_service
from memohub.services.search_store import (
    KeyValueStore,
    SearchFavorites,
    SearchHistory,
    get_search_store,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/search", tags=["Search"])


class HistorySort(str, Enum):
    RECENT = "recent"
    POPULAR = "popular"


class FavoriteSort(str, Enum):
    RECENT = "recent"
    POPULAR = "popular"


class HistoryAddResult(BaseModel):
    recorded: bool


class FavoritesImportResult(BaseModel):
    imported: int


def _history(user: CurrentUser, store: KeyValueStore) -> SearchHistory:
    return SearchHistory(store, user.id)


def _favorites(user: CurrentUser, store: KeyValueStore) -> SearchFavorites:
    return SearchFavorites(store, user.id)


# ══════════════════════════════════════════════════════════════════════════
# Search log
# ══════════════════════════════════════════════════════════════════════════

@router.post(
    "/log",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"description": "Blank query or search type", "model": ErrorResponse}},
    summary="Record a search the client just ran",
)
async def log_search(
    body: SearchLogRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await search_service.log_search(
        db, user.id, query=body.query, search_type=body.search_type, result_count=body.result_count
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/popular",
    response_model=PopularSearchResponse,
    summary="Most frequent queries of the last 30 days",
)
async def popular_searches(
    limit: int = Query(default=10, ge=1, le=50),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PopularSearchResponse:
    return PopularSearchResponse(popular_searches=await search_service.popular_searches(db, limit=limit))


@router.get(
    "/suggestions",
    response_model=SearchSuggestions,
    summary="Autocomplete from memo titles, tags and past queries",
)
async def search_suggestions(
    q: str = Query(default="", max_length=200),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SearchSuggestions:
    return await search_service.suggestions(db, user.id, q)


# ══════════════════════════════════════════════════════════════════════════
# History
# ══════════════════════════════════════════════════════════════════════════

@router.get("/history", response_model=List[SearchHistoryItem], summary="Recent searches")
async def get_history(
    sort: HistorySort = Query(default=HistorySort.RECENT),
    tag: str | None = Query(default=None, max_length=100, description="Only entries with a matching tag"),
    limit: int = Query(default=10, ge=1, le=SearchHistory.MAX_HISTORY),
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> List[SearchHistoryItem]:
    history = _history(user, store)
    if tag:
        return (await history.by_tag(tag))[:limit]
    if sort is HistorySort.POPULAR:
        return await history.popular(limit)
    return await history.recent(limit)


@router.post("/history", response_model=HistoryAddResult, summary="Record a search in history")
async def add_history(
    body: SearchHistoryAdd,
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> HistoryAddResult:
    """Blank or over-long queries are ignored (recorded=false), not rejected."""
    history = _history(user, store)
    await history.cleanup()
    recorded = await history.add(body.query, tags=body.tags, result_count=body.result_count)
    return HistoryAddResult(recorded=recorded)


@router.delete("/history", status_code=status.HTTP_204_NO_CONTENT, summary="Clear search history")
async def clear_history(
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> Response:
    await _history(user, store).clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/history/suggestions", response_model=List[str], summary="Past queries containing q")
async def history_suggestions(
    q: str = Query(default="", max_length=200),
    limit: int = Query(default=5, ge=1, le=20),
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> List[str]:
    return await _history(user, store).suggestions(q, limit)


@router.get("/history/stats", response_model=SearchHistoryStats, summary="Search history statistics")
async def history_stats(
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> SearchHistoryStats:
    return await _history(user, store).stats()


@router.delete(
    "/history/{query}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Query not in history", "model": ErrorResponse}},
    summary="Forget one query",
)
async def remove_history_item(
    query: str,
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> Response:
    if not await _history(user, store).remove(query):
        raise NotFoundError(resource="search history entry", resource_id=query)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ══════════════════════════════════════════════════════════════════════════
# Saved searches
# ══════════════════════════════════════════════════════════════════════════

@router.get("/favorites", response_model=List[SearchFavorite], summary="Saved searches")
async def list_favorites(
    sort: FavoriteSort | None = Query(default=None, description="Default: stored order"),
    q: str | None = Query(default=None, max_length=200, description="Match name, description or query"),
    limit: int = Query(default=SearchFavorites.MAX_FAVORITES, ge=1, le=SearchFavorites.MAX_FAVORITES),
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> List[SearchFavorite]:
    favorites = _favorites(user, store)
    if q:
        return (await favorites.search(q))[:limit]
    if sort is FavoriteSort.POPULAR:
        return await favorites.popular(limit)
    if sort is FavoriteSort.RECENT:
        return await favorites.recent(limit)
    return (await favorites.get())[:limit]


@router.post(
    "/favorites",
    response_model=SearchFavorite,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Blank name or query", "model": ErrorResponse}},
    summary="Save a search",
)
async def add_favorite(
    body: SearchFavoriteCreate,
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> SearchFavorite:
    return await _favorites(user, store).add(
        body.name, body.query, filters=body.filters, description=body.description
    )


@router.delete("/favorites", status_code=status.HTTP_204_NO_CONTENT, summary="Delete all saved searches")
async def clear_favorites(
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> Response:
    await _favorites(user, store).clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/favorites/stats", response_model=SearchFavoriteStats, summary="Saved search statistics")
async def favorite_stats(
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> SearchFavoriteStats:
    return await _favorites(user, store).stats()


@router.get("/favorites/export", summary="Saved searches as a JSON document")
async def export_favorites(
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> Response:
    return Response(
        content=await _favorites(user, store).export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="saved-searches.json"'},
    )


@router.post(
    "/favorites/import",
    response_model=FavoritesImportResult,
    responses={400: {"description": "Not a list of saved searches", "model": ErrorResponse}},
    summary="Replace saved searches with an exported document",
)
async def import_favorites(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> FavoritesImportResult:
    return FavoritesImportResult(imported=await _favorites(user, store).import_json(await request.body()))


@router.post(
    "/favorites/{favorite_id}/use",
    response_model=SearchFavorite,
    responses={404: {"description": "Saved search not found", "model": ErrorResponse}},
    summary="Record that a saved search was run",
)
async def use_favorite(
    favorite_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> SearchFavorite:
    return await _favorites(user, store).use(favorite_id)


@router.patch(
    "/favorites/{favorite_id}",
    response_model=SearchFavorite,
    responses={404: {"description": "Saved search not found", "model": ErrorResponse}},
    summary="Rename or describe a saved search",
)
async def update_favorite(
    favorite_id: str,
    body: SearchFavoriteUpdate,
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> SearchFavorite:
    return await _favorites(user, store).update(favorite_id, name=body.name, description=body.description)


@router.delete(
    "/favorites/{favorite_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Saved search not found", "model": ErrorResponse}},
    summary="Delete a saved search",
)
async def remove_favorite(
    favorite_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: KeyValueStore = Depends(get_search_store),
) -> Response:
    await _favorites(user, store).remove(favorite_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
