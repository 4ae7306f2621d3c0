"""
MemoHub Backend — Search Schemas
=================================

Server-side search log / suggestion payloads, plus the per-key value
schemas of the search key-value store (history and favorites).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SearchLogRequest(BaseModel):
    query: str = Field(max_length=255)
    search_type: str = Field(max_length=32, description="e.g. 'text', 'semantic', 'tag'")
    result_count: int = Field(default=0, ge=0)


class PopularSearch(BaseModel):
    query: str
    search_count: int
    avg_results: float
    last_searched: datetime


class PopularSearchResponse(BaseModel):
    popular_searches: List[PopularSearch]


class SearchSuggestions(BaseModel):
    titles: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    recent_searches: List[str] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Key-value store schemas
# ══════════════════════════════════════════════════════════════════════════


class SearchHistoryItem(BaseModel):
    """Value schema of one entry under the `search_history` key."""
    query: str
    timestamp: float = Field(description="Unix seconds of the latest use")
    count: int = 1
    tags: Optional[List[str]] = None
    result_count: Optional[int] = None


class SearchHistoryAdd(BaseModel):
    query: str = Field(max_length=500)
    tags: Optional[List[str]] = None
    result_count: Optional[int] = Field(default=None, ge=0)


class SearchHistoryStats(BaseModel):
    total_searches: int
    unique_queries: int
    average_results: int
    most_popular_query: Optional[str] = None


class SearchFilters(BaseModel):
    tag_ids: List[str] = Field(default_factory=list)
    start_date: str = ""
    end_date: str = ""
    sort_by: str = "updated_at"
    sort_order: str = "desc"
    use_semantic_search: bool = False


class SearchFavorite(BaseModel):
    """Value schema of one entry under the `search_favorites` key."""
    id: str
    name: str
    query: str
    filters: SearchFilters = Field(default_factory=SearchFilters)
    created_at: float
    last_used: float
    use_count: int = 1
    description: Optional[str] = None


class SearchFavoriteCreate(BaseModel):
    name: str = Field(max_length=100)
    query: str = Field(max_length=500)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    description: Optional[str] = Field(default=None, max_length=500)


class SearchFavoriteUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class SearchFavoriteStats(BaseModel):
    total_favorites: int
    total_uses: int
    average_uses: float
    most_used: Optional[str] = None
