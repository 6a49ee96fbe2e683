"""Exposes a SemanticIndexManager as a vector search source."""
import time
from typing import Tuple

from ..core.adapters import SearchAdapter
from ..core.exceptions import ConfigurationError
from ..core.types import (
    SearchFilters,
    SearchParams,
    SearchResult,
    SemanticQueryRequest,
    VectorSearchRequest,
)
from .manager import SemanticIndexManager

SEMANTIC_INDEX_ADAPTER_ID = "semantic-index"


class SemanticIndexSearchAdapter(SearchAdapter):
    """Vector-only search adapter backed by the local semantic index."""

    supports_keyword_search = False
    supports_vector_search = True

    def __init__(self, manager: SemanticIndexManager, adapter_id: str = SEMANTIC_INDEX_ADAPTER_ID):
        self.id = adapter_id
        self.manager = manager

    async def search(self, params: SearchParams) -> SearchResult:
        raise ConfigurationError(f"Search adapter '{self.id}' only supports vector search")

    def split_filters(self, filters: SearchFilters) -> Tuple[SearchFilters, SearchFilters]:
        pushed = SearchFilters(
            equals=dict(filters.equals),
            membership=dict(filters.membership),
            exists=list(filters.exists),
            not_exists=list(filters.not_exists),
        )
        return pushed, SearchFilters(name_contains=filters.name_contains)

    async def vector_search(self, request: VectorSearchRequest) -> SearchResult:
        started = time.perf_counter()
        filters = request.filters
        if request.registries:
            filters = filters.merged(SearchFilters(membership={"registry": list(request.registries)}))

        matches = await self.manager.query(
            SemanticQueryRequest(
                query=request.query,
                limit=request.limit,
                offset=request.offset,
                filters=filters,
                min_score=request.min_score,
            )
        )
        hits = [match.to_hit() for match in matches]
        return SearchResult(
            hits=hits,
            total=len(hits),
            elapsed=(time.perf_counter() - started) * 1000,
        )
