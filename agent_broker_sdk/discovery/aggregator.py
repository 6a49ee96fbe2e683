"""Search Aggregator - one discovery contract over many search adapters.

Search order:

1. Vector search, when the query has text and a vector-capable adapter is
   registered. Best effort: any failure or an empty result falls through.
2. Keyword search over every keyword-capable adapter and every effective
   registry. For the default registry with no explicit adapter scope the
   default adapter id is tried first and the search is repeated without an
   adapter restriction only when that yields nothing (two-phase prefilter).

Filters an adapter cannot push down are applied client-side to the page it
returned, sort keys are applied client-side unless the adapter already
guarantees that order, and the result is truncated to the requested limit.
"""
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from ..core.adapters import SearchAdapter
from ..core.exceptions import ConfigurationError, ValidationError
from ..core.retry import RetryExecutor
from ..core.types import (
    AggregatedSearchResult,
    RegistryId,
    SearchFilters,
    SearchHit,
    SearchParams,
    SearchQuery,
    SearchStrategy,
    SortKey,
    VectorSearchRequest,
)
from ..registry.registry import AdapterCapability, AdapterRegistry
from ..utils.config import DEFAULT_ADAPTER, DEFAULT_REGISTRY
from ..utils.logger import get_logger
from .filters import apply_filters, sort_hits
from .uaid_cache import UaidCache

logger = get_logger("discovery.aggregator")

Batch = Tuple[SearchAdapter, List[SearchHit]]


def _dedupe(registries: Sequence[RegistryId]) -> List[RegistryId]:
    seen = set()
    result = []
    for registry in registries:
        if registry is None or not str(registry).strip():
            continue
        key = str(registry).strip()
        if key in seen:
            continue
        seen.add(key)
        result.append(registry)
    return result


class SearchAggregator:
    """
    Aggregates discovery results from the search adapters in an AdapterRegistry.

    Args:
        registry: Adapter directory to draw search adapters from
        retry: Executor wrapping every adapter call
        uaid_cache: Cache filled with native id -> uaid bindings seen in hits
        home_registry: The caller's own registry, searched by default
        default_registry: Canonical registry, always searched by default
        default_adapter_id: Backend adapter id applied to default-registry searches
        vector_adapter_id: Search adapter used for vector search; defaults to the
            first registered adapter advertising ``supports_vector_search``
        max_pages: Upper bound on pages fetched from one adapter per call
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        retry: Optional[RetryExecutor] = None,
        uaid_cache: Optional[UaidCache] = None,
        home_registry: Optional[RegistryId] = None,
        default_registry: RegistryId = DEFAULT_REGISTRY,
        default_adapter_id: str = DEFAULT_ADAPTER,
        vector_adapter_id: Optional[str] = None,
        max_pages: int = 3,
    ):
        if max_pages < 1:
            raise ValidationError("max_pages must be at least 1")
        self.registry = registry
        self.retry = retry or RetryExecutor()
        self.uaid_cache = uaid_cache if uaid_cache is not None else UaidCache()
        self.home_registry = home_registry
        self.default_registry = default_registry
        self.default_adapter_id = default_adapter_id
        self.vector_adapter_id = vector_adapter_id
        self.max_pages = max_pages

    def effective_registries(self, query: SearchQuery) -> List[RegistryId]:
        """Registries a query runs against.

        An unset scope means the default registry plus the caller's home
        registry, without duplicates.
        """
        scope = query.registry_scope
        if scope is None:
            return _dedupe([self.default_registry, self.home_registry])
        if isinstance(scope, (str, int)):
            registries = _dedupe([scope])
        else:
            registries = _dedupe(list(scope))
        if not registries:
            raise ValidationError("registry_scope must name at least one registry")
        return registries

    async def search(self, query: SearchQuery) -> AggregatedSearchResult:
        """Run a discovery query across the registered search adapters."""
        self._validate(query)
        filters = query.effective_filters()
        registries = self.effective_registries(query)
        text = query.text

        if text:
            vector_hits = await self._try_vector_search(query, text, registries, filters)
            if vector_hits:
                return AggregatedSearchResult(
                    hits=vector_hits,
                    registries=registries,
                    strategy=SearchStrategy.VECTOR,
                )

        hits = await self._keyword_search(query, text, registries, filters)
        return AggregatedSearchResult(
            hits=hits,
            registries=registries,
            strategy=SearchStrategy.KEYWORD,
        )

    async def lookup_uaid(
        self,
        native_id: str,
        registry: Optional[RegistryId] = None,
    ) -> Optional[str]:
        """Find the uaid of an agent by native id, consulting the cache first.

        Returns None when no search hit carries a uaid for the id.
        """
        native_id = (native_id or "").strip()
        if not native_id:
            raise ValidationError("native_id is required to resolve a uaid")

        cached = self.uaid_cache.resolve(native_id)
        if cached:
            return cached

        registry_id = registry if registry is not None else self.default_registry
        query = SearchQuery(limit=5)
        filters = SearchFilters(equals={"nativeId": native_id})
        for adapter in self._keyword_sources():
            hits = await self._search_source(adapter, query, None, registry_id, filters)
            for hit in hits:
                uaid = (hit.uaid or "").strip()
                if uaid:
                    self.uaid_cache.remember(native_id, uaid)
                    return uaid

        logger.info(f"No uaid found for native id {native_id} in registry {registry_id}")
        return None

    def _validate(self, query: SearchQuery) -> None:
        if query.limit < 1:
            raise ValidationError("limit must be at least 1")
        if query.min_score is not None and not query.text:
            raise ValidationError("min_score can only be used with semantic search (query_text is required)")

    def _vector_source(self) -> Optional[SearchAdapter]:
        if self.vector_adapter_id:
            adapter = self.registry.get(AdapterCapability.SEARCH, self.vector_adapter_id)
            if adapter is not None and adapter.supports_vector_search:
                return adapter
            return None
        for adapter in self.registry.search_adapters():
            if adapter.supports_vector_search:
                return adapter
        return None

    def _keyword_sources(self) -> List[SearchAdapter]:
        sources = [a for a in self.registry.search_adapters() if a.supports_keyword_search]
        if not sources:
            raise ConfigurationError("No keyword search adapter is registered")
        return sources

    async def _try_vector_search(
        self,
        query: SearchQuery,
        text: str,
        registries: List[RegistryId],
        filters: SearchFilters,
    ) -> List[SearchHit]:
        adapter = self._vector_source()
        if adapter is None:
            logger.debug("No vector search adapter configured, using keyword search")
            return []

        pushed, residual = adapter.split_vector_filters(filters)
        request = VectorSearchRequest(
            query=text,
            limit=query.limit,
            registries=list(registries),
            adapters=list(query.adapter_scope) if query.adapter_scope else None,
            filters=pushed,
            min_score=query.min_score,
        )
        try:
            result = await self.retry.execute(lambda: adapter.vector_search(request))
        except Exception as e:
            logger.debug("Vector search failed, falling back to keyword search", adapter=adapter.id, error=e)
            return []

        self.uaid_cache.record_hits(result.hits)
        hits = apply_filters(result.hits, residual)
        if query.min_score is not None:
            hits = [h for h in hits if h.score is not None and h.score >= query.min_score]
        if not hits:
            logger.debug("Vector search returned no hits, falling back to keyword search", adapter=adapter.id)
            return []

        if query.sort_keys and not self._orders_natively(adapter, query.sort_keys):
            hits = sort_hits(hits, query.sort_keys)
        return hits[:query.limit]

    async def _keyword_search(
        self,
        query: SearchQuery,
        text: Optional[str],
        registries: List[RegistryId],
        filters: SearchFilters,
    ) -> List[SearchHit]:
        batches: List[Batch] = []
        for adapter in self._keyword_sources():
            for registry_id in registries:
                hits = await self._search_source(adapter, query, text, registry_id, filters)
                batches.append((adapter, hits))

        hits = [hit for _, batch in batches for hit in batch]
        if query.sort_keys and not self._single_ordered_batch(batches, query.sort_keys):
            hits = sort_hits(hits, query.sort_keys)
        return hits[:query.limit]

    async def _search_source(
        self,
        adapter: SearchAdapter,
        query: SearchQuery,
        text: Optional[str],
        registry_id: RegistryId,
        filters: SearchFilters,
    ) -> List[SearchHit]:
        pushed, residual = adapter.split_filters(filters)
        params = SearchParams(
            query=text,
            registry=registry_id,
            limit=query.limit,
            sort_keys=list(query.sort_keys),
            filters=pushed,
        )

        if query.adapter_scope is not None:
            scoped = replace(params, adapters=list(query.adapter_scope) or None)
            hits, _ = await self._fetch_pages(adapter, scoped, residual, query.limit)
            return hits

        if str(registry_id) != str(self.default_registry):
            hits, _ = await self._fetch_pages(adapter, params, residual, query.limit)
            return hits

        prefiltered = replace(params, adapters=[self.default_adapter_id])
        hits, raw_count = await self._fetch_pages(adapter, prefiltered, residual, query.limit)
        if raw_count > 0:
            return hits

        logger.debug(
            "No prefiltered hits, retrying without adapter restriction",
            adapter=adapter.id,
            prefilter=self.default_adapter_id,
        )
        hits, _ = await self._fetch_pages(adapter, params, residual, query.limit)
        return hits

    async def _fetch_pages(
        self,
        adapter: SearchAdapter,
        params: SearchParams,
        residual: SearchFilters,
        limit: int,
    ) -> Tuple[List[SearchHit], int]:
        """Fetch pages until the post-filtered hits reach ``limit``.

        Returns the filtered hits and how many hits the adapter returned in
        total before client-side filtering.
        """
        collected: List[SearchHit] = []
        raw_count = 0
        for page in range(1, self.max_pages + 1):
            page_params = replace(params, page=page)
            result = await self.retry.execute(lambda p=page_params: adapter.search(p))
            raw_count += len(result.hits)
            self.uaid_cache.record_hits(result.hits)
            collected.extend(apply_filters(result.hits, residual))

            if residual.is_empty() or len(collected) >= limit:
                break
            if len(result.hits) < params.limit:
                break
            if result.total is not None and page * params.limit >= result.total:
                break
        return collected, raw_count

    def _orders_natively(self, adapter: SearchAdapter, sort_keys: Sequence[SortKey]) -> bool:
        return all(key.field in adapter.native_sort_fields for key in sort_keys)

    def _single_ordered_batch(self, batches: Sequence[Batch], sort_keys: Sequence[SortKey]) -> bool:
        contributing = [(adapter, hits) for adapter, hits in batches if hits]
        if len(contributing) != 1:
            return len(contributing) == 0
        return self._orders_natively(contributing[0][0], sort_keys)
