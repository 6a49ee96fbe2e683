"""
Universal Agent Semantic Search API v1 adapter.

The service answers ``POST /api/v1/search`` with ranked agents. It is used
as a vector-only source: keyword discovery still goes through a keyword
adapter such as the Registry Broker.
"""
import time
import uuid
from typing import Any, Dict, Optional, Tuple

import httpx

from ..core.adapters import SearchAdapter
from ..core.exceptions import ConfigurationError, UpstreamServiceError
from ..core.types import (
    SearchFilters,
    SearchHit,
    SearchParams,
    SearchResult,
    VectorSearchRequest,
)
from ..utils.logger import get_logger
from .http import HttpServiceClient

logger = get_logger("adapters.semantic_search")

SEMANTIC_SEARCH_ADAPTER_ID = "semantic-search"


class SemanticSearchClient(HttpServiceClient):
    """Client for the semantic search API. Every request carries a fresh ``X-Request-ID``."""

    service_name = "Semantic search service"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url or not base_url.strip():
            raise ConfigurationError("Semantic search base URL is required")
        super().__init__(base_url.strip(), timeout=timeout, headers=headers, http_client=http_client)

    async def search_agents(self, request: Dict[str, Any]) -> Dict[str, Any]:
        request_id = str(uuid.uuid4())
        data = await self.request_json(
            "POST",
            "/api/v1/search",
            json=request,
            headers={"Content-Type": "application/json", "X-Request-ID": request_id},
        )
        if not isinstance(data, dict):
            raise UpstreamServiceError(
                "Semantic search returned a non-object payload",
                details={"requestId": request_id},
            )
        return data


def _chain_ids(registries) -> list:
    chains = []
    for registry in registries:
        if isinstance(registry, int) and not isinstance(registry, bool):
            chains.append(registry)
        elif isinstance(registry, str) and registry.strip().isdigit():
            chains.append(int(registry.strip()))
    return chains


def map_standard_result(result: Dict[str, Any]) -> Optional[SearchHit]:
    """Normalize one standard search result."""
    agent_id = result.get("agentId")
    if agent_id is None or not str(agent_id).strip():
        return None

    metadata = dict(result.get("metadata") or {})
    for key in ("rank", "vectorId", "matchReasons"):
        if result.get(key) is not None:
            metadata[key] = result[key]
    uaid = metadata.get("uaid")
    if not isinstance(uaid, str) or not uaid.strip():
        uaid = None
    score = result.get("score")
    return SearchHit(
        native_id=str(agent_id).strip(),
        registry=result.get("chainId"),
        uaid=uaid.strip() if uaid else None,
        name=result.get("name"),
        description=result.get("description"),
        score=float(score) if isinstance(score, (int, float)) else None,
        metadata=metadata,
    )


class SemanticSearchAdapter(SearchAdapter):
    """Vector search against a semantic search API deployment."""

    supports_keyword_search = False
    supports_vector_search = True

    def __init__(
        self,
        client: Optional[SemanticSearchClient] = None,
        base_url: Optional[str] = None,
        adapter_id: str = SEMANTIC_SEARCH_ADAPTER_ID,
        **client_options,
    ):
        self.id = adapter_id
        self.client = client or SemanticSearchClient(base_url, **client_options)

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
        payload: Dict[str, Any] = {
            "query": request.query,
            "limit": request.limit,
            "offset": request.offset,
            "includeMetadata": True,
        }
        standard_filters = request.filters.to_standard()
        if standard_filters:
            payload["filters"] = standard_filters
        if request.min_score is not None:
            payload["minScore"] = request.min_score
        chains = _chain_ids(request.registries)
        if chains:
            payload["chains"] = chains

        data = await self.client.search_agents(payload)
        results = data.get("results") if isinstance(data.get("results"), list) else []
        hits = [hit for hit in (map_standard_result(r) for r in results if isinstance(r, dict)) if hit]
        total = data.get("total")
        logger.debug(f"Semantic search request {data.get('requestId')} returned {len(hits)} hits")
        return SearchResult(
            hits=hits,
            total=total if isinstance(total, int) else None,
            elapsed=(time.perf_counter() - started) * 1000,
        )
