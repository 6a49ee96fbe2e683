"""Tests for the semantic search API adapter."""

import json

import httpx
import pytest

from agent_broker_sdk.adapters import SemanticSearchAdapter, SemanticSearchClient
from agent_broker_sdk.core.exceptions import ConfigurationError, ValidationError
from agent_broker_sdk.core.types import SearchFilters, SearchParams, VectorSearchRequest


def make_adapter(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SemanticSearchAdapter(SemanticSearchClient("https://semantic.test/", http_client=http_client))


RESPONSE = {
    "query": "trading",
    "results": [
        {
            "rank": 1,
            "vectorId": "8453-12",
            "agentId": "8453:12",
            "chainId": 8453,
            "name": "Base Trader",
            "description": "Trades on Base",
            "score": 0.91,
            "metadata": {"mcpEndpoint": "https://trader/mcp", "uaid": "uaid-12"},
            "matchReasons": ["name"],
        },
        {"rank": 2, "agentId": "", "score": 0.5},
    ],
    "total": 1,
    "requestId": "req-1",
    "timestamp": "2025-01-01T00:00:00Z",
    "provider": {"name": "test", "version": "1.0"},
}


class TestSemanticSearchAdapterConfig:

    def test_requires_base_url(self):
        with pytest.raises(ConfigurationError):
            SemanticSearchClient("  ")

    def test_split_filters_keeps_name_residual(self):
        adapter = make_adapter(lambda r: httpx.Response(200, json=RESPONSE))
        filters = SearchFilters(equals={"active": True}, exists=["mcpEndpoint"], name_contains="trader")

        pushed, residual = adapter.split_filters(filters)

        assert pushed.to_standard() == {"equals": {"active": True}, "exists": ["mcpEndpoint"]}
        assert residual == SearchFilters(name_contains="trader")


@pytest.mark.asyncio
class TestSemanticSearchAdapter:

    async def test_request_and_mapping(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=RESPONSE)

        adapter = make_adapter(handler)

        result = await adapter.vector_search(VectorSearchRequest(
            query="trading",
            limit=5,
            registries=[8453, "erc-8004", "1"],
            filters=SearchFilters(membership={"tags": ["defi"]}, not_exists=["a2aEndpoint"]),
            min_score=0.4,
        ))

        request = seen["request"]
        assert str(request.url) == "https://semantic.test/api/v1/search"
        assert request.headers["X-Request-ID"]
        assert seen["body"] == {
            "query": "trading",
            "limit": 5,
            "offset": 0,
            "includeMetadata": True,
            "filters": {"in": {"tags": ["defi"]}, "notExists": ["a2aEndpoint"]},
            "minScore": 0.4,
            "chains": [8453, 1],
        }

        assert len(result.hits) == 1
        hit = result.hits[0]
        assert hit.native_id == "8453:12"
        assert hit.registry == 8453
        assert hit.uaid == "uaid-12"
        assert hit.score == 0.91
        assert hit.metadata["vectorId"] == "8453-12"
        assert hit.metadata["matchReasons"] == ["name"]
        assert result.total == 1

    async def test_request_ids_are_unique(self):
        ids = []

        def handler(request):
            ids.append(request.headers["X-Request-ID"])
            return httpx.Response(200, json=RESPONSE)

        adapter = make_adapter(handler)
        await adapter.vector_search(VectorSearchRequest(query="a"))
        await adapter.vector_search(VectorSearchRequest(query="b"))

        assert len(set(ids)) == 2

    async def test_validation_error_from_service(self):
        def handler(request):
            return httpx.Response(400, json={
                "error": "limit must be <= 100",
                "code": "VALIDATION_ERROR",
                "status": 400,
                "requestId": "req-9",
            })

        with pytest.raises(ValidationError) as exc_info:
            await make_adapter(handler).vector_search(VectorSearchRequest(query="x", limit=1000))

        assert "limit must be <= 100" in exc_info.value.message
        assert exc_info.value.details["requestId"] == "req-9"

    async def test_keyword_search_unsupported(self):
        adapter = make_adapter(lambda r: httpx.Response(200, json=RESPONSE))

        with pytest.raises(ConfigurationError):
            await adapter.search(SearchParams(query="x"))
