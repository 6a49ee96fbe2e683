"""Tests for the search aggregator."""

import pytest

from agent_broker_sdk.core.exceptions import ConfigurationError, NetworkError, ValidationError
from agent_broker_sdk.core.types import (
    SearchFilters,
    SearchQuery,
    SearchResult,
    SearchStrategy,
    SortKey,
)
from agent_broker_sdk.discovery import SearchAggregator, UaidCache
from agent_broker_sdk.registry import AdapterRegistry

from conftest import FakeSearchAdapter, make_hit


def build(*adapters, retry=None, **kwargs):
    registry = AdapterRegistry()
    for adapter in adapters:
        registry.register_search(adapter)
    return SearchAggregator(registry, retry=retry, **kwargs)


class TestEffectiveRegistries:
    """Default scope is the default registry plus the home registry."""

    def test_home_and_default(self):
        aggregator = build(home_registry=137, default_registry=1)
        assert aggregator.effective_registries(SearchQuery()) == [1, 137]

    def test_home_equals_default(self):
        aggregator = build(home_registry=1, default_registry=1)
        assert aggregator.effective_registries(SearchQuery()) == [1]

    def test_no_home(self):
        aggregator = build()
        assert aggregator.effective_registries(SearchQuery()) == ["erc-8004"]

    def test_explicit_scope_deduplicated(self):
        aggregator = build(home_registry=137, default_registry=1)
        query = SearchQuery(registry_scope=[5, "5", 8453])
        assert aggregator.effective_registries(query) == [5, 8453]

    def test_single_scope(self):
        aggregator = build()
        assert aggregator.effective_registries(SearchQuery(registry_scope="hol")) == ["hol"]

    def test_empty_explicit_scope_rejected(self):
        with pytest.raises(ValidationError):
            build().effective_registries(SearchQuery(registry_scope=[]))


@pytest.mark.asyncio
class TestSearch:

    async def test_semantic_miss_falls_through_to_filtered_keyword(self, fast_retry):
        semantic = FakeSearchAdapter("semantic", keyword=False, vector=True, vector_hits=[])
        keyword = FakeSearchAdapter("broker", hits=[
            make_hit("1", name="Trader A", metadata={"mcpEndpoint": "https://a.example/mcp"}),
            make_hit("2", name="Trader B"),
            make_hit("3", name="Trader C", metadata={"mcpEndpoint": "https://c.example/mcp"}),
        ])
        aggregator = build(semantic, keyword, retry=fast_retry)

        result = await aggregator.search(SearchQuery(query_text="trading agent", mcp=True))

        assert result.strategy is SearchStrategy.KEYWORD
        assert [h.native_id for h in result.hits] == ["1", "3"]
        assert all(h.metadata.get("mcpEndpoint") for h in result.hits)
        assert len(semantic.vector_calls) == 1
        assert semantic.calls == []

    async def test_vector_hits_win(self, fast_retry):
        semantic = FakeSearchAdapter(
            "semantic",
            keyword=False,
            vector=True,
            vector_hits=[make_hit("9", score=0.8, uaid="uaid-9")],
        )
        keyword = FakeSearchAdapter("broker", hits=[make_hit("1")])
        cache = UaidCache()
        aggregator = build(semantic, keyword, retry=fast_retry, uaid_cache=cache)

        result = await aggregator.search(SearchQuery(query_text="weather"))

        assert result.strategy is SearchStrategy.VECTOR
        assert [h.native_id for h in result.hits] == ["9"]
        assert keyword.calls == []
        assert cache.resolve("9") == "uaid-9"

    async def test_vector_failure_is_best_effort(self, fast_retry):
        semantic = FakeSearchAdapter("semantic", keyword=False, vector=True, vector_error=NetworkError("down"))
        keyword = FakeSearchAdapter("broker", hits=[make_hit("1")])
        aggregator = build(semantic, keyword, retry=fast_retry)

        result = await aggregator.search(SearchQuery(query_text="anything"))

        assert result.strategy is SearchStrategy.KEYWORD
        assert [h.native_id for h in result.hits] == ["1"]
        assert len(semantic.vector_calls) == 3

    async def test_no_text_skips_vector(self, fast_retry):
        semantic = FakeSearchAdapter("semantic", keyword=False, vector=True, vector_hits=[make_hit("9")])
        keyword = FakeSearchAdapter("broker", hits=[make_hit("1")])

        result = await build(semantic, keyword, retry=fast_retry).search(SearchQuery())

        assert semantic.vector_calls == []
        assert result.strategy is SearchStrategy.KEYWORD

    async def test_min_score_requires_text(self):
        with pytest.raises(ValidationError):
            await build(FakeSearchAdapter()).search(SearchQuery(min_score=0.5))

    async def test_min_score_filters_vector_hits(self, fast_retry):
        semantic = FakeSearchAdapter(
            "semantic",
            keyword=False,
            vector=True,
            vector_hits=[make_hit("a", score=0.9), make_hit("b", score=0.3)],
        )
        aggregator = build(semantic, FakeSearchAdapter("broker"), retry=fast_retry)

        result = await aggregator.search(SearchQuery(query_text="x", min_score=0.5))

        assert [h.native_id for h in result.hits] == ["a"]

    async def test_invalid_limit(self):
        with pytest.raises(ValidationError):
            await build(FakeSearchAdapter()).search(SearchQuery(limit=0))

    async def test_no_keyword_adapter(self):
        with pytest.raises(ConfigurationError):
            await build().search(SearchQuery())

    async def test_truncates_to_limit(self, fast_retry):
        keyword = FakeSearchAdapter("broker", hits=[make_hit(str(i)) for i in range(5)])

        result = await build(keyword, retry=fast_retry).search(SearchQuery(limit=2))

        assert [h.native_id for h in result.hits] == ["0", "1"]

    async def test_sorts_merged_results(self, fast_retry):
        keyword = FakeSearchAdapter("broker", respond=lambda p: SearchResult(hits=[
            make_hit(f"{p.registry}-b", name="b"),
            make_hit(f"{p.registry}-a", name="a"),
        ]))
        aggregator = build(keyword, retry=fast_retry, home_registry=137, default_registry=1)

        result = await aggregator.search(SearchQuery(sort_keys=[SortKey.parse("name:asc")]))

        assert [h.name for h in result.hits] == ["a", "a", "b", "b"]
        assert result.registries == [1, 137]


@pytest.mark.asyncio
class TestTwoPhasePrefilter:

    async def test_broadens_only_when_default_adapter_returns_nothing(self, fast_retry):
        def respond(params):
            if params.adapters == ["erc8004-adapter"]:
                return SearchResult(hits=[], total=0)
            return SearchResult(hits=[make_hit("7")], total=1)

        keyword = FakeSearchAdapter("broker", respond=respond)

        result = await build(keyword, retry=fast_retry).search(SearchQuery(query_text="x"))

        assert [h.native_id for h in result.hits] == ["7"]
        assert [c.adapters for c in keyword.calls] == [["erc8004-adapter"], None]

    async def test_no_broadening_when_prefilter_has_hits(self, fast_retry):
        keyword = FakeSearchAdapter("broker", hits=[make_hit("1")])

        await build(keyword, retry=fast_retry).search(SearchQuery())

        assert [c.adapters for c in keyword.calls] == [["erc8004-adapter"]]

    async def test_no_broadening_when_hits_are_filtered_out(self, fast_retry):
        keyword = FakeSearchAdapter("broker", hits=[make_hit("1")])

        result = await build(keyword, retry=fast_retry).search(SearchQuery(mcp=True))

        assert result.hits == []
        assert [c.adapters for c in keyword.calls] == [["erc8004-adapter"]]

    async def test_other_registry_is_unrestricted(self, fast_retry):
        keyword = FakeSearchAdapter("broker", hits=[make_hit("1")])

        await build(keyword, retry=fast_retry).search(SearchQuery(registry_scope="hol"))

        assert [(c.registry, c.adapters) for c in keyword.calls] == [("hol", None)]

    async def test_explicit_adapter_scope(self, fast_retry):
        keyword = FakeSearchAdapter("broker", hits=[])

        await build(keyword, retry=fast_retry).search(SearchQuery(adapter_scope=["custom"]))
        await build(keyword, retry=fast_retry).search(SearchQuery(adapter_scope=[]))

        assert [c.adapters for c in keyword.calls] == [["custom"], None]


@pytest.mark.asyncio
class TestPaging:

    async def test_fetches_more_pages_for_residual_filters(self, fast_retry):
        def respond(params):
            page = [
                make_hit(f"{params.page}-{i}", metadata={"a2aEndpoint": "https://x"} if i == 0 else {})
                for i in range(params.limit)
            ]
            return SearchResult(hits=page, total=100)

        keyword = FakeSearchAdapter("broker", respond=respond)
        aggregator = build(keyword, retry=fast_retry, max_pages=3)

        result = await aggregator.search(SearchQuery(limit=2, a2a=True, registry_scope="hol"))

        assert [h.native_id for h in result.hits] == ["1-0", "2-0"]
        assert [c.page for c in keyword.calls] == [1, 2]

    async def test_page_bound(self, fast_retry):
        keyword = FakeSearchAdapter(
            "broker",
            respond=lambda p: SearchResult(hits=[make_hit(f"{p.page}-{i}") for i in range(p.limit)], total=100),
        )
        aggregator = build(keyword, retry=fast_retry, max_pages=2)

        result = await aggregator.search(SearchQuery(limit=3, mcp=True, registry_scope="hol"))

        assert result.hits == []
        assert len(keyword.calls) == 2


@pytest.mark.asyncio
class TestLookupUaid:

    async def test_cache_first(self, fast_retry):
        cache = UaidCache()
        cache.remember("1:42", "uaid-42")
        keyword = FakeSearchAdapter("broker")

        uaid = await build(keyword, retry=fast_retry, uaid_cache=cache).lookup_uaid("1:42")

        assert uaid == "uaid-42"
        assert keyword.calls == []

    async def test_searches_by_native_id(self, fast_retry):
        keyword = FakeSearchAdapter("broker", hits=[make_hit("1:42", uaid="uaid-42")])
        aggregator = build(keyword, retry=fast_retry)

        assert await aggregator.lookup_uaid("1:42") == "uaid-42"
        assert keyword.calls[0].filters == SearchFilters()
        assert keyword.calls[0].limit == 5
        assert aggregator.uaid_cache.resolve("1:42") == "uaid-42"

    async def test_not_found(self, fast_retry):
        keyword = FakeSearchAdapter("broker", hits=[make_hit("1:42")])
        assert await build(keyword, retry=fast_retry).lookup_uaid("1:42") is None

    async def test_requires_id(self):
        with pytest.raises(ValidationError):
            await build(FakeSearchAdapter()).lookup_uaid(" ")
