#!/usr/bin/env python3
"""
Semantic Index Example

Indexes a few agents into a local vector store and queries them, both
directly and through the SDK's search pipeline.

Requires the openai extra and OPENAI_API_KEY. Pass --qdrant to use an
in-memory Qdrant collection instead of the plain in-process store.

Usage:
    pip install "agent-broker-sdk[openai,qdrant]"
    python semantic_index_example.py "forecast the weather"
"""

import argparse
import asyncio

from dotenv import load_dotenv

from agent_broker_sdk import (
    AgentBrokerSDK,
    AgentKey,
    SearchQuery,
    SemanticAgentRecord,
    SemanticIndexManager,
    SemanticQueryRequest,
)
from agent_broker_sdk.semantic.providers import InMemoryVectorStore, OpenAIEmbeddingProvider

AGENTS = [
    SemanticAgentRecord(
        registry="erc-8004",
        native_id="8453:101",
        name="Market Maker",
        description="Quotes and executes crypto trades on Base",
        capabilities=["trading", "defi"],
        tags=["finance"],
    ),
    SemanticAgentRecord(
        registry="erc-8004",
        native_id="8453:102",
        name="Skycast",
        description="Hourly weather forecasts for any city",
        capabilities=["forecast"],
        tags=["weather"],
    ),
    SemanticAgentRecord(
        registry="hol",
        native_id="trip-planner",
        name="Trip Planner",
        description="Plans itineraries and books travel",
        capabilities=["travel", "booking"],
        metadata={"a2aEndpoint": "https://trips.example.com/a2a"},
    ),
]


async def build_store(use_qdrant: bool):
    if not use_qdrant:
        return InMemoryVectorStore()
    from agent_broker_sdk.semantic.providers import QdrantVectorStore

    store = QdrantVectorStore(collection_name="agents", dimension=1536)
    await store.initialize()
    return store


async def main():
    parser = argparse.ArgumentParser(description="Index agents and query them semantically")
    parser.add_argument("query")
    parser.add_argument("--qdrant", action="store_true")
    parser.add_argument("--min-score", type=float, default=0.2)
    args = parser.parse_args()

    load_dotenv()
    manager = SemanticIndexManager(
        OpenAIEmbeddingProvider(),
        await build_store(args.qdrant),
        min_score=args.min_score,
    )

    print("Indexing agents...")
    ids = await manager.index_batch(AGENTS)
    print(f"Indexed: {', '.join(ids)}")

    print(f"\nDirect query: {args.query}")
    for match in await manager.query(SemanticQueryRequest(query=args.query, limit=3)):
        print(f"  #{match.rank} {match.name} [{match.registry}] score={match.score:.3f}")

    # The index doubles as the SDK's vector search source.
    async with AgentBrokerSDK(semantic_index=manager) as sdk:
        result = await sdk.search(SearchQuery(query_text=args.query, registry_scope=["erc-8004", "hol"]))
        print(f"\nSDK search ({result.strategy.value}):")
        for hit in result.hits:
            print(f"  {hit.name} ({hit.registry}/{hit.native_id})")

    await manager.delete_batch([AgentKey(a.registry, a.native_id) for a in AGENTS])
    print("\nCleaned up.")


if __name__ == "__main__":
    asyncio.run(main())
