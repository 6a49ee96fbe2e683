#!/usr/bin/env python3
"""
Discover and Chat Example

Searches the configured registries for agents and sends a message to the
best match.

Usage:
    export AGENT_BROKER_BASE_URL=https://hol.org/registry/api/v1
    export AGENT_BROKER_API_KEY=...
    python discover_and_chat.py "crypto trading" --message "What can you do?"
"""

import argparse
import asyncio

from dotenv import load_dotenv

from agent_broker_sdk import (
    AgentBrokerError,
    AgentBrokerSDK,
    AgentHandle,
    EncryptionPreference,
    SearchQuery,
    SortKey,
)


async def discover(sdk: AgentBrokerSDK, text: str, limit: int, a2a_only: bool):
    """Search and print the hits."""
    print(f"\n{'='*60}")
    print(f"SEARCHING: {text}")
    print(f"{'='*60}")

    query = SearchQuery(
        query_text=text,
        limit=limit,
        a2a=True if a2a_only else None,
        sort_keys=[SortKey.parse("score:desc")],
    )
    result = await sdk.search(query)
    print(f"Strategy: {result.strategy.value}  Registries: {', '.join(map(str, result.registries))}")

    for i, hit in enumerate(result.hits, 1):
        score = f" ({hit.score:.3f})" if hit.score is not None else ""
        print(f"  {i}. {hit.name or hit.native_id}{score}")
        print(f"     registry={hit.registry} nativeId={hit.native_id} uaid={hit.uaid or '-'}")
    return result.hits


async def chat(sdk: AgentBrokerSDK, agent: AgentHandle, message: str, preference: str):
    """Open a session with the agent and send one message."""
    print(f"\n{'='*60}")
    print(f"CHATTING WITH: {agent.name or agent.native_id}")
    print(f"{'='*60}")

    try:
        result = await sdk.chat(agent, message, preference=EncryptionPreference(preference))
    except AgentBrokerError as e:
        print(f"Chat failed [{e.code}]: {e}")
        return None

    print(f"Session: {result.session_id} ({result.mode.value})")
    print(f"Reply: {result.reply.text or '(no text)'}")
    return result


async def main():
    parser = argparse.ArgumentParser(description="Discover an agent and chat with it")
    parser.add_argument("query", help="Free-text search query")
    parser.add_argument("--message", default="Hello! What can you help me with?")
    parser.add_argument("--limit", type=int, default=5)
    parser.add_argument("--a2a-only", action="store_true", help="Only agents with an A2A endpoint")
    parser.add_argument(
        "--encryption",
        choices=[p.value for p in EncryptionPreference],
        default=EncryptionPreference.PREFERRED.value,
    )
    args = parser.parse_args()

    load_dotenv()
    async with AgentBrokerSDK.from_env() as sdk:
        hits = await discover(sdk, args.query, args.limit, args.a2a_only)
        if not hits:
            print("\nNo agents found.")
            return
        await chat(sdk, AgentHandle.from_hit(hits[0]), args.message, args.encryption)


if __name__ == "__main__":
    asyncio.run(main())
