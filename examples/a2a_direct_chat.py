#!/usr/bin/env python3
"""
Direct A2A Chat Example

Talks to an A2A agent by URL, without going through a registry broker.
Each turn after the first reuses the same context id.

Usage:
    python a2a_direct_chat.py --agent-url http://localhost:8103/a2a
"""

import argparse
import asyncio

from agent_broker_sdk import A2AChatAdapter, AgentBrokerError, AgentBrokerSDK, SessionTarget


async def main():
    parser = argparse.ArgumentParser(description="Chat with an A2A agent directly")
    parser.add_argument("--agent-url", required=True)
    args = parser.parse_args()

    async with AgentBrokerSDK() as sdk:
        sdk.register_chat_adapter(A2AChatAdapter())
        session = await sdk.open_session(SessionTarget.for_url(args.agent_url), preference="disabled")
        print(f"Session {session.session_id} open. Empty line to quit.")

        while True:
            text = input("you> ").strip()
            if not text:
                break
            try:
                reply = await session.send(text)
            except AgentBrokerError as e:
                print(f"error [{e.code}]: {e}")
                continue
            print(f"agent> {reply.text or '(no text)'}")


if __name__ == "__main__":
    asyncio.run(main())
