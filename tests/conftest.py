"""Shared fakes for the Agent Broker SDK tests."""
from typing import Callable, List, Optional

import pytest
from unittest.mock import AsyncMock

from agent_broker_sdk.core.adapters import ChatAdapter, EncryptedConversation, SearchAdapter
from agent_broker_sdk.core.retry import RetryExecutor
from agent_broker_sdk.core.types import (
    ChatReply,
    SearchHit,
    SearchParams,
    SearchResult,
    VectorSearchRequest,
)


class FakeSearchAdapter(SearchAdapter):
    """Search adapter returning canned hits and recording every call."""

    def __init__(
        self,
        adapter_id: str = "fake/search",
        hits: Optional[List[SearchHit]] = None,
        respond: Optional[Callable[[SearchParams], SearchResult]] = None,
        keyword: bool = True,
        vector: bool = False,
        vector_hits: Optional[List[SearchHit]] = None,
        vector_error: Optional[Exception] = None,
    ):
        self.id = adapter_id
        self.supports_keyword_search = keyword
        self.supports_vector_search = vector
        self.calls: List[SearchParams] = []
        self.vector_calls: List[VectorSearchRequest] = []
        self._hits = hits or []
        self._respond = respond
        self._vector_hits = vector_hits or []
        self._vector_error = vector_error

    async def search(self, params: SearchParams) -> SearchResult:
        self.calls.append(params)
        if self._respond is not None:
            return self._respond(params)
        return SearchResult(hits=list(self._hits), total=len(self._hits))

    async def vector_search(self, request: VectorSearchRequest) -> SearchResult:
        self.vector_calls.append(request)
        if self._vector_error is not None:
            raise self._vector_error
        return SearchResult(hits=list(self._vector_hits), total=len(self._vector_hits))


class FakeConversation(EncryptedConversation):
    def __init__(self, session_id: str):
        self.session_id = session_id
        self.sent: List[str] = []

    async def send(self, text, options=None) -> ChatReply:
        self.sent.append(text)
        return ChatReply(text=f"secret echo: {text}")


class FakeChatAdapter(ChatAdapter):
    """Chat adapter with scripted failures."""

    def __init__(
        self,
        adapter_id: str = "fake/chat",
        encrypted: bool = False,
        encrypted_error: Optional[Exception] = None,
        create_error: Optional[Exception] = None,
        send_errors: Optional[List[Exception]] = None,
        session_id: str = "plain-1",
    ):
        self.id = adapter_id
        self.supports_encrypted_start = encrypted
        self.encrypted_error = encrypted_error
        self.create_error = create_error
        self.send_errors = list(send_errors or [])
        self.session_id = session_id
        self.encrypted_calls = []
        self.create_calls = []
        self.send_attempts = 0

    async def start_encrypted(self, target, options=None):
        self.encrypted_calls.append(target)
        if self.encrypted_error is not None:
            raise self.encrypted_error
        return FakeConversation("enc-1")

    async def create_session(self, target, options=None) -> str:
        self.create_calls.append(target)
        if self.create_error is not None:
            raise self.create_error
        return self.session_id

    async def send_message(self, session_id, text, options=None) -> ChatReply:
        self.send_attempts += 1
        if self.send_errors:
            raise self.send_errors.pop(0)
        return ChatReply(text=f"echo: {text}", history_length=2)


def make_hit(native_id: str, **kwargs) -> SearchHit:
    metadata = kwargs.pop("metadata", {})
    return SearchHit(native_id=native_id, metadata=dict(metadata), **kwargs)


@pytest.fixture
def fast_retry():
    """Retry executor that never really sleeps."""
    return RetryExecutor(max_attempts=3, sleep=AsyncMock())
