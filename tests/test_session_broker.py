"""Tests for the session broker and its encryption negotiation."""

import pytest

from agent_broker_sdk.core.exceptions import (
    AgentBrokerError,
    ConfigurationError,
    NetworkError,
    UpstreamServiceError,
    ValidationError,
)
from agent_broker_sdk.core.types import (
    AgentHandle,
    EncryptionPreference,
    SessionMode,
    SessionTarget,
)
from agent_broker_sdk.discovery import SearchAggregator, UaidCache
from agent_broker_sdk.registry import AdapterRegistry
from agent_broker_sdk.session import (
    NegotiationEvent,
    NegotiationState,
    SessionBroker,
    coerce_preference,
    transition,
)

from conftest import FakeChatAdapter, FakeSearchAdapter, make_hit


def build(adapter, retry, **kwargs):
    registry = AdapterRegistry()
    registry.register_chat(adapter)
    return SessionBroker(registry, retry=retry, **kwargs)


class TestNegotiationStateMachine:

    def test_start(self):
        assert transition(NegotiationState.IDLE, NegotiationEvent.START, EncryptionPreference.PREFERRED) \
            is NegotiationState.NEGOTIATING_ENCRYPTED
        assert transition(NegotiationState.IDLE, NegotiationEvent.START, EncryptionPreference.DISABLED) \
            is NegotiationState.FALLING_BACK_PLAINTEXT

    def test_encrypted_failure(self):
        state = NegotiationState.NEGOTIATING_ENCRYPTED
        assert transition(state, NegotiationEvent.FAILED, EncryptionPreference.REQUIRED) is NegotiationState.FAILED
        assert transition(state, NegotiationEvent.FAILED, EncryptionPreference.PREFERRED) \
            is NegotiationState.FALLING_BACK_PLAINTEXT

    def test_plaintext_outcomes(self):
        state = NegotiationState.FALLING_BACK_PLAINTEXT
        pref = EncryptionPreference.PREFERRED
        assert transition(state, NegotiationEvent.SUCCEEDED, pref) is NegotiationState.ESTABLISHED
        assert transition(state, NegotiationEvent.FAILED, pref) is NegotiationState.FAILED

    def test_illegal_transition(self):
        with pytest.raises(ValidationError):
            transition(NegotiationState.ESTABLISHED, NegotiationEvent.START, EncryptionPreference.PREFERRED)

    def test_target_requires_exactly_one(self):
        with pytest.raises(ValidationError):
            SessionTarget()
        with pytest.raises(ValidationError):
            SessionTarget(uaid="x", agent_url="https://y")

    def test_coerce_preference(self):
        assert coerce_preference(None) is EncryptionPreference.PREFERRED
        assert coerce_preference("Required") is EncryptionPreference.REQUIRED
        with pytest.raises(ValidationError):
            coerce_preference("sometimes")


@pytest.mark.asyncio
class TestResolveTarget:

    async def test_uaid_preferred_over_endpoint(self, fast_retry):
        broker = build(FakeChatAdapter(), fast_retry)
        handle = AgentHandle(native_id="1:42", uaid="uaid-42", a2a_endpoint="https://agent.example/a2a")

        target = await broker.resolve_target(handle)

        assert target == SessionTarget(uaid="uaid-42")

    async def test_cached_uaid_before_endpoint(self, fast_retry):
        cache = UaidCache()
        cache.remember("1:42", "uaid-cached")
        broker = build(FakeChatAdapter(), fast_retry, uaid_cache=cache)

        target = await broker.resolve_target(AgentHandle(native_id="1:42", mcp_endpoint="https://x/mcp"))

        assert target.uaid == "uaid-cached"

    async def test_endpoint_when_no_uaid(self, fast_retry):
        broker = build(FakeChatAdapter(), fast_retry)

        target = await broker.resolve_target(AgentHandle(native_id="1:42", mcp_endpoint="https://x/mcp"))

        assert target.to_dict() == {"agentUrl": "https://x/mcp"}

    async def test_lookup_by_search_as_last_resort(self, fast_retry):
        registry = AdapterRegistry()
        registry.register_chat(FakeChatAdapter())
        registry.register_search(FakeSearchAdapter(hits=[make_hit("1:42", uaid="uaid-found")]))
        aggregator = SearchAggregator(registry, retry=fast_retry)
        broker = SessionBroker(registry, retry=fast_retry, aggregator=aggregator)

        target = await broker.resolve_target(AgentHandle(native_id="1:42"))

        assert target.uaid == "uaid-found"

    async def test_unroutable(self, fast_retry):
        with pytest.raises(ValidationError):
            await build(FakeChatAdapter(), fast_retry).resolve_target(AgentHandle(name="nobody"))


@pytest.mark.asyncio
class TestOpenSession:

    async def test_disabled_never_tries_encryption(self, fast_retry):
        adapter = FakeChatAdapter(encrypted=True)
        broker = build(adapter, fast_retry)

        handle = await broker.open_session(SessionTarget(uaid="X"), EncryptionPreference.DISABLED)

        assert adapter.encrypted_calls == []
        assert adapter.create_calls == [SessionTarget(uaid="X")]
        assert handle.mode is SessionMode.PLAINTEXT
        assert handle.session_id == "plain-1"

    async def test_preferred_encrypted_success(self, fast_retry):
        adapter = FakeChatAdapter(encrypted=True)
        broker = build(adapter, fast_retry)

        handle = await broker.open_session(SessionTarget(uaid="X"))
        reply = await handle.send("hi")

        assert handle.mode is SessionMode.ENCRYPTED
        assert reply.text == "secret echo: hi"
        assert adapter.create_calls == []

    async def test_preferred_falls_back_to_plaintext(self, fast_retry):
        adapter = FakeChatAdapter(encrypted=True, encrypted_error=AgentBrokerError("handshake failed"))
        broker = build(adapter, fast_retry)

        handle = await broker.open_session(SessionTarget(uaid="X"), "preferred")

        assert handle.mode is SessionMode.PLAINTEXT
        assert len(adapter.encrypted_calls) == 1
        assert len(adapter.create_calls) == 1

    async def test_preferred_with_plaintext_only_adapter(self, fast_retry):
        adapter = FakeChatAdapter(encrypted=False)

        handle = await build(adapter, fast_retry).open_session(SessionTarget(uaid="X"))

        assert handle.mode is SessionMode.PLAINTEXT

    async def test_required_never_yields_plaintext(self, fast_retry):
        error = AgentBrokerError("handshake failed")
        adapter = FakeChatAdapter(encrypted=True, encrypted_error=error)

        with pytest.raises(AgentBrokerError) as exc_info:
            await build(adapter, fast_retry).open_session(SessionTarget(uaid="X"), EncryptionPreference.REQUIRED)

        assert exc_info.value is error
        assert adapter.create_calls == []

    async def test_required_with_plaintext_only_adapter(self, fast_retry):
        adapter = FakeChatAdapter(encrypted=False)

        with pytest.raises(ConfigurationError):
            await build(adapter, fast_retry).open_session(SessionTarget(uaid="X"), EncryptionPreference.REQUIRED)
        assert adapter.create_calls == []

    async def test_plaintext_failure_surfaces_error(self, fast_retry):
        adapter = FakeChatAdapter(create_error=UpstreamServiceError("503", status=503))

        with pytest.raises(UpstreamServiceError):
            await build(adapter, fast_retry).open_session(SessionTarget(uaid="X"), "disabled")
        assert len(adapter.create_calls) == 3

    async def test_empty_session_id_is_an_error(self, fast_retry):
        adapter = FakeChatAdapter(session_id="  ")

        with pytest.raises(UpstreamServiceError):
            await build(adapter, fast_retry).open_session(SessionTarget(uaid="X"), "disabled")

    async def test_no_chat_adapter(self, fast_retry):
        broker = SessionBroker(AdapterRegistry(), retry=fast_retry)
        with pytest.raises(ConfigurationError):
            await broker.open_session(SessionTarget(uaid="X"))

    async def test_unknown_adapter_id(self, fast_retry):
        with pytest.raises(ConfigurationError):
            await build(FakeChatAdapter(), fast_retry).open_session(SessionTarget(uaid="X"), adapter_id="missing")


@pytest.mark.asyncio
class TestResumeAndSend:

    async def test_resume_is_plaintext_without_io(self, fast_retry):
        adapter = FakeChatAdapter(encrypted=True)
        broker = build(adapter, fast_retry)

        handle = await broker.open_session(SessionTarget(uaid="X"), session_id="existing-session")
        reply = await handle.send("again")

        assert handle.session_id == "existing-session"
        assert handle.mode is SessionMode.PLAINTEXT
        assert adapter.create_calls == [] and adapter.encrypted_calls == []
        assert reply.text == "echo: again"

    async def test_resume_required_rejected(self, fast_retry):
        broker = build(FakeChatAdapter(), fast_retry)
        with pytest.raises(ValidationError):
            broker.resume_session("existing-session", EncryptionPreference.REQUIRED)

    async def test_resume_requires_id(self, fast_retry):
        with pytest.raises(ValidationError):
            build(FakeChatAdapter(), fast_retry).resume_session("   ")

    async def test_three_transient_failures_surface_original_error(self, fast_retry):
        error = NetworkError("connection reset")
        adapter = FakeChatAdapter(send_errors=[error, error, error])
        handle = build(adapter, fast_retry).resume_session("s-1")

        with pytest.raises(NetworkError) as exc_info:
            await handle.send("hello")

        assert exc_info.value is error
        assert adapter.send_attempts == 3

    async def test_empty_message_rejected(self, fast_retry):
        adapter = FakeChatAdapter()
        handle = build(adapter, fast_retry).resume_session("s-1")

        with pytest.raises(ValidationError):
            await handle.send("   ")
        assert adapter.send_attempts == 0

    async def test_chat_one_shot(self, fast_retry):
        adapter = FakeChatAdapter()

        result = await build(adapter, fast_retry).chat(
            AgentHandle(uaid="uaid-1"), "ping", EncryptionPreference.DISABLED
        )

        assert result.session_id == "plain-1"
        assert result.mode is SessionMode.PLAINTEXT
        assert result.reply.text == "echo: ping"
        assert result.reply.history_length == 2
