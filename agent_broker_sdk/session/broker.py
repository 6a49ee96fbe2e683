"""Conversational Session Broker.

Opens a chat session against a resolved target through a chat adapter,
negotiating encryption according to an :class:`EncryptionPreference`:

    IDLE --start--> NEGOTIATING_ENCRYPTED          (preferred, required)
    IDLE --start--> FALLING_BACK_PLAINTEXT         (disabled)
    NEGOTIATING_ENCRYPTED --succeeded--> ESTABLISHED (encrypted)
    NEGOTIATING_ENCRYPTED --failed--> FAILED                 (required)
    NEGOTIATING_ENCRYPTED --failed--> FALLING_BACK_PLAINTEXT (preferred)
    FALLING_BACK_PLAINTEXT --succeeded--> ESTABLISHED (plaintext)
    FALLING_BACK_PLAINTEXT --failed--> FAILED

Resuming an existing session id skips negotiation and is always plaintext.
"""
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Union

from ..core.adapters import ChatAdapter
from ..core.exceptions import ConfigurationError, UpstreamServiceError, ValidationError
from ..core.retry import RetryExecutor
from ..core.types import (
    AgentHandle,
    ChatReply,
    ChatResult,
    EncryptionPreference,
    MessageOptions,
    SessionMode,
    SessionOptions,
    SessionTarget,
)
from ..discovery.aggregator import SearchAggregator
from ..discovery.uaid_cache import UaidCache
from ..registry.registry import AdapterCapability, AdapterRegistry
from ..utils.logger import get_logger

logger = get_logger("session.broker")

Sender = Callable[[str, Optional[MessageOptions]], Awaitable[ChatReply]]
PreferenceLike = Union[EncryptionPreference, str]


class NegotiationState(Enum):
    """Session negotiation states."""
    IDLE = "idle"
    NEGOTIATING_ENCRYPTED = "negotiating_encrypted"
    FALLING_BACK_PLAINTEXT = "falling_back_plaintext"
    ESTABLISHED = "established"
    FAILED = "failed"


class NegotiationEvent(Enum):
    """Inputs to the negotiation state machine."""
    START = "start"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def transition(
    state: NegotiationState,
    event: NegotiationEvent,
    preference: EncryptionPreference,
) -> NegotiationState:
    """Next negotiation state. Raises ValidationError for an illegal transition."""
    if state is NegotiationState.IDLE and event is NegotiationEvent.START:
        if preference is EncryptionPreference.DISABLED:
            return NegotiationState.FALLING_BACK_PLAINTEXT
        return NegotiationState.NEGOTIATING_ENCRYPTED

    if state is NegotiationState.NEGOTIATING_ENCRYPTED:
        if event is NegotiationEvent.SUCCEEDED:
            return NegotiationState.ESTABLISHED
        if event is NegotiationEvent.FAILED:
            if preference is EncryptionPreference.REQUIRED:
                return NegotiationState.FAILED
            return NegotiationState.FALLING_BACK_PLAINTEXT

    if state is NegotiationState.FALLING_BACK_PLAINTEXT:
        if event is NegotiationEvent.SUCCEEDED:
            return NegotiationState.ESTABLISHED
        if event is NegotiationEvent.FAILED:
            return NegotiationState.FAILED

    raise ValidationError(
        f"Illegal negotiation transition from {state.value} on {event.value}"
    )


def coerce_preference(preference: Optional[PreferenceLike]) -> EncryptionPreference:
    """Accept an EncryptionPreference or its string value; None means preferred."""
    if preference is None:
        return EncryptionPreference.PREFERRED
    if isinstance(preference, EncryptionPreference):
        return preference
    try:
        return EncryptionPreference(str(preference).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown encryption preference: {preference!r}")


class SessionHandle:
    """An established conversation.

    ``mode`` is fixed when the session is established. Each :meth:`send` is
    one logical turn and is retried under the broker's retry policy.
    :meth:`close` releases whatever the chat adapter keeps for the session;
    no backend guarantees the server side forgets it.
    """

    def __init__(
        self,
        session_id: str,
        mode: SessionMode,
        adapter_id: str,
        sender: Sender,
        retry: RetryExecutor,
        closer: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._session_id = session_id
        self._mode = mode
        self._adapter_id = adapter_id
        self._sender = sender
        self._retry = retry
        self._closer = closer

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def adapter_id(self) -> str:
        return self._adapter_id

    async def send(self, message: str, options: Optional[MessageOptions] = None) -> ChatReply:
        """Send one message and return the agent's reply."""
        text = (message or "").strip()
        if not text:
            raise ValidationError("message is required")
        return await self._retry.execute(lambda: self._sender(text, options))

    async def close(self) -> None:
        """Release the session in the chat adapter. Later sends may fail."""
        if self._closer is not None:
            await self._closer()

    def __repr__(self) -> str:
        return (
            f"SessionHandle(session_id={self._session_id!r}, "
            f"mode={self._mode.value}, adapter_id={self._adapter_id!r})"
        )


class SessionBroker:
    """
    Session Broker - opens and resumes chat sessions through chat adapters.

    Args:
        registry: Adapter directory to draw chat adapters from
        retry: Executor wrapping every adapter call
        uaid_cache: Cache consulted when a handle carries no uaid
        aggregator: Optional aggregator used to look up a uaid by native id
            when neither the handle, the cache nor an endpoint can route it
        default_adapter_id: Chat adapter used when a call names none; falls
            back to the first registered chat adapter
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        retry: Optional[RetryExecutor] = None,
        uaid_cache: Optional[UaidCache] = None,
        aggregator: Optional[SearchAggregator] = None,
        default_adapter_id: Optional[str] = None,
    ):
        self.registry = registry
        self.retry = retry or RetryExecutor()
        self.uaid_cache = uaid_cache if uaid_cache is not None else UaidCache()
        self.aggregator = aggregator
        self.default_adapter_id = default_adapter_id

    async def resolve_target(self, agent: Union[AgentHandle, SessionTarget]) -> SessionTarget:
        """Route an agent: its uaid, else a cached uaid, else its endpoint URL.

        When an aggregator is attached, an agent with only a native id is
        looked up by search as a last resort.
        """
        if isinstance(agent, SessionTarget):
            return agent

        uaid = (agent.uaid or "").strip()
        if uaid:
            return SessionTarget.for_uaid(uaid)

        native_id = (agent.native_id or "").strip()
        if native_id:
            cached = self.uaid_cache.resolve(native_id)
            if cached:
                return SessionTarget.for_uaid(cached)

        if agent.endpoint_url:
            return SessionTarget.for_url(agent.endpoint_url)

        if native_id and self.aggregator is not None:
            found = await self.aggregator.lookup_uaid(native_id, agent.registry)
            if found:
                return SessionTarget.for_uaid(found)

        raise ValidationError("Agent does not have a uaid or a chat-capable endpoint")

    async def open_session(
        self,
        agent: Union[AgentHandle, SessionTarget],
        preference: Optional[PreferenceLike] = None,
        options: Optional[SessionOptions] = None,
        adapter_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> SessionHandle:
        """Open (or resume, when ``session_id`` is given) a conversation.

        Raises:
            ValidationError: Bad arguments, or resuming with preference required
            ConfigurationError: No usable chat adapter, or encryption required
                from an adapter that cannot encrypt
            AgentBrokerError: The error of the last negotiation step attempted
        """
        preference = coerce_preference(preference)
        if session_id is not None:
            return self.resume_session(session_id, preference, adapter_id)

        adapter = self._chat_adapter(adapter_id)
        target = await self.resolve_target(agent)

        state = transition(NegotiationState.IDLE, NegotiationEvent.START, preference)
        handle: Optional[SessionHandle] = None
        error: Optional[Exception] = None
        while state not in (NegotiationState.ESTABLISHED, NegotiationState.FAILED):
            if state is NegotiationState.NEGOTIATING_ENCRYPTED:
                handle, error = await self._attempt(self._start_encrypted(adapter, target, options))
            else:
                handle, error = await self._attempt(self._start_plaintext(adapter, target, options))

            event = NegotiationEvent.SUCCEEDED if handle is not None else NegotiationEvent.FAILED
            next_state = transition(state, event, preference)
            if next_state is NegotiationState.FALLING_BACK_PLAINTEXT:
                logger.warning(
                    f"Encrypted session failed, falling back to plaintext: {error}",
                    adapter=adapter.id,
                    target=target.uaid or target.agent_url,
                )
            state = next_state

        if state is NegotiationState.FAILED:
            raise error

        logger.info(
            "Session established",
            session_id=handle.session_id,
            adapter=adapter.id,
            mode=handle.mode.value,
        )
        return handle

    def resume_session(
        self,
        session_id: str,
        preference: Optional[PreferenceLike] = None,
        adapter_id: Optional[str] = None,
    ) -> SessionHandle:
        """Wrap an existing session id in a plaintext handle without any I/O."""
        preference = coerce_preference(preference)
        if preference is EncryptionPreference.REQUIRED:
            raise ValidationError(
                "Encrypted chat cannot be resumed from an existing session id; "
                "start a new session instead"
            )
        session_id = (session_id or "").strip()
        if not session_id:
            raise ValidationError("session_id is required to resume a session")

        adapter = self._chat_adapter(adapter_id)
        return self._plaintext_handle(adapter, session_id)

    async def chat(
        self,
        agent: Union[AgentHandle, SessionTarget],
        message: str,
        preference: Optional[PreferenceLike] = None,
        options: Optional[SessionOptions] = None,
        message_options: Optional[MessageOptions] = None,
        adapter_id: Optional[str] = None,
    ) -> ChatResult:
        """Open a session and send a single message."""
        if not (message or "").strip():
            raise ValidationError("message is required")
        handle = await self.open_session(agent, preference, options, adapter_id)
        reply = await handle.send(message, message_options)
        return ChatResult(session_id=handle.session_id, reply=reply, mode=handle.mode)

    async def _attempt(
        self,
        step: Awaitable[SessionHandle],
    ) -> Tuple[Optional[SessionHandle], Optional[Exception]]:
        try:
            return await step, None
        except Exception as e:
            return None, e

    async def _start_encrypted(
        self,
        adapter: ChatAdapter,
        target: SessionTarget,
        options: Optional[SessionOptions],
    ) -> SessionHandle:
        if not adapter.supports_encrypted_start:
            raise ConfigurationError(f"Chat adapter '{adapter.id}' does not support encrypted sessions")

        conversation = await self.retry.execute(lambda: adapter.start_encrypted(target, options))
        session_id = (getattr(conversation, "session_id", None) or "").strip()
        if not session_id:
            raise UpstreamServiceError(f"Chat adapter '{adapter.id}' did not return a session id")
        return SessionHandle(session_id, SessionMode.ENCRYPTED, adapter.id, conversation.send, self.retry)

    async def _start_plaintext(
        self,
        adapter: ChatAdapter,
        target: SessionTarget,
        options: Optional[SessionOptions],
    ) -> SessionHandle:
        session_id = await self.retry.execute(lambda: adapter.create_session(target, options))
        session_id = (session_id or "").strip()
        if not session_id:
            raise UpstreamServiceError(f"Chat adapter '{adapter.id}' did not return a session id")
        return self._plaintext_handle(adapter, session_id)

    def _plaintext_handle(self, adapter: ChatAdapter, session_id: str) -> SessionHandle:
        async def send(text: str, options: Optional[MessageOptions]) -> ChatReply:
            return await adapter.send_message(session_id, text, options)

        async def close() -> None:
            await adapter.close_session(session_id)

        return SessionHandle(session_id, SessionMode.PLAINTEXT, adapter.id, send, self.retry, close)

    def _chat_adapter(self, adapter_id: Optional[str]) -> ChatAdapter:
        adapter_id = adapter_id or self.default_adapter_id
        if adapter_id:
            adapter = self.registry.get(AdapterCapability.CHAT, adapter_id)
            if adapter is None:
                raise ConfigurationError(f"Chat adapter '{adapter_id}' is not registered")
            return adapter

        registered = self.registry.list(AdapterCapability.CHAT)
        if not registered:
            raise ConfigurationError("No chat adapter is registered")
        return self.registry.get(AdapterCapability.CHAT, registered[0])
