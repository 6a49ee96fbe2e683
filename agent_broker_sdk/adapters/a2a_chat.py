"""Direct A2A chat adapter.

Talks JSON-RPC ``message/send`` straight to an agent's A2A endpoint, without a
broker in between. A2A has no server-side session object, so a session here is
a client-side context id bound to the agent URL it was opened against.
"""
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import httpx
from a2a.client.helpers import create_text_message_object
from a2a.types import Role

from ..core.adapters import ChatAdapter
from ..core.exceptions import (
    AgentBrokerError,
    NotFoundError,
    UpstreamServiceError,
    ValidationError,
)
from ..core.types import ChatReply, MessageOptions, SessionOptions, SessionTarget
from ..utils.logger import get_logger
from .http import HttpServiceClient

logger = get_logger("adapters.a2a_chat")

A2A_CHAT_ADAPTER_ID = "a2a/direct"

# JSON-RPC error codes that mean the request itself was bad
_INVALID_REQUEST_CODES = {-32700, -32600, -32602}
_INTERNAL_ERROR = -32603
_TASK_NOT_FOUND = -32001
DEFAULT_MAX_SESSIONS = 1024


def _is_server_error(code: Any) -> bool:
    if not isinstance(code, int) or isinstance(code, bool):
        return False
    return code == _INTERNAL_ERROR or -32099 <= code <= -32000


def _texts(parts: Any) -> List[str]:
    texts = []
    for part in parts or []:
        if not isinstance(part, dict):
            continue
        root = part.get("root") if isinstance(part.get("root"), dict) else part
        if root.get("kind", "text") == "text" and isinstance(root.get("text"), str):
            texts.append(root["text"])
    return texts


def extract_reply_text(result: Dict[str, Any]) -> Optional[str]:
    """Pull the agent's text out of a ``message/send`` result (Message or Task)."""
    if result.get("kind") == "message" or "parts" in result:
        texts = _texts(result.get("parts"))
    else:
        texts = []
        for artifact in result.get("artifacts") or []:
            if isinstance(artifact, dict):
                texts.extend(_texts(artifact.get("parts")))
        if not texts:
            status_message = (result.get("status") or {}).get("message") or {}
            texts = _texts(status_message.get("parts"))
    joined = "\n".join(t for t in texts if t.strip())
    return joined or None


class A2AHttpClient(HttpServiceClient):
    """JSON-RPC transport. Paths are absolute agent URLs."""

    service_name = "A2A agent"

    def __init__(
        self,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__("", timeout=timeout, headers=headers, http_client=http_client)

    async def call(self, agent_url: str, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        request = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params,
        }
        data = await self.request_json(
            "POST",
            agent_url,
            json=request,
            headers={"Content-Type": "application/json"},
        )
        if not isinstance(data, dict):
            raise UpstreamServiceError("A2A agent returned a non-object payload")

        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            details = {"jsonrpc_code": code, "agent_url": agent_url}
            if code in _INVALID_REQUEST_CODES:
                raise ValidationError(f"A2A agent rejected the request: {message}", details=details)
            if code == _TASK_NOT_FOUND:
                raise NotFoundError(f"A2A agent: {message}", details=details)
            if _is_server_error(code):
                raise UpstreamServiceError(f"A2A agent failed: {message}", details=details)
            raise AgentBrokerError(f"A2A agent error: {message}", code="A2A_ERROR", details=details)

        result = data.get("result")
        if not isinstance(result, dict):
            raise UpstreamServiceError("A2A agent response has no result")
        return result


class A2AChatAdapter(ChatAdapter):
    """
    Plaintext chat with an agent over its A2A endpoint.

    Only URL targets are supported; a uaid has to be routed by a broker.
    At most ``max_sessions`` sessions are kept; opening another one forgets
    the least recently used. :meth:`close_session` forgets one explicitly.

    Example:
        >>> adapter = A2AChatAdapter()
        >>> session_id = await adapter.create_session(SessionTarget.for_url("https://agent.example.com/a2a"))
        >>> reply = await adapter.send_message(session_id, "What can you do?")
    """

    id = A2A_CHAT_ADAPTER_ID
    supports_encrypted_start = False

    def __init__(
        self,
        client: Optional[A2AHttpClient] = None,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        **client_options,
    ):
        if max_sessions < 1:
            raise ValidationError("max_sessions must be at least 1")
        self.client = client or A2AHttpClient(**client_options)
        self.max_sessions = max_sessions
        self._sessions = OrderedDict()

    async def create_session(self, target: SessionTarget, options: Optional[SessionOptions] = None) -> str:
        if not target.agent_url:
            raise ValidationError("A2A chat needs an agent URL; uaid targets require a broker")
        context_id = str(uuid.uuid4())
        self._sessions[context_id] = target.agent_url
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.debug("Evicted least recently used A2A context", session_id=evicted)
        logger.debug("Opened A2A context", session_id=context_id, agent_url=target.agent_url)
        return context_id

    async def close_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def send_message(
        self,
        session_id: str,
        text: str,
        options: Optional[MessageOptions] = None,
    ) -> ChatReply:
        agent_url = self._sessions.get(session_id)
        if agent_url is None:
            raise NotFoundError(f"Unknown A2A session: {session_id}")
        self._sessions.move_to_end(session_id)

        message = create_text_message_object(Role.user, text).model_copy(
            update={"context_id": session_id}
        )
        params = {"message": message.model_dump(mode="json", by_alias=True, exclude_none=True)}
        result = await self.client.call(agent_url, "message/send", params)

        history = result.get("history")
        return ChatReply(
            text=extract_reply_text(result),
            raw=result,
            history_length=len(history) if isinstance(history, list) else 0,
        )
