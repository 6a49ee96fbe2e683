"""
Registry Broker adapters.

A search adapter and a chat adapter over the Registry Broker REST API, sharing
one :class:`RegistryBrokerClient`.

Usage:
    registry = AdapterRegistry()
    register_registry_broker_adapters(registry, base_url="https://hol.org/registry/api/v1")
"""
import re
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..core.adapters import ChatAdapter, SearchAdapter
from ..core.exceptions import UpstreamServiceError
from ..core.types import (
    ChatReply,
    MessageOptions,
    SearchFilters,
    SearchHit,
    SearchParams,
    SearchResult,
    SessionOptions,
    SessionTarget,
    VectorSearchRequest,
)
from ..discovery.filters import apply_filters
from ..registry.registry import AdapterRegistry
from ..utils.config import get_default_broker_endpoint
from ..utils.logger import get_logger
from .http import HttpServiceClient

logger = get_logger("adapters.registry_broker")

REGISTRY_BROKER_SEARCH_ADAPTER_ID = "hashgraph-registry-broker/search"
REGISTRY_BROKER_CHAT_ADAPTER_ID = "hashgraph-registry-broker/chat"
DEFAULT_SORT = "most-recent"

_NATIVE_ID_IN_UAID = re.compile(r"(?:^|;)nativeId=([^;]+)")
_HIT_FIELDS = {"id", "uaid", "originalId", "registry", "name", "description", "metadata", "score"}

QueryParams = List[Tuple[str, str]]


def extract_native_id_from_uaid(uaid: Optional[str]) -> Optional[str]:
    """Read the ``nativeId=`` segment of a uaid, if it has one."""
    if not uaid:
        return None
    match = _NATIVE_ID_IN_UAID.search(uaid.strip())
    if not match:
        return None
    return match.group(1).strip() or None


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def map_broker_hit(raw: Dict[str, Any]) -> Optional[SearchHit]:
    """Normalize one broker hit. Hits without an id are dropped."""
    hit_id = _text(raw.get("id"))
    if not hit_id:
        return None
    uaid = _text(raw.get("uaid"))
    native_id = _text(raw.get("originalId")) or extract_native_id_from_uaid(uaid) or hit_id

    metadata = dict(raw.get("metadata") or {}) if isinstance(raw.get("metadata"), dict) else {}
    for key, value in raw.items():
        if key not in _HIT_FIELDS and key not in metadata:
            metadata[key] = value

    score = raw.get("score")
    return SearchHit(
        native_id=native_id,
        registry=_text(raw.get("registry")),
        uaid=uaid,
        name=_text(raw.get("name")),
        description=_text(raw.get("description")),
        score=float(score) if isinstance(score, (int, float)) else None,
        metadata=metadata,
    )


def build_search_query(params: SearchParams) -> QueryParams:
    """Render keyword search parameters as ``/search`` query parameters."""
    query: QueryParams = []
    text = _text(params.query)
    if text:
        query.append(("q", text))
    query.append(("page", str(params.page)))
    query.append(("limit", str(params.limit)))
    query.append(("sortBy", DEFAULT_SORT))
    if params.registry is not None and str(params.registry).strip():
        query.append(("registry", str(params.registry).strip()))
    for adapter in params.adapters or []:
        if adapter and adapter.strip():
            query.append(("adapters", adapter.strip()))

    for key, value in params.filters.equals.items():
        query.append((f"metadata.{key}", str(value)))
    for key, values in params.filters.membership.items():
        for value in values:
            if value is not None:
                query.append((f"metadata.{key}", str(value)))
    return query


class RegistryBrokerClient(HttpServiceClient):
    """Thin async client for the Registry Broker REST API."""

    service_name = "Registry Broker"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        headers = dict(headers or {})
        if api_key:
            headers["x-api-key"] = api_key
        super().__init__(
            base_url or get_default_broker_endpoint(),
            timeout=timeout,
            headers=headers,
            http_client=http_client,
        )

    async def search(self, query: QueryParams) -> Dict[str, Any]:
        return await self.request_json("GET", "/search", params=query)

    async def vector_search(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request_json("POST", "/search/vector", json=payload)

    async def create_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request_json("POST", "/chat/session", json=payload)

    async def send_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request_json("POST", "/chat/message", json=payload)


class RegistryBrokerSearchAdapter(SearchAdapter):
    """
    Keyword and vector search through the Registry Broker.

    Equality and membership filters are pushed down as ``metadata.<key>``
    parameters on keyword search; existence and name filters are left to the
    caller. The vector endpoint only filters by registry and adapter, so every
    other filter on a vector request is applied to the returned page here.
    """

    id = REGISTRY_BROKER_SEARCH_ADAPTER_ID
    supports_keyword_search = True
    supports_vector_search = True

    def __init__(self, client: Optional[RegistryBrokerClient] = None, **client_options):
        self.client = client or RegistryBrokerClient(**client_options)

    def split_filters(self, filters: SearchFilters) -> Tuple[SearchFilters, SearchFilters]:
        equals = {k: v for k, v in filters.equals.items() if _scalar(v)}
        membership = {
            k: list(v) for k, v in filters.membership.items()
            if v and all(_scalar(item) for item in v)
        }
        pushed = SearchFilters(equals=equals, membership=membership)
        residual = SearchFilters(
            equals={k: v for k, v in filters.equals.items() if k not in equals},
            membership={k: v for k, v in filters.membership.items() if k not in membership},
            exists=list(filters.exists),
            not_exists=list(filters.not_exists),
            name_contains=filters.name_contains,
        )
        return pushed, residual

    def split_vector_filters(self, filters: SearchFilters) -> Tuple[SearchFilters, SearchFilters]:
        return SearchFilters(), filters

    async def search(self, params: SearchParams) -> SearchResult:
        started = time.perf_counter()
        data = await self.client.search(build_search_query(params))
        if not isinstance(data, dict):
            raise UpstreamServiceError("Registry Broker search returned a non-object payload")

        raw_hits = data.get("hits") if isinstance(data.get("hits"), list) else []
        hits = [hit for hit in (map_broker_hit(raw) for raw in raw_hits if isinstance(raw, dict)) if hit]
        total = data.get("total")
        return SearchResult(
            hits=hits,
            total=total if isinstance(total, int) else None,
            elapsed=(time.perf_counter() - started) * 1000,
        )

    async def vector_search(self, request: VectorSearchRequest) -> SearchResult:
        payload: Dict[str, Any] = {
            "query": request.query,
            "limit": request.limit,
            "offset": request.offset,
        }
        broker_filter: Dict[str, Any] = {}
        if len(request.registries) == 1:
            broker_filter["registry"] = str(request.registries[0])
        elif request.registries:
            broker_filter["registries"] = [str(r) for r in request.registries]
        if request.adapters:
            broker_filter["adapter"] = list(request.adapters)
        if broker_filter:
            payload["filter"] = broker_filter

        data = await self.client.vector_search(payload)
        if not isinstance(data, dict):
            raise UpstreamServiceError("Registry Broker vector search returned a non-object payload")

        hits: List[SearchHit] = []
        for raw in data.get("hits") or []:
            agent = raw.get("agent") if isinstance(raw, dict) else None
            if not isinstance(agent, dict):
                continue
            hit = map_broker_hit(agent)
            if hit is None:
                continue
            if isinstance(raw.get("score"), (int, float)):
                hit.score = float(raw["score"])
            if raw.get("highlights"):
                hit.metadata["highlights"] = raw["highlights"]
            hits.append(hit)

        hits = apply_filters(hits, request.filters)
        total = data.get("total")
        took = data.get("took")
        return SearchResult(
            hits=hits,
            total=total if isinstance(total, int) else None,
            elapsed=float(took) if isinstance(took, (int, float)) else None,
        )


class RegistryBrokerChatAdapter(ChatAdapter):
    """Plaintext chat sessions relayed by the Registry Broker.

    Encrypted sessions need the broker's client-side key exchange, which this
    adapter does not implement, so ``supports_encrypted_start`` is False. With
    this adapter an ``EncryptionPreference.PREFERRED`` session always falls back
    to plaintext (logged at WARNING) and ``REQUIRED`` fails with
    :class:`ConfigurationError`. Pass ``DISABLED`` to skip the attempt.
    """

    id = REGISTRY_BROKER_CHAT_ADAPTER_ID
    supports_encrypted_start = False

    def __init__(self, client: Optional[RegistryBrokerClient] = None, **client_options):
        self.client = client or RegistryBrokerClient(**client_options)

    async def create_session(self, target: SessionTarget, options: Optional[SessionOptions] = None) -> str:
        payload: Dict[str, Any] = {**target.to_dict(), "encryptionRequested": False}
        if options:
            if options.history_ttl_seconds is not None:
                payload["historyTtlSeconds"] = options.history_ttl_seconds
            if options.auth:
                payload["auth"] = options.auth.to_dict()
            if options.sender_uaid:
                payload["senderUaid"] = options.sender_uaid

        data = await self.client.create_session(payload)
        session_id = _text(data.get("sessionId")) if isinstance(data, dict) else None
        if not session_id:
            raise UpstreamServiceError("Registry Broker createSession did not return a sessionId")
        logger.debug(f"Created broker chat session {session_id}")
        return session_id

    async def send_message(
        self,
        session_id: str,
        text: str,
        options: Optional[MessageOptions] = None,
    ) -> ChatReply:
        payload: Dict[str, Any] = {"sessionId": session_id, "message": text}
        if options:
            payload["streaming"] = options.streaming
            if options.auth:
                payload["auth"] = options.auth.to_dict()

        data = await self.client.send_message(payload)
        if not isinstance(data, dict):
            raise UpstreamServiceError("Registry Broker sendMessage returned a non-object payload")
        history = data.get("history")
        return ChatReply(
            text=_text(data.get("message")) or _text(data.get("content")),
            raw=data,
            history_length=len(history) if isinstance(history, list) else 0,
        )


def register_registry_broker_adapters(
    registry: AdapterRegistry,
    client: Optional[RegistryBrokerClient] = None,
    **client_options,
) -> Tuple[RegistryBrokerSearchAdapter, RegistryBrokerChatAdapter]:
    """Register the broker search and chat adapters, sharing one client."""
    client = client or RegistryBrokerClient(**client_options)
    search_adapter = RegistryBrokerSearchAdapter(client)
    chat_adapter = RegistryBrokerChatAdapter(client)
    registry.register_search(search_adapter)
    registry.register_chat(chat_adapter)
    return search_adapter, chat_adapter
