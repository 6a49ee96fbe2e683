"""Agent Broker SDK - single entry point wiring registry, discovery and sessions."""
from typing import Optional, Union

from .adapters.a2a_chat import A2AChatAdapter
from .adapters.registry_broker import RegistryBrokerClient, register_registry_broker_adapters
from .adapters.semantic_search import SemanticSearchAdapter, SemanticSearchClient
from .core.adapters import ChatAdapter, SearchAdapter
from .core.exceptions import ConfigurationError
from .core.retry import RetryExecutor, linear_backoff
from .core.types import (
    AgentHandle,
    AggregatedSearchResult,
    ChatResult,
    MessageOptions,
    SearchQuery,
    SearchResult,
    SessionOptions,
    SessionTarget,
    VectorSearchRequest,
)
from .discovery.aggregator import SearchAggregator
from .discovery.uaid_cache import UaidCache
from .registry.registry import AdapterCapability, AdapterRegistry
from .semantic.manager import SemanticIndexManager
from .semantic.search_adapter import SemanticIndexSearchAdapter
from .session.broker import PreferenceLike, SessionBroker, SessionHandle
from .utils.config import SDKSettings
from .utils.logger import get_logger

logger = get_logger("sdk")

AgentLike = Union[AgentHandle, SessionTarget]


class AgentBrokerSDK:
    """
    Agent Broker SDK.

    Discovers agents across registries and opens conversations with them.
    One retry executor and one uaid cache are shared by discovery and chat.

    Example:
        >>> async with AgentBrokerSDK.from_env() as sdk:
        ...     result = await sdk.search(SearchQuery(query_text="trading agent", limit=5))
        ...     agent = AgentHandle.from_hit(result.hits[0])
        ...     reply = await sdk.chat(agent, "Hello!")
    """

    def __init__(
        self,
        settings: Optional[SDKSettings] = None,
        registry: Optional[AdapterRegistry] = None,
        uaid_cache: Optional[UaidCache] = None,
        retry: Optional[RetryExecutor] = None,
        semantic_index: Optional[SemanticIndexManager] = None,
    ):
        self.settings = settings or SDKSettings()
        self.settings.validate()

        self._registry = registry or AdapterRegistry()
        self._uaid_cache = uaid_cache if uaid_cache is not None else UaidCache()
        self._retry = retry or RetryExecutor(
            max_attempts=self.settings.max_attempts,
            delay=linear_backoff(self.settings.retry_base_delay),
        )
        self._aggregator = SearchAggregator(
            self._registry,
            retry=self._retry,
            uaid_cache=self._uaid_cache,
            home_registry=self.settings.home_registry,
            default_registry=self.settings.default_registry,
            default_adapter_id=self.settings.default_adapter,
        )
        self._broker = SessionBroker(
            self._registry,
            retry=self._retry,
            uaid_cache=self._uaid_cache,
            aggregator=self._aggregator,
        )

        self._semantic_index = semantic_index
        if semantic_index is not None:
            self._registry.register_search(SemanticIndexSearchAdapter(semantic_index))

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **kwargs) -> "AgentBrokerSDK":
        """Build an SDK from environment settings and register the configured adapters.

        The Registry Broker adapters are registered when ``AGENT_BROKER_BASE_URL``
        is set, the semantic search adapter when ``SEMANTIC_SEARCH_URL`` is set.
        The direct A2A chat adapter is always available.
        """
        settings = SDKSettings.from_env(env_file)
        sdk = cls(settings=settings, **kwargs)

        if settings.broker_base_url:
            register_registry_broker_adapters(
                sdk.registry,
                RegistryBrokerClient(
                    base_url=settings.broker_base_url,
                    api_key=settings.broker_api_key,
                    timeout=settings.timeout,
                ),
            )
        if settings.semantic_search_url:
            sdk.register_search_adapter(
                SemanticSearchAdapter(
                    SemanticSearchClient(settings.semantic_search_url, timeout=settings.timeout)
                )
            )
        sdk.register_chat_adapter(A2AChatAdapter(timeout=settings.timeout))

        if not sdk.registry.list(AdapterCapability.SEARCH):
            logger.warning("No search adapter configured; set AGENT_BROKER_BASE_URL to enable discovery")
        return sdk

    async def __aenter__(self) -> "AgentBrokerSDK":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP clients held by registered adapters."""
        closed = set()
        for adapter in [*self._registry.search_adapters(), *self._registry.chat_adapters()]:
            client = getattr(adapter, "client", None)
            close = getattr(client, "close", None)
            if close is None or id(client) in closed:
                continue
            closed.add(id(client))
            await close()

    @property
    def registry(self) -> AdapterRegistry:
        return self._registry

    @property
    def uaid_cache(self) -> UaidCache:
        return self._uaid_cache

    @property
    def aggregator(self) -> SearchAggregator:
        return self._aggregator

    @property
    def broker(self) -> SessionBroker:
        return self._broker

    @property
    def semantic_index(self) -> Optional[SemanticIndexManager]:
        return self._semantic_index

    def register_search_adapter(self, adapter: SearchAdapter) -> None:
        self._registry.register_search(adapter)

    def register_chat_adapter(self, adapter: ChatAdapter) -> None:
        self._registry.register_chat(adapter)

    async def search(self, query: SearchQuery) -> AggregatedSearchResult:
        """Discover agents. See :class:`SearchAggregator` for the search order."""
        return await self._aggregator.search(query)

    async def vector_search(
        self,
        request: VectorSearchRequest,
        adapter_id: Optional[str] = None,
    ) -> SearchResult:
        """Run a vector search directly against one adapter, without fallback."""
        if adapter_id:
            adapter = self._registry.get(AdapterCapability.SEARCH, adapter_id)
        else:
            adapter = next(
                (a for a in self._registry.search_adapters() if a.supports_vector_search),
                None,
            )
        if adapter is None or not adapter.supports_vector_search:
            raise ConfigurationError(
                f"No vector search adapter registered{f' under {adapter_id!r}' if adapter_id else ''}"
            )
        result = await self._retry.execute(lambda: adapter.vector_search(request))
        self._uaid_cache.record_hits(result.hits)
        return result

    async def resolve_uaid(self, native_id: str, registry=None) -> Optional[str]:
        return await self._aggregator.lookup_uaid(native_id, registry)

    async def open_session(
        self,
        agent: AgentLike,
        preference: Optional[PreferenceLike] = None,
        options: Optional[SessionOptions] = None,
        adapter_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> SessionHandle:
        return await self._broker.open_session(agent, preference, options, adapter_id, session_id)

    def resume_session(
        self,
        session_id: str,
        preference: Optional[PreferenceLike] = None,
        adapter_id: Optional[str] = None,
    ) -> SessionHandle:
        return self._broker.resume_session(session_id, preference, adapter_id)

    async def chat(
        self,
        agent: AgentLike,
        message: str,
        preference: Optional[PreferenceLike] = None,
        options: Optional[SessionOptions] = None,
        message_options: Optional[MessageOptions] = None,
        adapter_id: Optional[str] = None,
    ) -> ChatResult:
        """Open a session with ``agent`` and send one message."""
        return await self._broker.chat(agent, message, preference, options, message_options, adapter_id)
