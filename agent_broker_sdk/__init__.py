# Agent Broker SDK
"""
Agent Broker SDK - discover agents across registries and talk to them
through pluggable backends.

Structure:
- core/: Types, adapter contracts, error taxonomy and the retry executor
- registry/: Directory of search and chat adapters by id
- discovery/: Search aggregation, client-side filtering and uaid resolution
- session/: Chat session broker with encryption negotiation
- semantic/: Semantic index (embeddings + vector stores) and incremental sync
- adapters/: Registry Broker, semantic search API and direct A2A adapters

Quick Start:
    from agent_broker_sdk import AgentBrokerSDK, AgentHandle, SearchQuery

    async with AgentBrokerSDK.from_env() as sdk:
        result = await sdk.search(SearchQuery(query_text="trading agent", limit=5))
        agent = AgentHandle.from_hit(result.hits[0])
        reply = await sdk.chat(agent, "What can you do?")
        print(reply.reply.text)
"""

__version__ = "0.1.0"

# Core types
from agent_broker_sdk.core.types import (
    AgentHandle,
    AgentKey,
    AggregatedSearchResult,
    AuthConfig,
    ChatReply,
    ChatResult,
    EncryptionPreference,
    MessageOptions,
    SearchFilters,
    SearchHit,
    SearchQuery,
    SearchResult,
    SearchStrategy,
    SemanticAgentRecord,
    SemanticMatch,
    SemanticQueryRequest,
    SessionMode,
    SessionOptions,
    SessionTarget,
    SortKey,
    VectorSearchRequest,
)

# Errors
from agent_broker_sdk.core.exceptions import (
    AgentBrokerError,
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    UpstreamServiceError,
    ValidationError,
    classify_error,
)

# Adapter contracts and plumbing
from agent_broker_sdk.core.adapters import ChatAdapter, SearchAdapter
from agent_broker_sdk.core.retry import RetryExecutor
from agent_broker_sdk.registry.registry import AdapterRegistry

# Discovery and sessions
from agent_broker_sdk.discovery.aggregator import SearchAggregator
from agent_broker_sdk.discovery.uaid_cache import UaidCache
from agent_broker_sdk.session.broker import SessionBroker, SessionHandle

# Semantic index
from agent_broker_sdk.semantic.manager import SemanticIndexManager
from agent_broker_sdk.semantic.sync import SemanticSyncRunner

# Concrete adapters
from agent_broker_sdk.adapters import (
    A2AChatAdapter,
    RegistryBrokerChatAdapter,
    RegistryBrokerSearchAdapter,
    SemanticSearchAdapter,
    register_registry_broker_adapters,
)

# Entry point
from agent_broker_sdk.utils.config import SDKSettings
from agent_broker_sdk.sdk import AgentBrokerSDK

__all__ = [
    # Version
    "__version__",
    # Entry point
    "AgentBrokerSDK",
    "SDKSettings",
    # Core Types
    "AgentHandle",
    "AgentKey",
    "AggregatedSearchResult",
    "AuthConfig",
    "ChatReply",
    "ChatResult",
    "EncryptionPreference",
    "MessageOptions",
    "SearchFilters",
    "SearchHit",
    "SearchQuery",
    "SearchResult",
    "SearchStrategy",
    "SemanticAgentRecord",
    "SemanticMatch",
    "SemanticQueryRequest",
    "SessionMode",
    "SessionOptions",
    "SessionTarget",
    "SortKey",
    "VectorSearchRequest",
    # Errors
    "AgentBrokerError",
    "AuthenticationError",
    "ConfigurationError",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "UpstreamServiceError",
    "ValidationError",
    "classify_error",
    # Contracts and plumbing
    "ChatAdapter",
    "SearchAdapter",
    "RetryExecutor",
    "AdapterRegistry",
    # Discovery and sessions
    "SearchAggregator",
    "UaidCache",
    "SessionBroker",
    "SessionHandle",
    # Semantic index
    "SemanticIndexManager",
    "SemanticSyncRunner",
    # Concrete adapters
    "A2AChatAdapter",
    "RegistryBrokerChatAdapter",
    "RegistryBrokerSearchAdapter",
    "SemanticSearchAdapter",
    "register_registry_broker_adapters",
]
