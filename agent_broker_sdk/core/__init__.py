"""Core module with contracts, types, errors and the retry executor."""

from .types import (
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
    SearchParams,
    SearchQuery,
    SearchResult,
    SearchStrategy,
    SemanticAgentRecord,
    SemanticMatch,
    SemanticQueryRequest,
    SessionMode,
    SessionOptions,
    SessionTarget,
    SortDirection,
    SortKey,
    VectorSearchRequest,
)
from .adapters import ChatAdapter, EncryptedConversation, SearchAdapter
from .retry import RetryExecutor, linear_backoff

__all__ = [
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
    "SearchParams",
    "SearchQuery",
    "SearchResult",
    "SearchStrategy",
    "SemanticAgentRecord",
    "SemanticMatch",
    "SemanticQueryRequest",
    "SessionMode",
    "SessionOptions",
    "SessionTarget",
    "SortDirection",
    "SortKey",
    "VectorSearchRequest",
    "ChatAdapter",
    "EncryptedConversation",
    "SearchAdapter",
    "RetryExecutor",
    "linear_backoff",
]
