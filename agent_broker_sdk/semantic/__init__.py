"""Semantic index: embeddings plus a vector store, queried by text."""

from .interfaces import (
    EmbeddingProvider,
    VectorQueryMatch,
    VectorQueryParams,
    VectorStoreProvider,
    VectorUpsertItem,
)
from .manager import SemanticIndexManager, vector_id_for
from .search_adapter import SEMANTIC_INDEX_ADAPTER_ID, SemanticIndexSearchAdapter
from .sync import (
    AgentRecordSource,
    InMemorySyncStateStore,
    JsonFileSyncStateStore,
    SemanticSyncRunner,
    SyncedAgent,
    SyncReport,
    SyncState,
    SyncStateStore,
    compute_agent_hash,
)

__all__ = [
    "EmbeddingProvider",
    "VectorStoreProvider",
    "VectorUpsertItem",
    "VectorQueryParams",
    "VectorQueryMatch",
    "SemanticIndexManager",
    "SemanticIndexSearchAdapter",
    "SEMANTIC_INDEX_ADAPTER_ID",
    "vector_id_for",
    "SemanticSyncRunner",
    "AgentRecordSource",
    "SyncedAgent",
    "SyncReport",
    "SyncState",
    "SyncStateStore",
    "InMemorySyncStateStore",
    "JsonFileSyncStateStore",
    "compute_agent_hash",
]
