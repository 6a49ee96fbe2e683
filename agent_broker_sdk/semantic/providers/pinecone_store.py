"""
Pinecone vector store.

Usage:
    store = PineconeVectorStore(index_name="agents")  # or set PINECONE_API_KEY
    await store.initialize()
    manager = SemanticIndexManager(OpenAIEmbeddingProvider(), store)
"""
import asyncio
import os
from typing import Any, Dict, List, Optional

from ...core.exceptions import ConfigurationError
from ...core.types import SearchFilters
from ...utils.logger import get_logger
from ..interfaces import (
    VectorQueryMatch,
    VectorQueryParams,
    VectorStoreProvider,
    VectorUpsertItem,
)

logger = get_logger("semantic.pinecone")

# Try to import Pinecone
try:
    from pinecone import Pinecone, ServerlessSpec
    HAS_PINECONE = True
except ImportError:
    HAS_PINECONE = False


def pinecone_filter(filters: SearchFilters) -> Optional[Dict[str, Any]]:
    """Translate structured filters into a Pinecone metadata filter."""
    clauses: List[Dict[str, Any]] = []
    for key, value in filters.equals.items():
        clauses.append({key: {"$eq": value}})
    for key, values in filters.membership.items():
        clauses.append({key: {"$in": list(values)}})
    for key in filters.exists:
        clauses.append({key: {"$exists": True}})
    for key in filters.not_exists:
        clauses.append({key: {"$exists": False}})

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _sanitize_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    # Pinecone accepts strings, numbers, booleans and lists of strings only
    clean: Dict[str, Any] = {}
    for key, value in metadata.items():
        if isinstance(value, (str, int, float, bool)):
            clean[key] = value
        elif isinstance(value, (list, tuple)):
            clean[key] = [str(item) for item in value]
    return clean


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class PineconeVectorStore(VectorStoreProvider):
    """Vector store backed by a Pinecone index. Supports batch upsert and delete."""

    supports_batch_upsert = True
    supports_batch_delete = True

    def __init__(
        self,
        index_name: str = "agents",
        namespace: Optional[str] = None,
        api_key: Optional[str] = None,
        index: Any = None,
        **config,
    ):
        self.index_name = index_name
        self.namespace = namespace
        self.api_key = api_key
        self.config = config
        self._index = index

    async def initialize(self) -> None:
        """Connect to the index, creating it when it does not exist."""
        if self._index is not None:
            return
        if not HAS_PINECONE:
            raise ConfigurationError("Pinecone not available. Install with: pip install pinecone")

        api_key = self.api_key or os.getenv("PINECONE_API_KEY")
        if not api_key:
            raise ConfigurationError("Pinecone API key required. Set PINECONE_API_KEY or pass api_key.")

        self._index = await asyncio.to_thread(self._connect, api_key)
        logger.info(f"Connected to Pinecone index {self.index_name}")

    def _connect(self, api_key: str) -> Any:
        client = Pinecone(api_key=api_key)
        existing_indexes = [idx.name for idx in client.list_indexes()]
        if self.index_name not in existing_indexes:
            client.create_index(
                name=self.index_name,
                dimension=self.config.get("dimension", 1536),
                metric=self.config.get("metric", "cosine"),
                spec=ServerlessSpec(
                    cloud=self.config.get("cloud", "aws"),
                    region=self.config.get("region", "us-east-1"),
                ),
            )
        return client.Index(self.index_name)

    async def upsert(self, item: VectorUpsertItem) -> None:
        await self.upsert_batch([item])

    async def upsert_batch(self, items: List[VectorUpsertItem]) -> None:
        index = await self._require_index()
        vectors = [
            {"id": item.id, "values": item.values, "metadata": _sanitize_metadata(item.metadata)}
            for item in items
        ]
        await asyncio.to_thread(index.upsert, vectors=vectors, **self._namespace_kwargs())

    async def query(self, params: VectorQueryParams) -> List[VectorQueryMatch]:
        index = await self._require_index()
        kwargs = self._namespace_kwargs()
        metadata_filter = pinecone_filter(params.filters)
        if metadata_filter:
            kwargs["filter"] = metadata_filter

        response = await asyncio.to_thread(
            index.query,
            vector=params.vector,
            top_k=params.top_k,
            include_metadata=True,
            **kwargs,
        )
        return [
            VectorQueryMatch(
                id=_field(match, "id"),
                score=float(_field(match, "score", 0.0) or 0.0),
                metadata=dict(_field(match, "metadata") or {}),
            )
            for match in (_field(response, "matches") or [])
        ]

    async def delete(self, vector_id: str) -> None:
        await self.delete_batch([vector_id])

    async def delete_batch(self, vector_ids: List[str]) -> None:
        index = await self._require_index()
        await asyncio.to_thread(index.delete, ids=list(vector_ids), **self._namespace_kwargs())

    async def _require_index(self) -> Any:
        if self._index is None:
            await self.initialize()
        return self._index

    def _namespace_kwargs(self) -> Dict[str, Any]:
        return {"namespace": self.namespace} if self.namespace else {}
