"""
Qdrant vector store.

Qdrant point ids must be unsigned integers or UUIDs, so each vector id is
mapped to a UUIDv5 and the original id is kept in the payload.
"""
import asyncio
import uuid
from typing import Any, List, Optional

from ...core.exceptions import ConfigurationError
from ...core.types import SearchFilters
from ...utils.logger import get_logger
from ..interfaces import (
    VectorQueryMatch,
    VectorQueryParams,
    VectorStoreProvider,
    VectorUpsertItem,
)

logger = get_logger("semantic.qdrant")

# Try to import Qdrant
try:
    from qdrant_client import QdrantClient
    from qdrant_client.models import (
        Distance,
        FieldCondition,
        Filter,
        IsEmptyCondition,
        MatchAny,
        MatchValue,
        PayloadField,
        PointIdsList,
        PointStruct,
        VectorParams,
    )
    HAS_QDRANT = True
except ImportError:
    HAS_QDRANT = False

VECTOR_ID_FIELD = "vectorId"


def point_id_for(vector_id: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, vector_id))


def qdrant_filter(filters: SearchFilters) -> Optional["Filter"]:
    """Translate structured filters into a Qdrant payload filter."""
    must: List[Any] = []
    must_not: List[Any] = []
    for key, value in filters.equals.items():
        must.append(FieldCondition(key=key, match=MatchValue(value=value)))
    for key, values in filters.membership.items():
        must.append(FieldCondition(key=key, match=MatchAny(any=list(values))))
    for key in filters.exists:
        must_not.append(IsEmptyCondition(is_empty=PayloadField(key=key)))
    for key in filters.not_exists:
        must.append(IsEmptyCondition(is_empty=PayloadField(key=key)))

    if not (must or must_not):
        return None
    return Filter(must=must or None, must_not=must_not or None)


class QdrantVectorStore(VectorStoreProvider):
    """Vector store backed by a Qdrant collection. Supports batch upsert and delete."""

    supports_batch_upsert = True
    supports_batch_delete = True

    def __init__(
        self,
        collection_name: str = "agents",
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        dimension: int = 1536,
        client: Any = None,
    ):
        self.collection_name = collection_name
        self.url = url
        self.api_key = api_key
        self.dimension = dimension
        self._client = client
        self._ready = False

    async def initialize(self) -> None:
        """Connect and make sure the collection exists."""
        if self._ready:
            return
        if not HAS_QDRANT:
            raise ConfigurationError("Qdrant not available. Install with: pip install qdrant-client")
        await asyncio.to_thread(self._connect)
        self._ready = True
        logger.info(f"Using Qdrant collection {self.collection_name}")

    def _connect(self) -> None:
        if self._client is None:
            if self.url:
                self._client = QdrantClient(url=self.url, api_key=self.api_key)
            else:
                # In-memory (for development)
                self._client = QdrantClient(":memory:")

        collections = [c.name for c in self._client.get_collections().collections]
        if self.collection_name not in collections:
            self._client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=self.dimension, distance=Distance.COSINE),
            )

    async def upsert(self, item: VectorUpsertItem) -> None:
        await self.upsert_batch([item])

    async def upsert_batch(self, items: List[VectorUpsertItem]) -> None:
        await self.initialize()
        points = [
            PointStruct(
                id=point_id_for(item.id),
                vector=item.values,
                payload={**item.metadata, VECTOR_ID_FIELD: item.id},
            )
            for item in items
        ]
        await asyncio.to_thread(
            self._client.upsert, collection_name=self.collection_name, points=points
        )

    async def query(self, params: VectorQueryParams) -> List[VectorQueryMatch]:
        await self.initialize()
        response = await asyncio.to_thread(
            self._client.query_points,
            collection_name=self.collection_name,
            query=params.vector,
            limit=params.top_k,
            query_filter=qdrant_filter(params.filters),
            with_payload=True,
        )
        matches = []
        for point in response.points:
            payload = dict(point.payload or {})
            vector_id = payload.pop(VECTOR_ID_FIELD, None) or str(point.id)
            matches.append(VectorQueryMatch(id=vector_id, score=float(point.score), metadata=payload))
        return matches

    async def delete(self, vector_id: str) -> None:
        await self.delete_batch([vector_id])

    async def delete_batch(self, vector_ids: List[str]) -> None:
        await self.initialize()
        await asyncio.to_thread(
            self._client.delete,
            collection_name=self.collection_name,
            points_selector=PointIdsList(points=[point_id_for(i) for i in vector_ids]),
        )
