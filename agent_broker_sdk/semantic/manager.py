"""Semantic Index Manager - embeddings plus vector store, keyed by agent."""
from typing import Any, Dict, Iterable, List, Optional

from ..core.exceptions import UpstreamServiceError, ValidationError
from ..core.retry import RetryExecutor
from ..core.types import (
    AgentKey,
    RegistryId,
    SemanticAgentRecord,
    SemanticMatch,
    SemanticQueryRequest,
)
from ..utils.logger import get_logger
from .interfaces import (
    EmbeddingProvider,
    VectorQueryMatch,
    VectorQueryParams,
    VectorStoreProvider,
    VectorUpsertItem,
)

logger = get_logger("semantic.manager")


def vector_id_for(registry: RegistryId, native_id: str) -> str:
    """Deterministic vector id, so re-indexing an agent overwrites its vector."""
    return f"{registry}-{native_id}"


class SemanticIndexManager:
    """
    Owns embedding generation and vector upsert/query/delete for agents.

    Example:
        >>> manager = SemanticIndexManager(OpenAIEmbeddingProvider(), InMemoryVectorStore())
        >>> await manager.index_one(SemanticAgentRecord(registry="erc-8004", native_id="1:42", name="Trader"))
        >>> matches = await manager.query(SemanticQueryRequest(query="trading agent"))
    """

    def __init__(
        self,
        embedding: EmbeddingProvider,
        store: VectorStoreProvider,
        min_score: float = 0.0,
        retry: Optional[RetryExecutor] = None,
    ):
        self.embedding = embedding
        self.store = store
        self.min_score = min_score
        self.retry = retry or RetryExecutor()

    async def index_one(self, record: SemanticAgentRecord) -> str:
        """Embed and upsert one agent. Returns its vector id."""
        text = self.embedding.describe(record)
        vector = await self.retry.execute(lambda: self.embedding.embed_one(text))
        item = self._item(record, vector)
        await self.retry.execute(lambda: self.store.upsert(item))
        logger.debug(f"Indexed agent {item.id}")
        return item.id

    async def index_batch(self, records: Iterable[SemanticAgentRecord]) -> List[str]:
        """Embed and upsert several agents, using the store's batch upsert when it has one."""
        records = list(records)
        if not records:
            return []

        texts = [self.embedding.describe(record) for record in records]
        vectors = await self.retry.execute(lambda: self.embedding.embed_batch(texts))
        if len(vectors) != len(records):
            raise UpstreamServiceError(
                f"Embedding provider returned {len(vectors)} vectors for {len(records)} records"
            )

        items = [self._item(record, vector) for record, vector in zip(records, vectors)]
        if self.store.supports_batch_upsert:
            await self.retry.execute(lambda: self.store.upsert_batch(items))
        else:
            for item in items:
                await self.retry.execute(lambda i=item: self.store.upsert(i))

        logger.info(f"Indexed {len(items)} agents")
        return [item.id for item in items]

    async def delete_one(self, key: AgentKey) -> None:
        vector_id = vector_id_for(key.registry, key.native_id)
        await self.retry.execute(lambda: self.store.delete(vector_id))

    async def delete_batch(self, keys: Iterable[AgentKey]) -> None:
        """Delete several agents; sequential deletes when the store has no batch delete."""
        keys = list(keys)
        if not keys:
            return
        if self.store.supports_batch_delete:
            ids = [vector_id_for(key.registry, key.native_id) for key in keys]
            await self.retry.execute(lambda: self.store.delete_batch(ids))
        else:
            for key in keys:
                await self.delete_one(key)
        logger.info(f"Deleted {len(keys)} agents from the semantic index")

    async def query(self, request: SemanticQueryRequest) -> List[SemanticMatch]:
        """Ranked matches for a text query.

        Matches scoring below the threshold (``request.min_score``, else the
        manager default) are dropped before ranking.
        """
        text = (request.query or "").strip()
        if not text:
            raise ValidationError("query is required for semantic search")
        if request.limit < 1:
            raise ValidationError("limit must be at least 1")
        if request.offset < 0:
            raise ValidationError("offset must not be negative")

        vector = await self.retry.execute(lambda: self.embedding.embed_one(text))
        params = VectorQueryParams(
            vector=vector,
            top_k=request.offset + request.limit,
            filters=request.filters,
        )
        raw = await self.retry.execute(lambda: self.store.query(params))

        threshold = request.min_score if request.min_score is not None else self.min_score
        kept = [match for match in raw if match.score >= threshold]
        kept.sort(key=lambda match: match.score, reverse=True)
        window = kept[request.offset:request.offset + request.limit]
        return [
            self._to_match(match, request.offset + position + 1)
            for position, match in enumerate(window)
        ]

    def _item(self, record: SemanticAgentRecord, vector: List[float]) -> VectorUpsertItem:
        metadata: Dict[str, Any] = {
            **record.metadata,
            "registry": record.registry,
            "nativeId": record.native_id,
            "name": record.name,
            "description": record.description,
            "capabilities": list(record.capabilities),
            "tags": list(record.tags),
        }
        return VectorUpsertItem(
            id=vector_id_for(record.registry, record.native_id),
            values=list(vector),
            metadata={k: v for k, v in metadata.items() if v is not None},
        )

    def _to_match(self, match: VectorQueryMatch, rank: int) -> SemanticMatch:
        metadata = dict(match.metadata or {})
        return SemanticMatch(
            rank=rank,
            vector_id=match.id,
            native_id=str(metadata.get("nativeId") or match.id),
            registry=metadata.get("registry"),
            name=str(metadata.get("name") or ""),
            description=str(metadata.get("description") or ""),
            score=match.score,
            metadata=metadata,
        )
