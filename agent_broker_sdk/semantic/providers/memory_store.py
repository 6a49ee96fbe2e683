"""In-process vector store, for development and tests."""
import math
from typing import Dict, List

from ...core.types import SearchHit
from ...discovery.filters import matches
from ..interfaces import (
    VectorQueryMatch,
    VectorQueryParams,
    VectorStoreProvider,
    VectorUpsertItem,
)


def cosine_similarity(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if not norm:
        return 0.0
    return dot / norm


class InMemoryVectorStore(VectorStoreProvider):
    """Keeps vectors in a dict and scores them by cosine similarity.

    Has no batch operations, so the index manager falls back to one call
    per item.
    """

    def __init__(self):
        self._items: Dict[str, VectorUpsertItem] = {}

    async def upsert(self, item: VectorUpsertItem) -> None:
        self._items[item.id] = item

    async def query(self, params: VectorQueryParams) -> List[VectorQueryMatch]:
        scored = []
        for item in self._items.values():
            if not params.filters.is_empty() and not matches(self._as_hit(item), params.filters):
                continue
            scored.append(
                VectorQueryMatch(
                    id=item.id,
                    score=cosine_similarity(params.vector, item.values),
                    metadata=dict(item.metadata),
                )
            )
        scored.sort(key=lambda match: match.score, reverse=True)
        return scored[:params.top_k]

    async def delete(self, vector_id: str) -> None:
        self._items.pop(vector_id, None)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, vector_id: str) -> bool:
        return vector_id in self._items

    @staticmethod
    def _as_hit(item: VectorUpsertItem) -> SearchHit:
        return SearchHit(
            native_id=str(item.metadata.get("nativeId", item.id)),
            registry=item.metadata.get("registry"),
            name=item.metadata.get("name"),
            metadata=item.metadata,
        )
