"""Provider contracts for the semantic index."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..core.exceptions import ConfigurationError
from ..core.types import SearchFilters, SemanticAgentRecord


@dataclass
class VectorUpsertItem:
    """One vector written to a store."""
    id: str
    values: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorQueryParams:
    """A nearest-neighbour lookup."""
    vector: List[float]
    top_k: int = 10
    filters: SearchFilters = field(default_factory=SearchFilters)


@dataclass
class VectorQueryMatch:
    """A raw store match, before ranking."""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class EmbeddingProvider(ABC):
    """Turns agent records and queries into vectors."""

    @abstractmethod
    async def embed_one(self, text: str) -> List[float]:
        """Embed a single text."""

    @abstractmethod
    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts, preserving order."""

    def describe(self, record: SemanticAgentRecord) -> str:
        """Build the text that represents an agent in the index."""
        capabilities = ", ".join(record.capabilities)
        tags = ", ".join(record.tags)
        metadata_pairs = [
            f"{key}: {value}"
            for key, value in record.metadata.items()
            if isinstance(value, (str, int, float)) and not isinstance(value, bool)
        ]
        parts = [
            record.name,
            record.description,
            f"Capabilities: {capabilities}" if capabilities else "",
            f"Tags: {tags}" if tags else "",
            f"Metadata: {', '.join(metadata_pairs)}" if metadata_pairs else "",
        ]
        return ". ".join(part for part in parts if part)


class VectorStoreProvider(ABC):
    """Stores vectors and answers similarity queries.

    Batch operations are optional; stores that implement them set
    ``supports_batch_upsert`` / ``supports_batch_delete``.
    """

    supports_batch_upsert: bool = False
    supports_batch_delete: bool = False

    @abstractmethod
    async def upsert(self, item: VectorUpsertItem) -> None:
        """Insert or overwrite one vector."""

    @abstractmethod
    async def query(self, params: VectorQueryParams) -> List[VectorQueryMatch]:
        """Return the nearest matches, best first or in any order."""

    @abstractmethod
    async def delete(self, vector_id: str) -> None:
        """Delete one vector. Deleting a missing id is not an error."""

    async def upsert_batch(self, items: List[VectorUpsertItem]) -> None:
        raise ConfigurationError(f"{type(self).__name__} does not support batch upsert")

    async def delete_batch(self, vector_ids: List[str]) -> None:
        raise ConfigurationError(f"{type(self).__name__} does not support batch delete")
