"""Embedding and vector store providers for the semantic index."""

from .memory_store import InMemoryVectorStore, cosine_similarity
from .openai_embedding import OpenAIEmbeddingProvider
from .pinecone_store import PineconeVectorStore, pinecone_filter
from .qdrant_store import QdrantVectorStore, point_id_for

__all__ = [
    "InMemoryVectorStore",
    "OpenAIEmbeddingProvider",
    "PineconeVectorStore",
    "QdrantVectorStore",
    "cosine_similarity",
    "pinecone_filter",
    "point_id_for",
]
