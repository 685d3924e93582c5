"""Vector Module - vector similarity stores."""
from recommender.vector.interfaces import VectorMatch, VectorStore
from recommender.vector.memory_store import InMemoryVectorStore
from recommender.vector.qdrant_store import QdrantVectorStore
from recommender.vector.pgvector_store import PgVectorStore

__all__ = ['VectorMatch', 'VectorStore', 'InMemoryVectorStore', 'QdrantVectorStore', 'PgVectorStore']
