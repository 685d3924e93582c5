"""LLM Module - embedding providers and the embedding client."""
from recommender.llm.interfaces import EmbeddingProvider
from recommender.llm.openai_service import OpenAIEmbeddingProvider
from recommender.llm.embedding_client import EmbeddingClient

__all__ = ['EmbeddingProvider', 'OpenAIEmbeddingProvider', 'EmbeddingClient']
