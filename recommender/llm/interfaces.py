"""
Embedding Provider Interface - Abstract base for embedding services.

Implementations translate their SDK's exceptions into the engine's error taxonomy:
RateLimitExceeded, EmbeddingProviderError, EmbeddingGenerationError.
"""
from abc import ABC, abstractmethod
from typing import List, Sequence


class EmbeddingProvider(ABC):
    """
    Abstract Interface for embedding providers (OpenAI, OpenAI-compatible servers, fakes).
    """

    @property
    @abstractmethod
    def provider_version(self) -> str:
        """
        Identifier of the model and output shape. Part of every cache key, so changing
        the model never serves stale vectors.
        """
        pass

    @abstractmethod
    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed texts in a single provider call, preserving input order.
        """
        pass

    @abstractmethod
    def probe(self) -> bool:
        """
        Lightweight reachability check. Must not generate embeddings.
        """
        pass
