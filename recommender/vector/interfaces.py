"""
Vector Store Interface - nearest-neighbour search over precomputed center embeddings.

Provides an abstraction layer over Qdrant, pgvector and an in-memory store.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class VectorMatch:
    candidate_id: int
    similarity: float


@runtime_checkable
class VectorStore(Protocol):
    """Protocol for vector similarity stores."""

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        candidate_ids: Optional[Iterable[int]] = None
    ) -> List[VectorMatch]:
        """
        Return up to ``top_k`` nearest stored vectors, best first.

        Args:
            vector: Query embedding
            top_k: Maximum number of matches
            candidate_ids: Restrict the search to these ids when given

        Raises:
            VectorStoreError: store unreachable or collection missing
            SemanticSearchError: query vector rejected by the store
        """
        ...

    def probe(self) -> bool:
        """
        Lightweight reachability check.

        Returns True when the store and its collection are ready, False when the store
        answers but is not ready (e.g. collection missing). Raises VectorStoreError when
        the store cannot be reached.
        """
        ...
