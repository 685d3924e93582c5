"""In-memory vector store for tests and fixtures."""
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from recommender.errors import SemanticSearchError
from recommender.utils import cosine_similarity
from recommender.vector.interfaces import VectorMatch


class InMemoryVectorStore:
    """Exact cosine search over a dict of center id -> vector."""

    def __init__(self, vectors: Optional[Mapping[int, Sequence[float]]] = None):
        self._vectors: Dict[int, List[float]] = {}
        for center_id, vector in (vectors or {}).items():
            self.upsert(center_id, vector)

    def upsert(self, center_id: int, vector: Sequence[float]) -> None:
        self._vectors[int(center_id)] = [float(v) for v in vector]

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        candidate_ids: Optional[Iterable[int]] = None
    ) -> List[VectorMatch]:
        ids = self._vectors.keys() if candidate_ids is None else [i for i in candidate_ids if i in self._vectors]
        matches = []
        for center_id in ids:
            stored = self._vectors[center_id]
            if len(stored) != len(vector):
                raise SemanticSearchError(
                    f"Query vector has {len(vector)} dims, stored vectors have {len(stored)}",
                    operation="query",
                )
            matches.append(VectorMatch(center_id, cosine_similarity(vector, stored)))
        matches.sort(key=lambda m: (-m.similarity, m.candidate_id))
        return matches[:top_k]

    def probe(self) -> bool:
        return True
