"""
pgvector Store - center embeddings kept in PostgreSQL next to the center directory.
"""
import logging
from typing import Callable, Iterable, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import DataError, SQLAlchemyError
from sqlalchemy.orm import Session

from database.repositories.embedding import CenterEmbeddingRepository
from recommender.errors import SemanticSearchError, VectorStoreError
from recommender.vector.interfaces import VectorMatch

logger = logging.getLogger(__name__)


class PgVectorStore:
    """VectorStore over the ``center_embedding`` table. One short session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        candidate_ids: Optional[Iterable[int]] = None
    ) -> List[VectorMatch]:
        ids = None if candidate_ids is None else [int(i) for i in candidate_ids]
        if ids is not None and not ids:
            return []

        session = self._session_factory()
        try:
            repo = CenterEmbeddingRepository(session)
            rows = repo.find_similar_centers(list(vector), center_ids=ids, top_k=top_k)
        except DataError as e:
            raise SemanticSearchError("pgvector rejected the query vector", operation="query", cause=e)
        except SQLAlchemyError as e:
            raise VectorStoreError("pgvector query failed", operation="query", cause=e)
        finally:
            session.close()

        return [VectorMatch(candidate_id=center_id, similarity=similarity) for center_id, similarity in rows]

    def probe(self) -> bool:
        session = self._session_factory()
        try:
            session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise VectorStoreError("pgvector database unreachable", operation="probe", cause=e)
        finally:
            session.close()
        return True
