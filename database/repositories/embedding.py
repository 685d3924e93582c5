from typing import List, Optional, Sequence, Tuple
from sqlalchemy import select

from database.models import CenterEmbedding
from database.repositories.base import BaseRepository
from recommender.utils import cosine_similarity_from_distance


class CenterEmbeddingRepository(BaseRepository):
    def find_similar_centers(
        self,
        query_embedding: List[float],
        center_ids: Optional[Sequence[int]] = None,
        top_k: int = 10
    ) -> List[Tuple[int, float]]:
        stmt = select(
            CenterEmbedding.center_id,
            CenterEmbedding.embedding.cosine_distance(query_embedding).label('distance')
        )

        if center_ids is not None:
            stmt = stmt.where(CenterEmbedding.center_id.in_(list(center_ids)))

        stmt = stmt.order_by('distance', CenterEmbedding.center_id).limit(top_k)

        results = self.db.execute(stmt).all()
        return [(row[0], cosine_similarity_from_distance(row._mapping['distance'])) for row in results]
