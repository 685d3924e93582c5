"""
Qdrant Vector Store

Searches center embeddings in a Qdrant collection. Point ids are center ids; the
collection holds one cosine vector per center (default: "centers", 3072 dims).
"""
import logging
from typing import Iterable, List, Optional, Sequence

from qdrant_client import QdrantClient
from qdrant_client.http import models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from recommender.errors import SemanticSearchError, VectorStoreError
from recommender.utils import sanitize_url
from recommender.vector.interfaces import VectorMatch

logger = logging.getLogger(__name__)


class QdrantVectorStore:
    """
    Center embeddings in Qdrant.

    Usage:
        store = QdrantVectorStore(url="http://localhost:6333")
        matches = store.query(query_vector, top_k=20, candidate_ids=[1, 2, 3])
    """

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        collection_name: str = "centers",
        timeout: float = 5.0,
        client: Optional[QdrantClient] = None,
    ):
        self.url = url
        self.collection_name = collection_name
        self.timeout = timeout
        self._client = client
        self._api_key = api_key

    @property
    def client(self) -> QdrantClient:
        """Get or create the Qdrant client. Creation does not touch the network."""
        if self._client is None:
            self._client = QdrantClient(
                url=self.url,
                api_key=self._api_key,
                timeout=int(self.timeout),
            )
            logger.info(f"Qdrant client configured for {sanitize_url(self.url)}")
        return self._client

    def _translate(self, exc: Exception, operation: str) -> Exception:
        if isinstance(exc, UnexpectedResponse):
            if exc.status_code == 404:
                return VectorStoreError(
                    f"Qdrant collection '{self.collection_name}' not found",
                    operation=operation, cause=exc,
                    collection=self.collection_name, missing_collection=True,
                )
            if exc.status_code == 400:
                return SemanticSearchError(
                    f"Qdrant rejected the query: {exc}",
                    operation=operation, cause=exc, collection=self.collection_name,
                )
            return VectorStoreError(
                f"Qdrant returned HTTP {exc.status_code}",
                operation=operation, cause=exc, collection=self.collection_name,
            )
        return VectorStoreError(
            f"Qdrant unreachable at {sanitize_url(self.url)}",
            operation=operation, cause=exc, collection=self.collection_name,
        )

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        candidate_ids: Optional[Iterable[int]] = None
    ) -> List[VectorMatch]:
        query_filter = None
        if candidate_ids is not None:
            ids = [int(i) for i in candidate_ids]
            if not ids:
                return []
            query_filter = models.Filter(must=[models.HasIdCondition(has_id=ids)])

        try:
            response = self.client.query_points(
                collection_name=self.collection_name,
                query=list(vector),
                query_filter=query_filter,
                limit=top_k,
                with_payload=False,
            )
        except (UnexpectedResponse, ResponseHandlingException, OSError) as e:
            raise self._translate(e, "query")

        matches = []
        for point in response.points:
            if isinstance(point.id, bool) or not isinstance(point.id, int):
                logger.warning(f"Skipping Qdrant point with non-center id {point.id!r} in '{self.collection_name}'")
                continue
            matches.append(VectorMatch(candidate_id=point.id, similarity=float(point.score)))
        return matches

    def probe(self) -> bool:
        try:
            self.client.get_collection(self.collection_name)
        except UnexpectedResponse as e:
            if e.status_code == 404:
                logger.warning(f"Qdrant reachable but collection '{self.collection_name}' is missing")
                return False
            raise self._translate(e, "probe")
        except (ResponseHandlingException, OSError) as e:
            raise self._translate(e, "probe")
        return True
