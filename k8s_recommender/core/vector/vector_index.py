"""
Vector Index Client.

Typed wrapper over a Qdrant collection. Knows nothing about capabilities or
patterns; stores above it map their records to payloads.
"""

import hashlib
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field
from qdrant_client import AsyncQdrantClient, models

from k8s_recommender.utils.exceptions import VectorIndexError
from k8s_recommender.utils.logger import AgentLogger

vector_logger = AgentLogger("VECTOR_INDEX")


class VectorDocument(BaseModel):
    """A point to store: id, embedding and payload."""
    id: str
    vector: List[float] = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)


class VectorSearchResult(BaseModel):
    """A stored point returned by a search or lookup."""
    id: str
    score: float = 1.0
    payload: Dict[str, Any] = Field(default_factory=dict)


def point_id(prefix: str, key: str) -> str:
    """Deterministic UUID-formatted id so repeated upserts of the same record overwrite in place."""
    digest = hashlib.sha256(f"{prefix}-{key}".encode("utf-8")).hexdigest()
    return f"{digest[0:8]}-{digest[8:12]}-{digest[12:16]}-{digest[16:20]}-{digest[20:32]}"


def build_filter(conditions: Dict[str, Any]) -> models.Filter:
    """
    Build a Qdrant filter from simple payload conditions.

    Scalar values must match exactly; list values match when the payload field
    holds any of them. All conditions must hold.
    """
    must = []
    for key, value in conditions.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            must.append(models.FieldCondition(key=key, match=models.MatchAny(any=list(value))))
        else:
            must.append(models.FieldCondition(key=key, match=models.MatchValue(value=value)))
    return models.Filter(must=must)


class VectorIndexClient:
    """Operations on one named Qdrant collection."""

    def __init__(self, collection_name: str, client: AsyncQdrantClient) -> None:
        if not collection_name:
            raise VectorIndexError("Collection name is required for the vector index client")
        self.collection_name = collection_name
        self.client = client

    @classmethod
    def from_config(cls, collection_name: str, url: str, api_key: Optional[str] = None, timeout: int = 10) -> "VectorIndexClient":
        return cls(collection_name, AsyncQdrantClient(url=url, api_key=api_key, timeout=timeout))

    def _error(self, operation: str, error: Exception) -> VectorIndexError:
        vector_logger.log_structured(
            level="WARNING",
            message=f"Vector index {operation} failed",
            extra={"collection": self.collection_name, "error": str(error)}
        )
        return VectorIndexError(
            f"Vector index {operation} failed on '{self.collection_name}': {error}",
            collection=self.collection_name,
            operation=operation,
        )

    async def ensure_collection(self, vector_size: int) -> bool:
        """Create the collection with cosine distance if missing. Returns True when created."""
        try:
            if await self.client.collection_exists(self.collection_name):
                return False
            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(size=vector_size, distance=models.Distance.COSINE),
            )
        except Exception as e:
            raise self._error("ensure_collection", e)
        vector_logger.log_structured(
            level="INFO",
            message="Created vector collection",
            extra={"collection": self.collection_name, "vector_size": vector_size}
        )
        return True

    async def upsert(self, documents: Sequence[VectorDocument]) -> None:
        if not documents:
            return
        points = [
            models.PointStruct(id=doc.id, vector=doc.vector, payload=doc.payload)
            for doc in documents
        ]
        try:
            await self.client.upsert(collection_name=self.collection_name, points=points, wait=True)
        except Exception as e:
            raise self._error("upsert", e)

    async def search(
        self,
        vector: Sequence[float],
        limit: int = 10,
        score_threshold: Optional[float] = None,
        conditions: Optional[Dict[str, Any]] = None,
    ) -> List[VectorSearchResult]:
        """Nearest-neighbour search ordered by descending similarity, optionally restricted by payload conditions."""
        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=list(vector),
                query_filter=build_filter(conditions) if conditions else None,
                limit=limit,
                score_threshold=score_threshold,
                with_payload=True,
            )
        except Exception as e:
            raise self._error("search", e)
        results = [
            VectorSearchResult(id=str(point.id), score=float(point.score), payload=point.payload or {})
            for point in response.points
        ]
        return sorted(results, key=lambda r: r.score, reverse=True)

    async def search_by_filter(
        self,
        conditions: Union[Dict[str, Any], models.Filter],
        limit: int = 100,
    ) -> List[VectorSearchResult]:
        """Payload-filtered scan with no similarity ranking."""
        scroll_filter = conditions if isinstance(conditions, models.Filter) else build_filter(conditions)
        try:
            records, _ = await self.client.scroll(
                collection_name=self.collection_name,
                scroll_filter=scroll_filter,
                limit=limit,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            raise self._error("search_by_filter", e)
        return [VectorSearchResult(id=str(r.id), payload=r.payload or {}) for r in records]

    async def get(self, document_id: str) -> Optional[VectorSearchResult]:
        try:
            records = await self.client.retrieve(
                collection_name=self.collection_name,
                ids=[document_id],
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            raise self._error("get", e)
        if not records:
            return None
        return VectorSearchResult(id=str(records[0].id), payload=records[0].payload or {})

    async def delete(self, document_ids: Sequence[str]) -> None:
        if not document_ids:
            return
        try:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.PointIdsList(points=list(document_ids)),
                wait=True,
            )
        except Exception as e:
            raise self._error("delete", e)

    async def close(self) -> None:
        await self.client.close()
