"""
Shared machinery for the capability and pattern stores.

A store maps its records to vector index payloads, embeds queries, applies the
minimum-score floor and turns backend failures into a degraded, empty result
instead of an exception.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional

from pydantic import BaseModel, Field

from k8s_recommender.core.models import Hit
from k8s_recommender.core.models.resource import RecordT
from k8s_recommender.core.vector import (
    EmbeddingProvider,
    VectorDocument,
    VectorIndexClient,
    VectorSearchResult,
    point_id,
)
from k8s_recommender.utils.exceptions import VectorIndexError
from k8s_recommender.utils.logger import AgentLogger


class StoreSearchResult(BaseModel):
    """Hits for one query plus the RetrievalDegraded signal."""
    hits: List[Hit] = Field(default_factory=list)
    degraded: bool = False
    error: Optional[str] = None


class BaseVectorStore(ABC, Generic[RecordT]):
    """Domain layer over one vector collection."""

    point_prefix: str = "record"

    def __init__(
        self,
        index: VectorIndexClient,
        embedder: EmbeddingProvider,
        min_score: float = 0.1,
        search_timeout: float = 5.0,
        logger: Optional[AgentLogger] = None,
    ) -> None:
        self.index = index
        self.embedder = embedder
        self.min_score = min_score
        self.search_timeout = search_timeout
        self.logger = logger or AgentLogger("BASE")

    @property
    def name(self) -> str:
        return self.index.collection_name

    @abstractmethod
    def _to_payload(self, record: RecordT) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _from_payload(self, payload: Dict[str, Any]) -> RecordT:
        pass

    @abstractmethod
    def _search_text(self, record: RecordT) -> str:
        """Text embedded for a record when it carries no precomputed vector."""
        pass

    def _point_id(self, record_id: str) -> str:
        return point_id(self.point_prefix, record_id)

    def _to_hit(self, result: VectorSearchResult, score: Optional[float] = None) -> Optional[Hit[RecordT]]:
        try:
            record = self._from_payload(result.payload)
        except (ValueError, TypeError, KeyError) as e:
            self.logger.log_structured(
                level="WARNING",
                message="Skipping malformed record in vector collection",
                extra={"collection": self.name, "point_id": result.id, "error": str(e)}
            )
            return None
        value = result.score if score is None else score
        return Hit(record=record, score=min(1.0, max(0.0, value)))

    def _apply_floor(self, hits: List[Hit[RecordT]], limit: int) -> List[Hit[RecordT]]:
        """Drop below-floor hits and order the rest by descending score."""
        kept = [hit for hit in hits if hit.score >= self.min_score]
        kept.sort(key=lambda hit: hit.score, reverse=True)
        return kept[:limit]

    async def _semantic_hits(
        self,
        query: str,
        limit: int,
        conditions: Optional[Dict[str, Any]] = None,
    ) -> List[Hit[RecordT]]:
        vector = await self.embedder.embed(query)
        results = await self.index.search(vector, limit=limit, score_threshold=self.min_score, conditions=conditions)
        return [hit for hit in (self._to_hit(r) for r in results) if hit is not None]

    async def _collect_hits(self, query: str, limit: int, **filters: Any) -> List[Hit[RecordT]]:
        return await self._semantic_hits(query, limit)

    async def search(self, query: str, limit: int = 10, **filters: Any) -> StoreSearchResult:
        """
        Return hits for ``query`` ordered by descending similarity.

        Backend failures and timeouts never raise: the result comes back empty
        with ``degraded`` set.
        """
        if not query or not query.strip() or limit <= 0:
            return StoreSearchResult()
        try:
            hits = await asyncio.wait_for(
                self._collect_hits(query.strip(), limit, **filters),
                timeout=self.search_timeout,
            )
        except (VectorIndexError, asyncio.TimeoutError) as e:
            error = str(e) or f"search timed out after {self.search_timeout}s"
            self.logger.log_structured(
                level="WARNING",
                message="Retrieval degraded; continuing without hits",
                extra={"collection": self.name, "error": error}
            )
            return StoreSearchResult(degraded=True, error=error)
        hits = self._apply_floor(hits, limit)
        self.logger.log_structured(
            level="DEBUG",
            message="Store search completed",
            extra={"collection": self.name, "hits": len(hits)}
        )
        return StoreSearchResult(hits=hits)

    async def ensure_collection(self, vector_size: int) -> bool:
        return await self.index.ensure_collection(vector_size)

    async def upsert_record(self, record: RecordT) -> str:
        """Store or replace a record. Returns its vector point id."""
        vector = getattr(record, "embedding_vector", None)
        if not vector:
            vector = await self.embedder.embed(self._search_text(record))
        document = VectorDocument(
            id=self._point_id(record.id),
            vector=list(vector),
            payload=self._to_payload(record),
        )
        await self.index.upsert([document])
        return document.id

    async def get_record(self, record_id: str) -> Optional[RecordT]:
        result = await self.index.get(self._point_id(record_id))
        if result is None:
            return None
        return self._from_payload(result.payload)

    async def delete_record(self, record_id: str) -> None:
        await self.index.delete([self._point_id(record_id)])
