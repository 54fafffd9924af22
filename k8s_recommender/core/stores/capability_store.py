from typing import Any, Dict, Iterable, List, Optional, Union

from k8s_recommender.core.models import CapabilityRecord, ComplexityTier, Hit, ResourceIdentifier
from k8s_recommender.core.stores.base_store import BaseVectorStore
from k8s_recommender.core.vector import EmbeddingProvider, VectorIndexClient
from k8s_recommender.utils.logger import AgentLogger

capability_logger = AgentLogger("CAPABILITY_STORE")


class CapabilityStore(BaseVectorStore[CapabilityRecord]):
    """
    One record per cluster resource type, searched by what the resource can do.

    Records are written by the cluster sync process; the recommendation
    pipeline only reads them.
    """

    point_prefix = "capability"

    def __init__(
        self,
        index: VectorIndexClient,
        embedder: EmbeddingProvider,
        min_score: float = 0.1,
        search_timeout: float = 5.0,
    ) -> None:
        super().__init__(index, embedder, min_score, search_timeout, logger=capability_logger)

    def _to_payload(self, record: CapabilityRecord) -> Dict[str, Any]:
        return {
            "record_id": record.id,
            "resource": record.resource.key,
            "group": record.resource.group,
            "version": record.resource.version,
            "kind": record.resource.kind,
            "description": record.description,
            "use_case": record.use_case,
            "capability_tags": sorted(record.capability_tags),
            "provider_tags": sorted(t.lower() for t in record.provider_tags),
            "complexity_tier": record.complexity_tier.value,
        }

    def _from_payload(self, payload: Dict[str, Any]) -> CapabilityRecord:
        return CapabilityRecord(
            id=payload["record_id"],
            resource=ResourceIdentifier(
                group=payload.get("group", ""),
                version=payload["version"],
                kind=payload["kind"],
            ),
            description=payload.get("description", ""),
            use_case=payload.get("use_case", ""),
            capability_tags=frozenset(payload.get("capability_tags") or ()),
            provider_tags=frozenset(payload.get("provider_tags") or ()),
            complexity_tier=payload.get("complexity_tier", ComplexityTier.MEDIUM.value),
        )

    def _search_text(self, record: CapabilityRecord) -> str:
        parts = [
            record.resource.kind,
            record.resource.group,
            record.description,
            record.use_case,
            " ".join(sorted(record.capability_tags)),
            " ".join(sorted(record.provider_tags)),
        ]
        return " ".join(p for p in parts if p)

    async def _collect_hits(
        self,
        query: str,
        limit: int,
        complexity: Optional[Union[ComplexityTier, str]] = None,
        providers: Optional[Iterable[str]] = None,
    ) -> List[Hit[CapabilityRecord]]:
        conditions: Dict[str, Any] = {}
        if complexity:
            conditions["complexity_tier"] = ComplexityTier(complexity).value
        if providers:
            conditions["provider_tags"] = [p.lower() for p in providers]
        return await self._semantic_hits(query, limit, conditions=conditions or None)
