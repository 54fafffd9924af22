import re
from typing import Any, Dict, List

from k8s_recommender.core.models import Hit, PatternRecord
from k8s_recommender.core.stores.base_store import BaseVectorStore
from k8s_recommender.core.vector import EmbeddingProvider, VectorIndexClient
from k8s_recommender.utils.logger import AgentLogger

pattern_logger = AgentLogger("PATTERN_STORE")

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9._-]*")


def extract_keywords(query: str) -> List[str]:
    """
    Lower-cased words longer than two characters, plus adjacent word pairs so
    that multi-word triggers like ``"postgres database"`` can match.
    """
    tokens = _TOKEN_RE.findall(query.lower())
    keywords = [t for t in tokens if len(t) > 2]
    keywords += [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
    return list(dict.fromkeys(keywords))


class PatternStore(BaseVectorStore[PatternRecord]):
    """
    Organizational rules of the form "when the intent resembles X, include Y".

    Search is hybrid: semantic similarity over the trigger description, plus
    exact matches of intent keywords against the pattern's trigger list.
    """

    point_prefix = "pattern"

    def __init__(
        self,
        index: VectorIndexClient,
        embedder: EmbeddingProvider,
        min_score: float = 0.45,
        search_timeout: float = 5.0,
        keyword_score: float = 0.6,
    ) -> None:
        super().__init__(index, embedder, min_score, search_timeout, logger=pattern_logger)
        self.keyword_score = keyword_score

    def _to_payload(self, record: PatternRecord) -> Dict[str, Any]:
        return {
            "record_id": record.id,
            "name": record.name,
            "trigger_description": record.trigger_description,
            "triggers": list(record.triggers),
            "suggested_resources": [r.key for r in record.suggested_resources],
            "rationale": record.rationale,
        }

    def _from_payload(self, payload: Dict[str, Any]) -> PatternRecord:
        return PatternRecord(
            id=payload["record_id"],
            name=payload.get("name", ""),
            trigger_description=payload["trigger_description"],
            triggers=payload.get("triggers") or [],
            suggested_resources=payload.get("suggested_resources") or [],
            rationale=payload.get("rationale", ""),
        )

    def _search_text(self, record: PatternRecord) -> str:
        return " ".join([record.trigger_description, *record.triggers]).strip()

    async def _keyword_hits(self, query: str, limit: int) -> List[Hit[PatternRecord]]:
        keywords = extract_keywords(query)
        if not keywords:
            return []
        results = await self.index.search_by_filter({"triggers": keywords}, limit=limit)
        return [hit for hit in (self._to_hit(r, score=self.keyword_score) for r in results) if hit is not None]

    async def _collect_hits(self, query: str, limit: int, **filters: Any) -> List[Hit[PatternRecord]]:
        semantic = await self._semantic_hits(query, limit)
        keyword = await self._keyword_hits(query, limit)

        merged: Dict[str, Hit[PatternRecord]] = {hit.record.id: hit for hit in semantic}
        for hit in keyword:
            existing = merged.get(hit.record.id)
            if existing is None or existing.score < hit.score:
                merged[hit.record.id] = hit

        pattern_logger.log_structured(
            level="DEBUG",
            message="Hybrid pattern search",
            extra={"semantic_hits": len(semantic), "keyword_hits": len(keyword), "merged": len(merged)}
        )
        return list(merged.values())
