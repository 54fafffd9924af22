"""
Recommendation Orchestrator entry point.

``ResourceRecommender.recommend`` runs the recommendation graph under a single
request deadline. When the deadline expires, the last consistent stage output
is returned with ``degraded=True``: final solutions if enhancement finished,
otherwise Pass-1 solutions, otherwise dependency-complete candidates.
"""

import asyncio
from typing import Any, Dict, List, Optional

from qdrant_client import AsyncQdrantClient

from k8s_recommender.config.config import Config
from k8s_recommender.core.hierarchy import ResourceHierarchizer
from k8s_recommender.core.llm.llm_provider import LLMProvider
from k8s_recommender.core.models import CandidateSolution, RecommendationResult, RecommendOptions
from k8s_recommender.core.orchestrator.scoring import ScoringWeights, deduplicate
from k8s_recommender.core.orchestrator.state import RecommendationStage, RecommendationState
from k8s_recommender.core.orchestrator.workflow import RecommendationWorkflow
from k8s_recommender.core.reasoning import BaseReasoningService, ReasoningService
from k8s_recommender.core.schema import (
    DependencyRuleTable,
    KindIndex,
    MCPClusterIntrospection,
    SchemaDependencyResolver,
)
from k8s_recommender.core.stores import CapabilityStore, PatternStore
from k8s_recommender.core.vector import LangChainEmbeddingProvider, VectorIndexClient
from k8s_recommender.utils.exceptions import (
    DeadlineExceededError,
    RecommendationFailedError,
    RecommenderError,
    ValidationError,
)
from k8s_recommender.utils.logger import AgentLogger
from k8s_recommender.utils.mcp_client import MCPAdapterClient

recommender_logger = AgentLogger("RECOMMENDER")


class ResourceRecommender:
    """Maps a free-text deployment intent to ranked, dependency-complete resource solutions."""

    def __init__(
        self,
        capability_store: CapabilityStore,
        pattern_store: PatternStore,
        resolver: SchemaDependencyResolver,
        hierarchizer: ResourceHierarchizer,
        reasoning: BaseReasoningService,
        weights: Optional[ScoringWeights] = None,
        capability_limit: int = 50,
        pattern_limit: int = 5,
        request_deadline: float = 180.0,
        default_max_solutions: int = 5,
    ) -> None:
        self.resolver = resolver
        self.request_deadline = request_deadline
        self.default_max_solutions = default_max_solutions
        self.workflow = RecommendationWorkflow(
            capability_store=capability_store,
            pattern_store=pattern_store,
            resolver=resolver,
            hierarchizer=hierarchizer,
            reasoning=reasoning,
            weights=weights,
            capability_limit=capability_limit,
            pattern_limit=pattern_limit,
        )
        self.graph = self.workflow.build_graph()

    async def _run(self, initial: Dict[str, Any], config: Dict[str, Any], snapshot: Dict[str, Any]) -> None:
        async for values in self.graph.astream(initial, config=config, stream_mode="values"):
            snapshot.clear()
            snapshot.update(values)

    @staticmethod
    def _fallback(snapshot: Dict[str, Any]) -> Optional[List[CandidateSolution]]:
        """Best consistent output in a partial run, or None when nothing usable exists yet."""
        if "final_solutions" in snapshot:
            return snapshot["final_solutions"]
        if "pass1_solutions" in snapshot:
            return snapshot["pass1_solutions"]
        if "completed_candidates" in snapshot:
            max_solutions = snapshot.get("max_solutions") or None
            ordered = sorted(snapshot["completed_candidates"], key=lambda c: -c.score)
            return deduplicate(ordered)[:max_solutions]
        return None

    async def recommend(self, intent: str, options: Optional[RecommendOptions] = None) -> RecommendationResult:
        """
        Recommend resource solutions for ``intent``.

        Raises:
            ValidationError: the intent is empty
            RecommendationFailedError: Pass 1 could not produce any candidate
            DeadlineExceededError: the deadline expired before any usable output existed
        """
        if not intent or not intent.strip():
            raise ValidationError("Intent must not be empty", field="intent", value=intent)
        options = options or RecommendOptions(max_solutions=self.default_max_solutions)

        initial: RecommendationState = {
            "intent": intent.strip(),
            "max_solutions": options.max_solutions,
            "stages": [RecommendationStage.IDLE.value],
            "warnings": [],
            "degraded": False,
        }
        config = {"configurable": {"resolution_scope": self.resolver.scope(KindIndex())}}
        snapshot: Dict[str, Any] = {}

        recommender_logger.log_structured(
            level="INFO",
            message="Recommendation started",
            extra={"intent": intent, "max_solutions": options.max_solutions}
        )
        timed_out = False
        try:
            await asyncio.wait_for(self._run(initial, config, snapshot), timeout=self.request_deadline)
        except asyncio.TimeoutError:
            timed_out = True
        except RecommenderError:
            raise
        except Exception as e:
            stage = (snapshot.get("stages") or [RecommendationStage.IDLE.value])[-1]
            recommender_logger.log_structured(
                level="ERROR",
                message="Recommendation failed",
                extra={"stage": stage, "error": str(e)}
            )
            raise RecommendationFailedError(
                f"Recommendation failed after stage '{stage}': {e}",
                stage=stage,
                cause=type(e).__name__,
            )

        if snapshot.get("error"):
            raise RecommendationFailedError(
                snapshot["error"],
                stage=snapshot.get("failed_stage"),
                cause=snapshot.get("error_cause"),
            )

        warnings = list(snapshot.get("warnings") or [])
        stages = list(snapshot.get("stages") or [])
        degraded = bool(snapshot.get("degraded"))
        if timed_out:
            solutions = self._fallback(snapshot)
            last_stage = stages[-1] if stages else RecommendationStage.IDLE.value
            if solutions is None:
                raise DeadlineExceededError(
                    f"Request deadline of {self.request_deadline}s expired during '{last_stage}' "
                    f"before any solution was available",
                    stage=last_stage,
                )
            recommender_logger.log_structured(
                level="WARNING",
                message="Request deadline expired; returning best completed stage",
                extra={"last_stage": last_stage, "solutions": len(solutions)}
            )
            warnings.append(f"Request deadline expired after '{last_stage}'; partial result returned")
            degraded = True
        else:
            solutions = snapshot.get("final_solutions") or []

        result = RecommendationResult(
            solutions=solutions,
            degraded=degraded,
            pass1_solutions=snapshot.get("pass1_solutions") or [],
            warnings=warnings,
            stages=stages,
        )
        recommender_logger.log_structured(
            level="INFO",
            message="Recommendation completed",
            extra={
                "solutions": len(result.solutions),
                "degraded": result.degraded,
                "stages": result.stages,
            }
        )
        return result


def create_recommender(config: Optional[Config] = None) -> ResourceRecommender:
    """
    Wire a ResourceRecommender from configuration: Qdrant-backed stores,
    MCP-backed schema introspection and an LLM reasoning service.
    """
    config = config or Config()
    timeouts = config.timeouts
    vector_config = config.vector_config
    retrieval = config.retrieval_config

    embedding_config = config.embedding_config
    embeddings = LLMProvider.create_embeddings(
        provider=embedding_config["provider"],
        model=embedding_config["model"],
        dimensions=embedding_config.get("dimensions"),
    )
    embedder = LangChainEmbeddingProvider(embeddings)

    qdrant = AsyncQdrantClient(
        url=vector_config["url"],
        api_key=vector_config["api_key"],
        timeout=vector_config["timeout"],
    )
    capability_store = CapabilityStore(
        VectorIndexClient(vector_config["capabilities_collection"], qdrant),
        embedder,
        min_score=retrieval["capability_min_score"],
        search_timeout=timeouts["vector_search"],
    )
    pattern_store = PatternStore(
        VectorIndexClient(vector_config["patterns_collection"], qdrant),
        embedder,
        min_score=retrieval["pattern_min_score"],
        search_timeout=timeouts["vector_search"],
        keyword_score=retrieval["pattern_keyword_score"],
    )

    mcp_config = config.mcp_config
    introspection = MCPClusterIntrospection(
        MCPAdapterClient(host=mcp_config["host"], port=mcp_config["port"], transport=mcp_config["transport"]),
        tool_name=mcp_config["schema_tool"],
    )
    rules_file = config.get("DEPENDENCY_RULES_FILE")
    resolver = SchemaDependencyResolver(
        introspection,
        rules=DependencyRuleTable.load(extra_paths=[rules_file] if rules_file else ()),
        schema_fetch_timeout=timeouts["schema_fetch"],
        cache_enabled=config.get("SCHEMA_EDGE_CACHE_ENABLED", False),
        max_depth=config.get("MAX_DEPENDENCY_DEPTH", 5),
    )

    llm_config = config.get_llm_config()
    llm = LLMProvider.create_llm(
        provider=llm_config["provider"],
        model=llm_config["model"],
        temperature=llm_config["temperature"],
        max_tokens=llm_config["max_tokens"],
        timeout=llm_config.get("timeout", timeouts["reasoning"]),
    )

    recommender_logger.log_structured(
        level="INFO",
        message="Creating resource recommender",
        extra={
            "llm_provider": llm_config["provider"],
            "llm_model": llm_config["model"],
            "qdrant_url": vector_config["url"],
            "capabilities_collection": vector_config["capabilities_collection"],
            "patterns_collection": vector_config["patterns_collection"],
        }
    )
    return ResourceRecommender(
        capability_store=capability_store,
        pattern_store=pattern_store,
        resolver=resolver,
        hierarchizer=ResourceHierarchizer.from_config(config.hierarchy_config),
        reasoning=ReasoningService(llm, timeout=timeouts["reasoning"]),
        weights=ScoringWeights.from_config(config.scoring_weights),
        capability_limit=retrieval["capability_limit"],
        pattern_limit=retrieval["pattern_limit"],
        request_deadline=timeouts["request_deadline"],
        default_max_solutions=config.get("MAX_SOLUTIONS", 5),
    )
