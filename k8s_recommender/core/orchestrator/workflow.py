"""
LangGraph workflow for the two-pass recommendation pipeline.

    START -> retrieve_capabilities --+
    START -> retrieve_patterns ------+-> select_candidates -> resolve_dependencies
          -> rank_pass1 -> (enhance_pass2 | finalize) -> finalize -> END

A failed selection records the ERROR stage and ends the run.

Per-request collaborators that must not live in graph state (the dependency
resolution scope) travel in ``config["configurable"]``.
"""

import asyncio
from typing import Any, Dict, List, Optional

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, START, StateGraph

from k8s_recommender.core.hierarchy import ResourceHierarchizer
from k8s_recommender.core.models import (
    CandidateSolution,
    CapabilityRecord,
    HierarchyTier,
    Hit,
    PatternRecord,
    ResourceIdentifier,
)
from k8s_recommender.core.orchestrator.scoring import (
    ScoringWeights,
    apply_enhancement,
    deduplicate,
    pass1_score,
    pattern_index,
    semantic_score,
    sort_solutions,
)
from k8s_recommender.core.orchestrator.state import RecommendationStage, RecommendationState
from k8s_recommender.core.reasoning import BaseReasoningService, PromptKind
from k8s_recommender.core.reasoning.schemas import EnhanceResponse, RankResponse, SelectResponse
from k8s_recommender.core.schema import ResolutionScope, SchemaDependencyResolver
from k8s_recommender.core.stores import CapabilityStore, PatternStore
from k8s_recommender.utils.exceptions import (
    ContractViolationError,
    ReasoningError,
    RecommendationFailedError,
)
from k8s_recommender.utils.logger import AgentLogger

workflow_logger = AgentLogger("RECOMMENDATION_WORKFLOW")

MAX_SELECTED_CANDIDATES = 5


class RecommendationWorkflow:
    """
    Builds and runs the recommendation graph.

    Stores, resolver, hierarchizer and reasoning service are long-lived and
    shared between requests; everything request-scoped lives in the graph
    state or the resolution scope passed through the run config.
    """

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
    ) -> None:
        self.capability_store = capability_store
        self.pattern_store = pattern_store
        self.resolver = resolver
        self.hierarchizer = hierarchizer
        self.reasoning = reasoning
        self.weights = weights or ScoringWeights()
        self.capability_limit = capability_limit
        self.pattern_limit = pattern_limit

    def build_graph(self):
        workflow_logger.log_structured(
            level="INFO",
            message="Building recommendation graph",
            extra={"capability_limit": self.capability_limit, "pattern_limit": self.pattern_limit}
        )

        graph = StateGraph(RecommendationState)

        # ============================================================
        # NODES
        # ============================================================
        graph.add_node("retrieve_capabilities", self.retrieve_capabilities_node)
        graph.add_node("retrieve_patterns", self.retrieve_patterns_node)
        graph.add_node("select_candidates", self.select_candidates_node)
        graph.add_node("resolve_dependencies", self.resolve_dependencies_node)
        graph.add_node("rank_pass1", self.rank_pass1_node)
        graph.add_node("enhance_pass2", self.enhance_pass2_node)
        graph.add_node("finalize", self.finalize_node)

        # ============================================================
        # EDGES
        # ============================================================

        # Retrieval fans out, selection waits for both
        graph.add_edge(START, "retrieve_capabilities")
        graph.add_edge(START, "retrieve_patterns")
        graph.add_edge(["retrieve_capabilities", "retrieve_patterns"], "select_candidates")

        # Selection failure is terminal
        graph.add_conditional_edges(
            "select_candidates",
            self.route_after_selection,
            {
                "resolve_dependencies": "resolve_dependencies",
                "end": END,
            }
        )
        graph.add_edge("resolve_dependencies", "rank_pass1")

        # Enhancement only when at least one pattern matched
        graph.add_conditional_edges(
            "rank_pass1",
            self.route_after_ranking,
            {
                "enhance_pass2": "enhance_pass2",
                "finalize": "finalize",
            }
        )
        graph.add_edge("enhance_pass2", "finalize")
        graph.add_edge("finalize", END)

        return graph.compile()

    # ============================================================
    # HELPERS
    # ============================================================

    @staticmethod
    def _scope(config: Optional[RunnableConfig]) -> ResolutionScope:
        scope = ((config or {}).get("configurable") or {}).get("resolution_scope")
        if scope is None:
            raise RecommendationFailedError(
                "No resolution scope in run config",
                stage=RecommendationStage.RESOLVING_DEPENDENCIES.value,
            )
        return scope

    @staticmethod
    def _failed(stage: RecommendationStage, message: str, cause: Optional[str] = None) -> Dict[str, Any]:
        workflow_logger.log_structured(
            level="ERROR",
            message="Recommendation stage failed",
            extra={"stage": stage.value, "error": message}
        )
        return {
            "stages": [stage.value, RecommendationStage.ERROR.value],
            "error": message,
            "failed_stage": stage.value,
            "error_cause": cause,
        }

    @staticmethod
    def _capabilities(state: RecommendationState) -> Dict[ResourceIdentifier, Hit[CapabilityRecord]]:
        return {hit.record.resource: hit for hit in state.get("capability_hits") or []}

    def _tier_of(self, state: RecommendationState):
        capabilities = {r: hit.record for r, hit in self._capabilities(state).items()}

        def tier_of(candidate: CandidateSolution) -> HierarchyTier:
            return self.hierarchizer.best_tier(candidate.resources, capabilities)

        return tier_of

    @staticmethod
    def _describe(candidate: CandidateSolution, index: int) -> Dict[str, Any]:
        return {
            "index": index,
            "resources": [r.key for r in candidate.resources],
            "description": candidate.description,
            "score": candidate.score,
            "reasons": candidate.reasons,
        }

    # ============================================================
    # NODE IMPLEMENTATIONS
    # ============================================================

    async def retrieve_capabilities_node(self, state: RecommendationState) -> Dict[str, Any]:
        result = await self.capability_store.search(state["intent"], limit=self.capability_limit)
        update: Dict[str, Any] = {
            "capability_hits": result.hits,
            "stages": [RecommendationStage.RETRIEVING_CAPABILITIES.value],
        }
        if result.degraded:
            update["degraded"] = True
            update["warnings"] = [f"Capability retrieval degraded: {result.error}"]
        workflow_logger.log_structured(
            level="INFO",
            message="Capabilities retrieved",
            extra={"hits": len(result.hits), "degraded": result.degraded}
        )
        return update

    async def retrieve_patterns_node(self, state: RecommendationState) -> Dict[str, Any]:
        result = await self.pattern_store.search(state["intent"], limit=self.pattern_limit)
        update: Dict[str, Any] = {
            "pattern_hits": result.hits,
            "stages": [RecommendationStage.RETRIEVING_PATTERNS.value],
        }
        if result.degraded:
            update["degraded"] = True
            update["warnings"] = [f"Pattern retrieval degraded; enhancement skipped: {result.error}"]
        workflow_logger.log_structured(
            level="INFO",
            message="Patterns retrieved",
            extra={"hits": [h.record.id for h in result.hits], "degraded": result.degraded}
        )
        return update

    async def select_candidates_node(self, state: RecommendationState) -> Dict[str, Any]:
        capabilities = self._capabilities(state)
        context = {
            "intent": state["intent"],
            "capabilities": [
                {
                    "group": hit.record.resource.group,
                    "version": hit.record.resource.version,
                    "kind": hit.record.resource.kind,
                    "description": hit.record.description,
                    "use_case": hit.record.use_case,
                    "capability_tags": sorted(hit.record.capability_tags),
                    "provider_tags": sorted(hit.record.provider_tags),
                    "complexity": hit.record.complexity_tier.value,
                    "similarity": round(hit.score, 3),
                }
                for hit in capabilities.values()
            ],
        }
        try:
            response: SelectResponse = await self.reasoning.invoke(PromptKind.SELECT, context)
        except ReasoningError as e:
            return self._failed(
                RecommendationStage.SELECTING_CANDIDATES, f"Candidate selection failed: {e}", type(e).__name__
            )

        warnings: List[str] = []
        candidates: List[CandidateSolution] = []
        for selected in response.solutions[:MAX_SELECTED_CANDIDATES]:
            resources = list(dict.fromkeys(selected.resources))
            if capabilities:
                unknown = [r for r in resources if r not in capabilities]
                if unknown:
                    warnings.append(
                        f"Dropped resources not among cluster capabilities: {', '.join(r.key for r in unknown)}"
                    )
                    resources = [r for r in resources if r in capabilities]
            if not resources:
                continue
            candidates.append(CandidateSolution(
                resources=resources,
                score=selected.score,
                description=selected.description,
                reasons=list(selected.reasons),
            ))

        if not candidates:
            failed = self._failed(
                RecommendationStage.SELECTING_CANDIDATES, "Candidate selection produced no usable solution"
            )
            failed["warnings"] = warnings
            return failed
        workflow_logger.log_structured(
            level="INFO",
            message="Candidates selected",
            extra={"candidates": [[r.key for r in c.resources] for c in candidates]}
        )
        return {
            "candidates": candidates,
            "warnings": warnings,
            "stages": [RecommendationStage.SELECTING_CANDIDATES.value],
        }

    def route_after_selection(self, state: RecommendationState) -> str:
        return "end" if state.get("error") else "resolve_dependencies"

    async def resolve_dependencies_node(self, state: RecommendationState, config: RunnableConfig) -> Dict[str, Any]:
        scope = self._scope(config)
        scope.kind_index.add(self._capabilities(state).keys())
        for hit in state.get("pattern_hits") or []:
            scope.kind_index.add(hit.record.suggested_resources)
        candidates = [c.model_copy(deep=True) for c in state.get("candidates") or []]
        for candidate in candidates:
            scope.kind_index.add(candidate.resources)

        await asyncio.gather(*(scope.complete(c) for c in candidates))

        workflow_logger.log_structured(
            level="INFO",
            message="Dependencies resolved",
            extra={
                "injected": [[r.key for r in c.dependency_injected] for c in candidates],
                "unavailable_schemas": [r.key for r in scope.warnings],
            }
        )
        return {
            "completed_candidates": candidates,
            "stages": [RecommendationStage.RESOLVING_DEPENDENCIES.value],
        }

    async def rank_pass1_node(self, state: RecommendationState, config: RunnableConfig) -> Dict[str, Any]:
        scope = self._scope(config)
        candidates = [c.model_copy(deep=True) for c in state.get("completed_candidates") or []]
        tier_of = self._tier_of(state)
        context = {
            "intent": state["intent"],
            "candidates": [
                {
                    **self._describe(c, i),
                    "dependency_injected": [r.key for r in c.dependency_injected],
                    "was_incomplete": c.was_incomplete,
                    "unresolved": [r.key for r in scope.unresolved(c)],
                    "tier": tier_of(c).value,
                }
                for i, c in enumerate(candidates)
            ],
        }

        update: Dict[str, Any] = {"stages": [RecommendationStage.RANKING_PASS1.value]}
        rankings = {}
        try:
            response: RankResponse = await self.reasoning.invoke(PromptKind.RANK, context)
            for ranking in response.rankings:
                rankings.setdefault(ranking.index, ranking)
        except ReasoningError as e:
            workflow_logger.log_structured(
                level="WARNING",
                message="Ranking failed; using draft scores",
                extra={"error": str(e)}
            )
            update["degraded"] = True
            update["warnings"] = [f"Ranking unavailable, draft scores used: {e}"]

        capability_scores = {r: hit.score for r, hit in self._capabilities(state).items()}
        for i, candidate in enumerate(candidates):
            ranking = rankings.get(i)
            reasoning_score = ranking.score if ranking else candidate.score
            if ranking and ranking.reasons:
                candidate.reasons = list(ranking.reasons)
            if candidate.was_incomplete:
                candidate.reasons.append(
                    "Added required dependencies: " + ", ".join(r.key for r in candidate.dependency_injected)
                )
            candidate.score = pass1_score(
                reasoning_score=reasoning_score,
                semantic=semantic_score(candidate, capability_scores),
                candidate=candidate,
                tier=tier_of(candidate),
                unresolved_count=len(scope.unresolved(candidate)),
                weights=self.weights,
            )

        max_solutions = state.get("max_solutions") or len(candidates)
        update["pass1_solutions"] = deduplicate(sort_solutions(candidates, tier_of))[:max_solutions]
        workflow_logger.log_structured(
            level="INFO",
            message="Pass 1 ranked",
            extra={"scores": [s.score for s in update["pass1_solutions"]]}
        )
        return update

    def route_after_ranking(self, state: RecommendationState) -> str:
        if state.get("pattern_hits"):
            return "enhance_pass2"
        workflow_logger.log_structured(
            level="INFO",
            message="No matching patterns; skipping enhancement",
            extra={}
        )
        return "finalize"

    async def enhance_pass2_node(self, state: RecommendationState, config: RunnableConfig) -> Dict[str, Any]:
        scope = self._scope(config)
        pass1 = state.get("pass1_solutions") or []
        pattern_hits: List[Hit[PatternRecord]] = state.get("pattern_hits") or []
        patterns = pattern_index(pattern_hits)
        capabilities = self._capabilities(state)
        extra_resources = list(dict.fromkeys(
            r for hit in pattern_hits for r in hit.record.suggested_resources if r not in capabilities
        ))
        context = {
            "intent": state["intent"],
            "solutions": [self._describe(c, i) for i, c in enumerate(pass1)],
            "patterns": [
                {
                    "id": hit.record.id,
                    "name": hit.record.name,
                    "description": hit.record.trigger_description,
                    "suggested_resources": [r.key for r in hit.record.suggested_resources],
                    "rationale": hit.record.rationale,
                    "similarity": round(hit.score, 3),
                }
                for hit in pattern_hits
            ],
            "pattern_resources": [r.key for r in extra_resources],
        }
        update: Dict[str, Any] = {"stages": [RecommendationStage.ENHANCING_PASS2.value]}

        try:
            response: EnhanceResponse = await self.reasoning.invoke(PromptKind.ENHANCE, context)
        except ReasoningError as e:
            workflow_logger.log_structured(
                level="WARNING",
                message="Enhancement failed; returning Pass 1 solutions",
                extra={"error": str(e)}
            )
            update["degraded"] = True
            update["warnings"] = [f"Enhancement unavailable, Pass 1 solutions returned: {e}"]
            update["final_solutions"] = [c.model_copy(deep=True) for c in pass1]
            return update

        enhanced_by_index = {}
        for enhanced in response.solutions:
            enhanced_by_index.setdefault(enhanced.index, enhanced)

        final: List[CandidateSolution] = []
        warnings: List[str] = []
        for i, original in enumerate(pass1):
            try:
                merged = apply_enhancement(original, enhanced_by_index.get(i), patterns, index=i)
            except ContractViolationError as e:
                workflow_logger.log_structured(
                    level="WARNING",
                    message="Enhancement broke the additive contract; keeping Pass 1 solution",
                    extra={"candidate_index": i, "error": str(e)}
                )
                warnings.append(f"Candidate {i}: enhancement rejected ({e}); Pass 1 solution kept")
                merged = original.model_copy(deep=True)
            if merged.pattern_influence:
                await scope.complete(merged)
            final.append(merged)

        update["final_solutions"] = final
        if warnings:
            update["warnings"] = warnings
        return update

    async def finalize_node(self, state: RecommendationState) -> Dict[str, Any]:
        solutions = state.get("final_solutions")
        if solutions is None:
            solutions = state.get("pass1_solutions") or []
        tier_of = self._tier_of(state)
        max_solutions = state.get("max_solutions") or len(solutions)
        final = deduplicate(sort_solutions(solutions, tier_of))[:max_solutions]
        return {
            "final_solutions": final,
            "stages": [RecommendationStage.DONE.value],
        }
