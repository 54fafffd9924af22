"""
Scoring, ordering and the Pass-2 merge rules.

Pass-1 score = weighted blend of the reasoning score and the semantic score of
the candidate's selected resources, minus penalties for injected and unknown
dependencies, plus a bounded bonus for the candidate's best hierarchy tier.
"""

from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel

from k8s_recommender.core.models import (
    CandidateSolution,
    HierarchyTier,
    Hit,
    PatternInfluence,
    PatternRecord,
    ResourceIdentifier,
    clamp_score,
)
from k8s_recommender.core.reasoning.schemas import EnhancedSolution
from k8s_recommender.utils.exceptions import ContractViolationError


class ScoringWeights(BaseModel):
    reasoning: float = 0.8
    semantic: float = 0.2
    incomplete_penalty: float = 3.0
    unknown_dependency_penalty: float = 2.0
    composite_bonus: float = 5.0
    operator_bonus: float = 2.0
    max_tier_bonus: float = 10.0

    @classmethod
    def from_config(cls, scoring_weights: Mapping[str, float]) -> "ScoringWeights":
        return cls(**{k: v for k, v in scoring_weights.items() if k in cls.model_fields})


def semantic_score(candidate: CandidateSolution, capability_scores: Mapping[ResourceIdentifier, float]) -> float:
    """Mean similarity (0-100) of the resources that were selected, not injected."""
    selected = [r for r in candidate.resources if r not in candidate.dependency_injected]
    if not selected:
        return 0.0
    return 100.0 * sum(capability_scores.get(r, 0.0) for r in selected) / len(selected)


def tier_bonus(tier: HierarchyTier, weights: ScoringWeights) -> float:
    bonus = {
        HierarchyTier.COMPOSITE: weights.composite_bonus,
        HierarchyTier.OPERATOR: weights.operator_bonus,
    }.get(tier, 0.0)
    return max(0.0, min(bonus, weights.max_tier_bonus))


def pass1_score(
    reasoning_score: float,
    semantic: float,
    candidate: CandidateSolution,
    tier: HierarchyTier,
    unresolved_count: int,
    weights: ScoringWeights,
) -> float:
    total_weight = weights.reasoning + weights.semantic
    if total_weight > 0:
        blended = (weights.reasoning * reasoning_score + weights.semantic * semantic) / total_weight
    else:
        blended = reasoning_score
    if candidate.was_incomplete:
        blended -= weights.incomplete_penalty
    blended -= weights.unknown_dependency_penalty * unresolved_count
    blended += tier_bonus(tier, weights)
    return clamp_score(blended)


def sort_solutions(
    solutions: Iterable[CandidateSolution],
    tier_of: Callable[[CandidateSolution], HierarchyTier],
) -> List[CandidateSolution]:
    """
    Score descending, then best hierarchy tier, then fewer resources.

    The sort is stable, so fully tied solutions keep their incoming order.
    """
    return sorted(solutions, key=lambda s: (-s.score, -tier_of(s).rank, len(s.resources)))


def deduplicate(solutions: Iterable[CandidateSolution]) -> List[CandidateSolution]:
    """Keep the first solution for each distinct resource set."""
    seen = set()
    unique = []
    for solution in solutions:
        key = solution.resource_set()
        if key in seen:
            continue
        seen.add(key)
        unique.append(solution)
    return unique


def apply_enhancement(
    original: CandidateSolution,
    enhanced: Optional[EnhancedSolution],
    patterns: Mapping[str, PatternRecord],
    index: Optional[int] = None,
) -> CandidateSolution:
    """
    Merge one Pass-2 response into a copy of its Pass-1 candidate.

    The response must list the Pass-1 resources first, in order, and may only
    append resources suggested by the pattern it names. A response without
    additions leaves the candidate as it was.

    Raises:
        ContractViolationError: the response removes, reorders or adds
            resources outside the named pattern's suggestions
    """
    merged = original.model_copy(deep=True)
    if enhanced is None:
        return merged

    prefix = enhanced.resources[:len(original.resources)]
    if prefix != original.resources:
        missing = [r.key for r in original.resources if r not in enhanced.resources]
        detail = f"removed {', '.join(missing)}" if missing else "reordered existing resources"
        raise ContractViolationError(f"Enhancement {detail}", candidate_index=index)

    additions: List[ResourceIdentifier] = []
    for resource in enhanced.resources[len(original.resources):]:
        if resource not in additions and resource not in original.resources:
            additions.append(resource)
    if not additions:
        return merged

    pattern = patterns.get(enhanced.pattern_id or "")
    if pattern is None:
        raise ContractViolationError(
            f"Enhancement added resources without naming a matched pattern (got {enhanced.pattern_id!r})",
            candidate_index=index,
        )
    outside = [r.key for r in additions if r not in pattern.suggested_resources]
    if outside:
        raise ContractViolationError(
            f"Enhancement added resources not suggested by pattern '{pattern.id}': {', '.join(outside)}",
            candidate_index=index,
        )

    merged.append_resources(additions)
    merged.score = original.score if enhanced.score is None else enhanced.score
    for reason in enhanced.reasons:
        if reason not in merged.reasons:
            merged.reasons.append(reason)
    merged.pattern_influence = PatternInfluence(pattern_id=pattern.id, added_resources=additions)
    return merged


def pattern_index(pattern_hits: Sequence[Hit[PatternRecord]]) -> Dict[str, PatternRecord]:
    return {hit.record.id: hit.record for hit in pattern_hits}
