import operator
from enum import Enum
from typing import Annotated, List, Optional, TypedDict

from k8s_recommender.core.models import CandidateSolution, CapabilityRecord, Hit, PatternRecord


class RecommendationStage(str, Enum):
    IDLE = "idle"
    RETRIEVING_CAPABILITIES = "retrieving_capabilities"
    RETRIEVING_PATTERNS = "retrieving_patterns"
    SELECTING_CANDIDATES = "selecting_candidates"
    RESOLVING_DEPENDENCIES = "resolving_dependencies"
    RANKING_PASS1 = "ranking_pass1"
    ENHANCING_PASS2 = "enhancing_pass2"
    DONE = "done"
    ERROR = "error"


class RecommendationState(TypedDict, total=False):
    """
    Graph state for one recommendation request.

    Each stage writes its own key and never mutates an earlier stage's
    output, so any snapshot taken between steps is internally consistent.
    """
    intent: str
    max_solutions: int

    # Retrieval (runs in parallel)
    capability_hits: List[Hit[CapabilityRecord]]
    pattern_hits: List[Hit[PatternRecord]]

    # Pass 1
    candidates: List[CandidateSolution]            # as selected, draft scores
    completed_candidates: List[CandidateSolution]  # after dependency injection
    pass1_solutions: List[CandidateSolution]       # ranked, deduplicated

    # Pass 2
    final_solutions: List[CandidateSolution]

    stages: Annotated[List[str], operator.add]
    warnings: Annotated[List[str], operator.add]
    degraded: Annotated[bool, operator.or_]
    # Set when a stage fails terminally; the run then ends in the ERROR stage
    error: Optional[str]
    failed_stage: Optional[str]
    error_cause: Optional[str]
