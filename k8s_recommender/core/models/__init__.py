from .resource import (
    CandidateSolution,
    CapabilityRecord,
    ComplexityTier,
    DependencyEdge,
    EdgeKind,
    HierarchyTier,
    Hit,
    PatternInfluence,
    PatternRecord,
    RecommendationResult,
    RecommendOptions,
    ResourceIdentifier,
    clamp_score,
)

__all__ = [
    "CandidateSolution",
    "CapabilityRecord",
    "ComplexityTier",
    "DependencyEdge",
    "EdgeKind",
    "HierarchyTier",
    "Hit",
    "PatternInfluence",
    "PatternRecord",
    "RecommendationResult",
    "RecommendOptions",
    "ResourceIdentifier",
    "clamp_score",
]
