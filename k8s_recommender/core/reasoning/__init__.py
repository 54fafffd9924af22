from .reasoning_service import BaseReasoningService, PromptKind, ReasoningService, extract_json
from .schemas import (
    EnhancedSolution,
    EnhanceResponse,
    RankedSolution,
    RankResponse,
    SelectedSolution,
    SelectResponse,
)

__all__ = [
    "BaseReasoningService",
    "PromptKind",
    "ReasoningService",
    "extract_json",
    "EnhancedSolution",
    "EnhanceResponse",
    "RankedSolution",
    "RankResponse",
    "SelectedSolution",
    "SelectResponse",
]
