"""
Response shapes for the reasoning service.

Everything the model returns is untrusted: scores are clamped into range and
resource references are coerced into ResourceIdentifiers before use.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from k8s_recommender.core.models import ResourceIdentifier, clamp_score


def _parse_resources(value: Any) -> List[ResourceIdentifier]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("resources must be a list")
    return [ResourceIdentifier.parse(item) for item in value]


def _parse_reasons(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if str(v).strip()]


class SelectedSolution(BaseModel):
    resources: List[ResourceIdentifier] = Field(..., min_length=1, description="Resources in deployment order")
    score: float = Field(default=0.0, description="Draft fit score, 0-100")
    description: str = Field(default="", description="One-line summary of the solution")
    reasons: List[str] = Field(default_factory=list, description="Why this solution fits the intent")

    @field_validator("resources", mode="before")
    @classmethod
    def parse_resources(cls, v: Any) -> List[ResourceIdentifier]:
        return _parse_resources(v)

    @field_validator("reasons", mode="before")
    @classmethod
    def parse_reasons(cls, v: Any) -> List[str]:
        return _parse_reasons(v)

    @field_validator("score", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> float:
        return clamp_score(v)


class SelectResponse(BaseModel):
    solutions: List[SelectedSolution] = Field(..., min_length=1)


class RankedSolution(BaseModel):
    index: int = Field(..., ge=0, description="Index of the candidate being ranked")
    score: float = Field(..., description="Final score, 0-100")
    reasons: List[str] = Field(default_factory=list)

    @field_validator("reasons", mode="before")
    @classmethod
    def parse_reasons(cls, v: Any) -> List[str]:
        return _parse_reasons(v)

    @field_validator("score", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> float:
        return clamp_score(v)


class RankResponse(BaseModel):
    rankings: List[RankedSolution] = Field(..., min_length=1)


class EnhancedSolution(BaseModel):
    index: int = Field(..., ge=0, description="Index of the solution being enhanced")
    resources: List[ResourceIdentifier] = Field(..., description="Full resource list after enhancement")
    score: Optional[float] = Field(default=None, description="Updated score, 0-100; omitted keeps the Pass-1 score")
    reasons: List[str] = Field(default_factory=list)
    pattern_id: Optional[str] = Field(default=None, description="Id of the applied pattern, if any")

    @field_validator("resources", mode="before")
    @classmethod
    def parse_resources(cls, v: Any) -> List[ResourceIdentifier]:
        return _parse_resources(v)

    @field_validator("reasons", mode="before")
    @classmethod
    def parse_reasons(cls, v: Any) -> List[str]:
        return _parse_reasons(v)

    @field_validator("score", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> Optional[float]:
        score = clamp_score(v, default=-1.0)
        return None if score < 0 else score


class EnhanceResponse(BaseModel):
    solutions: List[EnhancedSolution] = Field(default_factory=list)
