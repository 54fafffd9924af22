"""
Data model for the resource-solution assembly pipeline.

Records read from the vector index (capabilities, patterns) are frozen
snapshots. Candidate solutions and dependency edges are request-scoped
values created and mutated by a single recommendation run.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, List, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Reasoning output and pattern payloads sometimes name the core API group explicitly
_CORE_GROUP_ALIASES = {"core", "v1core", "''", '""'}


class ResourceIdentifier(BaseModel):
    """(group, version, kind) triple identifying a cluster resource type."""

    model_config = ConfigDict(frozen=True)

    group: str = Field(default="", description="API group; empty for the core group")
    version: str = Field(..., min_length=1, description="API version, e.g. v1beta1")
    kind: str = Field(..., min_length=1, description="Resource kind, e.g. ResourceGroup")

    @field_validator("group", mode="before")
    @classmethod
    def normalize_group(cls, v: Any) -> str:
        v = (v or "").strip()
        return "" if v.lower() in _CORE_GROUP_ALIASES else v

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def key(self) -> str:
        """Stable string form: ``group/version/Kind`` (``version/Kind`` for core)."""
        return f"{self.api_version}/{self.kind}"

    @property
    def plural(self) -> str:
        """Lower-case plural resource name following Kubernetes naming conventions."""
        name = self.kind.lower()
        if name.endswith("y") and len(name) > 1 and name[-2] not in "aeiou":
            return name[:-1] + "ies"
        if name.endswith(("s", "x", "z", "ch", "sh")):
            return name + "es"
        return name + "s"

    @property
    def resource_name(self) -> str:
        """``plural.group`` as used for CRD names (``plural`` for core kinds)."""
        return f"{self.plural}.{self.group}" if self.group else self.plural

    @classmethod
    def parse(cls, value: Union[str, Dict[str, Any], "ResourceIdentifier"]) -> "ResourceIdentifier":
        """
        Coerce a key string or mapping into a ResourceIdentifier.

        Accepts ``group/version/Kind``, ``version/Kind``, ``{"group", "version", "kind"}``
        and ``{"apiVersion", "kind"}``. Raises ValueError for anything else.
        """
        if isinstance(value, ResourceIdentifier):
            return value
        if isinstance(value, dict):
            if "apiVersion" in value:
                api_version = str(value["apiVersion"])
                group, _, version = api_version.rpartition("/")
                return cls(group=group, version=version, kind=value.get("kind", ""))
            return cls(
                group=value.get("group", ""),
                version=value.get("version", ""),
                kind=value.get("kind", ""),
            )
        if isinstance(value, str):
            parts = [p.strip() for p in value.strip().split("/")]
            if len(parts) == 3 and all(parts[1:]):
                return cls(group=parts[0], version=parts[1], kind=parts[2])
            if len(parts) == 2 and all(parts):
                return cls(group="", version=parts[0], kind=parts[1])
        raise ValueError(f"Cannot parse resource identifier from {value!r}")

    def __str__(self) -> str:
        return self.key


class ComplexityTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EdgeKind(str, Enum):
    FOUNDATION = "foundation"
    REFERENCE = "reference"
    OPTIONAL = "optional"

    @property
    def strength(self) -> int:
        return {"foundation": 3, "reference": 2, "optional": 1}[self.value]


class HierarchyTier(str, Enum):
    COMPOSITE = "composite"
    OPERATOR = "operator"
    PRIMITIVE = "primitive"

    @property
    def rank(self) -> int:
        """Higher is preferred when scores tie."""
        return {"composite": 3, "operator": 2, "primitive": 1}[self.value]


class CapabilityRecord(BaseModel):
    """Semantic description of one cluster resource type."""

    model_config = ConfigDict(frozen=True)

    id: str
    resource: ResourceIdentifier
    description: str = ""
    use_case: str = ""
    capability_tags: FrozenSet[str] = frozenset()
    provider_tags: FrozenSet[str] = frozenset()
    complexity_tier: ComplexityTier = ComplexityTier.MEDIUM
    embedding_vector: Optional[Tuple[float, ...]] = None


class PatternRecord(BaseModel):
    """Organizational rule: intents resembling the trigger should include these resources."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    trigger_description: str
    triggers: Tuple[str, ...] = ()
    suggested_resources: Tuple[ResourceIdentifier, ...] = ()
    rationale: str = ""
    embedding_vector: Optional[Tuple[float, ...]] = None

    @field_validator("triggers", mode="before")
    @classmethod
    def lowercase_triggers(cls, v: Any) -> Tuple[str, ...]:
        return tuple(str(t).strip().lower() for t in (v or ()) if str(t).strip())

    @field_validator("suggested_resources", mode="before")
    @classmethod
    def parse_resources(cls, v: Any) -> Tuple[ResourceIdentifier, ...]:
        return tuple(ResourceIdentifier.parse(r) for r in (v or ()))


RecordT = TypeVar("RecordT", bound=BaseModel)


class Hit(BaseModel, Generic[RecordT]):
    """A retrieved record with its similarity score in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    record: RecordT
    score: float = Field(..., ge=0.0, le=1.0)


class DependencyEdge(BaseModel):
    """Directed structural relation discovered from a resource schema."""

    model_config = ConfigDict(frozen=True)

    dependent: ResourceIdentifier
    requires: ResourceIdentifier
    kind: EdgeKind
    field_path: str = ""
    rule: str = ""


class PatternInfluence(BaseModel):
    pattern_id: str
    added_resources: List[ResourceIdentifier] = Field(default_factory=list)


class CandidateSolution(BaseModel):
    """One proposed set of resources answering an intent."""

    resources: List[ResourceIdentifier] = Field(default_factory=list)
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    description: str = ""
    reasons: List[str] = Field(default_factory=list)
    pattern_influence: Optional[PatternInfluence] = None
    dependency_injected: List[ResourceIdentifier] = Field(default_factory=list)
    was_incomplete: bool = False
    warnings: List[str] = Field(default_factory=list)

    def contains(self, resource: ResourceIdentifier) -> bool:
        return resource in self.resources

    def resource_set(self) -> FrozenSet[ResourceIdentifier]:
        return frozenset(self.resources)

    def append_resources(self, resources: List[ResourceIdentifier]) -> List[ResourceIdentifier]:
        """Append resources not already present, keeping existing order. Returns what was added."""
        added = []
        for resource in resources:
            if resource not in self.resources:
                self.resources.append(resource)
                added.append(resource)
        return added

    def add_warning(self, warning: str) -> None:
        if warning not in self.warnings:
            self.warnings.append(warning)


def clamp_score(value: Any, default: float = 0.0) -> float:
    """Coerce an untrusted score into [0, 100]."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    if score != score:  # NaN
        return default
    return round(min(100.0, max(0.0, score)), 2)


class RecommendOptions(BaseModel):
    max_solutions: int = Field(default=5, ge=1, le=20)


class RecommendationResult(BaseModel):
    """What the recommender hands back to the transport layer."""

    solutions: List[CandidateSolution] = Field(default_factory=list)
    degraded: bool = False
    pass1_solutions: List[CandidateSolution] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    stages: List[str] = Field(default_factory=list)
