import re
from typing import Iterable, List, Optional, Pattern

from k8s_recommender.core.models import CapabilityRecord, HierarchyTier, ResourceIdentifier


class ResourceHierarchizer:
    """
    Classifies a resource type into an abstraction tier.

    Rules, first match wins:
      1. organization composite markers (group marker, kind prefix, or a
         composite capability tag) -> composite
      2. group matches a known third-party operator namespace -> operator
      3. anything else -> primitive

    The tier is a tie-breaker for ranking, never a filter.
    """

    def __init__(
        self,
        composite_group_markers: Iterable[str] = (),
        composite_kind_prefixes: Iterable[str] = (),
        composite_capability_tags: Iterable[str] = (),
        operator_group_patterns: Iterable[str] = (),
    ) -> None:
        self.composite_group_markers: List[str] = [m.lower() for m in composite_group_markers if m]
        self.composite_kind_prefixes: List[str] = [p for p in composite_kind_prefixes if p]
        self.composite_capability_tags = {t.lower() for t in composite_capability_tags if t}
        self.operator_group_patterns: List[Pattern[str]] = [re.compile(p) for p in operator_group_patterns if p]

    @classmethod
    def from_config(cls, hierarchy_config: dict) -> "ResourceHierarchizer":
        return cls(
            composite_group_markers=hierarchy_config.get("composite_group_markers", ()),
            composite_kind_prefixes=hierarchy_config.get("composite_kind_prefixes", ()),
            composite_capability_tags=hierarchy_config.get("composite_capability_tags", ()),
            operator_group_patterns=hierarchy_config.get("operator_group_patterns", ()),
        )

    def _is_composite(self, identifier: ResourceIdentifier, capability: Optional[CapabilityRecord]) -> bool:
        group = identifier.group.lower()
        if group and any(marker in group for marker in self.composite_group_markers):
            return True
        if any(identifier.kind.startswith(prefix) for prefix in self.composite_kind_prefixes):
            return True
        if capability is not None:
            tags = {t.lower() for t in capability.capability_tags}
            if tags & self.composite_capability_tags:
                return True
        return False

    def _is_operator(self, identifier: ResourceIdentifier) -> bool:
        group = identifier.group.lower()
        return bool(group) and any(p.search(group) for p in self.operator_group_patterns)

    def tier(self, identifier: ResourceIdentifier, capability: Optional[CapabilityRecord] = None) -> HierarchyTier:
        if self._is_composite(identifier, capability):
            return HierarchyTier.COMPOSITE
        if self._is_operator(identifier):
            return HierarchyTier.OPERATOR
        return HierarchyTier.PRIMITIVE

    def best_tier(self, identifiers: Iterable[ResourceIdentifier], capabilities: Optional[dict] = None) -> HierarchyTier:
        """Highest tier among ``identifiers``; primitive for an empty list."""
        capabilities = capabilities or {}
        tiers = [self.tier(i, capabilities.get(i)) for i in identifiers]
        return max(tiers, key=lambda t: t.rank, default=HierarchyTier.PRIMITIVE)
