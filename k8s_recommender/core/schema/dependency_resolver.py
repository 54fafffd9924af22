"""
Schema Dependency Resolver.

Fetches a resource's schema, runs every field through the dependency rule
table and turns matches into DependencyEdges. Kind names found in field names
are mapped to concrete resource identifiers through the kinds known to the
current request (capability hits, pattern suggestions, candidate resources).

Edges are memoized per request through a ResolutionScope. Rule matches may
also be cached across requests, keyed by the schema's resource version.
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Tuple

from k8s_recommender.core.models import (
    CandidateSolution,
    DependencyEdge,
    EdgeKind,
    ResourceIdentifier,
)
from k8s_recommender.core.schema.dependency_rules import DependencyRuleTable, RuleMatch
from k8s_recommender.core.schema.introspection import ClusterIntrospection, SchemaDocument
from k8s_recommender.utils.logger import AgentLogger

resolver_logger = AgentLogger("SCHEMA_RESOLVER")


def _group_affinity(a: str, b: str) -> int:
    if a == b:
        return 2
    if a and b and (a.endswith("." + b) or b.endswith("." + a)):
        return 1
    return 0


class KindIndex:
    """Resource kinds known to one request, used to resolve a kind name to an identifier."""

    def __init__(self, identifiers: Iterable[ResourceIdentifier] = ()) -> None:
        self._identifiers: Dict[str, ResourceIdentifier] = {}
        self.add(identifiers)

    def add(self, identifiers: Iterable[ResourceIdentifier]) -> None:
        for identifier in identifiers:
            self._identifiers.setdefault(identifier.key, identifier)

    def __contains__(self, identifier: ResourceIdentifier) -> bool:
        return identifier.key in self._identifiers

    def __len__(self) -> int:
        return len(self._identifiers)

    def lookup(self, kind: str, near: ResourceIdentifier) -> Optional[ResourceIdentifier]:
        """
        Pick the identifier a field on ``near`` most likely refers to.

        Exact kind names beat suffix matches (``Server`` -> ``FlexibleServer``);
        within those, the same API group beats a parent/child group. Without any
        group relation the match must be unique.
        """
        wanted = kind.lower()
        known = [i for i in self._identifiers.values() if i != near]
        candidates = [i for i in known if i.kind.lower() == wanted]
        if not candidates:
            candidates = [i for i in known if i.kind.lower().endswith(wanted)]
        if not candidates:
            return None

        ranked = sorted(candidates, key=lambda i: (-_group_affinity(i.group, near.group), i.key))
        best = _group_affinity(ranked[0].group, near.group)
        if best == 0 and len(ranked) > 1:
            return None
        return ranked[0]


class ResolutionScope:
    """
    Per-request view of the resolver.

    Each identifier is resolved at most once per scope even when several
    candidates evaluate it concurrently. Scopes are never shared between
    requests.
    """

    def __init__(self, resolver: "SchemaDependencyResolver", kind_index: Optional[KindIndex] = None) -> None:
        self.resolver = resolver
        self.kind_index = kind_index if kind_index is not None else KindIndex()
        self.warnings: Dict[ResourceIdentifier, str] = {}
        self._tasks: Dict[ResourceIdentifier, "asyncio.Future[List[DependencyEdge]]"] = {}

    async def resolve(self, identifier: ResourceIdentifier) -> List[DependencyEdge]:
        task = self._tasks.get(identifier)
        if task is None:
            task = asyncio.ensure_future(self.resolver._resolve_edges(identifier, self))
            self._tasks[identifier] = task
        return list(await task)

    async def complete(self, candidate: CandidateSolution) -> List[ResourceIdentifier]:
        """
        Append every missing foundation dependency to ``candidate``.

        Injected resources are resolved in turn, up to the resolver's depth
        limit. Existing resources keep their order; injections go at the end.
        Returns the resources that were added.
        """
        injected: List[ResourceIdentifier] = []
        frontier = list(candidate.resources)
        for _ in range(self.resolver.max_depth):
            if not frontier:
                break
            results = await asyncio.gather(*(self.resolve(r) for r in frontier))
            next_frontier: List[ResourceIdentifier] = []
            for edges in results:
                for edge in edges:
                    if edge.kind is EdgeKind.FOUNDATION:
                        added = candidate.append_resources([edge.requires])
                        injected.extend(added)
                        next_frontier.extend(added)
            frontier = next_frontier

        if frontier:
            candidate.add_warning(
                f"Dependency depth limit ({self.resolver.max_depth}) reached; "
                f"dependencies of {', '.join(r.key for r in frontier)} were not checked"
            )
        if injected:
            candidate.was_incomplete = True
            for resource in injected:
                if resource not in candidate.dependency_injected:
                    candidate.dependency_injected.append(resource)
        for resource in candidate.resources:
            if resource in self.warnings:
                candidate.add_warning(self.warnings[resource])
        return injected

    def unresolved(self, candidate: CandidateSolution) -> List[ResourceIdentifier]:
        """Resources of ``candidate`` whose schema could not be read."""
        return [r for r in candidate.resources if r in self.warnings]


class SchemaDependencyResolver:
    """Derives dependency edges for resource types from their schemas."""

    def __init__(
        self,
        introspection: ClusterIntrospection,
        rules: Optional[DependencyRuleTable] = None,
        schema_fetch_timeout: float = 10.0,
        cache_enabled: bool = False,
        max_depth: int = 5,
    ) -> None:
        self.introspection = introspection
        self.rules = rules or DependencyRuleTable.load()
        self.schema_fetch_timeout = schema_fetch_timeout
        self.cache_enabled = cache_enabled
        self.max_depth = max(1, max_depth)
        # identifier -> (schema version, rule matches)
        self._match_cache: Dict[ResourceIdentifier, Tuple[str, List[RuleMatch]]] = {}

    def scope(self, kind_index: Optional[KindIndex] = None) -> ResolutionScope:
        return ResolutionScope(self, kind_index)

    async def resolve(
        self,
        identifier: ResourceIdentifier,
        kind_index: Optional[KindIndex] = None,
    ) -> List[DependencyEdge]:
        """One-off resolution outside any request scope."""
        return await self.scope(kind_index).resolve(identifier)

    def _rule_matches(self, document: SchemaDocument) -> List[RuleMatch]:
        identifier = document.identifier
        if self.cache_enabled and document.version:
            cached = self._match_cache.get(identifier)
            if cached and cached[0] == document.version:
                return cached[1]
        matches = [m for m in (self.rules.match(f) for f in document.fields) if m is not None]
        if self.cache_enabled and document.version:
            self._match_cache[identifier] = (document.version, matches)
        return matches

    def edges_from_schema(self, document: SchemaDocument, kind_index: KindIndex) -> List[DependencyEdge]:
        """
        Build edges for one schema. When several fields point at the same
        target, the strongest edge kind is kept.
        """
        identifier = document.identifier
        edges: Dict[ResourceIdentifier, DependencyEdge] = {}
        for match in self._rule_matches(document):
            target = match.target or (match.kind and kind_index.lookup(match.kind, near=identifier))
            if not target or target == identifier:
                continue
            existing = edges.get(target)
            if existing and existing.kind.strength >= match.edge_kind.strength:
                continue
            edges[target] = DependencyEdge(
                dependent=identifier,
                requires=target,
                kind=match.edge_kind,
                field_path=match.field_path,
                rule=match.rule,
            )
        return list(edges.values())

    async def _resolve_edges(self, identifier: ResourceIdentifier, scope: ResolutionScope) -> List[DependencyEdge]:
        try:
            document = await asyncio.wait_for(
                self.introspection.get_schema(identifier),
                timeout=self.schema_fetch_timeout,
            )
        except asyncio.TimeoutError:
            return self._unavailable(identifier, scope, f"schema fetch timed out after {self.schema_fetch_timeout}s")
        except Exception as e:
            return self._unavailable(identifier, scope, str(e))

        if document is None:
            resolver_logger.log_structured(
                level="DEBUG",
                message="No schema for resource; treating as dependency-free",
                extra={"resource": identifier.key}
            )
            return []

        edges = self.edges_from_schema(document, scope.kind_index)
        resolver_logger.log_structured(
            level="DEBUG",
            message="Resolved dependency edges",
            extra={
                "resource": identifier.key,
                "edges": [f"{e.kind.value}:{e.requires.key}" for e in edges],
            }
        )
        return edges

    def _unavailable(self, identifier: ResourceIdentifier, scope: ResolutionScope, reason: str) -> List[DependencyEdge]:
        warning = f"Schema unavailable for {identifier.key}: {reason}; dependencies unknown"
        scope.warnings[identifier] = warning
        resolver_logger.log_structured(
            level="WARNING",
            message="Schema unavailable; resource treated as dependency-free",
            extra={"resource": identifier.key, "reason": reason}
        )
        return []
