"""Tests for dependency rules and the schema dependency resolver."""

import asyncio

import pytest

from k8s_recommender.core.models import CandidateSolution, EdgeKind, ResourceIdentifier
from k8s_recommender.core.schema import (
    DependencyRuleTable,
    KindIndex,
    SchemaDependencyResolver,
    SchemaField,
)
from k8s_recommender.utils.exceptions import ConfigError, SchemaUnavailableError
from tests.conftest import FIREWALL_RULE, FLEXIBLE_SERVER, RESOURCE_GROUP
from tests.fakes import StaticIntrospection, schema

BUCKET = ResourceIdentifier.parse("s3.aws.upbound.io/v1beta1/Bucket")
KEY = ResourceIdentifier.parse("kms.aws.upbound.io/v1beta1/Key")
APP = ResourceIdentifier.parse("platform.example.io/v1alpha1/App")


# =============================================================================
# Rule table
# =============================================================================


class TestDependencyRules:
    def setup_method(self):
        self.rules = DependencyRuleTable.load()

    def test_required_name_reference_is_foundation(self):
        match = self.rules.match(SchemaField(path="spec.forProvider.serverName", type="string", required=True))
        assert match.rule == "name-reference"
        assert match.kind == "Server"
        assert match.edge_kind is EdgeKind.FOUNDATION

    def test_optional_name_reference_is_reference(self):
        match = self.rules.match(SchemaField(path="spec.forProvider.resourceGroupName", type="string"))
        assert match.kind == "ResourceGroup"
        assert match.edge_kind is EdgeKind.REFERENCE

    def test_secret_reference_has_fixed_target(self):
        match = self.rules.match(SchemaField(path="spec.forProvider.passwordSecretRef", type="object", required=True))
        assert match.rule == "secret-reference"
        assert match.target == ResourceIdentifier.parse("v1/Secret")
        assert match.edge_kind is EdgeKind.REFERENCE

    def test_selector_is_weak(self):
        match = self.rules.match(SchemaField(path="spec.forProvider.serverSelector", type="object", required=True))
        assert match.kind == "Server"
        assert match.edge_kind is EdgeKind.REFERENCE

    def test_type_mismatch_does_not_match(self):
        assert self.rules.match(SchemaField(path="spec.forProvider.serverName", type="object", required=True)) is None

    def test_ignored_paths(self):
        assert self.rules.match(SchemaField(path="spec.providerConfigRef", type="object", required=True)) is None
        assert self.rules.match(SchemaField(path="metadata.ownerName", type="string", required=True)) is None

    def test_extra_rules_evaluated_first(self, tmp_path):
        extra = tmp_path / "rules.yaml"
        extra.write_text(
            "ignore_paths:\n"
            "  - spec.forProvider.legacy\n"
            "rules:\n"
            "  - name: vault-reference\n"
            "    pattern: 'vaultName'\n"
            "    types: [string]\n"
            "    kind: KeyVault\n"
        )

        rules = DependencyRuleTable.load(extra_paths=[extra])

        match = rules.match(SchemaField(path="spec.forProvider.vaultName", type="string", required=True))
        assert match.rule == "vault-reference"
        assert match.kind == "KeyVault"
        assert "spec.forProvider.legacy" in rules.ignore_paths
        assert "metadata" in rules.ignore_paths

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            DependencyRuleTable.load(tmp_path / "missing.yaml")

    def test_rule_without_kind_source_raises(self, tmp_path):
        bad = tmp_path / "rules.yaml"
        bad.write_text("rules:\n  - name: broken\n    pattern: 'fooName'\n")

        with pytest.raises(ConfigError):
            DependencyRuleTable.load(bad)


# =============================================================================
# Kind lookup
# =============================================================================


class TestKindIndex:
    def test_exact_kind_preferred_over_suffix(self):
        server = ResourceIdentifier(group=FLEXIBLE_SERVER.group, version="v1beta1", kind="Server")
        index = KindIndex([FLEXIBLE_SERVER, server])
        assert index.lookup("Server", near=FIREWALL_RULE) == server

    def test_suffix_match(self):
        index = KindIndex([FLEXIBLE_SERVER, RESOURCE_GROUP])
        assert index.lookup("Server", near=FIREWALL_RULE) == FLEXIBLE_SERVER

    def test_same_group_preferred(self):
        other_group = ResourceIdentifier.parse("dbformysql.azure.upbound.io/v1beta1/FlexibleServer")
        index = KindIndex([other_group, FLEXIBLE_SERVER])
        assert index.lookup("FlexibleServer", near=FIREWALL_RULE) == FLEXIBLE_SERVER

    def test_parent_group_matches(self):
        index = KindIndex([RESOURCE_GROUP])
        assert index.lookup("ResourceGroup", near=FLEXIBLE_SERVER) == RESOURCE_GROUP

    def test_ambiguous_unrelated_groups_unresolved(self):
        a = ResourceIdentifier.parse("a.example.com/v1/Network")
        b = ResourceIdentifier.parse("b.example.org/v1/Network")
        index = KindIndex([a, b])
        assert index.lookup("Network", near=BUCKET) is None

    def test_never_resolves_to_itself(self):
        index = KindIndex([FLEXIBLE_SERVER])
        assert index.lookup("FlexibleServer", near=FLEXIBLE_SERVER) is None


# =============================================================================
# Resolver
# =============================================================================


def _chain_schemas():
    """App needs a Bucket, the Bucket needs a Key."""
    return {
        APP.key: schema(APP, {"spec": ("object", True), "spec.bucketName": ("string", True)}),
        BUCKET.key: schema(BUCKET, {
            "spec": ("object", True),
            "spec.forProvider": ("object", True),
            "spec.forProvider.keyName": ("string", True),
        }),
        KEY.key: schema(KEY, {"spec": ("object", True)}),
    }


class TestSchemaDependencyResolver:
    @pytest.mark.asyncio
    async def test_resolve_edges(self, azure_schemas):
        resolver = SchemaDependencyResolver(StaticIntrospection(azure_schemas))
        index = KindIndex([FIREWALL_RULE, FLEXIBLE_SERVER, RESOURCE_GROUP])

        edges = await resolver.resolve(FIREWALL_RULE, index)

        assert len(edges) == 1
        assert edges[0].requires == FLEXIBLE_SERVER
        assert edges[0].kind is EdgeKind.FOUNDATION
        assert edges[0].field_path == "spec.forProvider.serverName"

    @pytest.mark.asyncio
    async def test_strongest_edge_kept_per_target(self, azure_schemas):
        """serverName (foundation) and serverNameRef (reference) point at the same server."""
        resolver = SchemaDependencyResolver(StaticIntrospection(azure_schemas))
        edges = await resolver.resolve(FIREWALL_RULE, KindIndex([FLEXIBLE_SERVER]))
        assert [e.kind for e in edges] == [EdgeKind.FOUNDATION]

    @pytest.mark.asyncio
    async def test_missing_schema_means_no_dependencies(self):
        resolver = SchemaDependencyResolver(StaticIntrospection({}))
        scope = resolver.scope()

        assert await scope.resolve(ResourceIdentifier.parse("v1/ConfigMap")) == []
        assert scope.warnings == {}

    @pytest.mark.asyncio
    async def test_transitive_injection(self):
        resolver = SchemaDependencyResolver(StaticIntrospection(_chain_schemas()))
        scope = resolver.scope(KindIndex([APP, BUCKET, KEY]))
        candidate = CandidateSolution(resources=[APP])

        injected = await scope.complete(candidate)

        assert injected == [BUCKET, KEY]
        assert candidate.resources == [APP, BUCKET, KEY]
        assert candidate.dependency_injected == [BUCKET, KEY]
        assert candidate.was_incomplete is True
        assert candidate.warnings == []

    @pytest.mark.asyncio
    async def test_depth_limit_warns(self):
        resolver = SchemaDependencyResolver(StaticIntrospection(_chain_schemas()), max_depth=1)
        scope = resolver.scope(KindIndex([APP, BUCKET, KEY]))
        candidate = CandidateSolution(resources=[APP])

        await scope.complete(candidate)

        assert candidate.resources == [APP, BUCKET]
        assert any("depth limit" in w for w in candidate.warnings)

    @pytest.mark.asyncio
    async def test_complete_candidate_unchanged(self, azure_schemas):
        resolver = SchemaDependencyResolver(StaticIntrospection(azure_schemas))
        scope = resolver.scope(KindIndex([FIREWALL_RULE, FLEXIBLE_SERVER, RESOURCE_GROUP]))
        candidate = CandidateSolution(resources=[FLEXIBLE_SERVER, FIREWALL_RULE])

        assert await scope.complete(candidate) == []
        assert candidate.resources == [FLEXIBLE_SERVER, FIREWALL_RULE]
        assert candidate.was_incomplete is False

    @pytest.mark.asyncio
    async def test_schema_failure_recorded(self):
        introspection = StaticIntrospection({APP.key: SchemaUnavailableError("boom")})
        resolver = SchemaDependencyResolver(introspection)
        scope = resolver.scope()
        candidate = CandidateSolution(resources=[APP])

        await scope.complete(candidate)

        assert candidate.resources == [APP]
        assert scope.unresolved(candidate) == [APP]
        assert "Schema unavailable for platform.example.io/v1alpha1/App" in candidate.warnings[0]

    @pytest.mark.asyncio
    async def test_schema_timeout_recorded(self):
        introspection = StaticIntrospection(_chain_schemas(), delay=1.0)
        resolver = SchemaDependencyResolver(introspection, schema_fetch_timeout=0.05)
        scope = resolver.scope()

        assert await scope.resolve(APP) == []
        assert "timed out" in scope.warnings[APP]

    @pytest.mark.asyncio
    async def test_each_resource_fetched_once_per_scope(self, azure_schemas):
        introspection = StaticIntrospection(azure_schemas)
        resolver = SchemaDependencyResolver(introspection)
        scope = resolver.scope(KindIndex([FIREWALL_RULE, FLEXIBLE_SERVER, RESOURCE_GROUP]))
        candidates = [CandidateSolution(resources=[FIREWALL_RULE]) for _ in range(3)]

        await asyncio.gather(*(scope.complete(c) for c in candidates))

        assert introspection.calls.count(FIREWALL_RULE.key) == 1
        assert introspection.calls.count(FLEXIBLE_SERVER.key) == 1
        assert all(c.resources == [FIREWALL_RULE, FLEXIBLE_SERVER] for c in candidates)

    @pytest.mark.asyncio
    async def test_scopes_do_not_share_results(self, azure_schemas):
        introspection = StaticIntrospection(azure_schemas)
        resolver = SchemaDependencyResolver(introspection)

        await resolver.scope(KindIndex([FLEXIBLE_SERVER])).resolve(FIREWALL_RULE)
        await resolver.scope(KindIndex([FLEXIBLE_SERVER])).resolve(FIREWALL_RULE)

        assert introspection.calls.count(FIREWALL_RULE.key) == 2

    def test_rule_match_cache_keyed_by_schema_version(self, azure_schemas):
        resolver = SchemaDependencyResolver(StaticIntrospection({}), cache_enabled=True)
        index = KindIndex([FLEXIBLE_SERVER])
        original = azure_schemas[FIREWALL_RULE.key]

        assert resolver.edges_from_schema(original, index)[0].requires == FLEXIBLE_SERVER

        same_version = schema(FIREWALL_RULE, {"spec": ("object", True)}, version="1")
        assert resolver.edges_from_schema(same_version, index)[0].requires == FLEXIBLE_SERVER

        changed = schema(FIREWALL_RULE, {"spec": ("object", True)}, version="2")
        assert resolver.edges_from_schema(changed, index) == []
