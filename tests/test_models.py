"""Tests for the resource data model."""

import pytest
from pydantic import ValidationError

from k8s_recommender.core.models import (
    CandidateSolution,
    EdgeKind,
    Hit,
    PatternRecord,
    RecommendOptions,
    ResourceIdentifier,
    clamp_score,
)


class TestResourceIdentifier:
    def test_parse_key(self):
        identifier = ResourceIdentifier.parse("azure.upbound.io/v1beta1/ResourceGroup")
        assert identifier.group == "azure.upbound.io"
        assert identifier.version == "v1beta1"
        assert identifier.kind == "ResourceGroup"
        assert identifier.key == "azure.upbound.io/v1beta1/ResourceGroup"

    def test_parse_core_forms(self):
        expected = ResourceIdentifier(version="v1", kind="Secret")
        assert ResourceIdentifier.parse("v1/Secret") == expected
        assert ResourceIdentifier.parse("core/v1/Secret") == expected
        assert ResourceIdentifier.parse({"apiVersion": "v1", "kind": "Secret"}) == expected
        assert expected.key == "v1/Secret"

    def test_parse_api_version_mapping(self):
        identifier = ResourceIdentifier.parse({"apiVersion": "apps/v1", "kind": "Deployment"})
        assert identifier.api_version == "apps/v1"

    @pytest.mark.parametrize("value", ["Secret", "a/b/c/d", "", "group//Kind", 42])
    def test_parse_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            ResourceIdentifier.parse(value)

    def test_resource_name(self):
        assert ResourceIdentifier.parse("azure.upbound.io/v1beta1/ResourceGroup").resource_name == \
            "resourcegroups.azure.upbound.io"
        assert ResourceIdentifier.parse("kms.aws.upbound.io/v1beta1/Key").plural == "keys"
        assert ResourceIdentifier.parse("networking.k8s.io/v1/NetworkPolicy").plural == "networkpolicies"
        assert ResourceIdentifier.parse("v1/Secret").resource_name == "secrets"

    def test_hashable_and_frozen(self):
        identifier = ResourceIdentifier.parse("v1/Secret")
        assert {identifier, ResourceIdentifier.parse("v1/Secret")} == {identifier}
        with pytest.raises(ValidationError):
            identifier.kind = "ConfigMap"


class TestCandidateSolution:
    def test_append_keeps_order_and_skips_present(self):
        secret = ResourceIdentifier.parse("v1/Secret")
        config_map = ResourceIdentifier.parse("v1/ConfigMap")
        candidate = CandidateSolution(resources=[secret])

        added = candidate.append_resources([config_map, secret])

        assert added == [config_map]
        assert candidate.resources == [secret, config_map]
        assert candidate.contains(config_map)

    def test_warnings_deduplicated(self):
        candidate = CandidateSolution()
        candidate.add_warning("schema unavailable")
        candidate.add_warning("schema unavailable")
        assert candidate.warnings == ["schema unavailable"]

    def test_score_bounds(self):
        with pytest.raises(ValidationError):
            CandidateSolution(score=101)


class TestRecords:
    def test_pattern_normalizes_triggers_and_resources(self):
        pattern = PatternRecord(
            id="p",
            trigger_description="Azure workloads",
            triggers=[" Azure ", "", "AKS"],
            suggested_resources=["azure.upbound.io/v1beta1/ResourceGroup"],
        )
        assert pattern.triggers == ("azure", "aks")
        assert pattern.suggested_resources[0].kind == "ResourceGroup"

    def test_hit_score_range(self):
        pattern = PatternRecord(id="p", trigger_description="x")
        with pytest.raises(ValidationError):
            Hit(record=pattern, score=1.5)

    def test_edge_strength_order(self):
        assert EdgeKind.FOUNDATION.strength > EdgeKind.REFERENCE.strength > EdgeKind.OPTIONAL.strength


class TestScoresAndOptions:
    @pytest.mark.parametrize("value,expected", [(50, 50.0), (-3, 0.0), (140, 100.0), ("72.5", 72.5), ("high", 0.0), (None, 0.0), (float("nan"), 0.0)])
    def test_clamp_score(self, value, expected):
        assert clamp_score(value) == expected

    def test_max_solutions_bounds(self):
        assert RecommendOptions().max_solutions == 5
        with pytest.raises(ValidationError):
            RecommendOptions(max_solutions=0)
        with pytest.raises(ValidationError):
            RecommendOptions(max_solutions=21)
