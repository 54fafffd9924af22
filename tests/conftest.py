"""Pytest configuration and fixtures."""

import os

import pytest

from k8s_recommender.core.hierarchy import ResourceHierarchizer
from k8s_recommender.core.models import CapabilityRecord, Hit, PatternRecord, ResourceIdentifier
from tests.fakes import schema


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["OPENAI_API_KEY"] = "test-openai-key"


# =============================================================================
# Azure PostgreSQL scenario
# =============================================================================

AZURE_GROUP = "azure.upbound.io"
POSTGRES_GROUP = "dbforpostgresql.azure.upbound.io"

FIREWALL_RULE = ResourceIdentifier(group=POSTGRES_GROUP, version="v1beta1", kind="FlexibleServerFirewallRule")
FLEXIBLE_SERVER = ResourceIdentifier(group=POSTGRES_GROUP, version="v1beta1", kind="FlexibleServer")
RESOURCE_GROUP = ResourceIdentifier(group=AZURE_GROUP, version="v1beta1", kind="ResourceGroup")


@pytest.fixture
def capability_hits():
    return [
        Hit(record=CapabilityRecord(
            id="flexible-server",
            resource=FLEXIBLE_SERVER,
            description="Managed PostgreSQL database server on Azure",
            capability_tags={"postgresql", "database"},
            provider_tags={"azure"},
        ), score=0.9),
        Hit(record=CapabilityRecord(
            id="firewall-rule",
            resource=FIREWALL_RULE,
            description="Firewall rule allowing client IP ranges to reach a PostgreSQL server",
            capability_tags={"networking", "firewall"},
            provider_tags={"azure"},
        ), score=0.7),
        Hit(record=CapabilityRecord(
            id="resource-group",
            resource=RESOURCE_GROUP,
            description="Azure resource group",
            provider_tags={"azure"},
        ), score=0.3),
    ]


@pytest.fixture
def azure_pattern():
    return PatternRecord(
        id="azure-resource-group",
        name="Azure resource group",
        trigger_description="Every Azure workload is deployed into a dedicated resource group",
        triggers=["Azure"],
        suggested_resources=[RESOURCE_GROUP.key],
        rationale="Resource groups scope lifecycle and access for Azure resources",
    )


@pytest.fixture
def pattern_hits(azure_pattern):
    return [Hit(record=azure_pattern, score=0.6)]


@pytest.fixture
def azure_schemas():
    """FirewallRule requires a server by name; the server only optionally names its resource group."""
    return {
        FIREWALL_RULE.key: schema(FIREWALL_RULE, {
            "spec": ("object", True),
            "spec.forProvider": ("object", True),
            "spec.forProvider.serverName": ("string", True),
            "spec.forProvider.serverNameRef": ("object", False),
            "spec.forProvider.startIpAddress": ("string", True),
        }),
        FLEXIBLE_SERVER.key: schema(FLEXIBLE_SERVER, {
            "spec": ("object", True),
            "spec.forProvider": ("object", True),
            "spec.forProvider.resourceGroupName": ("string", False),
            "spec.forProvider.administratorPasswordSecretRef": ("object", False),
        }),
        RESOURCE_GROUP.key: schema(RESOURCE_GROUP, {
            "spec": ("object", True),
            "spec.forProvider": ("object", True),
            "spec.forProvider.location": ("string", True),
        }),
    }


@pytest.fixture
def hierarchizer():
    return ResourceHierarchizer(
        composite_group_markers=["platform."],
        composite_capability_tags=["composite"],
        operator_group_patterns=[r".*\.upbound\.io$"],
    )
