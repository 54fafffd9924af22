"""Tests for OpenAPI flattening and MCP-backed CRD schema introspection."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from k8s_recommender.core.models import ResourceIdentifier
from k8s_recommender.core.schema import MCPClusterIntrospection, flatten_openapi_schema
from k8s_recommender.utils.exceptions import RecommenderError, SchemaUnavailableError

FIREWALL_RULE = ResourceIdentifier.parse("dbforpostgresql.azure.upbound.io/v1beta1/FlexibleServerFirewallRule")

OPENAPI_SCHEMA = {
    "type": "object",
    "properties": {
        "apiVersion": {"type": "string"},
        "metadata": {"type": "object"},
        "spec": {
            "type": "object",
            "required": ["forProvider"],
            "properties": {
                "forProvider": {
                    "type": "object",
                    "required": ["serverName"],
                    "properties": {
                        "serverName": {"type": "string"},
                        "serverNameRef": {"type": "object", "properties": {"name": {"type": "string"}}, "required": ["name"]},
                        "rules": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "required": ["subnetName"],
                                "properties": {"subnetName": {"type": "string"}},
                            },
                        },
                    },
                },
                "providerConfigRef": {"type": "object"},
            },
        },
    },
}


def _crd(version="v1beta1", schema=None, resource_version="4711"):
    return {
        "metadata": {"name": FIREWALL_RULE.resource_name, "resourceVersion": resource_version},
        "spec": {
            "versions": [
                {"name": version, "schema": {"openAPIV3Schema": schema or OPENAPI_SCHEMA}},
            ]
        },
    }


def _introspection(result=None, side_effect=None):
    mcp_client = MagicMock()
    mcp_client.call_tool = AsyncMock(return_value=result, side_effect=side_effect)
    return MCPClusterIntrospection(mcp_client), mcp_client


# =============================================================================
# Schema flattening
# =============================================================================


class TestFlattenOpenAPISchema:
    def setup_method(self):
        self.fields = {f.path: f for f in flatten_openapi_schema(OPENAPI_SCHEMA)}

    def test_top_level_properties_present(self):
        assert self.fields["spec"].required is True
        assert self.fields["metadata"].required is True

    def test_required_chain(self):
        assert self.fields["spec.forProvider"].required is True
        assert self.fields["spec.forProvider.serverName"].required is True
        assert self.fields["spec.forProvider.serverName"].type == "string"

    def test_required_under_optional_parent_is_optional(self):
        assert self.fields["spec.forProvider.serverNameRef"].required is False
        assert self.fields["spec.forProvider.serverNameRef.name"].required is False

    def test_array_items_walked(self):
        item = self.fields["spec.forProvider.rules[].subnetName"]
        assert item.required is False
        assert item.name == "subnetName"
        assert self.fields["spec.forProvider.rules"].type == "array"

    def test_malformed_schema_rejected(self):
        with pytest.raises(ValueError):
            flatten_openapi_schema({"properties": {"spec": "not-an-object"}})
        with pytest.raises(ValueError):
            flatten_openapi_schema(None)


# =============================================================================
# MCP introspection
# =============================================================================


class TestMCPClusterIntrospection:
    @pytest.mark.asyncio
    async def test_reads_crd_schema(self):
        introspection, mcp_client = _introspection({"success": True, "data": _crd()})

        document = await introspection.get_schema(FIREWALL_RULE)

        mcp_client.call_tool.assert_awaited_once_with(
            "kubectl_get_crd_schema",
            crdName="flexibleserverfirewallrules.dbforpostgresql.azure.upbound.io",
        )
        assert document.identifier == FIREWALL_RULE
        assert document.version == "4711"
        assert "spec.forProvider.serverName" in {f.path for f in document.fields}

    @pytest.mark.asyncio
    async def test_accepts_json_text_content_blocks(self):
        blocks = [{"type": "text", "text": json.dumps(_crd())}]
        introspection, _ = _introspection(blocks)

        document = await introspection.get_schema(FIREWALL_RULE)

        assert document is not None
        assert document.version == "4711"

    @pytest.mark.asyncio
    async def test_core_kinds_have_no_crd(self):
        introspection, mcp_client = _introspection()

        assert await introspection.get_schema(ResourceIdentifier.parse("v1/Secret")) is None
        mcp_client.call_tool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_found_is_none(self):
        introspection, _ = _introspection({"success": False, "error": "CRD NotFound"})
        assert await introspection.get_schema(FIREWALL_RULE) is None

    @pytest.mark.asyncio
    async def test_unserved_version_is_none(self):
        introspection, _ = _introspection({"success": True, "data": _crd(version="v1alpha1")})
        assert await introspection.get_schema(FIREWALL_RULE) is None

    @pytest.mark.asyncio
    async def test_tool_error_raises(self):
        introspection, _ = _introspection({"success": False, "error": "forbidden"})

        with pytest.raises(SchemaUnavailableError) as exc_info:
            await introspection.get_schema(FIREWALL_RULE)
        assert exc_info.value.identifier == FIREWALL_RULE

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        introspection, _ = _introspection(side_effect=RecommenderError("connection reset"))

        with pytest.raises(SchemaUnavailableError):
            await introspection.get_schema(FIREWALL_RULE)

    @pytest.mark.asyncio
    async def test_malformed_response_raises(self):
        introspection, _ = _introspection("<html>bad gateway</html>")

        with pytest.raises(SchemaUnavailableError):
            await introspection.get_schema(FIREWALL_RULE)

    @pytest.mark.asyncio
    async def test_malformed_schema_raises(self):
        crd = _crd(schema={"properties": {"spec": []}})
        introspection, _ = _introspection({"success": True, "data": crd})

        with pytest.raises(SchemaUnavailableError):
            await introspection.get_schema(FIREWALL_RULE)
