"""
Cluster introspection collaborator.

Returns the schema of a resource type as a flat list of fields with their type
and whether they must be present for the resource to provision. The default
implementation reads CustomResourceDefinitions through the cluster MCP tool
server.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from k8s_recommender.core.models import ResourceIdentifier
from k8s_recommender.utils.exceptions import RecommenderError, SchemaUnavailableError
from k8s_recommender.utils.logger import AgentLogger
from k8s_recommender.utils.mcp_client import MCPAdapterClient

introspection_logger = AgentLogger("CLUSTER_INTROSPECTION")

_NOT_FOUND_MARKERS = ("notfound", "not found")


class SchemaField(BaseModel):
    """
    One field of a resource schema.

    ``required`` is true only when the field and every ancestor are required,
    i.e. the field must be set for the resource to be valid.
    """
    path: str
    type: str = "object"
    required: bool = False

    @property
    def name(self) -> str:
        return self.path.rsplit(".", 1)[-1].replace("[]", "")


class SchemaDocument(BaseModel):
    identifier: ResourceIdentifier
    version: Optional[str] = Field(default=None, description="Schema revision used to invalidate cached edges")
    fields: List[SchemaField] = Field(default_factory=list)


def flatten_openapi_schema(schema: Dict[str, Any]) -> List[SchemaField]:
    """
    Flatten an OpenAPI v3 object schema into dotted field paths.

    Top-level properties (``spec``, ``metadata``...) count as present so that
    requiredness is decided inside them. Array items are walked with a ``[]``
    suffix on the array field.
    """
    if not isinstance(schema, dict):
        raise ValueError("schema must be an object")
    fields: List[SchemaField] = []

    def walk(node: Dict[str, Any], prefix: str, chain_required: bool) -> None:
        properties = node.get("properties") or {}
        if not isinstance(properties, dict):
            raise ValueError(f"'properties' of {prefix or '<root>'} is not an object")
        required = set(node.get("required") or [])
        for name, child in properties.items():
            if not isinstance(child, dict):
                raise ValueError(f"property {name!r} is not an object")
            path = f"{prefix}.{name}" if prefix else name
            is_required = chain_required and (not prefix or name in required)
            field_type = child.get("type", "object")
            fields.append(SchemaField(path=path, type=field_type, required=is_required))
            if field_type == "array" and isinstance(child.get("items"), dict):
                items = child["items"]
                if items.get("properties"):
                    walk(items, f"{path}[]", is_required)
            elif child.get("properties"):
                walk(child, path, is_required)

    walk(schema, "", True)
    return fields


class ClusterIntrospection(ABC):
    """Source of resource schemas."""

    @abstractmethod
    async def get_schema(self, identifier: ResourceIdentifier) -> Optional[SchemaDocument]:
        """
        Return the schema for ``identifier``, or None when the cluster has none.

        Raises:
            SchemaUnavailableError: the fetch failed or the response was malformed
        """
        pass


class MCPClusterIntrospection(ClusterIntrospection):
    """Reads CRD schemas with the cluster MCP server's CRD schema tool."""

    def __init__(self, mcp_client: MCPAdapterClient, tool_name: str = "kubectl_get_crd_schema") -> None:
        self.mcp_client = mcp_client
        self.tool_name = tool_name

    @staticmethod
    def _decode(result: Any) -> Any:
        # Adapters may hand back content blocks instead of a plain string
        if isinstance(result, list):
            result = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in result
            )
        if isinstance(result, str):
            try:
                return json.loads(result)
            except json.JSONDecodeError:
                return result
        return result

    async def _fetch_crd(self, identifier: ResourceIdentifier) -> Optional[Dict[str, Any]]:
        try:
            result = await self.mcp_client.call_tool(self.tool_name, crdName=identifier.resource_name)
        except RecommenderError as e:
            if any(marker in str(e).lower() for marker in _NOT_FOUND_MARKERS):
                return None
            raise SchemaUnavailableError(f"Schema fetch failed for {identifier}: {e}", identifier=identifier)

        result = self._decode(result)
        if isinstance(result, dict) and "success" in result:
            if not result.get("success"):
                error = str(result.get("error") or result.get("message") or "")
                if any(marker in error.lower() for marker in _NOT_FOUND_MARKERS):
                    return None
                raise SchemaUnavailableError(f"Schema fetch failed for {identifier}: {error}", identifier=identifier)
            result = self._decode(result.get("data"))
        if not isinstance(result, dict):
            raise SchemaUnavailableError(f"Malformed CRD response for {identifier}", identifier=identifier)
        return result

    async def get_schema(self, identifier: ResourceIdentifier) -> Optional[SchemaDocument]:
        if not identifier.group:
            return None
        crd = await self._fetch_crd(identifier)
        if crd is None:
            introspection_logger.log_structured(
                level="DEBUG",
                message="No CRD found for resource",
                extra={"resource": identifier.key}
            )
            return None

        versions = (crd.get("spec") or {}).get("versions") or []
        version = next(
            (v for v in versions if isinstance(v, dict) and v.get("name") == identifier.version),
            None,
        )
        if version is None:
            return None
        schema = (version.get("schema") or {}).get("openAPIV3Schema")
        try:
            fields = flatten_openapi_schema(schema)
        except ValueError as e:
            raise SchemaUnavailableError(f"Malformed schema for {identifier}: {e}", identifier=identifier)

        return SchemaDocument(
            identifier=identifier,
            version=(crd.get("metadata") or {}).get("resourceVersion"),
            fields=fields,
        )
