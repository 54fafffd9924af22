from .introspection import (
    ClusterIntrospection,
    MCPClusterIntrospection,
    SchemaDocument,
    SchemaField,
    flatten_openapi_schema,
)
from .dependency_rules import DependencyRule, DependencyRuleTable, RuleMatch
from .dependency_resolver import KindIndex, ResolutionScope, SchemaDependencyResolver

__all__ = [
    "ClusterIntrospection",
    "MCPClusterIntrospection",
    "SchemaDocument",
    "SchemaField",
    "flatten_openapi_schema",
    "DependencyRule",
    "DependencyRuleTable",
    "RuleMatch",
    "KindIndex",
    "ResolutionScope",
    "SchemaDependencyResolver",
]
