import re
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Pattern, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from k8s_recommender.core.models import EdgeKind, ResourceIdentifier
from k8s_recommender.core.schema.introspection import SchemaField
from k8s_recommender.utils.exceptions import ConfigError

DEFAULT_RULES_FILE = Path(__file__).with_name("dependency_rules.yaml")


class RuleMatch(BaseModel):
    """Result of a rule matching a schema field."""
    rule: str
    field_path: str
    edge_kind: EdgeKind
    kind: Optional[str] = None
    target: Optional[ResourceIdentifier] = None


class DependencyRule(BaseModel):
    """One naming convention: field-name pattern and value shape mapped to edge kinds."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    pattern: Pattern[str]
    types: FrozenSet[str] = frozenset()
    kind: Optional[str] = None
    target: Optional[ResourceIdentifier] = None
    required: EdgeKind = EdgeKind.FOUNDATION
    optional: EdgeKind = EdgeKind.REFERENCE

    @field_validator("pattern", mode="before")
    @classmethod
    def compile_pattern(cls, v: Any) -> Pattern[str]:
        if isinstance(v, str):
            try:
                return re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid pattern {v!r}: {e}")
        return v

    @field_validator("target", mode="before")
    @classmethod
    def parse_target(cls, v: Any) -> Optional[ResourceIdentifier]:
        return None if v is None else ResourceIdentifier.parse(v)

    @model_validator(mode="after")
    def check_kind_source(self) -> "DependencyRule":
        if not (self.kind or self.target or "kind" in self.pattern.groupindex):
            raise ValueError(f"rule '{self.name}' needs a target, a kind or a (?P<kind>...) group")
        return self

    def match(self, field: SchemaField) -> Optional[RuleMatch]:
        if self.types and field.type not in self.types:
            return None
        found = self.pattern.fullmatch(field.name)
        if not found:
            return None
        kind = self.kind
        if not kind and not self.target:
            raw = found.group("kind")
            kind = raw[:1].upper() + raw[1:]
        return RuleMatch(
            rule=self.name,
            field_path=field.path,
            edge_kind=self.required if field.required else self.optional,
            kind=kind,
            target=self.target,
        )


class DependencyRuleTable(BaseModel):
    """Ordered rule list plus schema paths that never carry dependencies."""

    rules: List[DependencyRule] = Field(default_factory=list)
    ignore_paths: List[str] = Field(default_factory=list)

    def is_ignored(self, path: str) -> bool:
        for ignored in self.ignore_paths:
            if path == ignored or path.startswith(ignored + ".") or path.startswith(ignored + "[]"):
                return True
        return False

    def match(self, field: SchemaField) -> Optional[RuleMatch]:
        """First matching rule for ``field``, or None."""
        if self.is_ignored(field.path):
            return None
        for rule in self.rules:
            found = rule.match(field)
            if found:
                return found
        return None

    @staticmethod
    def _read(path: Union[str, Path]) -> Dict[str, Any]:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Dependency rules file not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in dependency rules file {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Dependency rules file {path} must contain a mapping")
        return data

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None, extra_paths: Iterable[Union[str, Path]] = ()) -> "DependencyRuleTable":
        """
        Load the rule table from YAML.

        Rules from ``extra_paths`` are evaluated before the base file's rules;
        ignore paths are merged.
        """
        documents = [cls._read(p) for p in extra_paths] + [cls._read(path or DEFAULT_RULES_FILE)]
        rules: List[Dict[str, Any]] = []
        ignore_paths: List[str] = []
        for document in documents:
            rules.extend(document.get("rules") or [])
            for ignored in document.get("ignore_paths") or []:
                if ignored not in ignore_paths:
                    ignore_paths.append(ignored)
        try:
            return cls(rules=rules, ignore_paths=ignore_paths)
        except ValueError as e:
            raise ConfigError(f"Invalid dependency rules: {e}")
