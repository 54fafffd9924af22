import json
import os
from typing import Dict, Any, List, Optional, Union, Type, get_origin, get_args
from k8s_recommender.config.default import DefaultConfig
from k8s_recommender.utils.exceptions import ConfigError
from dotenv import load_dotenv
# Load environment variables
load_dotenv()

class Config:
    """
    Configuration class for the K8s Solution Recommender.

    Precedence order for config values:
    1. Defaults from DefaultConfig
    2. Runtime/programmatic overrides (via config dict)
    3. Environment variables (including .env)

    All config keys are available as attributes and in the internal _config dict.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the configuration.
        Args:
            config: Optional configuration dictionary to override defaults
        """
        default_config = {key: getattr(DefaultConfig, key) for key in dir(DefaultConfig) if not key.startswith('_')}

        self._config = default_config.copy()
        self._config.update(config or {})

        self._set_attributes(self._config)

    def _set_attributes(self, config: Dict[str, Any]) -> None:
        """
        Set attributes from configuration and environment variables.
        Environment variables take precedence over defaults and runtime config.
        Args:
            config: Configuration dictionary
        """
        for key, value in config.items():
            env_value = os.getenv(key)
            if env_value is not None and key in DefaultConfig.__annotations__:
                value = self.convert_env_value(key, env_value, DefaultConfig.__annotations__[key])
            setattr(self, key.lower(), value)
            self._config[key] = value

    def __getattr__(self, item: str) -> Any:
        """
        Allow attribute-style access to config keys.
        Raises AttributeError if the key is missing.
        """
        config = self.__dict__.get('_config', {})
        if item in config:
            return config[item]
        raise AttributeError(f"'Config' object has no attribute '{item}'")

    def get(self, key: str, default: Any = None) -> Any:
        """Return a raw config value by its upper-case key."""
        return self._config.get(key, default)

    @property
    def llm_config(self) -> Dict[str, Any]:
        """Get the reasoning LLM configuration."""
        return {
            'provider': self._config['LLM_PROVIDER'],
            'model': self._config['LLM_MODEL'],
            'temperature': self._config['LLM_TEMPERATURE'],
            'max_tokens': self._config['LLM_MAX_TOKENS'],
            'timeout': self._config['REASONING_TIMEOUT'],
        }

    def get_llm_config(self) -> Dict[str, Any]:
        """Get reasoning LLM configuration.

        Returns:
            LLM configuration dictionary
        """
        return self.llm_config

    def set_llm_config(self, config: Dict[str, Any]) -> None:
        """Set the reasoning LLM configuration.

        Args:
            config: LLM configuration dictionary
        """
        for key, value in config.items():
            if key == 'provider':
                self._config['LLM_PROVIDER'] = value
            elif key == 'model':
                self._config['LLM_MODEL'] = value
            elif key == 'temperature':
                self._config['LLM_TEMPERATURE'] = value
            elif key == 'max_tokens':
                self._config['LLM_MAX_TOKENS'] = value

    @property
    def embedding_config(self) -> Dict[str, Any]:
        """Get the embedding model configuration."""
        return {
            'provider': self._config['EMBEDDING_PROVIDER'],
            'model': self._config['EMBEDDING_MODEL'],
            'dimensions': self._config['EMBEDDING_DIMENSIONS'],
        }

    @property
    def vector_config(self) -> Dict[str, Any]:
        """Get the Qdrant connection configuration."""
        return {
            'url': self._config['QDRANT_URL'],
            'api_key': self._config['QDRANT_API_KEY'],
            'timeout': self._config['QDRANT_TIMEOUT'],
            'capabilities_collection': self._config['CAPABILITIES_COLLECTION'],
            'patterns_collection': self._config['PATTERNS_COLLECTION'],
        }

    @property
    def retrieval_config(self) -> Dict[str, Any]:
        """Get capability/pattern retrieval limits and score floors."""
        return {
            'capability_limit': self._config['CAPABILITY_SEARCH_LIMIT'],
            'capability_min_score': self._config['CAPABILITY_MIN_SCORE'],
            'pattern_limit': self._config['PATTERN_SEARCH_LIMIT'],
            'pattern_min_score': self._config['PATTERN_MIN_SCORE'],
            'pattern_keyword_score': self._config['PATTERN_KEYWORD_SCORE'],
        }

    @property
    def timeouts(self) -> Dict[str, float]:
        """Get per-call timeouts and the overall request deadline."""
        timeouts = {
            'vector_search': float(self._config['VECTOR_SEARCH_TIMEOUT']),
            'schema_fetch': float(self._config['SCHEMA_FETCH_TIMEOUT']),
            'reasoning': float(self._config['REASONING_TIMEOUT']),
            'request_deadline': float(self._config['REQUEST_DEADLINE']),
        }
        for name in ('vector_search', 'schema_fetch', 'reasoning'):
            if timeouts[name] >= timeouts['request_deadline']:
                raise ConfigError(
                    f"Timeout '{name}' ({timeouts[name]}s) must be shorter than "
                    f"REQUEST_DEADLINE ({timeouts['request_deadline']}s)"
                )
        return timeouts

    @property
    def scoring_weights(self) -> Dict[str, float]:
        """Get the tunable Pass 1 scoring weights."""
        return {
            'reasoning': float(self._config['SCORE_WEIGHT_REASONING']),
            'semantic': float(self._config['SCORE_WEIGHT_SEMANTIC']),
            'incomplete_penalty': float(self._config['SCORE_INCOMPLETE_PENALTY']),
            'unknown_dependency_penalty': float(self._config['SCORE_UNKNOWN_DEPENDENCY_PENALTY']),
            'composite_bonus': float(self._config['SCORE_COMPOSITE_BONUS']),
            'operator_bonus': float(self._config['SCORE_OPERATOR_BONUS']),
            'max_tier_bonus': float(self._config['SCORE_MAX_TIER_BONUS']),
        }

    @property
    def hierarchy_config(self) -> Dict[str, List[str]]:
        """Get composite markers and operator group patterns."""
        return {
            'composite_group_markers': list(self._config['COMPOSITE_GROUP_MARKERS']),
            'composite_kind_prefixes': list(self._config['COMPOSITE_KIND_PREFIXES']),
            'composite_capability_tags': list(self._config['COMPOSITE_CAPABILITY_TAGS']),
            'operator_group_patterns': list(self._config['OPERATOR_GROUP_PATTERNS']),
        }

    @property
    def mcp_config(self) -> Dict[str, Any]:
        """Get the cluster introspection MCP server configuration."""
        return {
            'host': self._config['CLUSTER_MCP_SERVER_HOST'],
            'port': str(self._config['CLUSTER_MCP_SERVER_PORT']),
            'transport': self._config['CLUSTER_MCP_SERVER_TRANSPORT'],
            'schema_tool': self._config['SCHEMA_TOOL_NAME'],
        }

    @staticmethod
    def convert_env_value(key: str, env_value: str, type_hint: Type) -> Any:
        """Convert environment variable to the appropriate type.

        Args:
            key: Configuration key
            env_value: Environment variable value
            type_hint: Type hint for the value

        Returns:
            Converted value
        """
        origin = get_origin(type_hint)
        args = get_args(type_hint)

        if origin is Union:
            if type(None) in args and env_value.lower() in ("none", "null", ""):
                return None
            for arg in args:
                if arg is type(None):
                    continue
                try:
                    return Config.convert_env_value(key, env_value, arg)
                except (ConfigError, ValueError):
                    continue
            raise ConfigError(f"Cannot convert {env_value} to any of {args}")

        try:
            if type_hint is bool:
                return env_value.lower() in ("true", "1", "yes", "on")
            elif type_hint is int:
                return int(env_value)
            elif type_hint is float:
                return float(env_value)
            elif type_hint in (str, Any):
                return env_value
            elif origin is list or type_hint is list:
                value = json.loads(env_value)
                if not isinstance(value, list):
                    raise ConfigError(f"Expected a JSON list for key {key}, got {env_value}")
                return value
        except (ValueError, json.JSONDecodeError) as e:
            raise ConfigError(f"Invalid value for {key}: {env_value} ({e})")
        raise ConfigError(f"Unsupported type {type_hint} for key {key}")

    @classmethod
    def load_config(cls, config_path: str) -> Dict[str, Any]:
        """Load configuration overrides from a JSON file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Configuration dictionary merged over the defaults
        """
        if not os.path.exists(config_path):
            raise ConfigError(f"Configuration not found at '{config_path}'")

        with open(config_path, "r") as f:
            custom_config = json.load(f)

        merged_config = {key: getattr(DefaultConfig, key) for key in dir(DefaultConfig) if not key.startswith('_')}
        merged_config.update(custom_config)
        return merged_config
