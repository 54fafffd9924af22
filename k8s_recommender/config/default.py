from typing import List, Optional


class DefaultConfig:
    """Default configuration for the K8s Solution Recommender."""
    # LLM Configuration (reasoning service)
    LLM_PROVIDER: str = "openai"
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_TEMPERATURE: float = 0.0
    LLM_MAX_TOKENS: int = 8000

    # Embedding Configuration
    EMBEDDING_PROVIDER: str = "openai"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: int = 1536

    # Vector DB Configuration
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: Optional[str] = None
    QDRANT_TIMEOUT: int = 10
    CAPABILITIES_COLLECTION: str = "capabilities"
    PATTERNS_COLLECTION: str = "patterns"

    # Retrieval Configuration
    CAPABILITY_SEARCH_LIMIT: int = 50
    CAPABILITY_MIN_SCORE: float = 0.1
    PATTERN_SEARCH_LIMIT: int = 5
    PATTERN_MIN_SCORE: float = 0.45
    PATTERN_KEYWORD_SCORE: float = 0.6

    # Timeouts in seconds; every per-call timeout must stay below REQUEST_DEADLINE
    VECTOR_SEARCH_TIMEOUT: float = 5.0
    SCHEMA_FETCH_TIMEOUT: float = 10.0
    REASONING_TIMEOUT: float = 60.0
    REQUEST_DEADLINE: float = 180.0

    # Pipeline Configuration
    MAX_SOLUTIONS: int = 5
    MAX_DEPENDENCY_DEPTH: int = 5
    DEPENDENCY_RULES_FILE: Optional[str] = None
    SCHEMA_EDGE_CACHE_ENABLED: bool = False

    # Scoring weights (Pass 1 ranking)
    SCORE_WEIGHT_REASONING: float = 0.8
    SCORE_WEIGHT_SEMANTIC: float = 0.2
    SCORE_INCOMPLETE_PENALTY: float = 3.0
    SCORE_UNKNOWN_DEPENDENCY_PENALTY: float = 2.0
    SCORE_COMPOSITE_BONUS: float = 5.0
    SCORE_OPERATOR_BONUS: float = 2.0
    SCORE_MAX_TIER_BONUS: float = 10.0

    # Hierarchy classification
    COMPOSITE_GROUP_MARKERS: List[str] = ["devopstoolkit.live", "platform.", "composite."]
    COMPOSITE_KIND_PREFIXES: List[str] = []
    COMPOSITE_CAPABILITY_TAGS: List[str] = ["composite", "composition", "abstraction"]
    OPERATOR_GROUP_PATTERNS: List[str] = [
        r".*\.upbound\.io$",
        r".*\.crossplane\.io$",
        r".*\.cnpg\.io$",
        r".*\.coreos\.com$",
        r".*argoproj\.io$",
        r".*cert-manager\.io$",
        r".*\.aws\.amazon\.com$",
        r".*\.cnrm\.cloud\.google\.com$",
        r".*\.azure\.com$",
    ]

    # Cluster introspection MCP server
    CLUSTER_MCP_SERVER_HOST: str = "localhost"
    CLUSTER_MCP_SERVER_PORT: int = 8000
    CLUSTER_MCP_SERVER_TRANSPORT: str = "sse"
    SCHEMA_TOOL_NAME: str = "kubectl_get_crd_schema"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "k8s_recommender.log"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_TO_CONSOLE: bool = True
    LOG_TO_FILE: bool = False
    LOG_STRUCTURED_JSON: bool = False
