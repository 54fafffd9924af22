from .base_store import BaseVectorStore, StoreSearchResult
from .capability_store import CapabilityStore
from .pattern_store import PatternStore, extract_keywords

__all__ = [
    "BaseVectorStore",
    "StoreSearchResult",
    "CapabilityStore",
    "PatternStore",
    "extract_keywords",
]
