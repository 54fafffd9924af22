from .embedding import EmbeddingProvider, LangChainEmbeddingProvider
from .vector_index import (
    VectorDocument,
    VectorIndexClient,
    VectorSearchResult,
    build_filter,
    point_id,
)

__all__ = [
    "EmbeddingProvider",
    "LangChainEmbeddingProvider",
    "VectorDocument",
    "VectorIndexClient",
    "VectorSearchResult",
    "build_filter",
    "point_id",
]
