from abc import ABC, abstractmethod
from typing import List

from langchain_core.embeddings import Embeddings

from k8s_recommender.utils.exceptions import VectorIndexError


class EmbeddingProvider(ABC):
    """Turns text into a vector for the capability and pattern stores."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        pass


class LangChainEmbeddingProvider(EmbeddingProvider):
    """Adapter over any LangChain ``Embeddings`` implementation."""

    def __init__(self, embeddings: Embeddings) -> None:
        self.embeddings = embeddings

    async def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise VectorIndexError("Cannot embed empty text", operation="embed")
        try:
            vector = await self.embeddings.aembed_query(text)
        except Exception as e:
            raise VectorIndexError(f"Embedding request failed: {e}", operation="embed")
        return [float(v) for v in vector]
