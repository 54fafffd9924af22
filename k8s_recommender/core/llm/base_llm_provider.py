from abc import ABC, abstractmethod
from typing import Any, Optional
from langchain_core.embeddings import Embeddings
from langchain_core.runnables import Runnable

class BaseLLMProvider(ABC):
    """
    Abstract base class for all LLM providers.
    Defines the interface for creating LangChain chat models and embedding models.
    """
    @abstractmethod
    def create_llm(
        self,
        model: str,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        timeout: int = 60,
        **kwargs: Any
    ) -> Runnable:
        """
        Create a LangChain chat model that implements the Runnable interface.
        Args:
            model: Model name (e.g., 'gpt-4o-mini')
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            timeout: Request timeout in seconds
            **kwargs: Additional provider-specific parameters
        Returns:
            Configured LangChain chat model (Runnable)
        """
        pass

    @abstractmethod
    def create_embeddings(
        self,
        model: str,
        dimensions: Optional[int] = None,
        **kwargs: Any
    ) -> Embeddings:
        """
        Create a LangChain embedding model used for capability and pattern search.
        Args:
            model: Embedding model name (e.g., 'text-embedding-3-small')
            dimensions: Output vector size, when the model supports shortening
            **kwargs: Additional provider-specific parameters
        Returns:
            Configured LangChain Embeddings instance
        """
        pass
