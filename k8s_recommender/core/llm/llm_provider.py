import os
from typing import Optional, Dict, Any
from langchain_core.embeddings import Embeddings
from langchain_core.runnables import Runnable
from k8s_recommender.utils.exceptions import UnsupportedProviderError, LLMConfigurationError
from .base_llm_provider import BaseLLMProvider


class OpenAIProvider(BaseLLMProvider):
    """
    Concrete LLM provider for OpenAI models.
    Implements the BaseLLMProvider interface.
    """
    @staticmethod
    def _api_key(kwargs: Dict[str, Any]) -> str:
        api_key = kwargs.pop('api_key', None) or os.getenv('OPENAI_API_KEY')
        if not api_key:
            raise LLMConfigurationError(
                "OpenAI API key not found. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )
        return api_key

    def create_llm(
        self,
        model: str,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        timeout: int = 60,
        **kwargs: Any
    ) -> Runnable:
        LLMProvider._check_package("langchain_openai", "OpenAI")
        from langchain_openai import ChatOpenAI
        config = {
            "model": model,
            "temperature": temperature,
            "api_key": self._api_key(kwargs),
            "timeout": timeout,
        }
        if max_tokens is not None:
            config["max_tokens"] = max_tokens
        if kwargs.get('base_url'):
            config["base_url"] = kwargs.pop('base_url')
        config.update(kwargs)
        return ChatOpenAI(**config)

    def create_embeddings(
        self,
        model: str,
        dimensions: Optional[int] = None,
        **kwargs: Any
    ) -> Embeddings:
        LLMProvider._check_package("langchain_openai", "OpenAI")
        from langchain_openai import OpenAIEmbeddings
        config = {
            "model": model,
            "api_key": self._api_key(kwargs),
        }
        # Only the text-embedding-3 family accepts a shortened output size
        if dimensions is not None and model.startswith("text-embedding-3"):
            config["dimensions"] = dimensions
        config.update(kwargs)
        return OpenAIEmbeddings(**config)


class AnthropicProvider(BaseLLMProvider):
    """
    Concrete LLM provider for Anthropic models.
    Anthropic ships no embedding model, so only chat models are available.
    """
    def create_llm(
        self,
        model: str,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        timeout: int = 60,
        **kwargs: Any
    ) -> Runnable:
        LLMProvider._check_package("langchain_anthropic", "Anthropic")
        from langchain_anthropic import ChatAnthropic
        api_key = kwargs.pop('api_key', None) or os.getenv('ANTHROPIC_API_KEY')
        if not api_key:
            raise LLMConfigurationError(
                "Anthropic API key not found. Set ANTHROPIC_API_KEY environment variable "
                "or pass api_key parameter."
            )
        config = {
            "model": model,
            "temperature": temperature,
            "api_key": api_key,
            "timeout": timeout,
        }
        if max_tokens is not None:
            config["max_tokens"] = max_tokens
        config.update(kwargs)
        return ChatAnthropic(**config)

    def create_embeddings(
        self,
        model: str,
        dimensions: Optional[int] = None,
        **kwargs: Any
    ) -> Embeddings:
        raise LLMConfigurationError(
            "Anthropic does not provide embedding models. "
            "Set EMBEDDING_PROVIDER to 'openai' or 'azure_openai'."
        )


class AzureOpenAIProvider(BaseLLMProvider):
    """
    Concrete LLM provider for Azure OpenAI deployments.
    Implements the BaseLLMProvider interface.
    """
    @staticmethod
    def _credentials(kwargs: Dict[str, Any]) -> Dict[str, Any]:
        api_key = kwargs.pop('api_key', None) or os.getenv('AZURE_OPENAI_API_KEY')
        endpoint = kwargs.pop('endpoint', None) or os.getenv('AZURE_OPENAI_ENDPOINT')
        if not api_key or not endpoint:
            raise LLMConfigurationError(
                "Azure OpenAI API key or endpoint not found. Set AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT "
                "environment variables or pass api_key and endpoint parameters."
            )
        return {
            "api_key": api_key,
            "azure_endpoint": endpoint,
            "api_version": kwargs.pop('api_version', None) or os.getenv('AZURE_OPENAI_API_VERSION', '2024-06-01'),
        }

    def create_llm(
        self,
        model: str,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        timeout: int = 60,
        **kwargs: Any
    ) -> Runnable:
        LLMProvider._check_package("langchain_openai", "Azure OpenAI")
        from langchain_openai import AzureChatOpenAI
        config = {
            **self._credentials(kwargs),
            "azure_deployment": kwargs.pop('deployment_name', None) or model,
            "temperature": temperature,
            "timeout": timeout,
        }
        if max_tokens is not None:
            config["max_tokens"] = max_tokens
        config.update(kwargs)
        return AzureChatOpenAI(**config)

    def create_embeddings(
        self,
        model: str,
        dimensions: Optional[int] = None,
        **kwargs: Any
    ) -> Embeddings:
        LLMProvider._check_package("langchain_openai", "Azure OpenAI")
        from langchain_openai import AzureOpenAIEmbeddings
        config = {
            **self._credentials(kwargs),
            "azure_deployment": kwargs.pop('deployment_name', None) or model,
        }
        if dimensions is not None and model.startswith("text-embedding-3"):
            config["dimensions"] = dimensions
        config.update(kwargs)
        return AzureOpenAIEmbeddings(**config)


class LLMProvider:
    """Factory for LangChain chat models (reasoning) and embedding models (retrieval)."""

    _PROVIDERS: Dict[str, BaseLLMProvider] = {
        "openai": OpenAIProvider(),
        "anthropic": AnthropicProvider(),
        "azure_openai": AzureOpenAIProvider(),
    }

    @staticmethod
    def _resolve(provider: str) -> BaseLLMProvider:
        provider = provider.lower().strip()
        if provider not in LLMProvider._PROVIDERS:
            supported = ", ".join(sorted(LLMProvider._PROVIDERS))
            raise UnsupportedProviderError(
                f"Unsupported provider: '{provider}'. "
                f"Supported providers: {supported}"
            )
        return LLMProvider._PROVIDERS[provider]

    @staticmethod
    def create_llm(
        provider: str,
        model: str,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        timeout: int = 60,
        **kwargs: Any
    ) -> Runnable:
        """
        Create a LangChain chat model that implements the Runnable interface.

        Args:
            provider: LLM provider name ('openai', 'anthropic', 'azure_openai')
            model: Model name (e.g., 'gpt-4o-mini', 'claude-3-5-sonnet-latest')
            temperature: Sampling temperature (0.0 to 2.0)
            max_tokens: Maximum tokens to generate
            timeout: Request timeout in seconds
            **kwargs: Additional provider-specific parameters

        Raises:
            UnsupportedProviderError: If provider is not supported
            LLMConfigurationError: If configuration is invalid
        """
        impl = LLMProvider._resolve(provider)
        try:
            return impl.create_llm(
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout,
                **kwargs
            )
        except LLMConfigurationError:
            raise
        except Exception as e:
            raise LLMConfigurationError(
                f"Failed to create LLM for provider '{provider}': {e}"
            )

    @staticmethod
    def create_embeddings(
        provider: str,
        model: str,
        dimensions: Optional[int] = None,
        **kwargs: Any
    ) -> Embeddings:
        """
        Create a LangChain embedding model.

        Raises:
            UnsupportedProviderError: If provider is not supported
            LLMConfigurationError: If the provider has no embeddings or configuration is invalid
        """
        impl = LLMProvider._resolve(provider)
        try:
            return impl.create_embeddings(model=model, dimensions=dimensions, **kwargs)
        except LLMConfigurationError:
            raise
        except Exception as e:
            raise LLMConfigurationError(
                f"Failed to create embeddings for provider '{provider}': {e}"
            )

    @staticmethod
    def _check_package(package_name: str, provider_name: str) -> None:
        """Check if required package is installed."""
        try:
            __import__(package_name)
        except ImportError:
            raise LLMConfigurationError(
                f"{package_name} package is required for {provider_name} provider. "
                f"Install with: pip install {package_name.replace('_', '-')}"
            )

    @staticmethod
    def validate_environment(provider: str) -> Dict[str, Any]:
        """
        Validate that required environment variables are set for a provider.

        Args:
            provider: Provider name to validate

        Returns:
            Dictionary with validation results
        """
        provider = provider.lower().strip()
        required = {
            "openai": ["OPENAI_API_KEY"],
            "anthropic": ["ANTHROPIC_API_KEY"],
            "azure_openai": ["AZURE_OPENAI_API_KEY", "AZURE_OPENAI_ENDPOINT"],
        }
        if provider not in required:
            return {"valid": False, "missing": [f"Unsupported provider: {provider}"]}
        missing = [name for name in required[provider] if not os.getenv(name)]
        return {"valid": not missing, "missing": missing}
