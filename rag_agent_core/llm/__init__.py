"""
Model client implementations.

Provides:
- ModelClient: Abstract interface (from interfaces.py)
- OpenAIClient: OpenAI and Azure OpenAI
- AnthropicClient: Anthropic
- get_llm_client: Factory with auto-detection from model name
"""

from typing import Optional

from rag_agent_core.errors import ConfigurationError
from rag_agent_core.interfaces import ModelClient, ModelResponse
from rag_agent_core.llm.models_config import (
    DEFAULT_MODEL,
    SUPPORTED_MODELS,
    ModelInfo,
    get_model_info,
    get_provider_for_model,
    list_models_for_ui,
)

__all__ = [
    "ModelClient",
    "ModelResponse",
    "get_llm_client",
    "ModelInfo",
    "SUPPORTED_MODELS",
    "DEFAULT_MODEL",
    "get_model_info",
    "get_provider_for_model",
    "list_models_for_ui",
]


def get_llm_client(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs,
) -> ModelClient:
    """
    Factory function to get a model client.

    Args:
        provider: "openai" or "anthropic" (detected from model when omitted)
        model: Model ID, used as the client's default model
        **kwargs: Client options (api_key, base_url, max_tokens, ...)

    Raises:
        ConfigurationError: If the provider is unknown or the API key is missing

    Example:
        llm = get_llm_client(model="claude-3-5-sonnet-20241022")

        configure(model_provider="openai", openai_api_key="sk-...")
        llm = get_llm_client()
    """
    from rag_agent_core.config import get_config

    config = get_config()

    if provider is None and model:
        provider = get_provider_for_model(model)
    provider = provider or config.model_provider
    if model:
        kwargs["default_model"] = model

    if provider == "openai":
        from rag_agent_core.llm.openai import OpenAIClient
        return OpenAIClient(**kwargs)

    elif provider == "anthropic":
        from rag_agent_core.llm.anthropic import AnthropicClient
        return AnthropicClient(**kwargs)

    raise ConfigurationError(
        f"Unknown LLM provider: {provider}\n\n"
        f"Supported providers: 'openai', 'anthropic'\n"
        f"Set model_provider in your configuration."
    )
