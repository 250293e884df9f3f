"""
Known chat models.

Used to pick a provider from a model name and to list choices in a UI.
Pricing lives in rag_agent_core.usage.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ModelInfo:
    """Information about a supported model."""
    id: str  # Model identifier (e.g., "gpt-4o", "claude-3-5-sonnet-20241022")
    name: str  # Display name
    provider: str  # "openai" or "anthropic"
    context_window: int  # Max context in tokens
    supports_structured_output: bool = True
    description: str = ""


SUPPORTED_MODELS: dict[str, ModelInfo] = {
    # OpenAI
    "gpt-4o": ModelInfo(
        id="gpt-4o",
        name="GPT-4o",
        provider="openai",
        context_window=128000,
        description="Most capable GPT-4 class model",
    ),
    "gpt-4o-mini": ModelInfo(
        id="gpt-4o-mini",
        name="GPT-4o Mini",
        provider="openai",
        context_window=128000,
        description="Fast and affordable, good for most tasks",
    ),
    "gpt-4.1-mini": ModelInfo(
        id="gpt-4.1-mini",
        name="GPT-4.1 Mini",
        provider="openai",
        context_window=1047576,
        description="Long-context small model",
    ),
    "gpt-3.5-turbo": ModelInfo(
        id="gpt-3.5-turbo",
        name="GPT-3.5 Turbo",
        provider="openai",
        context_window=16385,
        supports_structured_output=False,
        description="Legacy model",
    ),
    # Anthropic
    "claude-3-5-sonnet-20241022": ModelInfo(
        id="claude-3-5-sonnet-20241022",
        name="Claude 3.5 Sonnet",
        provider="anthropic",
        context_window=200000,
        description="Strong general model",
    ),
    "claude-3-5-haiku-20241022": ModelInfo(
        id="claude-3-5-haiku-20241022",
        name="Claude 3.5 Haiku",
        provider="anthropic",
        context_window=200000,
        description="Fast model",
    ),
    "claude-3-opus-20240229": ModelInfo(
        id="claude-3-opus-20240229",
        name="Claude 3 Opus",
        provider="anthropic",
        context_window=200000,
        description="Legacy premium model",
    ),
}

DEFAULT_MODEL = "gpt-4o-mini"


def get_model_info(model_id: str) -> Optional[ModelInfo]:
    return SUPPORTED_MODELS.get(model_id)


def get_provider_for_model(model_id: str) -> Optional[str]:
    """
    Detect the provider for a model ID.

    Returns "openai", "anthropic", or None if unknown.
    """
    if model_id in SUPPORTED_MODELS:
        return SUPPORTED_MODELS[model_id].provider

    # Fallback heuristics for unlisted models
    if model_id.startswith(("gpt-", "o1", "o3", "azure-")):
        return "openai"
    if model_id.startswith("claude"):
        return "anthropic"
    return None


def list_models_for_ui() -> list[dict]:
    return [
        {
            "id": m.id,
            "name": m.name,
            "provider": m.provider,
            "description": m.description,
        }
        for m in SUPPORTED_MODELS.values()
    ]
