"""
Runtime configuration.

Values are read from environment variables on first access and can be
overridden in code:

    from rag_agent_core.config import configure

    configure(
        model_provider="anthropic",
        default_model="claude-3-5-sonnet-20241022",
        debug=True,
    )
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Optional

from rag_agent_core.errors import ConfigurationError

ENV_PREFIX = "RAG_AGENT_"


def _env(name: str, default: Any = None, cast: Callable[[str], Any] = str) -> Any:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e


def _bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RuntimeConfig:
    """Configuration for models, retrieval storage and debugging."""

    model_provider: str = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}MODEL_PROVIDER", "openai")
    )
    default_model: str = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}DEFAULT_MODEL", "gpt-4o-mini")
    )
    openai_api_key: Optional[str] = field(
        default_factory=lambda: _env("OPENAI_API_KEY")
    )
    anthropic_api_key: Optional[str] = field(
        default_factory=lambda: _env("ANTHROPIC_API_KEY")
    )
    model_base_url: Optional[str] = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}MODEL_BASE_URL")
    )
    model_api_version: Optional[str] = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}MODEL_API_VERSION")
    )
    max_tokens: int = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}MAX_TOKENS", 4096, int)
    )
    # Seconds
    request_timeout: float = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}REQUEST_TIMEOUT", 30.0, float)
    )
    connect_timeout: float = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}CONNECT_TIMEOUT", 10.0, float)
    )
    max_retries: int = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}MAX_RETRIES", 3, int)
    )
    max_iterations: int = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}MAX_ITERATIONS", 5, int)
    )
    embedding_model: str = field(
        default_factory=lambda: _env(
            f"{ENV_PREFIX}EMBEDDING_MODEL", "text-embedding-3-small"
        )
    )
    vector_store_path: Optional[str] = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}VECTOR_STORE_PATH")
    )
    debug: bool = field(
        default_factory=lambda: _env(f"{ENV_PREFIX}DEBUG", False, _bool)
    )

    def get_openai_api_key(self) -> Optional[str]:
        return self.openai_api_key or os.environ.get("OPENAI_API_KEY")

    def get_anthropic_api_key(self) -> Optional[str]:
        return self.anthropic_api_key or os.environ.get("ANTHROPIC_API_KEY")


_config: Optional[RuntimeConfig] = None


def get_config() -> RuntimeConfig:
    """Get the current configuration, loading it from the environment if needed."""
    global _config
    if _config is None:
        _config = RuntimeConfig()
    return _config


def configure(**kwargs) -> RuntimeConfig:
    """
    Override configuration values.

    Raises:
        ConfigurationError: If a keyword is not a RuntimeConfig field
    """
    config = get_config()
    known = {f.name for f in fields(RuntimeConfig)}
    for key, value in kwargs.items():
        if key not in known:
            raise ConfigurationError(f"Unknown configuration key: {key}")
        setattr(config, key, value)
    return config


def reset_config() -> None:
    """Drop the cached configuration so the next access re-reads the environment."""
    global _config
    _config = None
