"""Proxy configuration."""

import os
from dataclasses import dataclass, field

from .errors import ConfigError

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Config:
    """Configuration loaded from environment variables.

    Built once at startup and passed explicitly to the app, so tests can
    construct variants directly: ``Config(nim_api_key="k", show_reasoning=True)``.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3000")))
    max_body_bytes: int = field(default_factory=lambda: int(os.getenv("MAX_BODY_BYTES", "1048576")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # NVIDIA NIM
    nim_api_base: str = field(default_factory=lambda:
        os.getenv("NIM_API_BASE", "https://integrate.api.nvidia.com/v1"))
    nim_api_key: str = field(default_factory=lambda: os.getenv("NIM_API_KEY", ""), repr=False)
    timeout_ms: int = field(default_factory=lambda: int(os.getenv("NIM_TIMEOUT_MS", "45000")))

    # Toggles
    show_reasoning: bool = field(default_factory=lambda: _env_flag("SHOW_REASONING"))
    enable_thinking_mode: bool = field(default_factory=lambda: _env_flag("ENABLE_THINKING_MODE"))

    # Request defaults
    default_model: str = field(default_factory=lambda:
        os.getenv("DEFAULT_FALLBACK_MODEL", "meta/llama-3.1-70b-instruct"))
    default_temperature: float = field(default_factory=lambda:
        float(os.getenv("DEFAULT_TEMPERATURE", "0.6")))
    default_max_tokens: int = field(default_factory=lambda:
        int(os.getenv("DEFAULT_MAX_TOKENS", "9024")))

    @property
    def timeout_seconds(self) -> float:
        """Upstream request timeout in seconds."""
        return self.timeout_ms / 1000.0


def load_config() -> Config:
    """Build the config from the environment, refusing to run without a NIM key."""
    config = Config()
    if not config.nim_api_key:
        raise ConfigError("NIM_API_KEY is not set. Cannot start server.")
    return config
