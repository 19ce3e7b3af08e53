"""
Configuration for the Brand Monitor backend.
The environment is read once into an explicit AppConfig; everything downstream receives that object.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

_backend_dir = Path(__file__).resolve().parent
load_dotenv(_backend_dir / ".env")
load_dotenv(_backend_dir.parent / ".env")


def _env_bool(key: str, default: bool = False) -> bool:
    val = (os.getenv(key) or "").strip().lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def _env_str(key: str) -> str | None:
    return (os.getenv(key) or "").strip() or None


class ProviderSettings(BaseModel):
    """Credential and switches for one AI provider."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = Field(None, description="Provider API key; provider is unconfigured without it")
    enabled: bool = Field(default=True, description="Administrative switch, independent of the key")
    model: str | None = Field(None, description="Override for the provider's default model")


class AppConfig(BaseModel):
    """Immutable application configuration."""

    model_config = ConfigDict(frozen=True)

    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    firecrawl_api_key: str | None = None
    use_mock_mode: bool = False
    max_concurrency: int = Field(default=8, ge=1)
    request_timeout: float = Field(default=60.0, gt=0, description="Per provider call timeout in seconds")
    api_access_key: str | None = None
    frontend_url: str | None = None
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls) -> AppConfig:
        """Build the config from process environment (after .env loading)."""
        providers = {
            "openai": ProviderSettings(
                api_key=_env_str("OPENAI_API_KEY"),
                enabled=_env_bool("OPENAI_ENABLED", True),
                model=_env_str("OPENAI_MODEL"),
            ),
            "anthropic": ProviderSettings(
                api_key=_env_str("ANTHROPIC_API_KEY"),
                enabled=_env_bool("ANTHROPIC_ENABLED", True),
                model=_env_str("ANTHROPIC_MODEL"),
            ),
            "google": ProviderSettings(
                api_key=_env_str("GOOGLE_GENERATIVE_AI_API_KEY") or _env_str("GOOGLE_API_KEY"),
                enabled=_env_bool("GOOGLE_ENABLED", True),
                model=_env_str("GOOGLE_MODEL"),
            ),
            "perplexity": ProviderSettings(
                api_key=_env_str("PERPLEXITY_API_KEY"),
                enabled=_env_bool("PERPLEXITY_ENABLED", True),
                model=_env_str("PERPLEXITY_MODEL"),
            ),
        }
        return cls(
            providers=providers,
            firecrawl_api_key=_env_str("FIRECRAWL_API_KEY"),
            use_mock_mode=_env_bool("USE_MOCK_MODE", False),
            max_concurrency=int(os.getenv("MAX_CONCURRENCY", "8")),
            request_timeout=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "60")),
            api_access_key=_env_str("API_ACCESS_KEY"),
            frontend_url=_env_str("FRONTEND_URL"),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
            port=int(os.environ.get("PORT", "8000")),
        )

    def provider(self, provider_id: str) -> ProviderSettings:
        return self.providers.get(provider_id) or ProviderSettings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
