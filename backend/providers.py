"""
Provider registry: which AI backends exist, which are configured, and a uniform
way to call them for free text or for a schema-validated object (LangChain chat models).
"""

from __future__ import annotations

import logging
from typing import TypeVar

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict

from config import AppConfig

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"


class ProviderInfo(BaseModel):
    """Static description of one provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    env_key: str
    default_model: str
    enabled: bool = True


PROVIDER_CONFIGS: dict[str, ProviderInfo] = {
    "openai": ProviderInfo(id="openai", name="OpenAI", env_key="OPENAI_API_KEY", default_model="gpt-4o-mini"),
    "anthropic": ProviderInfo(
        id="anthropic",
        name="Anthropic",
        env_key="ANTHROPIC_API_KEY",
        default_model="claude-sonnet-4-20250514",
    ),
    "google": ProviderInfo(
        id="google",
        name="Google",
        env_key="GOOGLE_GENERATIVE_AI_API_KEY",
        default_model="gemini-2.5-flash",
    ),
    "perplexity": ProviderInfo(id="perplexity", name="Perplexity", env_key="PERPLEXITY_API_KEY", default_model="sonar"),
}


def normalize_provider_id(provider: str) -> str:
    """Accept an id or a display name in any case ('OpenAI', 'openai') and return the id."""
    key = (provider or "").strip().lower()
    for info in PROVIDER_CONFIGS.values():
        if key in (info.id, info.name.lower()):
            return info.id
    return key


def display_name(provider: str) -> str:
    info = PROVIDER_CONFIGS.get(normalize_provider_id(provider))
    return info.name if info else provider


class ProviderRegistry:
    """Registry over PROVIDER_CONFIGS, configured from an injected AppConfig."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def _is_enabled(self, info: ProviderInfo) -> bool:
        return info.enabled and self.config.provider(info.id).enabled

    def list_enabled(self) -> list[ProviderInfo]:
        return [info for info in PROVIDER_CONFIGS.values() if self._is_enabled(info)]

    def list_configured(self) -> list[ProviderInfo]:
        """Enabled providers whose credential is present, in table order."""
        return [info for info in self.list_enabled() if self.config.provider(info.id).api_key]

    def is_configured(self, provider: str) -> bool:
        provider_id = normalize_provider_id(provider)
        return any(info.id == provider_id for info in self.list_configured())

    def get_model(self, provider: str, model_name: str | None = None) -> BaseChatModel | None:
        """Return a chat model for the provider, or None when it cannot be used. Never raises."""
        provider_id = normalize_provider_id(provider)
        info = PROVIDER_CONFIGS.get(provider_id)
        if info is None or not self.is_configured(provider_id):
            logger.warning("Provider %s is not configured", provider)
            return None
        settings = self.config.provider(provider_id)
        model = model_name or settings.model or info.default_model
        try:
            return self._build_model(info, settings.api_key or "", model)
        except Exception as e:
            logger.error("Could not create %s model %s: %s", info.name, model, e)
            return None

    def _build_model(self, info: ProviderInfo, api_key: str, model: str) -> BaseChatModel:
        timeout = self.config.request_timeout
        if info.id == "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(model=model, api_key=api_key, temperature=0.3, timeout=timeout, max_retries=0)
        if info.id == "perplexity":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(
                model=model,
                api_key=api_key,
                base_url=PERPLEXITY_BASE_URL,
                temperature=0.3,
                timeout=timeout,
                max_retries=0,
            )
        if info.id == "anthropic":
            from langchain_anthropic import ChatAnthropic

            return ChatAnthropic(model=model, api_key=api_key, temperature=0.3, timeout=timeout, max_retries=0)
        if info.id == "google":
            from langchain_google_genai import ChatGoogleGenerativeAI

            return ChatGoogleGenerativeAI(
                model=model,
                google_api_key=api_key,
                temperature=0.3,
                timeout=timeout,
                max_retries=0,
            )
        raise ValueError(f"Unknown provider: {info.id}")


# --- Generation backend ---


def _content_text(content: object) -> str:
    """Chat model content is a string or a list of content blocks (Anthropic, Gemini)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


def generate_text(model: BaseChatModel, prompt: str, system: str | None = None) -> str:
    messages = []
    if system:
        messages.append(SystemMessage(content=system))
    messages.append(HumanMessage(content=prompt))
    response = model.invoke(messages)
    return _content_text(getattr(response, "content", "")).strip()


def generate_object(model: BaseChatModel, schema: type[SchemaT], prompt: str) -> SchemaT:
    """Ask the model for an object matching schema. Raises if the output does not validate."""
    structured = model.with_structured_output(schema)
    result = structured.invoke([HumanMessage(content=prompt)])
    if result is None:
        raise ValueError(f"Model returned no {schema.__name__} object")
    if isinstance(result, schema):
        return result
    return schema.model_validate(result)
