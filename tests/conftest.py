"""
Pytest configuration and shared fixtures.

No test touches the network: chat models, Firecrawl and provider calls are patched
or replaced by mock-mode responses.
"""

from typing import Callable

import pytest

from config import AppConfig, ProviderSettings
from providers import ProviderRegistry
from schemas import AIResponse, Company, CompanyRankingEntry, ScrapedData


# ============================================================================
# Configuration
# ============================================================================

@pytest.fixture
def config() -> AppConfig:
    """OpenAI and Anthropic configured, Google and Perplexity without keys."""
    return AppConfig(
        providers={
            "openai": ProviderSettings(api_key="sk-test"),
            "anthropic": ProviderSettings(api_key="sk-ant-test"),
            "google": ProviderSettings(),
            "perplexity": ProviderSettings(),
        },
        firecrawl_api_key="fc-test",
    )


@pytest.fixture
def mock_config() -> AppConfig:
    """No keys at all, mock mode on."""
    return AppConfig(use_mock_mode=True)


@pytest.fixture
def registry(config) -> ProviderRegistry:
    return ProviderRegistry(config)


# ============================================================================
# Mock Data Fixtures
# ============================================================================

@pytest.fixture
def company() -> Company:
    return Company(
        name="Acme",
        url="https://acme.com",
        industry="web scraping",
        description="Acme extracts structured data from any website",
        scraped_data=ScrapedData(
            title="Acme",
            description="Acme extracts structured data from any website",
            keywords=["scraping", "crawler"],
            main_products=["web scraping API"],
            competitors=["Beta"],
        ),
    )


@pytest.fixture
def make_response() -> Callable[..., AIResponse]:
    """Factory for AIResponse; rankings given as (position, company, sentiment) tuples."""

    def _make(
        rankings=(),
        provider="OpenAI",
        brand_mentioned=False,
        brand_position=None,
        sentiment="neutral",
        prompt="Best web scraping tools?",
    ) -> AIResponse:
        return AIResponse(
            provider=provider,
            prompt=prompt,
            response="...",
            rankings=[
                CompanyRankingEntry(position=pos, company=name, sentiment=sent)
                for pos, name, sent in rankings
            ],
            brand_mentioned=brand_mentioned,
            brand_position=brand_position,
            sentiment=sentiment,
            confidence=0.9,
        )

    return _make
