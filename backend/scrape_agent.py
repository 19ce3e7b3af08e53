"""
Company scraper: LangGraph workflow that turns a website URL into a Company.
Flow: Start -> Scrape (Firecrawl) -> Extract (first working AI provider) -> End.
"""

from __future__ import annotations

import logging
import re
from typing import TypedDict
from urllib.parse import urlparse

from firecrawl import FirecrawlApp
from langgraph.graph import END, START, StateGraph

from config import AppConfig
from errors import ConfigurationError, ScrapeError
from providers import ProviderRegistry, generate_object
from schemas import Company, CompanyExtraction, ScrapedData

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 7 * 24 * 60 * 60  # one week, seconds
MAX_EXTRACT_CHARS = 4000


class ScrapeState(TypedDict, total=False):
    """State for the scrape graph."""

    url: str
    max_age: int
    markdown: str
    metadata: dict
    extraction: CompanyExtraction | None
    company: Company | None


def normalize_url(url: str) -> str:
    u = (url or "").strip()
    if not u.startswith("http://") and not u.startswith("https://"):
        u = "https://" + u
    return u


def validate_url(url: str) -> bool:
    """True for something shaped like domain.tld (scheme optional)."""
    try:
        host = urlparse(normalize_url(url)).hostname or ""
    except ValueError:
        return False
    parts = host.split(".")
    if len(parts) < 2:
        return False
    tld = parts[-1]
    if len(tld) < 2 or not tld.isalpha():
        return False
    return all(re.fullmatch(r"[a-zA-Z0-9-]+", p) and not p.startswith("-") and not p.endswith("-") for p in parts)


def _domain_from_url(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower().replace("www.", "")
    except ValueError:
        return ""


def _strip_html_to_text(html: str, max_chars: int = 10000) -> str:
    """Crude HTML strip so we have text for the LLM when markdown is empty."""
    if not html:
        return ""
    text = re.sub(r"<script[^>]*>[\s\S]*?</script>", " ", html, flags=re.IGNORECASE)
    text = re.sub(r"<style[^>]*>[\s\S]*?</style>", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text[:max_chars] if text else ""


def _scrape_one(url: str, api_key: str, max_age: int) -> tuple[str, dict]:
    """
    Scrape a single URL with Firecrawl.
    Returns (markdown, metadata). Raises ScrapeError when nothing usable came back.
    """
    app = FirecrawlApp(api_key=api_key)
    try:
        result = app.scrape(url, formats=["markdown"], max_age=max_age * 1000)
    except TypeError:
        result = app.scrape(url)
    except Exception as e:
        raise ScrapeError(f"Failed to scrape website: {e!s}. Please check the URL and try again.") from e
    if not result:
        raise ScrapeError("Failed to scrape website: Firecrawl returned empty. Please check the URL and try again.")

    # Dict response: { "success": true, "data": { "markdown": ..., "metadata": ... } } or flat
    if isinstance(result, dict):
        if result.get("success") is False:
            err = result.get("error") or result.get("message") or "Scrape failed"
            raise ScrapeError(f"Failed to scrape website: {err}. Please check the URL and try again.")
        data = result.get("data") or result
        metadata = data.get("metadata") or {}
        md = data.get("markdown")
        if md and str(md).strip():
            return str(md).strip(), metadata
        html = data.get("html") or data.get("rawHtml")
        text = _strip_html_to_text(str(html or ""))
        if text:
            return text, metadata
        raise ScrapeError("Failed to scrape website: Firecrawl returned no content.")

    metadata = getattr(result, "metadata", None) or {}
    if not isinstance(metadata, dict):
        metadata = metadata.model_dump() if hasattr(metadata, "model_dump") else {}
    md = getattr(result, "markdown", None)
    if md and str(md).strip():
        return str(md).strip(), metadata
    text = _strip_html_to_text(str(getattr(result, "html", "") or ""))
    if text:
        return text, metadata
    raise ScrapeError("Failed to scrape website: Firecrawl returned no content.")


def _extraction_prompt(url: str, content: str) -> str:
    return f"""Extract company information from this website content. Focus on the company name, industry, description, services, and competitors.

Website: {url}
Content: {content[:MAX_EXTRACT_CHARS]}

IMPORTANT: Preserve the EXACT company name as it appears on the website. Do not correct, change, or modify the spelling of company names. Company names may have unusual spellings - preserve them exactly as written.

Extract the following information:
- Company name (exact spelling as shown on website)
- Industry/business category
- Description of what they do
- Main products/services
- Direct competitors in the same industry
- Company location, if stated

Be accurate and factual. If information is not available, use reasonable defaults based on the content."""


def _metadata_keywords(metadata: dict) -> list[str]:
    """Page keywords come as a list or a comma-separated string, depending on the site."""
    raw = metadata.get("keywords")
    if isinstance(raw, str):
        return [k.strip() for k in raw.split(",") if k.strip()]
    if isinstance(raw, list):
        return [str(k).strip() for k in raw if str(k).strip()]
    return []


def correct_company_name(extracted_name: str, url: str) -> str:
    """
    Prefer the domain's words when the extracted name lacks them
    (models sometimes "fix" unusual spellings, e.g. acme-tools.com -> 'Acme Tools').
    """
    name = extracted_name or "Unknown Company"
    domain_label = _domain_from_url(url).split(".")[0]
    if len(domain_label) <= 3:
        return name
    domain_words = [w for w in re.split(r"[-_]", domain_label) if w]
    name_words = [w for w in name.lower().split() if w]
    has_unique = any(not any(nw in dw or dw in nw for nw in name_words) for dw in domain_words)
    if has_unique:
        return " ".join(w[:1].upper() + w[1:].lower() for w in domain_words)
    return name


def build_scrape_graph(registry: ProviderRegistry, config: AppConfig) -> StateGraph:
    """Build the scrape graph: Start -> Scrape -> Extract -> End."""

    def scrape_node(state: ScrapeState) -> ScrapeState:
        if not config.firecrawl_api_key:
            raise ConfigurationError(
                "Web scraping is not configured.",
                hint="Set FIRECRAWL_API_KEY to analyze websites.",
            )
        url = state["url"]
        markdown, metadata = _scrape_one(url, config.firecrawl_api_key, state.get("max_age") or DEFAULT_MAX_AGE)
        logger.info("Scraped %s (%s chars)", url, len(markdown))
        return {**state, "markdown": markdown, "metadata": metadata}

    def extract_node(state: ScrapeState) -> ScrapeState:
        configured = registry.list_configured()
        if not configured:
            raise ConfigurationError(
                "No AI providers configured.",
                hint="Set at least one AI API key (OpenAI, Anthropic, Google, or Perplexity) to analyze website content.",
            )
        url = state["url"]
        prompt = _extraction_prompt(url, state.get("markdown") or "")
        extraction: CompanyExtraction | None = None
        last_error: Exception | None = None
        # Try each configured provider until one works
        for info in configured:
            model = registry.get_model(info.id)
            if model is None:
                continue
            try:
                extraction = generate_object(model, CompanyExtraction, prompt)
                break
            except Exception as e:
                logger.warning("Provider %s failed to extract company info: %s", info.name, e)
                last_error = e
        if extraction is None:
            reason = str(last_error) if last_error else "All AI providers failed"
            raise ScrapeError(
                f"Failed to analyze website content: {reason}. Please try again or check your API keys."
            )

        company = Company(
            name=correct_company_name(extraction.name, url),
            url=url,
            industry=extraction.industry or "Unknown",
            description=extraction.description or "No description available",
            location=extraction.location,
            scraped_data=ScrapedData(
                title=extraction.name or "Unknown Company",
                description=extraction.description or "No description available",
                keywords=_metadata_keywords(state.get("metadata") or {}),
                main_content=state.get("markdown") or "",
                main_products=list(extraction.services),
                competitors=list(extraction.competitors),
            ),
        )
        return {**state, "extraction": extraction, "company": company}

    graph = StateGraph(ScrapeState)
    graph.add_node("scrape", scrape_node)
    graph.add_node("extract", extract_node)
    graph.add_edge(START, "scrape")
    graph.add_edge("scrape", "extract")
    graph.add_edge("extract", END)
    return graph


def scrape_company(
    url: str,
    registry: ProviderRegistry,
    config: AppConfig,
    max_age: int | None = None,
) -> Company:
    """Scrape url and return the extracted Company. Raises ConfigurationError or ScrapeError."""
    normalized = normalize_url(url)
    graph = build_scrape_graph(registry, config).compile()
    result = graph.invoke({"url": normalized, "max_age": max_age or DEFAULT_MAX_AGE})
    company = result.get("company")
    if company is None:
        raise ScrapeError(f"Failed to analyze website content for {normalized}.")
    return company
