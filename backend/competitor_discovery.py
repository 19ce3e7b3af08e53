"""
Competitor identification for the subject company.
Profiles the company (size, geography, market segment), asks the first configured
provider for 6-9 candidates, and keeps only true competitors.
"""

from __future__ import annotations

import logging
import re
from typing import Callable
from urllib.parse import urlparse

from providers import ProviderRegistry, generate_object
from schemas import (
    Company,
    CompetitorCandidate,
    CompetitorFoundData,
    CompetitorList,
    IdentifiedCompetitor,
    TargetingOptions,
)

logger = logging.getLogger(__name__)

MAX_COMPETITORS = 9

STARTUP_KEYWORDS = ("startup", "new", "emerging", "founded", "launched", "innovative", "disruptive")
SMALL_KEYWORDS = ("small", "local", "boutique", "specialized", "niche", "family-owned")
ENTERPRISE_KEYWORDS = ("enterprise", "global", "fortune 500", "multinational", "corporate", "large-scale")

SIZE_DESCRIPTIONS = {
    "startup": "Early-stage companies, typically <50 employees",
    "small": "Small businesses, typically 10-100 employees",
    "medium": "Mid-sized companies, typically 100-1000 employees",
    "large": "Large companies, typically 1000-10000 employees",
    "enterprise": "Enterprise companies, typically 10000+ employees",
}

# (location hints, description hints, region); first match wins
METRO_AREAS = [
    (("minneapolis", "mn"), ("minneapolis",), "Minneapolis/St. Paul area"),
    (("san francisco", "sf"), ("bay area",), "San Francisco Bay Area"),
    (("new york", "nyc"), ("manhattan",), "New York City area"),
    (("austin",), ("texas",), "Austin/Texas area"),
    (("seattle",), ("pacific northwest",), "Seattle/Pacific Northwest"),
    (("boston",), ("massachusetts",), "Boston/New England"),
]

NAME_NORMALIZATIONS = {
    "amazon web services": "aws",
    "amazon web services (aws)": "aws",
    "amazon aws": "aws",
    "microsoft azure": "azure",
    "google cloud platform": "google cloud",
    "google cloud platform (gcp)": "google cloud",
    "gcp": "google cloud",
    "digital ocean": "digitalocean",
    "beautiful soup": "beautifulsoup",
    "bright data": "brightdata",
}

PLACEHOLDER_NAMES = frozenset(f"competitor {i}" for i in range(1, 6))

ProgressCallback = Callable[[CompetitorFoundData], None]


# --- Company profiling ---


def detect_company_size(company: Company) -> str:
    description = (company.description or "").lower()
    name = (company.name or "").lower()
    industry = (company.industry or "").lower()

    def has_any(keywords: tuple[str, ...]) -> bool:
        return any(k in description or k in name for k in keywords)

    if has_any(ENTERPRISE_KEYWORDS):
        return "enterprise"
    if has_any(STARTUP_KEYWORDS):
        return "startup"
    if has_any(SMALL_KEYWORDS):
        return "small"
    if "saas" in industry or "tech" in industry:
        return "medium"
    return "small"


def detect_geographic_focus(company: Company) -> str:
    description = (company.description or "").lower()
    location = (company.location or "").lower()

    for location_hints, description_hints, region in METRO_AREAS:
        if any(h in location for h in location_hints) or any(h in description for h in description_hints):
            return region
    if "local" in description or "regional" in description:
        return "Local/Regional market"
    if "national" in description or "usa" in description:
        return "National (USA)"
    if "global" in description or "international" in description:
        return "Global market"
    return "National (USA)"


def detect_market_segment(company: Company) -> str:
    description = (company.description or "").lower()
    focus = detect_geographic_focus(company)

    if "Local" in focus or "Regional" in focus:
        return "local"
    if "National" in focus:
        return "national"
    if "Global" in focus:
        return "global"
    if "local" in description or "regional" in description:
        return "local"
    if "national" in description:
        return "national"
    if "global" in description or "international" in description:
        return "global"
    return "national"


# --- Identification ---


def _identification_prompt(company: Company, size: str, focus: str, segment: str) -> str:
    scraped = company.scraped_data
    keywords_line = f"Keywords: {', '.join(scraped.keywords)}" if scraped and scraped.keywords else ""
    known_line = f"Known competitors: {', '.join(scraped.competitors)}" if scraped and scraped.competitors else ""
    size_description = SIZE_DESCRIPTIONS.get(size, SIZE_DESCRIPTIONS["small"])
    return f"""Identify 6-9 real, established competitors of {company.name} in the {company.industry or "technology"} industry.

Company: {company.name}
Industry: {company.industry}
Description: {company.description}
{keywords_line}
{known_line}

COMPANY PROFILE:
- Size: {size} ({size_description})
- Geographic Focus: {focus}
- Market Segment: {segment}

Based on this company's specific profile, identify competitors that:
1. Are SIMILAR IN SIZE ({size} companies, not global giants)
2. Target the SAME GEOGRAPHIC REGION ({focus})
3. Serve the SAME MARKET SEGMENT ({segment})
4. Offer SIMILAR products/services
5. Have a SIMILAR business model

COMPETITOR CRITERIA:
- For {size} companies: Focus on other {size} companies, not industry giants
- For {focus} focus: Find competitors in the same region
- For {segment} market: Target companies serving the same customer segment
- Exclude global giants unless the company itself is large/enterprise
- Prioritize direct competitors with similar market positioning

For example:
- If it's a small local web agency, find OTHER small local web agencies
- If it's a regional SaaS company, find OTHER regional SaaS companies
- If it's a startup AI tool, find OTHER startup AI tools, not OpenAI/Google

IMPORTANT:
- Only include companies you are confident actually exist
- Focus on TRUE competitors with similar market positioning
- Exclude global giants unless the company itself is large
- Aim for 6-9 competitors total
- Prioritize companies of similar size and geographic focus"""


def _is_retail_or_platform(company: Company) -> bool:
    industry = (company.industry or "").lower()
    return any(k in industry for k in ("marketplace", "platform", "retailer"))


def filter_competitors(candidates: list[CompetitorCandidate], company: Company) -> list[str]:
    """Keep true competitors; retailers/platforms only when the company is one itself. Max 9."""
    retail_or_platform = _is_retail_or_platform(company)
    kept: list[str] = []
    for c in candidates:
        if c.is_direct_competitor and c.market_overlap == "high":
            kept.append(c.name)
            continue
        if not retail_or_platform and c.competitor_type in ("retailer", "platform"):
            continue
        if c.competitor_type == "direct" or (c.competitor_type == "indirect" and c.market_overlap == "high"):
            kept.append(c.name)
    return kept[:MAX_COMPETITORS]


def identify_competitors(
    company: Company,
    registry: ProviderRegistry,
    progress_callback: ProgressCallback | None = None,
    options: TargetingOptions | None = None,
) -> list[str]:
    """
    Return competitor names for company. On any failure the competitors found while
    scraping are returned instead; the analysis can continue in that degraded mode.
    """
    scraped_competitors = list(company.scraped_data.competitors) if company.scraped_data else []
    try:
        configured = registry.list_configured()
        if not configured:
            raise RuntimeError("No AI providers configured and enabled")
        provider = configured[0]
        model = registry.get_model(provider.id)
        if model is None:
            raise RuntimeError(f"{provider.name} model not available")

        options = options or TargetingOptions()
        size = options.target_size or detect_company_size(company)
        focus = options.geographic_region or detect_geographic_focus(company)
        segment = options.market_segment or detect_market_segment(company)

        result = generate_object(model, CompetitorList, _identification_prompt(company, size, focus, segment))
        competitors = filter_competitors(result.competitors, company)
        logger.info(
            "Identified %s competitors for %s via %s (%s candidates)",
            len(competitors),
            company.name,
            provider.name,
            len(result.competitors),
        )

        for name in scraped_competitors:
            if name not in competitors:
                competitors.append(name)

        if progress_callback:
            for i, name in enumerate(competitors):
                progress_callback(CompetitorFoundData(competitor=name, index=i + 1, total=len(competitors)))
        return competitors
    except Exception as e:
        logger.error("Error identifying competitors for %s: %s", company.name, e)
        return scraped_competitors


# --- Competitor list helpers ---


def normalize_competitor_name(name: str) -> str:
    normalized = (name or "").lower().strip()
    return NAME_NORMALIZATIONS.get(normalized, normalized)


def assign_url_to_competitor(name: str) -> str | None:
    """Guess a .com domain from the name; None for very short names."""
    if not name or not name.strip():
        return None
    clean = re.sub(r"^(the|a|an)\s+", "", name.lower().strip())
    clean = re.sub(r"[^a-z0-9\s]", "", clean)
    clean = re.sub(r"\s+", "", clean)
    if len(clean) < 3:
        return None
    return f"{clean}.com"


def validate_competitor_url(url: str | None) -> str | None:
    """Return host (+ path) without scheme or trailing slash, or None if unusable."""
    if not url or not url.strip():
        return None
    clean = url.strip().rstrip("/")
    if not clean.startswith("http://") and not clean.startswith("https://"):
        clean = "https://" + clean
    try:
        parsed = urlparse(clean)
    except ValueError:
        return None
    host = parsed.hostname
    if "." not in host or " " in host or not re.fullmatch(r"[a-z0-9.\-]+", host):
        return None
    path = parsed.path if parsed.path not in ("", "/") else ""
    return host + path


def select_competitors(
    competitors: list[IdentifiedCompetitor],
    company: Company | None = None,
) -> list[IdentifiedCompetitor]:
    """
    Normalize a competitor list: dedup by normalized name, drop the subject company
    and placeholders, clean each URL (or guess one when it is unusable), cap at 9.
    """
    own = normalize_competitor_name(company.name) if company else None
    seen: dict[str, IdentifiedCompetitor] = {}
    for c in competitors:
        name = (c.name or "").strip()
        key = normalize_competitor_name(name)
        if not key or key == own or key in PLACEHOLDER_NAMES or key in seen:
            continue
        url = validate_competitor_url(c.url) or validate_competitor_url(assign_url_to_competitor(name))
        seen[key] = IdentifiedCompetitor(name=name, url=url)
        if len(seen) == MAX_COMPETITORS:
            break
    return list(seen.values())


def to_identified_competitors(names: list[str], company: Company | None = None) -> list[IdentifiedCompetitor]:
    return select_competitors([IdentifiedCompetitor(name=(raw or "")) for raw in names], company)


