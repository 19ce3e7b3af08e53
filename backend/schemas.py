"""
Pydantic V2 schemas for the Brand Monitor backend.
Entities of one analysis run (company, prompts, provider responses, rankings),
the structured-output schemas handed to the LLMs, and API payloads.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Sentiment = Literal["positive", "neutral", "negative"]
PromptCategory = Literal["ranking", "comparison", "alternatives", "recommendations"]
CompanySize = Literal["startup", "small", "medium", "large", "enterprise"]
MarketSegment = Literal["local", "regional", "national", "global"]

EventType = Literal["start", "progress", "competitor-found", "credits", "complete", "error"]
Stage = Literal[
    "initializing",
    "identifying-competitors",
    "generating-prompts",
    "analyzing",
    "finalizing",
    "complete",
    "error",
    "credits",
]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Company (subject brand) ---


class ScrapedData(BaseModel):
    """What the scraper pulled off the company's website."""

    model_config = ConfigDict(strict=True)

    title: str = Field(default="", description="Page or company title")
    description: str = Field(default="", description="Short description of the company")
    keywords: list[str] = Field(default_factory=list)
    main_content: str = Field(default="", description="Markdown of the scraped homepage")
    main_products: list[str] = Field(default_factory=list, description="Main products or services")
    competitors: list[str] = Field(default_factory=list, description="Competitors named during extraction")


class Company(BaseModel):
    """The subject brand of one analysis run."""

    model_config = ConfigDict(strict=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., description="Display name of the company")
    url: str = Field(default="", description="Canonical URL that was scraped")
    industry: str = Field(default="", description="Primary industry or business category")
    description: str = Field(default="")
    location: str | None = Field(None, description="Company location, if known")
    scraped_data: ScrapedData | None = Field(None)


class IdentifiedCompetitor(BaseModel):
    """A competitor the user can keep or remove before analysis starts."""

    model_config = ConfigDict(strict=True)

    name: str
    url: str | None = Field(None, description="Normalized host (and path), no scheme")


# --- Prompts ---


class BrandPrompt(BaseModel):
    model_config = ConfigDict(strict=True)

    id: str
    prompt: str
    category: PromptCategory


class CustomPrompt(BaseModel):
    """A user-supplied prompt; category defaults to ranking."""

    model_config = ConfigDict(strict=True)

    prompt: str
    category: PromptCategory = "ranking"


# --- Provider responses ---


class CompanyRankingEntry(BaseModel):
    """One line of a provider's ranking: position, company, reason, sentiment."""

    position: int | float
    company: str
    reason: str | None = None
    sentiment: Sentiment | None = None


class TextMatch(BaseModel):
    model_config = ConfigDict(strict=True)

    text: str
    index: int
    confidence: float


class DetectionDetails(BaseModel):
    """Text-matcher evidence attached to a response."""

    brand_matches: list[TextMatch] = Field(default_factory=list)
    competitor_matches: dict[str, list[TextMatch]] = Field(default_factory=dict)


class AIResponse(BaseModel):
    """Result of one (prompt, provider) invocation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(..., description="Provider display name, e.g. OpenAI")
    prompt: str
    response: str = Field(..., description="Raw free-text answer from the provider")
    rankings: list[CompanyRankingEntry] = Field(default_factory=list)
    competitors: list[str] = Field(default_factory=list, description="Competitors the text matcher confirmed")
    brand_mentioned: bool
    brand_position: int | float | None = None
    sentiment: Sentiment = "neutral"
    confidence: float = Field(default=0.0, ge=0, le=1)
    timestamp: str = Field(default_factory=utc_now_iso)
    detection_details: DetectionDetails = Field(default_factory=DetectionDetails)


# --- Structured-output schemas (LLM facing) ---


class ResponseRanking(BaseModel):
    position: int = Field(..., description="Position/ranking (1, 2, 3, etc.)")
    company: str = Field(..., description="Company name")
    reason: str = Field(..., description="Brief reason for this ranking")
    sentiment: Sentiment = Field(..., description="Sentiment about this company")


class ResponseAnalysisBody(BaseModel):
    brand_mentioned: bool = Field(..., description="Whether the brand is mentioned in the response")
    brand_position: int | None = Field(
        None,
        description="The brand's position/ranking (1-10, or null if not ranked)",
    )
    overall_sentiment: Sentiment = Field(..., description="Overall sentiment about the brand")
    confidence: float = Field(..., ge=0, le=1, description="Confidence in the analysis (0-1)")
    rankings: list[ResponseRanking] = Field(
        default_factory=list,
        description="Rankings of companies mentioned in the response",
    )
    competitors_mentioned: list[str] = Field(
        default_factory=list,
        description="List of competitor names mentioned in the response",
    )


class ResponseAnalysis(BaseModel):
    """Structured re-analysis of a provider's free-text answer."""

    analysis: ResponseAnalysisBody


class CompetitorCandidate(BaseModel):
    name: str
    description: str
    is_direct_competitor: bool
    market_overlap: Literal["high", "medium", "low"]
    business_model: str = Field(..., description="e.g., DTC brand, SaaS, API service, marketplace")
    competitor_type: Literal["direct", "indirect", "retailer", "platform"] = Field(
        ...,
        description=(
            "direct = same products, indirect = adjacent products, "
            "retailer = sells products, platform = aggregates"
        ),
    )


class CompetitorList(BaseModel):
    """Competitor candidates returned by the identification call."""

    competitors: list[CompetitorCandidate] = Field(default_factory=list)


class CompanyExtraction(BaseModel):
    """Company facts extracted from scraped website content."""

    name: str = Field(
        ...,
        description="The exact company name as it appears on the website - do not modify or correct the spelling",
    )
    industry: str = Field(..., description="The primary industry or business category")
    description: str = Field(..., description="A brief description of what the company does")
    services: list[str] = Field(default_factory=list, description="List of main products or services")
    competitors: list[str] = Field(
        default_factory=list,
        description="List of direct competitors in the same industry",
    )
    website: str | None = Field(None, description="The company's website URL")
    location: str | None = Field(None, description="Company location (if known)")


# --- Aggregates ---


class CompetitorRanking(BaseModel):
    """Per-company aggregate over a response set."""

    name: str
    mentions: int
    average_position: float
    sentiment: Sentiment
    sentiment_score: float = Field(..., ge=0, le=100)
    share_of_voice: float = Field(..., ge=0, le=100)
    visibility_score: float = Field(..., ge=0, le=100)
    weekly_change: float | None = None
    is_own: bool = False


class ProviderSpecificRanking(BaseModel):
    provider: str
    competitors: list[CompetitorRanking]


class ProviderMetrics(BaseModel):
    visibility_score: float
    position: float
    mentions: int
    sentiment: Sentiment


class ProviderComparisonData(BaseModel):
    """One tracked company, transposed across providers."""

    competitor: str
    providers: dict[str, ProviderMetrics] = Field(default_factory=dict)
    is_own: bool = False


class BrandScores(BaseModel):
    visibility_score: float = 0
    sentiment_score: float = 0
    share_of_voice: float = 0
    overall_score: float = 0
    average_position: float = 0


class AggregationResult(BaseModel):
    overall: list[CompetitorRanking]
    per_provider: list[ProviderSpecificRanking]
    comparison: list[ProviderComparisonData]


class AnalysisResult(BaseModel):
    """Payload of the final `complete` event."""

    company: Company
    competitors: list[CompetitorRanking]
    prompts: list[BrandPrompt]
    responses: list[AIResponse]
    provider_rankings: list[ProviderSpecificRanking]
    provider_comparison: list[ProviderComparisonData]
    scores: BrandScores
    failed_providers: list[str] = Field(default_factory=list)


# --- Streaming ---


class CompetitorFoundData(BaseModel):
    competitor: str
    index: int
    total: int


class SSEEvent(BaseModel):
    """Wire unit of the progress stream."""

    type: EventType
    stage: Stage
    data: dict = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utc_now_iso)


# --- API request/response schemas ---


class TargetingOptions(BaseModel):
    model_config = ConfigDict(strict=True)

    target_size: CompanySize | None = None
    geographic_region: str | None = None
    market_segment: MarketSegment | None = None


class ScrapeRequest(BaseModel):
    """Request body for POST /scrape."""

    model_config = ConfigDict(strict=True)

    url: str = Field(..., description="Company website, scheme optional")
    max_age: int | None = Field(None, description="Maximum cache age in seconds for the scrape")


class ScrapeResponse(BaseModel):
    company: Company


class IdentifyCompetitorsRequest(TargetingOptions):
    """Request body for POST /identify-competitors."""

    company: Company


class IdentifyCompetitorsResponse(BaseModel):
    competitors: list[IdentifiedCompetitor] = Field(default_factory=list)


class GeneratePromptsRequest(BaseModel):
    """Request body for POST /generate-prompts."""

    model_config = ConfigDict(strict=True)

    company: Company
    competitors: list[str]


class GeneratePromptsResponse(BaseModel):
    prompts: list[BrandPrompt] = Field(default_factory=list)


class AnalyzeRequest(BaseModel):
    """
    Request body for POST /analyze.
    competitors=None asks the pipeline to identify them; prompts=None asks it to generate them.
    """

    model_config = ConfigDict(strict=True)

    company: Company
    competitors: list[IdentifiedCompetitor] | None = None
    prompts: list[CustomPrompt] | None = Field(
        None,
        description="Frozen prompt list; replaces the generated prompts when given",
    )
    custom_prompts: list[CustomPrompt] = Field(
        default_factory=list,
        description="Appended to the generated prompts",
    )
    removed_prompt_indices: list[int] = Field(
        default_factory=list,
        description="Indices of generated prompts to drop",
    )
    targeting: TargetingOptions | None = None


class ProviderStatus(BaseModel):
    id: str
    name: str
    enabled: bool
    configured: bool


class ProvidersResponse(BaseModel):
    providers: list[ProviderStatus] = Field(default_factory=list)
