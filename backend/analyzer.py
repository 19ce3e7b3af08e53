"""
Per-provider prompt analysis.
One (prompt, provider) pair -> one AIResponse: free-text answer, structured re-analysis,
and an independent text-match cross-check of which companies were actually mentioned.
"""

from __future__ import annotations

import logging
import random
import time

from brand_detection import BrandDetectionOptions, detect_brand_mention, detect_multiple_brands
from errors import ProviderCallError
from providers import ProviderRegistry, display_name, generate_object, generate_text, normalize_provider_id
from schemas import AIResponse, CompanyRankingEntry, DetectionDetails, ResponseAnalysis

logger = logging.getLogger(__name__)

MAX_FALLBACK_RANKINGS = 5
MOCK_COMPETITORS = 3

SYSTEM_PROMPT = """You are an AI assistant analyzing brand visibility and rankings.
When responding to prompts about tools, platforms, or services:
1. Provide rankings with specific positions (1st, 2nd, etc.)
2. Focus on the companies mentioned in the prompt
3. Be objective and factual
4. Explain briefly why each tool is ranked where it is
5. If you don't have enough information about a specific company, you can mention that"""

DETECTION_OPTIONS = BrandDetectionOptions(case_sensitive=False, whole_word_only=True, include_variations=True)


def _analysis_prompt(text: str, brand_name: str, competitors: list[str]) -> str:
    return f"""Analyze this AI response about {brand_name} and competitors {", ".join(competitors)}:

"{text}"

Return a structured analysis including:
1. Whether {brand_name} is mentioned
2. {brand_name}'s position/ranking if mentioned
3. Overall sentiment about {brand_name}
4. Confidence in the analysis
5. Rankings of all companies mentioned
6. List of competitors mentioned

Be objective and factual."""


def mock_response(
    prompt: str,
    provider: str,
    brand_name: str,
    competitors: list[str],
    delay: tuple[float, float] = (1.0, 3.0),
) -> AIResponse:
    """Synthetic response for environments without providers: brand first, up to 3 competitors after."""
    logger.info('[MOCK] Simulating analysis for %s with prompt: "%s..."', provider, prompt[:50])
    low, high = delay
    if high > 0:
        time.sleep(random.uniform(low, high))
    shown = competitors[:MOCK_COMPETITORS]
    rankings = [
        CompanyRankingEntry(position=1, company=brand_name, reason="Primary brand being analyzed", sentiment="neutral")
    ]
    rankings += [
        CompanyRankingEntry(position=i + 2, company=c, reason="Competitor identified in analysis", sentiment="neutral")
        for i, c in enumerate(shown)
    ]
    return AIResponse(
        provider=display_name(provider),
        prompt=prompt,
        response=(
            f"[MOCK] Analysis of {brand_name} and competitors: {', '.join(competitors)}. "
            "This is a simulated response for testing purposes."
        ),
        rankings=rankings,
        competitors=shown,
        brand_mentioned=True,
        brand_position=1,
        sentiment="neutral",
        confidence=0.8,
    )


def _fallback_rankings(text: str, brand_name: str, competitors: list[str]) -> list[CompanyRankingEntry]:
    """Rankings built from text-matcher hits when the model returned none."""
    mentioned = [
        name for name in [brand_name, *competitors] if detect_brand_mention(text, name, DETECTION_OPTIONS).mentioned
    ]
    return [
        CompanyRankingEntry(
            position=i + 1,
            company=name,
            reason=f"{name} was mentioned in the analysis",
            sentiment="neutral",
        )
        for i, name in enumerate(mentioned[:MAX_FALLBACK_RANKINGS])
    ]


def analyze_prompt_with_provider(
    prompt: str,
    provider: str,
    brand_name: str,
    competitors: list[str],
    registry: ProviderRegistry,
    use_mock_mode: bool = False,
    mock_delay: tuple[float, float] = (1.0, 3.0),
) -> AIResponse | None:
    """
    Analyze one prompt with one provider.

    Returns None when the provider is not configured (callers filter these out).
    Raises ProviderCallError when a configured provider fails.
    """
    if use_mock_mode:
        return mock_response(prompt, provider, brand_name, competitors, mock_delay)

    provider_id = normalize_provider_id(provider)
    model = registry.get_model(provider_id)
    if model is None:
        logger.warning("Provider %s not configured, skipping provider", provider)
        return None

    name = display_name(provider_id)
    try:
        text = generate_text(model, f"Prompt: {prompt}", system=SYSTEM_PROMPT)
        logger.debug("%s answered (first 300 chars): %s", name, text[:300])
        structured = generate_object(model, ResponseAnalysis, _analysis_prompt(text, brand_name, competitors))
    except Exception as e:
        logger.error("Error with %s: %s", name, e)
        raise ProviderCallError(name, str(e)) from e

    analysis = structured.analysis
    brand_detection = detect_brand_mention(text, brand_name, DETECTION_OPTIONS)
    competitor_detection = detect_multiple_brands(text, competitors, DETECTION_OPTIONS)

    brand_mentioned = analysis.brand_mentioned or brand_detection.mentioned
    relevant_competitors = [c for c in competitors if competitor_detection[c].mentioned]

    rankings = [
        CompanyRankingEntry(position=r.position, company=r.company, reason=r.reason, sentiment=r.sentiment)
        for r in analysis.rankings
    ]
    if not rankings:
        rankings = _fallback_rankings(text, brand_name, competitors)

    return AIResponse(
        provider=name,
        prompt=prompt,
        response=text,
        rankings=rankings,
        competitors=relevant_competitors,
        brand_mentioned=brand_mentioned,
        brand_position=analysis.brand_position,
        sentiment=analysis.overall_sentiment,
        confidence=analysis.confidence,
        detection_details=DetectionDetails(
            brand_matches=brand_detection.matches,
            competitor_matches={
                c: result.matches for c, result in competitor_detection.items() if result.mentioned
            },
        ),
    )
