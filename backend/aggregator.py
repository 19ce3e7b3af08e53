"""
Cross-provider aggregation of AI responses into visibility, sentiment, share-of-voice
and position metrics, overall and per provider. Pure functions over an immutable response list.
"""

from __future__ import annotations

import math

from schemas import (
    AggregationResult,
    AIResponse,
    BrandScores,
    Company,
    CompetitorRanking,
    ProviderComparisonData,
    ProviderMetrics,
    ProviderSpecificRanking,
)

SENTIMENT_VALUES = {"positive": 100, "neutral": 50, "negative": 0}
UNRANKED_POSITION = 99
MAX_SELF_DISCOUNT = 0.8
NO_COMPETITION_FACTOR = 0.6


def _round1(value: float) -> float:
    """One decimal, halves rounded up."""
    return math.floor(value * 10 + 0.5) / 10


def calculate_sentiment_score(sentiments: list[str]) -> int:
    if not sentiments:
        return 50
    total = sum(SENTIMENT_VALUES[s] for s in sentiments)
    return math.floor(total / len(sentiments) + 0.5)


def determine_sentiment(sentiments: list[str]) -> str:
    """Strict plurality of positive or negative wins; anything else is neutral."""
    if not sentiments:
        return "neutral"
    counts = {"positive": 0, "neutral": 0, "negative": 0}
    for s in sentiments:
        counts[s] += 1
    if counts["positive"] > counts["negative"] and counts["positive"] > counts["neutral"]:
        return "positive"
    if counts["negative"] > counts["positive"] and counts["negative"] > counts["neutral"]:
        return "negative"
    return "neutral"


def tracked_companies(company: Company, competitors: list[str]) -> list[str]:
    """Subject company first, then competitors; each name once (case-insensitive)."""
    own = " ".join(company.name.split())
    names = [own]
    seen = {own.lower()}
    for name in competitors:
        key = (name or "").strip().lower()
        if key and key not in seen:
            seen.add(key)
            names.append(name.strip())
    return names


def _tally(company_name: str, tracked: list[str], responses: list[AIResponse]) -> dict[str, dict]:
    """Mentions (at most one per response), positions and sentiments per tracked company."""
    lookup = {name.lower(): name for name in tracked}
    tallies = {name: {"mentions": 0, "positions": [], "sentiments": []} for name in tracked}

    for response in responses:
        mentioned: set[str] = set()
        for ranking in response.rankings:
            name = lookup.get(ranking.company.strip().lower())
            if name is None:
                continue
            data = tallies[name]
            if name not in mentioned:
                data["mentions"] += 1
                mentioned.add(name)
            data["positions"].append(ranking.position)
            if ranking.sentiment:
                data["sentiments"].append(ranking.sentiment)

        # Brand mentioned in text but not in the ranking list
        if response.brand_mentioned and company_name not in mentioned:
            data = tallies[company_name]
            data["mentions"] += 1
            if response.brand_position:
                data["positions"].append(response.brand_position)
            data["sentiments"].append(response.sentiment)
    return tallies


def _rankings(company_name: str, tallies: dict[str, dict], total_responses: int) -> list[CompetitorRanking]:
    other_mentions = sum(d["mentions"] for name, d in tallies.items() if name != company_name)
    rankings: list[CompetitorRanking] = []

    for name, data in tallies.items():
        positions = data["positions"]
        avg_position = sum(positions) / len(positions) if positions else UNRANKED_POSITION
        visibility = data["mentions"] / total_responses * 100 if total_responses else 0.0

        # The subject brand shows up in nearly every answer because the prompts name it
        if name == company_name:
            if other_mentions > 0:
                visibility *= 1 - min(MAX_SELF_DISCOUNT, other_mentions / total_responses)
            else:
                visibility *= NO_COMPETITION_FACTOR

        rankings.append(
            CompetitorRanking(
                name=name,
                mentions=data["mentions"],
                average_position=_round1(avg_position),
                sentiment=determine_sentiment(data["sentiments"]),
                sentiment_score=calculate_sentiment_score(data["sentiments"]),
                share_of_voice=0,
                visibility_score=_round1(visibility),
                is_own=name == company_name,
            )
        )

    total_mentions = sum(r.mentions for r in rankings)
    for r in rankings:
        r.share_of_voice = _round1(r.mentions / total_mentions * 100) if total_mentions else 0

    rankings.sort(key=lambda r: r.visibility_score, reverse=True)
    return rankings


def analyze_competitors(
    company: Company,
    responses: list[AIResponse],
    known_competitors: list[str],
) -> list[CompetitorRanking]:
    """Company-wide ranking over every response, sorted by visibility score."""
    tracked = tracked_companies(company, known_competitors)
    tallies = _tally(tracked[0], tracked, responses)
    return _rankings(tracked[0], tallies, len(responses))


def _providers_in_order(responses: list[AIResponse], providers: list[str] | None) -> list[str]:
    if providers is not None:
        return list(dict.fromkeys(providers))
    return list(dict.fromkeys(r.provider for r in responses))


def analyze_competitors_by_provider(
    company: Company,
    responses: list[AIResponse],
    known_competitors: list[str],
    providers: list[str] | None = None,
) -> tuple[list[ProviderSpecificRanking], list[ProviderComparisonData]]:
    """
    Same scoring as analyze_competitors, scoped to each provider's responses.
    Providers without responses are left out entirely.
    """
    tracked = tracked_companies(company, known_competitors)
    own = tracked[0]

    provider_rankings: list[ProviderSpecificRanking] = []
    for provider in _providers_in_order(responses, providers):
        provider_responses = [r for r in responses if r.provider == provider]
        if not provider_responses:
            continue
        tallies = _tally(own, tracked, provider_responses)
        provider_rankings.append(
            ProviderSpecificRanking(
                provider=provider,
                competitors=_rankings(own, tallies, len(provider_responses)),
            )
        )

    comparison: list[ProviderComparisonData] = []
    for name in tracked:
        entry = ProviderComparisonData(competitor=name, is_own=name == own)
        for pr in provider_rankings:
            ranking = next((c for c in pr.competitors if c.name == name), None)
            if ranking is not None:
                entry.providers[pr.provider] = ProviderMetrics(
                    visibility_score=ranking.visibility_score,
                    position=ranking.average_position,
                    mentions=ranking.mentions,
                    sentiment=ranking.sentiment,
                )
        comparison.append(entry)

    def mean_visibility(entry: ProviderComparisonData) -> float:
        scores = [m.visibility_score for m in entry.providers.values()]
        return sum(scores) / len(scores) if scores else 0.0

    comparison.sort(key=mean_visibility, reverse=True)
    return provider_rankings, comparison


def aggregate(
    company: Company,
    responses: list[AIResponse],
    tracked_competitors: list[str],
    providers: list[str] | None = None,
) -> AggregationResult:
    """Overall ranking, per-provider rankings and the provider comparison matrix in one pass."""
    if providers is not None:
        responses = [r for r in responses if r.provider in providers]
    per_provider, comparison = analyze_competitors_by_provider(company, responses, tracked_competitors, providers)
    return AggregationResult(
        overall=analyze_competitors(company, responses, tracked_competitors),
        per_provider=per_provider,
        comparison=comparison,
    )


def calculate_brand_scores(
    responses: list[AIResponse],
    brand_name: str,
    competitors: list[CompetitorRanking],
) -> BrandScores:
    """
    Composite score for the subject brand:
    0.3 * visibility + 0.2 * sentiment + 0.3 * share of voice + 0.2 * position score.
    """
    if not responses:
        return BrandScores()
    brand = next((c for c in competitors if c.is_own), None)
    if brand is None:
        return BrandScores()

    avg_position = brand.average_position
    if avg_position <= 10:
        position_score = min(100, (11 - avg_position) * 10)
    else:
        position_score = max(0, 100 - avg_position * 2)

    overall = (
        brand.visibility_score * 0.3
        + brand.sentiment_score * 0.2
        + brand.share_of_voice * 0.3
        + position_score * 0.2
    )
    return BrandScores(
        visibility_score=_round1(brand.visibility_score),
        sentiment_score=_round1(brand.sentiment_score),
        share_of_voice=_round1(brand.share_of_voice),
        overall_score=_round1(overall),
        average_position=_round1(avg_position),
    )
