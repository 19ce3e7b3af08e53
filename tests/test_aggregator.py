"""
Tests for cross-provider aggregation: visibility with the subject-brand discount,
share of voice, average position, sentiment, per-provider scoping and brand scores.
"""

import pytest

from aggregator import (
    aggregate,
    analyze_competitors,
    analyze_competitors_by_provider,
    calculate_brand_scores,
    calculate_sentiment_score,
    determine_sentiment,
    tracked_companies,
)
from schemas import BrandScores


@pytest.fixture
def three_way_responses(make_response):
    """Acme in 2 of 4 responses, Beta in 3, Gamma in 2."""
    return [
        make_response([(1, "Acme", "positive"), (2, "Beta", "neutral")], brand_mentioned=True, brand_position=1),
        make_response([(1, "Beta", "positive"), (2, "Gamma", "neutral")]),
        make_response([(2, "Acme", "positive"), (1, "Beta", "positive")], brand_mentioned=True, brand_position=2),
        make_response([(1, "Gamma", "negative")]),
    ]


def _by_name(rankings):
    return {r.name: r for r in rankings}


class TestSentimentHelpers:
    def test_sentiment_score(self):
        assert calculate_sentiment_score([]) == 50
        assert calculate_sentiment_score(["positive", "negative"]) == 50
        assert calculate_sentiment_score(["positive", "positive", "neutral"]) == 83

    def test_plurality(self):
        assert determine_sentiment(["positive", "positive", "neutral"]) == "positive"
        assert determine_sentiment(["negative", "negative", "positive"]) == "negative"
        assert determine_sentiment(["positive", "negative"]) == "neutral"
        assert determine_sentiment([]) == "neutral"


class TestTrackedCompanies:
    def test_subject_first_and_deduplicated(self, company):
        assert tracked_companies(company, ["Beta", "acme", "beta", "Gamma"]) == ["Acme", "Beta", "Gamma"]


class TestAnalyzeCompetitors:
    """Company-wide rankings."""

    def test_no_competition_discount(self, company, make_response):
        """Brand in every answer, nobody else mentioned: visibility is cut to 60%."""
        responses = [
            make_response([(1, "Acme", "neutral")], brand_mentioned=True, brand_position=1),
            make_response([(1, "Acme", "neutral")], brand_mentioned=True, brand_position=1),
        ]
        rankings = _by_name(analyze_competitors(company, responses, ["Beta"]))

        assert rankings["Acme"].visibility_score == 60.0
        assert rankings["Acme"].share_of_voice == 100.0
        assert rankings["Acme"].is_own
        assert rankings["Beta"].visibility_score == 0
        assert rankings["Beta"].average_position == 99

    def test_three_way_scoring(self, company, three_way_responses):
        rankings = analyze_competitors(company, three_way_responses, ["Beta", "Gamma"])
        by_name = _by_name(rankings)

        assert [r.name for r in rankings] == ["Beta", "Gamma", "Acme"]
        assert by_name["Beta"].mentions == 3
        assert by_name["Beta"].visibility_score == 75.0
        assert by_name["Gamma"].visibility_score == 50.0
        # other mentions (5) / responses (4) exceeds the 0.8 cap
        assert by_name["Acme"].visibility_score == 10.0
        assert by_name["Acme"].average_position == 1.5
        assert by_name["Beta"].average_position == 1.3
        assert by_name["Beta"].share_of_voice == 42.9
        assert by_name["Acme"].share_of_voice == 28.6

    def test_brand_mentioned_only_in_text_counts_once(self, company, make_response):
        responses = [make_response([(1, "Beta", "neutral")], brand_mentioned=True, brand_position=None)]
        by_name = _by_name(analyze_competitors(company, responses, ["Beta"]))
        assert by_name["Acme"].mentions == 1
        assert by_name["Acme"].average_position == 99

    def test_one_mention_per_response(self, company, make_response):
        responses = [make_response([(1, "Beta", "neutral"), (3, "beta", "neutral")])]
        by_name = _by_name(analyze_competitors(company, responses, ["Beta"]))
        assert by_name["Beta"].mentions == 1
        assert by_name["Beta"].average_position == 2.0

    def test_untracked_companies_ignored(self, company, make_response):
        responses = [make_response([(1, "Omega", "positive")])]
        names = [r.name for r in analyze_competitors(company, responses, ["Beta"])]
        assert "Omega" not in names

    def test_share_of_voice_sums_to_100(self, company, three_way_responses):
        rankings = analyze_competitors(company, three_way_responses, ["Beta", "Gamma"])
        assert sum(r.share_of_voice for r in rankings) == pytest.approx(100, abs=0.3)

    def test_two_providers_three_prompts(self, company, make_response):
        """Acme in all 6 answers, Beta in 4, Gamma in none."""
        responses = [
            make_response(
                [(1, "Acme", "positive")] + ([(2, "Beta", "neutral")] if i < 2 else []),
                provider=provider,
                brand_mentioned=True,
                brand_position=1,
                prompt=f"Prompt {i}",
            )
            for provider in ("OpenAI", "Anthropic")
            for i in range(3)
        ]
        result = aggregate(company, responses, ["Beta", "Gamma"], providers=["OpenAI", "Anthropic"])
        by_name = _by_name(result.overall)

        assert by_name["Beta"].visibility_score == 66.7
        assert by_name["Gamma"].visibility_score == 0
        # 4 other mentions over 6 responses leaves a third of the raw 100
        assert by_name["Acme"].visibility_score == 33.3
        assert by_name["Acme"].share_of_voice == 60.0
        assert by_name["Beta"].share_of_voice == 40.0
        assert sum(r.share_of_voice for r in result.overall) == pytest.approx(100, abs=0.3)

    def test_subject_name_whitespace_ignored(self, company, make_response):
        padded = company.model_copy(update={"name": " Acme  "})
        responses = [make_response([(1, "Acme", "positive"), (2, "Beta", "neutral")])]
        by_name = _by_name(analyze_competitors(padded, responses, ["Beta"]))

        assert set(by_name) == {"Acme", "Beta"}
        assert by_name["Acme"].mentions == 1
        assert by_name["Acme"].is_own

    def test_empty_response_set(self, company):
        rankings = analyze_competitors(company, [], ["Beta"])
        assert all(r.visibility_score == 0 and r.share_of_voice == 0 for r in rankings)

    def test_idempotent(self, company, three_way_responses):
        first = analyze_competitors(company, three_way_responses, ["Beta", "Gamma"])
        second = analyze_competitors(company, three_way_responses, ["Beta", "Gamma"])
        assert first == second


class TestProviderScope:
    """Per-provider rankings and the comparison matrix."""

    def test_providers_without_responses_are_skipped(self, company, make_response):
        responses = [
            make_response([(1, "Beta", "neutral")], provider="OpenAI"),
            make_response([(1, "Acme", "positive")], provider="Anthropic", brand_mentioned=True),
        ]
        per_provider, comparison = analyze_competitors_by_provider(
            company, responses, ["Beta"], providers=["OpenAI", "Google", "Anthropic"]
        )

        assert [p.provider for p in per_provider] == ["OpenAI", "Anthropic"]
        by_name = {c.competitor: c for c in comparison}
        assert set(by_name["Beta"].providers) == {"OpenAI", "Anthropic"}
        assert by_name["Beta"].providers["OpenAI"].visibility_score == 100.0
        assert by_name["Acme"].is_own

    def test_comparison_sorted_by_mean_visibility(self, company, make_response):
        responses = [
            make_response([(1, "Beta", "neutral")], provider="OpenAI"),
            make_response([(1, "Beta", "neutral")], provider="Anthropic"),
        ]
        _, comparison = analyze_competitors_by_provider(company, responses, ["Gamma", "Beta"])
        assert comparison[0].competitor == "Beta"

    def test_aggregate_filters_to_given_providers(self, company, make_response):
        responses = [
            make_response([(1, "Beta", "neutral")], provider="OpenAI"),
            make_response([(1, "Gamma", "neutral")], provider="Perplexity"),
        ]
        result = aggregate(company, responses, ["Beta", "Gamma"], providers=["OpenAI"])
        by_name = _by_name(result.overall)
        assert by_name["Gamma"].mentions == 0
        assert [p.provider for p in result.per_provider] == ["OpenAI"]


class TestBrandScores:
    def test_composite_score(self, company, three_way_responses):
        rankings = analyze_competitors(company, three_way_responses, ["Beta", "Gamma"])
        scores = calculate_brand_scores(three_way_responses, "Acme", rankings)

        assert scores.visibility_score == 10.0
        assert scores.sentiment_score == 100
        assert scores.share_of_voice == 28.6
        assert scores.average_position == 1.5
        # 0.3*10 + 0.2*100 + 0.3*28.6 + 0.2*95
        assert scores.overall_score == 50.6

    def test_overall_within_bounds_for_top_position(self, company, make_response):
        responses = [make_response([(0.5, "Acme", "positive")], brand_mentioned=True, brand_position=1)]
        rankings = analyze_competitors(company, responses, [])
        scores = calculate_brand_scores(responses, "Acme", rankings)
        assert 0 <= scores.overall_score <= 100

    def test_no_responses(self, company):
        assert calculate_brand_scores([], "Acme", []) == BrandScores()
