"""
Tests for competitor identification: company profiling, candidate filtering,
graceful fallback and list normalization.
"""

from unittest.mock import MagicMock, patch

import pytest

from competitor_discovery import (
    assign_url_to_competitor,
    detect_company_size,
    detect_geographic_focus,
    detect_market_segment,
    filter_competitors,
    identify_competitors,
    normalize_competitor_name,
    select_competitors,
    to_identified_competitors,
    validate_competitor_url,
)
from config import AppConfig
from providers import ProviderRegistry
from schemas import Company, CompetitorCandidate, CompetitorList, IdentifiedCompetitor, TargetingOptions


def _candidate(name, direct=True, overlap="high", kind="direct"):
    return CompetitorCandidate(
        name=name,
        description=f"{name} description",
        is_direct_competitor=direct,
        market_overlap=overlap,
        business_model="SaaS",
        competitor_type=kind,
    )


@pytest.fixture
def candidates():
    return CompetitorList(
        competitors=[
            _candidate("Beta"),
            _candidate("Gamma", direct=False, overlap="high", kind="indirect"),
            _candidate("Amazon", direct=False, overlap="medium", kind="retailer"),
            _candidate("Delta", direct=False, overlap="low", kind="indirect"),
        ]
    )


class TestCompanyProfile:
    def test_size(self):
        assert detect_company_size(Company(name="Big", description="A global enterprise vendor")) == "enterprise"
        assert detect_company_size(Company(name="Tiny", description="An emerging startup")) == "startup"
        assert detect_company_size(Company(name="Mid", industry="SaaS", description="Tools")) == "medium"
        assert detect_company_size(Company(name="Plain", description="Tools")) == "small"

    def test_geographic_focus(self):
        assert detect_geographic_focus(Company(name="North", location="Minneapolis, MN")) == "Minneapolis/St. Paul area"
        assert detect_geographic_focus(Company(name="Shop", description="Your local bike shop")) == "Local/Regional market"
        assert detect_geographic_focus(Company(name="Plain")) == "National (USA)"

    def test_market_segment(self):
        assert detect_market_segment(Company(name="Shop", description="Your local bike shop")) == "local"
        assert detect_market_segment(Company(name="World", description="A global brand")) == "global"
        assert detect_market_segment(Company(name="Plain")) == "national"


class TestFilterCompetitors:
    def test_keeps_only_true_competitors(self, company, candidates):
        assert filter_competitors(candidates.competitors, company) == ["Beta", "Gamma"]

    def test_retailers_kept_for_marketplaces(self, candidates):
        marketplace = Company(name="Bazaar", industry="online marketplace")
        retailer = _candidate("Amazon", direct=False, overlap="medium", kind="retailer")
        assert filter_competitors([retailer], marketplace) == []
        assert filter_competitors([_candidate("Etsy", kind="platform")], marketplace) == ["Etsy"]

    def test_capped_at_nine(self, company):
        many = [_candidate(f"Rival {i}") for i in range(12)]
        assert len(filter_competitors(many, company)) == 9


class TestIdentifyCompetitors:
    def test_identifies_and_merges_scraped(self, company, registry, candidates):
        callback = MagicMock()
        with patch.object(registry, "get_model", return_value=MagicMock()), patch(
            "competitor_discovery.generate_object", return_value=candidates
        ) as generate:
            names = identify_competitors(company, registry, progress_callback=callback)

        assert names == ["Beta", "Gamma"]
        assert generate.call_count == 1
        assert callback.call_count == 2
        first = callback.call_args_list[0].args[0]
        assert (first.competitor, first.index, first.total) == ("Beta", 1, 2)

    def test_scraped_competitors_appended(self, company, registry):
        company.scraped_data.competitors.append("Omega")
        result = CompetitorList(competitors=[_candidate("Gamma")])
        with patch.object(registry, "get_model", return_value=MagicMock()), patch(
            "competitor_discovery.generate_object", return_value=result
        ):
            names = identify_competitors(company, registry)
        assert names == ["Gamma", "Beta", "Omega"]

    def test_falls_back_to_scraped_on_failure(self, company, registry):
        callback = MagicMock()
        with patch.object(registry, "get_model", return_value=MagicMock()), patch(
            "competitor_discovery.generate_object", side_effect=RuntimeError("rate limited")
        ):
            names = identify_competitors(company, registry, progress_callback=callback)
        assert names == ["Beta"]
        callback.assert_not_called()

    def test_no_providers_configured(self, company):
        assert identify_competitors(company, ProviderRegistry(AppConfig())) == ["Beta"]

    def test_targeting_overrides_profile(self, company, registry, candidates):
        with patch.object(registry, "get_model", return_value=MagicMock()), patch(
            "competitor_discovery.generate_object", return_value=candidates
        ) as generate:
            identify_competitors(company, registry, options=TargetingOptions(target_size="enterprise"))
        prompt = generate.call_args.args[2]
        assert "Size: enterprise" in prompt

    def test_prompt_carries_examples_and_size_guidance(self, company, registry, candidates):
        with patch.object(registry, "get_model", return_value=MagicMock()), patch(
            "competitor_discovery.generate_object", return_value=candidates
        ) as generate:
            identify_competitors(company, registry)
        prompt = generate.call_args.args[2]
        assert "For example:" in prompt
        assert "find OTHER startup AI tools, not OpenAI/Google" in prompt
        assert "- Exclude global giants unless the company itself is large\n" in prompt


class TestCompetitorListHelpers:
    def test_normalize_name(self):
        assert normalize_competitor_name("  Amazon Web Services ") == "aws"
        assert normalize_competitor_name("Beta") == "beta"

    def test_assign_url(self):
        assert assign_url_to_competitor("The Beta Co.") == "betaco.com"
        assert assign_url_to_competitor("AB") is None

    def test_validate_url(self):
        assert validate_competitor_url("https://www.beta.com/") == "www.beta.com"
        assert validate_competitor_url("beta.com/pricing") == "beta.com/pricing"
        assert validate_competitor_url("") is None
        assert validate_competitor_url("not a url") is None
        assert validate_competitor_url("localhost") is None

    def test_to_identified_competitors(self, company):
        names = ["Beta", "beta", "Acme", "Competitor 1", "Amazon Web Services", "AWS", ""]
        identified = to_identified_competitors(names, company)
        assert [c.name for c in identified] == ["Beta", "Amazon Web Services"]
        assert identified[0].url == "beta.com"

    def test_select_competitors_cleans_urls(self, company):
        selected = select_competitors(
            [
                IdentifiedCompetitor(name="Beta", url="https://www.beta.io/"),
                IdentifiedCompetitor(name="Gamma", url="not a url"),
                IdentifiedCompetitor(name="Delta"),
                IdentifiedCompetitor(name="acme", url="acme.com"),
            ],
            company,
        )
        assert [(c.name, c.url) for c in selected] == [
            ("Beta", "www.beta.io"),
            ("Gamma", "gamma.com"),
            ("Delta", "delta.com"),
        ]

    def test_select_competitors_capped_at_nine(self):
        selected = select_competitors([IdentifiedCompetitor(name=f"Rival {i}") for i in range(15)])
        assert len(selected) == 9
        assert selected[-1].name == "Rival 8"
