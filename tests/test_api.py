"""
Tests for the HTTP layer: access guard, structured errors, the step endpoints
and the SSE analysis stream.
"""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

import main
import streaming
from config import AppConfig
from providers import ProviderRegistry


def _client_for(config: AppConfig):
    main.app.dependency_overrides[main.get_config] = lambda: config
    main.app.dependency_overrides[main.get_registry] = lambda: ProviderRegistry(config)
    return TestClient(main.app)


@pytest.fixture(autouse=True)
def _reset_app():
    main.ANALYSIS_HISTORY.clear()
    yield
    main.app.dependency_overrides.clear()
    main.ANALYSIS_HISTORY.clear()


@pytest.fixture
def client(config):
    return _client_for(config)


@pytest.fixture
def mock_client(mock_config):
    return _client_for(mock_config)


@pytest.fixture
def fast_pipeline():
    """Mock-mode analyses without the simulated provider latency."""

    def _run(*args, **kwargs):
        return streaming.run_analysis(*args, mock_delay=(0, 0), **kwargs)

    with patch("main.run_analysis", side_effect=_run):
        yield


def _events(response) -> list[dict]:
    frames = [f for f in response.text.split("\n\n") if f.strip()]
    return [json.loads(f[len("data: "):]) for f in frames]


def _analyze_body(company):
    return {
        "company": company.model_dump(mode="json"),
        "competitors": [{"name": "Beta"}, {"name": "Gamma"}],
        "prompts": [{"prompt": "Best web scraping API?"}],
    }


class TestAccess:
    def test_health_is_open(self, config):
        client = _client_for(config.model_copy(update={"api_access_key": "secret"}))
        assert client.get("/health").json() == {"status": "ok"}

    def test_access_code_required_when_set(self, config):
        client = _client_for(config.model_copy(update={"api_access_key": "secret"}))
        assert client.get("/providers").status_code == 401
        assert client.get("/providers", headers={"x-access-code": "wrong"}).status_code == 401
        assert client.get("/providers", headers={"x-access-code": "secret"}).status_code == 200

    def test_open_without_access_key(self, client):
        assert client.get("/providers").status_code == 200


class TestProvidersEndpoint:
    def test_lists_all_providers(self, client):
        providers = {p["id"]: p for p in client.get("/providers").json()["providers"]}
        assert set(providers) == {"openai", "anthropic", "google", "perplexity"}
        assert providers["openai"]["configured"] is True
        assert providers["google"]["configured"] is False
        assert providers["google"]["enabled"] is True


class TestScrapeEndpoint:
    def test_invalid_url(self, client):
        response = client.post("/scrape", json={"url": "not a url"})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"] == {"url": "invalid"}

    def test_scrape(self, client, company):
        with patch("main.scrape_company", return_value=company) as scrape:
            response = client.post("/scrape", json={"url": "acme.com", "max_age": 3600})

        assert response.status_code == 200
        assert response.json()["company"]["name"] == "Acme"
        assert scrape.call_args.kwargs["max_age"] == 3600

    def test_missing_firecrawl_key(self, company):
        client = _client_for(AppConfig())
        response = client.post("/scrape", json={"url": "acme.com"})
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "CONFIGURATION_ERROR"
        assert response.json()["error"]["hint"]


class TestStepEndpoints:
    def test_identify_competitors(self, client, company):
        with patch("main.identify_competitors", return_value=["Beta", "Gamma", "Acme"]):
            response = client.post(
                "/identify-competitors",
                json={"company": company.model_dump(mode="json"), "target_size": "small"},
            )

        assert response.status_code == 200
        assert response.json()["competitors"] == [
            {"name": "Beta", "url": "beta.com"},
            {"name": "Gamma", "url": "gamma.com"},
        ]

    def test_generate_prompts(self, client, company):
        response = client.post(
            "/generate-prompts",
            json={"company": company.model_dump(mode="json"), "competitors": ["Beta", "Gamma"]},
        )
        prompts = response.json()["prompts"]
        assert len(prompts) == 14
        assert prompts[0]["category"] == "ranking"

    def test_missing_company_is_validation_error(self, client):
        response = client.post("/generate-prompts", json={"competitors": []})
        assert response.status_code == 400
        assert "company" in response.json()["error"]["details"]

    def test_blank_company_name(self, client):
        response = client.post("/generate-prompts", json={"company": {"name": "  "}, "competitors": []})
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"company.name": "required"}


class TestAnalyzeEndpoint:
    def test_no_providers_configured(self, company):
        client = _client_for(AppConfig())
        response = client.post("/analyze", json=_analyze_body(company))
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "CONFIGURATION_ERROR"

    def test_streams_events(self, mock_client, company, fast_pipeline):
        response = mock_client.post("/analyze", json=_analyze_body(company))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        events = _events(response)
        assert events[0]["type"] == "start"
        assert events[-1]["type"] == "complete"
        assert len(events[-1]["data"]["analysis"]["responses"]) == 4

    def test_history_and_weekly_change(self, mock_client, company, fast_pipeline):
        assert mock_client.get("/history", params={"url": company.url}).status_code == 404

        mock_client.post("/analyze", json=_analyze_body(company))
        second = _events(mock_client.post("/analyze", json=_analyze_body(company)))

        history = mock_client.get("/history", params={"url": "www.acme.com"}).json()
        assert len(history["analyses"]) == 2
        competitors = second[-1]["data"]["analysis"]["competitors"]
        assert all(c["weekly_change"] == 0 for c in competitors)
