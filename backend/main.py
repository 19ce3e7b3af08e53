"""
FastAPI application for the Brand Monitor.
Workflow: POST /scrape (url) -> POST /identify-competitors -> POST /generate-prompts -> POST /analyze (SSE).
Each step can be called on its own; /analyze fills in whatever the request leaves out.
"""

from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterator

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from change_detector import find_previous_rankings, normalize_base_url, record_rankings
from competitor_discovery import identify_competitors, to_identified_competitors
from config import AppConfig, configure_logging
from errors import BrandMonitorError, ConfigurationError, ValidationError
from prompt_generator import generate_prompts_for_company
from providers import PROVIDER_CONFIGS, ProviderRegistry
from schemas import (
    AnalyzeRequest,
    Company,
    CompetitorRanking,
    GeneratePromptsRequest,
    GeneratePromptsResponse,
    IdentifyCompetitorsRequest,
    IdentifyCompetitorsResponse,
    ProvidersResponse,
    ProviderStatus,
    ScrapeRequest,
    ScrapeResponse,
    SSEEvent,
    TargetingOptions,
)
from scrape_agent import scrape_company, validate_url
from streaming import format_sse, run_analysis

CONFIG = AppConfig.from_env()
configure_logging(CONFIG.log_level)
logger = logging.getLogger(__name__)

REGISTRY = ProviderRegistry(CONFIG)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# --- Analysis history by company URL (week-over-week changes) ---
ANALYSIS_HISTORY: dict[str, list[dict]] = {}  # url_normalized -> list of { timestamp, overall_score, competitors }


def get_config() -> AppConfig:
    return CONFIG


def get_registry() -> ProviderRegistry:
    return REGISTRY


@asynccontextmanager
async def lifespan(app: FastAPI):
    configured = [p.name for p in REGISTRY.list_configured()]
    logger.info("Configured AI providers: %s", ", ".join(configured) or "none")
    if CONFIG.use_mock_mode:
        logger.warning("USE_MOCK_MODE is on: analyses return simulated provider responses")
    yield


async def verify_access(request: Request, config: AppConfig = Depends(get_config)) -> None:
    """Require x-access-code header when API_ACCESS_KEY is set. /health, /docs, /openapi.json and / are always open."""
    path = request.url.path

    if not config.api_access_key:
        return
    if path in ["/", "/health", "/openapi.json"] or path.startswith("/docs"):
        return

    code = (request.headers.get("x-access-code") or "").strip()
    if code != config.api_access_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access code",
        )


app = FastAPI(
    title="Brand Monitor API",
    description="How visible is a brand in AI answers compared to its competitors",
    version="0.1.0",
    lifespan=lifespan,
    dependencies=[Depends(verify_access)],
)

_cors_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
if CONFIG.frontend_url:
    _cors_origins.append(CONFIG.frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(BrandMonitorError)
async def brand_monitor_error_handler(request: Request, exc: BrandMonitorError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = {".".join(str(p) for p in err["loc"] if p != "body"): err["msg"] for err in exc.errors()}
    error = ValidationError("Invalid request", details=details)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "message": "Brand Monitor API",
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/providers", response_model=ProvidersResponse)
def list_providers(registry: ProviderRegistry = Depends(get_registry)) -> ProvidersResponse:
    enabled = {p.id for p in registry.list_enabled()}
    return ProvidersResponse(
        providers=[
            ProviderStatus(
                id=info.id,
                name=info.name,
                enabled=info.id in enabled,
                configured=registry.is_configured(info.id),
            )
            for info in PROVIDER_CONFIGS.values()
        ]
    )


@app.post("/scrape", response_model=ScrapeResponse)
def scrape(
    body: ScrapeRequest,
    config: AppConfig = Depends(get_config),
    registry: ProviderRegistry = Depends(get_registry),
) -> ScrapeResponse:
    """Scrape a company website and extract its profile."""
    url = (body.url or "").strip()
    if not url:
        raise ValidationError("URL is required", details={"url": "required"})
    if not validate_url(url):
        raise ValidationError("Please enter a valid URL (e.g., example.com)", details={"url": "invalid"})
    company = scrape_company(url, registry, config, max_age=body.max_age)
    logger.info("Scraped company %s from %s", company.name, company.url)
    return ScrapeResponse(company=company)


def _require_company_name(company: Company) -> None:
    if not (company.name or "").strip():
        raise ValidationError("Company name is required", details={"company.name": "required"})


@app.post("/identify-competitors", response_model=IdentifyCompetitorsResponse)
def identify(
    body: IdentifyCompetitorsRequest,
    registry: ProviderRegistry = Depends(get_registry),
) -> IdentifyCompetitorsResponse:
    """Competitors for the company, ready for the user to keep or remove."""
    _require_company_name(body.company)
    options = TargetingOptions(
        target_size=body.target_size,
        geographic_region=body.geographic_region,
        market_segment=body.market_segment,
    )
    names = identify_competitors(
        body.company,
        registry,
        progress_callback=lambda found: logger.info(
            "Found competitor %s (%s/%s)", found.competitor, found.index, found.total
        ),
        options=options,
    )
    return IdentifyCompetitorsResponse(competitors=to_identified_competitors(names, body.company))


@app.post("/generate-prompts", response_model=GeneratePromptsResponse)
def generate_prompts(body: GeneratePromptsRequest) -> GeneratePromptsResponse:
    _require_company_name(body.company)
    return GeneratePromptsResponse(prompts=generate_prompts_for_company(body.company, body.competitors))


def _record_history(company: Company, event: SSEEvent) -> None:
    if not company.url:
        return
    analysis = event.data.get("analysis") or {}
    record_rankings(
        ANALYSIS_HISTORY,
        company.url,
        event.timestamp,
        [CompetitorRanking.model_validate(c) for c in analysis.get("competitors") or []],
        (analysis.get("scores") or {}).get("overall_score", 0),
    )


async def _event_stream(
    company: Company,
    events: Iterator[SSEEvent],
    cancelled: threading.Event,
) -> AsyncIterator[str]:
    """Serialize pipeline events as SSE frames; stop the pipeline when the client goes away."""
    try:
        async for event in iterate_in_threadpool(events):
            if event.type == "complete":
                _record_history(company, event)
            yield format_sse(event)
    finally:
        if not cancelled.is_set():
            cancelled.set()
        await run_in_threadpool(events.close)


@app.post("/analyze")
async def analyze(
    body: AnalyzeRequest,
    config: AppConfig = Depends(get_config),
    registry: ProviderRegistry = Depends(get_registry),
) -> StreamingResponse:
    """
    Run a full analysis and stream progress as Server-Sent Events.
    Setup problems are answered with a JSON error before any event is sent.
    """
    _require_company_name(body.company)
    if not registry.list_configured() and not config.use_mock_mode:
        raise ConfigurationError(
            "No AI providers configured.",
            hint="Set at least one AI API key (OpenAI, Anthropic, Google, or Perplexity) to run an analysis.",
        )

    previous = find_previous_rankings(ANALYSIS_HISTORY, body.company.url) if body.company.url else None
    cancelled = threading.Event()
    events = run_analysis(body, registry, config, cancelled=cancelled, previous_rankings=previous)
    logger.info("Starting analysis stream for %s", body.company.name)
    return StreamingResponse(
        _event_stream(body.company, events, cancelled),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/history")
def history(url: str = Query(..., description="Company URL the analyses were run for")) -> dict:
    entries = ANALYSIS_HISTORY.get(normalize_base_url(url))
    if not entries:
        raise HTTPException(status_code=404, detail="No analysis history for this URL")
    return {
        "url": url,
        "analyses": [
            {
                "timestamp": e["timestamp"],
                "overall_score": e["overall_score"],
                "competitors": e["competitors"],
            }
            for e in entries
        ],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=CONFIG.port)
