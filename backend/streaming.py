"""
Analysis pipeline with SSE progress streaming.
Flow: Initialize -> Identify Competitors -> Generate Prompts -> Analyze (prompts x providers, parallel)
-> Finalize (aggregate) -> Complete. Every stage change and every settled provider call emits one event.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Iterator

from aggregator import aggregate, calculate_brand_scores
from analyzer import analyze_prompt_with_provider
from change_detector import apply_weekly_change
from competitor_discovery import identify_competitors, select_competitors, to_identified_competitors
from config import AppConfig
from errors import ProviderCallError, StreamTerminationError
from prompt_generator import apply_prompt_edits, generate_prompts_for_company
from providers import ProviderRegistry, display_name
from schemas import (
    AIResponse,
    AnalysisResult,
    AnalyzeRequest,
    BrandPrompt,
    CompetitorFoundData,
    SSEEvent,
)

logger = logging.getLogger(__name__)

STAGE_ORDER = [
    "initializing",
    "identifying-competitors",
    "generating-prompts",
    "analyzing",
    "finalizing",
    "complete",
]

STAGE_PROGRESS = {
    "initializing": 0,
    "identifying-competitors": 10,
    "generating-prompts": 20,
    "analyzing": 25,
    "finalizing": 95,
    "complete": 100,
}
ANALYZING_SPAN = 70  # analyzing covers 25% -> 95%
POLL_SECONDS = 0.5


class AnalysisProgress:
    """
    Finite-state progress channel. Stages only move forward one step at a time
    (analyzing may repeat); error is reachable from anywhere and, like complete, terminal.
    """

    def __init__(self) -> None:
        self.stage: str | None = None
        self.closed = False

    def _advance(self, stage: str, repeatable: bool = False) -> None:
        if self.closed:
            raise RuntimeError(f"Progress stream already closed ({self.stage})")
        target = STAGE_ORDER.index(stage)
        current = STAGE_ORDER.index(self.stage) if self.stage else -1
        if target == current and repeatable:
            return
        if target != current + 1:
            raise RuntimeError(f"Illegal stage transition {self.stage} -> {stage}")
        self.stage = stage

    def _require(self, stage: str) -> None:
        if self.closed or self.stage != stage:
            raise RuntimeError(f"Expected stage {stage}, currently {self.stage}")

    def start(self, message: str) -> SSEEvent:
        self._advance("initializing")
        return SSEEvent(type="start", stage="initializing", data={"message": message, "progress": 0})

    def identifying_competitors(self, message: str) -> SSEEvent:
        self._advance("identifying-competitors")
        return SSEEvent(
            type="progress",
            stage="identifying-competitors",
            data={"message": message, "progress": STAGE_PROGRESS["identifying-competitors"]},
        )

    def competitor_found(self, found: CompetitorFoundData) -> SSEEvent:
        self._require("identifying-competitors")
        return SSEEvent(type="competitor-found", stage="identifying-competitors", data=found.model_dump())

    def generating_prompts(self, message: str, prompts: list[BrandPrompt]) -> SSEEvent:
        self._advance("generating-prompts")
        return SSEEvent(
            type="progress",
            stage="generating-prompts",
            data={
                "message": message,
                "progress": STAGE_PROGRESS["generating-prompts"],
                "prompts": [p.model_dump() for p in prompts],
            },
        )

    def analyzing(self, data: dict) -> SSEEvent:
        self._advance("analyzing", repeatable=True)
        return SSEEvent(type="progress", stage="analyzing", data=data)

    def finalizing(self, message: str) -> SSEEvent:
        self._advance("finalizing")
        return SSEEvent(
            type="progress",
            stage="finalizing",
            data={"message": message, "progress": STAGE_PROGRESS["finalizing"]},
        )

    def complete(self, analysis: AnalysisResult) -> SSEEvent:
        self._advance("complete")
        self.closed = True
        return SSEEvent(type="complete", stage="complete", data={"analysis": analysis.model_dump(mode="json")})

    def fail(self, message: str, stage: str | None = None) -> SSEEvent:
        if self.closed:
            raise RuntimeError(f"Progress stream already closed ({self.stage})")
        failed_stage = stage or self.stage or "initializing"
        self.stage = "error"
        self.closed = True
        return SSEEvent(type="error", stage="error", data={"message": message, "failed_stage": failed_stage})


def format_sse(event: SSEEvent) -> str:
    return f"data: {event.model_dump_json()}\n\n"


def providers_for_run(registry: ProviderRegistry, config: AppConfig) -> list[str]:
    """Configured provider ids; in mock mode with nothing configured, every enabled provider."""
    configured = [p.id for p in registry.list_configured()]
    if configured or not config.use_mock_mode:
        return configured
    return [p.id for p in registry.list_enabled()]


def _selected_competitors(request: AnalyzeRequest) -> list[str]:
    """User-selected competitors, normalized the same way as identified ones (max 9)."""
    return [c.name for c in select_competitors(request.competitors or [], request.company)]


def _build_prompts(request: AnalyzeRequest, competitors: list[str]) -> list[BrandPrompt]:
    if request.prompts is not None:
        return apply_prompt_edits([], request.prompts)
    generated = generate_prompts_for_company(request.company, competitors)
    return apply_prompt_edits(generated, request.custom_prompts, request.removed_prompt_indices)


def run_analysis(
    request: AnalyzeRequest,
    registry: ProviderRegistry,
    config: AppConfig,
    cancelled: threading.Event | None = None,
    previous_rankings: list[dict] | None = None,
    mock_delay: tuple[float, float] = (1.0, 3.0),
) -> Iterator[SSEEvent]:
    """
    Run one analysis and yield its events in the order things actually happen.
    Ends with exactly one `complete` or `error` event. Setting `cancelled` (client went away)
    stops the run; provider calls not yet started are cancelled.
    """
    if cancelled is None:
        cancelled = threading.Event()
    progress = AnalysisProgress()
    company = request.company

    try:
        yield progress.start(f"Starting analysis for {company.name}")

        # --- Competitors ---
        yield progress.identifying_competitors("Identifying competitors...")
        if request.competitors is not None:
            competitors = _selected_competitors(request)
        else:
            identified = identify_competitors(company, registry, options=request.targeting)
            competitors = [c.name for c in to_identified_competitors(identified, company)]
        for i, name in enumerate(competitors):
            yield progress.competitor_found(CompetitorFoundData(competitor=name, index=i + 1, total=len(competitors)))

        # --- Prompts ---
        prompts = _build_prompts(request, competitors)
        if not prompts:
            raise StreamTerminationError("No prompts to analyze", "generating-prompts")
        yield progress.generating_prompts(f"Generated {len(prompts)} prompts", prompts)

        # --- Provider calls ---
        providers = providers_for_run(registry, config)
        if not providers:
            raise StreamTerminationError(
                "No AI providers configured. Please set up at least one API key to run an analysis.",
                "analyzing",
            )
        if config.use_mock_mode:
            logger.warning("Mock mode is on: provider responses for %s are simulated", company.name)

        responses: list[AIResponse] = []
        failed: dict[str, str] = {}
        for event_data in _analyze_all(
            prompts, providers, company.name, competitors, registry, config, cancelled, responses, failed, mock_delay
        ):
            yield progress.analyzing(event_data)
        if cancelled.is_set():
            logger.info("Analysis for %s abandoned: client disconnected", company.name)
            return

        if not responses:
            raise StreamTerminationError(
                "All AI providers failed to respond. Please check your API configuration and try again.",
                "analyzing",
            )

        # --- Aggregation ---
        yield progress.finalizing("Calculating visibility scores...")
        invoked = [display_name(p) for p in providers if _has_responses(responses, p)]
        result = aggregate(company, responses, competitors, providers=invoked)
        overall = apply_weekly_change(result.overall, previous_rankings)
        analysis = AnalysisResult(
            company=company,
            competitors=overall,
            prompts=prompts,
            responses=responses,
            provider_rankings=result.per_provider,
            provider_comparison=result.comparison,
            scores=calculate_brand_scores(responses, company.name, overall),
            failed_providers=sorted(failed),
        )
        logger.info(
            "Analysis for %s complete: %s responses, %s failed providers",
            company.name,
            len(responses),
            len(failed),
        )
        yield progress.complete(analysis)
    except StreamTerminationError as e:
        logger.error("Analysis for %s stopped at %s: %s", company.name, e.stage, e.message)
        yield progress.fail(e.message, e.stage)
    except Exception as e:
        logger.exception("Analysis for %s failed", company.name)
        yield progress.fail(str(e) or "Analysis failed")


def _has_responses(responses: list[AIResponse], provider: str) -> bool:
    name = display_name(provider)
    return any(r.provider == name for r in responses)


def _analyze_all(
    prompts: list[BrandPrompt],
    providers: list[str],
    brand_name: str,
    competitors: list[str],
    registry: ProviderRegistry,
    config: AppConfig,
    cancelled: threading.Event,
    responses: list[AIResponse],
    failed: dict[str, str],
    mock_delay: tuple[float, float],
) -> Iterator[dict]:
    """
    Fan out every (prompt, provider) pair on a thread pool and yield one progress payload
    per settled call, in completion order. Collects into responses / failed.
    """
    total = len(prompts) * len(providers)
    executor = ThreadPoolExecutor(max_workers=max(1, min(config.max_concurrency, total)))
    try:
        futures = {
            executor.submit(
                analyze_prompt_with_provider,
                prompt.prompt,
                provider,
                brand_name,
                competitors,
                registry,
                config.use_mock_mode,
                mock_delay,
            ): (prompt, provider)
            for prompt in prompts
            for provider in providers
        }
        yield {
            "message": f"Analyzing {len(prompts)} prompts across {len(providers)} providers",
            "progress": STAGE_PROGRESS["analyzing"],
            "completed": 0,
            "total": total,
            "providers": [display_name(p) for p in providers],
        }

        completed = 0
        pending = set(futures)
        while pending and not cancelled.is_set():
            done, pending = wait(pending, timeout=POLL_SECONDS, return_when=FIRST_COMPLETED)
            for future in done:
                prompt, provider = futures[future]
                name = display_name(provider)
                completed += 1
                response = None
                error = None
                try:
                    response = future.result()
                except ProviderCallError as e:
                    error = e.message
                except Exception as e:
                    logger.exception("Unexpected error analyzing with %s", name)
                    error = f"Failed to analyze with {name}: {e!s}"

                if error:
                    logger.warning("Provider %s failed for prompt %s: %s", name, prompt.id, error)
                    failed.setdefault(name, error)
                    status = "failed"
                elif response is None:
                    status = "skipped"
                else:
                    responses.append(response)
                    status = "completed"

                yield {
                    "message": f"{name} {status} prompt {prompt.id}",
                    "progress": STAGE_PROGRESS["analyzing"] + round(ANALYZING_SPAN * completed / total),
                    "completed": completed,
                    "total": total,
                    "prompt": prompt.prompt,
                    "prompt_id": prompt.id,
                    "provider": name,
                    "status": status,
                    "response": response.model_dump(mode="json") if response else None,
                    "error": error,
                }
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
