"""
Error taxonomy for the Brand Monitor backend.
Errors raised before an SSE stream starts become JSON error responses;
errors after that point are sent in-band as a terminal `error` event.
"""

from __future__ import annotations

from datetime import datetime, timezone


class BrandMonitorError(Exception):
    """Base class; carries the HTTP status and a machine-readable code."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: dict | None = None, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.hint = hint

    def to_dict(self) -> dict:
        body = {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self.details:
            body["details"] = self.details
        if self.hint:
            body["hint"] = self.hint
        return {"error": body}


class ConfigurationError(BrandMonitorError):
    """No providers configured, scraping unavailable, and similar setup problems."""

    status_code = 503
    code = "CONFIGURATION_ERROR"


class ValidationError(BrandMonitorError):
    """A required input field is missing or malformed. `details` maps field -> problem."""

    status_code = 400
    code = "VALIDATION_ERROR"


class ScrapeError(BrandMonitorError):
    """The website could not be scraped or its content could not be extracted."""

    status_code = 502
    code = "SCRAPE_ERROR"


class ProviderCallError(BrandMonitorError):
    """One provider invocation failed. Recorded per provider; the run continues without it."""

    status_code = 502
    code = "PROVIDER_ERROR"

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(
            f"Failed to analyze with {provider}: {message}. Please check your API configuration and try again.",
        )
        self.provider = provider


class StreamTerminationError(BrandMonitorError):
    """Failure inside the pipeline after streaming began; only reportable as an in-band event."""

    code = "STREAM_TERMINATED"

    def __init__(self, message: str, stage: str) -> None:
        super().__init__(message)
        self.stage = stage
