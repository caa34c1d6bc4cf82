"""Shared FastAPI dependencies and error translation."""

from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException

from decision_assistant.config import get_settings
from decision_assistant.errors import (
    AlreadyCompletedError,
    AssistantError,
    InvalidArgumentError,
    NoWorkingProviderError,
    NotFoundError,
    OperationTimeoutError,
    ProviderError,
    RateLimitedError,
    UnconfiguredError,
)
from decision_assistant.service import AssistantService, build_service


@lru_cache(maxsize=1)
def get_service() -> AssistantService:
    """Return the process-wide service built from settings."""
    return build_service(get_settings())


def http_error(exc: AssistantError) -> HTTPException:
    """Translate a core error into the HTTP status the host UI expects."""
    if isinstance(exc, UnconfiguredError):
        return HTTPException(status_code=400, detail={"error": str(exc), "needs_api_key": True})
    if isinstance(exc, InvalidArgumentError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AlreadyCompletedError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, RateLimitedError):
        return HTTPException(status_code=429, detail=f"AI provider rate limited: {exc}")
    if isinstance(exc, OperationTimeoutError):
        return HTTPException(status_code=504, detail=str(exc))
    if isinstance(exc, (NoWorkingProviderError, ProviderError)):
        return HTTPException(status_code=503, detail=f"LLM unavailable: {exc}")
    return HTTPException(status_code=500, detail=str(exc))
