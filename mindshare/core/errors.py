"""Error taxonomy and centralized normalization for the signal engine.

Four failure classes exist:

- :class:`ParseError` — a single malformed record; skipped, never fatal.
- :class:`SourceFetchError` — one source failed on one tick; that source
  contributes an empty batch while its siblings are unaffected.
- :class:`ChannelError` — the push transport failed; the channel is down
  until it reconnects or the next poll supersedes it.
- :class:`ConfigError` — an invalid knob; raised synchronously at setup.

Only :class:`ConfigError` ever escapes to callers.  Everything surfaced to
API clients passes through :func:`normalize_unknown_error` so no stack
traces or secrets leak.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import StrEnum

import httpx

from mindshare.core.logging import EVENT_SOURCE_FETCH_FAILED, log_event

logger = logging.getLogger(__name__)


class FetchErrorCategory(StrEnum):
    """Categorised source fetch failure reasons."""

    timeout = "timeout"
    http = "http"
    network = "network"
    parsing = "parsing"
    unknown = "unknown"


class SignalEngineError(Exception):
    """Base class for every error raised by the signal engine."""


class ParseError(SignalEngineError):
    """A single raw record could not be normalized."""


class SourceFetchError(SignalEngineError):
    """A feed source failed to deliver a batch."""

    def __init__(
        self,
        message: str,
        *,
        source: str,
        kind: str,
        category: FetchErrorCategory = FetchErrorCategory.unknown,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.kind = kind
        self.category = category
        self.status_code = status_code


class ChannelError(SignalEngineError):
    """The push channel transport failed."""


class ConfigError(SignalEngineError, ValueError):
    """An engine configuration value is invalid."""


@dataclass(frozen=True)
class NormalizedError:
    """Standardized error representation for logs and API responses."""

    user_message: str
    error_category: str
    retryable: bool
    http_status: int = 500


def classify_fetch_exception(exc: BaseException) -> FetchErrorCategory:
    """Map an arbitrary fetch exception onto a :class:`FetchErrorCategory`."""
    if isinstance(exc, SourceFetchError):
        return exc.category
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return FetchErrorCategory.timeout
    if isinstance(exc, httpx.HTTPStatusError):
        return FetchErrorCategory.http
    if isinstance(exc, httpx.RequestError):
        return FetchErrorCategory.network
    if isinstance(exc, (json.JSONDecodeError, ValueError, TypeError)):
        return FetchErrorCategory.parsing
    return FetchErrorCategory.unknown


def normalize_fetch_error(
    exc: BaseException,
    *,
    source: str,
    kind: str,
) -> NormalizedError:
    """Normalize a per-source fetch failure and log it.

    The caller substitutes an empty batch for *kind* on this tick.
    """
    category = classify_fetch_exception(exc)
    status_code = getattr(exc, "status_code", None)

    if category is FetchErrorCategory.timeout:
        error = NormalizedError(
            user_message=f"{source} did not respond in time.",
            error_category=category,
            retryable=True,
            http_status=504,
        )
    elif category is FetchErrorCategory.http:
        retryable = status_code is None or status_code >= 500 or status_code == 429
        error = NormalizedError(
            user_message=f"{source} returned an error (HTTP {status_code or '?'}).",
            error_category=category,
            retryable=retryable,
            http_status=502,
        )
    elif category is FetchErrorCategory.network:
        error = NormalizedError(
            user_message=f"Could not connect to {source}.",
            error_category=category,
            retryable=True,
            http_status=502,
        )
    elif category is FetchErrorCategory.parsing:
        error = NormalizedError(
            user_message=f"{source} returned an unreadable payload.",
            error_category=category,
            retryable=False,
            http_status=502,
        )
    else:
        error = NormalizedError(
            user_message=f"Unexpected error fetching from {source}.",
            error_category=category,
            retryable=False,
            http_status=500,
        )

    log_event(
        logger, "warning", EVENT_SOURCE_FETCH_FAILED,
        source=source,
        kind=kind,
        error_category=error.error_category,
        retryable=error.retryable,
        detail=f"{type(exc).__name__}: {exc}",
    )
    return error


def normalize_unknown_error(
    exc: Exception,
    *,
    operation: str,
    correlation_id: str | None = None,
) -> NormalizedError:
    """Normalize an unexpected error into a safe generic message."""
    log_event(
        logger, "exception", "unknown_error",
        operation=operation,
        error_category="unknown",
        correlation_id=correlation_id or "N/A",
        detail=f"{type(exc).__name__}: {exc}",
    )
    return NormalizedError(
        user_message="An unexpected error occurred. Please try again.",
        error_category="unknown",
        retryable=False,
        http_status=500,
    )
