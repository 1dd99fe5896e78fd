"""Structured logging baseline and event taxonomy.

Event taxonomy (minimum set)::

    app_start              — application process starting
    config_loaded          — settings resolved successfully
    engine_started         — signal engine scheduler running
    engine_stopped         — timers cleared, in-flight fetches cancelled
    source_fetch_start     — one source fetch initiated
    source_fetch_succeeded — source returned a raw batch
    source_fetch_failed    — source failed; empty batch for this tick
    record_parse_failed    — single raw record dropped by the normalizer
    batch_merged           — ingestion event applied to a rolling store
    visibility_changed     — polling suspended or resumed
    manual_refresh         — client requested an immediate fetch
    channel_connected      — push channel connected
    channel_message        — push channel delivered a batch
    channel_error          — push channel transport failure
    channel_reconnect      — push channel waiting before reconnecting
    channel_closed         — push channel closed

Rules:
    - Never log API keys or secrets.
    - Log record IDs and counts, not raw post text.

Usage::

    from mindshare.core.logging import log_event
    log_event(logger, "warning", "source_fetch_failed",
              source="lunarcrush", kind="posts", error_category="timeout")
"""

import logging
import sys

# Canonical event names for grep-ability and observability.
EVENT_APP_START = "app_start"
EVENT_CONFIG_LOADED = "config_loaded"
EVENT_ENGINE_STARTED = "engine_started"
EVENT_ENGINE_STOPPED = "engine_stopped"
EVENT_SOURCE_FETCH_START = "source_fetch_start"
EVENT_SOURCE_FETCH_SUCCEEDED = "source_fetch_succeeded"
EVENT_SOURCE_FETCH_FAILED = "source_fetch_failed"
EVENT_RECORD_PARSE_FAILED = "record_parse_failed"
EVENT_BATCH_MERGED = "batch_merged"
EVENT_VISIBILITY_CHANGED = "visibility_changed"
EVENT_MANUAL_REFRESH = "manual_refresh"
EVENT_CHANNEL_CONNECTED = "channel_connected"
EVENT_CHANNEL_MESSAGE = "channel_message"
EVENT_CHANNEL_ERROR = "channel_error"
EVENT_CHANNEL_RECONNECT = "channel_reconnect"
EVENT_CHANNEL_CLOSED = "channel_closed"


_HANDLER_ATTR = "_mindshare_engine"


def setup_logging(level: int = logging.INFO) -> None:
    """Configure root logger with a simple structured format.

    Safe to call multiple times — only adds the handler once.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Check if our handler is already attached
    for h in root.handlers:
        if getattr(h, _HANDLER_ATTR, False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    setattr(handler, _HANDLER_ATTR, True)
    root.addHandler(handler)


def log_event(
    logger: logging.Logger,
    level: str,
    event_name: str,
    **kwargs: object,
) -> None:
    """Emit a structured log line with consistent ``event_name: key=value`` format.

    Parameters
    ----------
    logger:
        The logger instance (provides the component via ``logger.name``).
    level:
        Log level name — ``"debug"``, ``"info"``, ``"warning"``, ``"error"``,
        or ``"exception"``.
    event_name:
        Canonical event name (e.g. ``"source_fetch_failed"``).
    **kwargs:
        Arbitrary key-value pairs appended as ``key=value``.
    """
    parts = " ".join(f"{k}={v}" for k, v in kwargs.items())
    message = f"{event_name}: {parts}" if parts else event_name
    log_fn = getattr(logger, level, logger.info)
    log_fn(message)
