"""Tests for the structured logging baseline and event taxonomy.

Covers:
  - Logs include event_name and component
  - Secrets do not appear in output
  - Only counts/ids logged, not post text
  - setup_logging is idempotent
"""

import asyncio
import logging

import pytest
from mindshare.core.logging import (
    EVENT_APP_START,
    EVENT_BATCH_MERGED,
    EVENT_CHANNEL_CLOSED,
    EVENT_CHANNEL_CONNECTED,
    EVENT_CHANNEL_ERROR,
    EVENT_CHANNEL_MESSAGE,
    EVENT_CHANNEL_RECONNECT,
    EVENT_CONFIG_LOADED,
    EVENT_ENGINE_STARTED,
    EVENT_ENGINE_STOPPED,
    EVENT_MANUAL_REFRESH,
    EVENT_RECORD_PARSE_FAILED,
    EVENT_SOURCE_FETCH_FAILED,
    EVENT_SOURCE_FETCH_START,
    EVENT_SOURCE_FETCH_SUCCEEDED,
    EVENT_VISIBILITY_CHANGED,
    log_event,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Logs include event_name and component (logger name)
# ---------------------------------------------------------------------------


class TestLogEventFormat:
    def test_log_event_emits_event_name(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        test_logger = logging.getLogger("test.component")
        with caplog.at_level(logging.INFO):
            log_event(test_logger, "info", "test_event", key="value")
        assert "test_event" in caplog.text

    def test_log_event_includes_kwargs(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        test_logger = logging.getLogger("test.component")
        with caplog.at_level(logging.INFO):
            log_event(test_logger, "info", "my_event", foo="bar", count=42)
        assert "my_event: foo=bar count=42" in caplog.text

    def test_log_event_without_kwargs(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        test_logger = logging.getLogger("test.component")
        with caplog.at_level(logging.INFO):
            log_event(test_logger, "info", "bare_event")
        assert caplog.records[-1].getMessage() == "bare_event"

    def test_log_event_component_in_record(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        test_logger = logging.getLogger("mindshare.services.engine")
        with caplog.at_level(logging.INFO):
            log_event(test_logger, "info", "test_event")
        assert any(r.name == "mindshare.services.engine" for r in caplog.records)

    def test_log_event_warning_level(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        test_logger = logging.getLogger("test.warn")
        with caplog.at_level(logging.WARNING):
            log_event(test_logger, "warning", "warn_event", detail="x")
        assert "warn_event" in caplog.text
        assert caplog.records[0].levelname == "WARNING"

    def test_unknown_level_falls_back_to_info(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        test_logger = logging.getLogger("test.fallback")
        with caplog.at_level(logging.INFO):
            log_event(test_logger, "loud", "odd_event")
        assert caplog.records[0].levelname == "INFO"


# ---------------------------------------------------------------------------
# Secrets and content
# ---------------------------------------------------------------------------


class TestNoSecretsInLogs:
    def test_safe_dump_masks_keys(self) -> None:
        from mindshare.core.settings import Settings

        s = Settings(
            feed_api_key="lc-TOPSECRET",
            _env_file=None,  # type: ignore[call-arg]
        )
        assert "TOPSECRET" not in str(s.safe_dump())

    def test_lunarcrush_failure_does_not_log_key(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        import httpx
        from mindshare.services.engine import SignalEngine
        from mindshare.services.feed_source import LunarCrushFeedSource

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(500, text="upstream down")),
            base_url="https://api.test",
        )
        engine = SignalEngine(LunarCrushFeedSource("lc-TOPSECRET", topic="bonk", client=client))
        with caplog.at_level(logging.DEBUG):
            asyncio.run(engine.refresh())
        assert "source_fetch_failed" in caplog.text
        assert "TOPSECRET" not in caplog.text


class TestContentNotLogged:
    def test_ingestion_logs_counts_not_text(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        from mindshare.services.engine import SignalEngine
        from mindshare.services.feed_source import StaticFeedSource

        source = StaticFeedSource(
            posts=[{"id": "1", "text": "my secret alpha about #bonk"}, {"text": "no id"}],
        )
        with caplog.at_level(logging.DEBUG):
            asyncio.run(SignalEngine(source).refresh())
        assert "records=1" in caplog.text
        assert "secret alpha" not in caplog.text


# ---------------------------------------------------------------------------
# Handler setup
# ---------------------------------------------------------------------------


class TestSetupLogging:
    def test_idempotent(self) -> None:
        root = logging.getLogger()
        level = root.level
        try:
            setup_logging(logging.INFO)
            count = len(root.handlers)
            setup_logging(logging.INFO)
            assert len(root.handlers) == count
        finally:
            root.setLevel(level)


# ---------------------------------------------------------------------------
# Event taxonomy completeness
# ---------------------------------------------------------------------------


class TestEventTaxonomy:
    def test_all_events_defined(self) -> None:
        assert EVENT_APP_START == "app_start"
        assert EVENT_CONFIG_LOADED == "config_loaded"
        assert EVENT_ENGINE_STARTED == "engine_started"
        assert EVENT_ENGINE_STOPPED == "engine_stopped"
        assert EVENT_SOURCE_FETCH_START == "source_fetch_start"
        assert EVENT_SOURCE_FETCH_SUCCEEDED == "source_fetch_succeeded"
        assert EVENT_SOURCE_FETCH_FAILED == "source_fetch_failed"
        assert EVENT_RECORD_PARSE_FAILED == "record_parse_failed"
        assert EVENT_BATCH_MERGED == "batch_merged"
        assert EVENT_VISIBILITY_CHANGED == "visibility_changed"
        assert EVENT_MANUAL_REFRESH == "manual_refresh"
        assert EVENT_CHANNEL_CONNECTED == "channel_connected"
        assert EVENT_CHANNEL_MESSAGE == "channel_message"
        assert EVENT_CHANNEL_ERROR == "channel_error"
        assert EVENT_CHANNEL_RECONNECT == "channel_reconnect"
        assert EVENT_CHANNEL_CLOSED == "channel_closed"
