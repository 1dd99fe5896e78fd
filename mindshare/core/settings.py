"""Application settings loaded from environment / .env file.

Config precedence (highest to lowest):
    1. Environment variables
    2. ``.env`` file in project root
    3. Defaults defined in this module

Secrets (API keys) are never exposed in ``repr()``, ``str()``, or logs.
"""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root is two levels up from this file (mindshare/core/settings.py)
_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
    )

    api_host: str = "127.0.0.1"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # Tracked token / topic, e.g. "bonk"
    token_symbol: str = "bonk"

    # Upstream social data provider
    feed_api_base: str = "https://lunarcrush.com/api4"
    feed_api_key: str | None = Field(default=None, repr=False)
    feeds_ws_url: str | None = None
    influencers_ws_url: str | None = None
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    # Polling cadence per source type
    fast_poll_interval_ms: int = Field(default=5 * 60 * 1000, gt=0)
    slow_poll_interval_ms: int = Field(default=60 * 60 * 1000, gt=0)
    engine_autostart: bool = True

    # Collection bounds and ranking defaults
    rolling_cap_size: int = Field(default=500, gt=0)
    post_fetch_limit: int = Field(default=200, gt=0)
    influencer_fetch_limit: int = Field(default=50, gt=0)
    narrative_top_n: int = Field(default=12, gt=0)
    trending_top_n: int = Field(default=8, gt=0)

    @property
    def is_feed_configured(self) -> bool:
        """Return True if an upstream provider API key is set."""
        return bool(self.feed_api_key)

    @property
    def is_push_configured(self) -> bool:
        """Return True if at least one push channel URL is set."""
        return bool(self.feeds_ws_url or self.influencers_ws_url)

    @model_validator(mode="after")
    def _validate_poll_cadence(self) -> "Settings":
        """The slow (creator directory) cadence may not outpace the fast feed."""
        if self.slow_poll_interval_ms < self.fast_poll_interval_ms:
            msg = (
                f"slow_poll_interval_ms ({self.slow_poll_interval_ms}) must be >= "
                f"fast_poll_interval_ms ({self.fast_poll_interval_ms})."
            )
            raise ValueError(msg)
        return self

    def safe_dump(self) -> dict[str, object]:
        """Return settings dict with secrets masked — safe for logging."""
        return {
            "api_host": self.api_host,
            "api_port": self.api_port,
            "debug": self.debug,
            "log_level": self.log_level,
            "token_symbol": self.token_symbol,
            "feed_api_base": self.feed_api_base,
            "is_feed_configured": self.is_feed_configured,
            "is_push_configured": self.is_push_configured,
            "request_timeout_seconds": self.request_timeout_seconds,
            "fast_poll_interval_ms": self.fast_poll_interval_ms,
            "slow_poll_interval_ms": self.slow_poll_interval_ms,
            "rolling_cap_size": self.rolling_cap_size,
            "narrative_top_n": self.narrative_top_n,
            "trending_top_n": self.trending_top_n,
        }


settings = Settings()
