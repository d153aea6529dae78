"""Application settings with Pydantic validation and environment loading."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .exceptions import FatalConfig


DEFAULT_UNWANTED_KEYWORDS = [
    "Why Is",
    "Stock Soaring",
    "shares resumed trade",
    "halted",
    "suspended",
    "Shares Resume",
    "Stock Is Down",
    "Stock Is Rising",
    "Rockets Higher",
    "trading higher",
    "Shares Are Down",
    "What's Going On",
    "Stock Is Trading Lower",
    "Shares Are Skyrocketing",
    "Here's Why",
    "Moving In",
    "Market-Moving News",
    "US Stocks Set To Open",
    "Nasdaq Dips",
    "Here Are Top",
]


class Settings(BaseSettings):
    """Agent settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Storage
    data_dir: Path = Field(
        default=Path("."), description="Directory holding the shared JSON files"
    )

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="text", description="Log format: json or text")

    # Record store locking
    lock_timeout: float = Field(
        default=10.0, gt=0, description="Max seconds to wait for a file lock"
    )
    lock_max_hold: float = Field(
        default=20.0, gt=0, description="Seconds after which a held lock is stale"
    )
    lock_retry_min: float = Field(default=0.05, ge=0)
    lock_retry_max: float = Field(default=0.15, ge=0)
    cross_process_locking: bool = Field(
        default=True, description="Also hold an fcntl lock on a sidecar file"
    )

    # External APIs
    http_timeout: float = Field(
        default=30.0, ge=1, le=120, description="External API timeout in seconds"
    )
    fetch_max_attempts: int = Field(
        default=3, ge=1, le=10, description="Attempts per ticker before giving up"
    )

    # Credentials - env vars keep their historical names
    apca_api_key_id: str = Field(default="", alias="APCA_API_KEY_ID")
    apca_api_secret_key: str = Field(default="", alias="APCA_API_SECRET_KEY")
    poly_api_key: str = Field(default="", alias="POLY_API_KEY")

    # Endpoints
    alpaca_news_url: str = "https://data.alpaca.markets/v1beta1/news"
    alpaca_test_news_url: str = "http://localhost:3000/v1beta1/news"
    polygon_financials_url: str = "https://api.polygon.io/vX/reference/financials"
    finviz_quote_url: str = "https://finviz.com/quote.ashx"
    sec_browse_url: str = "https://www.sec.gov/cgi-bin/browse-edgar"
    momo_scanner_url: str = "https://momoscreener.com/scanner"
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; tickerdesk/1.0; ops@example.com)",
        description="User-Agent sent to scraped sites (SEC requires contact info)",
    )

    # News
    news_lookback_hours: int = Field(default=24, ge=1, le=168)
    news_batch_size: int = Field(default=10, ge=1, le=50)
    news_limit: int = Field(default=50, ge=1, le=50)
    unwanted_keywords: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_UNWANTED_KEYWORDS)
    )
    single_symbol_news_only: bool = Field(
        default=False, description="Drop news items tagged with other symbols"
    )

    # Scanner thresholds
    scanner_min_price: float = Field(default=1.75, ge=0)
    scanner_max_price: float = Field(default=20.0, gt=0)
    scanner_max_float_millions: float = Field(default=300.0, gt=0)
    scanner_min_occurrences: int = Field(default=2, ge=1)
    scanner_interval_min: float = Field(default=30.0, ge=1)
    scanner_interval_max: float = Field(default=90.0, ge=1)

    # Filings
    filings_form_prefix: str = Field(default="S-3")

    # Poll loop
    debounce_seconds: float = Field(default=0.5, ge=0)
    debounce_jitter_seconds: float = Field(default=0.0, ge=0)
    watch_poll_interval: float = Field(default=0.25, gt=0)
    news_interval: float = Field(default=1.0, gt=0)
    enrichment_interval: float = Field(default=300.0, gt=0)

    # Daily reset
    deactivate_time: str = Field(
        default="15:45", description="Local HH:MM to deactivate all tickers, empty disables"
    )

    # Alerts
    alerts_enabled: bool = True
    alert_debounce_seconds: float = Field(default=10.0, ge=0)
    alert_player: str = Field(default="aplay", description="Command used to play WAV files")
    sound_news: str = "sounds/flash.wav"
    sound_ticker: str = "sounds/addTicker.wav"
    sound_hod: str = "sounds/hod.wav"

    @field_validator("unwanted_keywords", mode="before")
    @classmethod
    def parse_keywords(cls, v):
        if isinstance(v, str):
            return [k.strip() for k in v.split(",") if k.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower = v.lower()
        if lower not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return lower

    @field_validator("deactivate_time")
    @classmethod
    def validate_deactivate_time(cls, v: str) -> str:
        v = v.strip()
        if v and not re.fullmatch(r"([01]\d|2[0-3]):[0-5]\d", v):
            raise ValueError("deactivate_time must be HH:MM (24h) or empty")
        return v

    def path(self, filename: str) -> Path:
        """Resolve a managed file inside the data directory."""
        return Path(self.data_dir) / filename

    def require(self, *names: str) -> None:
        """Raise FatalConfig if any of the named settings is empty."""
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise FatalConfig(
                f"Missing required configuration: {', '.join(missing)}",
                details={"missing": missing},
            )


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()


settings = get_settings()
