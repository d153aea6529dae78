"""Tests for settings validation, logging redaction and alert debouncing."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from tickerdesk.core.config import Settings
from tickerdesk.core.exceptions import FatalConfig
from tickerdesk.core.logging import SensitiveDataFilter, get_logger
from tickerdesk.services import AlertPlayer


class TestSettings:
    """Tests for Settings validation."""

    def test_keywords_from_comma_separated_env(self, monkeypatch):
        monkeypatch.setenv("UNWANTED_KEYWORDS", "Why Is, halted ,")
        assert Settings().unwanted_keywords == ["Why Is", "halted"]

    def test_credentials_use_historical_env_names(self, monkeypatch):
        monkeypatch.setenv("APCA_API_KEY_ID", "abc")
        monkeypatch.setenv("POLY_API_KEY", "xyz")
        config = Settings()
        assert config.apca_api_key_id == "abc"
        assert config.poly_api_key == "xyz"

    @pytest.mark.parametrize("value", ["25:00", "3pm", "9:5"])
    def test_rejects_bad_deactivate_time(self, value):
        with pytest.raises(ValidationError):
            Settings(deactivate_time=value)

    def test_empty_deactivate_time_disables(self):
        assert Settings(deactivate_time="").deactivate_time == ""

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            Settings(log_level="loud")

    def test_require(self, config):
        config.require("poly_api_key")
        config.poly_api_key = ""
        with pytest.raises(FatalConfig) as exc_info:
            config.require("poly_api_key", "apca_api_key_id")
        assert exc_info.value.details == {"missing": ["poly_api_key"]}

    def test_path(self, config, tmp_path):
        assert config.path("tickers.json") == tmp_path / "tickers.json"


class TestSensitiveDataFilter:
    """Tests for credential redaction in log records."""

    def _record(self, msg: str, *args) -> logging.LogRecord:
        return logging.LogRecord("tickerdesk.test", logging.INFO, __file__, 1, msg, args, None)

    def test_redacts_query_api_key(self):
        record = self._record("GET https://api.test/financials?ticker=AAPL&apiKey=%s", "s3cret")
        SensitiveDataFilter().filter(record)
        assert "s3cret" not in record.getMessage()
        assert "[REDACTED]" in record.getMessage()

    def test_redacts_header_value(self):
        record = self._record("headers {'APCA-API-SECRET-KEY': 'hunter2'}")
        SensitiveDataFilter().filter(record)
        assert "hunter2" not in record.getMessage()

    def test_plain_messages_untouched(self):
        record = self._record("Stored shorts data for %s", "AAPL")
        SensitiveDataFilter().filter(record)
        assert record.getMessage() == "Stored shorts data for AAPL"

    def test_logger_prefix(self):
        assert get_logger("agents.news").name == "tickerdesk.agents.news"


class FakeMonotonic:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestAlertPlayer:
    """Tests for AlertPlayer."""

    @pytest.mark.asyncio
    async def test_disabled_is_noop(self, tmp_path):
        sound = tmp_path / "flash.wav"
        sound.write_bytes(b"RIFF")
        assert await AlertPlayer(command="true", enabled=False).play(sound) is False

    @pytest.mark.asyncio
    async def test_debounce_window(self, tmp_path):
        sound = tmp_path / "flash.wav"
        sound.write_bytes(b"RIFF")
        clock = FakeMonotonic()
        player = AlertPlayer(command="true", debounce=10.0, enabled=True, clock=clock)

        assert await player.play(sound) is True
        clock.now += 5
        assert await player.play(sound) is False
        clock.now += 5
        assert await player.play(sound) is True

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        player = AlertPlayer(command="true", debounce=0, enabled=True)
        assert await player.play(tmp_path / "missing.wav") is False

    @pytest.mark.asyncio
    async def test_missing_player_is_logged(self, tmp_path, caplog):
        sound = tmp_path / "flash.wav"
        sound.write_bytes(b"RIFF")
        player = AlertPlayer(command="no-such-player-binary", debounce=0, enabled=True)

        with caplog.at_level(logging.WARNING, logger="tickerdesk.services.alerts"):
            assert await player.play(sound) is False
        assert "Could not start alert player" in caplog.text
