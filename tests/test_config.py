"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from omr_scoring.config import Settings, get_settings


class TestSettings:
    """Test Settings class validation and loading."""

    def test_defaults(self, monkeypatch):
        """Test that Settings loads with no environment variables set."""
        for var in ("BLANK_CHAR", "VALID_ANSWER_CHARS", "DEFAULT_EXAM_TYPE", "BATCH_WORKERS"):
            monkeypatch.delenv(var, raising=False)

        settings = Settings(_env_file=None)

        assert settings.blank_char == "-"
        assert settings.valid_answer_chars == "ABCDE"
        assert settings.default_exam_type == "LGS"
        assert settings.batch_workers == 1
        assert settings.high_confidence_ratio == pytest.approx(80 / 90)

    def test_custom_blank_char(self, monkeypatch):
        """Test that the blank marker can be changed."""
        monkeypatch.setenv("BLANK_CHAR", "*")

        settings = Settings(_env_file=None)

        assert settings.blank_char == "*"
        assert settings.decoder_config().blank_char == "*"

    def test_multi_character_blank_char_raises_error(self, monkeypatch):
        """Test that a blank marker longer than one character is rejected."""
        monkeypatch.setenv("BLANK_CHAR", "--")

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None)

        assert "blank_char" in str(exc_info.value).lower()

    def test_answer_chars_are_uppercased(self, monkeypatch):
        """Test that lower-case answer letters are accepted and normalised."""
        monkeypatch.setenv("VALID_ANSWER_CHARS", "abcd")

        settings = Settings(_env_file=None)

        assert settings.valid_answer_chars == "ABCD"
        assert settings.decoder_config().valid_answer_chars == frozenset("ABCD")

    def test_invalid_answer_chars_raise_error(self, monkeypatch):
        """Test that letters outside A-E are rejected."""
        monkeypatch.setenv("VALID_ANSWER_CHARS", "ABCDX")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_blank_char_cannot_be_an_answer(self, monkeypatch):
        """Test that the blank marker may not double as an answer letter."""
        monkeypatch.setenv("BLANK_CHAR", "a")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_unknown_exam_type_raises_error(self, monkeypatch):
        """Test that DEFAULT_EXAM_TYPE must be a known preset."""
        monkeypatch.setenv("DEFAULT_EXAM_TYPE", "SAT")

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None)

        assert "default_exam_type" in str(exc_info.value).lower()

    def test_exam_type_is_case_insensitive(self, monkeypatch):
        """Test that the preset name is normalised to upper case."""
        monkeypatch.setenv("DEFAULT_EXAM_TYPE", "tyt")

        assert Settings(_env_file=None).default_exam_type == "TYT"

    def test_ratio_order_enforced(self, monkeypatch):
        """Test that the MEDIUM ratio may not exceed the HIGH ratio."""
        monkeypatch.setenv("HIGH_CONFIDENCE_RATIO", "0.5")
        monkeypatch.setenv("MEDIUM_CONFIDENCE_RATIO", "0.7")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_quality_thresholds_follow_settings(self, monkeypatch):
        """Test that classifier thresholds are built from the ratios."""
        monkeypatch.setenv("LOW_CONFIDENCE_RATIO", "0.3")

        thresholds = Settings(_env_file=None).quality_thresholds()

        assert thresholds.low == 0.3
        assert thresholds.high == pytest.approx(80 / 90)

    def test_zero_workers_raises_error(self, monkeypatch):
        """Test that BATCH_WORKERS must be positive."""
        monkeypatch.setenv("BATCH_WORKERS", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_rate_limits_normalised(self, monkeypatch):
        """Test that rate limits accept slowapi notation in any case."""
        monkeypatch.setenv("RATE_LIMIT_DECODE", " 5 Per Second ")

        settings = Settings(_env_file=None)

        assert settings.rate_limit_decode == "5 per second"
        assert settings.rate_limit_score_batch == "10/minute"

    def test_invalid_rate_limit_raises_error(self, monkeypatch):
        """Test that a malformed limit is rejected at startup."""
        monkeypatch.setenv("RATE_LIMIT_SCORE", "lots")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_trusted_proxy_list(self, monkeypatch):
        """Test that the proxy list is split and trimmed."""
        monkeypatch.setenv("TRUSTED_PROXIES", " 10.0.0.1, ,10.0.0.2 ")

        assert Settings(_env_file=None).trusted_proxy_list() == ["10.0.0.1", "10.0.0.2"]


class TestGetSettings:
    """Test get_settings caching."""

    def test_get_settings_is_cached(self):
        """Test that get_settings returns the same instance."""
        assert get_settings() is get_settings()

    def test_cache_clear_reloads_environment(self, monkeypatch):
        """Test that clearing the cache picks up new environment values."""
        first = get_settings()
        monkeypatch.setenv("LOG_LEVEL", "debug")
        get_settings.cache_clear()

        second = get_settings()

        assert second is not first
        assert second.log_level == "DEBUG"
