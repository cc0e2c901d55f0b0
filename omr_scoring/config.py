"""Configuration management for the OMR scoring service.

This module uses Pydantic Settings to load configuration from environment
variables. All settings are validated at startup to catch configuration
errors early.
"""

import re
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from omr_scoring.models.record import DecoderConfig, QualityThresholds
from omr_scoring.models.scoring import EXAM_PRESETS

_RATE_LIMIT_PATTERN = re.compile(r"^\d+\s*(/|per)\s*(\d+\s*)?(second|minute|hour|day)s?$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every setting has a working default; a .env file or the environment
    overrides them.
    """

    # Decoder Configuration
    blank_char: str = Field(
        default="-",
        description="Character the optical reader writes for an unmarked question"
    )
    valid_answer_chars: str = Field(
        default="ABCDE",
        description="Letters accepted as answers"
    )

    # Quality Classification
    high_confidence_ratio: float = Field(
        default=80 / 90,
        description="Share of answered questions required for HIGH confidence"
    )
    medium_confidence_ratio: float = Field(
        default=60 / 90,
        description="Share of answered questions required for MEDIUM confidence"
    )
    low_confidence_ratio: float = Field(
        default=40 / 90,
        description="Share of answered questions below which a record is rejected"
    )

    # Scoring
    default_exam_type: str = Field(
        default="LGS",
        description="Scoring preset used when a request names none"
    )

    # Uploads and Batch Processing
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest accepted scanner file upload"
    )
    batch_workers: int = Field(
        default=1,
        description="Files (or lines) processed concurrently by batch commands"
    )

    # Networking
    trusted_proxies: str = Field(
        default="",
        description="Comma-separated proxy IPs whose X-Forwarded-For is trusted"
    )

    # Rate Limits (slowapi notation, e.g. "30/minute")
    rate_limit_default: str = Field(default="200/minute", description="Limit for undecorated routes")
    rate_limit_decode: str = Field(default="30/minute", description="POST /api/decode and /api/decode/upload")
    rate_limit_score: str = Field(default="60/minute", description="POST /api/score")
    rate_limit_score_batch: str = Field(default="10/minute", description="POST /api/score/batch")
    rate_limit_presets: str = Field(default="100/minute", description="Template and preset listings")
    upload_cost_unit_bytes: int = Field(
        default=1024 * 1024,
        description="Each full unit of request body counts as one extra decode hit"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("blank_char")
    @classmethod
    def validate_blank_char(cls, v: str) -> str:
        """BLANK_CHAR must be exactly one character."""
        if len(v) != 1:
            raise ValueError(f"BLANK_CHAR must be a single character (got {v!r})")
        return v

    @field_validator("valid_answer_chars")
    @classmethod
    def validate_valid_answer_chars(cls, v: str) -> str:
        """VALID_ANSWER_CHARS must be a non-empty subset of A-E."""
        letters = v.strip().upper()
        if not letters or any(c not in "ABCDE" for c in letters):
            raise ValueError(
                f"VALID_ANSWER_CHARS must only contain letters A-E (got {v!r})"
            )
        return letters

    @field_validator("high_confidence_ratio", "medium_confidence_ratio", "low_confidence_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        """Ratios are fractions of the question count."""
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence ratios must be between 0 and 1 (got {v})")
        return v

    @field_validator("default_exam_type")
    @classmethod
    def validate_default_exam_type(cls, v: str) -> str:
        """DEFAULT_EXAM_TYPE must name a known preset."""
        key = v.strip().upper()
        if key not in EXAM_PRESETS:
            raise ValueError(
                f"DEFAULT_EXAM_TYPE must be one of {sorted(EXAM_PRESETS)} (got {v!r})"
            )
        return key

    @field_validator("max_upload_bytes", "batch_workers", "upload_cost_unit_bytes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Sizes and worker counts must be positive."""
        if v < 1:
            raise ValueError(f"value must be positive (got {v})")
        return v

    @field_validator(
        "rate_limit_default", "rate_limit_decode", "rate_limit_score",
        "rate_limit_score_batch", "rate_limit_presets",
    )
    @classmethod
    def validate_rate_limit(cls, v: str) -> str:
        """Rate limits look like '30/minute' or '5 per second'."""
        limit = v.strip().lower()
        if not _RATE_LIMIT_PATTERN.match(limit):
            raise ValueError(f"rate limit must look like '30/minute' (got {v!r})")
        return limit

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """LOG_LEVEL must be a standard logging level name."""
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL is not a logging level (got {v!r})")
        return level

    @model_validator(mode="after")
    def validate_ratio_order(self) -> "Settings":
        """Tier ratios must not overlap."""
        if not (self.high_confidence_ratio >= self.medium_confidence_ratio >= self.low_confidence_ratio):
            raise ValueError(
                "confidence ratios must satisfy HIGH >= MEDIUM >= LOW "
                f"(got {self.high_confidence_ratio}, {self.medium_confidence_ratio}, "
                f"{self.low_confidence_ratio})"
            )
        if self.blank_char.upper() in self.valid_answer_chars:
            raise ValueError("BLANK_CHAR must not also be a valid answer character")
        return self

    def trusted_proxy_list(self) -> List[str]:
        """Parsed TRUSTED_PROXIES."""
        return [ip.strip() for ip in self.trusted_proxies.split(",") if ip.strip()]

    def decoder_config(self) -> DecoderConfig:
        """Build the segment decoder configuration."""
        return DecoderConfig(
            valid_answer_chars=frozenset(self.valid_answer_chars),
            blank_char=self.blank_char,
        )

    def quality_thresholds(self) -> QualityThresholds:
        """Build the quality classifier thresholds."""
        return QualityThresholds(
            high=self.high_confidence_ratio,
            medium=self.medium_confidence_ratio,
            low=self.low_confidence_ratio,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance.

    This function uses lru_cache to ensure settings are loaded only once
    and reused across the application lifetime.

    Returns:
        Settings: Validated application settings

    Raises:
        ValueError: If environment variables hold invalid values
    """
    return Settings()
