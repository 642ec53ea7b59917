"""TOML configuration loader for KiloCheck."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from .errors import API_RETRY_CODES, ErrorCode

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

MiB = 1024 * 1024


@dataclass
class ClaudeVisionConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiVisionConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class VisionConfig:
    backend: str = "gemini"
    timeout: float = 30.0  # seconds per AI call
    claude: ClaudeVisionConfig = field(default_factory=ClaudeVisionConfig)
    gemini: GeminiVisionConfig = field(default_factory=GeminiVisionConfig)


@dataclass
class LimitsConfig:
    max_image_bytes: int = 10 * MiB  # checked by the pipeline
    max_upload_bytes: int = 5 * MiB  # checked before reading an upload
    allowed_mime_types: list[str] = field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp"]
    )
    min_confidence: float = 0.3


@dataclass
class RetryConfig:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 1.5
    retryable_errors: list[ErrorCode] = field(
        default_factory=lambda: sorted(API_RETRY_CODES, key=lambda c: c.value)
    )


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    recovery_timeout: float = 60.0  # seconds


@dataclass
class DisplayConfig:
    locale: str = "es-ES"


@dataclass
class KiloCheckConfig:
    vision: VisionConfig = field(default_factory=VisionConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = field(
        default_factory=CircuitBreakerConfig
    )
    display: DisplayConfig = field(default_factory=DisplayConfig)


def _error_codes(names: list[str]) -> list[ErrorCode]:
    try:
        return [ErrorCode(name) for name in names]
    except ValueError as e:
        raise ValueError(f"Unknown error code in [retry] retryable_errors: {e}") from None


def load_config(path: str | Path | None = None) -> KiloCheckConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys can be overridden via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    vis = raw.get("vision", {})
    lim = raw.get("limits", {})
    rty = raw.get("retry", {})
    brk = raw.get("circuit_breaker", {})
    dsp = raw.get("display", {})

    claude_cfg = vis.get("claude", {})
    gemini_cfg = vis.get("gemini", {})

    # Resolve API keys: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )

    limits = LimitsConfig()
    retry = RetryConfig()
    if "retryable_errors" in rty:
        retry.retryable_errors = _error_codes(rty["retryable_errors"])

    return KiloCheckConfig(
        vision=VisionConfig(
            backend=vis.get("backend", "gemini"),
            timeout=vis.get("timeout", 30.0),
            claude=ClaudeVisionConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiVisionConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
        ),
        limits=LimitsConfig(
            max_image_bytes=lim.get("max_image_bytes", limits.max_image_bytes),
            max_upload_bytes=lim.get("max_upload_bytes", limits.max_upload_bytes),
            allowed_mime_types=lim.get(
                "allowed_mime_types", limits.allowed_mime_types
            ),
            min_confidence=lim.get("min_confidence", limits.min_confidence),
        ),
        retry=RetryConfig(
            max_retries=rty.get("max_retries", 3),
            base_delay=rty.get("base_delay", 1.0),
            max_delay=rty.get("max_delay", 30.0),
            backoff_multiplier=rty.get("backoff_multiplier", 1.5),
            retryable_errors=retry.retryable_errors,
        ),
        circuit_breaker=CircuitBreakerConfig(
            failure_threshold=brk.get("failure_threshold", 5),
            recovery_timeout=brk.get("recovery_timeout", 60.0),
        ),
        display=DisplayConfig(
            locale=dsp.get("locale", "es-ES"),
        ),
    )
