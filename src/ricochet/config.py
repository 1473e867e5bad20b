"""Configuration loader for Ricochet.

Loads from ricochet.toml with sensible defaults when file is absent.
Configuration is loaded once at startup and passed via dependency injection.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_MAX_TOKENS = 128_000
DEFAULT_FUDGE_FACTOR = 1.05
DEFAULT_SAFETY_MARGIN_TOKENS = 1000
DEFAULT_CONDENSE_THRESHOLD_PERCENT = 70
DEFAULT_KEEP_RECENT_COUNT = 8


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


@dataclass(frozen=True)
class TokenBudget:
    """Token budget for one model context window."""

    max_tokens: int = DEFAULT_MAX_TOKENS
    fudge_factor: float = DEFAULT_FUDGE_FACTOR
    safety_margin_tokens: int = DEFAULT_SAFETY_MARGIN_TOKENS


@dataclass(frozen=True)
class ContextSettings:
    """Context window management behavior."""

    auto_condense: bool = True
    condense_threshold_percent: int = DEFAULT_CONDENSE_THRESHOLD_PERCENT
    keep_recent_count: int = DEFAULT_KEEP_RECENT_COUNT
    show_context_indicator: bool = True


@dataclass(frozen=True)
class SummarizerConfig:
    """OpenAI-compatible endpoint used for condensation summaries."""

    base_url: str = ""
    model: str = ""
    api_key: str = ""
    max_tokens: int = 4000
    temperature: float = 0.1
    timeout_seconds: float = 120.0

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.model)

    def __repr__(self) -> str:
        key_display = f"***{self.api_key[-4:]}" if self.api_key else ""
        return (
            f"SummarizerConfig(model={self.model!r}, "
            f"base_url={self.base_url!r}, api_key={key_display!r})"
        )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class Config:
    """Top-level Ricochet configuration."""

    budget: TokenBudget = field(default_factory=TokenBudget)
    context: ContextSettings = field(default_factory=ContextSettings)
    summarizer: SummarizerConfig = field(default_factory=SummarizerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _int_setting(data: dict, key: str, default: int, minimum: int, maximum: int | None = None) -> int:
    """Read an integer setting, falling back to the default when out of range."""
    raw = data.get(key, default)
    if isinstance(raw, bool):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    if value < minimum or (maximum is not None and value > maximum):
        return default
    return value


def _float_setting(data: dict, key: str, default: float, minimum: float) -> float:
    raw = data.get(key, default)
    if isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if value < minimum:
        return default
    return value


def _section(raw: dict, name: str) -> dict:
    data = raw.get(name, {})
    return data if isinstance(data, dict) else {}


def default_config_path() -> Path | None:
    """Return the first ricochet.toml found in cwd or ~/.ricochet/."""
    candidates = [
        Path.cwd() / "ricochet.toml",
        Path.home() / ".ricochet" / "ricochet.toml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def load_config(path: Path | None = None) -> Config:
    """Load configuration from a TOML file.

    If path is None, searches for ricochet.toml in current directory then
    ~/.ricochet/. Returns default config if no file is found.
    """
    if path is None:
        path = default_config_path()

    if path is None or not path.exists():
        return Config()

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    budget_data = _section(raw, "budget")
    budget = TokenBudget(
        max_tokens=_int_setting(budget_data, "max_tokens", DEFAULT_MAX_TOKENS, 1),
        fudge_factor=_float_setting(
            budget_data, "fudge_factor", DEFAULT_FUDGE_FACTOR, 1.0,
        ),
        safety_margin_tokens=_int_setting(
            budget_data, "safety_margin_tokens", DEFAULT_SAFETY_MARGIN_TOKENS, 0,
        ),
    )

    ctx_data = _section(raw, "context")
    context = ContextSettings(
        auto_condense=bool(ctx_data.get("auto_condense", True)),
        condense_threshold_percent=_int_setting(
            ctx_data, "condense_threshold_percent",
            DEFAULT_CONDENSE_THRESHOLD_PERCENT, 1, 100,
        ),
        keep_recent_count=_int_setting(
            ctx_data, "keep_recent_count", DEFAULT_KEEP_RECENT_COUNT, 1,
        ),
        show_context_indicator=bool(ctx_data.get("show_context_indicator", True)),
    )

    sum_data = _section(raw, "summarizer")
    summarizer = SummarizerConfig(
        base_url=str(sum_data.get("base_url", "")),
        model=str(sum_data.get("model", "")),
        api_key=str(sum_data.get("api_key", "")),
        max_tokens=_int_setting(sum_data, "max_tokens", 4000, 1),
        temperature=_float_setting(sum_data, "temperature", 0.1, 0.0),
        timeout_seconds=_float_setting(sum_data, "timeout_seconds", 120.0, 0.001),
    )

    log_data = _section(raw, "logging")
    logging_cfg = LoggingConfig(
        level=str(log_data.get("level", "INFO")).upper(),
    )

    return Config(
        budget=budget,
        context=context,
        summarizer=summarizer,
        logging=logging_cfg,
    )
