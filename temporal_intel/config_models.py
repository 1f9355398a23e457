from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from temporal_intel import CONFIG_PATH

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_hhmm(value: str) -> str:
    if not isinstance(value, str) or not _HHMM.match(value):
        raise ValueError(f"Invalid time format: {value!r}. Use HH:MM")
    return value


# =============================================================================
# TemporalConfig (args/temporal.yaml)
# =============================================================================

class LearningConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    lookback_days: int = Field(default=14, ge=1)
    min_sample_size: int = Field(default=5, ge=1)
    high_dismissal_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    low_dismissal_rate: float = Field(default=0.2, ge=0.0, le=1.0)
    tolerance_step_down: float = Field(default=0.1, ge=0.0)
    tolerance_step_up: float = Field(default=0.05, ge=0.0)
    tolerance_floor: float = Field(default=0.2, ge=0.0, le=1.0)
    tolerance_ceiling: float = Field(default=0.8, ge=0.0, le=1.0)
    learn_category_affinity: bool = Field(default=True)
    outcome_retention_days: int = Field(default=90, ge=1)
    commitment_expiry_days: int = Field(default=30, ge=1)


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    backend: str = Field(default="memory")
    db_path: Optional[str] = None

    @field_validator("backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        if value not in ("memory", "sqlite"):
            raise ValueError(f"Unknown storage backend: {value}")
        return value


class TemporalConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    auto_execute_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    suggest_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    bubble_threshold: float = Field(default=0.50, ge=0.0, le=1.0)
    default_realtime_max: int = Field(default=2, ge=0)
    default_digest_size: int = Field(default=5, ge=1)
    digest_time: str = Field(default="07:00")
    evening_review_time: str = Field(default="19:00")
    calendar_write_enabled: bool = Field(default=True)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @field_validator("digest_time", "evening_review_time")
    @classmethod
    def _hhmm(cls, value: str) -> str:
        return validate_hhmm(value)


# =============================================================================
# Loading
# =============================================================================

def load_config(path: Path | None = None) -> TemporalConfig:
    yaml_path = path or CONFIG_PATH

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        return TemporalConfig.model_validate(raw.get("temporal", raw))
    except Exception as e:
        logger.warning(f"Config validation failed for {yaml_path.name}: {e}, using defaults")
        return TemporalConfig()


_global_config: TemporalConfig | None = None


def _current() -> TemporalConfig:
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def get_global_config() -> TemporalConfig:
    """Return a copy of the process-wide config; mutating it has no effect."""
    return _current().model_copy(deep=True)


def update_global_config(**updates: Any) -> TemporalConfig:
    """Override process-wide defaults for this session."""
    global _global_config
    merged = {**_current().model_dump(), **updates}
    _global_config = TemporalConfig.model_validate(merged)
    return get_global_config()


def reset_global_config() -> TemporalConfig:
    """Reset to the built-in defaults (ignores args/temporal.yaml)."""
    global _global_config
    _global_config = TemporalConfig()
    return get_global_config()


def resolve_config(config: TemporalConfig | None = None) -> TemporalConfig:
    """Per-call override, else the process-wide default."""
    return config if config is not None else _current()


__all__ = [
    "LearningConfig",
    "StorageConfig",
    "TemporalConfig",
    "get_global_config",
    "load_config",
    "reset_global_config",
    "resolve_config",
    "update_global_config",
    "validate_hhmm",
]
