import json
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from ..errors import ConfigurationError
from .reference_poses import ReferenceCatalog, VIEW_ANGLES

PERSISTENCE_RANGE_MS = (1000, 5000)


@dataclass(frozen=True)
class EngineConfig:
    """Options recognized by a form-coaching session."""
    exercise: str = "plank"
    view_angle: str = "side"
    confidence_threshold: float = 0.3
    persistence_duration_ms: int = 2000   # dwell time before a violation is reported
    session_cooldown_ms: int = 5000       # minimum gap between spoken feedback sessions
    initial_lock_ms: int = 10000          # no spoken feedback right after start-up
    settle_delay_ms: int = 1000           # pause after a session ends before the next one
    error_backoff_ms: int = 3000          # pause after an advisory channel failure
    speech_rate: int = 150                # words per minute
    speech_volume: float = 1.0

    def __post_init__(self):
        if not self.exercise:
            raise ConfigurationError("exercise must be set")
        if self.view_angle not in VIEW_ANGLES:
            raise ConfigurationError(f"view_angle must be one of {', '.join(VIEW_ANGLES)}, got {self.view_angle!r}")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ConfigurationError(f"confidence_threshold must be in [0, 1], got {self.confidence_threshold}")
        validate_persistence_duration(self.persistence_duration_ms)
        for name in ("session_cooldown_ms", "initial_lock_ms", "settle_delay_ms", "error_backoff_ms"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")
        if not 0.0 <= self.speech_volume <= 1.0:
            raise ConfigurationError(f"speech_volume must be in [0, 1], got {self.speech_volume}")

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def validate_persistence_duration(duration_ms: float) -> float:
    low, high = PERSISTENCE_RANGE_MS
    if not low <= duration_ms <= high:
        raise ConfigurationError(f"persistence_duration_ms must be in [{low}, {high}], got {duration_ms}")
    return duration_ms


def load_engine_config(config_path: str = None) -> EngineConfig:
    """Load engine settings from a JSON file; missing keys keep their defaults."""
    if config_path is None:
        return EngineConfig()
    with open(config_path, "r") as f:
        raw = json.load(f)
    return engine_config_from_dict(raw)


def engine_config_from_dict(raw: Dict[str, Any]) -> EngineConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError("Engine config must be a JSON object")
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(f"Unknown config option(s): {', '.join(unknown)}")
    try:
        return EngineConfig(**raw)
    except TypeError as e:
        # comparisons in __post_init__ fail on wrongly-typed values
        raise ConfigurationError(f"Invalid config value: {e}") from e


def load_reference_catalog(config_path: Optional[str] = None) -> ReferenceCatalog:
    """Load and validate the reference pose catalog from JSON."""
    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "reference_poses.json")
    with open(config_path, "r") as f:
        return ReferenceCatalog.from_dict(json.load(f))
