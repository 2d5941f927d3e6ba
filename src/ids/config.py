# src/ids/config.py
from dataclasses import dataclass, fields
from typing import Optional

from ids.errors import ConfigError

DEFAULT_THRESHOLD = 20
DEFAULT_WINDOW = 60.0
DEFAULT_MAX_SOURCES = 100_000
DEFAULT_QUEUE_SIZE = 10_000
DEFAULT_ALERT_QUEUE_SIZE = 1_000
DEFAULT_SWEEP_INTERVAL = 30.0
DEFAULT_HEARTBEAT_INTERVAL = 30.0


@dataclass(frozen=True)
class DetectorConfig:
    """Immutable detector settings, validated at construction.

    suppression_period falls back to window when left unset.
    """
    threshold: int = DEFAULT_THRESHOLD
    window: float = DEFAULT_WINDOW
    suppression_period: Optional[float] = None
    max_sources: int = DEFAULT_MAX_SOURCES
    shards: int = 1
    workers: int = 1
    queue_size: int = DEFAULT_QUEUE_SIZE
    alert_queue_size: int = DEFAULT_ALERT_QUEUE_SIZE
    sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL

    def __post_init__(self):
        if self.suppression_period is None:
            object.__setattr__(self, "suppression_period", self.window)
        for name in ("threshold", "max_sources", "shards", "workers", "queue_size", "alert_queue_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        for name in ("window", "suppression_period", "sweep_interval", "heartbeat_interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{name} must be a number of seconds, got {value!r}")
            if not value > 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        if self.shards > self.max_sources:
            raise ConfigError(f"shards ({self.shards}) cannot exceed max_sources ({self.max_sources})")

    @classmethod
    def from_mapping(cls, values: dict) -> "DetectorConfig":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in names and v is not None})

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
