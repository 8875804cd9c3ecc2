# uiauto_healing/config.py
"""
@file config.py
@brief Centralized configuration for extraction, resolution and suggestions.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Generator, Optional

from .presets import DEFAULT_FIELDS, build_preset_values, list_presets


@dataclass(frozen=True)
class HealingConfig:
    """
    Tunables for the locator lifecycle.

    Deterministic precedence is applied via build_from():
      base defaults -> preset -> overrides
    """
    query_timeout: Optional[float] = 5.0
    healing_enabled: bool = True
    text_max_length: int = 50
    max_class_count: int = 2
    max_path_depth: int = 12
    min_suggestion_frequency: int = 2
    recent_events: int = 10

    _default_instance = None
    _lock = threading.Lock()
    _local = threading.local()

    def __post_init__(self) -> None:
        if self.query_timeout is not None and self.query_timeout <= 0:
            raise ValueError(f"query_timeout must be positive or None, got {self.query_timeout}")
        if self.text_max_length < 1:
            raise ValueError("text_max_length must be >= 1")
        if self.max_class_count < 0:
            raise ValueError("max_class_count must be >= 0")
        if self.max_path_depth < 1:
            raise ValueError("max_path_depth must be >= 1")
        if self.min_suggestion_frequency < 1:
            raise ValueError("min_suggestion_frequency must be >= 1")

    @classmethod
    def field_names(cls) -> set:
        return {f.name for f in fields(cls)}

    @classmethod
    def from_values(cls, values: Dict[str, Any]) -> HealingConfig:
        unknown = set(values) - cls.field_names()
        if unknown:
            raise ValueError(f"Unknown HealingConfig field(s): {sorted(unknown)}")
        merged = dict(DEFAULT_FIELDS)
        merged.update(values)
        return cls(**merged)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(self.field_names())}

    def with_overrides(self, **overrides: Any) -> HealingConfig:
        """Return a copy with overrides applied; unknown keys raise ValueError."""
        unknown = set(overrides) - self.field_names()
        if unknown:
            raise ValueError(f"Unknown HealingConfig field(s): {sorted(unknown)}")
        return replace(self, **overrides)

    @classmethod
    def build_from(
        cls,
        *,
        preset: str = "default",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> HealingConfig:
        """Build a deterministic run-scope config snapshot."""
        values = build_preset_values(preset)
        cfg = cls.from_values(values)
        if overrides:
            cfg = cfg.with_overrides(**overrides)
        return cfg

    @classmethod
    def default(cls) -> HealingConfig:
        """Get the process default configuration (singleton)."""
        if cls._default_instance is None:
            with cls._lock:
                if cls._default_instance is None:
                    cls._default_instance = cls.build_from()
        return cls._default_instance

    @classmethod
    def install_run_config(cls, config: HealingConfig) -> None:
        """Install per-thread run configuration snapshot."""
        cls._local.run_config = config

    @classmethod
    def clear_run_config(cls) -> None:
        cls._local.run_config = None

    @classmethod
    def current(cls) -> HealingConfig:
        """Get the current effective configuration."""
        override = getattr(cls._local, "override", None)
        if override is not None:
            return override

        run_cfg = getattr(cls._local, "run_config", None)
        if run_cfg is not None:
            return run_cfg

        return cls.default()

    @classmethod
    @contextmanager
    def override(cls, **kwargs: Any) -> Generator[HealingConfig, None, None]:
        """Context manager for temporary configuration overrides."""
        previous = getattr(cls._local, "override", None)
        new_config = cls.current().with_overrides(**kwargs)

        cls._local.override = new_config
        try:
            yield new_config
        finally:
            cls._local.override = previous

    @classmethod
    def reset_to_defaults(cls) -> None:
        """Reset default and clear all thread-local config state."""
        with cls._lock:
            cls._default_instance = cls.build_from()
        cls._local.override = None
        cls._local.run_config = None


def available_presets() -> Dict[str, Dict[str, Any]]:
    return list_presets()
