"""
@file presets.py
@brief Healing configuration presets and defaults.
"""

from __future__ import annotations
from copy import deepcopy
from typing import Any, Dict


DEFAULT_FIELDS: Dict[str, Any] = {
    "query_timeout": 5.0,
    "healing_enabled": True,
    "text_max_length": 50,
    "max_class_count": 2,
    "max_path_depth": 12,
    "min_suggestion_frequency": 2,
    "recent_events": 10,
}

PRESET_OVERRIDES: Dict[str, Dict[str, Any]] = {
    "fast": {
        "query_timeout": 1.5,
        "max_path_depth": 8,
    },
    "ci": {
        "query_timeout": 10.0,
        "min_suggestion_frequency": 3,
    },
    # Chains are used as recorded; no heuristic substitution.
    "strict": {
        "healing_enabled": False,
        "min_suggestion_frequency": 5,
    },
}


def list_presets() -> Dict[str, Dict[str, Any]]:
    return {"default": {}, **PRESET_OVERRIDES}


def build_preset_values(preset: str) -> Dict[str, Any]:
    preset_key = (preset or "default").lower()
    values = deepcopy(DEFAULT_FIELDS)

    if preset_key == "default":
        return values

    overrides = PRESET_OVERRIDES.get(preset_key)
    if overrides is None:
        raise ValueError(f"Unknown healing preset: {preset}")

    values.update(deepcopy(overrides))
    return values
