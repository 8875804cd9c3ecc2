"""
@file validation.py
@brief JSON-schema validation for persisted repository and event data.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Any, Dict

from jsonschema import Draft202012Validator

from .exceptions import ConfigError

SCHEMA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schemas")

REPOSITORY_SCHEMA = "repository.schema.json"
HEALING_EVENT_SCHEMA = "healing_event.schema.json"


@lru_cache(maxsize=None)
def _validator(schema_name: str) -> Draft202012Validator:
    path = os.path.join(SCHEMA_DIR, schema_name)
    with open(path, "r", encoding="utf-8") as f:
        schema: Dict[str, Any] = json.load(f)
    return Draft202012Validator(schema)


def validate(data: Any, schema_name: str, where: str) -> None:
    """
    Validate data against a bundled schema.

    @throws ConfigError listing every violation
    """
    errors = sorted(_validator(schema_name).iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errors:
        lines = [f"{where}: schema validation failed:"]
        for e in errors:
            lines.append(f"- {list(e.path)}: {e.message}")
        raise ConfigError("\n".join(lines))
