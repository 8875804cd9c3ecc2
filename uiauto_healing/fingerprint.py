"""
@file fingerprint.py
@brief Deterministic deduplication key for captured elements.
"""

from __future__ import annotations

from typing import List

from .attributes import CapturedAttributes
from .classifier import is_dynamic
from .extractor import build_structural_path


def compute_fingerprint(attrs: CapturedAttributes) -> str:
    """
    Key built from platform, tag and the most distinguishing stable
    attributes. Dynamic id/name values never contribute, so a rebuilt
    page with regenerated ids still maps to the same object.

    Text is only used when no identifying attribute exists, and the
    structural path only when there is no text either.
    """
    parts: List[str] = [attrs.platform, attrs.tag]

    stable_id = attrs.id if attrs.id and not is_dynamic(attrs.id) else None
    stable_name = attrs.name if attrs.name and not is_dynamic(attrs.name) else None

    identifying = [
        ("test-id", attrs.test_id),
        ("id", stable_id),
        ("name", stable_name),
        ("aria-label", attrs.aria_label),
        ("placeholder", attrs.placeholder),
    ]
    for key, value in identifying:
        if value:
            parts.append(f"{key}:{value}")

    has_identity = len(parts) > 2

    for key, value in (("type", attrs.type), ("role", attrs.role)):
        if value:
            parts.append(f"{key}:{value.lower()}")

    if not has_identity:
        if attrs.text:
            parts.append(f"text:{attrs.text}")
        else:
            parts.append(f"path:{build_structural_path(attrs.path, attrs.tag)}")

    return "|".join(parts)
