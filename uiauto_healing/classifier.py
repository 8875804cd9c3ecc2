# uiauto_healing/classifier.py
"""
@file classifier.py
@brief Heuristics for framework/build-generated identifiers and class names.

Pure functions, no state. The extractor consults these before it scores
id, name and class candidates.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from typing import Optional, Pattern, Tuple

GENERATED_PREFIX_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r":r[0-9a-z]+:"),                      # React useId
    re.compile(r"^ember\d+$"),
    re.compile(r"^ext-(?:gen|comp)-?\d+", re.IGNORECASE),
    re.compile(r"^gwt-uid-\d+"),
    re.compile(r"^j_?idt\d+", re.IGNORECASE),        # JSF
    re.compile(r"^jdt_\d+$", re.IGNORECASE),
    re.compile(r"^mui-\d+"),
    re.compile(r"^react-select-\d+"),
    re.compile(r"^headlessui-[a-z-]+-\d+"),
    re.compile(r"^radix-"),
    re.compile(r"^ng-tns-|^_ngcontent-|^_nghost-"),
    re.compile(r"^css-(?=[a-z0-9]*\d)[a-z0-9]{5,}$"),  # emotion
    re.compile(r"^sc-(?=[a-zA-Z]*[A-Z])[a-zA-Z]{4,}$"),  # styled-components
    re.compile(r"^jsx-\d+$"),
    re.compile(r"^svelte-[a-z0-9]{5,}$"),
    re.compile(r"^data-v-[0-9a-f]{6,}$"),
    re.compile(r"^yui_"),
    re.compile(r"^\d+$"),
)

_UUID = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")
_LONG_NUMBER = re.compile(r"\d{13,}")
_COUNTER_SUFFIX = re.compile(r"^[A-Za-z]+[-_]?\d{3,}$")
_TOKEN_SPLIT = re.compile(r"[-_:.]+")
_CHAR_RUNS = re.compile(r"[A-Za-z]+|\d+")

HASH_TOKEN_MIN_LENGTH = 8
HASH_MIN_RUNS = 4
HASH_ENTROPY_THRESHOLD = 2.5

STATE_CLASSES = frozenset({
    "active", "current", "disabled", "enabled", "focus", "focused", "hover",
    "hovered", "selected", "checked", "open", "opened", "closed", "expanded",
    "collapsed", "visible", "hidden", "show", "shown", "loading", "is-active",
    "is-open", "is-selected", "is-disabled",
})

_UTILITY_CLASSES = frozenset({
    "flex", "grid", "block", "inline", "inline-block", "inline-flex", "contents",
    "relative", "absolute", "fixed", "sticky", "static", "container", "truncate",
    "underline", "italic", "uppercase", "lowercase", "capitalize", "clearfix",
    "pull-left", "pull-right", "float-left", "float-right",
})

# prefix-value utilities: mt-4, w-full, text-red-500, col-md-6, d-flex
_UTILITY_PATTERN = re.compile(
    r"^-?(?:[mp][trblxyse]?|w|h|min-w|max-w|min-h|max-h|text|bg|border|font|leading|"
    r"tracking|rounded|shadow|gap|space-[xy]|grid-cols|col-span|row-span|col|z|opacity|"
    r"top|left|right|bottom|inset|order|items|justify|self|content|d|fs|fw|lh)-"
    r"(?:(?:sm|md|lg|xl|xxl)-)?"
    r"(?:\d[\w.]*|xs|sm|md|lg|\d?xl|full|auto|screen|none|px|center|start|end|between|"
    r"around|evenly|stretch|baseline|bold|semibold|medium|light|normal|left|right|top|"
    r"bottom|flex|block|inline|grid|[a-z]+-\d{2,3})$"
)


def _shannon_entropy(token: str) -> float:
    counts = Counter(token)
    n = len(token)
    return -sum((c / n) * math.log2(c / n) for c in counts.values())


def _looks_like_hash(token: str) -> bool:
    """Long letter/digit token with high entropy, e.g. '17cf2a9b'."""
    if len(token) < HASH_TOKEN_MIN_LENGTH or not token.isalnum():
        return False
    if not (any(c.isdigit() for c in token) and any(c.isalpha() for c in token)):
        return False
    if len(_CHAR_RUNS.findall(token)) < HASH_MIN_RUNS:
        return False
    return _shannon_entropy(token.lower()) >= HASH_ENTROPY_THRESHOLD


def is_dynamic(value: Optional[str]) -> bool:
    """
    Judge whether an identifier looks framework/build-generated.

    Args:
        value: id, name or class value as captured

    Returns:
        True if any generated-identifier rule matches
    """
    if not value:
        return False
    value = value.strip()
    if not value:
        return False

    for pattern in GENERATED_PREFIX_PATTERNS:
        if pattern.search(value):
            return True

    if _UUID.search(value):
        return True

    if _LONG_NUMBER.search(value):
        return True

    if _COUNTER_SUFFIX.match(value):
        return True

    return any(_looks_like_hash(token) for token in _TOKEN_SPLIT.split(value) if token)


def is_unstable_class(class_name: Optional[str]) -> bool:
    """
    Judge whether a CSS class is unsuitable for a locator.

    Rejects generated classes, private ("_x") classes, state classes
    and utility-framework classes.
    """
    if not class_name:
        return True
    name = class_name.strip()
    if not name or name.startswith("_"):
        return True
    if ":" in name or "[" in name or "/" in name:
        return True
    lowered = name.lower()
    if lowered in STATE_CLASSES or lowered in _UTILITY_CLASSES:
        return True
    if _UTILITY_PATTERN.match(lowered):
        return True
    return is_dynamic(name)
