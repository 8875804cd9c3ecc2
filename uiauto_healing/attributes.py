# uiauto_healing/attributes.py
"""
@file attributes.py
@brief Captured attribute snapshots and the bounded ancestry walk.

Accessors build a CapturedAttributes at capture time; everything
downstream (extractor, fingerprint, resolver hints) consumes only this
snapshot and never touches a live tree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

_WS = re.compile(r"\s+")


class Platform(str, Enum):
    WEB = "web"
    MOBILE = "mobile"
    DESKTOP = "desktop"


def normalize_text(text: Optional[str]) -> str:
    """Collapse whitespace runs and strip."""
    if not text:
        return ""
    return _WS.sub(" ", str(text)).strip()


@dataclass(frozen=True)
class PathNode:
    """
    One step of an element's ancestry.

    index is 1-based among same-tag siblings, count is the number of
    same-tag siblings (including this node).
    """
    tag: str
    index: int = 1
    count: int = 1
    overlay: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"tag": self.tag, "index": self.index, "count": self.count, "overlay": self.overlay}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> PathNode:
        return cls(
            tag=str(d["tag"]),
            index=int(d.get("index", 1)),
            count=int(d.get("count", 1)),
            overlay=bool(d.get("overlay", False)),
        )


@dataclass(frozen=True)
class CapturedAttributes:
    """Raw snapshot of one interacted element."""
    tag: str
    id: Optional[str] = None
    name: Optional[str] = None
    classes: Tuple[str, ...] = ()
    text: Optional[str] = None
    placeholder: Optional[str] = None
    aria_label: Optional[str] = None
    test_id: Optional[str] = None
    role: Optional[str] = None
    type: Optional[str] = None
    platform: str = Platform.WEB.value
    path: Tuple[PathNode, ...] = field(default=())

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "tag", (self.tag or "").strip().lower() or "*")
        if isinstance(self.classes, str):
            object.__setattr__(self, "classes", tuple(self.classes.split()))
        else:
            object.__setattr__(self, "classes", tuple(c for c in self.classes if c))
        object.__setattr__(self, "text", normalize_text(self.text) or None)
        object.__setattr__(self, "path", tuple(self.path))
        platform = self.platform.value if isinstance(self.platform, Platform) else str(self.platform)
        object.__setattr__(self, "platform", platform)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"tag": self.tag, "platform": self.platform}
        for key in ("id", "name", "text", "placeholder", "aria_label", "test_id", "role", "type"):
            value = getattr(self, key)
            if value:
                data[key] = value
        if self.classes:
            data["classes"] = list(self.classes)
        if self.path:
            data["path"] = [node.to_dict() for node in self.path]
        return data

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> CapturedAttributes:
        return cls(
            tag=str(d.get("tag", "")),
            id=d.get("id"),
            name=d.get("name"),
            classes=tuple(d.get("classes") or ()),
            text=d.get("text"),
            placeholder=d.get("placeholder"),
            aria_label=d.get("aria_label"),
            test_id=d.get("test_id"),
            role=d.get("role"),
            type=d.get("type"),
            platform=d.get("platform", Platform.WEB.value),
            path=tuple(PathNode.from_dict(n) for n in d.get("path") or ()),
        )


def _safe(fn, default=None):
    try:
        return fn()
    except Exception:
        return default


def walk_ancestry(
    node: Any,
    parent_of: Callable[[Any], Any],
    children_of: Callable[[Any], Sequence[Any]],
    tag_of: Callable[[Any], str],
    is_overlay: Optional[Callable[[Any], bool]] = None,
    max_depth: int = 12,
) -> Tuple[PathNode, ...]:
    """
    Build the PathNode sequence (root first) for a live node.

    Iterative upward walk bounded by max_depth; sibling indices are
    counted among same-tag children of each parent. Accessors call this
    from read_attributes() with their own tree callbacks.
    """
    parts: List[PathNode] = []
    cur = node
    depth = 0

    while cur is not None and depth < max_depth:
        tag = (_safe(lambda: tag_of(cur), "") or "*").lower()
        overlay = bool(is_overlay and _safe(lambda: is_overlay(cur), False))

        idx = 1
        count = 1
        parent = _safe(lambda: parent_of(cur))
        if parent is not None:
            same = [s for s in (_safe(lambda: children_of(parent), []) or [])
                    if (_safe(lambda: tag_of(s), "") or "*").lower() == tag]
            count = max(1, len(same))
            for i, s in enumerate(same, start=1):
                if s is cur:
                    idx = i
                    break

        parts.append(PathNode(tag=tag, index=idx, count=count, overlay=overlay))
        cur = parent
        depth += 1

    return tuple(reversed(parts))
