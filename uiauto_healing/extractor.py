# uiauto_healing/extractor.py
"""
@file extractor.py
@brief Turns a captured attribute snapshot into a ranked locator chain.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from .attributes import CapturedAttributes, PathNode
from .classifier import is_dynamic, is_unstable_class
from .config import HealingConfig
from .locators import (BARE_TAG_PATH_RELIABILITY, DEFAULT_RELIABILITY,
                       STRUCTURAL_PATH_MAX_RELIABILITY, CandidateLocator,
                       LocatorChain, LocatorKind)
from .log import get_logger

logger = get_logger(__name__)

INTERACTIVE_TAGS = frozenset({"button", "a", "label"})
INTERACTIVE_ROLES = frozenset({"button", "link"})
INPUT_TAGS = frozenset({"input", "textarea"})
INPUT_ROLES = frozenset({"textbox", "searchbox", "combobox"})


def _segment(node: PathNode) -> str:
    if node.overlay:
        # anchored from the end: earlier siblings may come and go
        from_end = max(0, node.count - node.index)
        return f"{node.tag}[last()]" if from_end == 0 else f"{node.tag}[last()-{from_end}]"
    if node.count > 1:
        return f"{node.tag}[{node.index}]"
    return node.tag


def build_structural_path(path: Sequence[PathNode], tag: str, max_depth: int = 12) -> str:
    """
    Absolute XPath-like path from an ancestry snapshot.

    Walks upward from the element, at most max_depth segments; a
    truncated walk yields a descendant-anchored path ("//...").
    Without ancestry the path degrades to "//tag".
    """
    if not path:
        return f"//{tag or '*'}"

    parts: List[str] = []
    i = len(path) - 1
    while i >= 0 and len(parts) < max_depth:
        parts.append(_segment(path[i]))
        i -= 1

    prefix = "//" if i >= 0 else "/"
    return prefix + "/".join(reversed(parts))


class LocatorExtractor:
    """
    Builds candidate locators in fixed priority order, skipping absent or
    dynamic sources. The structural path is always appended, so the
    resulting chain is never empty.
    """

    def __init__(
        self,
        reliability: Optional[Mapping[str, int]] = None,
        config: Optional[HealingConfig] = None,
    ):
        """
        @param reliability Per-kind overrides of the base reliability table
        @param config Fixed configuration (uses HealingConfig.current() if None)
        """
        table = dict(DEFAULT_RELIABILITY)
        if reliability:
            table.update(reliability)
        self.reliability: Dict[str, int] = table
        self._config = config

    @property
    def config(self) -> HealingConfig:
        return self._config if self._config is not None else HealingConfig.current()

    # Priority order; the structural path is appended last.
    SOURCES = (
        (LocatorKind.ID, "_id_value"),
        (LocatorKind.TEST_ID, "_test_id_value"),
        (LocatorKind.ARIA_LABEL, "_aria_label_value"),
        (LocatorKind.NAME, "_name_value"),
        (LocatorKind.PLACEHOLDER, "_placeholder_value"),
        (LocatorKind.TEXT, "_text_value"),
        (LocatorKind.CSS, "_class_value"),
    )

    def extract(self, attrs: CapturedAttributes) -> LocatorChain:
        """
        Produce the ranked, non-empty chain for one captured element.

        @param attrs Attribute snapshot from the accessor
        @return LocatorChain sorted by reliability descending
        """
        candidates: List[CandidateLocator] = []
        for kind, source in self.SOURCES:
            value: Optional[str] = getattr(self, source)(attrs)
            if value:
                candidates.append(CandidateLocator(kind, value, self.reliability[kind]))

        candidates.append(self._structural_candidate(attrs))

        if len(candidates) == 1:
            logger.warning(
                f"Extraction incomplete for <{attrs.tag}>: no capturable attribute, "
                f"using structural path '{candidates[0].value}' (reliability={candidates[0].reliability})"
            )

        chain = LocatorChain(candidates)
        logger.debug(f"Extracted {len(chain)} locator(s) for <{attrs.tag}>: {chain!r}")
        return chain

    # ------------------------------------------------------------------
    # Candidate sources
    # ------------------------------------------------------------------

    @staticmethod
    def _id_value(attrs: CapturedAttributes) -> Optional[str]:
        if attrs.id and not is_dynamic(attrs.id):
            return attrs.id
        if attrs.id:
            logger.debug(f"Skipping dynamic id '{attrs.id}'")
        return None

    @staticmethod
    def _test_id_value(attrs: CapturedAttributes) -> Optional[str]:
        return attrs.test_id or None

    @staticmethod
    def _aria_label_value(attrs: CapturedAttributes) -> Optional[str]:
        return attrs.aria_label or None

    @staticmethod
    def _name_value(attrs: CapturedAttributes) -> Optional[str]:
        if attrs.name and not is_dynamic(attrs.name):
            return attrs.name
        return None

    @staticmethod
    def _placeholder_value(attrs: CapturedAttributes) -> Optional[str]:
        if not attrs.placeholder:
            return None
        if attrs.tag in INPUT_TAGS or (attrs.role or "").lower() in INPUT_ROLES:
            return attrs.placeholder
        return None

    def _text_value(self, attrs: CapturedAttributes) -> Optional[str]:
        if not attrs.text:
            return None
        if attrs.tag in INTERACTIVE_TAGS or (attrs.role or "").lower() in INTERACTIVE_ROLES:
            return attrs.text[: self.config.text_max_length].rstrip()
        return None

    def _class_value(self, attrs: CapturedAttributes) -> Optional[str]:
        limit = self.config.max_class_count
        if limit <= 0:
            return None
        stable = [c for c in attrs.classes if not is_unstable_class(c)][:limit]
        if not stable:
            return None
        return attrs.tag + "".join(f".{c}" for c in stable)

    def _structural_candidate(self, attrs: CapturedAttributes) -> CandidateLocator:
        path = build_structural_path(attrs.path, attrs.tag, self.config.max_path_depth)
        reliability = min(self.reliability[LocatorKind.XPATH], STRUCTURAL_PATH_MAX_RELIABILITY)
        if not attrs.path:
            reliability = min(reliability, BARE_TAG_PATH_RELIABILITY)
        return CandidateLocator(LocatorKind.XPATH, path, reliability)
