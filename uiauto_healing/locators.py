# uiauto_healing/locators.py
"""
@file locators.py
@brief Candidate locators, ordered locator chains and the reliability table.

A locator is (kind, value). The accessor owns interpretation of both;
this package only orders, compares and persists them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .exceptions import ConfigError


class LocatorKind:
    ID = "id"
    TEST_ID = "test-id"
    ARIA_LABEL = "aria-label"
    NAME = "name"
    PLACEHOLDER = "placeholder"
    TEXT = "text"
    CSS = "css"
    XPATH = "xpath"
    ROLE = "role"


# Extraction order is the order of this table; reliability is its value.
DEFAULT_RELIABILITY: Dict[str, int] = {
    LocatorKind.ID: 100,
    LocatorKind.TEST_ID: 95,
    LocatorKind.ARIA_LABEL: 90,
    LocatorKind.NAME: 85,
    LocatorKind.PLACEHOLDER: 85,
    LocatorKind.TEXT: 80,
    LocatorKind.CSS: 60,
    LocatorKind.XPATH: 50,
}

STRUCTURAL_PATH_MAX_RELIABILITY = 70
BARE_TAG_PATH_RELIABILITY = 20

# Heuristic-only kinds; never produced at capture time.
HEURISTIC_RELIABILITY: Dict[str, int] = {
    LocatorKind.ROLE: 75,
}


@dataclass(frozen=True)
class CandidateLocator:
    kind: str
    value: str
    reliability: int = 0

    def __post_init__(self) -> None:
        if not self.kind:
            raise ConfigError("Locator kind must be a non-empty string")
        if self.value is None or str(self.value) == "":
            raise ConfigError(f"Locator '{self.kind}' must have a non-empty value")
        if not 0 <= int(self.reliability) <= 100:
            raise ConfigError(f"Locator reliability must be in [0, 100], got {self.reliability}")
        object.__setattr__(self, "value", str(self.value))
        object.__setattr__(self, "reliability", int(self.reliability))

    @property
    def key(self) -> Tuple[str, str]:
        """Identity of the locator, ignoring its score."""
        return (self.kind, self.value)

    def describe(self) -> str:
        return f"{self.kind}={self.value}"

    def with_reliability(self, reliability: int) -> CandidateLocator:
        return CandidateLocator(self.kind, self.value, reliability)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "value": self.value, "reliability": self.reliability}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> CandidateLocator:
        if not isinstance(d, Mapping):
            raise ConfigError(f"locator must be a mapping, got: {type(d).__name__}")
        try:
            return cls(kind=str(d["kind"]), value=d["value"], reliability=int(d.get("reliability", 0)))
        except KeyError as e:
            raise ConfigError(f"locator missing required key: {e}") from e


class LocatorChain:
    """
    Immutable, non-empty sequence of candidates, highest reliability first.

    Sorting is stable: equal reliabilities keep their input order.
    Duplicate (kind, value) pairs keep their first occurrence.
    """

    __slots__ = ("_items",)

    def __init__(self, locators: Iterable[CandidateLocator]):
        seen = set()
        uniq: List[CandidateLocator] = []
        for loc in locators:
            if not isinstance(loc, CandidateLocator):
                raise ConfigError(f"LocatorChain accepts CandidateLocator items, got: {type(loc).__name__}")
            if loc.key in seen:
                continue
            seen.add(loc.key)
            uniq.append(loc)
        if not uniq:
            raise ConfigError("LocatorChain must contain at least one locator")
        uniq.sort(key=lambda x: x.reliability, reverse=True)
        self._items: Tuple[CandidateLocator, ...] = tuple(uniq)

    @property
    def primary(self) -> CandidateLocator:
        return self._items[0]

    @property
    def fallbacks(self) -> Tuple[CandidateLocator, ...]:
        return self._items[1:]

    def __iter__(self) -> Iterator[CandidateLocator]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> CandidateLocator:
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocatorChain):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        inner = ", ".join(f"{c.describe()}@{c.reliability}" for c in self._items)
        return f"LocatorChain([{inner}])"

    def find(self, kind: str, value: str) -> Optional[CandidateLocator]:
        for loc in self._items:
            if loc.key == (kind, value):
                return loc
        return None

    def promote(self, new: CandidateLocator, drop: Optional[CandidateLocator] = None) -> LocatorChain:
        """
        Return a chain with `new` as primary.

        `new` takes the current primary's reliability so the chain stays
        sorted; `drop` (typically the locator that kept failing) is removed.
        """
        promoted = new.with_reliability(max(new.reliability, self.primary.reliability))
        rest = [
            loc for loc in self._items
            if loc.key != new.key and (drop is None or loc.key != drop.key)
        ]
        return LocatorChain([promoted] + rest)

    def to_list(self) -> List[Dict[str, Any]]:
        return [loc.to_dict() for loc in self._items]

    @classmethod
    def from_list(cls, items: Any) -> LocatorChain:
        if isinstance(items, Mapping):
            items = [items]
        if not isinstance(items, list) or not items:
            raise ConfigError("'locators' must be a non-empty list")
        return cls(CandidateLocator.from_dict(d) for d in items)
