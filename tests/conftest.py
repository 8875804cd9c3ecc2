# tests/conftest.py
"""
Shared fixtures: an in-memory environment accessor and config isolation.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, List, Optional, Tuple

import pytest

from uiauto_healing.attributes import CapturedAttributes
from uiauto_healing.config import HealingConfig
from uiauto_healing.interfaces import IEnvironmentAccessor
from uiauto_healing.locators import CandidateLocator
from uiauto_healing.resolutionlogger import RESOLUTION_LOGGER


@dataclass
class FakeElement:
    """A live element as the fake accessor sees it."""
    tag: str
    id: Optional[str] = None
    name: Optional[str] = None
    text: Optional[str] = None
    placeholder: Optional[str] = None
    aria_label: Optional[str] = None
    test_id: Optional[str] = None
    role: Optional[str] = None
    selectors: FrozenSet[str] = field(default_factory=frozenset)
    attrs: Optional[CapturedAttributes] = None

    def matches(self, locator: CandidateLocator) -> bool:
        kind, value = locator.kind, locator.value
        if kind in ("css", "xpath"):
            return value in self.selectors
        if kind == "role":
            return self.role is not None and f"{self.role}:{self.text}" == value
        field_name = {
            "id": "id",
            "name": "name",
            "text": "text",
            "placeholder": "placeholder",
            "aria-label": "aria_label",
            "test-id": "test_id",
        }.get(kind)
        return field_name is not None and getattr(self, field_name) == value


class FakeEnvironment(IEnvironmentAccessor):
    """
    Evaluates locators against a list of FakeElements.

    fault: exception raised by every query.
    slow: locator keys whose queries sleep for `delay` seconds first.
    on_query: callback invoked with each queried locator.
    """

    def __init__(
        self,
        elements: Optional[List[FakeElement]] = None,
        fault: Optional[BaseException] = None,
        slow: Optional[List[Tuple[str, str]]] = None,
        delay: float = 0.5,
        on_query: Optional[Callable[[CandidateLocator], None]] = None,
    ):
        self.elements = list(elements or [])
        self.fault = fault
        self.slow = set(slow or ())
        self.delay = delay
        self.on_query = on_query
        self.queries: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def _before(self, locator: CandidateLocator) -> None:
        with self._lock:
            self.queries.append(locator.key)
        if self.on_query is not None:
            self.on_query(locator)
        if self.fault is not None:
            raise self.fault
        if locator.key in self.slow:
            time.sleep(self.delay)

    def query_count(self, locator: CandidateLocator) -> int:
        self._before(locator)
        return sum(1 for el in self.elements if el.matches(locator))

    def query_first(self, locator: CandidateLocator) -> Any:
        self._before(locator)
        for el in self.elements:
            if el.matches(locator):
                return el
        return None

    def read_attributes(self, handle: Any) -> CapturedAttributes:
        return handle.attrs

    def count_of(self, kind: str, value: str) -> int:
        """How many times a locator was queried (count or first)."""
        return self.queries.count((kind, value))


@pytest.fixture(autouse=True)
def isolated_config():
    """Every test starts from default configuration with event logging off."""
    HealingConfig.reset_to_defaults()
    RESOLUTION_LOGGER.disable()
    yield
    HealingConfig.reset_to_defaults()
    RESOLUTION_LOGGER.disable()
    RESOLUTION_LOGGER.configure()


@pytest.fixture
def submit_button_attrs() -> CapturedAttributes:
    return CapturedAttributes(tag="button", id="submit-btn-17cf2a9b", text="Submit")


@pytest.fixture
def make_env() -> Callable[..., FakeEnvironment]:
    def _make(*elements: FakeElement, **kwargs: Any) -> FakeEnvironment:
        return FakeEnvironment(list(elements), **kwargs)
    return _make
