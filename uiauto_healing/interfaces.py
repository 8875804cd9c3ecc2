"""
@file interfaces.py
@brief Abstract environment accessor the extractor and resolver are written against.

One implementation per platform (browser DOM driver, mobile accessibility
driver, desktop UI driver). The accessor owns locator interpretation:
this package never parses CSS, XPath or accessibility ids itself.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .attributes import CapturedAttributes
from .locators import CandidateLocator


class IEnvironmentAccessor(ABC):
    """
    Capability interface over a live UI.

    Contract:
    - A locator the accessor cannot interpret matches nothing (count 0).
    - Any exception raised means the environment itself is unusable; the
      resolver surfaces it as AccessorFaultError and does not retry.
    - Whenever a query timeout is in effect (HealingConfig.query_timeout,
      5.0s by default), query_count and query_first run on a worker
      thread, not the caller's: a fresh daemon thread per query, or the
      executor given to HealingResolver. Drivers bound to one thread
      (COM/UI Automation, some WebDriver clients) should pass a
      single-worker executor that owns the driver, or configure
      HealingConfig with query_timeout=None to query inline.
    - A timed-out query is abandoned, not interrupted; it may still be
      running when the next query starts.
    """

    @abstractmethod
    def query_count(self, locator: CandidateLocator) -> int:
        """
        Count live elements matching a locator.

        Args:
            locator: Candidate locator (kind + value)

        Returns:
            Number of matches, 0 if none
        """
        pass

    @abstractmethod
    def query_first(self, locator: CandidateLocator) -> Optional[Any]:
        """
        Return a handle to the first match.

        Args:
            locator: Candidate locator (kind + value)

        Returns:
            Platform-specific element handle, or None if nothing matches
        """
        pass

    def read_attributes(self, handle: Any) -> CapturedAttributes:
        """
        Snapshot an element's attributes at capture time.

        Playback-only accessors may leave this unimplemented. Implementations
        typically fill CapturedAttributes.path via walk_ancestry().

        Args:
            handle: Platform-specific element handle

        Returns:
            CapturedAttributes for the element
        """
        raise NotImplementedError(f"{type(self).__name__} does not support attribute capture")
