"""
@file resolution.py
@brief Outcome of one locator resolution and the strategy names it reports.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from .exceptions import LocatorAttempt
from .locators import CandidateLocator


class Strategy:
    PRIMARY = "primary"
    FALLBACK = "fallback"
    TEXT_CONTENT = "text-content"
    PLACEHOLDER = "placeholder"
    ROLE = "role"
    PARTIAL_SELECTOR = "partial-selector"


@dataclass(frozen=True)
class ResolutionResult:
    """
    What resolve() found and how.

    A failed resolution is a normal return value (success=False), never
    an exception. suggested_update is set only when healing succeeded.
    """
    success: bool
    handle: Any = None
    used_locator: Optional[CandidateLocator] = None
    strategy_used: Optional[str] = None
    healing_applied: bool = False
    original_locator_failed: bool = False
    suggested_update: Optional[CandidateLocator] = None
    attempts: Tuple[LocatorAttempt, ...] = ()
    duration_ms: int = 0
    object_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly summary (handle omitted)."""
        return {
            "success": self.success,
            "used_locator": self.used_locator.to_dict() if self.used_locator else None,
            "strategy_used": self.strategy_used,
            "healing_applied": self.healing_applied,
            "original_locator_failed": self.original_locator_failed,
            "suggested_update": self.suggested_update.to_dict() if self.suggested_update else None,
            "attempts": [asdict(a) for a in self.attempts],
            "duration_ms": self.duration_ms,
            "object_id": self.object_id,
        }
