"""
@file telemetry.py
@brief Append-only healing event log with statistics and export.
"""

from __future__ import annotations

import json
import os
import threading
from collections import Counter
from dataclasses import dataclass
from typing import IO, Any, Dict, List, Optional, Tuple, Union

from .config import HealingConfig
from .exceptions import ConfigError
from .locators import CandidateLocator
from .log import get_logger
from .suggestions import UpdateSuggestion, suggest_updates
from .validation import HEALING_EVENT_SCHEMA, validate

logger = get_logger(__name__)


@dataclass(frozen=True)
class HealingEvent:
    timestamp: float
    object_id: Optional[str]
    original_locator: CandidateLocator
    strategy: str
    resulting_locator: CandidateLocator

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "object_id": self.object_id,
            "original_locator": self.original_locator.to_dict(),
            "strategy": self.strategy,
            "resulting_locator": self.resulting_locator.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> HealingEvent:
        return cls(
            timestamp=float(d["timestamp"]),
            object_id=d.get("object_id"),
            original_locator=CandidateLocator.from_dict(d["original_locator"]),
            strategy=str(d["strategy"]),
            resulting_locator=CandidateLocator.from_dict(d["resulting_locator"]),
        )


class HealingTelemetry:
    """
    Thread-safe, append-only log of healing events.

    With log_path set, every recorded event is also appended to that
    file as one JSON line.
    """

    def __init__(self, log_path: Optional[str] = None):
        self.log_path = os.path.abspath(log_path) if log_path else None
        self._events: List[HealingEvent] = []
        self._lock = threading.Lock()

    def record(self, event: HealingEvent) -> None:
        line = json.dumps(event.to_dict(), ensure_ascii=False, separators=(",", ":"))
        with self._lock:
            self._events.append(event)
            if self.log_path:
                os.makedirs(os.path.dirname(self.log_path) or ".", exist_ok=True)
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        logger.debug(
            f"Healing event: {event.original_locator.describe()} -> "
            f"{event.resulting_locator.describe()} ({event.strategy})"
        )

    def events(self) -> Tuple[HealingEvent, ...]:
        """Snapshot of the log in append order."""
        with self._lock:
            return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def statistics(self) -> Dict[str, Any]:
        events = self.events()
        recent = HealingConfig.current().recent_events
        return {
            "total": len(events),
            "by_strategy": dict(Counter(e.strategy for e in events)),
            "recent": [e.to_dict() for e in events[-recent:]] if recent > 0 else [],
        }

    def suggest_updates(self, min_frequency: Optional[int] = None) -> List[UpdateSuggestion]:
        return suggest_updates(self.events(), min_frequency)

    def export_log(self, sink: Union[str, "os.PathLike[str]", IO[str]]) -> None:
        """
        Serialize the full log as a JSON array.

        @param sink File path or writable text stream
        """
        payload = [e.to_dict() for e in self.events()]
        if hasattr(sink, "write"):
            json.dump(payload, sink, indent=2, ensure_ascii=False)
            return
        path = os.fspath(sink)
        os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        logger.info(f"Healing log exported: {path} ({len(payload)} events)")

    @classmethod
    def load(cls, path: str) -> HealingTelemetry:
        """
        Rebuild a telemetry log from a JSONL file; new events keep
        appending to the same file.

        @throws ConfigError on malformed lines or schema violations
        """
        telemetry = cls(log_path=path)
        if not os.path.exists(telemetry.log_path):
            return telemetry
        with open(telemetry.log_path, "r", encoding="utf-8") as f:
            for lineno, raw in enumerate(f, start=1):
                raw = raw.strip()
                if not raw:
                    continue
                where = f"{path}:{lineno}"
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    raise ConfigError(f"{where}: invalid JSON: {e}") from e
                validate(data, HEALING_EVENT_SCHEMA, where=where)
                telemetry._events.append(HealingEvent.from_dict(data))
        logger.info(f"Loaded {len(telemetry._events)} healing event(s) from {path}")
        return telemetry
