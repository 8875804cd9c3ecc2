"""
@file resolutionlogger.py
@brief One structured record per resolve() call, for run reports.

Disabled by default. Each record summarizes a resolution: outcome, the
locator that won, which strategies were tried and how many queries timed
out, together with the healing switch and query timeout in effect.
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import LocatorAttempt
from .log import get_logger

logger = get_logger(__name__)

# Key order of a record; line format prints non-empty fields in this order
RECORD_FIELDS = (
    "ts",
    "run_id",
    "object_id",
    "status",
    "locator",
    "strategy",
    "attempts",
    "timeouts",
    "tried",
    "healing_enabled",
    "query_timeout",
    "duration_ms",
)


def strategies_tried(attempts: Sequence[LocatorAttempt]) -> List[str]:
    """Distinct strategies in the order they were first attempted."""
    seen: List[str] = []
    for attempt in attempts:
        if attempt.strategy not in seen:
            seen.append(attempt.strategy)
    return seen


class ResolutionLogger:
    """Thread-safe sink for resolution records in line or jsonl format."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._enabled = False
        self._console = True
        self._file_path: Optional[str] = None
        self._run_id = "default"
        self._format = "line"

    def configure(
        self,
        *,
        console: bool = True,
        file_path: Optional[str] = None,
        run_id: Optional[str] = None,
        format: str = "line",
    ) -> None:
        """
        @param console Print records to stdout
        @param file_path Append records to this file
        @param run_id Tag carried by every record (unchanged if None)
        @param format "line" or "jsonl"
        """
        fmt = (format or "line").lower()
        if fmt not in {"line", "jsonl"}:
            raise ValueError("ResolutionLogger format must be 'line' or 'jsonl'")

        with self._lock:
            self._console = bool(console)
            self._file_path = file_path
            self._format = fmt
            if run_id:
                self._run_id = run_id

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled

    def log_resolution(
        self,
        *,
        object_id: Optional[str],
        locator: str,
        status: str,
        attempts: Sequence[LocatorAttempt] = (),
        strategy: Optional[str] = None,
        healing_enabled: Optional[bool] = None,
        query_timeout: Optional[float] = None,
        duration_ms: Optional[int] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        """
        Emit the record of one resolution.

        @param locator Winning locator, or the primary if nothing matched
        @param status ok, healed, failed, fault or cancelled
        @param attempts Attempt log of the resolution
        @param exception Fault or cancellation that ended it, if any
        """
        if not self._enabled:
            return

        record: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "run_id": self._run_id,
            "object_id": object_id,
            "status": status,
            "locator": locator,
            "strategy": strategy,
            "attempts": len(attempts),
            "timeouts": sum(1 for a in attempts if a.error),
            "tried": strategies_tried(attempts),
            "healing_enabled": healing_enabled,
            "query_timeout": query_timeout,
            "duration_ms": duration_ms,
        }
        if exception is not None:
            cause = exception.__cause__
            record["error"] = {
                "type": type(exception).__name__,
                "message": str(exception),
                "cause": type(cause).__name__ if cause is not None else None,
            }

        if self._format == "jsonl":
            line = json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str)
        else:
            line = self._format_line(record)

        with self._lock:
            if self._console:
                print(line, flush=True)
            if self._file_path:
                self._write_file(line)

    def _write_file(self, line: str) -> None:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self._file_path)) or ".", exist_ok=True)
            with open(self._file_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            # best effort; the resolution result stands
            logger.warning(f"Could not write resolution record to {self._file_path}: {e}")

    @staticmethod
    def _format_line(record: Dict[str, Any]) -> str:
        parts = [record["ts"][11:19], "resolve"]
        for key in RECORD_FIELDS[1:]:
            value = record.get(key)
            if value is None or value == "" or value == []:
                continue
            if key in ("object_id", "locator"):
                parts.append(f"{key}='{value}'")
            elif key == "tried":
                parts.append(f"tried={','.join(value)}")
            else:
                parts.append(f"{key}={value}")

        error = record.get("error")
        if error:
            parts.append(f"error={error['type']}: {error['message']}")
            if error.get("cause"):
                parts.append(f"cause={error['cause']}")

        return " | ".join(parts)


RESOLUTION_LOGGER = ResolutionLogger()
