# uiauto_healing/exceptions.py
"""
@file exceptions.py
@brief Exception classes for locator extraction, storage and resolution.

"Element not found" is never raised: resolution returns a structured
failure instead. Only infrastructure faults and misuse surface here.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class HealingError(Exception):
    """Base exception for the package."""
    pass


class ConfigError(HealingError):
    """Raised when a chain, repository file or configuration is invalid."""
    pass


class QueryTimeoutError(HealingError):
    """
    Raised when a single environment query exceeds its time bound.

    The resolver treats this as "no match" and moves to the next strategy.

    Attributes:
        description: What was being queried
        timeout: The bound in seconds
        elapsed_time: Actual elapsed time in seconds
    """

    def __init__(self, message: str, description: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(message)
        self.description = description
        self.timeout = timeout
        self.elapsed_time: Optional[float] = None

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.elapsed_time is not None:
            return f"{base_msg} [Elapsed: {self.elapsed_time:.2f}s]"
        return base_msg


@dataclass
class LocatorAttempt:
    strategy: str
    locator: Dict[str, Any]
    count: Optional[int] = None
    error: Optional[str] = None


class AccessorFaultError(HealingError):
    """
    Raised when the environment accessor is unreachable or crashed.

    Never retried inside this package; the original exception is kept
    both as ``cause`` and as ``__cause__``.
    """

    def __init__(
        self,
        operation: str,
        locator: Optional[Dict[str, Any]] = None,
        attempts: Optional[List[LocatorAttempt]] = None,
        cause: Optional[BaseException] = None,
    ):
        self.operation = operation
        self.locator = locator
        self.attempts = attempts or []
        self.cause = cause
        super().__init__(self.__str__())

    def __str__(self) -> str:
        base = f"AccessorFaultError: operation='{self.operation}'"
        if self.locator:
            base += f" locator={self.locator}"
        if self.cause:
            base += f" cause='{type(self.cause).__name__}: {self.cause}'"
        if self.attempts:
            base += f" attempts_before_fault={len(self.attempts)}"
        return base


class RepositoryWriteConflictError(HealingError):
    def __init__(self, fingerprint: str, existing_id: str, conflicting_id: str):
        self.fingerprint = fingerprint
        self.existing_id = existing_id
        self.conflicting_id = conflicting_id
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return (
            f"RepositoryWriteConflictError: fingerprint='{self.fingerprint}' "
            f"already bound to '{self.existing_id}', refusing '{self.conflicting_id}'"
        )


class ObjectNotFoundError(HealingError):
    def __init__(self, object_id: Optional[str]):
        self.object_id = object_id
        super().__init__(f"Object not found: {object_id}")


class ResolutionCancelledError(HealingError):
    """Raised when a caller cancels a resolve() in progress."""

    def __init__(self, attempts: Optional[List[LocatorAttempt]] = None):
        self.attempts = attempts or []
        super().__init__(f"Resolution cancelled after {len(self.attempts)} attempt(s)")
