"""
@file resolver.py
@brief Self-healing resolution of a locator chain against a live environment.
"""

from __future__ import annotations

import concurrent.futures
import re
import threading
import time
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .attributes import CapturedAttributes
from .config import HealingConfig
from .exceptions import (AccessorFaultError, LocatorAttempt, QueryTimeoutError,
                         ResolutionCancelledError)
from .interfaces import IEnvironmentAccessor
from .locators import (DEFAULT_RELIABILITY, HEURISTIC_RELIABILITY,
                       CandidateLocator, LocatorChain, LocatorKind)
from .log import get_logger
from .repository import ObjectRepository, UsageOutcome
from .resolution import ResolutionResult, Strategy
from .resolutionlogger import RESOLUTION_LOGGER
from .telemetry import HealingEvent, HealingTelemetry
from .waits import call_with_timeout

logger = get_logger(__name__)


IMPLICIT_ROLES: Dict[str, str] = {
    "button": "button",
    "a": "link",
    "input": "textbox",
    "textarea": "textbox",
    "select": "combobox",
    "img": "img",
    "li": "listitem",
    "option": "option",
    "nav": "navigation",
    "h1": "heading",
    "h2": "heading",
    "h3": "heading",
    "h4": "heading",
    "h5": "heading",
    "h6": "heading",
}

_CSS_LAST_COMPOUND = re.compile(r"^(?P<head>.*?)(?P<last>[^\s>+~]+)$", re.S)
_CSS_ID = re.compile(r"#(?:[\w-]|\\.)+")
_XPATH_TRAILING_ID = re.compile(r"\[\s*@id\s*=\s*(['\"]).*?\1\s*\]$")


def strip_trailing_id(locator: CandidateLocator) -> Optional[str]:
    """
    Remove the id part of the last selector step.

    CSS: "form > button#submit-17cf" -> "form > button", "form #x" -> "form".
    XPath: "//form/button[@id='submit-17cf']" -> "//form/button".

    @return Stripped selector, or None if nothing was stripped or nothing is left
    """
    value = locator.value.strip()
    if locator.kind == LocatorKind.CSS:
        m = _CSS_LAST_COMPOUND.match(value)
        if not m:
            return None
        head, last = m.group("head"), m.group("last")
        new_last = _CSS_ID.sub("", last, count=1)
        if new_last == last:
            return None
        if new_last:
            stripped = head + new_last
        else:
            stripped = head.rstrip().rstrip(">+~").rstrip()
    elif locator.kind == LocatorKind.XPATH:
        stripped = _XPATH_TRAILING_ID.sub("", value)
        if stripped == value:
            return None
    else:
        return None

    if not stripped or stripped in ("/", "//"):
        return None
    return stripped


def implicit_role(attrs: CapturedAttributes) -> Optional[str]:
    """Explicit role if captured, else the role implied by the tag."""
    if attrs.role:
        return attrs.role.lower()
    if attrs.tag == "input" and (attrs.type or "").lower() in ("button", "submit", "reset"):
        return "button"
    if attrs.tag == "input" and (attrs.type or "").lower() in ("checkbox", "radio"):
        return (attrs.type or "").lower()
    return IMPLICIT_ROLES.get(attrs.tag)


class _Probe:
    """Per-call query state: bounded queries, attempt log, tried set, cancellation."""

    def __init__(
        self,
        environment: IEnvironmentAccessor,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
        executor: Optional[concurrent.futures.Executor],
    ):
        self.environment = environment
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.executor = executor
        self.attempts: List[LocatorAttempt] = []
        self.tried: Set[Tuple[str, str]] = set()

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ResolutionCancelledError(attempts=list(self.attempts))

    def _call(self, operation: str, locator: CandidateLocator, fn) -> Any:
        self.check_cancelled()
        try:
            return call_with_timeout(
                fn,
                self.timeout,
                f"{operation}({locator.describe()})",
                executor=self.executor,
                on_wait=self.check_cancelled,
            )
        except (QueryTimeoutError, AccessorFaultError, ResolutionCancelledError):
            raise
        except Exception as e:
            raise AccessorFaultError(operation, locator.to_dict(), list(self.attempts), cause=e) from e

    def count(self, locator: CandidateLocator, strategy: str) -> int:
        """Match count; a timed-out query counts as 0."""
        self.tried.add(locator.key)
        try:
            n = int(self._call("query_count", locator, lambda: self.environment.query_count(locator)) or 0)
        except QueryTimeoutError as e:
            self.attempts.append(LocatorAttempt(strategy, locator.to_dict(), count=0, error=str(e)))
            return 0
        self.attempts.append(LocatorAttempt(strategy, locator.to_dict(), count=n))
        return n

    def first(self, locator: CandidateLocator, strategy: str) -> Any:
        """Handle of the first match; None if it vanished or timed out."""
        try:
            return self._call("query_first", locator, lambda: self.environment.query_first(locator))
        except QueryTimeoutError as e:
            self.attempts.append(LocatorAttempt(strategy, locator.to_dict(), count=0, error=str(e)))
            return None


class HealingResolver:
    """
    Resolves locator chains, healing through fallbacks and heuristics.

    Attempts inside one resolve() are sequential and stop at the first
    success. Independent resolve() calls may run in parallel; the only
    shared state is the telemetry log, whose appends are serialized.
    """

    def __init__(
        self,
        telemetry: Optional[HealingTelemetry] = None,
        config: Optional[HealingConfig] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ):
        """
        @param telemetry Healing event log (events are not recorded if None)
        @param config Fixed configuration (uses HealingConfig.current() if None)
        @param executor Pool running bounded queries (a daemon thread per query if None)
        """
        self.telemetry = telemetry
        self._config = config
        self._executor = executor

    @property
    def config(self) -> HealingConfig:
        return self._config if self._config is not None else HealingConfig.current()

    def resolve(
        self,
        chain: LocatorChain,
        attributes_hint: Optional[CapturedAttributes],
        environment: IEnvironmentAccessor,
        healing_enabled: Optional[bool] = None,
        *,
        object_id: Optional[str] = None,
        query_timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ResolutionResult:
        """
        Resolve a chain to a live element handle.

        @param chain Stored locator chain (primary first)
        @param attributes_hint Captured attributes used by the heuristics
        @param environment Accessor for the live UI
        @param healing_enabled Allow fallbacks and heuristics (config default if None)
        @param object_id Descriptor recorded with healing events
        @param query_timeout Per-query bound in seconds (config default if None)
        @param cancel_event Set by the caller to abandon the resolution
        @return ResolutionResult; "not found" is success=False, never an exception
        @throws AccessorFaultError if the accessor raises
        @throws ResolutionCancelledError if cancel_event is set
        """
        cfg = self.config
        heal = cfg.healing_enabled if healing_enabled is None else bool(healing_enabled)
        timeout = query_timeout if query_timeout is not None else cfg.query_timeout
        probe = _Probe(environment, timeout, cancel_event, self._executor)
        start = time.monotonic()

        try:
            result = self._run(chain, attributes_hint, probe, heal, object_id, start)
        except (AccessorFaultError, ResolutionCancelledError) as e:
            RESOLUTION_LOGGER.log_resolution(
                object_id=object_id,
                locator=chain.primary.describe(),
                status="cancelled" if isinstance(e, ResolutionCancelledError) else "fault",
                attempts=probe.attempts,
                healing_enabled=heal,
                query_timeout=timeout,
                duration_ms=self._elapsed_ms(start),
                exception=e,
            )
            raise

        RESOLUTION_LOGGER.log_resolution(
            object_id=object_id,
            locator=(result.used_locator or chain.primary).describe(),
            status=("healed" if result.healing_applied else "ok") if result.success else "failed",
            attempts=result.attempts,
            strategy=result.strategy_used,
            healing_enabled=heal,
            query_timeout=timeout,
            duration_ms=result.duration_ms,
        )
        return result

    def _run(
        self,
        chain: LocatorChain,
        hint: Optional[CapturedAttributes],
        probe: _Probe,
        heal: bool,
        object_id: Optional[str],
        start: float,
    ) -> ResolutionResult:
        primary = chain.primary

        if probe.count(primary, Strategy.PRIMARY) >= 1:
            handle = probe.first(primary, Strategy.PRIMARY)
            if handle is not None:
                logger.debug(f"Resolved via primary {primary.describe()}")
                return self._result(True, probe, start, object_id, handle=handle,
                                    used=primary, strategy=Strategy.PRIMARY)

        if not heal:
            logger.debug(f"Primary {primary.describe()} failed, healing disabled")
            return self._result(False, probe, start, object_id, original_failed=True)

        for fallback in chain.fallbacks:
            if probe.count(fallback, Strategy.FALLBACK) >= 1:
                handle = probe.first(fallback, Strategy.FALLBACK)
                if handle is not None:
                    return self._healed(probe, start, object_id, primary, fallback, Strategy.FALLBACK, handle)

        for strategy, candidate in self._heuristic_candidates(chain, hint):
            if candidate.key in probe.tried:
                continue
            if probe.count(candidate, strategy) == 1:
                handle = probe.first(candidate, strategy)
                if handle is not None:
                    return self._healed(probe, start, object_id, primary, candidate, strategy, handle)

        logger.warning(
            f"Resolution exhausted for {object_id or primary.describe()} "
            f"after {len(probe.attempts)} attempt(s)"
        )
        return self._result(False, probe, start, object_id, healing=True, original_failed=True)

    def _heuristic_candidates(
        self, chain: LocatorChain, hint: Optional[CapturedAttributes]
    ) -> Iterator[Tuple[str, CandidateLocator]]:
        """Heuristic candidates in fixed order; built lazily so earlier wins skip later work."""
        if hint is None:
            hint = CapturedAttributes(tag="")
        text = hint.text[: self.config.text_max_length].rstrip() if hint.text else None

        if text:
            yield Strategy.TEXT_CONTENT, CandidateLocator(
                LocatorKind.TEXT, text, DEFAULT_RELIABILITY[LocatorKind.TEXT]
            )

        if hint.placeholder:
            yield Strategy.PLACEHOLDER, CandidateLocator(
                LocatorKind.PLACEHOLDER, hint.placeholder, DEFAULT_RELIABILITY[LocatorKind.PLACEHOLDER]
            )

        role = implicit_role(hint)
        if role and text:
            yield Strategy.ROLE, CandidateLocator(
                LocatorKind.ROLE, f"{role}:{text}", HEURISTIC_RELIABILITY[LocatorKind.ROLE]
            )

        for loc in chain:
            stripped = strip_trailing_id(loc)
            if stripped:
                yield Strategy.PARTIAL_SELECTOR, CandidateLocator(
                    loc.kind, stripped, DEFAULT_RELIABILITY.get(loc.kind, loc.reliability)
                )

    def _healed(
        self,
        probe: _Probe,
        start: float,
        object_id: Optional[str],
        original: CandidateLocator,
        used: CandidateLocator,
        strategy: str,
        handle: Any,
    ) -> ResolutionResult:
        # a cancel arriving after the match still suppresses the event
        probe.check_cancelled()
        if self.telemetry is not None:
            self.telemetry.record(HealingEvent(
                timestamp=time.time(),
                object_id=object_id,
                original_locator=original,
                strategy=strategy,
                resulting_locator=used,
            ))
        logger.info(
            f"Healed {object_id or original.describe()}: {original.describe()} -> "
            f"{used.describe()} via {strategy}"
        )
        return self._result(True, probe, start, object_id, handle=handle, used=used,
                            strategy=strategy, healing=True, original_failed=True)

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)

    def _result(
        self,
        success: bool,
        probe: _Probe,
        start: float,
        object_id: Optional[str],
        *,
        handle: Any = None,
        used: Optional[CandidateLocator] = None,
        strategy: Optional[str] = None,
        healing: bool = False,
        original_failed: bool = False,
    ) -> ResolutionResult:
        return ResolutionResult(
            success=success,
            handle=handle,
            used_locator=used,
            strategy_used=strategy,
            healing_applied=healing,
            original_locator_failed=original_failed,
            suggested_update=used if (success and healing) else None,
            attempts=tuple(probe.attempts),
            duration_ms=self._elapsed_ms(start),
            object_id=object_id,
        )

    def resolve_object(
        self,
        repository: ObjectRepository,
        object_id: str,
        environment: IEnvironmentAccessor,
        healing_enabled: Optional[bool] = None,
        *,
        query_timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ResolutionResult:
        """
        Resolve a stored object and count the outcome in its usage stats.

        @throws ObjectNotFoundError if object_id is unknown
        """
        obj = repository.require(object_id)
        result = self.resolve(
            obj.chain,
            obj.attributes,
            environment,
            healing_enabled,
            object_id=obj.id,
            query_timeout=query_timeout,
            cancel_event=cancel_event,
        )
        if not result.success:
            outcome = UsageOutcome.FAILED
        elif result.healing_applied:
            outcome = UsageOutcome.HEALED
        else:
            outcome = UsageOutcome.RESOLVED
        repository.record_usage(obj.id, outcome)
        return result
