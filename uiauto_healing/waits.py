"""
@file waits.py
@brief Time-bounded calls into the environment accessor.

A bounded call runs on a worker thread: a fresh daemon thread per call, or
the caller's executor when one is injected (e.g. a single-thread pool for
drivers bound to one thread). The timeout clock starts when the call
begins running, not when it is queued, so a query stuck in an injected
pool delays the next one without also consuming its time budget.
"""

from __future__ import annotations

import concurrent.futures
import threading
import time
from typing import Callable, List, Optional, TypeVar

from .exceptions import QueryTimeoutError
from .log import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# How often a queued call checks on_wait while its executor is busy
QUEUE_POLL_INTERVAL = 0.05


def _now() -> float:
    """Monotonic time source for deterministic timeout calculations."""
    return time.monotonic()


def _spawn(fn: Callable[[], T], name: str) -> concurrent.futures.Future:
    """Run fn on its own daemon thread; an abandoned call never blocks another."""
    future: concurrent.futures.Future = concurrent.futures.Future()

    def runner() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    threading.Thread(target=runner, name=name, daemon=True).start()
    return future


def call_with_timeout(
    fn: Callable[[], T],
    timeout: Optional[float],
    description: str = "query",
    executor: Optional[concurrent.futures.Executor] = None,
    on_wait: Optional[Callable[[], None]] = None,
) -> T:
    """
    Run fn once, giving up after timeout seconds of running time.

    No retry: a timed-out call raises QueryTimeoutError and the worker is
    abandoned. Exceptions raised by fn propagate unchanged. timeout=None
    calls fn inline without a bound.

    @param executor Pool to run on (a dedicated daemon thread if None)
    @param on_wait Called while the call is still queued; an exception it
                   raises withdraws the call and propagates
    """
    if timeout is None:
        return fn()

    started = threading.Event()
    started_at: List[float] = []

    def task() -> T:
        started_at.append(_now())
        started.set()
        return fn()

    if executor is None:
        future = _spawn(task, name="uiauto-query")
    else:
        future = executor.submit(task)

    while not started.wait(QUEUE_POLL_INTERVAL):
        if future.done():
            break
        if on_wait is not None:
            try:
                on_wait()
            except BaseException:
                future.cancel()
                raise

    # started_at is empty only if the future finished without running task()
    start_time = started_at[0] if started_at else _now()
    remaining = max(0.0, timeout - (_now() - start_time))
    try:
        return future.result(timeout=remaining)
    except concurrent.futures.TimeoutError:
        elapsed = _now() - start_time
        logger.debug(f"Timed out after {timeout}s waiting for {description}")
        error = QueryTimeoutError(
            f"Timed out after {timeout}s waiting for {description}",
            description=description,
            timeout=timeout,
        )
        error.elapsed_time = elapsed
        raise error from None
