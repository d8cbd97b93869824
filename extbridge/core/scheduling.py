"""
Debounce and throttle wrappers driven by the asyncio event loop.

Both wrappers keep a single pending call per wrapped function:

- debounce: every call cancels the pending timer and re-arms it, so only the
  last call of a burst is delivered, ``interval`` seconds after that call.
- throttle: the first call of a quiet period arms the timer with its own
  arguments; calls made while the timer is pending are dropped.  The
  delivery happens ``interval`` seconds after the triggering call.

Wrappers bind like methods when stored on a class, the instance being passed
as the first positional argument.  The pending slot is shared by all
instances, exactly as it is for a plain function.
"""
from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from typing import Any, Callable, Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class _PendingCall:
    __slots__ = ("args", "kwargs", "handle")

    def __init__(self, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> None:
        self.args = args
        self.kwargs = kwargs
        self.handle: Optional[asyncio.TimerHandle] = None


class _Scheduled:
    def __init__(
        self,
        func: Callable[..., Any],
        interval: float,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if interval < 0:
            raise ValueError(f"interval must be non-negative, got {interval}")
        functools.update_wrapper(self, func)
        self.func = func
        self.interval = interval
        self._loop = loop
        self._pending: Optional[_PendingCall] = None
        self._tasks: Set[asyncio.Future] = set()

    def __get__(self, instance: Any, owner: Any = None) -> Any:
        if instance is None:
            return self
        return functools.partial(self, instance)

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def cancel(self) -> None:
        """Drop the pending call without delivering it."""
        call, self._pending = self._pending, None
        if call is not None and call.handle is not None:
            call.handle.cancel()

    def flush(self) -> None:
        """Deliver the pending call now, if there is one."""
        call = self._pending
        if call is None:
            return
        if call.handle is not None:
            call.handle.cancel()
        self._run(call)

    def _arm(self, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        call = _PendingCall(args, kwargs)
        call.handle = loop.call_later(self.interval, self._run, call)
        self._pending = call

    def _run(self, call: _PendingCall) -> None:
        if self._pending is call:
            self._pending = None
        try:
            result = self.func(*call.args, **call.kwargs)
        except Exception:
            logger.exception(f"Scheduled call to {self.func!r} failed")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self._loop or asyncio.get_running_loop())
            self._tasks.add(task)
            task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Scheduled call to {self.func!r} failed", exc_info=exc)


class Debounced(_Scheduled):
    """Collapse a burst of calls into the last one."""

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._pending is not None and self._pending.handle is not None:
            self._pending.handle.cancel()
        self._arm(args, kwargs)


class Throttled(_Scheduled):
    """Deliver at most one call per interval, using the first call's arguments."""

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._pending is None:
            self._arm(args, kwargs)


def debounce(
    func: Callable[..., Any],
    interval: float,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Debounced:
    return Debounced(func, interval, loop)


def throttle(
    func: Callable[..., Any],
    interval: float,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Throttled:
    return Throttled(func, interval, loop)
