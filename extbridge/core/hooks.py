"""
Hook registry for extbridge.

A ``Hooks`` instance owns an ordered list of subscriber callbacks for one
observable concept (one registry per option value, per config file, ...).
``hook`` registers a callback and hands back an unsubscribe capability,
``fire`` broadcasts a value to every subscriber.

Delivery is resilient: a subscriber that raises is logged and the broadcast
moves on to the next one.  Firing works on a snapshot, so subscribers added
or removed while a fire is in progress only affect later fires.
"""
from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from typing import Any, Callable, List, Set, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[Any], Any]
Unsubscribe = Callable[[], None]


class Hooks:
    """Ordered subscriber list with snapshot broadcast."""

    def __init__(self, name: str = "hooks") -> None:
        self.name = name
        self._entries: List[Tuple[int, Callback]] = []
        self._tokens = itertools.count()
        self._tasks: Set[asyncio.Future] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def hook(self, callback: Callback) -> Unsubscribe:
        """
        Register ``callback`` for future fires.

        Returns:
            A capability that removes this exact registration.  Calling it
            more than once is a no-op.
        """
        token = next(self._tokens)
        self._entries.append((token, callback))

        def unsubscribe() -> None:
            for index, (entry_token, _) in enumerate(self._entries):
                if entry_token == token:
                    del self._entries[index]
                    return

        return unsubscribe

    def fire(self, data: Any = None) -> None:
        """Call every current subscriber with ``data``, in registration order."""
        for _, callback in list(self._entries):
            try:
                result = callback(data)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {self.name}")
                continue
            if inspect.isawaitable(result):
                self._schedule(callback, result)

    def clear(self) -> None:
        self._entries.clear()

    def _schedule(self, callback: Callback, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.error(f"Async subscriber {callback!r} on {self.name} fired without a running loop")
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)

        def _done(finished: asyncio.Future) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error(f"Async subscriber {callback!r} failed on {self.name}", exc_info=exc)

        task.add_done_callback(_done)


def init_hooks(name: str = "hooks") -> Hooks:
    """Create an empty registry."""
    return Hooks(name)
