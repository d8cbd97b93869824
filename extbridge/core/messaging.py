"""
Cross-context messaging for extbridge.

``Messenger.send_message`` sends a payload through a host transport and
unwraps the ``{"data": ..., "error": ...}`` reply:

- a truthy ``error`` raises ``RemoteError`` holding the value verbatim,
- otherwise the reply's ``data`` is returned (``None`` when absent),
- delivery problems raise ``TransportError``.

Nothing is retried.  When the process-wide debug flag is on, failed
round-trips are also logged; the caller still receives the exception.

``MessageRouter`` is the receiving side: it dispatches ``{"cmd", "data"}``
payloads to registered handlers and builds the reply.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .transport import HttpTransport, MessagingError, Transport, TransportError

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[Any, Awaitable[Any]]]


class RemoteError(MessagingError):
    """The receiving context answered with an error value."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(value if isinstance(value, str) else repr(value))


class Messenger:
    """
    Sends payloads to the counterpart context.

    Args:
        transport: Host transport used for delivery.
        debug: Log failed round-trips.  ``None`` reads the process-wide flag
            each time a failure is observed.
    """

    def __init__(self, transport: Transport, debug: Optional[bool] = None) -> None:
        self.transport = transport
        self.debug = debug

    def send_message(self, payload: Any) -> asyncio.Task:
        """Start a round-trip; the returned task resolves to the reply's data."""
        task = asyncio.get_running_loop().create_task(self._round_trip(payload))
        task.add_done_callback(self._observe)
        return task

    async def _round_trip(self, payload: Any) -> Any:
        reply = await self.transport.send(payload)
        if reply is None:
            reply = {}
        if not isinstance(reply, Mapping):
            raise TransportError(f"Malformed reply: {reply!r}")
        error = reply.get("error")
        if error:
            raise RemoteError(error)
        return reply.get("data")

    def _debug_enabled(self) -> bool:
        if self.debug is not None:
            return self.debug
        from ..configs import is_debug
        return is_debug()

    def _observe(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and self._debug_enabled():
            logger.warning(f"Message round-trip failed: {exc}", exc_info=exc)


class MessageRouter:
    """Dispatches ``{"cmd": name, "data": ...}`` payloads to command handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}

    @property
    def commands(self) -> List[str]:
        return sorted(self._handlers)

    def register(self, cmd: str, handler: Handler) -> None:
        if cmd in self._handlers:
            logger.warning(f"Overwriting existing command handler: {cmd}")
        self._handlers[cmd] = handler

    def route(self, cmd: str) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.register(cmd, handler)
            return handler
        return decorator

    async def dispatch(self, payload: Any) -> Dict[str, Any]:
        """Run the handler for ``payload`` and build the reply."""
        if not isinstance(payload, Mapping):
            return {"error": "Malformed message"}
        cmd = payload.get("cmd")
        handler = self._handlers.get(cmd)
        if handler is None:
            return {"error": f"Unknown command: {cmd}"}
        try:
            result = handler(payload.get("data"))
            if inspect.isawaitable(result):
                result = await result
        except RemoteError as exc:
            return {"error": exc.value}
        except Exception as exc:
            logger.exception(f"Command {cmd} failed")
            return {"error": str(exc) or exc.__class__.__name__}
        return {"data": result}


_messenger: Optional[Messenger] = None


def configure_messenger(transport: Transport, debug: Optional[bool] = None) -> Messenger:
    global _messenger
    _messenger = Messenger(transport, debug=debug)
    return _messenger


def get_messenger() -> Messenger:
    global _messenger
    if _messenger is None:
        _messenger = Messenger(HttpTransport())
    return _messenger


def reset_messenger() -> None:
    global _messenger
    _messenger = None


def send_message(payload: Any) -> asyncio.Task:
    return get_messenger().send_message(payload)
