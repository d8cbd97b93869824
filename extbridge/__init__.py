"""
extbridge: hooks, rate-limited callbacks, cross-context messaging and a
unified network request helper for multi-context extension runtimes.
"""
from .core import (
    Hooks,
    MessageRouter,
    Messenger,
    RemoteError,
    TransportError,
    debounce,
    init_hooks,
    send_message,
    throttle,
)
from .tools import RequestError, Response, buffer_to_string, request

__version__ = "0.1.0"

__all__ = [
    "Hooks",
    "MessageRouter",
    "Messenger",
    "RemoteError",
    "TransportError",
    "debounce",
    "init_hooks",
    "send_message",
    "throttle",
    "RequestError",
    "Response",
    "buffer_to_string",
    "request",
]
