"""
Core primitives for extbridge.

Hooks for in-process broadcast, debounce/throttle scheduling, and the
cross-context messenger with its host transports.
"""
from .hooks import Hooks, init_hooks
from .messaging import (
    MessageRouter,
    Messenger,
    RemoteError,
    configure_messenger,
    get_messenger,
    reset_messenger,
    send_message,
)
from .scheduling import Debounced, Throttled, debounce, throttle
from .transport import HttpTransport, LocalTransport, MessagingError, Transport, TransportError
from .utils import get_uniq_id, is_remote, normalize_keys, zfill

__all__ = [
    "Hooks",
    "init_hooks",
    "MessageRouter",
    "Messenger",
    "RemoteError",
    "configure_messenger",
    "get_messenger",
    "reset_messenger",
    "send_message",
    "Debounced",
    "Throttled",
    "debounce",
    "throttle",
    "HttpTransport",
    "LocalTransport",
    "MessagingError",
    "Transport",
    "TransportError",
    "get_uniq_id",
    "is_remote",
    "normalize_keys",
    "zfill",
]
