"""
Host transports for the cross-context messenger.

A transport moves one payload to the receiving context and returns its
reply.  The wire format belongs to the transport; the messenger only sees
the ``{"data": ..., "error": ...}`` reply.
"""
from __future__ import annotations

import inspect
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

from ..tools.request import RequestClient, RequestError, get_request_client

logger = logging.getLogger(__name__)

Receiver = Callable[[Any], Union[Any, Awaitable[Any]]]


class MessagingError(Exception):
    """Base class for failed round-trips."""


class TransportError(MessagingError):
    """The payload could not be delivered or the reply could not be read."""


class Transport(ABC):
    @abstractmethod
    async def send(self, payload: Any) -> Any:
        """Deliver ``payload`` and return the raw reply."""


def _clone(value: Any, what: str) -> Any:
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as exc:
        raise TransportError(f"Could not serialise {what}: {exc}") from exc


class LocalTransport(Transport):
    """
    In-process channel between two contexts.

    The receiving context installs its handler with ``connect``.  Payload and
    reply are copied through JSON so neither side shares mutable state with
    the other.
    """

    def __init__(self) -> None:
        self._receiver: Optional[Receiver] = None

    @property
    def connected(self) -> bool:
        return self._receiver is not None

    def connect(self, receiver: Receiver) -> Callable[[], None]:
        self._receiver = receiver

        def disconnect() -> None:
            if self._receiver is receiver:
                self._receiver = None

        return disconnect

    async def send(self, payload: Any) -> Any:
        receiver = self._receiver
        if receiver is None:
            raise TransportError("Could not establish connection. Receiving end does not exist.")
        message = _clone(payload, "payload")
        try:
            reply = receiver(message)
            if inspect.isawaitable(reply):
                reply = await reply
        except MessagingError:
            raise
        except Exception as exc:
            logger.exception("Receiving context failed to handle message")
            raise TransportError(f"Receiving end failed: {exc}") from exc
        return _clone(reply, "reply")


class HttpTransport(Transport):
    """Posts payloads as JSON to a receiving context served over HTTP."""

    def __init__(self, endpoint: Optional[str] = None, client: Optional[RequestClient] = None) -> None:
        if endpoint is None:
            from ..configs import get_global_config
            endpoint = get_global_config().get("messaging.endpoint")
        self.endpoint = endpoint
        self.client = client

    async def send(self, payload: Any) -> Any:
        client = self.client or get_request_client()
        message = _clone(payload, "payload")
        if isinstance(message, dict):
            body, headers = message, None
        else:
            body, headers = json.dumps(message), {"Content-Type": "application/json"}
        try:
            response = await client.request(
                self.endpoint,
                method="POST",
                headers=headers,
                body=body,
                response_type="json",
            )
        except RequestError as exc:
            raise TransportError(f"Delivery to {self.endpoint} failed ({exc})") from exc
        return response.data
