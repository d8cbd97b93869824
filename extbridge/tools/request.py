"""
Network request abstraction for extbridge.

Every outcome of a request is folded into one ``Response`` shape:

- the transport answered: ``status`` is the HTTP status (``0`` becomes
  ``200``, local-file transports cannot report one).  Statuses above 300
  raise ``RequestError``.
- the transport failed (connection error, timeout, abort): ``status`` is
  ``-1`` and ``RequestError`` is always raised.

The error carries the full ``Response`` so callers can inspect ``status``
and ``data`` either way.
"""
from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests

logger = logging.getLogger(__name__)

BINARY_TYPES = ("blob", "arraybuffer")
RESPONSE_TYPES = ("text", "json") + BINARY_TYPES
CHUNK_SIZE = 8192
TRANSPORT_FAILURE = -1


@dataclass
class Response:
    url: str
    data: Any
    status: int
    handle: Optional[requests.Response] = None


class RequestError(Exception):
    """Raised for HTTP error statuses and transport failures."""

    def __init__(self, response: Response, reason: str = ""):
        self.response = response
        self.reason = reason
        message = f"{response.status} {response.url}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)

    @property
    def status(self) -> int:
        return self.response.status


class RequestAborted(Exception):
    """Internal signal: the abort flag was set during a transfer."""


def buffer_to_string(buffer: Any) -> str:
    """
    Map every byte of ``buffer`` to the code point of the same value.

    Works through the buffer in 8192-byte slices; the result is identical
    to converting it in a single pass.
    """
    view = memoryview(buffer).cast("B")
    parts = []
    for start in range(0, len(view), CHUNK_SIZE):
        parts.append("".join(map(chr, view[start:start + CHUNK_SIZE])))
    return "".join(parts)


def _prepare_body(headers: Dict[str, str], body: Any) -> Any:
    if isinstance(body, dict):
        for name in [key for key in headers if key.lower() == "content-type"]:
            del headers[name]
        headers["Content-Type"] = "application/json"
        return json.dumps(body, separators=(",", ":"))
    return body


def _declared_charset(handle: Optional[requests.Response]) -> Optional[str]:
    # requests reports ISO-8859-1 for any text/* without a charset; only an
    # explicit charset parameter counts here.
    if handle is None:
        return None
    content_type = handle.headers.get("content-type")
    if not content_type:
        return None
    _, params = requests.utils._parse_content_type_header(content_type)
    charset = params.get("charset")
    return charset if isinstance(charset, str) and charset else None


def _decode_text(raw: bytes, encoding: Optional[str]) -> str:
    try:
        return raw.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


class RequestClient:
    """
    Issues single-attempt requests through a ``requests.Session``.

    Args:
        config: ``request`` section of the configuration (``timeout``,
            ``user_agent``).  Defaults to the global configuration.
        session: Session to use; a new one is created if omitted.
    """

    def __init__(self, config: Optional[Mapping[str, Any]] = None, session: Optional[requests.Session] = None):
        if config is None:
            from ..configs import get_global_config
            config = get_global_config().get_section("request")
        self.timeout = config.get("timeout")
        self.session = session or requests.Session()
        user_agent = config.get("user_agent")
        if user_agent:
            self.session.headers.update({"User-Agent": user_agent})

    def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        response_type: str = "text",
        timeout: Optional[float] = None,
        abort: Optional[threading.Event] = None,
    ) -> Response:
        """Perform the request in the calling thread."""
        response_type = response_type or "text"
        if response_type not in RESPONSE_TYPES:
            raise ValueError(f"Unknown response type '{response_type}'. Available: {', '.join(RESPONSE_TYPES)}")
        request_headers = dict(headers or {})
        payload = _prepare_body(request_headers, body)
        if timeout is None:
            timeout = self.timeout

        handle: Optional[requests.Response] = None
        try:
            if abort is not None and abort.is_set():
                raise RequestAborted()
            handle = self.session.request(
                method or "GET",
                url,
                headers=request_headers,
                data=payload,
                timeout=timeout,
                stream=True,
            )
            try:
                raw = self._read_body(handle, abort)
            finally:
                handle.close()
        except RequestAborted:
            logger.debug(f"Request aborted: {method} {url}")
            raise RequestError(self._build(url, handle, b"", response_type, TRANSPORT_FAILURE), "aborted") from None
        except requests.exceptions.Timeout as exc:
            logger.debug(f"Request timed out: {method} {url}")
            raise RequestError(self._build(url, handle, b"", response_type, TRANSPORT_FAILURE), "timeout") from exc
        except requests.exceptions.RequestException as exc:
            logger.debug(f"Request failed: {method} {url} ({exc})")
            raise RequestError(self._build(url, handle, b"", response_type, TRANSPORT_FAILURE), str(exc)) from exc

        result = self._build(url, handle, raw, response_type, handle.status_code or 200)
        if result.status > 300:
            raise RequestError(result, handle.reason or "")
        return result

    async def request(self, url: str, **options: Any) -> Response:
        """Perform the request in a worker thread."""
        abort = options.get("abort")
        if abort is None:
            abort = options["abort"] = threading.Event()
        try:
            return await asyncio.to_thread(self.fetch, url, **options)
        except asyncio.CancelledError:
            abort.set()
            raise

    def _read_body(self, handle: requests.Response, abort: Optional[threading.Event]) -> bytes:
        chunks = []
        for chunk in handle.iter_content(chunk_size=CHUNK_SIZE):
            if abort is not None and abort.is_set():
                raise RequestAborted()
            chunks.append(chunk)
        if abort is not None and abort.is_set():
            raise RequestAborted()
        return b"".join(chunks)

    def _build(
        self,
        url: str,
        handle: Optional[requests.Response],
        raw: bytes,
        response_type: str,
        status: int,
    ) -> Response:
        data: Any
        if response_type in BINARY_TYPES:
            data = raw
        else:
            data = _decode_text(raw, _declared_charset(handle))
            if response_type == "json":
                try:
                    data = json.loads(data)
                except ValueError:
                    pass
        return Response(url=url, data=data, status=status, handle=handle)


_global_client: Optional[RequestClient] = None


def get_request_client() -> RequestClient:
    global _global_client
    if _global_client is None:
        _global_client = RequestClient()
    return _global_client


def reset_request_client() -> None:
    global _global_client
    if _global_client is not None:
        _global_client.session.close()
    _global_client = None


def fetch(url: str, **options: Any) -> Response:
    """Convenience function to fetch with the global client"""
    return get_request_client().fetch(url, **options)


async def request(url: str, **options: Any) -> Response:
    """Convenience function to request with the global client"""
    return await get_request_client().request(url, **options)
