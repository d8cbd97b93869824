"""
Shared pytest fixtures for the extbridge test suite.

- ``manual_loop``: a loop stand-in with a manual clock, for driving
  debounce/throttle timers deterministically.
- ``stub_http``: a real ``requests.Session`` whose transport is replaced by
  ``StubAdapter``; no network access happens.
"""
import io

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

from extbridge.configs import reset_global_config
from extbridge.core.messaging import reset_messenger
from extbridge.tools.request import RequestClient, reset_request_client


@pytest.fixture(autouse=True)
def isolated_globals(tmp_path, monkeypatch):
    """Each test starts from default configuration and fresh singletons."""
    monkeypatch.setenv("EXTBRIDGE_CONFIG", str(tmp_path / "missing.yml"))
    monkeypatch.delenv("EXTBRIDGE_DEBUG", raising=False)
    reset_global_config()
    reset_messenger()
    reset_request_client()
    yield
    reset_global_config()
    reset_messenger()
    reset_request_client()


class _ManualHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualLoop:
    """Implements the ``call_later`` subset of an event loop over a fake clock."""

    def __init__(self):
        self.now = 0.0
        self._timers = []

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        handle = _ManualHandle(self.now + delay, callback, args)
        self._timers.append(handle)
        return handle

    @property
    def pending_timers(self):
        return [h for h in self._timers if not h.cancelled]

    def advance_to(self, target):
        while True:
            due = [h for h in self.pending_timers if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._timers.remove(handle)
            self.now = handle.when
            handle.callback(*handle.args)
        self._timers = self.pending_timers
        self.now = target


@pytest.fixture
def manual_loop():
    return ManualLoop()


class StubAdapter(BaseAdapter):
    """
    Answers every request with a canned response, or raises ``exc``.

    ``stream`` replaces the raw body object, for tests that need to act
    while the body is being read.
    """

    def __init__(self, status=200, content=b"", headers=None, exc=None, reason="OK", stream=None):
        super().__init__()
        self.status = status
        self.content = content
        self.headers = headers or {"Content-Type": "text/plain; charset=utf-8"}
        self.exc = exc
        self.reason = reason
        self.stream = stream
        self.sent = []
        self.timeouts = []

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.sent.append(request)
        self.timeouts.append(timeout)
        if self.exc is not None:
            raise self.exc
        response = requests.Response()
        response.status_code = self.status
        response.reason = self.reason
        response.headers = CaseInsensitiveDict(self.headers)
        response.encoding = get_encoding_from_headers(response.headers)
        response.raw = self.stream if self.stream is not None else io.BytesIO(self.content)
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


class StubHttp:
    def __init__(self):
        self.adapter = StubAdapter()
        self.session = requests.Session()
        self.session.mount("http://", self.adapter)
        self.session.mount("https://", self.adapter)

    def respond(self, status=200, content=b"", headers=None, exc=None, reason="OK", stream=None):
        self.adapter.status = status
        self.adapter.content = content
        if headers is not None:
            self.adapter.headers = headers
        self.adapter.exc = exc
        self.adapter.reason = reason
        self.adapter.stream = stream
        return self.adapter

    def client(self, **config):
        config.setdefault("timeout", None)
        config.setdefault("user_agent", "extbridge-tests")
        return RequestClient(config=config, session=self.session)


@pytest.fixture
def stub_http():
    return StubHttp()
