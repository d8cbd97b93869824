"""
Tests for the FastAPI receiving context and the HTTP transport that talks
to it.
"""
import json

import pytest
import requests
from fastapi.testclient import TestClient

from extbridge.core.messaging import MessageRouter, Messenger, RemoteError
from extbridge.core.transport import HttpTransport, TransportError
from extbridge.ui_bridge import create_app

ENDPOINT = "http://bridge.test/message"


@pytest.fixture
def router():
    router = MessageRouter()

    @router.route("GetOption")
    def get_option(data):
        return {"key": data, "value": True}

    @router.route("Broken")
    def broken(data):
        raise RuntimeError("no such option")

    return router


@pytest.fixture
def client(router):
    with TestClient(create_app(router)) as c:
        yield c


class TestBridgeEndpoints:

    def test_health_lists_commands(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "commands": ["Broken", "GetOption"]}

    def test_message_returns_data(self, client):
        response = client.post("/message", json={"cmd": "GetOption", "data": "autoUpdate"})
        assert response.status_code == 200
        assert response.json() == {"data": {"key": "autoUpdate", "value": True}}

    def test_handler_error_travels_in_body(self, client):
        response = client.post("/message", json={"cmd": "Broken"})
        assert response.status_code == 200
        assert response.json() == {"error": "no such option"}

    def test_unknown_command(self, client):
        response = client.post("/message", json={"cmd": "Missing"})
        assert response.json() == {"error": "Unknown command: Missing"}


class TestHttpTransport:

    @pytest.mark.asyncio
    async def test_round_trip_over_http(self, stub_http):
        adapter = stub_http.respond(
            content=json.dumps({"data": 5}).encode(), headers={"Content-Type": "application/json"}
        )
        transport = HttpTransport(ENDPOINT, client=stub_http.client())

        assert await Messenger(transport, debug=False).send_message({"cmd": "Count"}) == 5

        sent = adapter.sent[0]
        assert sent.method == "POST"
        assert sent.url == ENDPOINT
        assert json.loads(sent.body) == {"cmd": "Count"}

    @pytest.mark.asyncio
    async def test_error_reply_over_http(self, stub_http):
        stub_http.respond(content=b'{"error": "E"}', headers={"Content-Type": "application/json"})
        transport = HttpTransport(ENDPOINT, client=stub_http.client())

        with pytest.raises(RemoteError) as info:
            await Messenger(transport, debug=False).send_message({"cmd": "Count"})
        assert info.value.value == "E"

    @pytest.mark.asyncio
    async def test_non_dict_payload_is_json_encoded(self, stub_http):
        adapter = stub_http.respond(content=b'{"data": null}', headers={"Content-Type": "application/json"})
        transport = HttpTransport(ENDPOINT, client=stub_http.client())

        assert await transport.send([1, 2]) == {"data": None}
        assert adapter.sent[0].body == "[1, 2]"
        assert adapter.sent[0].headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_unreachable_bridge_is_transport_error(self, stub_http):
        stub_http.respond(exc=requests.exceptions.ConnectionError("refused"))
        transport = HttpTransport(ENDPOINT, client=stub_http.client())

        with pytest.raises(TransportError):
            await Messenger(transport, debug=False).send_message({"cmd": "Count"})

    @pytest.mark.asyncio
    async def test_http_error_status_is_transport_error(self, stub_http):
        stub_http.respond(status=502, content=b"bad gateway")
        transport = HttpTransport(ENDPOINT, client=stub_http.client())

        with pytest.raises(TransportError, match="502"):
            await transport.send({"cmd": "Count"})

    @pytest.mark.asyncio
    async def test_unserialisable_payload(self, stub_http):
        adapter = stub_http.respond(content=b'{"data": 1}', headers={"Content-Type": "application/json"})
        transport = HttpTransport(ENDPOINT, client=stub_http.client())

        with pytest.raises(TransportError, match="serialise"):
            await Messenger(transport, debug=False).send_message({"callback": object()})
        assert adapter.sent == []
