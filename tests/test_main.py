"""End-to-end tests for the FastAPI app.

Runs the real WebSocket endpoint through Starlette's TestClient with the
in-memory collaborators from ``fakes`` injected on ``app.state``.

Run:
    pytest tests/test_main.py -v
"""

import base64
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from fakes import FakeSTT, FakeTTS, make_collaborators
from jarvis.main import app, decode_audio_payload


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("OTEL_EXPORTER", "none")
    app.state.collaborators = make_collaborators(
        stt=FakeSTT({b"time": "What time is it?", b"hush": ""}),
        tts=FakeTTS(),
    )
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        del app.state.collaborators


class TestWebSocket:
    def test_session_init_is_first(self, client):
        with client.websocket_connect("/ws/jarvis") as ws:
            event = ws.receive_json()
        assert event["type"] == "session_init"
        assert event["session_id"].startswith("session-")

    def test_binary_audio_gets_three_events(self, client):
        with client.websocket_connect("/ws/jarvis") as ws:
            ws.receive_json()
            ws.send_bytes(b"time")
            events = [ws.receive_json() for _ in range(3)]

        assert [e["type"] for e in events] == ["transcription", "gptResponse", "gpt"]
        assert all(e["seq"] == 1 for e in events)
        assert events[0]["text"] == "What time is it?"
        assert events[1]["text"] == "The current time is 3:45:02 PM."
        assert base64.b64decode(events[2]["audio"]) == b"AUDIO:The current time is 3:45:02 PM."
        assert events[2]["encoding"] == "pcm_s16le"

    def test_json_audio_stream(self, client):
        payload = {"type": "audioStream", "audio": base64.b64encode(b"time").decode()}
        with client.websocket_connect("/ws/jarvis") as ws:
            ws.receive_json()
            ws.send_text(json.dumps(payload))
            event = ws.receive_json()
        assert event == {"type": "transcription", "seq": 1, "text": "What time is it?"}

    def test_invalid_messages_are_ignored(self, client):
        """Bad frames do not consume a sequence number or close the socket."""
        with client.websocket_connect("/ws/jarvis") as ws:
            ws.receive_json()
            ws.send_text("not json")
            ws.send_text(json.dumps({"type": "audioStream", "audio": "***"}))
            ws.send_text(json.dumps({"type": "somethingElse"}))
            ws.send_bytes(b"time")
            event = ws.receive_json()
        assert event["type"] == "transcription"
        assert event["seq"] == 1

    def test_silence_sends_nothing_and_keeps_sequence(self, client):
        with client.websocket_connect("/ws/jarvis") as ws:
            ws.receive_json()
            ws.send_bytes(b"hush")
            ws.send_bytes(b"time")
            event = ws.receive_json()
        assert event["type"] == "transcription"
        assert event["seq"] == 2

    def test_greeting(self, client):
        with client.websocket_connect("/ws/jarvis") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "requestGreeting", "userName": "Tony"}))
            event = ws.receive_json()
        assert event["type"] == "greeting"
        assert base64.b64decode(event["audio"]).startswith(b"AUDIO:Welcome Back Tony! ")


@pytest.mark.asyncio
async def test_health():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        response = await http.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestDecodeAudioPayload:
    def test_valid(self):
        assert decode_audio_payload({"audio": base64.b64encode(b"abc").decode()}) == b"abc"

    @pytest.mark.parametrize("payload", [{}, {"audio": ""}, {"audio": 42}, {"audio": "not base64!"}])
    def test_invalid(self, payload):
        assert decode_audio_payload(payload) is None
