"""Tests for the JarvisError envelope and send_error utility.

Run:
    pytest tests/test_error_envelope.py -v
"""

from unittest.mock import AsyncMock

import pytest

from jarvis.errors import (
    DecodeError,
    ErrorCode,
    GenerationError,
    GreetingError,
    JarvisError,
    RecognitionError,
    RecognitionKind,
    SynthesisError,
    send_error,
)


class TestJarvisErrorSerialization:
    """JarvisError.to_dict() produces the expected JSON shape."""

    def test_basic_serialization(self):
        err = JarvisError(
            code=ErrorCode.E_STT_FAILED.value,
            message="Error during speech recognition",
            recoverable=True,
            session_id="session-abc123",
            seq=3,
        )
        d = err.to_dict()
        assert d["type"] == "error"
        assert d["code"] == "E_STT_FAILED"
        assert d["message"] == "Error during speech recognition"
        assert d["recoverable"] is True
        assert d["session_id"] == "session-abc123"
        assert d["seq"] == 3
        assert "details" not in d

    def test_serialization_with_details(self):
        err = JarvisError(code="E_TTS_FAILED", message="x", details={"stage": "SYNTHESIZING"})
        assert err.to_dict()["details"] == {"stage": "SYNTHESIZING"}

    def test_session_level_error_has_null_seq(self):
        assert JarvisError(code="E_GREETING_FAILED", message="x").to_dict()["seq"] is None

    def test_all_error_codes_are_strings(self):
        for code in ErrorCode:
            assert isinstance(code.value, str)
            assert code.value.startswith("E_")


class TestFromException:
    @pytest.mark.parametrize(
        "exc,code",
        [
            (DecodeError("ffmpeg exited with 1"), ErrorCode.E_DECODE_FAILED),
            (RecognitionError(RecognitionKind.UNAVAILABLE, "503"), ErrorCode.E_STT_FAILED),
            (GenerationError("timeout"), ErrorCode.E_GENERATION_FAILED),
            (SynthesisError("socket closed"), ErrorCode.E_TTS_FAILED),
            (GreetingError("tts down"), ErrorCode.E_GREETING_FAILED),
        ],
    )
    def test_code_follows_exception_type(self, exc, code):
        err = JarvisError.from_exception(exc, session_id="session-1", seq=2)
        assert err.code == code.value
        assert err.message == type(exc).public_message
        assert err.recoverable is True
        assert err.session_id == "session-1"
        assert err.seq == 2

    def test_internal_detail_is_not_forwarded(self):
        exc = SynthesisError("Cartesia 401 for key sk-live-123 at /srv/jarvis/tts.py")
        payload = JarvisError.from_exception(exc).to_dict()
        flat = str(payload)
        assert "sk-live" not in flat
        assert "/srv" not in flat
        assert payload["message"] == "Error generating speech for the response"

    def test_recognition_kind_is_kept_on_exception(self):
        exc = RecognitionError(RecognitionKind.INVALID_AUDIO)
        assert exc.kind is RecognitionKind.INVALID_AUDIO
        assert str(exc) == "invalid_audio"


class TestSendError:
    """send_error() calls websocket.send_json() with the correct payload."""

    @pytest.mark.asyncio
    async def test_send_error_calls_send_json(self):
        ws = AsyncMock()
        err = JarvisError.from_exception(GenerationError("boom"), session_id="session-test", seq=1)
        await send_error(ws, err)
        ws.send_json.assert_called_once()
        payload = ws.send_json.call_args[0][0]
        assert payload["type"] == "error"
        assert payload["code"] == "E_GENERATION_FAILED"
        assert payload["seq"] == 1

    @pytest.mark.asyncio
    async def test_send_error_swallows_send_failure(self):
        ws = AsyncMock()
        ws.send_json.side_effect = RuntimeError("WebSocket closed")
        err = JarvisError(code=ErrorCode.E_TTS_FAILED.value, message="TTS broke")
        # Should NOT raise
        await send_error(ws, err)
