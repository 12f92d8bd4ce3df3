"""Tests for Gemini Live message mapping and the websocket transport."""

from __future__ import annotations

import asyncio
import base64
import json
from typing import Any

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from ai.transport import (
    AudioChunk,
    Closed,
    GeminiLiveTransport,
    InputTranscript,
    Interrupted,
    ModelTurnStarted,
    Opened,
    OutputTranscript,
    ToolCall,
    ToolInvocation,
    ToolResponse,
    TransportError,
    TurnComplete,
    build_setup_message,
    parse_server_message,
)
from config.session import SessionConfig
from core.errors import ConnectivityError, ProtocolAnomaly
from interaction.pcm import PCMBlob


class _FakeWebSocket:
    def __init__(self, incoming: list[Any]) -> None:
        self.incoming = list(incoming)
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def recv(self) -> Any:
        if self.incoming:
            item = self.incoming.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        raise ConnectionClosedOK(Close(1000, ""), Close(1000, ""), True)

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True


def _config(**overrides: Any) -> SessionConfig:
    values = {"api_key": "test-key", "voice_name": "Puck", "system_instruction": "Be brief."}
    values.update(overrides)
    return SessionConfig(**values)


def _transport(websocket: _FakeWebSocket, captured: dict[str, Any] | None = None, **kwargs: Any):
    async def _connect(url: str, **options: Any) -> _FakeWebSocket:
        if captured is not None:
            captured["url"] = url
            captured.update(options)
        return websocket

    declarations = [{"name": "searchWeb", "parameters": {"type": "OBJECT"}}]
    return GeminiLiveTransport(_config(**kwargs), declarations, connect=_connect)


def _collect(transport: GeminiLiveTransport) -> list[Any]:
    async def _run() -> list[Any]:
        await transport.open()
        return [event async for event in transport.events()]

    return asyncio.run(_run())


def test_server_content_maps_in_order() -> None:
    audio = base64.b64encode(b"\x01\x00\x02\x00").decode("ascii")
    payload = {
        "serverContent": {
            "modelTurn": {"parts": [{"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": audio}}]},
            "inputTranscription": {"text": "hi"},
            "outputTranscription": {"text": "Hello"},
            "turnComplete": True,
        }
    }

    events = parse_server_message(payload)

    assert events == [
        ModelTurnStarted(),
        InputTranscript("hi"),
        OutputTranscript("Hello"),
        AudioChunk(data=b"\x01\x00\x02\x00", mime_type="audio/pcm;rate=24000"),
        TurnComplete(),
    ]


def test_setup_complete_interrupt_and_tool_call() -> None:
    assert parse_server_message({"setupComplete": {}}) == [Opened()]
    assert parse_server_message({"serverContent": {"interrupted": True}}) == [Interrupted()]

    events = parse_server_message(
        {
            "toolCall": {
                "functionCalls": [
                    {"id": "c1", "name": "searchWeb", "args": {"query": "weather"}},
                    {"id": "c2", "name": "generateStory"},
                ]
            }
        }
    )

    assert events == [
        ToolCall(
            (
                ToolInvocation("c1", "searchWeb", {"query": "weather"}),
                ToolInvocation("c2", "generateStory", {}),
            )
        )
    ]


def test_audio_part_without_data_is_skipped() -> None:
    payload = {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"mimeType": "audio/pcm"}}]}}}

    assert parse_server_message(payload) == [ModelTurnStarted()]


def test_passive_and_unknown_messages() -> None:
    assert parse_server_message({"usageMetadata": {"totalTokenCount": 3}}) == []
    assert parse_server_message({"toolCallCancellation": {"ids": ["c1"]}}) == []
    assert parse_server_message({"goAway": {"timeLeft": "5s"}}) == []
    with pytest.raises(ProtocolAnomaly):
        parse_server_message({"mystery": {}})
    with pytest.raises(ProtocolAnomaly):
        parse_server_message(["not", "an", "object"])


def test_setup_message_shape() -> None:
    declarations = [{"name": "searchWeb"}]

    message = build_setup_message(_config(live_model="live-model"), declarations)

    setup = message["setup"]
    assert setup["model"] == "models/live-model"
    assert setup["generationConfig"]["responseModalities"] == ["AUDIO"]
    voice = setup["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]
    assert voice == {"voiceName": "Puck"}
    assert setup["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
    assert setup["tools"] == [{"functionDeclarations": declarations}]
    assert setup["inputAudioTranscription"] == {}
    assert setup["outputAudioTranscription"] == {}


def test_open_sends_setup_with_api_key_header() -> None:
    websocket = _FakeWebSocket([])
    captured: dict[str, Any] = {}
    transport = _transport(websocket, captured)

    asyncio.run(transport.open())

    assert captured["additional_headers"] == {"x-goog-api-key": "test-key"}
    assert captured["url"].startswith("wss://generativelanguage.googleapis.com/")
    assert list(websocket.sent[0]) == ["setup"]
    assert not transport.closed


def test_events_end_with_closed_on_normal_close() -> None:
    websocket = _FakeWebSocket(
        [
            json.dumps({"setupComplete": {}}),
            "not json",
            json.dumps({"mystery": True}),
            json.dumps({"serverContent": {"turnComplete": True}}),
        ]
    )

    events = _collect(_transport(websocket))

    assert events == [Opened(), TurnComplete(), Closed()]


def test_abnormal_close_reports_error_then_closed() -> None:
    websocket = _FakeWebSocket(
        [
            json.dumps({"setupComplete": {}}),
            ConnectionClosedError(Close(1011, "internal error"), None),
        ]
    )

    events = _collect(_transport(websocket))

    assert events[0] == Opened()
    assert isinstance(events[1], TransportError)
    assert events[2] == Closed()


def test_outbound_payloads_and_send_after_close() -> None:
    websocket = _FakeWebSocket([])
    transport = _transport(websocket)
    invocation = ToolInvocation("c1", "searchWeb", {"query": "x"})

    async def _run() -> None:
        await transport.open()
        await transport.send_audio(PCMBlob(data="AAA=", mime_type="audio/pcm;rate=16000"))
        await transport.send_tool_response(ToolResponse.success(invocation, "ok"))
        await transport.close()
        await transport.send_audio(PCMBlob(data="AAA=", mime_type="audio/pcm;rate=16000"))

    asyncio.run(_run())

    assert websocket.sent[1] == {
        "realtimeInput": {"audio": {"data": "AAA=", "mimeType": "audio/pcm;rate=16000"}}
    }
    assert websocket.sent[2] == {
        "toolResponse": {
            "functionResponses": [{"id": "c1", "name": "searchWeb", "response": {"result": "ok"}}]
        }
    }
    assert len(websocket.sent) == 3
    assert websocket.closed
    assert transport.closed


def test_untrusted_endpoint_is_blocked() -> None:
    transport = GeminiLiveTransport(_config(), url="wss://example.com/live")

    with pytest.raises(ConnectivityError):
        asyncio.run(transport.open())


def test_missing_api_key_and_connect_failure() -> None:
    async def _refuse(url: str, **options: Any) -> None:
        raise OSError("network unreachable")

    with pytest.raises(ConnectivityError):
        asyncio.run(GeminiLiveTransport(_config(api_key=None), connect=_refuse).open())
    with pytest.raises(ConnectivityError, match="network unreachable"):
        asyncio.run(GeminiLiveTransport(_config(), connect=_refuse).open())


def test_mixed_tool_batch_keeps_every_correlatable_call() -> None:
    events = parse_server_message(
        {
            "serverContent": {"turnComplete": True},
            "toolCall": {
                "functionCalls": [
                    {"id": "1", "name": "setSmartHomeDeviceState", "args": {"deviceName": "lamp", "state": "on"}},
                    {"id": "2", "args": {}},
                    {"id": "3", "name": "searchWeb", "args": ["weather"]},
                    {"name": "generateStory", "args": {}},
                    "garbage",
                ]
            },
        }
    )

    assert events == [
        TurnComplete(),
        ToolCall(
            (
                ToolInvocation("1", "setSmartHomeDeviceState", {"deviceName": "lamp", "state": "on"}),
                ToolInvocation("2", "", {}),
                ToolInvocation("3", "searchWeb", ["weather"]),
            )
        ),
    ]


def test_close_during_connect_closes_new_socket() -> None:
    websocket = _FakeWebSocket([])
    connected = asyncio.Event()
    release = asyncio.Event()

    async def _slow_connect(url: str, **options: Any) -> _FakeWebSocket:
        connected.set()
        await release.wait()
        return websocket

    async def _run() -> GeminiLiveTransport:
        transport = GeminiLiveTransport(_config(), [], connect=_slow_connect)
        opening = asyncio.create_task(transport.open())
        await connected.wait()
        await transport.close()
        release.set()
        await opening
        return transport

    transport = asyncio.run(_run())

    assert websocket.closed
    assert websocket.sent == []
    assert transport.closed
