"""Gemini Live duplex transport over a raw websocket."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import importlib
import importlib.util
import json
from typing import Any, AsyncIterator, Awaitable, Callable
from urllib.parse import urlparse

from config.session import SessionConfig
from core.errors import ConnectivityError, ProtocolAnomaly
from core.logging import log_info, log_setup_summary, log_warning, log_ws_event, logger
from interaction.pcm import PCMBlob, decode_base64

LIVE_URL = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
ALLOWED_OUTBOUND_HOSTS = {"generativelanguage.googleapis.com"}
ALLOWED_OUTBOUND_SCHEMES = {"https", "wss"}

# Messages that carry nothing the session reacts to.
_PASSIVE_KEYS = ("usageMetadata", "sessionResumptionUpdate")


def _validate_outbound_endpoint(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_OUTBOUND_SCHEMES:
        raise ConnectivityError(
            f"Blocked outbound endpoint with non-TLS scheme: {parsed.scheme or 'missing'}"
        )
    if not parsed.hostname:
        raise ConnectivityError("Blocked outbound endpoint with missing hostname.")
    if parsed.hostname not in ALLOWED_OUTBOUND_HOSTS:
        raise ConnectivityError(f"Blocked outbound endpoint to untrusted host: {parsed.hostname}")
    if parsed.username or parsed.password:
        raise ConnectivityError("Blocked outbound endpoint with embedded credentials.")


def _require_websockets() -> Any:
    if importlib.util.find_spec("websockets") is None:
        raise ConnectivityError("websockets is required for GeminiLiveTransport")
    return importlib.import_module("websockets")


def _resolve_websocket_exceptions(websockets: Any) -> tuple[type[BaseException], type[BaseException]]:
    connection_closed = getattr(websockets, "ConnectionClosed", None)
    connection_closed_error = getattr(websockets, "ConnectionClosedError", None)
    exceptions_module = getattr(websockets, "exceptions", None)
    if exceptions_module is not None:
        connection_closed = getattr(exceptions_module, "ConnectionClosed", connection_closed)
        connection_closed_error = getattr(
            exceptions_module, "ConnectionClosedError", connection_closed_error
        )
    if connection_closed is None or connection_closed_error is None:
        raise ConnectivityError("Unsupported websockets version: missing ConnectionClosed errors.")
    return connection_closed, connection_closed_error


@dataclass(frozen=True)
class ToolInvocation:
    id: str
    name: str
    # Raw server args; the dispatcher rejects anything but an object.
    args: Any = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResponse:
    """Result of one tool invocation, correlated by ``id``."""

    id: str
    name: str
    response: dict[str, Any]

    @classmethod
    def success(cls, invocation: ToolInvocation, result: Any) -> "ToolResponse":
        return cls(id=invocation.id, name=invocation.name, response={"result": result})

    @classmethod
    def failure(cls, invocation: ToolInvocation, error: str) -> "ToolResponse":
        return cls(id=invocation.id, name=invocation.name, response={"error": error})

    @property
    def is_error(self) -> bool:
        return "error" in self.response

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "response": self.response}


class ServerEvent:
    """Base class for everything the transport reports, in delivery order."""


@dataclass(frozen=True)
class Opened(ServerEvent):
    pass


@dataclass(frozen=True)
class ModelTurnStarted(ServerEvent):
    """Model content for the current response turn is arriving."""


@dataclass(frozen=True)
class InputTranscript(ServerEvent):
    text: str


@dataclass(frozen=True)
class OutputTranscript(ServerEvent):
    text: str


@dataclass(frozen=True)
class AudioChunk(ServerEvent):
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class ToolCall(ServerEvent):
    invocations: tuple[ToolInvocation, ...]


@dataclass(frozen=True)
class Interrupted(ServerEvent):
    pass


@dataclass(frozen=True)
class TurnComplete(ServerEvent):
    pass


@dataclass(frozen=True)
class TransportError(ServerEvent):
    message: str


@dataclass(frozen=True)
class Closed(ServerEvent):
    pass


def _parse_server_content(content: dict[str, Any]) -> list[ServerEvent]:
    events: list[ServerEvent] = []
    model_turn = content.get("modelTurn")
    if isinstance(model_turn, dict):
        events.append(ModelTurnStarted())

    input_transcription = content.get("inputTranscription")
    if isinstance(input_transcription, dict) and input_transcription.get("text"):
        events.append(InputTranscript(str(input_transcription["text"])))
    output_transcription = content.get("outputTranscription")
    if isinstance(output_transcription, dict) and output_transcription.get("text"):
        events.append(OutputTranscript(str(output_transcription["text"])))

    if isinstance(model_turn, dict):
        for part in model_turn.get("parts") or []:
            inline = part.get("inlineData") if isinstance(part, dict) else None
            if not isinstance(inline, dict):
                continue
            data = inline.get("data")
            if not data:
                logger.warning("%s", ProtocolAnomaly("Audio part without data skipped"))
                continue
            events.append(
                AudioChunk(
                    data=decode_base64(data),
                    mime_type=str(inline.get("mimeType") or ""),
                )
            )

    if content.get("interrupted"):
        events.append(Interrupted())
    if content.get("turnComplete"):
        events.append(TurnComplete())
    return events


def _parse_tool_call(tool_call: dict[str, Any]) -> ToolCall:
    invocations: list[ToolInvocation] = []
    for call in tool_call.get("functionCalls") or []:
        if not isinstance(call, dict) or not call.get("id"):
            # Without an id no response can be correlated.
            logger.warning("%s", ProtocolAnomaly(f"Function call without id dropped: {call!r}"))
            continue
        name = str(call.get("name") or "")
        args = call.get("args")
        if args is None:
            args = {}
        if not name or not isinstance(args, dict):
            logger.warning("%s", ProtocolAnomaly(f"Malformed function call {call['id']}: {call!r}"))
        invocations.append(ToolInvocation(id=str(call["id"]), name=name, args=args))
    return ToolCall(tuple(invocations))


def parse_server_message(payload: Any) -> list[ServerEvent]:
    """Map one Gemini Live server message to session events.

    Raises:
        ProtocolAnomaly: The message has no shape the session understands.
    """

    if not isinstance(payload, dict):
        raise ProtocolAnomaly(f"Expected a JSON object, got {type(payload).__name__}")

    events: list[ServerEvent] = []
    recognized = False
    if "setupComplete" in payload:
        recognized = True
        events.append(Opened())
    server_content = payload.get("serverContent")
    if isinstance(server_content, dict):
        recognized = True
        events.extend(_parse_server_content(server_content))
    tool_call = payload.get("toolCall")
    if isinstance(tool_call, dict):
        recognized = True
        events.append(_parse_tool_call(tool_call))
    cancellation = payload.get("toolCallCancellation")
    if isinstance(cancellation, dict):
        # Every invocation is still answered; the server drops cancelled responses.
        recognized = True
        logger.info("Server cancelled tool calls: %s", cancellation.get("ids") or [])
    go_away = payload.get("goAway")
    if isinstance(go_away, dict):
        recognized = True
        log_warning(f"Server will close the session soon (timeLeft={go_away.get('timeLeft')}).")
    if any(key in payload for key in _PASSIVE_KEYS):
        recognized = True

    if not recognized:
        raise ProtocolAnomaly(f"Unrecognized server message keys: {sorted(payload)}")
    return events


def build_setup_message(config: SessionConfig, tool_declarations: list[dict[str, Any]]) -> dict[str, Any]:
    setup: dict[str, Any] = {
        "model": f"models/{config.live_model}",
        "generationConfig": {
            "responseModalities": ["AUDIO"],
            "speechConfig": {
                "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": config.voice_name}},
            },
        },
        "systemInstruction": {"parts": [{"text": config.system_instruction}]},
        "inputAudioTranscription": {},
        "outputAudioTranscription": {},
    }
    if tool_declarations:
        setup["tools"] = [{"functionDeclarations": tool_declarations}]
    return {"setup": setup}


class Transport(ABC):
    """Duplex channel to the remote conversational model."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once the channel is closed or before it was opened."""

    @abstractmethod
    async def open(self) -> None:
        """Connect and send the session setup; raise ``ConnectivityError`` on failure."""

    @abstractmethod
    def events(self) -> AsyncIterator[ServerEvent]:
        """Yield server events in delivery order, ending with ``Closed``."""

    @abstractmethod
    async def send_audio(self, blob: PCMBlob) -> None:
        ...

    @abstractmethod
    async def send_tool_response(self, response: ToolResponse) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


Connector = Callable[..., Awaitable[Any]]


class GeminiLiveTransport(Transport):
    """Gemini Live ``BidiGenerateContent`` session over ``websockets``."""

    def __init__(
        self,
        config: SessionConfig,
        tool_declarations: list[dict[str, Any]] | None = None,
        *,
        url: str = LIVE_URL,
        connect: Connector | None = None,
    ) -> None:
        self.config = config
        self.tool_declarations = list(tool_declarations or [])
        self.url = url
        self._connect = connect
        self._websocket: Any = None
        self._closing = False

    @property
    def closed(self) -> bool:
        return self._websocket is None or self._closing

    async def open(self) -> None:
        _validate_outbound_endpoint(self.url)
        if not self.config.api_key:
            raise ConnectivityError("No API key configured for the live session.")
        headers = {"x-goog-api-key": self.config.api_key}

        connect = self._connect
        if connect is None:
            connect = _require_websockets().connect
        try:
            self._websocket = await connect(
                self.url,
                additional_headers=headers,
                close_timeout=10,
                ping_interval=30,
                ping_timeout=10,
            )
        except ConnectivityError:
            raise
        except Exception as exc:
            raise ConnectivityError(f"Failed to connect to the live endpoint: {exc}") from exc
        if self._closing:
            # Closed while connecting.
            await self._websocket.close()
            logger.info("Live transport closed before setup")
            return
        log_info("✅ Connected to the server.", style="bold green")

        setup = build_setup_message(self.config, self.tool_declarations)
        log_setup_summary(setup)
        await self._send(setup)

    async def events(self) -> AsyncIterator[ServerEvent]:
        if self._websocket is None:
            yield Closed()
            return
        ConnectionClosed, ConnectionClosedError = _resolve_websocket_exceptions(
            _require_websockets()
        )
        while True:
            try:
                raw = await self._websocket.recv()
            except ConnectionClosed as exc:
                if isinstance(exc, ConnectionClosedError) and not self._closing:
                    log_warning("⚠️ WebSocket connection lost.")
                    yield TransportError(str(exc) or "connection closed unexpectedly")
                yield Closed()
                return
            try:
                payload = json.loads(raw)
                parsed = parse_server_message(payload)
                log_ws_event("Incoming", payload)
            except (ValueError, ProtocolAnomaly) as exc:
                logger.warning("Ignoring server message: %s", exc)
                continue
            for event in parsed:
                yield event

    async def send_audio(self, blob: PCMBlob) -> None:
        await self._send({"realtimeInput": {"audio": blob.to_payload()}})

    async def send_tool_response(self, response: ToolResponse) -> None:
        await self._send({"toolResponse": {"functionResponses": [response.to_payload()]}})

    async def _send(self, message: dict[str, Any]) -> None:
        if self.closed:
            logger.debug("Dropping %s sent after close", next(iter(message)))
            return
        ConnectionClosed, _ = _resolve_websocket_exceptions(_require_websockets())
        log_ws_event("Outgoing", message)
        try:
            await self._websocket.send(json.dumps(message))
        except ConnectionClosed:
            # The receive loop reports the closure.
            logger.debug("Websocket closed while sending %s", next(iter(message)))

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        websocket = self._websocket
        if websocket is not None:
            await websocket.close()
            logger.info("Live transport closed")
