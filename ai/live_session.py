"""Live session lifecycle: one duplex audio session and its manager."""

from __future__ import annotations

import asyncio
from typing import Callable

from ai.dispatcher import ToolDispatcher
from ai.observers import SafeObserver, SessionObserver
from ai.tools import ToolContext, tools
from ai.transport import (
    AudioChunk,
    Closed,
    GeminiLiveTransport,
    InputTranscript,
    Interrupted,
    ModelTurnStarted,
    Opened,
    OutputTranscript,
    ServerEvent,
    ToolCall,
    Transport,
    TransportError,
    TurnComplete,
)
from config.session import SessionConfig
from core.errors import CaptureError, ConnectivityError, ProtocolAnomaly
from core.logging import log_info, logger
from interaction.audio_hal import OutputGraph
from interaction.capture import CapturePipeline
from interaction.microphone_hal import Microphone
from interaction.pcm import is_pcm_mime, parse_rate
from interaction.playback import PlaybackScheduler
from interaction.state import InteractionState, InteractionStateManager
from interaction.transcript import ConversationHistory, Direction, TranscriptAccumulator
from interaction.utils import OUTPUT_RATE
from interaction.wake_word import WakeGate
from services.generation import GenerationService, build_generation_service

TransportFactory = Callable[[SessionConfig], Transport]
OutputGraphFactory = Callable[[SessionConfig], OutputGraph]
MicrophoneFactory = Callable[[SessionConfig], Microphone]
GenerationFactory = Callable[[SessionConfig], GenerationService]


def default_transport_factory(config: SessionConfig) -> Transport:
    return GeminiLiveTransport(config, tools)


def default_output_graph_factory(config: SessionConfig) -> OutputGraph:
    from interaction.audio import PyAudioOutputGraph

    return PyAudioOutputGraph(asyncio.get_running_loop(), config.output_device_name)


def default_microphone_factory(config: SessionConfig) -> Microphone:
    from interaction.async_microphone import AsyncMicrophone

    return AsyncMicrophone(config.input_device_name)


class LiveSession:
    """Own one transport plus the audio pipeline and turn state around it.

    A single coordinating task consumes ``transport.events()`` in delivery
    order. The microphone is acquired only once the transport reports
    ``Opened``. Resources are released exactly once, whether the session is
    stopped explicitly or ends on its own.
    """

    def __init__(
        self,
        config: SessionConfig,
        observer: SessionObserver,
        *,
        transport: Transport,
        output_graph_factory: Callable[[], OutputGraph],
        microphone: Microphone,
        generation: GenerationService,
        is_current: Callable[[], bool] | None = None,
    ) -> None:
        self.config = config
        self.observer = SafeObserver(observer)
        self.transport = transport
        self._output_graph_factory = output_graph_factory
        self.is_current = is_current or (lambda: True)

        self.wake_gate = WakeGate(config.wake_word)
        self.state = InteractionStateManager(self.observer.on_status, self._resting_state)
        self.transcripts = TranscriptAccumulator()
        self.history = ConversationHistory()
        self.scheduler: PlaybackScheduler | None = None
        self.capture = CapturePipeline(microphone, transport.send_audio)
        self.dispatcher = ToolDispatcher(
            transport,
            ToolContext(
                generation=generation,
                state=self.state,
                observer=self.observer,
                history=self.history,
                is_current=self.is_current,
            ),
            is_current=self.is_current,
            allow_commands=self._commands_allowed,
        )

        self._task: asyncio.Task[None] | None = None
        self._released = False
        self._closed = asyncio.Event()

    def _resting_state(self) -> InteractionState:
        if self.wake_gate.enabled and not self.wake_gate.is_open:
            return InteractionState.WAITING_FOR_WAKE_WORD
        return InteractionState.LISTENING

    def _commands_allowed(self) -> bool:
        return not self.config.gate_tool_calls or self.wake_gate.is_open

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def start(self) -> None:
        """Acquire the output graph, open the transport and begin routing events.

        Failures are reported through the observer and leave the session in
        ``error`` with every resource released.
        """

        self.state.connecting()
        try:
            graph = self._output_graph_factory()
        except Exception as exc:
            await self._fail(f"Audio output unavailable: {exc}")
            return
        self.scheduler = PlaybackScheduler(
            graph,
            sample_rate=OUTPUT_RATE,
            on_drained=self._on_playback_drained,
        )

        try:
            await self.transport.open()
        except ConnectivityError as exc:
            await self._fail(f"Connection error: {exc}")
            return
        if self._released:
            logger.info("Live session stopped while connecting")
            return
        self._task = asyncio.create_task(self._run(), name="live-session")

    async def _run(self) -> None:
        try:
            async for event in self.transport.events():
                if self._released:
                    break
                if await self.handle_event(event):
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Live session event loop failed")
            await self._fail(f"Session failed: {exc}")

    async def handle_event(self, event: ServerEvent) -> bool:
        """Route one server event; return True once the session has ended."""

        if isinstance(event, Opened):
            self.state.transport_opened()
            log_info("Conversation started. Speak freely.", style="bold green")
            try:
                await self.capture.start()
            except CaptureError as exc:
                await self._fail(f"Microphone error: {exc}")
                return True
        elif isinstance(event, ModelTurnStarted):
            self.state.model_turn_started()
        elif isinstance(event, InputTranscript):
            self._on_user_partial(event.text)
        elif isinstance(event, OutputTranscript):
            running = self.transcripts.on_partial(Direction.ASSISTANT, event.text)
            self.observer.on_transcript(Direction.ASSISTANT, running, False)
        elif isinstance(event, AudioChunk):
            self._on_audio(event)
        elif isinstance(event, ToolCall):
            self.dispatcher.dispatch(event.invocations)
        elif isinstance(event, Interrupted):
            if self.scheduler is not None:
                self.scheduler.interrupt()
            self.state.interrupted()
        elif isinstance(event, TurnComplete):
            self._on_turn_complete()
        elif isinstance(event, TransportError):
            await self._fail(f"Connection error: {event.message}")
            return True
        elif isinstance(event, Closed):
            self.state.transport_closed()
            await self._release()
            return True
        else:
            logger.warning("%s", ProtocolAnomaly(f"Unhandled event {event!r}"))
        return False

    def _on_user_partial(self, text: str) -> None:
        running = self.transcripts.on_partial(Direction.USER, text)
        was_open = self.wake_gate.is_open
        visible = self.wake_gate.observe(running)
        if visible is None:
            logger.debug("Heard without wake word: %s", running)
            return
        if not was_open:
            log_info(f"👂 Wake word '{self.wake_gate.phrase}' detected.", style="bold yellow")
            self.state.wake_word_detected()
        self.observer.on_transcript(Direction.USER, visible, False)

    def _on_audio(self, event: AudioChunk) -> None:
        if not is_pcm_mime(event.mime_type):
            logger.warning("%s", ProtocolAnomaly(f"Unsupported audio format {event.mime_type!r}"))
            return
        rate = parse_rate(event.mime_type, OUTPUT_RATE)
        if rate != OUTPUT_RATE:
            logger.warning("Audio chunk at %s Hz played as %s Hz", rate, OUTPUT_RATE)
        if self.scheduler is not None:
            self.scheduler.enqueue(event.data)

    def _on_turn_complete(self) -> None:
        finals = self.transcripts.on_turn_complete()
        user_text = finals.get(Direction.USER)
        if user_text is not None:
            command = self.wake_gate.observe(user_text)
            if command is not None and command.strip():
                self.observer.on_transcript(Direction.USER, command.strip(), True)
                self.history.add_final(Direction.USER, command)
        assistant_text = finals.get(Direction.ASSISTANT)
        if assistant_text is not None:
            self.observer.on_transcript(Direction.ASSISTANT, assistant_text, True)
            self.history.add_final(Direction.ASSISTANT, assistant_text)
        self.history.end_turn()
        self.wake_gate.rearm()
        self.state.turn_completed()

    def _on_playback_drained(self) -> None:
        self.state.playback_drained()

    async def _fail(self, message: str) -> None:
        if self._released:
            return
        self.state.transport_failed(message)
        self.observer.on_error(message)
        await self._release()

    async def _release(self) -> None:
        """Close transport, stop capture, then silence and close playback."""

        if self._released:
            await self._closed.wait()
            return
        self._released = True
        try:
            await self.transport.close()
        finally:
            try:
                await self.capture.stop()
            finally:
                if self.scheduler is not None:
                    self.scheduler.close()
                self._closed.set()
                logger.info("Live session resources released")

    async def close(self) -> None:
        """Explicit stop: release everything and go ``idle``."""

        await self._release()
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.state.stopped()

    async def wait_closed(self) -> None:
        await self._closed.wait()


class SessionManager:
    """Keep at most one live session and replace it on every ``start``."""

    def __init__(
        self,
        config: SessionConfig,
        *,
        transport_factory: TransportFactory = default_transport_factory,
        output_graph_factory: OutputGraphFactory = default_output_graph_factory,
        microphone_factory: MicrophoneFactory = default_microphone_factory,
        generation_factory: GenerationFactory = build_generation_service,
    ) -> None:
        self.config = config
        self._transport_factory = transport_factory
        self._output_graph_factory = output_graph_factory
        self._microphone_factory = microphone_factory
        self._generation_factory = generation_factory
        self.generation = 0
        self.session: LiveSession | None = None
        self._start_lock = asyncio.Lock()

    @property
    def state(self) -> InteractionState:
        if self.session is None:
            return InteractionState.IDLE
        return self.session.state.state

    async def start(self, observer: SessionObserver) -> LiveSession:
        """Tear down any active session, then start a new one."""

        async with self._start_lock:
            await self.stop()
            self.generation += 1
            number = self.generation
            config = self.config

            session = LiveSession(
                config,
                observer,
                transport=self._transport_factory(config),
                output_graph_factory=lambda: self._output_graph_factory(config),
                microphone=self._microphone_factory(config),
                generation=self._generation_factory(config),
                is_current=lambda: self.generation == number,
            )
            self.session = session
            logger.info("Starting live session #%s", number)
            await session.start()
            return session

    async def stop(self) -> None:
        """Stop the active session; a no-op when none is active."""

        session, self.session = self.session, None
        if session is None:
            return
        self.generation += 1
        await session.close()
        logger.info("Live session stopped")
