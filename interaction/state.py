"""Turn and interruption state machine."""

from __future__ import annotations

from enum import Enum
import time
from typing import Callable

from core.logging import logger

StatusHandler = Callable[["InteractionState", str], None]


class InteractionState(str, Enum):
    """Supported interaction states for the live session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    WAITING_FOR_WAKE_WORD = "waiting_for_wake_word"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"
    ERROR = "error"


STATUS_MESSAGES: dict[InteractionState, str] = {
    InteractionState.IDLE: "Session closed.",
    InteractionState.CONNECTING: "Initializing Jarvis...",
    InteractionState.WAITING_FOR_WAKE_WORD: "Waiting for wake word...",
    InteractionState.LISTENING: "Listening...",
    InteractionState.THINKING: "Thinking...",
    InteractionState.SPEAKING: "Speaking...",
    InteractionState.ERROR: "Connection error.",
}


class InteractionStateManager:
    """Track session state transitions and notify the status handler.

    ``resting_state`` is consulted whenever a turn ends, playback drains or
    the model is interrupted, so wake-word gating decides between
    ``waiting_for_wake_word`` and ``listening``. ``error`` only clears on an
    explicit ``stopped`` or ``connecting``.
    """

    def __init__(
        self,
        status_handler: StatusHandler | None = None,
        resting_state: Callable[[], InteractionState] | None = None,
    ) -> None:
        self.state = InteractionState.IDLE
        self.message = STATUS_MESSAGES[InteractionState.IDLE]
        self._status_handler = status_handler
        self._resting_state = resting_state or (lambda: InteractionState.LISTENING)
        self._last_transition = time.monotonic()

    def set_status_handler(self, handler: StatusHandler | None) -> None:
        self._status_handler = handler

    @property
    def resting(self) -> InteractionState:
        return self._resting_state()

    @property
    def seconds_in_state(self) -> float:
        return time.monotonic() - self._last_transition

    def update_state(
        self,
        new_state: InteractionState,
        reason: str = "",
        message: str | None = None,
    ) -> bool:
        message = message or STATUS_MESSAGES[new_state]
        if new_state == self.state and message == self.message:
            return False

        last_state = self.state
        self.state = new_state
        self.message = message
        if last_state != new_state:
            self._last_transition = time.monotonic()
            logger.info(
                "Interaction state transition: %s -> %s%s",
                last_state.value,
                new_state.value,
                f" ({reason})" if reason else "",
            )
        if self._status_handler is not None:
            try:
                self._status_handler(new_state, message)
            except Exception:
                logger.exception("Status handler failed for state %s", new_state.value)
        return True

    def _settle(self, reason: str) -> bool:
        if self.state in (InteractionState.ERROR, InteractionState.IDLE):
            return False
        return self.update_state(self.resting, reason)

    def connecting(self) -> bool:
        return self.update_state(InteractionState.CONNECTING, "session start")

    def transport_opened(self) -> bool:
        if self.state != InteractionState.CONNECTING:
            return False
        return self.update_state(self.resting, "transport open")

    def model_turn_started(self) -> bool:
        if self.state in (InteractionState.ERROR, InteractionState.IDLE):
            return False
        return self.update_state(InteractionState.SPEAKING, "model turn")

    def tool_work_started(self, message: str) -> bool:
        if self.state in (InteractionState.ERROR, InteractionState.IDLE):
            return False
        return self.update_state(InteractionState.THINKING, "tool call", message)

    def turn_completed(self) -> bool:
        return self._settle("turn complete")

    def playback_drained(self) -> bool:
        if self.state != InteractionState.SPEAKING:
            return False
        return self._settle("playback drained")

    def interrupted(self) -> bool:
        return self._settle("interrupted")

    def wake_word_detected(self) -> bool:
        if self.state != InteractionState.WAITING_FOR_WAKE_WORD:
            return False
        return self.update_state(InteractionState.LISTENING, "wake word")

    def transport_failed(self, message: str) -> bool:
        return self.update_state(InteractionState.ERROR, "transport error", message)

    def stopped(self) -> bool:
        return self.update_state(InteractionState.IDLE, "stop")

    def transport_closed(self) -> bool:
        if self.state in (InteractionState.ERROR, InteractionState.IDLE):
            return False
        return self.update_state(InteractionState.IDLE, "transport closed")
