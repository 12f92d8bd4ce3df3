"""Tests for the turn and interruption state machine."""

from __future__ import annotations

from interaction.state import InteractionState, InteractionStateManager


def _manager(resting: InteractionState = InteractionState.LISTENING):
    statuses: list[tuple[InteractionState, str]] = []
    manager = InteractionStateManager(
        lambda state, message: statuses.append((state, message)),
        lambda: resting,
    )
    return manager, statuses


def test_open_moves_connecting_to_resting_state() -> None:
    manager, statuses = _manager(InteractionState.WAITING_FOR_WAKE_WORD)

    manager.connecting()
    manager.transport_opened()

    assert manager.state is InteractionState.WAITING_FOR_WAKE_WORD
    assert [state for state, _ in statuses] == [
        InteractionState.CONNECTING,
        InteractionState.WAITING_FOR_WAKE_WORD,
    ]


def test_turn_cycle_returns_to_listening() -> None:
    manager, statuses = _manager()
    manager.connecting()
    manager.transport_opened()

    manager.tool_work_started("Generating image: a cat")
    manager.model_turn_started()
    manager.turn_completed()

    assert statuses[-3:] == [
        (InteractionState.THINKING, "Generating image: a cat"),
        (InteractionState.SPEAKING, "Speaking..."),
        (InteractionState.LISTENING, "Listening..."),
    ]


def test_playback_drained_only_leaves_speaking() -> None:
    manager, _ = _manager()
    manager.connecting()
    manager.transport_opened()

    assert manager.playback_drained() is False
    manager.model_turn_started()
    assert manager.playback_drained() is True
    assert manager.state is InteractionState.LISTENING


def test_error_is_terminal_until_stop_or_restart() -> None:
    manager, statuses = _manager()
    manager.connecting()
    manager.transport_opened()

    manager.transport_failed("Connection error: boom")
    manager.model_turn_started()
    manager.turn_completed()
    manager.interrupted()
    manager.transport_closed()

    assert manager.state is InteractionState.ERROR
    assert statuses[-1] == (InteractionState.ERROR, "Connection error: boom")

    manager.stopped()
    assert manager.state is InteractionState.IDLE


def test_wake_word_detected_only_from_waiting() -> None:
    manager, _ = _manager(InteractionState.WAITING_FOR_WAKE_WORD)
    manager.connecting()
    manager.transport_opened()

    assert manager.wake_word_detected() is True
    assert manager.state is InteractionState.LISTENING
    assert manager.wake_word_detected() is False


def test_repeated_state_is_not_renotified() -> None:
    manager, statuses = _manager()
    manager.connecting()
    manager.transport_opened()
    manager.model_turn_started()
    manager.model_turn_started()

    assert [state for state, _ in statuses].count(InteractionState.SPEAKING) == 1


def test_status_handler_errors_are_contained() -> None:
    def _broken(state: InteractionState, message: str) -> None:
        raise ValueError("ui exploded")

    manager = InteractionStateManager(_broken)

    assert manager.connecting() is True
    assert manager.state is InteractionState.CONNECTING
