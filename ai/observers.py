"""Outward observer interface for session events."""

from __future__ import annotations

from typing import Any, Sequence

from core.logging import log_error, log_info, log_tool_call, logger
from interaction.state import InteractionState
from interaction.transcript import Direction


class SessionObserver:
    """No-op base; presentation layers override what they display."""

    def on_status(self, state: InteractionState, message: str) -> None:
        pass

    def on_transcript(self, direction: Direction, text: str, is_final: bool) -> None:
        pass

    def on_tool_invocation(self, name: str, args: dict[str, Any]) -> None:
        pass

    def on_image_produced(self, uri: str, prompt: str) -> None:
        pass

    def on_grounding_sources(self, sources: Sequence[Any]) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class SafeObserver(SessionObserver):
    """Forward to another observer, logging anything it raises."""

    def __init__(self, inner: SessionObserver) -> None:
        self.inner = inner

    def _call(self, method: str, *args: Any) -> None:
        try:
            getattr(self.inner, method)(*args)
        except Exception:
            logger.exception("Observer %s.%s failed", type(self.inner).__name__, method)

    def on_status(self, state: InteractionState, message: str) -> None:
        self._call("on_status", state, message)

    def on_transcript(self, direction: Direction, text: str, is_final: bool) -> None:
        self._call("on_transcript", direction, text, is_final)

    def on_tool_invocation(self, name: str, args: dict[str, Any]) -> None:
        self._call("on_tool_invocation", name, args)

    def on_image_produced(self, uri: str, prompt: str) -> None:
        self._call("on_image_produced", uri, prompt)

    def on_grounding_sources(self, sources: Sequence[Any]) -> None:
        self._call("on_grounding_sources", sources)

    def on_error(self, message: str) -> None:
        self._call("on_error", message)


class LoggingObserver(SessionObserver):
    """Console presentation used by the command line entry point."""

    def on_status(self, state: InteractionState, message: str) -> None:
        log_info(f"[{state.value}] {message}", style="bold cyan")

    def on_transcript(self, direction: Direction, text: str, is_final: bool) -> None:
        if not is_final:
            logger.debug("%s (partial): %s", direction.value, text)
            return
        style = "bold green" if direction == Direction.USER else "bold magenta"
        log_info(f"{direction.value}: {text}", style=style)

    def on_tool_invocation(self, name: str, args: dict[str, Any]) -> None:
        log_tool_call(name, args, "dispatched")

    def on_image_produced(self, uri: str, prompt: str) -> None:
        log_info(f"🖼️ Image ready for {prompt!r} ({len(uri)} chars)", style="bold blue")

    def on_grounding_sources(self, sources: Sequence[Any]) -> None:
        for source in sources:
            log_info(f"🔗 {source.title}: {source.uri}", style="blue")

    def on_error(self, message: str) -> None:
        log_error(message)
