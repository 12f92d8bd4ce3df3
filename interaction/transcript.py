"""Incremental transcripts and the in-memory conversation history."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Direction(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TranscriptAccumulator:
    """Per-direction running transcript for the current turn."""

    def __init__(self) -> None:
        self._buffers: dict[Direction, list[str]] = {direction: [] for direction in Direction}

    def running_text(self, direction: Direction) -> str:
        return "".join(self._buffers[direction])

    def on_partial(self, direction: Direction, delta: str) -> str:
        """Append ``delta`` and return the running text for ``direction``."""

        self._buffers[direction].append(delta)
        return self.running_text(direction)

    def on_turn_complete(self) -> dict[Direction, str]:
        """Return the non-empty trimmed finals and clear both buffers."""

        finals: dict[Direction, str] = {}
        for direction in Direction:
            text = self.running_text(direction).strip()
            if text:
                finals[direction] = text
            self._buffers[direction].clear()
        return finals

    def clear(self) -> None:
        for buffer in self._buffers.values():
            buffer.clear()


@dataclass(frozen=True)
class ChatMessage:
    role: str
    text: str
    image_url: str | None = None
    sources: tuple[Any, ...] = ()


@dataclass
class ConversationHistory:
    """Session-scoped chat log; never persisted.

    Grounding sources arrive while the answer is still being spoken, so they
    are held until the assistant entry of the same turn is finalized.
    """

    messages: list[ChatMessage] = field(default_factory=list)
    pending_sources: list[Any] = field(default_factory=list)

    def add_final(self, direction: Direction, text: str) -> ChatMessage | None:
        text = text.strip()
        if not text:
            return None
        sources: tuple[Any, ...] = ()
        if direction == Direction.ASSISTANT:
            sources = tuple(self.pending_sources)
            self.pending_sources.clear()
        message = ChatMessage(role=direction.value, text=text, sources=sources)
        self.messages.append(message)
        return message

    def add_image(self, prompt: str, image_url: str) -> ChatMessage:
        message = ChatMessage(
            role=Direction.ASSISTANT.value,
            text=f'Here is your image of: "{prompt}"',
            image_url=image_url,
        )
        self.messages.append(message)
        return message

    def add_sources(self, sources: list[Any]) -> None:
        self.pending_sources.extend(sources)

    def end_turn(self) -> ChatMessage | None:
        """Keep sources whose turn produced no spoken answer."""

        if not self.pending_sources:
            return None
        message = ChatMessage(
            role=Direction.ASSISTANT.value,
            text="Sources",
            sources=tuple(self.pending_sources),
        )
        self.pending_sources.clear()
        self.messages.append(message)
        return message

    def __len__(self) -> int:
        return len(self.messages)
