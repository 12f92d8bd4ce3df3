"""Wake-word gate over the running user transcript."""

from __future__ import annotations

import string

_LEADING_NOISE = string.whitespace + string.punctuation


class WakeGate:
    """Hold back user commands until the wake phrase is heard.

    An empty phrase disables gating: the gate is always open and every
    transcript is surfaced unchanged. Otherwise the gate opens on the first
    case-insensitive match within a turn and stays open until ``rearm``.
    """

    def __init__(self, phrase: str | None = None) -> None:
        self.phrase = (phrase or "").strip()
        self._open = False

    @property
    def enabled(self) -> bool:
        return bool(self.phrase)

    @property
    def is_open(self) -> bool:
        return not self.enabled or self._open

    def observe(self, running_text: str) -> str | None:
        """Return the visible command for ``running_text``, or None while armed."""

        if not self.enabled:
            return running_text
        index = running_text.lower().find(self.phrase.lower())
        if index < 0:
            # Once open, a transcript without the phrase is still a command.
            return running_text if self._open else None
        self._open = True
        return running_text[index + len(self.phrase) :].lstrip(_LEADING_NOISE)

    def rearm(self) -> None:
        self._open = False
