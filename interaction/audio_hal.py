"""Thin audio output HAL: the playback capability and an offline fake."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from interaction.playback import PlaybackUnit

EndedCallback = Callable[["PlaybackUnit"], None]


class OutputGraph(Protocol):
    """Output sink that plays scheduled units against a shared clock."""

    @property
    def current_time(self) -> float:
        """Return the output clock in seconds."""

    def schedule(self, unit: "PlaybackUnit", on_ended: EndedCallback) -> None:
        """Start ``unit`` at ``unit.start_time`` and report its natural end."""

    def stop(self, unit: "PlaybackUnit") -> None:
        """Stop ``unit`` immediately without reporting an end."""

    def close(self) -> None:
        """Release the output device."""


@dataclass
class FakeOutputGraph:
    """Output graph with a manually advanced clock for offline runs and tests."""

    clock: float = 0.0
    scheduled: list["PlaybackUnit"] = field(default_factory=list)
    stopped: list["PlaybackUnit"] = field(default_factory=list)
    closed: bool = False
    _active: dict[int, tuple["PlaybackUnit", EndedCallback]] = field(default_factory=dict)

    @property
    def current_time(self) -> float:
        return self.clock

    def schedule(self, unit: "PlaybackUnit", on_ended: EndedCallback) -> None:
        self.scheduled.append(unit)
        self._active[id(unit)] = (unit, on_ended)

    def stop(self, unit: "PlaybackUnit") -> None:
        if self._active.pop(id(unit), None) is not None:
            self.stopped.append(unit)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, ending every unit that finishes by then."""

        self.clock += seconds
        finished = [
            entry for entry in self._active.values() if entry[0].end_time <= self.clock + 1e-9
        ]
        finished.sort(key=lambda entry: entry[0].end_time)
        for unit, on_ended in finished:
            self._active.pop(id(unit), None)
            on_ended(unit)

    def close(self) -> None:
        self._active.clear()
        self.closed = True
