"""Gapless playback scheduling for model audio."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from core.logging import logger
from interaction.audio_hal import OutputGraph
from interaction.pcm import decode_base64, pcm16_to_float
from interaction.utils import CHANNELS, OUTPUT_RATE


@dataclass(eq=False)
class PlaybackUnit:
    """Decoded output buffer plus its scheduled start time."""

    samples: np.ndarray
    sample_rate: int
    start_time: float = 0.0

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[-1])

    @property
    def duration(self) -> float:
        return self.frame_count / float(self.sample_rate)

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


class PlaybackScheduler:
    """Schedule decoded chunks back-to-back on the output clock.

    ``next_start_time`` only moves forward between interruptions, so chunks
    arriving in order are played without gaps even if decoding one of them
    runs late. Every scheduled unit stays in ``in_flight`` until it ends
    naturally or ``interrupt`` stops it.
    """

    def __init__(
        self,
        graph: OutputGraph,
        *,
        sample_rate: int = OUTPUT_RATE,
        channels: int = CHANNELS,
        on_drained: Callable[[], None] | None = None,
    ) -> None:
        self.graph = graph
        self.sample_rate = sample_rate
        self.channels = channels
        self.on_drained = on_drained
        self.next_start_time = 0.0
        self._in_flight: set[PlaybackUnit] = set()

    @property
    def in_flight(self) -> frozenset[PlaybackUnit]:
        return frozenset(self._in_flight)

    @property
    def is_playing(self) -> bool:
        return bool(self._in_flight)

    def enqueue(self, chunk: bytes | str) -> PlaybackUnit:
        """Decode a PCM16 chunk (raw or base64) and schedule it."""

        data = decode_base64(chunk) if isinstance(chunk, str) else chunk
        unit = PlaybackUnit(
            samples=pcm16_to_float(data, self.channels),
            sample_rate=self.sample_rate,
        )
        self.next_start_time = max(self.next_start_time, self.graph.current_time)
        unit.start_time = self.next_start_time
        self.next_start_time += unit.duration
        self._in_flight.add(unit)
        self.graph.schedule(unit, self._on_unit_ended)
        return unit

    def interrupt(self) -> int:
        """Stop every in-flight unit and reset the clock; return how many stopped."""

        stopped = list(self._in_flight)
        self._in_flight.clear()
        for unit in stopped:
            self.graph.stop(unit)
        self.next_start_time = 0.0
        if stopped:
            logger.info("Playback interrupted: stopped %s buffered chunks", len(stopped))
        return len(stopped)

    def close(self) -> None:
        self.interrupt()
        self.graph.close()

    def _on_unit_ended(self, unit: PlaybackUnit) -> None:
        if unit not in self._in_flight:
            return
        self._in_flight.discard(unit)
        if not self._in_flight and self.on_drained is not None:
            self.on_drained()
