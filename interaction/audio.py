"""PyAudio output graph with a continuously running playback clock."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING

import numpy as np

from core.logging import logger
from interaction.audio_hal import EndedCallback
from interaction.pcm import float_to_pcm16
from interaction.utils import CHANNELS, OUTPUT_RATE, log_devices, require_pyaudio, resolve_device_index

if TYPE_CHECKING:
    from interaction.playback import PlaybackUnit


FRAMES_PER_BUFFER = 1024


class PyAudioOutputGraph:
    """Render scheduled units into a blocking PyAudio stream from a worker thread.

    The worker writes one block at a time, mixing every unit that overlaps the
    block and writing silence otherwise, so ``current_time`` advances with the
    device like a hardware audio clock. End notifications are posted to the
    owning event loop.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        output_device_name: str | None = None,
        sample_rate: int = OUTPUT_RATE,
    ) -> None:
        pyaudio = require_pyaudio()
        self._loop = loop
        self.sample_rate = sample_rate
        self.p = pyaudio.PyAudio()

        output_device_index = resolve_device_index(
            self.p,
            output_device_name,
            require_output=True,
        )
        try:
            if output_device_index is None:
                info = self.p.get_default_output_device_info()
            else:
                info = self.p.get_device_info_by_index(output_device_index)
            logger.info(
                "[AUDIO] Output device (selected): %s idx=%s defaultRate=%s",
                info.get("name"),
                info.get("index"),
                info.get("defaultSampleRate"),
            )
        except Exception:
            logger.info("[AUDIO] Output device selected: %s", output_device_name or "default")

        try:
            self.stream = self.p.open(
                format=pyaudio.paInt16,
                channels=CHANNELS,
                rate=sample_rate,
                output=True,
                output_device_index=output_device_index,
                frames_per_buffer=FRAMES_PER_BUFFER,
                start=True,
            )
        except Exception as exc:
            log_devices(self.p, logger, "[AUDIO]", require_output=True)
            self.p.terminate()
            raise RuntimeError(
                f"Failed to open output audio device '{output_device_name or 'default'}'"
            ) from exc

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._frames_rendered = 0
        self._units: dict[int, tuple["PlaybackUnit", EndedCallback]] = {}

        self._t = threading.Thread(target=self._worker, name="audio-output", daemon=True)
        self._t.start()

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self.sample_rate

    def schedule(self, unit: "PlaybackUnit", on_ended: EndedCallback) -> None:
        with self._lock:
            self._units[id(unit)] = (unit, on_ended)

    def stop(self, unit: "PlaybackUnit") -> None:
        with self._lock:
            self._units.pop(id(unit), None)

    def _render_block(self) -> tuple[np.ndarray, list[tuple["PlaybackUnit", EndedCallback]]]:
        block = np.zeros(FRAMES_PER_BUFFER, dtype=np.float32)
        finished: list[tuple["PlaybackUnit", EndedCallback]] = []
        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + FRAMES_PER_BUFFER
            for key, (unit, on_ended) in list(self._units.items()):
                unit_start = int(round(unit.start_time * self.sample_rate))
                unit_end = unit_start + unit.frame_count
                lo = max(block_start, unit_start)
                hi = min(block_end, unit_end)
                if hi > lo:
                    # Mono output: mix every channel of the unit down.
                    segment = unit.samples[:, lo - unit_start : hi - unit_start].mean(axis=0)
                    block[lo - block_start : hi - block_start] += segment
                if unit_end <= block_end:
                    finished.append((unit, on_ended))
                    del self._units[key]
            self._frames_rendered = block_end
        return block, finished

    def _worker(self) -> None:
        try:
            while not self._stop.is_set():
                block, finished = self._render_block()
                self.stream.write(float_to_pcm16(block))
                for unit, on_ended in finished:
                    if not self._loop.is_closed():
                        self._loop.call_soon_threadsafe(on_ended, unit)
        except Exception:
            logger.exception("Audio output worker crashed")

    def close(self) -> None:
        """Stop the render thread and release the device."""

        self._stop.set()
        self._t.join(timeout=1.0)
        with self._lock:
            self._units.clear()
            self._frames_rendered = 0
        try:
            self.stream.stop_stream()
            self.stream.close()
        finally:
            self.p.terminate()
