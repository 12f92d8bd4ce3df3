"""Async microphone input helper."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator

import numpy as np

from core.errors import CaptureError
from core.logging import logger
from interaction.utils import CHANNELS, CHUNK, INPUT_RATE, log_devices, require_pyaudio, resolve_device_index


class AsyncMicrophone:
    """PyAudio float32 capture whose device callback feeds the event loop."""

    def __init__(
        self,
        input_device_name: str | None = None,
        *,
        rate: int = INPUT_RATE,
        frames_per_buffer: int = CHUNK,
        max_queued_frames: int = 50,
    ) -> None:
        self.input_device_name = input_device_name
        self.rate = rate
        self.frames_per_buffer = frames_per_buffer
        self._queue: asyncio.Queue[np.ndarray | None] = asyncio.Queue(maxsize=max_queued_frames)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pa_continue: int | None = None
        self.p: Any = None
        self.stream: Any = None
        self.is_recording = False

    async def acquire(self) -> None:
        """Open the input device in a worker thread."""

        self._loop = asyncio.get_running_loop()
        try:
            await asyncio.to_thread(self._open)
        except CaptureError:
            raise
        except Exception as exc:
            raise CaptureError(f"Microphone unavailable: {exc}") from exc
        self.is_recording = True
        logger.info("Started recording")

    def _open(self) -> None:
        try:
            pyaudio = require_pyaudio()
        except RuntimeError as exc:
            raise CaptureError(str(exc)) from exc

        self._pa_continue = pyaudio.paContinue
        self.p = pyaudio.PyAudio()
        try:
            input_device_index = resolve_device_index(
                self.p,
                self.input_device_name,
                require_input=True,
            )
            self.stream = self.p.open(
                format=pyaudio.paFloat32,
                channels=CHANNELS,
                rate=self.rate,
                input=True,
                input_device_index=input_device_index,
                frames_per_buffer=self.frames_per_buffer,
                stream_callback=self.callback,
            )
        except Exception as exc:
            log_devices(self.p, logger, "[ASYNC MIC]", require_input=True)
            self.p.terminate()
            self.p = None
            raise CaptureError(
                f"Failed to open input audio device '{self.input_device_name or 'default'}'"
            ) from exc
        logger.info(
            "[ASYNC MIC] Input opened: %s @ %s Hz, %s samples per frame",
            self.input_device_name or "default",
            self.rate,
            self.frames_per_buffer,
        )

    def callback(
        self,
        in_data: bytes,
        frame_count: int,
        time_info: dict[str, Any],
        status: int,
    ) -> tuple[None, int]:
        """Callback for the PyAudio stream, invoked on the PortAudio thread."""

        if self.is_recording and self._loop is not None and not self._loop.is_closed():
            frame = np.frombuffer(in_data, dtype=np.float32).copy()
            self._loop.call_soon_threadsafe(self._put_frame, frame)
        return (None, self._pa_continue)

    def _put_frame(self, frame: np.ndarray) -> None:
        if self._queue.full():
            # Keep the newest audio when the sender falls behind.
            self._queue.get_nowait()
        self._queue.put_nowait(frame)

    async def frames(self) -> AsyncIterator[np.ndarray]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    def release(self) -> None:
        """Close the audio stream and wake any pending reader."""

        self.is_recording = False
        if self.stream is not None:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None
        if self.p is not None:
            self.p.terminate()
            self.p = None
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)
        logger.info("AsyncMicrophone closed")
