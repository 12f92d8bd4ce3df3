"""Capture pipeline: microphone frames to transport audio blobs."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from core.logging import logger
from interaction.microphone_hal import Microphone
from interaction.pcm import PCMBlob, create_blob
from interaction.utils import INPUT_RATE

AudioSink = Callable[[PCMBlob], Awaitable[None]]


class CapturePipeline:
    """Forward every captured frame, in order, to the outbound audio sink."""

    def __init__(self, microphone: Microphone, send_audio: AudioSink, *, rate: int = INPUT_RATE) -> None:
        self.microphone = microphone
        self.send_audio = send_audio
        self.rate = rate
        self.frames_sent = 0
        self._task: asyncio.Task[None] | None = None
        self._acquired = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Acquire the microphone and start forwarding frames.

        Raises:
            CaptureError: The microphone could not be opened. Nothing is left running.
        """

        if self._task is not None:
            return
        await self.microphone.acquire()
        self._acquired = True
        self._task = asyncio.create_task(self._pump(), name="capture-pipeline")
        self._task.add_done_callback(self._on_pump_done)

    async def _pump(self) -> None:
        async for frame in self.microphone.frames():
            await self.send_audio(create_blob(frame, self.rate))
            self.frames_sent += 1

    def _on_pump_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Capture pipeline stopped after %s frames", self.frames_sent, exc_info=exc)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Capture pipeline failed while stopping")
        if self._acquired:
            self._acquired = False
            self.microphone.release()
            logger.info("Capture stopped after %s frames", self.frames_sent)
