"""Thin microphone HAL: the capture capability and an offline fake."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterator, Protocol

import numpy as np

from core.errors import CaptureError


class Microphone(Protocol):
    """Capture capability producing float frames at a fixed rate."""

    async def acquire(self) -> None:
        """Open the device; raise ``CaptureError`` when unavailable."""

    def frames(self) -> AsyncIterator[np.ndarray]:
        """Yield captured float32 frames in capture order."""

    def release(self) -> None:
        """Close the device."""


@dataclass
class FakeMicrophone:
    """Microphone fed by the caller for offline runs and tests."""

    can_open: bool = True
    acquired: bool = False
    released: bool = False
    _queue: "asyncio.Queue[np.ndarray | None]" = field(default_factory=asyncio.Queue)

    async def acquire(self) -> None:
        if not self.can_open:
            raise CaptureError("Failed to open fake input stream")
        self.acquired = True

    def push(self, frame: np.ndarray) -> None:
        self._queue.put_nowait(np.asarray(frame, dtype=np.float32))

    async def frames(self) -> AsyncIterator[np.ndarray]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    def release(self) -> None:
        self.released = True
        self._queue.put_nowait(None)
