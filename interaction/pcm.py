"""PCM16 conversion between float samples, little-endian bytes and base64 text."""

from __future__ import annotations

import base64
from dataclasses import dataclass
import re

import numpy as np

from core.logging import logger
from interaction.utils import INPUT_RATE

PCM_MIME_PREFIX = "audio/pcm"
INT16_SCALE = 32768.0
# Largest float that still maps onto int16 after scaling.
FLOAT_MAX = 32767.0 / INT16_SCALE

_RATE_RE = re.compile(r"rate=(\d+)")


def pcm_mime_type(rate: int) -> str:
    return f"{PCM_MIME_PREFIX};rate={rate}"


def parse_rate(mime_type: str | None, default: int | None = None) -> int | None:
    """Return the sample rate carried by a ``audio/pcm;rate=N`` descriptor."""

    if not mime_type:
        return default
    match = _RATE_RE.search(mime_type)
    return int(match.group(1)) if match else default


def is_pcm_mime(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.lower().startswith(PCM_MIME_PREFIX)


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Convert float samples in [-1, 1] to little-endian int16 bytes.

    Out-of-range samples are clamped before scaling; in-range samples are
    truncated toward zero.
    """

    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, FLOAT_MAX)
    return (clipped * INT16_SCALE).astype("<i2").tobytes()


def pcm16_to_float(data: bytes, channels: int = 1) -> np.ndarray:
    """Decode interleaved int16 bytes into a ``(channels, frames)`` float array."""

    if len(data) % 2 != 0:
        logger.warning("Dropping trailing odd byte from %s-byte PCM chunk", len(data))
        data = data[: len(data) - 1]

    samples = np.frombuffer(data, dtype="<i2").astype(np.float32) / INT16_SCALE
    frame_count = len(samples) // channels
    if frame_count * channels != len(samples):
        logger.warning("Dropping %s samples of an incomplete frame", len(samples) - frame_count * channels)
        samples = samples[: frame_count * channels]
    return samples.reshape(frame_count, channels).T.copy()


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(text: str) -> bytes:
    return base64.b64decode(text)


@dataclass(frozen=True)
class PCMBlob:
    """Transport-encoded audio chunk."""

    data: str
    mime_type: str

    def to_payload(self) -> dict[str, str]:
        return {"data": self.data, "mimeType": self.mime_type}


def create_blob(samples: np.ndarray, rate: int = INPUT_RATE) -> PCMBlob:
    """Pack one captured frame into a transport blob."""

    return PCMBlob(data=encode_base64(float_to_pcm16(samples)), mime_type=pcm_mime_type(rate))
