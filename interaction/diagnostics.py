"""Diagnostics routines for audio output."""

from __future__ import annotations

import importlib.util
from typing import Any

from config.session import SessionConfig
from core.logging import logger
from diagnostics.models import DiagnosticResult, DiagnosticStatus
from interaction.audio import FRAMES_PER_BUFFER
from interaction.utils import CHANNELS, OUTPUT_RATE, log_devices, require_pyaudio, resolve_device_index


def probe(
    pyaudio_module: Any | None = None,
    device_name: str | None = None,
) -> DiagnosticResult:
    """Open the configured output device at the playback rate without starting it.

    Args:
        pyaudio_module: Optional PyAudio stand-in for offline testing.
        device_name: Device to probe; defaults to the configured output device.

    Returns:
        Diagnostic result indicating audio output readiness.
    """

    name = "audio_output"
    if pyaudio_module is None:
        if importlib.util.find_spec("pyaudio") is None:
            return DiagnosticResult(
                name=name,
                status=DiagnosticStatus.FAIL,
                details="PyAudio is not installed",
            )
        pyaudio_module = require_pyaudio()
    if device_name is None:
        device_name = SessionConfig.from_config().output_device_name

    audio = pyaudio_module.PyAudio()
    try:
        output_device_index = resolve_device_index(audio, device_name, require_output=True)
        if output_device_index is None:
            device_info = audio.get_default_output_device_info()
        else:
            device_info = audio.get_device_info_by_index(output_device_index)
        stream = audio.open(
            format=pyaudio_module.paInt16,
            channels=CHANNELS,
            rate=OUTPUT_RATE,
            output=True,
            output_device_index=output_device_index,
            frames_per_buffer=FRAMES_PER_BUFFER,
            start=False,
        )
        stream.close()
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        log_devices(audio, logger, "[AUDIO DIAG]", require_output=True)
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Audio output probe failed: {exc}",
        )
    finally:
        audio.terminate()

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Output device: {device_info.get('name')} @ {OUTPUT_RATE} Hz",
    )
