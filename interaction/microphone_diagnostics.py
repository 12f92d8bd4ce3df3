"""Diagnostics routines for audio input."""

from __future__ import annotations

import importlib.util
from typing import Any

from config.session import SessionConfig
from core.logging import logger
from diagnostics.models import DiagnosticResult, DiagnosticStatus
from interaction.utils import CHANNELS, CHUNK, INPUT_RATE, log_devices, require_pyaudio, resolve_device_index


def probe(
    pyaudio_module: Any | None = None,
    device_name: str | None = None,
) -> DiagnosticResult:
    """Open the configured microphone at the capture rate without starting it.

    Args:
        pyaudio_module: Optional PyAudio stand-in for offline testing.
        device_name: Device to probe; defaults to the configured input device.

    Returns:
        Diagnostic result indicating audio input readiness.
    """

    name = "audio_input"
    if pyaudio_module is None:
        if importlib.util.find_spec("pyaudio") is None:
            return DiagnosticResult(
                name=name,
                status=DiagnosticStatus.FAIL,
                details="PyAudio is not installed",
            )
        pyaudio_module = require_pyaudio()
    if device_name is None:
        device_name = SessionConfig.from_config().input_device_name

    audio = pyaudio_module.PyAudio()
    try:
        input_device_index = resolve_device_index(audio, device_name, require_input=True)
        if input_device_index is None:
            device_info = audio.get_default_input_device_info()
        else:
            device_info = audio.get_device_info_by_index(input_device_index)
        stream = audio.open(
            format=pyaudio_module.paFloat32,
            channels=CHANNELS,
            rate=INPUT_RATE,
            input=True,
            input_device_index=input_device_index,
            frames_per_buffer=CHUNK,
            start=False,
        )
        stream.close()
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        log_devices(audio, logger, "[MIC DIAG]", require_input=True)
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Audio input probe failed: {exc}",
        )
    finally:
        audio.terminate()

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Input device: {device_info.get('name')} @ {INPUT_RATE} Hz",
    )
