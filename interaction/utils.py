"""Audio utility constants and device helpers."""

from __future__ import annotations

import importlib
import importlib.util


CHANNELS = 1
INPUT_RATE = 16000
OUTPUT_RATE = 24000
CHUNK = 4096


def require_pyaudio() -> object:
    """Import PyAudio or raise a readable error."""

    if importlib.util.find_spec("pyaudio") is None:
        raise RuntimeError("PyAudio is required for audio IO (pip install 'live-assistant[audio]')")

    return importlib.import_module("pyaudio")


def resolve_device_index(
    audio: object,
    device_name: str | None,
    *,
    require_input: bool = False,
    require_output: bool = False,
) -> int | None:
    """Resolve an audio device index by exact device name.

    Returns ``None`` when no name is configured so the host default is used.
    """

    if not device_name:
        return None

    get_count = getattr(audio, "get_device_count")
    get_info = getattr(audio, "get_device_info_by_index")
    for i in range(get_count()):
        info = get_info(i)
        if require_input and info.get("maxInputChannels", 0) <= 0:
            continue
        if require_output and info.get("maxOutputChannels", 0) <= 0:
            continue
        if info.get("name") == device_name:
            return int(info.get("index", i))

    raise RuntimeError(f"Audio device named '{device_name}' not found")


def log_devices(audio: object, logger: object, prefix: str, *, require_input: bool = False,
                require_output: bool = False) -> None:
    """Log the devices PyAudio can see, filtered by direction."""

    logger.info(
        "%s Listing audio devices (input=%s output=%s)",
        prefix,
        require_input,
        require_output,
    )
    for i in range(audio.get_device_count()):
        info = audio.get_device_info_by_index(i)
        if require_input and info.get("maxInputChannels", 0) <= 0:
            continue
        if require_output and info.get("maxOutputChannels", 0) <= 0:
            continue
        logger.info(
            "%s Device %s: %s | Input Channels: %s | Output Channels: %s",
            prefix,
            i,
            info.get("name"),
            info.get("maxInputChannels"),
            info.get("maxOutputChannels"),
        )
