"""Logging utilities for live session events and setup summaries."""

from __future__ import annotations

import atexit
import hashlib
import logging
import logging.handlers
from pathlib import Path
import queue
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

console = Console()


def setup_logging() -> logging.Logger:
    logger = logging.getLogger("live_assistant")
    logger.setLevel(logging.INFO)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(rich_tracebacks=True, console=console)
        formatter = logging.Formatter("%(message)s", datefmt="[%X]")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


logger = setup_logging()

_queue_listener: logging.handlers.QueueListener | None = None
_queue_handlers: list[logging.Handler] = []
_file_log_path: Path | None = None
_atexit_registered = False


def _shutdown_file_logging() -> None:
    global _queue_listener

    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


def _remove_queue_handlers() -> None:
    for handler in _queue_handlers:
        for target_logger in (logging.getLogger(), logger):
            if handler in target_logger.handlers:
                target_logger.removeHandler(handler)
    _queue_handlers.clear()


def enable_file_logging(log_path: Path) -> None:
    """Enable background file logging to the supplied log path."""

    global _queue_listener, _file_log_path, _atexit_registered

    log_path = log_path.expanduser()
    if _file_log_path == log_path and _queue_listener is not None:
        return

    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None

    _remove_queue_handlers()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    file_handler.setFormatter(formatter)

    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.setLevel(logging.INFO)

    root_logger = logging.getLogger()
    root_logger.addHandler(queue_handler)
    logger.addHandler(queue_handler)
    _queue_handlers.append(queue_handler)

    _queue_listener = logging.handlers.QueueListener(
        log_queue,
        file_handler,
        respect_handler_level=True,
    )
    _queue_listener.start()

    _file_log_path = log_path

    if not _atexit_registered:
        atexit.register(_shutdown_file_logging)
        _atexit_registered = True


def _format_text(message: str, style: str) -> Text:
    return Text(message, style=style)


MESSAGE_EMOJIS = {
    "setup": "🛠️",
    "setupComplete": "🔌",
    "realtimeInput": "🎤",
    "serverContent": "📝",
    "toolCall": "📥",
    "toolCallCancellation": "⛔",
    "toolResponse": "📤",
    "goAway": "👋",
    "error": "❌",
}


def message_kind(message: dict[str, Any]) -> str:
    """Return the top-level kind of a Gemini Live wire message."""

    for key in message:
        if key in MESSAGE_EMOJIS:
            return key
    return next(iter(message), "unknown")


def _is_spammy(kind: str, message: dict[str, Any]) -> bool:
    if kind == "realtimeInput":
        return True
    if kind != "serverContent":
        return False
    content = message.get("serverContent") or {}
    # Audio-only model turns and transcript deltas arrive many times a second.
    return not (content.get("turnComplete") or content.get("interrupted"))


def log_ws_event(direction: str, message: dict[str, Any]) -> None:
    kind = message_kind(message)
    if _is_spammy(kind, message):
        return

    emoji = MESSAGE_EMOJIS.get(kind, "❓")
    icon = "⬆️ - Out" if direction == "Outgoing" else "⬇️ - In"
    style = "bold cyan" if direction == "Outgoing" else "bold green"
    logger.info(_format_text(f"{emoji} {icon} {kind}", style=style))


def log_tool_call(function_name: str, args: Any, result: Any) -> None:
    logger.info(_format_text(f"🛠️ Calling function: {function_name} with args: {args}", "bold magenta"))
    logger.info(_format_text(f"🛠️ Function call result: {result}", "bold yellow"))


def log_error(message: str) -> None:
    logger.error(_format_text(message, style="bold red"))


def log_info(message: str, style: str = "bold white") -> None:
    logger.info(_format_text(message, style=style))


def log_warning(message: str) -> None:
    logger.warning(_format_text(message, style="bold yellow"))


MAX_STR = 38
TOOL_NAME_CAP = 35


def _truncate_str(s: str, max_len: int = MAX_STR) -> str:
    if len(s) <= max_len:
        return s
    return s[: max_len - 1] + "…"


def _first_line(s: str, max_len: int = 160) -> str:
    if not s:
        return ""
    line = s.strip().splitlines()[0]
    return _truncate_str(line, max_len)


def _sha256(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def summarize_setup(message: dict[str, Any]) -> dict[str, Any]:
    """Extract the interesting fields of a Live API setup message."""

    setup = (message or {}).get("setup") or {}
    generation = setup.get("generationConfig") or {}
    speech = generation.get("speechConfig") or {}
    voice = ((speech.get("voiceConfig") or {}).get("prebuiltVoiceConfig") or {}).get("voiceName")

    instruction_parts = (setup.get("systemInstruction") or {}).get("parts") or []
    instructions = "".join(str(part.get("text", "")) for part in instruction_parts)

    tool_names: list[str] = []
    for tool in setup.get("tools") or []:
        for declaration in tool.get("functionDeclarations") or []:
            if declaration.get("name"):
                tool_names.append(declaration["name"])

    return {
        "model": setup.get("model"),
        "modalities": generation.get("responseModalities"),
        "voice": voice,
        "input_transcription": "inputAudioTranscription" in setup,
        "output_transcription": "outputAudioTranscription" in setup,
        "tools": {
            "count": len(tool_names),
            "names": tool_names[:TOOL_NAME_CAP]
            + (["…"] if len(tool_names) > TOOL_NAME_CAP else []),
        },
        "instructions_digest": {
            "len": len(instructions),
            "sha256": _sha256(instructions)[:12],
            "preview": _first_line(instructions),
        },
    }


def _headline(summary: dict[str, Any]) -> str:
    instr = summary.get("instructions_digest") or {}
    tools = summary.get("tools") or {}
    return (
        "SESSION_SETUP | "
        f"model={summary.get('model')} | "
        f"voice={summary.get('voice')} | "
        f"modalities={summary.get('modalities')} | "
        f"tools={tools.get('count')} ({', '.join(tools.get('names') or [])}) | "
        f"instr={instr.get('sha256')} ({instr.get('len')})"
    )


def log_setup_summary(message: dict[str, Any]) -> None:
    log_info(_headline(summarize_setup(message)), style="bold blue")
