"""Per-session configuration resolved from YAML settings and the environment."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Any

from config.controller import (
    DEFAULT_IMAGE_MODEL,
    DEFAULT_LIVE_MODEL,
    DEFAULT_SYSTEM_INSTRUCTION,
    DEFAULT_TEXT_MODEL,
    DEFAULT_VOICE_NAME,
    ConfigController,
)

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")


def resolve_api_key() -> str | None:
    """Return the first API credential found in the environment."""

    for name in API_KEY_ENV_VARS:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


@dataclass(frozen=True)
class SessionConfig:
    """Immutable settings for one live session.

    Attributes:
        api_key: Opaque credential for the remote model.
        wake_word: Trigger phrase; empty disables gating.
        gate_tool_calls: Reject tool invocations while the wake gate is armed.
        live_model: Model used for the duplex audio session.
        voice_name: Prebuilt voice for synthesized speech.
        system_instruction: Persona prompt sent at setup.
        image_model: Model used by image generation.
        text_model: Model used by story generation.
        search_model: Model used by search-grounded generation.
        generation_timeout_s: Timeout for each auxiliary request.
        input_device_name: Microphone device, ``None`` for the default.
        output_device_name: Speaker device, ``None`` for the default.
    """

    api_key: str | None = None
    wake_word: str = ""
    gate_tool_calls: bool = True
    live_model: str = DEFAULT_LIVE_MODEL
    voice_name: str = DEFAULT_VOICE_NAME
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    image_model: str = DEFAULT_IMAGE_MODEL
    text_model: str = DEFAULT_TEXT_MODEL
    search_model: str = DEFAULT_TEXT_MODEL
    generation_timeout_s: float = 60.0
    input_device_name: str | None = None
    output_device_name: str | None = None

    @property
    def wake_word_enabled(self) -> bool:
        return bool(self.wake_word.strip())

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any] | None = None,
        *,
        wake_word: str | None = None,
    ) -> "SessionConfig":
        if config is None:
            config = ConfigController.get_instance().get_config()
        wake_cfg = config.get("wake_word") or {}
        live_cfg = config.get("live") or {}
        generation_cfg = config.get("generation") or {}
        audio_cfg = config.get("audio") or {}
        input_cfg = audio_cfg.get("input") or {}
        output_cfg = audio_cfg.get("output") or {}
        phrase = wake_word if wake_word is not None else wake_cfg.get("phrase", "")
        return cls(
            api_key=resolve_api_key(),
            wake_word=str(phrase or "").strip(),
            gate_tool_calls=bool(wake_cfg.get("gate_tool_calls", True)),
            live_model=str(live_cfg.get("model") or DEFAULT_LIVE_MODEL),
            voice_name=str(live_cfg.get("voice_name") or DEFAULT_VOICE_NAME),
            system_instruction=str(live_cfg.get("system_instruction") or DEFAULT_SYSTEM_INSTRUCTION),
            image_model=str(generation_cfg.get("image_model") or DEFAULT_IMAGE_MODEL),
            text_model=str(generation_cfg.get("text_model") or DEFAULT_TEXT_MODEL),
            search_model=str(generation_cfg.get("search_model") or DEFAULT_TEXT_MODEL),
            generation_timeout_s=float(generation_cfg.get("timeout_s", 60.0)),
            input_device_name=input_cfg.get("device_name") or None,
            output_device_name=output_cfg.get("device_name") or None,
        )
