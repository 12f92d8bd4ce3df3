"""Configuration controller for YAML-based settings."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR_ENV = "LIVE_ASSISTANT_CONFIG_DIR"

DEFAULT_LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"
DEFAULT_VOICE_NAME = "Puck"
DEFAULT_SYSTEM_INSTRUCTION = (
    "You are Jarvis, a sophisticated AI assistant. Your responses are concise and helpful. "
    "You identify and confirm smart home commands. You can also generate images from a text "
    "prompt, tell stories, and search the web for current information."
)
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for configuration files."""

    config_dir: Path
    config_file: Path
    override_file: Path


class ConfigController:
    """Singleton controller for loading and updating configuration."""

    _instance: "ConfigController | None" = None

    def __init__(self, config_file: str = "default.yaml", config_dir: Path | None = None) -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        if config_dir is None:
            config_dir = Path(os.getenv(CONFIG_DIR_ENV) or "config")
        self.paths = ConfigPaths(
            config_dir=config_dir,
            config_file=config_dir / config_file,
            override_file=config_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()

    @classmethod
    def get_instance(cls) -> "ConfigController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self) -> None:
        """Load configuration from default and override YAML files."""

        config: dict[str, Any] = {}
        if self.paths.config_file.exists():
            with self.paths.config_file.open("r", encoding="utf-8") as file:
                config = yaml.safe_load(file) or {}

        if self.paths.override_file.exists():
            with self.paths.override_file.open("r", encoding="utf-8") as file:
                override_config = yaml.safe_load(file) or {}
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._normalize_config(config)

    def save_config(self, config: dict[str, Any]) -> None:
        """Persist configuration to override.yaml, archiving previous overrides."""

        self.paths.config_dir.mkdir(parents=True, exist_ok=True)
        if self.paths.override_file.exists():
            archive_index = 1
            archive_file = self._archive_path(archive_index)
            while archive_file.exists():
                archive_index += 1
                archive_file = self._archive_path(archive_index)
            self.paths.override_file.rename(archive_file)

        with self.paths.override_file.open("w", encoding="utf-8") as file:
            yaml.safe_dump(config, file)

    def get_config(self) -> dict[str, Any]:
        """Return the currently loaded configuration."""

        return dict(self.config)

    def set_config(self, config: dict[str, Any]) -> None:
        """Set and persist configuration values."""

        self.config = self._normalize_config(dict(config))
        self.save_config(self.config)

    def _archive_path(self, index: int) -> Path:
        """Return the archive path for a given override index."""

        filename = f"override_{index:04d}.yaml"
        return self.paths.config_dir / filename

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _normalize_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Fill safe defaults for every section the session reads."""

        normalized = dict(config)
        normalized["logging_level"] = str(normalized.get("logging_level", "INFO"))
        normalized["file_logging_enabled"] = bool(normalized.get("file_logging_enabled", False))
        normalized["log_file"] = str(normalized.get("log_file", "log/live_assistant.log"))

        wake_cfg = dict(normalized.get("wake_word") or {})
        wake_cfg["phrase"] = str(wake_cfg.get("phrase") or "").strip()
        wake_cfg["gate_tool_calls"] = bool(wake_cfg.get("gate_tool_calls", True))
        normalized["wake_word"] = wake_cfg

        live_cfg = dict(normalized.get("live") or {})
        live_cfg["model"] = str(live_cfg.get("model") or DEFAULT_LIVE_MODEL)
        live_cfg["voice_name"] = str(live_cfg.get("voice_name") or DEFAULT_VOICE_NAME)
        live_cfg["system_instruction"] = str(
            live_cfg.get("system_instruction") or DEFAULT_SYSTEM_INSTRUCTION
        )
        normalized["live"] = live_cfg

        generation_cfg = dict(normalized.get("generation") or {})
        generation_cfg["image_model"] = str(generation_cfg.get("image_model") or DEFAULT_IMAGE_MODEL)
        generation_cfg["text_model"] = str(generation_cfg.get("text_model") or DEFAULT_TEXT_MODEL)
        generation_cfg["search_model"] = str(
            generation_cfg.get("search_model") or DEFAULT_TEXT_MODEL
        )
        generation_cfg["timeout_s"] = max(5.0, float(generation_cfg.get("timeout_s", 60.0)))
        normalized["generation"] = generation_cfg

        audio_cfg = dict(normalized.get("audio") or {})
        for direction in ("input", "output"):
            device_cfg = dict(audio_cfg.get(direction) or {})
            device_cfg["device_name"] = device_cfg.get("device_name") or None
            audio_cfg[direction] = device_cfg
        normalized["audio"] = audio_cfg

        return normalized
