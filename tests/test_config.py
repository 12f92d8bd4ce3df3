"""Tests for config loading, normalization and per-session settings."""

from __future__ import annotations

from pathlib import Path

import yaml

from config.controller import CONFIG_DIR_ENV, DEFAULT_LIVE_MODEL, ConfigController
from config.session import API_KEY_ENV_VARS, SessionConfig, resolve_api_key


def _write_config(tmp_path: Path, default: str, override: str | None = None) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text(default, encoding="utf-8")
    if override is not None:
        (config_dir / "override.yaml").write_text(override, encoding="utf-8")
    return config_dir


def _controller(monkeypatch, tmp_path: Path) -> ConfigController:
    monkeypatch.setattr(ConfigController, "_instance", None)
    monkeypatch.delenv(CONFIG_DIR_ENV, raising=False)
    monkeypatch.chdir(tmp_path)
    return ConfigController.get_instance()


def _clear_api_keys(monkeypatch) -> None:
    for name in API_KEY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_override_is_deep_merged_over_defaults(tmp_path: Path, monkeypatch) -> None:
    _write_config(
        tmp_path,
        "\n".join(
            [
                "live:",
                "  voice_name: Kore",
                "  model: custom-live-model",
                "wake_word:",
                "  phrase: Jarvis",
            ]
        ),
        override="live:\n  voice_name: Charon\n",
    )

    cfg = _controller(monkeypatch, tmp_path).get_config()

    assert cfg["live"]["voice_name"] == "Charon"
    assert cfg["live"]["model"] == "custom-live-model"
    assert cfg["wake_word"]["phrase"] == "Jarvis"


def test_missing_sections_get_safe_defaults(tmp_path: Path, monkeypatch) -> None:
    _write_config(tmp_path, "generation:\n  timeout_s: 1\n")

    cfg = _controller(monkeypatch, tmp_path).get_config()

    assert cfg["logging_level"] == "INFO"
    assert cfg["file_logging_enabled"] is False
    assert cfg["log_file"] == "log/live_assistant.log"
    assert cfg["wake_word"] == {"phrase": "", "gate_tool_calls": True}
    assert cfg["live"]["model"] == DEFAULT_LIVE_MODEL
    assert cfg["generation"]["timeout_s"] == 5.0
    assert cfg["audio"]["input"]["device_name"] is None
    assert cfg["audio"]["output"]["device_name"] is None


def test_config_dir_env_is_honored(tmp_path: Path, monkeypatch) -> None:
    config_dir = _write_config(tmp_path, "logging_level: DEBUG\n")
    monkeypatch.setattr(ConfigController, "_instance", None)
    monkeypatch.setenv(CONFIG_DIR_ENV, str(config_dir))

    assert ConfigController.get_instance().get_config()["logging_level"] == "DEBUG"


def test_set_config_archives_previous_override(tmp_path: Path, monkeypatch) -> None:
    config_dir = _write_config(tmp_path, "logging_level: INFO\n", override="logging_level: DEBUG\n")
    controller = _controller(monkeypatch, tmp_path)

    updated = controller.get_config()
    updated["logging_level"] = "WARNING"
    controller.set_config(updated)

    archived = yaml.safe_load((config_dir / "override_0001.yaml").read_text(encoding="utf-8"))
    saved = yaml.safe_load((config_dir / "override.yaml").read_text(encoding="utf-8"))
    assert archived == {"logging_level": "DEBUG"}
    assert saved["logging_level"] == "WARNING"


def test_session_config_from_yaml(tmp_path: Path, monkeypatch) -> None:
    _clear_api_keys(monkeypatch)
    monkeypatch.setenv("GEMINI_API_KEY", "  secret  ")
    _write_config(
        tmp_path,
        "\n".join(
            [
                "wake_word:",
                "  phrase: '  Jarvis '",
                "  gate_tool_calls: false",
                "generation:",
                "  image_model: image-model",
                "  timeout_s: 30",
                "audio:",
                "  output:",
                "    device_name: USB Speaker",
            ]
        ),
    )

    session_config = SessionConfig.from_config(_controller(monkeypatch, tmp_path).get_config())

    assert session_config.api_key == "secret"
    assert session_config.wake_word == "Jarvis"
    assert session_config.wake_word_enabled
    assert session_config.gate_tool_calls is False
    assert session_config.image_model == "image-model"
    assert session_config.generation_timeout_s == 30.0
    assert session_config.output_device_name == "USB Speaker"
    assert session_config.input_device_name is None


def test_wake_word_argument_overrides_config(monkeypatch) -> None:
    _clear_api_keys(monkeypatch)
    config = {"wake_word": {"phrase": "Jarvis"}}

    assert SessionConfig.from_config(config, wake_word="Computer").wake_word == "Computer"
    assert not SessionConfig.from_config(config, wake_word="").wake_word_enabled
    assert SessionConfig.from_config({}).api_key is None


def test_api_key_resolution_order(monkeypatch) -> None:
    _clear_api_keys(monkeypatch)
    monkeypatch.setenv("API_KEY", "third")
    monkeypatch.setenv("GOOGLE_API_KEY", "second")
    assert resolve_api_key() == "second"

    monkeypatch.setenv("GEMINI_API_KEY", "first")
    assert resolve_api_key() == "first"
