"""Diagnostics routines for the configuration subsystem."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from config.controller import CONFIG_DIR_ENV
from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe(config_dir: Path | None = None) -> DiagnosticResult:
    """Check that the YAML config files are readable and well formed.

    Args:
        config_dir: Optional config directory for offline testing.

    Returns:
        Diagnostic result indicating config readiness.
    """

    name = "config"
    if config_dir is None:
        config_dir = Path(os.getenv(CONFIG_DIR_ENV) or "config")
    default_config = config_dir / "default.yaml"
    override_config = config_dir / "override.yaml"

    if not default_config.exists():
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.WARN,
            details=f"No default config at {default_config}; built-in defaults apply",
        )

    try:
        for path in (default_config, override_config):
            if not path.exists():
                continue
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if data is not None and not isinstance(data, dict):
                return DiagnosticResult(
                    name=name,
                    status=DiagnosticStatus.FAIL,
                    details=f"{path.name} must contain a mapping",
                )
    except OSError as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Config access failed: {exc}",
        )
    except yaml.YAMLError as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Config is not valid YAML: {exc}",
        )

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Config files readable at {config_dir}",
    )
