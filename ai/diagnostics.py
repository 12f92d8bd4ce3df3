"""Diagnostics routines for the live model connection."""

from __future__ import annotations

import importlib.util

from config.session import API_KEY_ENV_VARS, resolve_api_key
from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe(api_key: str | None = None, require_websockets: bool = True) -> DiagnosticResult:
    """Check that a credential is present and the websocket client is importable.

    Args:
        api_key: Optional API key override for testing.
        require_websockets: Whether to require websockets availability.

    Returns:
        Diagnostic result indicating AI readiness.
    """

    name = "ai"
    if not (api_key or resolve_api_key()):
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Missing API key; set one of {', '.join(API_KEY_ENV_VARS)}",
        )

    if require_websockets and importlib.util.find_spec("websockets") is None:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="Missing websockets dependency",
        )

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details="Gemini credential present",
    )
