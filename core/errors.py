"""Error kinds raised by the live session components."""

from __future__ import annotations


class LiveAssistantError(RuntimeError):
    """Base class for live assistant failures."""


class ConnectivityError(LiveAssistantError):
    """The transport failed to open or reported an error."""


class CaptureError(LiveAssistantError):
    """The microphone could not be acquired."""


class ToolHandlerError(LiveAssistantError):
    """An auxiliary generation call made by a tool handler failed."""


class ProtocolAnomaly(LiveAssistantError):
    """A server message had an unexpected or malformed shape."""
