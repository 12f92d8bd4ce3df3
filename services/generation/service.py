"""Auxiliary generation service interface and null implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod

from core.errors import ToolHandlerError
from core.logging import logger as LOGGER

from services.generation.models import GeneratedImage, GroundedText


class GenerationService(ABC):
    """Request/response generation calls made outside the duplex session.

    Every method is blocking and raises ``ToolHandlerError`` on failure.
    """

    @abstractmethod
    def generate_image(self, prompt: str) -> GeneratedImage:
        """Render one image for ``prompt``."""

    @abstractmethod
    def generate_text(self, prompt: str) -> str:
        """Return plain generated text for ``prompt``."""

    @abstractmethod
    def generate_grounded_text(self, query: str) -> GroundedText:
        """Answer ``query`` with web search enabled."""


class NullGenerationService(GenerationService):
    """Default when no API credential is available; every call fails cleanly."""

    def _disabled(self, operation: str) -> ToolHandlerError:
        LOGGER.info("[Generation] %s requested without credentials", operation)
        return ToolHandlerError("Generation is disabled: no API key configured.")

    def generate_image(self, prompt: str) -> GeneratedImage:
        raise self._disabled("image")

    def generate_text(self, prompt: str) -> str:
        raise self._disabled("text")

    def generate_grounded_text(self, query: str) -> GroundedText:
        raise self._disabled("grounded text")
