"""Auxiliary generation calls used by tool handlers."""

from services.generation.gemini_service import GeminiGenerationService, build_generation_service
from services.generation.models import Citation, GeneratedImage, GroundedText
from services.generation.service import GenerationService, NullGenerationService

__all__ = [
    "Citation",
    "GeneratedImage",
    "GenerationService",
    "GeminiGenerationService",
    "GroundedText",
    "NullGenerationService",
    "build_generation_service",
]
