"""Gemini REST client for image, story and search-grounded generation."""

from __future__ import annotations

import json
from typing import Any
from urllib import error, parse, request

from config.session import SessionConfig
from core.errors import ToolHandlerError
from core.logging import logger as LOGGER

from services.generation.models import Citation, GeneratedImage, GroundedText
from services.generation.service import GenerationService, NullGenerationService

API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"


def _error_detail(exc: error.HTTPError) -> str:
    try:
        body = exc.read().decode("utf-8")
        message = (json.loads(body).get("error") or {}).get("message")
    except (OSError, ValueError, AttributeError):
        message = None
    return f"HTTP {exc.code}: {message or exc.reason}"


def _first_candidate(payload: dict[str, Any]) -> dict[str, Any]:
    candidates = payload.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        feedback = payload.get("promptFeedback") or {}
        reason = feedback.get("blockReason")
        raise ToolHandlerError(
            f"No candidates returned (blocked: {reason})." if reason else "No candidates returned."
        )
    return candidates[0]


def _parts(candidate: dict[str, Any]) -> list[dict[str, Any]]:
    content = candidate.get("content") or {}
    return [part for part in content.get("parts") or [] if isinstance(part, dict)]


class GeminiGenerationService(GenerationService):
    """Synchronous ``generateContent`` calls; run them off the event loop."""

    def __init__(
        self,
        *,
        api_key: str,
        image_model: str,
        text_model: str,
        search_model: str,
        timeout_s: float = 60.0,
        api_root: str = API_ROOT,
    ) -> None:
        self._api_key = api_key
        self._image_model = image_model
        self._text_model = text_model
        self._search_model = search_model
        self._timeout_s = max(5.0, float(timeout_s))
        self._api_root = api_root.rstrip("/")

    def generate_image(self, prompt: str) -> GeneratedImage:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }
        response = self._post(self._image_model, payload)
        for part in _parts(_first_candidate(response)):
            inline = part.get("inlineData")
            if isinstance(inline, dict) and inline.get("data"):
                LOGGER.info("[Generation] Image generated for prompt (%s chars)", len(prompt))
                return GeneratedImage(
                    data=str(inline["data"]),
                    mime_type=str(inline.get("mimeType") or "image/png"),
                )
        raise ToolHandlerError("No image data returned from API.")

    def generate_text(self, prompt: str) -> str:
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        text = self._collect_text(_first_candidate(self._post(self._text_model, payload)))
        if not text:
            raise ToolHandlerError("No text returned from API.")
        return text

    def generate_grounded_text(self, query: str) -> GroundedText:
        payload = {
            "contents": [{"parts": [{"text": query}]}],
            "tools": [{"google_search": {}}],
        }
        candidate = _first_candidate(self._post(self._search_model, payload))
        text = self._collect_text(candidate)
        if not text:
            raise ToolHandlerError("No text returned from API.")
        grounding = candidate.get("groundingMetadata") or {}
        citations: list[Citation] = []
        for chunk in grounding.get("groundingChunks") or []:
            web = chunk.get("web") if isinstance(chunk, dict) else None
            if not isinstance(web, dict):
                continue
            citations.append(
                Citation(uri=str(web.get("uri") or ""), title=str(web.get("title") or ""))
            )
        LOGGER.info("[Generation] Grounded answer with %s sources", len(citations))
        return GroundedText(text=text, citations=citations)

    def _collect_text(self, candidate: dict[str, Any]) -> str:
        chunks = [
            part["text"].strip()
            for part in _parts(candidate)
            if isinstance(part.get("text"), str) and part["text"].strip() and not part.get("thought")
        ]
        return "\n".join(chunks).strip()

    def _post(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._api_root}/{parse.quote(model, safe='-._')}:generateContent"
        http_request = request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "x-goog-api-key": self._api_key,
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with request.urlopen(http_request, timeout=self._timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raise ToolHandlerError(_error_detail(exc)) from exc
        except (error.URLError, OSError) as exc:
            raise ToolHandlerError(f"Request to {model} failed: {exc}") from exc
        try:
            response_payload = json.loads(body)
        except json.JSONDecodeError as exc:
            LOGGER.warning("[Generation] Non-JSON response rejected.")
            raise ToolHandlerError("Non-JSON response from API.") from exc
        if not isinstance(response_payload, dict):
            raise ToolHandlerError("Unexpected response shape from API.")
        return response_payload


def build_generation_service(config: SessionConfig) -> GenerationService:
    """Construct the Gemini service when a credential exists; otherwise the null service."""

    if not config.api_key:
        return NullGenerationService()
    return GeminiGenerationService(
        api_key=config.api_key,
        image_model=config.image_model,
        text_model=config.text_model,
        search_model=config.search_model,
        timeout_s=config.generation_timeout_s,
    )
