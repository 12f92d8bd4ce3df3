"""Data models returned by auxiliary generation calls."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GeneratedImage:
    """Raw image bytes plus their media type."""

    data: str
    mime_type: str = "image/png"

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class Citation:
    uri: str
    title: str

    @property
    def is_complete(self) -> bool:
        return bool(self.uri.strip()) and bool(self.title.strip())

    def to_payload(self) -> dict[str, str]:
        return {"uri": self.uri, "title": self.title}


@dataclass(frozen=True)
class GroundedText:
    """Search-grounded answer and the web sources it cites."""

    text: str
    citations: list[Citation] = field(default_factory=list)

    def complete_citations(self) -> list[Citation]:
        return [citation for citation in self.citations if citation.is_complete]
