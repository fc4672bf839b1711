"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class Document:
    """The live editing buffer and its two derived views."""

    markdown_source: str = ""
    plain_projection: str = ""
    rendered_html: str = ""


@dataclass(slots=True)
class FileRecord:
    """A named, persisted snapshot of markdown source."""

    id: str
    name: str
    content: str
    updated_at: int

    def to_payload(self) -> dict[str, Any]:
        return {"name": self.name, "content": self.content, "updated": self.updated_at}

    @classmethod
    def from_payload(cls, file_id: str, payload: dict[str, Any]) -> "FileRecord":
        """Build a record from its stored form.

        A missing or null timestamp reads as 0. Raises ValueError or TypeError
        when the timestamp is present but not numeric.
        """
        updated = payload.get("updated")
        return cls(
            id=file_id,
            name=str(payload.get("name") or "Untitled"),
            content=str(payload.get("content") or ""),
            updated_at=0 if updated is None else int(updated),
        )


@dataclass(slots=True)
class AssistantRequest:
    """An assistant action applied to a selection.

    `action` is kept as the raw tag so that unrecognized values can be answered
    rather than rejected.
    """

    action: str
    instruction: str = ""
    selection: str = ""


@dataclass(slots=True)
class PassResult:
    """Outcome of one render stage."""

    name: str
    ok: bool
    reason: str = ""


@dataclass(slots=True)
class RenderResult:
    """Sanitized HTML together with the per-pass outcomes that produced it."""

    html: str
    passes: list[PassResult] = field(default_factory=list)

    @property
    def failed_passes(self) -> list[PassResult]:
        return [result for result in self.passes if not result.ok]
