"""Configuration models for the editor core."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    """Configures backing-store keys and autosave cadence."""

    autosave_key: str = Field(default="mdeditor_autosave_v1", min_length=1)
    files_key: str = Field(default="mdeditor_files_v1", min_length=1)
    theme_key: str = Field(default="mdeditor_theme", min_length=1)
    autosave_interval_seconds: float = Field(default=5.0, gt=0.0)
    sqlite_path: str = Field(default="mdeditor.db", min_length=1)
    initial_document: str = "# Welcome\n\nStart editing..."


class RenderConfig(BaseModel):
    """Configures markdown parsing and the enhancement passes."""

    breaks: bool = True
    linkify: bool = True
    diagram_languages: tuple[str, ...] = ("mermaid",)
    highlight: bool = True
    math: bool = True
    pygments_style: str = "default"


class AssistantConfig(BaseModel):
    """Configures the remote completion call and the local fallbacks."""

    model: str = Field(default="gpt-4o-mini", min_length=1)
    max_tokens: int = Field(default=800, ge=1)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    summary_sentences: int = Field(default=3, ge=1)
    summary_char_limit: int = Field(default=200, ge=1)
