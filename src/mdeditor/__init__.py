"""Markdown editor core package."""

from .config import AssistantConfig, RenderConfig, StorageConfig

__all__ = ["AssistantConfig", "RenderConfig", "StorageConfig"]
