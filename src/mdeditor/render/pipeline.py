"""Render pipeline: parse -> sanitize -> diagram -> highlight/math."""

from __future__ import annotations

import html
import logging
import re
from typing import Protocol

import bleach
from bs4 import BeautifulSoup
from markdown_it import MarkdownIt

from mdeditor.config import RenderConfig
from mdeditor.obs.tracing import Timer, TraceStore
from mdeditor.render.passes import DiagramRenderer, EnhancementPass, default_passes
from mdeditor.types import PassResult, RenderResult

logger = logging.getLogger(__name__)

SAFE_TAGS = frozenset(
    {
        "a", "abbr", "b", "blockquote", "br", "code", "dd", "del", "div", "dl",
        "dt", "em", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "kbd",
        "li", "ol", "p", "pre", "s", "span", "strong", "sub", "sup", "table",
        "tbody", "td", "tfoot", "th", "thead", "tr", "u", "ul",
    }
)
SAFE_ATTRIBUTES: dict[str, list[str]] = {
    "a": ["href", "title"],
    "img": ["src", "alt", "title", "width", "height"],
    "code": ["class"],
    "pre": ["class"],
    "div": ["class"],
    "span": ["class"],
    "th": ["align"],
    "td": ["align"],
    "ol": ["start"],
}
SAFE_PROTOCOLS = frozenset({"http", "https", "mailto", "data"})
# Inline images written by the editor's own image upload.
_DATA_IMAGE = re.compile(r"^data:image/(png|gif|jpeg|webp);base64,", flags=re.IGNORECASE)


class MarkdownParser(Protocol):
    """Turns markdown source into raw (unsanitized) HTML."""

    def render(self, source: str) -> str:
        """Return raw HTML for `source`."""


class Sanitizer(Protocol):
    """Reduces raw HTML to an allow-listed safe subset."""

    def clean(self, raw_html: str) -> str:
        """Return sanitized HTML."""


class MarkdownItParser:
    """GitHub-flavored markdown-it parser with hard line breaks."""

    def __init__(self, *, breaks: bool = True, linkify: bool = True) -> None:
        self._md = MarkdownIt("gfm-like", {"breaks": breaks, "linkify": linkify})
        if not linkify:
            self._md.disable("linkify")

    def render(self, source: str) -> str:
        return self._md.render(source)


class BleachSanitizer:
    """Safe-HTML profile: formatting, tables, links and images, no scripts."""

    def __init__(
        self,
        *,
        tags: frozenset[str] = SAFE_TAGS,
        attributes: dict[str, list[str]] | None = None,
        protocols: frozenset[str] = SAFE_PROTOCOLS,
    ) -> None:
        self.tags = tags
        self.attributes = attributes or SAFE_ATTRIBUTES
        self.protocols = protocols

    def clean(self, raw_html: str) -> str:
        return bleach.clean(
            raw_html,
            tags=self.tags,
            attributes=self._allow_attribute,
            protocols=self.protocols,
            strip=True,
            strip_comments=True,
        )

    def _allow_attribute(self, tag: str, name: str, value: str) -> bool:
        if name not in self.attributes.get(tag, ()):
            return False
        if name in {"href", "src"} and value.strip().lower().startswith("data:"):
            # data: URIs only as raster images, never as link targets.
            return tag == "img" and name == "src" and bool(_DATA_IMAGE.match(value.strip()))
        return True


class RenderPipeline:
    """Coordinates parser, sanitizer and enhancement passes.

    `render` never raises. A failing parse degrades to escaped source text, the
    sanitizer always runs on whatever reaches the output, and each enhancement
    pass is isolated: its failure is recorded as a `PassResult` and the pass is
    skipped, leaving the rest of the output intact.
    """

    def __init__(
        self,
        parser: MarkdownParser | None = None,
        sanitizer: Sanitizer | None = None,
        passes: list[EnhancementPass] | None = None,
        *,
        config: RenderConfig | None = None,
        diagram_renderer: DiagramRenderer | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.config = config or RenderConfig()
        self.parser = parser or MarkdownItParser(
            breaks=self.config.breaks, linkify=self.config.linkify
        )
        self.sanitizer = sanitizer or BleachSanitizer()
        self.passes = (
            passes
            if passes is not None
            else default_passes(
                diagram_languages=self.config.diagram_languages,
                highlight_code=self.config.highlight,
                math=self.config.math,
                pygments_style=self.config.pygments_style,
                diagram_renderer=diagram_renderer,
            )
        )
        self.trace_store = trace_store

    def render(self, markdown: str) -> str:
        return self.render_with_report(markdown).html

    def render_with_report(self, markdown: str) -> RenderResult:
        """Render `markdown` and report the outcome of every stage."""

        results: list[PassResult] = []
        with Timer() as timer:
            safe_html = self._parse_and_sanitize(markdown or "", results)
            output = self._enhance(safe_html, results)

        if self.trace_store is not None:
            self.trace_store.create_render_record(
                input_chars=len(markdown or ""),
                output_chars=len(output),
                passes=results,
                latency_ms=timer.elapsed_ms,
            )
        return RenderResult(html=output, passes=results)

    def _parse_and_sanitize(self, markdown: str, results: list[PassResult]) -> str:
        try:
            raw_html = self.parser.render(markdown)
            results.append(PassResult(name="parse", ok=True))
        except Exception as exc:
            logger.warning("markdown parse failed, rendering source as text: %s", exc)
            results.append(PassResult(name="parse", ok=False, reason=str(exc)))
            raw_html = f"<pre>{html.escape(markdown)}</pre>"

        try:
            safe_html = self.sanitizer.clean(raw_html)
            results.append(PassResult(name="sanitize", ok=True))
        except Exception as exc:
            # Escaped source is the only output that needs no sanitizer.
            logger.warning("sanitizer failed, rendering source as text: %s", exc)
            results.append(PassResult(name="sanitize", ok=False, reason=str(exc)))
            safe_html = f"<pre>{html.escape(markdown)}</pre>"
        return safe_html

    def _enhance(self, safe_html: str, results: list[PassResult]) -> str:
        if not self.passes:
            return safe_html

        soup = BeautifulSoup(safe_html, "html.parser")
        for enhancement in self.passes:
            try:
                enhancement.apply(soup)
                results.append(PassResult(name=enhancement.name, ok=True))
            except Exception as exc:
                logger.warning("%s pass failed: %s", enhancement.name, exc)
                results.append(
                    PassResult(name=enhancement.name, ok=False, reason=str(exc) or type(exc).__name__)
                )

        try:
            return str(soup)
        except Exception as exc:
            logger.warning("serializing enhanced html failed: %s", exc)
            results.append(PassResult(name="serialize", ok=False, reason=str(exc)))
            return safe_html
