"""Enhancement passes run over the sanitized HTML of a render."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from bs4 import BeautifulSoup, NavigableString, Tag
from pygments import highlight
from pygments.formatters.html import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from mdeditor.errors import EnhancementFailure

logger = logging.getLogger(__name__)

_LANGUAGE_CLASS = re.compile(r"^language-(?P<lang>[\w#+.-]+)$")
_DISPLAY_MATH = re.compile(r"\$\$(?P<tex>.+?)\$\$", flags=re.DOTALL)
_INLINE_MATH = re.compile(r"(?<![\\$])\$(?P<tex>[^$\n]+?)\$(?!\$)")
_MATH_SKIP_TAGS = {"code", "pre", "script", "style", "textarea"}

_MERMAID_DIAGRAM_TYPES = (
    "graph",
    "flowchart",
    "sequenceDiagram",
    "classDiagram",
    "stateDiagram",
    "stateDiagram-v2",
    "erDiagram",
    "journey",
    "gantt",
    "pie",
    "quadrantChart",
    "requirementDiagram",
    "gitGraph",
    "mindmap",
    "timeline",
    "sankey-beta",
    "xychart-beta",
    "block-beta",
    "C4Context",
)


class EnhancementPass(ABC):
    """A DOM pass applied after sanitization.

    Passes must only touch the soup they are given, which holds the rendered
    output region and nothing else.
    """

    name: str = "enhancement"

    @abstractmethod
    def apply(self, soup: BeautifulSoup) -> None:
        """Mutate `soup` in place; raise to report a failure."""


class DiagramRenderer(ABC):
    """Renders diagram-source containers in place."""

    @abstractmethod
    def render(self, containers: list[Tag]) -> None:
        """Render every container, raising `EnhancementFailure` on bad syntax."""


class MermaidDiagramRenderer(DiagramRenderer):
    """Validates mermaid sources and marks their containers as processed.

    Vector output is produced by the mermaid runtime in the viewer; this side
    checks the diagram header and tags each container with its diagram type so
    the viewer renders only what has been accepted. One malformed diagram
    leaves every container of the document unrendered.
    """

    def render(self, containers: list[Tag]) -> None:
        accepted: list[tuple[Tag, str]] = []
        for index, container in enumerate(containers):
            diagram_type = _mermaid_diagram_type(container.get_text())
            if diagram_type is None:
                raise EnhancementFailure(f"unrecognized mermaid diagram #{index}")
            accepted.append((container, diagram_type))

        for container, diagram_type in accepted:
            container["data-processed"] = "true"
            container["data-diagram-type"] = diagram_type


class DiagramPass(EnhancementPass):
    """Turns diagram code blocks into source containers, then renders them."""

    name = "diagram"

    def __init__(
        self,
        languages: tuple[str, ...] = ("mermaid",),
        renderer: DiagramRenderer | None = None,
    ) -> None:
        self.languages = tuple(language.lower() for language in languages)
        self.renderer = renderer or MermaidDiagramRenderer()

    def apply(self, soup: BeautifulSoup) -> None:
        containers: list[Tag] = []
        for code in list(soup.find_all("code")):
            language = _code_language(code)
            if language not in self.languages:
                continue
            container = soup.new_tag(
                "div", attrs={"class": language, "data-diagram-source": "true"}
            )
            container.string = code.get_text()
            block = code.parent if code.parent is not None and code.parent.name == "pre" else code
            block.replace_with(container)
            containers.append(container)

        if containers:
            self.renderer.render(containers)


class HighlightPass(EnhancementPass):
    """Syntax-highlights fenced code blocks with Pygments."""

    name = "highlight"

    def __init__(self, style: str = "default") -> None:
        self.formatter = HtmlFormatter(style=style, nowrap=True)

    def apply(self, soup: BeautifulSoup) -> None:
        for code in soup.select("pre > code"):
            language = _code_language(code)
            if language is None:
                continue
            try:
                lexer = get_lexer_by_name(language)
            except ClassNotFound:
                continue
            highlighted = highlight(code.get_text(), lexer, self.formatter)
            fragment = BeautifulSoup(highlighted, "html.parser")
            code.clear()
            for node in list(fragment.contents):
                code.append(node)
            classes = list(code.get("class", []))
            if "highlight" not in classes:
                code["class"] = [*classes, "highlight"]


class MathPass(EnhancementPass):
    """Wraps `$$...$$` and `$...$` TeX spans in typesetting containers."""

    name = "math"

    def apply(self, soup: BeautifulSoup) -> None:
        for text_node in list(soup.find_all(string=True)):
            # Subclasses are comments, CDATA and the like.
            if type(text_node) is not NavigableString:
                continue
            if _inside(text_node, _MATH_SKIP_TAGS) or _inside_math(text_node):
                continue
            if "$" not in text_node:
                continue
            pieces = _split_math(str(text_node))
            if all(kind == "text" for kind, _ in pieces):
                continue

            replacements: list[NavigableString | Tag] = []
            for kind, value in pieces:
                if kind == "text":
                    replacements.append(NavigableString(value))
                    continue
                span = soup.new_tag("span", attrs={"class": f"math math-{kind}"})
                span.string = f"\\[{value}\\]" if kind == "display" else f"\\({value}\\)"
                replacements.append(span)
            text_node.replace_with(*replacements)


def default_passes(
    *,
    diagram_languages: tuple[str, ...] = ("mermaid",),
    highlight_code: bool = True,
    math: bool = True,
    pygments_style: str = "default",
    diagram_renderer: DiagramRenderer | None = None,
) -> list[EnhancementPass]:
    passes: list[EnhancementPass] = [DiagramPass(diagram_languages, diagram_renderer)]
    if highlight_code:
        passes.append(HighlightPass(pygments_style))
    if math:
        passes.append(MathPass())
    return passes


def _code_language(code: Tag) -> str | None:
    for css_class in code.get("class", []):
        match = _LANGUAGE_CLASS.match(css_class)
        if match:
            return match.group("lang").lower()
    return None


def _mermaid_diagram_type(source: str) -> str | None:
    in_front_matter = False
    for line in source.splitlines():
        stripped = line.strip()
        if stripped == "---":
            in_front_matter = not in_front_matter
            continue
        if in_front_matter or not stripped or stripped.startswith("%%"):
            continue
        keyword = stripped.split(maxsplit=1)[0].rstrip(":;")
        return keyword if keyword in _MERMAID_DIAGRAM_TYPES else None
    return None


def _inside(node: NavigableString, tag_names: set[str]) -> bool:
    return any(parent.name in tag_names for parent in node.parents)


def _inside_math(node: NavigableString) -> bool:
    for parent in node.parents:
        if not isinstance(parent, Tag):
            continue
        if "math" in parent.get("class", []) or parent.has_attr("data-diagram-source"):
            return True
    return False


def _split_math(text: str) -> list[tuple[str, str]]:
    pieces: list[tuple[str, str]] = []
    position = 0
    for match in _DISPLAY_MATH.finditer(text):
        pieces.extend(_split_inline(text[position : match.start()]))
        pieces.append(("display", match.group("tex").strip()))
        position = match.end()
    pieces.extend(_split_inline(text[position:]))
    return [piece for piece in pieces if piece[1]]


def _split_inline(text: str) -> list[tuple[str, str]]:
    pieces: list[tuple[str, str]] = []
    position = 0
    for match in _INLINE_MATH.finditer(text):
        pieces.append(("text", text[position : match.start()]))
        pieces.append(("inline", match.group("tex")))
        position = match.end()
    pieces.append(("text", text[position:]))
    return pieces
