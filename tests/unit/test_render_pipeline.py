from bs4 import BeautifulSoup

from mdeditor.errors import EnhancementFailure
from mdeditor.obs.tracing import TraceStore
from mdeditor.render.passes import DiagramPass, DiagramRenderer, EnhancementPass, HighlightPass
from mdeditor.render.pipeline import RenderPipeline


class _BrokenPass(EnhancementPass):
    name = "broken"

    def apply(self, soup: BeautifulSoup) -> None:
        raise EnhancementFailure("boom")


class _BrokenParser:
    def render(self, source: str) -> str:
        raise RuntimeError("parser exploded")


class _RecordingRenderer(DiagramRenderer):
    def __init__(self) -> None:
        self.seen: list[str] = []

    def render(self, containers) -> None:
        self.seen.extend(container.get_text() for container in containers)


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def test_image_keeps_alt_text() -> None:
    html = RenderPipeline().render("![alt](http://x/y.png)")
    image = _soup(html).find("img")
    assert image is not None
    assert image["alt"] == "alt"
    assert image["src"] == "http://x/y.png"


def test_render_is_idempotent() -> None:
    source = "# Doc\n\n```python\nx = 1\n```\n\n```mermaid\ngraph TD\n  A-->B\n```\n\n$a+b$"
    pipeline = RenderPipeline()
    assert pipeline.render(source) == pipeline.render(source)


def test_single_newline_is_a_hard_break() -> None:
    html = RenderPipeline().render("line one\nline two")
    assert _soup(html).find("br") is not None


def test_gfm_tables_render() -> None:
    html = RenderPipeline().render("| a | b |\n|---|---|\n| 1 | 2 |")
    assert _soup(html).find("table") is not None


def test_mermaid_block_becomes_rendered_container() -> None:
    result = RenderPipeline().render_with_report("```mermaid\ngraph TD\n  A-->B\n```")
    soup = _soup(result.html)
    container = soup.find("div", class_="mermaid")
    assert container is not None
    assert container["data-processed"] == "true"
    assert container["data-diagram-type"] == "graph"
    assert "A-->B" in container.get_text()
    assert soup.find("pre") is None
    assert not result.failed_passes


def test_malformed_diagram_is_left_unrendered_and_reported() -> None:
    result = RenderPipeline().render_with_report("```mermaid\nnot a diagram\n```\n\nAfter text")
    soup = _soup(result.html)
    container = soup.find("div", class_="mermaid")
    assert container is not None
    assert not container.has_attr("data-processed")
    assert "After text" in soup.get_text()
    assert [failure.name for failure in result.failed_passes] == ["diagram"]


def test_diagram_renderer_is_injectable() -> None:
    renderer = _RecordingRenderer()
    pipeline = RenderPipeline(passes=[DiagramPass(("mermaid",), renderer)])
    pipeline.render("```mermaid\nsequenceDiagram\n  A->>B: hi\n```")
    assert renderer.seen == ["sequenceDiagram\n  A->>B: hi\n"]


def test_code_blocks_are_highlighted() -> None:
    soup = _soup(RenderPipeline().render("```python\nx = 1\n```"))
    code = soup.find("code")
    assert "highlight" in code["class"]
    assert code.find("span") is not None
    assert code.get_text() == "x = 1\n"


def test_unknown_language_is_left_alone() -> None:
    result = RenderPipeline().render_with_report("```nosuchlanguage\nx\n```")
    assert _soup(result.html).find("code").find("span") is None
    assert not result.failed_passes


def test_inline_and_display_math_are_wrapped() -> None:
    soup = _soup(RenderPipeline().render("Euler: $e^{i\\pi}+1=0$ and $$x^2$$"))
    inline = soup.find("span", class_="math-inline")
    display = soup.find("span", class_="math-display")
    assert inline.get_text() == "\\(e^{i\\pi}+1=0\\)"
    assert display.get_text() == "\\[x^2\\]"


def test_math_inside_code_is_not_touched() -> None:
    soup = _soup(RenderPipeline().render("`$x$`"))
    assert soup.find("span", class_="math") is None


def test_failing_pass_does_not_block_the_others() -> None:
    pipeline = RenderPipeline(passes=[_BrokenPass(), HighlightPass()])
    result = pipeline.render_with_report("# Title\n\n```python\nx = 1\n```")
    soup = _soup(result.html)
    assert soup.find("h1").get_text() == "Title"
    assert soup.find("code").find("span") is not None
    assert [(item.name, item.ok) for item in result.passes] == [
        ("parse", True),
        ("sanitize", True),
        ("broken", False),
        ("highlight", True),
    ]
    assert result.failed_passes[0].reason == "boom"


def test_parser_failure_degrades_to_escaped_text() -> None:
    pipeline = RenderPipeline(parser=_BrokenParser(), passes=[])
    result = pipeline.render_with_report("<script>alert(1)</script>")
    assert "<script" not in result.html
    assert "&lt;script&gt;" in result.html
    assert result.passes[0].ok is False


def test_render_records_traces() -> None:
    store = TraceStore()
    pipeline = RenderPipeline(trace_store=store)
    pipeline.render("```mermaid\nnope\n```")
    pipeline.render("fine")

    summary = store.summary()
    assert summary["total_renders"] == 2
    assert summary["failed_passes"] == {"diagram": 1}
    assert len(store.list_render()) == 2


def test_arbitrary_input_never_raises() -> None:
    pipeline = RenderPipeline()
    for source in ["", "[", "```", "$$", "$", "<div", "| a |\n|-", "\x00", "```mermaid\n```"]:
        assert isinstance(pipeline.render(source), str)
