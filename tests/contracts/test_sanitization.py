from bs4 import BeautifulSoup

from mdeditor.render.pipeline import RenderPipeline

_ATTACKS = [
    "<script>alert(1)</script>",
    "Hello <script src='https://evil.example/x.js'></script> world",
    "<img src=x onerror=alert(1)>",
    '<a href="javascript:alert(1)" onclick="steal()">click</a>',
    "[click](javascript:alert(1))",
    '<div onmouseover="x()">hover</div>',
    "```mermaid\ngraph TD\n<script>alert(1)</script>\n```",
    "<svg onload=alert(1)><circle/></svg>",
    "<iframe src='https://evil.example'></iframe>",
]


def _assert_safe(html: str) -> None:
    soup = BeautifulSoup(html, "html.parser")
    assert soup.find("script") is None
    assert soup.find("iframe") is None
    for tag in soup.find_all(True):
        for attribute, value in tag.attrs.items():
            assert not attribute.lower().startswith("on")
            if attribute in {"href", "src"}:
                assert not str(value).strip().lower().startswith("javascript:")


def test_scripts_and_event_handlers_never_survive() -> None:
    pipeline = RenderPipeline()
    for attack in _ATTACKS:
        _assert_safe(pipeline.render(attack))


def test_sanitizer_runs_even_without_enhancement_passes() -> None:
    pipeline = RenderPipeline(passes=[])
    for attack in _ATTACKS:
        _assert_safe(pipeline.render(attack))


def test_trusted_looking_input_is_still_sanitized() -> None:
    html = RenderPipeline().render("# Release notes\n\n<p onclick='x()'>Trusted</p>")
    _assert_safe(html)
    assert "Trusted" in html


_PNG = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


def test_inline_data_images_keep_their_source() -> None:
    html = RenderPipeline().render(f"![chart]({_PNG})")
    image = BeautifulSoup(html, "html.parser").find("img")
    assert image is not None
    assert image["src"] == _PNG
    assert image["alt"] == "chart"


def test_data_uris_are_dropped_from_links_and_non_image_sources() -> None:
    html = RenderPipeline().render(
        '<a href="data:text/html;base64,PHNjcmlwdD5hbGVydCgxKTwvc2NyaXB0Pg==">open</a>\n\n'
        '<a href="data:image/png;base64,iVBORw0KGgo=">png link</a>\n\n'
        '<img src="data:text/html;base64,PHNjcmlwdD4=" alt="x">\n\n'
        '<img src="data:image/svg+xml;base64,PHN2Zz4=" alt="y">'
    )
    soup = BeautifulSoup(html, "html.parser")
    assert "open" in soup.get_text()
    for link in soup.find_all("a"):
        assert not str(link.get("href", "")).startswith("data:")
    for image in soup.find_all("img"):
        assert not str(image.get("src", "")).startswith("data:")
