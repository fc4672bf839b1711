"""Conversion between markdown source and its plain-text projection.

`to_plain` is a lossy, one-directional reduction. The rules run in a fixed
order because later rules must not re-match syntax an earlier rule already
stripped:

1. Fenced code blocks keep their body, fence markers and info string go.
2. Images become their alt text.
3. Links become their text.
4. ATX heading markers are stripped.
5. Emphasis delimiters are stripped, double before single.
6. Blockquote markers are stripped.
7. Unordered and ordered list markers are stripped.
8. Remaining backticks are removed.

Code bodies are set aside before rule 2 and restored after rule 8, so they come
back verbatim. Nested or malformed markdown may leave residual punctuation.

`to_markdown` is the identity: text edited in the plain projection is taken as
raw markdown source, without escaping.
"""

from __future__ import annotations

import re

FENCED_CODE = re.compile(r"```([\s\S]*?)```")
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HEADING = re.compile(r"^[ \t]*#{1,6}[ \t]*", flags=re.MULTILINE)
_STRONG = re.compile(r"(\*\*|__)(.*?)\1")
_EMPHASIS = re.compile(r"(\*|_)(.*?)\1")
_BLOCKQUOTE = re.compile(r"^[ \t]*>[ \t]?", flags=re.MULTILINE)
_BULLET = re.compile(r"^[ \t]*[-*+][ \t]+", flags=re.MULTILINE)
_ORDERED = re.compile(r"^[ \t]*\d+\.[ \t]+", flags=re.MULTILINE)
_PLACEHOLDER = re.compile(r"\x00(\d+)\x00")


def to_plain(markdown: str) -> str:
    """Strip markdown syntax from `markdown` while keeping its reading content."""
    if not markdown:
        return ""

    code_bodies: list[str] = []

    def _stash(match: re.Match[str]) -> str:
        code_bodies.append(_fence_body(match.group(1)))
        return f"\x00{len(code_bodies) - 1}\x00"

    text = FENCED_CODE.sub(_stash, markdown.replace("\x00", ""))
    text = _IMAGE.sub(r"\1", text)
    text = _LINK.sub(r"\1", text)
    text = _HEADING.sub("", text)
    text = _STRONG.sub(r"\2", text)
    text = _EMPHASIS.sub(r"\2", text)
    text = _BLOCKQUOTE.sub("", text)
    text = _BULLET.sub("", text)
    text = _ORDERED.sub("", text)
    text = text.replace("`", "")
    return _PLACEHOLDER.sub(lambda match: code_bodies[int(match.group(1))], text)


def to_markdown(text: str) -> str:
    """Reinterpret plain-projection text as markdown source (identity)."""
    return text


def _fence_body(inner: str) -> str:
    # An inner newline means the first line is the info string (e.g. "js").
    if "\n" not in inner:
        return inner
    _, _, body = inner.partition("\n")
    return "\n" + body
