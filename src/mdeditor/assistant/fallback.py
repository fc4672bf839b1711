"""Deterministic assistant actions used when no remote model is configured.

These are mechanical placeholders, not language models: they rearrange the
selection and mark where a writer should continue.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import assert_never

from mdeditor.config import AssistantConfig
from mdeditor.text.transform import FENCED_CODE

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.?!])\s+")
_ATX_HEADING = re.compile(r"^[ \t]*#{1,6}(?!#)[ \t]*(.+)$", flags=re.MULTILINE)

NO_HEADINGS = "No headings found"
UNKNOWN_ACTION = "Unknown action"


class AssistantAction(str, Enum):
    SUMMARIZE = "summarize"
    EXPAND = "expand"
    REWRITE = "rewrite"
    EXTRACT_HEADINGS = "extract_headings"

    @classmethod
    def parse(cls, value: str) -> "AssistantAction | None":
        """Return the action for a tag, or None if the tag is not recognized."""
        # Accepts "extract_headings", "extract-headings" and "extractHeadings".
        normalized = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", value.strip()).lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            return None


def run_local_action(
    action: AssistantAction,
    selection: str,
    instruction: str = "",
    config: AssistantConfig | None = None,
) -> str:
    config = config or AssistantConfig()
    match action:
        case AssistantAction.SUMMARIZE:
            return summarize(
                selection,
                instruction,
                max_sentences=config.summary_sentences,
                char_limit=config.summary_char_limit,
            )
        case AssistantAction.EXPAND:
            return expand(selection, instruction)
        case AssistantAction.REWRITE:
            return rewrite(selection, instruction)
        case AssistantAction.EXTRACT_HEADINGS:
            return extract_headings(selection)
        case _:
            assert_never(action)


def summarize(
    selection: str,
    instruction: str = "",
    *,
    max_sentences: int = 3,
    char_limit: int = 200,
) -> str:
    parts = _SENTENCE_BOUNDARY.split(selection)
    if len(parts) > 1:
        sentences = [part.strip() for part in parts if part.strip()]
        output = " ".join(sentences[:max_sentences])
    else:
        output = selection[:char_limit] + ("…" if len(selection) > char_limit else "")
    if instruction:
        output = f"({instruction})\n\n{output}"
    return output


def expand(selection: str, instruction: str = "") -> str:
    return f"{selection}\n\n{instruction or 'Additional detail: '}— Add more content here.\n"


def rewrite(selection: str, instruction: str = "") -> str:
    collapsed = " ".join(line.strip() for line in selection.split("\n"))
    return f"{collapsed}\n\n(Rewritten: {instruction or 'polished'})"


def extract_headings(selection: str) -> str:
    # "#" lines inside fenced code are comments or shell prompts, not headings.
    prose = FENCED_CODE.sub("\n", selection)
    headings = [match.strip() for match in _ATX_HEADING.findall(prose)]
    headings = [heading for heading in headings if heading]
    return "\n".join(headings) if headings else NO_HEADINGS
