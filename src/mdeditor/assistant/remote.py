"""Remote text completion through a LangChain chat model."""

from __future__ import annotations

import json
from typing import Any

from langchain_core.messages import HumanMessage

from mdeditor.config import AssistantConfig
from mdeditor.errors import RemoteServiceError


def create_chat_model(api_key: str, config: AssistantConfig | None = None) -> Any:
    """Build the OpenAI chat model for a caller-supplied credential."""
    config = config or AssistantConfig()

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=config.model,
        api_key=api_key,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
    )


def compose_prompt(action: str, instruction: str, selection: str) -> str:
    return f"{action}: {instruction}\n\n{selection}"


class RemoteAssistant:
    """Single request/response exchange with a chat model.

    Any failure, transport or non-success status, is raised as
    `RemoteServiceError`.
    """

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    def complete(self, prompt: str) -> str:
        try:
            response = self.llm.invoke([HumanMessage(content=prompt)])
        except Exception as exc:
            raise _as_remote_error(exc) from exc
        return _extract_text(response)

    async def acomplete(self, prompt: str) -> str:
        try:
            response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:
            raise _as_remote_error(exc) from exc
        return _extract_text(response)


def describe_error(error: RemoteServiceError) -> str:
    """Text shown in place of the assistant output when the call failed."""
    if error.status_code is not None:
        return f"OpenAI error: {error.status_code} {error}"
    return f"OpenAI call failed: {error}"


def _as_remote_error(exc: Exception) -> RemoteServiceError:
    if isinstance(exc, RemoteServiceError):
        return exc
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return RemoteServiceError(_error_body(exc), status_code=status_code)
    return RemoteServiceError(str(exc) or type(exc).__name__)


def _error_body(exc: Exception) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, (dict, list)):
        return json.dumps(body, ensure_ascii=False)
    if body:
        return str(body)
    response = getattr(exc, "response", None)
    text = getattr(response, "text", None)
    if isinstance(text, str) and text:
        return text
    return str(exc)


def _extract_text(response: Any) -> str:
    if isinstance(response, str):
        return response
    if isinstance(response, dict):
        return str(response.get("content", ""))
    content = getattr(response, "content", "")
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)
