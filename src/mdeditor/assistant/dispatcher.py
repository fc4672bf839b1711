"""Routes assistant requests to the remote model or the local fallbacks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from mdeditor.assistant.fallback import UNKNOWN_ACTION, AssistantAction, run_local_action
from mdeditor.assistant.remote import (
    RemoteAssistant,
    compose_prompt,
    create_chat_model,
    describe_error,
)
from mdeditor.config import AssistantConfig
from mdeditor.errors import RemoteServiceError
from mdeditor.obs.tracing import Timer, TraceStore
from mdeditor.types import AssistantRequest

logger = logging.getLogger(__name__)


class AssistantDispatcher:
    """Stateless request -> output-string mapping.

    With a credential, the request is forwarded to the remote model and its
    text is returned verbatim; failures come back as a visible error string.
    Without one, a local deterministic transform runs. Nothing here raises to
    the caller.

    The credential is held only for the lifetime of this object (or passed per
    call) and is never persisted.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        config: AssistantConfig | None = None,
        llm_factory: Callable[[str, AssistantConfig], Any] = create_chat_model,
        trace_store: TraceStore | None = None,
    ) -> None:
        self._api_key = api_key
        self.config = config or AssistantConfig()
        self._llm_factory = llm_factory
        self.trace_store = trace_store

    def dispatch(self, request: AssistantRequest, *, api_key: str | None = None) -> str:
        credential = api_key or self._api_key
        with Timer() as timer:
            if credential:
                output, failed = self._remote(request, credential)
            else:
                output, failed = self._local(request)
        self._record(request, "remote" if credential else "local", output, failed, timer)
        return output

    async def adispatch(self, request: AssistantRequest, *, api_key: str | None = None) -> str:
        """Like `dispatch`, suspending on the network round-trip."""
        credential = api_key or self._api_key
        with Timer() as timer:
            if credential:
                output, failed = await self._aremote(request, credential)
            else:
                output, failed = self._local(request)
        self._record(request, "remote" if credential else "local", output, failed, timer)
        return output

    def _local(self, request: AssistantRequest) -> tuple[str, bool]:
        action = AssistantAction.parse(request.action)
        if action is None:
            return UNKNOWN_ACTION, False
        return run_local_action(action, request.selection, request.instruction, self.config), False

    def _remote(self, request: AssistantRequest, credential: str) -> tuple[str, bool]:
        prompt = compose_prompt(request.action, request.instruction, request.selection)
        try:
            assistant = RemoteAssistant(self._llm_factory(credential, self.config))
            return assistant.complete(prompt), False
        except RemoteServiceError as exc:
            logger.warning("remote assistant failed: %s", exc)
            return describe_error(exc), True
        except Exception as exc:
            logger.warning("remote assistant could not be created: %s", exc)
            return describe_error(RemoteServiceError(str(exc) or type(exc).__name__)), True

    async def _aremote(self, request: AssistantRequest, credential: str) -> tuple[str, bool]:
        prompt = compose_prompt(request.action, request.instruction, request.selection)
        try:
            assistant = RemoteAssistant(self._llm_factory(credential, self.config))
            return await assistant.acomplete(prompt), False
        except RemoteServiceError as exc:
            logger.warning("remote assistant failed: %s", exc)
            return describe_error(exc), True
        except Exception as exc:
            logger.warning("remote assistant could not be created: %s", exc)
            return describe_error(RemoteServiceError(str(exc) or type(exc).__name__)), True

    def _record(
        self,
        request: AssistantRequest,
        mode: str,
        output: str,
        failed: bool,
        timer: Timer,
    ) -> None:
        if self.trace_store is None:
            return
        self.trace_store.create_assistant_record(
            action=request.action,
            mode=mode,
            output=output,
            failed=failed,
            latency_ms=timer.elapsed_ms,
        )
