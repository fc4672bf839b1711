"""Periodic autosave driven by the configured interval."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from mdeditor.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


class AutosaveTimer:
    """Calls `DocumentStore.autosave_tick` every `interval_seconds`.

    Must be started from inside a running event loop. A failing tick is logged
    and the timer keeps going; only `stop` ends it.
    """

    def __init__(self, store: DocumentStore, interval_seconds: float | None = None) -> None:
        self.store = store
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else store.config.autosave_interval_seconds
        )
        self.ticks = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="mdeditor-autosave")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.store.autosave_tick()
            except Exception:
                logger.exception("autosave tick failed")
                continue
            self.ticks += 1
