import asyncio
import json

from mdeditor.config import StorageConfig
from mdeditor.render.pipeline import RenderPipeline
from mdeditor.storage.autosave import AutosaveTimer
from mdeditor.storage.document_store import DocumentStore
from mdeditor.storage.kv import InMemoryKeyValueStore

_CONFIG = StorageConfig()


def _store(kv: InMemoryKeyValueStore) -> DocumentStore:
    return DocumentStore(kv, pipeline=RenderPipeline(passes=[]))


def test_timer_uses_configured_interval_by_default() -> None:
    store = DocumentStore(
        InMemoryKeyValueStore(),
        pipeline=RenderPipeline(passes=[]),
        config=StorageConfig(autosave_interval_seconds=2.5),
    )
    assert AutosaveTimer(store).interval_seconds == 2.5


def test_timer_ticks_on_interval_and_stops_cleanly() -> None:
    kv = InMemoryKeyValueStore()
    store = _store(kv)
    file_id = store.create("a.md")
    store.state.document.markdown_source = "typed but not saved"

    async def _run() -> AutosaveTimer:
        timer = AutosaveTimer(store, interval_seconds=0.01)
        timer.start()
        assert timer.running
        for _ in range(200):
            if timer.ticks >= 2:
                break
            await asyncio.sleep(0.01)
        await timer.stop()
        return timer

    timer = asyncio.run(_run())

    assert timer.ticks >= 2
    assert not timer.running
    assert kv.get(_CONFIG.autosave_key) == "typed but not saved"
    assert json.loads(kv.get(_CONFIG.files_key))[file_id]["content"] == "typed but not saved"


def test_failing_tick_does_not_end_the_timer() -> None:
    class _FlakyKeyValueStore(InMemoryKeyValueStore):
        def __init__(self) -> None:
            super().__init__()
            self.failures = 0

        def set(self, key: str, value: str) -> None:
            if key == _CONFIG.autosave_key and self.failures < 1:
                self.failures += 1
                raise OSError("disk full")
            super().set(key, value)

    kv = _FlakyKeyValueStore()
    store = _store(kv)

    async def _run() -> int:
        timer = AutosaveTimer(store, interval_seconds=0.01)
        timer.start()
        for _ in range(200):
            if timer.ticks >= 1:
                break
            await asyncio.sleep(0.01)
        await timer.stop()
        return timer.ticks

    assert asyncio.run(_run()) >= 1
    assert kv.failures == 1
    assert kv.get(_CONFIG.autosave_key) == store.document.markdown_source


def test_stop_without_start_is_a_no_op() -> None:
    timer = AutosaveTimer(_store(InMemoryKeyValueStore()), interval_seconds=1.0)
    asyncio.run(timer.stop())
    assert not timer.running
