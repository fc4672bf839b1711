import asyncio
from itertools import count

import pytest
from bs4 import BeautifulSoup

from mdeditor.assistant.dispatcher import AssistantDispatcher
from mdeditor.errors import NameRequired
from mdeditor.render.pipeline import RenderPipeline
from mdeditor.session import EditorSession
from mdeditor.storage.document_store import DocumentStore
from mdeditor.storage.kv import InMemoryKeyValueStore, SqliteKeyValueStore


def _session(kv=None) -> EditorSession:
    ticks = count(1)
    store = DocumentStore(kv or InMemoryKeyValueStore(), clock=lambda: next(ticks))
    return EditorSession(store, AssistantDispatcher())


def test_edit_create_autosave_flow(tmp_path) -> None:
    session = _session(SqliteKeyValueStore(tmp_path / "editor.db"))
    store = session.store

    store.set_markdown("# Title\n\n**bold** and *italic*")
    assert session.document.plain_projection == "Title\n\nbold and italic"

    file_id = store.create("a.md")
    before = store.state.files[file_id].updated_at
    store.set_markdown("# Title\n\nrevised")
    store.autosave_tick()

    reloaded = DocumentStore(SqliteKeyValueStore(tmp_path / "editor.db"))
    assert [record.id for record in reloaded.list()] == [file_id]
    assert reloaded.state.files[file_id].content == "# Title\n\nrevised"
    assert reloaded.state.files[file_id].updated_at > before
    assert reloaded.document.markdown_source == "# Title\n\nrevised"


def test_save_with_name_files_untitled_buffer() -> None:
    session = _session()
    session.store.set_markdown("draft")

    with pytest.raises(NameRequired):
        session.save()

    record = session.save("draft.md")
    assert record.name == "draft.md"
    assert record.content == "draft"
    assert session.store.active_id == record.id


def test_assistant_defaults_to_whole_document_and_inserts_output() -> None:
    session = _session()
    session.store.set_markdown("# Intro\n\nFirst. Second. Third. Fourth.")

    output = session.run_assistant("extract_headings")
    assert output == "Intro"
    assert session.assistant_output == "Intro"

    document = session.insert_text(output)
    assert document.markdown_source == "# Intro\n\nFirst. Second. Third. Fourth.\n\nIntro\n\n"
    assert document.plain_projection.endswith("Intro\n\n")


def test_assistant_uses_selection_when_given() -> None:
    session = _session()
    output = asyncio.run(session.arun_assistant("summarize", selection="A. B. C. D."))
    assert output == "A. B. C."


def test_insert_at_position() -> None:
    session = _session()
    session.store.set_markdown("startend")
    assert session.insert_text("mid", position=5).markdown_source == "start\n\nmid\n\nend"


def test_import_and_export() -> None:
    session = _session()
    document = session.import_markdown("# Imported\n\n<script>x()</script>", name="in.md")

    assert document.plain_projection.startswith("Imported")
    assert session.store.list()[0].name == "in.md"
    assert session.store.list()[0].content == "# Imported\n\n<script>x()</script>"
    assert session.export_markdown() == "# Imported\n\n<script>x()</script>"

    exported = session.export_html()
    assert exported.startswith('<!doctype html><html><head><meta charset="utf-8"><title>Export</title>')
    soup = BeautifulSoup(exported, "html.parser")
    assert soup.find("h1").get_text() == "Imported"
    assert soup.find("script") is None


def test_import_without_name_keeps_buffer_untitled() -> None:
    session = _session()
    session.import_markdown("text only")
    assert session.store.active_id is None
    assert session.store.list() == []


def test_new_document_clears_buffer() -> None:
    session = _session()
    session.store.create("a.md")
    document = session.new_document()
    assert document.markdown_source == ""
    assert document.rendered_html == RenderPipeline().render("")
    assert session.store.active_id is None


def test_theme_preference() -> None:
    kv = InMemoryKeyValueStore()
    session = _session(kv)

    assert session.get_theme() == "light"
    assert session.toggle_theme() == "dark"
    assert kv.get("mdeditor_theme") == "dark"
    assert session.toggle_theme() == "light"
    assert kv.get("mdeditor_theme") is None
