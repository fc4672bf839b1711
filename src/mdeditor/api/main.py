"""FastAPI entrypoint for the editor: document, files, assistant, export."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel, Field

from mdeditor.assistant.dispatcher import AssistantDispatcher
from mdeditor.config import AssistantConfig, RenderConfig, StorageConfig
from mdeditor.errors import ConfirmationRequired, FileNotFoundInStore, NameRequired
from mdeditor.obs.tracing import TraceStore
from mdeditor.render.pipeline import RenderPipeline
from mdeditor.session import EditorSession
from mdeditor.storage.autosave import AutosaveTimer
from mdeditor.storage.document_store import DocumentStore
from mdeditor.storage.kv import SqliteKeyValueStore
from mdeditor.types import Document, FileRecord


def _assistant_config() -> AssistantConfig:
    return AssistantConfig(model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"))


class MarkdownUpdate(BaseModel):
    markdown: str


class PlainUpdate(BaseModel):
    text: str


class InsertRequest(BaseModel):
    text: str
    position: int | None = Field(default=None, ge=0)


class CreateFileRequest(BaseModel):
    name: str = Field(min_length=1)


class SaveRequest(BaseModel):
    name: str | None = None


class ImportRequest(BaseModel):
    content: str
    name: str | None = None


class AssistantPayload(BaseModel):
    action: str = Field(min_length=1)
    instruction: str = ""
    selection: str | None = None
    api_key: str | None = None


class ThemeUpdate(BaseModel):
    theme: str = Field(min_length=1)


def _storage_config_from_env() -> StorageConfig:
    interval = os.getenv("MDEDITOR_AUTOSAVE_SECONDS")
    return StorageConfig(
        sqlite_path=os.getenv("MDEDITOR_DB", "mdeditor.db"),
        **({"autosave_interval_seconds": float(interval)} if interval else {}),
    )


_trace_store = TraceStore()
_storage_config = _storage_config_from_env()
_pipeline = RenderPipeline(config=RenderConfig(), trace_store=_trace_store)
_store = DocumentStore(
    SqliteKeyValueStore(_storage_config.sqlite_path),
    pipeline=_pipeline,
    config=_storage_config,
)
_session = EditorSession(
    _store,
    AssistantDispatcher(
        api_key=os.getenv("OPENAI_API_KEY") or None,
        config=_assistant_config(),
        trace_store=_trace_store,
    ),
)
_autosave = AutosaveTimer(_store)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    _autosave.start()
    try:
        yield
    finally:
        await _autosave.stop()


app = FastAPI(title="Markdown Editor", version="0.1.0", lifespan=lifespan)


def _document_payload(document: Document) -> dict[str, Any]:
    with _store.lock:
        return {
            "markdown": document.markdown_source,
            "plain": document.plain_projection,
            "html": document.rendered_html,
            "active_id": _store.active_id,
        }


def _file_payload(record: FileRecord) -> dict[str, Any]:
    return {"id": record.id, "name": record.name, "updated_at": record.updated_at}


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": bool(os.getenv("OPENAI_API_KEY")),
        "assistant_mode": "remote" if os.getenv("OPENAI_API_KEY") else "local",
        "file_count": len(_store.list()),
        "autosave_interval_seconds": _storage_config.autosave_interval_seconds,
        "autosave_running": _autosave.running,
    }


@app.get("/document")
def get_document() -> dict[str, Any]:
    return _document_payload(_session.document)


@app.put("/document/markdown")
def put_markdown(update: MarkdownUpdate) -> dict[str, Any]:
    return _document_payload(_store.set_markdown(update.markdown))


@app.put("/document/plain")
def put_plain(update: PlainUpdate) -> dict[str, Any]:
    payload = _document_payload(_store.set_plain(update.text))
    payload["reinterpreted_as"] = "markdown"
    return payload


@app.post("/document/new")
def new_document() -> dict[str, Any]:
    return _document_payload(_session.new_document())


@app.post("/document/insert")
def insert(request: InsertRequest) -> dict[str, Any]:
    return _document_payload(_session.insert_text(request.text, request.position))


@app.get("/files")
def list_files() -> dict[str, Any]:
    return {
        "items": [_file_payload(record) for record in _store.list()],
        "active_id": _store.active_id,
    }


@app.post("/files")
def create_file(request: CreateFileRequest) -> dict[str, Any]:
    file_id = _store.create(request.name)
    return {"id": file_id, "active_id": _store.active_id}


@app.post("/files/{file_id}/open")
def open_file(file_id: str) -> dict[str, Any]:
    try:
        document = _store.open(file_id)
    except FileNotFoundInStore as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _document_payload(document)


@app.delete("/files/{file_id}")
def delete_file(file_id: str, confirm: bool = False) -> dict[str, Any]:
    try:
        _store.delete(file_id, confirm=confirm)
    except ConfirmationRequired as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FileNotFoundInStore as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"deleted": file_id, "active_id": _store.active_id}


@app.delete("/files")
def clear_files(confirm: bool = False) -> dict[str, Any]:
    try:
        _store.clear_all(confirm=confirm)
    except ConfirmationRequired as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"cleared": True}


@app.post("/save")
def save(request: SaveRequest) -> dict[str, Any]:
    try:
        record = _session.save(request.name)
    except NameRequired as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _file_payload(record)


@app.post("/autosave")
def autosave() -> dict[str, Any]:
    _store.autosave_tick()
    record = _store.active_record()
    return {"active": _file_payload(record) if record is not None else None}


@app.post("/assistant")
async def assistant(payload: AssistantPayload) -> dict[str, Any]:
    output = await _session.arun_assistant(
        payload.action,
        payload.instruction,
        payload.selection,
        api_key=payload.api_key,
    )
    return {"output": output}


@app.post("/import")
def import_markdown(request: ImportRequest) -> dict[str, Any]:
    return _document_payload(_session.import_markdown(request.content, request.name))


@app.get("/export/markdown", response_class=PlainTextResponse)
def export_markdown() -> str:
    return _session.export_markdown()


@app.get("/export/html", response_class=HTMLResponse)
def export_html() -> str:
    return _session.export_html()


@app.get("/theme")
def get_theme() -> dict[str, str]:
    return {"theme": _session.get_theme()}


@app.put("/theme")
def put_theme(update: ThemeUpdate) -> dict[str, str]:
    return {"theme": _session.set_theme(update.theme)}


@app.get("/traces/render")
def render_traces(limit: int = 20) -> dict[str, Any]:
    return {"items": [asdict(record) for record in _trace_store.list_render(limit=limit)]}


@app.get("/traces/assistant")
def assistant_traces(limit: int = 20) -> dict[str, Any]:
    return {"items": [asdict(record) for record in _trace_store.list_assistant(limit=limit)]}


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
