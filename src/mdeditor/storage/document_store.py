"""Named-file store, live buffer and autosave slot."""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from mdeditor.config import StorageConfig
from mdeditor.errors import ConfirmationRequired, FileNotFoundInStore, NameRequired
from mdeditor.render.pipeline import RenderPipeline
from mdeditor.storage.kv import KeyValueStore
from mdeditor.text.transform import to_markdown, to_plain
from mdeditor.types import Document, FileRecord

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _new_file_id() -> str:
    return f"f_{uuid.uuid4().hex}"


@dataclass(slots=True)
class EditorState:
    """Application state owned by the store.

    Invariant: a non-null `active_id` always names a key of `files`.
    """

    document: Document = field(default_factory=Document)
    files: dict[str, FileRecord] = field(default_factory=dict)
    active_id: str | None = None


class DocumentStore:
    """Owns the live buffer and the named-file collection.

    All mutation goes through this class. After every buffer mutation the plain
    projection and the rendered HTML are regenerated from the markdown source.

    Persistence is last-write-wins: the whole collection is serialized as one
    JSON blob and written in a single backing-store call per operation. Other
    processes sharing the same backing store are not coordinated.

    Every public operation holds `lock`, so calls from worker threads each
    complete atomically. The lock is re-entrant: hold it across several calls
    to make a read-modify-write sequence atomic.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        pipeline: RenderPipeline | None = None,
        config: StorageConfig | None = None,
        clock: Callable[[], int] = _epoch_ms,
        id_factory: Callable[[], str] = _new_file_id,
    ) -> None:
        self.kv = kv
        self.pipeline = pipeline or RenderPipeline()
        self.config = config or StorageConfig()
        self.lock = threading.RLock()
        self._clock = clock
        self._id_factory = id_factory
        self.state = EditorState(files=self._load_files())

        saved = self.kv.get(self.config.autosave_key)
        self._refresh(saved if saved is not None else self.config.initial_document)

    @property
    def document(self) -> Document:
        return self.state.document

    @property
    def active_id(self) -> str | None:
        return self.state.active_id

    def active_record(self) -> FileRecord | None:
        with self.lock:
            if self.state.active_id is None:
                return None
            return self.state.files[self.state.active_id]

    def set_markdown(self, source: str) -> Document:
        """Replace the buffer and write it to the autosave slot."""
        with self.lock:
            self._refresh(source)
            self.kv.set(self.config.autosave_key, source)
            return self.state.document

    def set_plain(self, text: str) -> Document:
        """Take an edit of the plain projection as raw markdown source.

        Nothing is escaped: markdown-significant characters typed into the
        plain view become live syntax. The projection is then regenerated from
        the new source and may differ from `text`.
        """
        return self.set_markdown(to_markdown(text))

    def create(self, name: str) -> str:
        """Snapshot the buffer as a new record and make it active."""
        with self.lock:
            file_id = self._id_factory()
            while file_id in self.state.files:
                file_id = self._id_factory()
            self.state.files[file_id] = FileRecord(
                id=file_id,
                name=name.strip() or "Untitled",
                content=self.state.document.markdown_source,
                updated_at=self._clock(),
            )
            self.state.active_id = file_id
            self._persist_files()
        logger.debug("created file %s (%s)", file_id, name)
        return file_id

    def open(self, file_id: str) -> Document:
        """Load a record into the buffer, make it active and persist the selection."""
        with self.lock:
            record = self.state.files.get(file_id)
            if record is None:
                raise FileNotFoundInStore(file_id)
            self.state.active_id = file_id
            self._refresh(record.content)
            self.save()
            return self.state.document

    def save(self) -> FileRecord:
        """Overwrite the active record with the buffer.

        Raises:
            NameRequired: the buffer is untitled; resolve a name and call
                `create` instead.
        """
        with self.lock:
            record = self.active_record()
            if record is None:
                raise NameRequired("The current buffer has no file; a name is required.")
            self._touch(record)
            self._persist_files()
            return record

    def delete(self, file_id: str, *, confirm: bool = False) -> None:
        """Remove a record. Irreversible, so `confirm=True` is required."""
        if not confirm:
            raise ConfirmationRequired(f"Deleting {file_id} requires confirmation.")
        with self.lock:
            if file_id not in self.state.files:
                raise FileNotFoundInStore(file_id)
            del self.state.files[file_id]
            if self.state.active_id == file_id:
                self.state.active_id = None
            self._persist_files()
        logger.debug("deleted file %s", file_id)

    def clear_all(self, *, confirm: bool = False) -> None:
        """Remove every record. Irreversible, so `confirm=True` is required."""
        if not confirm:
            raise ConfirmationRequired("Clearing all files requires confirmation.")
        with self.lock:
            self.state.files.clear()
            self.state.active_id = None
            self._persist_files()

    def new_buffer(self) -> Document:
        """Start an empty, untitled buffer."""
        with self.lock:
            self.state.active_id = None
            self._refresh("")
            return self.state.document

    def autosave_tick(self) -> None:
        """Persist the raw buffer, and the active record if there is one."""
        with self.lock:
            self.kv.set(self.config.autosave_key, self.state.document.markdown_source)
            record = self.active_record()
            if record is not None:
                self._touch(record)
                self._persist_files()

    def list(self) -> list[FileRecord]:
        """Records ordered by last modification, newest first."""
        with self.lock:
            return sorted(
                self.state.files.values(), key=lambda record: record.updated_at, reverse=True
            )

    def _touch(self, record: FileRecord) -> None:
        record.content = self.state.document.markdown_source
        record.updated_at = self._clock()

    def _refresh(self, source: str) -> None:
        document = self.state.document
        document.markdown_source = source
        document.plain_projection = to_plain(source)
        document.rendered_html = self.pipeline.render(source)

    def _persist_files(self) -> None:
        payload = {file_id: record.to_payload() for file_id, record in self.state.files.items()}
        self.kv.set(self.config.files_key, json.dumps(payload, ensure_ascii=False))
        logger.debug("persisted %d files", len(payload))

    def _load_files(self) -> dict[str, FileRecord]:
        raw = self.kv.get(self.config.files_key)
        if not raw:
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("stored file collection is not valid JSON, starting empty: %s", exc)
            return {}
        if not isinstance(payload, dict):
            logger.warning("stored file collection is not a mapping, starting empty")
            return {}

        files: dict[str, FileRecord] = {}
        for file_id, entry in payload.items():
            if not isinstance(entry, dict):
                logger.warning("skipping stored file %s: entry is not a mapping", file_id)
                continue
            try:
                files[str(file_id)] = FileRecord.from_payload(str(file_id), entry)
            except (TypeError, ValueError) as exc:
                logger.warning("skipping stored file %s: %s", file_id, exc)
        return files
