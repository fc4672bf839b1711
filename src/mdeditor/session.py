"""Editor session: the document store plus assistant, theme and import/export."""

from __future__ import annotations

from mdeditor.assistant.dispatcher import AssistantDispatcher
from mdeditor.storage.document_store import DocumentStore
from mdeditor.types import AssistantRequest, Document, FileRecord

_EXPORT_TEMPLATE = (
    '<!doctype html><html><head><meta charset="utf-8"><title>Export</title></head>'
    "<body>{body}</body></html>"
)
DARK_THEME = "dark"
LIGHT_THEME = "light"


class EditorSession:
    """Everything one editor window needs, with no module-level state."""

    def __init__(self, store: DocumentStore, dispatcher: AssistantDispatcher | None = None) -> None:
        self.store = store
        self.dispatcher = dispatcher or AssistantDispatcher()
        self.assistant_output = ""

    @property
    def document(self) -> Document:
        return self.store.document

    def new_document(self) -> Document:
        return self.store.new_buffer()

    def save(self, name: str | None = None) -> FileRecord:
        """Save the buffer; an untitled buffer needs `name` and becomes a new file."""
        with self.store.lock:
            if self.store.active_id is None and name:
                file_id = self.store.create(name)
                return self.store.state.files[file_id]
            return self.store.save()

    def import_markdown(self, text: str, name: str | None = None) -> Document:
        """Load file contents into the buffer, optionally filing them under `name`."""
        with self.store.lock:
            self.store.set_markdown(text)
            if name:
                self.store.create(name)
            return self.store.document

    def export_markdown(self) -> str:
        return self.store.document.markdown_source

    def export_html(self) -> str:
        return _EXPORT_TEMPLATE.format(body=self.store.document.rendered_html)

    def insert_text(self, text: str, position: int | None = None) -> Document:
        """Insert `text` as its own paragraph at `position` (default: end)."""
        with self.store.lock:
            source = self.store.document.markdown_source
            if position is None or position > len(source):
                position = len(source)
            position = max(0, position)
            return self.store.set_markdown(f"{source[:position]}\n\n{text}\n\n{source[position:]}")

    def run_assistant(
        self,
        action: str,
        instruction: str = "",
        selection: str | None = None,
        *,
        api_key: str | None = None,
    ) -> str:
        self.assistant_output = self.dispatcher.dispatch(
            self._request(action, instruction, selection), api_key=api_key
        )
        return self.assistant_output

    async def arun_assistant(
        self,
        action: str,
        instruction: str = "",
        selection: str | None = None,
        *,
        api_key: str | None = None,
    ) -> str:
        # No cancellation: a late response overwrites the output slot.
        self.assistant_output = await self.dispatcher.adispatch(
            self._request(action, instruction, selection), api_key=api_key
        )
        return self.assistant_output

    def get_theme(self) -> str:
        return self.store.kv.get(self.store.config.theme_key) or LIGHT_THEME

    def set_theme(self, theme: str) -> str:
        if theme == DARK_THEME:
            self.store.kv.set(self.store.config.theme_key, DARK_THEME)
        else:
            self.store.kv.delete(self.store.config.theme_key)
        return self.get_theme()

    def toggle_theme(self) -> str:
        return self.set_theme(LIGHT_THEME if self.get_theme() == DARK_THEME else DARK_THEME)

    def _request(self, action: str, instruction: str, selection: str | None) -> AssistantRequest:
        return AssistantRequest(
            action=action,
            instruction=instruction,
            selection=selection or self.store.document.markdown_source,
        )
