"""Error types raised by the editor core."""

from __future__ import annotations


class MdEditorError(Exception):
    """Base class for editor errors."""


class FileNotFoundInStore(MdEditorError, KeyError):
    """Raised when an operation references a file id that does not exist."""

    def __init__(self, file_id: str) -> None:
        super().__init__(f"File not found: {file_id}")
        self.file_id = file_id

    def __str__(self) -> str:
        return str(self.args[0])


class NameRequired(MdEditorError):
    """Raised by save() when the buffer is untitled and a name must be resolved."""


class ConfirmationRequired(MdEditorError, ValueError):
    """Raised when a destructive operation is invoked without confirmation."""


class EnhancementFailure(MdEditorError, RuntimeError):
    """Raised inside a render enhancement pass."""


class RemoteServiceError(MdEditorError, RuntimeError):
    """Raised when the remote completion service fails or answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
