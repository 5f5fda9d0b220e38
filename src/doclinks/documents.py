"""In-memory document store for headless hosts.

Implements the document-source and navigator interfaces on top of plain
text buffers and publishes lifecycle events on the bus, so the link engine
can run without an editor widget (scripts, tests, background services).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Hashable, Iterable, Iterator

from .events import (
    DocumentClosed,
    DocumentFocused,
    DocumentLinesChanged,
    DocumentOpened,
    EventBus,
    InsertModeLeft,
)
from .utils.file_io import normalize_uri, path_to_uri, read_text, uri_to_path

__all__ = ["TextDocument", "DocumentStore"]

LOGGER = logging.getLogger(__name__)


def _generate_document_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class TextDocument:
    """An open document: its lines, cursor and version counter.

    The cursor follows host conventions: a 1-based row and a raw (UTF-8
    byte) column.
    """

    document_id: str
    uri: str
    lines: list[str] = field(default_factory=lambda: [""])
    cursor: tuple[int, int] = (1, 0)
    version_id: int = 1

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def line(self, index: int) -> str | None:
        if 0 <= index < len(self.lines):
            return self.lines[index]
        return None


class DocumentStore:
    """Owns open documents and announces their lifecycle on the event bus.

    Events Emitted:
        - DocumentOpened: When a document is opened
        - DocumentFocused: When a document becomes the current one
        - DocumentLinesChanged: When lines are replaced
        - InsertModeLeft: When an editing session on a document ends
        - DocumentClosed: When a document is closed
    """

    def __init__(self, event_bus: EventBus) -> None:
        self._bus = event_bus
        self._documents: dict[str, TextDocument] = {}
        self._current: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(
        self,
        uri: str,
        text: str = "",
        *,
        make_current: bool = True,
        document_id: str | None = None,
    ) -> TextDocument:
        """Open a document from in-memory text."""

        document = TextDocument(
            document_id=document_id or _generate_document_id(),
            uri=uri,
            lines=_split_lines(text),
        )
        self._documents[document.document_id] = document
        LOGGER.debug("DocumentStore.open: document_id=%s, uri=%s", document.document_id, uri)
        self._bus.publish(DocumentOpened(document_id=document.document_id, uri=uri))
        if make_current:
            self.focus(document.document_id)
        return document

    def open_path(self, path: Path | str, *, make_current: bool = True) -> TextDocument:
        """Open a document from disk, reusing an already open one."""

        uri = path_to_uri(path)
        existing = self.find_by_uri(uri)
        if existing is not None:
            if make_current:
                self.focus(existing.document_id)
            return existing
        return self.open(uri, read_text(path), make_current=make_current)

    def close(self, document_id: str) -> TextDocument | None:
        document = self._documents.pop(document_id, None)
        if document is None:
            LOGGER.warning("DocumentStore.close: unknown document_id=%s", document_id)
            return None
        if self._current == document_id:
            self._current = next(reversed(self._documents), None)
        LOGGER.debug("DocumentStore.close: document_id=%s", document_id)
        self._bus.publish(DocumentClosed(document_id=document_id))
        return document

    def focus(self, document_id: str) -> None:
        if document_id not in self._documents:
            raise KeyError(f"Unknown document: {document_id}")
        self._current = document_id
        self._bus.publish(DocumentFocused(document_id=document_id))

    def leave_insert_mode(self, document_id: str | None = None) -> None:
        self._bus.publish(InsertModeLeft(document_id=document_id or self._current))

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def replace_lines(
        self,
        document_id: str,
        first_line: int,
        last_line: int,
        new_lines: Iterable[str],
    ) -> None:
        """Replace the half-open line span ``[first_line, last_line)``."""

        document = self.get(document_id)
        total = len(document.lines)
        first = max(0, min(first_line, total))
        last = max(first, min(last_line, total))
        replacement = list(new_lines)
        document.lines[first:last] = replacement
        if not document.lines:
            document.lines.append("")
        document.version_id += 1
        self._bus.publish(
            DocumentLinesChanged(
                document_id=document_id,
                first_line=first,
                last_line=last,
                new_last_line=first + len(replacement),
            )
        )

    def set_text(self, document_id: str, text: str) -> None:
        document = self.get(document_id)
        self.replace_lines(document_id, 0, len(document.lines), _split_lines(text))

    def set_cursor(self, document_id: str, row: int, column: int) -> None:
        document = self.get(document_id)
        document.cursor = (max(1, int(row)), max(0, int(column)))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, document_id: str) -> TextDocument:
        try:
            return self._documents[document_id]
        except KeyError:
            raise KeyError(f"Unknown document: {document_id}") from None

    def find_by_uri(self, uri: str) -> TextDocument | None:
        wanted = normalize_uri(uri)
        for document in self._documents.values():
            if normalize_uri(document.uri) == wanted:
                return document
        return None

    def iter_documents(self) -> Iterator[TextDocument]:
        return iter(tuple(self._documents.values()))

    def current_document_id(self) -> str | None:
        return self._current

    def is_valid(self, document_id: Hashable) -> bool:
        return document_id in self._documents

    def document_uri(self, document_id: Hashable) -> str:
        return self.get(document_id).uri  # type: ignore[arg-type]

    def line_content(self, document_id: Hashable, line: int) -> str | None:
        document = self._documents.get(document_id)  # type: ignore[arg-type]
        if document is None:
            return None
        return document.line(line)

    def cursor_position(self, document_id: Hashable) -> tuple[int, int]:
        return self.get(document_id).cursor  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def open_document(self, uri: str) -> str:
        """Return the id of the document at ``uri``, loading it from disk if needed."""

        existing = self.find_by_uri(uri)
        if existing is not None:
            return existing.document_id
        path = uri_to_path(uri)
        if path is None:
            raise ValueError(f"Cannot open non-file URI: {uri}")
        return self.open(uri, read_text(path), make_current=False).document_id

    def navigate_to(self, document_id: Hashable, row: int, column: int, focus: bool = True) -> None:
        document = self.get(document_id)  # type: ignore[arg-type]
        if focus and self._current != document.document_id:
            self.focus(document.document_id)
        last_row = len(document.lines)
        clamped_row = max(1, min(int(row), last_row))
        line_length = len(document.lines[clamped_row - 1].encode("utf-8"))
        document.cursor = (clamped_row, max(0, min(int(column), line_length)))


def _split_lines(text: str) -> list[str]:
    lines = text.split("\n")
    return lines or [""]
