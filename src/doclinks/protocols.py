"""Interfaces of the host collaborators consumed by the link engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Mapping, Protocol, runtime_checkable

__all__ = [
    "DocumentSource",
    "ServerConnection",
    "DecorationRenderer",
    "ResourceOpener",
    "Navigator",
    "RawSpan",
]


@dataclass(slots=True, frozen=True)
class RawSpan:
    """A span in host coordinates: 0-based lines and raw byte columns."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int


@runtime_checkable
class DocumentSource(Protocol):
    """Read access to the host's open documents.

    Close and line-change notifications are delivered as
    :class:`~doclinks.events.DocumentClosed` and
    :class:`~doclinks.events.DocumentLinesChanged` events on the bus.
    """

    def current_document_id(self) -> Hashable | None:
        ...

    def is_valid(self, document_id: Hashable) -> bool:
        ...

    def document_uri(self, document_id: Hashable) -> str:
        ...

    def line_content(self, document_id: Hashable, line: int) -> str | None:
        """Return the text of 0-based ``line`` or ``None`` when it does not exist."""
        ...

    def cursor_position(self, document_id: Hashable) -> tuple[int, int]:
        """Return ``(row, column)``: a 1-based row and a raw byte column."""
        ...


@runtime_checkable
class ServerConnection(Protocol):
    """A connected language server as seen by the link engine."""

    name: str

    @property
    def server_capabilities(self) -> Mapping[str, Any]:  # pragma: no cover - protocol
        ...

    async def request(self, method: str, params: Mapping[str, Any]) -> Any:
        """Send a request and return its result; raise on error responses."""
        ...


class DecorationRenderer(Protocol):
    """Draws link decorations in the host editor."""

    def clear_decorations(self, document_id: Hashable, lines: tuple[int, int] | None = None) -> None:
        """Clear decorations on the half-open ``lines`` span, or everywhere."""
        ...

    def add_decoration(self, document_id: Hashable, span: RawSpan, style: str) -> None:
        ...


class ResourceOpener(Protocol):
    """Hands a URI to the operating system."""

    def open(self, uri: str) -> bool | None:
        ...


class Navigator(Protocol):
    """Opens documents and moves the cursor inside them."""

    def open_document(self, uri: str) -> Hashable:
        ...

    def navigate_to(self, document_id: Hashable, row: int, column: int, focus: bool = True) -> None:
        """Place the cursor at a 1-based ``row`` and raw ``column``."""
        ...
