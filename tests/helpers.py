"""Shared test helpers and stub classes.

This module contains reusable host stubs that are used across multiple test
files. Import from here instead of duplicating these classes in individual
test files.
"""

from __future__ import annotations

import asyncio
from typing import Any, Hashable, Mapping

from doclinks.core.positions import Link, Position, Range
from doclinks.protocols import RawSpan


def make_link(
    start_line: int,
    start_character: int,
    end_line: int,
    end_character: int,
    target: str | None = None,
    **extra: Any,
) -> Link:
    """Build a :class:`Link` from plain coordinates."""
    return Link(
        range=Range(
            start=Position(start_line, start_character),
            end=Position(end_line, end_character),
        ),
        target=target,
        **extra,
    )


def link_payload(
    start_line: int,
    start_character: int,
    end_line: int,
    end_character: int,
    target: str | None = None,
) -> dict[str, Any]:
    """Build a ``DocumentLink`` wire object as a server would send it."""
    payload: dict[str, Any] = {
        "range": {
            "start": {"line": start_line, "character": start_character},
            "end": {"line": end_line, "character": end_character},
        }
    }
    if target is not None:
        payload["target"] = target
    return payload


class FakeConnection:
    """Scriptable language server connection.

    ``responses`` maps a method name to the reply returned for every call;
    :meth:`queue` lines up one-shot replies that take precedence. A reply
    that is an exception is raised; an :class:`asyncio.Future` is awaited, so
    tests can control the order in which replies arrive.

    Example:
        conn = FakeConnection(responses={"textDocument/documentLink": [link_payload(0, 0, 0, 3)]})
        conn.queue("textDocument/documentLink", first_future, second_future)
    """

    def __init__(
        self,
        name: str = "fake-ls",
        capabilities: Mapping[str, Any] | None = None,
        responses: Mapping[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.server_capabilities: dict[str, Any] = dict(
            capabilities if capabilities is not None else {"documentLinkProvider": {}}
        )
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, Mapping[str, Any]]] = []
        self._queued: dict[str, list[Any]] = {}

    def queue(self, method: str, *replies: Any) -> None:
        self._queued.setdefault(method, []).extend(replies)

    async def request(self, method: str, params: Mapping[str, Any]) -> Any:
        self.calls.append((method, params))
        queued = self._queued.get(method)
        response = queued.pop(0) if queued else self.responses.get(method)
        if isinstance(response, asyncio.Future):
            response = await response
        if isinstance(response, BaseException):
            raise response
        return response


class RecordingRenderer:
    """Decoration renderer that records every call and keeps what is drawn.

    ``cleared`` and ``added`` are call logs; :meth:`spans_for` answers what is
    currently on screen for a document.
    """

    def __init__(self) -> None:
        self.cleared: list[tuple[Hashable, tuple[int, int] | None]] = []
        self.added: list[tuple[Hashable, RawSpan, str]] = []
        self._drawn: dict[Hashable, list[RawSpan]] = {}

    def clear_decorations(self, document_id: Hashable, lines: tuple[int, int] | None = None) -> None:
        self.cleared.append((document_id, lines))
        if lines is None:
            self._drawn.pop(document_id, None)
            return
        first, last = lines
        self._drawn[document_id] = [
            span for span in self._drawn.get(document_id, []) if not first <= span.start_line < last
        ]

    def add_decoration(self, document_id: Hashable, span: RawSpan, style: str) -> None:
        self.added.append((document_id, span, style))
        self._drawn.setdefault(document_id, []).append(span)

    def spans_for(self, document_id: Hashable) -> list[RawSpan]:
        return list(self._drawn.get(document_id, []))


class RecordingOpener:
    """Resource opener that records URIs instead of launching anything."""

    def __init__(self, result: bool | None = True) -> None:
        self.result = result
        self.opened: list[str] = []

    def open(self, uri: str) -> bool | None:
        self.opened.append(uri)
        return self.result
