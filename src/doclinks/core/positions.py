"""Protocol positions, ranges and document links.

Coordinates here are protocol coordinates: 0-based lines and character
offsets counted in the server's position encoding. Conversion from the raw
columns the host reports lives in :mod:`doclinks.core.encoding`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

__all__ = [
    "Position",
    "Range",
    "Link",
    "contains",
    "first_link_at",
    "parse_links",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True, order=True)
class Position:
    """A zero-based line plus a character offset in protocol units."""

    line: int
    character: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "line", self._coerce_index(self.line, "line"))
        object.__setattr__(self, "character", self._coerce_index(self.character, "character"))

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        if isinstance(value, bool):
            raise ValueError(f"Position {label} must be an integer")
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Position {label} must be an integer") from exc
        if number < 0:
            raise ValueError(f"Position {label} must be non-negative")
        return number

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Position:
        return cls(line=payload["line"], character=payload["character"])

    def to_payload(self) -> dict[str, int]:
        return {"line": self.line, "character": self.character}


@dataclass(slots=True, frozen=True)
class Range:
    """A start/end pair of positions; ``end`` is never before ``start``."""

    start: Position
    end: Position

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("Range end precedes its start")

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    @property
    def line_span(self) -> tuple[int, int]:
        """Return the covered lines as a half-open ``(first, last)`` pair."""

        return (self.start.line, self.end.line + 1)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Range:
        return cls(
            start=Position.from_payload(payload["start"]),
            end=Position.from_payload(payload["end"]),
        )

    def to_payload(self) -> dict[str, dict[str, int]]:
        return {"start": self.start.to_payload(), "end": self.end.to_payload()}


@dataclass(slots=True, frozen=True)
class Link:
    """A document link as reported by a language server.

    ``target`` is ``None`` until the server resolves it. ``data`` is opaque
    server state that must be sent back with a ``documentLink/resolve``
    request.
    """

    range: Range
    target: str | None = None
    tooltip: str | None = None
    data: Any = None

    @property
    def is_resolved(self) -> bool:
        return bool(self.target)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Link:
        target = payload.get("target")
        tooltip = payload.get("tooltip")
        if target is not None and not isinstance(target, str):
            raise ValueError("Link target must be a string")
        return cls(
            range=Range.from_payload(payload["range"]),
            target=target or None,
            tooltip=tooltip if isinstance(tooltip, str) else None,
            data=payload.get("data"),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"range": self.range.to_payload()}
        if self.target is not None:
            payload["target"] = self.target
        if self.tooltip is not None:
            payload["tooltip"] = self.tooltip
        if self.data is not None:
            payload["data"] = self.data
        return payload

    def with_target(self, target: str | None) -> Link:
        return Link(range=self.range, target=target, tooltip=self.tooltip, data=self.data)


def contains(position: Position, range: Range) -> bool:
    """Return ``True`` when ``position`` lies on or inside ``range``.

    Both boundaries are inclusive, so a cursor resting right after the last
    character of a link still counts as being on it.
    """

    start, end = range.start, range.end
    if start.line < position.line < end.line:
        return True
    if position.line == start.line and position.line == end.line:
        return start.character <= position.character <= end.character
    if position.line == start.line:
        return position.character >= start.character
    if position.line == end.line:
        return position.character <= end.character
    return False


def first_link_at(links: Iterable[Link], position: Position) -> Link | None:
    """Return the first link, in the given order, whose range contains ``position``."""

    for link in links:
        if contains(position, link.range):
            return link
    return None


def parse_links(payload: Any) -> tuple[Link, ...]:
    """Parse a ``textDocument/documentLink`` result into links.

    Entries that do not match the protocol shape are skipped individually.
    """

    if payload is None:
        return ()
    if not isinstance(payload, Iterable) or isinstance(payload, (str, bytes, Mapping)):
        LOGGER.debug("parse_links: unexpected payload type %s", type(payload).__name__)
        return ()

    links: list[Link] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, Mapping):
            LOGGER.debug("parse_links: skipping non-object entry %d", index)
            continue
        try:
            links.append(Link.from_payload(entry))
        except (KeyError, TypeError, ValueError) as exc:
            LOGGER.debug("parse_links: skipping malformed entry %d: %s", index, exc)
    return tuple(links)
