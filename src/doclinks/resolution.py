"""Cursor-to-link lookup and link activation."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Hashable

from .core.encoding import CoordinateTranslator
from .core.positions import Link, Position, first_link_at
from .errors import (
    CoordinateTranslationError,
    LinkRequestError,
    MalformedTargetError,
    UnresolvedTargetError,
)
from .events import EventBus, NoticePosted
from .protocols import DocumentSource, Navigator, ResourceOpener
from .registry import LinkRegistry
from .servers import DOCUMENT_LINK_RESOLVE_METHOD, ServerConnectionManager
from .targets import LocationTarget, ResourceTarget, parse_target

__all__ = ["LinkResolver"]

LOGGER = logging.getLogger(__name__)

EncodingLookup = Callable[[Hashable], str]


class LinkResolver:
    """Answers "which link is under the cursor" and acts on link targets."""

    def __init__(
        self,
        *,
        registry: LinkRegistry,
        documents: DocumentSource,
        opener: ResourceOpener,
        navigator: Navigator | None = None,
        servers: ServerConnectionManager | None = None,
        event_bus: EventBus | None = None,
        encoding_for: EncodingLookup,
    ) -> None:
        self._registry = registry
        self._documents = documents
        self._opener = opener
        self._navigator = navigator
        self._servers = servers
        self._bus = event_bus
        self._encoding_for = encoding_for
        self._unresolved_warned = False
        self._pending: set[asyncio.Task[bool]] = set()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def cursor_position(self, document_id: Hashable) -> Position | None:
        """Return the cursor of ``document_id`` in protocol coordinates."""

        row, column = self._documents.cursor_position(document_id)
        line = row - 1
        translator = CoordinateTranslator(self._documents, self._encoding_for(document_id))
        try:
            character = translator.to_protocol(document_id, line, column)
        except CoordinateTranslationError:
            LOGGER.debug("LinkResolver: cursor line %d missing in document_id=%s", line, document_id)
            return None
        return Position(line=line, character=character)

    def link_at(self, document_id: Hashable | None = None, position: Position | None = None) -> Link | None:
        """Return the first link containing ``position`` (default: the cursor)."""

        target = document_id if document_id is not None else self._documents.current_document_id()
        if target is None or not self._documents.is_valid(target):
            return None
        links = self._registry.get(target)
        if not links:
            return None
        if position is None:
            position = self.cursor_position(target)
            if position is None:
                return None
        return first_link_at(links, position)

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate(self, target: str | None = None, *, document_id: Hashable | None = None) -> bool:
        """Open or jump to ``target``, or to the link under the cursor.

        Returns ``False`` when there is no link to act on, so callers can
        fall back to another action such as go-to-definition.
        """

        if target is not None:
            return self.activate_target(target)

        resolved_id = document_id if document_id is not None else self._documents.current_document_id()
        link = self.link_at(resolved_id)
        if link is None:
            return False
        if link.is_resolved:
            return self.activate_target(link.target)
        return self._activate_unresolved(resolved_id, link)

    def activate_target(self, target: str | None) -> bool:
        try:
            destination = parse_target(target)
        except MalformedTargetError as exc:
            LOGGER.warning("Cannot activate link: %s", exc)
            return False

        if isinstance(destination, LocationTarget):
            return self._jump(destination)
        return self._open(destination)

    def _jump(self, destination: LocationTarget) -> bool:
        if self._navigator is None:
            LOGGER.warning("Cannot jump to %s: no navigator configured", destination.uri)
            return False
        try:
            document_id = self._navigator.open_document(destination.uri)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Cannot open %s: %s", destination.uri, exc)
            return False
        self._navigator.navigate_to(document_id, destination.row, destination.column, True)
        LOGGER.debug(
            "LinkResolver: jumped to %s row=%d column=%d",
            destination.uri,
            destination.row,
            destination.column,
        )
        return True

    def _open(self, destination: ResourceTarget) -> bool:
        opened = self._opener.open(destination.uri)
        if opened is False:
            LOGGER.warning("Resource opener declined %s", destination.uri)
            return False
        return True

    # ------------------------------------------------------------------
    # Unresolved links
    # ------------------------------------------------------------------

    def _activate_unresolved(self, document_id: Hashable, link: Link) -> bool:
        if self._servers is not None and self._servers.supports_link_resolve(document_id):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                LOGGER.warning("Cannot resolve link target: no running event loop")
                return False
            task = loop.create_task(self.resolve_and_activate(document_id, link))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return True

        self._warn_unresolved()
        return True

    async def resolve_and_activate(self, document_id: Hashable, link: Link) -> bool:
        """Ask the server for ``link``'s target and activate it."""

        if self._servers is None:
            self._warn_unresolved()
            return False
        try:
            result = await self._servers.request(document_id, DOCUMENT_LINK_RESOLVE_METHOD, link.to_payload())
        except LinkRequestError as exc:
            LOGGER.error("Document link resolve failed for document_id=%s: %s", document_id, exc)
            if self._bus is not None:
                self._bus.publish(NoticePosted(message=exc.message, level="error", code=exc.error_code))
            return False

        target = result.get("target") if isinstance(result, dict) else None
        if not isinstance(target, str) or not target:
            self._warn_unresolved()
            return False
        return self.activate_target(target)

    async def drain(self) -> None:
        """Wait for all scheduled resolve requests to finish."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _warn_unresolved(self) -> None:
        if self._unresolved_warned:
            return
        self._unresolved_warned = True
        notice = UnresolvedTargetError()
        LOGGER.warning("%s", notice)
        if self._bus is not None:
            self._bus.publish(NoticePosted(message=notice.message, level="warning", code=notice.error_code))
