"""Asynchronous link discovery round trips.

A refresh checks that some server attached to the document advertises
``documentLinkProvider``, sends ``textDocument/documentLink`` and commits
the parsed response into the registry. The completion re-validates the
document before committing, since it may have closed while the request was
in flight.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable, Hashable

from .core.positions import parse_links
from .decorations import LinkHighlighter
from .errors import LinkRequestError
from .events import (
    DocumentFocused,
    EventBus,
    IdleTick,
    InsertModeLeft,
    NoticePosted,
    ServerAttached,
)
from .protocols import DocumentSource
from .registry import LinkRegistry
from .servers import DOCUMENT_LINK_CAPABILITY, DOCUMENT_LINK_METHOD, ServerConnectionManager
from .settings import LinkSettings

__all__ = ["RefreshOutcome", "LinkRefreshController"]

LOGGER = logging.getLogger(__name__)

_TRIGGER_EVENTS = (DocumentFocused, InsertModeLeft, IdleTick, ServerAttached)


class RefreshOutcome(enum.Enum):
    """Terminal state of one refresh round trip."""

    COMMITTED = "committed"
    NO_CAPABILITY = "no_capability"
    FAILED = "failed"
    STALE = "stale"
    SUPERSEDED = "superseded"


class LinkRefreshController:
    """Fetches links for a document and commits them into the registry.

    Each trigger issues exactly one request; concurrent requests for the same
    document are not merged. Responses carry a sequence token so an older
    response arriving after a newer one is dropped when
    ``discard_superseded_responses`` is enabled.
    """

    def __init__(
        self,
        *,
        registry: LinkRegistry,
        documents: DocumentSource,
        servers: ServerConnectionManager,
        event_bus: EventBus,
        settings: Callable[[], LinkSettings],
        highlighter: LinkHighlighter | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._registry = registry
        self._documents = documents
        self._servers = servers
        self._bus = event_bus
        self._settings = settings
        self._highlighter = highlighter
        self._loop = loop
        self._tasks: set[asyncio.Task[RefreshOutcome]] = set()
        self._triggers_installed = False

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def install_triggers(self) -> None:
        """Refresh on focus, insert-mode exit, idle ticks and server attach."""

        if self._triggers_installed:
            return
        for event_type in _TRIGGER_EVENTS:
            self._bus.subscribe(event_type, self._on_trigger)
        self._triggers_installed = True

    def uninstall_triggers(self) -> None:
        if not self._triggers_installed:
            return
        for event_type in _TRIGGER_EVENTS:
            self._bus.unsubscribe(event_type, self._on_trigger)
        self._triggers_installed = False

    def _on_trigger(self, event: DocumentFocused | InsertModeLeft | IdleTick | ServerAttached) -> None:
        self.refresh(event.document_id)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, document_id: Hashable | None = None) -> asyncio.Task[RefreshOutcome] | None:
        """Schedule a refresh on the event loop and return its task."""

        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                LOGGER.warning("LinkRefreshController.refresh: no running event loop; refresh skipped")
                return None

        task = loop.create_task(self.refresh_async(document_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def refresh_async(self, document_id: Hashable | None = None) -> RefreshOutcome:
        """Run one discovery round trip and report how it ended."""

        target = document_id if document_id is not None else self._documents.current_document_id()
        if target is None or not self._documents.is_valid(target):
            LOGGER.debug("LinkRefreshController: no valid document to refresh (%s)", target)
            return RefreshOutcome.STALE

        if not self._servers.supports(target, DOCUMENT_LINK_CAPABILITY):
            LOGGER.debug("LinkRefreshController: no link provider for document_id=%s", target)
            return RefreshOutcome.NO_CAPABILITY

        settings = self._settings()
        sequence = self._registry.next_sequence(target) if settings.discard_superseded_responses else None
        params = {"textDocument": {"uri": self._documents.document_uri(target)}}

        try:
            result = await self._servers.request(target, DOCUMENT_LINK_METHOD, params)
        except LinkRequestError as exc:
            LOGGER.error("Document link request failed for document_id=%s: %s", target, exc)
            self._bus.publish(NoticePosted(message=exc.message, level="error", code=exc.error_code))
            return RefreshOutcome.FAILED

        return self._complete(target, result, sequence)

    def _complete(self, document_id: Hashable, result: object, sequence: int | None) -> RefreshOutcome:
        if not self._documents.is_valid(document_id):
            LOGGER.debug("LinkRefreshController: document_id=%s closed before response", document_id)
            return RefreshOutcome.STALE

        links = parse_links(result)
        committed = self._registry.commit(
            document_id,
            links,
            sequence=sequence,
            event_bus=self._bus,
            document_validator=self._documents.is_valid,
        )
        if not committed:
            if self._documents.is_valid(document_id):
                return RefreshOutcome.SUPERSEDED
            return RefreshOutcome.STALE

        if self._highlighter is not None and self._settings().highlight_enabled:
            self._highlighter.refresh(document_id)
        return RefreshOutcome.COMMITTED

    async def drain(self) -> None:
        """Wait for all scheduled refreshes to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
