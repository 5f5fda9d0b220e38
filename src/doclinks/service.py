"""Public facade wiring the link engine to a host editor."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any, Hashable, Mapping

from .core.positions import Link, Position
from .decorations import LinkHighlighter
from .events import EventBus, SettingsChanged
from .protocols import DecorationRenderer, DocumentSource, Navigator, ResourceOpener
from .refresh import LinkRefreshController, RefreshOutcome
from .registry import LinkRegistry, get_link_registry
from .resolution import LinkResolver
from .servers import ServerConnectionManager
from .settings import LinkSettings
from .utils.logging import disable_debug_log, enable_debug_log

__all__ = ["DocumentLinks"]

LOGGER = logging.getLogger(__name__)


class DocumentLinks:
    """Document link support for one host editor.

    Example::

        links = DocumentLinks(documents=store, servers=servers, opener=opener,
                              navigator=store, renderer=renderer, event_bus=bus)
        links.setup()
        ...
        if not links.activate():
            go_to_definition()
    """

    def __init__(
        self,
        *,
        documents: DocumentSource,
        servers: ServerConnectionManager,
        opener: ResourceOpener,
        navigator: Navigator | None = None,
        renderer: DecorationRenderer | None = None,
        event_bus: EventBus | None = None,
        settings: LinkSettings | None = None,
        registry: LinkRegistry | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._bus = event_bus or EventBus()
        self._documents = documents
        self._servers = servers
        self._settings = settings or LinkSettings()
        self._registry = registry or get_link_registry()
        self._registry.bind(self._bus, documents.is_valid)
        self._apply_debug_logging(None, self._settings)

        self._highlighter: LinkHighlighter | None = None
        if renderer is not None:
            self._highlighter = LinkHighlighter(
                renderer,
                documents,
                self._registry,
                encoding_for=self.encoding_for,
                style=self._settings.highlight_style,
                event_bus=self._bus,
            )

        self._controller = LinkRefreshController(
            registry=self._registry,
            documents=documents,
            servers=servers,
            event_bus=self._bus,
            settings=lambda: self._settings,
            highlighter=self._highlighter,
            loop=loop,
        )
        self._resolver = LinkResolver(
            registry=self._registry,
            documents=documents,
            opener=opener,
            navigator=navigator,
            servers=servers,
            event_bus=self._bus,
            encoding_for=self.encoding_for,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def registry(self) -> LinkRegistry:
        return self._registry

    @property
    def settings(self) -> LinkSettings:
        return self._settings

    @property
    def controller(self) -> LinkRefreshController:
        return self._controller

    @property
    def resolver(self) -> LinkResolver:
        return self._resolver

    @property
    def highlighter(self) -> LinkHighlighter | None:
        return self._highlighter

    def encoding_for(self, document_id: Hashable) -> str:
        return self._servers.position_encoding(document_id, self._settings.position_encoding)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def setup(self) -> None:
        """Start refreshing links on the host's trigger events."""

        self._controller.install_triggers()

    def teardown(self) -> None:
        self._controller.uninstall_triggers()
        if self._highlighter is not None:
            self._highlighter.clear_all()

    # ------------------------------------------------------------------
    # Produced surface
    # ------------------------------------------------------------------

    def refresh(self, document_id: Hashable | None = None) -> asyncio.Task[RefreshOutcome] | None:
        return self._controller.refresh(document_id)

    async def refresh_async(self, document_id: Hashable | None = None) -> RefreshOutcome:
        return await self._controller.refresh_async(document_id)

    def get_links(self, document_id: Hashable | None = None) -> tuple[Link, ...]:
        target = document_id if document_id is not None else self._documents.current_document_id()
        if target is None:
            return ()
        return self._registry.get(target)

    def link_at(self, document_id: Hashable | None = None, position: Position | None = None) -> Link | None:
        return self._resolver.link_at(document_id, position)

    def activate(self, target: str | None = None) -> bool:
        return self._resolver.activate(target)

    def configure(self, settings: LinkSettings | Mapping[str, Any] | None = None, **overrides: Any) -> LinkSettings:
        """Apply new settings; returns the settings now in effect."""

        previous = self._settings
        if isinstance(settings, LinkSettings):
            updated = settings.merged(overrides)
        else:
            merged: dict[str, Any] = dict(settings or {})
            merged.update(overrides)
            updated = previous.merged(merged)
        if updated == previous:
            return previous

        self._settings = updated
        LOGGER.debug("DocumentLinks.configure: %s", asdict(updated))
        self._apply_debug_logging(previous, updated)
        self._apply_highlight_settings(previous, updated)
        self._bus.publish(SettingsChanged(settings=asdict(updated)))
        return updated

    def _apply_debug_logging(self, previous: LinkSettings | None, updated: LinkSettings) -> None:
        if previous is not None and previous.debug_logging == updated.debug_logging:
            return
        if updated.debug_logging:
            LOGGER.info("Link debug log enabled at %s", enable_debug_log())
        elif previous is not None:
            disable_debug_log()

    def _apply_highlight_settings(self, previous: LinkSettings, updated: LinkSettings) -> None:
        if self._highlighter is None:
            return
        if not updated.highlight_enabled:
            self._highlighter.clear_all()
            self._highlighter.set_style(updated.highlight_style)
            return
        if updated.highlight_style != self._highlighter.style:
            self._highlighter.set_style(updated.highlight_style)
        if not previous.highlight_enabled:
            for document_id in self._registry.document_ids(self._bus):
                self._highlighter.refresh(document_id)
