"""Link decoration bookkeeping.

Tracks which documents carry link decorations and converts the cached
protocol ranges into raw host spans for the renderer. The actual drawing is
delegated to the host's :class:`~doclinks.protocols.DecorationRenderer`.
"""

from __future__ import annotations

import logging
from typing import Callable, Hashable

from .core.encoding import CoordinateTranslator
from .core.positions import Link
from .errors import CoordinateTranslationError
from .events import DecorationsInvalidated, EventBus, LinksDiscarded
from .protocols import DecorationRenderer, DocumentSource, RawSpan
from .registry import LinkRegistry

__all__ = ["LinkHighlighter"]

LOGGER = logging.getLogger(__name__)

EncodingLookup = Callable[[Hashable], str]


class LinkHighlighter:
    """Draws the registry's links through a decoration renderer.

    Events Consumed:
        - DecorationsInvalidated: clears decorations on the edited lines
        - LinksDiscarded: forgets a closed document
    """

    def __init__(
        self,
        renderer: DecorationRenderer,
        documents: DocumentSource,
        registry: LinkRegistry,
        *,
        encoding_for: EncodingLookup,
        style: str = "Underlined",
        event_bus: EventBus | None = None,
    ) -> None:
        self._renderer = renderer
        self._documents = documents
        self._registry = registry
        self._encoding_for = encoding_for
        self._style = style
        self._decorated: set[Hashable] = set()
        self._bus = event_bus
        if event_bus is not None:
            event_bus.subscribe(DecorationsInvalidated, self._on_decorations_invalidated)
            event_bus.subscribe(LinksDiscarded, self._on_links_discarded)

    @property
    def style(self) -> str:
        return self._style

    def set_style(self, style: str) -> None:
        """Change the decoration style and redraw decorated documents."""

        if style == self._style:
            return
        self._style = style
        for document_id in list(self._decorated):
            self.refresh(document_id)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def refresh(self, document_id: Hashable) -> int:
        """Redraw every link of ``document_id``; return the number drawn.

        Links on lines that no longer exist are skipped individually.
        """

        if not self._documents.is_valid(document_id):
            self._decorated.discard(document_id)
            return 0

        self._renderer.clear_decorations(document_id, None)
        translator = CoordinateTranslator(self._documents, self._encoding_for(document_id))
        drawn = 0
        for link in self._registry.get(document_id):
            span = self._raw_span(translator, document_id, link)
            if span is None:
                continue
            self._renderer.add_decoration(document_id, span, self._style)
            drawn += 1

        if drawn:
            self._decorated.add(document_id)
        else:
            self._decorated.discard(document_id)
        LOGGER.debug("LinkHighlighter.refresh: document_id=%s, drawn=%d", document_id, drawn)
        return drawn

    def clear(self, document_id: Hashable, lines: tuple[int, int] | None = None) -> None:
        """Clear decorations of ``document_id`` on ``lines`` or everywhere."""

        if document_id not in self._decorated:
            return
        self._renderer.clear_decorations(document_id, lines)
        if lines is None:
            self._decorated.discard(document_id)

    def clear_all(self) -> None:
        for document_id in list(self._decorated):
            self.clear(document_id)
        self._decorated.clear()

    def has_decorations(self, document_id: Hashable) -> bool:
        return document_id in self._decorated

    def decorated_document_ids(self) -> tuple[Hashable, ...]:
        return tuple(self._decorated)

    @staticmethod
    def _raw_span(translator: CoordinateTranslator, document_id: Hashable, link: Link) -> RawSpan | None:
        start, end = link.range.start, link.range.end
        try:
            start_column = translator.to_raw(document_id, start.line, start.character)
            end_column = translator.to_raw(document_id, end.line, end.character)
        except CoordinateTranslationError as exc:
            LOGGER.debug("LinkHighlighter: skipping link on vanished line %s", exc.line)
            return None
        return RawSpan(
            start_line=start.line,
            start_column=start_column,
            end_line=end.line,
            end_column=end_column,
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_decorations_invalidated(self, event: DecorationsInvalidated) -> None:
        self.clear(event.document_id, (event.first_line, event.last_line))

    def _on_links_discarded(self, event: LinksDiscarded) -> None:
        self._decorated.discard(event.document_id)
