"""Process-wide registry of document links.

The registry owns one immutable link tuple per open document. Entries are
created by the first successful commit, replaced wholesale by later commits
and dropped when the document closes. Line edits never touch the entry;
they only invalidate the decorations drawn on the edited lines.

Several hosts may share one registry. Each binds its own event bus together
with a validator for its documents, and every entry remembers the binding
it was committed through so lifecycle events and validation stay with the
store that owns the document.
"""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Iterable

from .core.positions import Link
from .events import (
    DecorationsInvalidated,
    DocumentClosed,
    DocumentLinesChanged,
    EventBus,
    LinksDiscarded,
    LinksUpdated,
)

__all__ = [
    "LinkRegistry",
    "get_link_registry",
    "set_link_registry",
]

LOGGER = logging.getLogger(__name__)

DocumentValidator = Callable[[Hashable], bool]


class _Binding:
    """One event bus the registry listens to, with its document validator."""

    def __init__(self, registry: LinkRegistry, event_bus: EventBus, validator: DocumentValidator | None) -> None:
        self.registry = registry
        self.event_bus = event_bus
        self.validator = validator

    def subscribe(self) -> None:
        self.event_bus.subscribe(DocumentClosed, self.on_document_closed)
        self.event_bus.subscribe(DocumentLinesChanged, self.on_lines_changed)

    def unsubscribe(self) -> None:
        self.event_bus.unsubscribe(DocumentClosed, self.on_document_closed)
        self.event_bus.unsubscribe(DocumentLinesChanged, self.on_lines_changed)

    def accepts(self, document_id: Hashable) -> bool:
        return self.validator is None or self.validator(document_id)

    def on_document_closed(self, event: DocumentClosed) -> None:
        self.registry._on_document_closed(self, event)

    def on_lines_changed(self, event: DocumentLinesChanged) -> None:
        self.registry._on_lines_changed(self, event)


class LinkRegistry:
    """Cache mapping document identifiers to their current links.

    Each entry is guarded by a per-document sequence: callers obtain a token
    with :meth:`next_sequence` when a request is issued and pass it back to
    :meth:`commit`. A commit carrying a token older than the newest
    committed one is rejected.

    Events Consumed (on every bound bus):
        - DocumentClosed: drops the entry of an attached document
        - DocumentLinesChanged: invalidates decorations on the edited lines

    Events Emitted (on the bus owning the document):
        - LinksUpdated: after each successful commit
        - LinksDiscarded: after an entry is dropped on close
        - DecorationsInvalidated: for line edits in attached documents
    """

    def __init__(
        self,
        event_bus: EventBus | None = None,
        *,
        document_validator: DocumentValidator | None = None,
    ) -> None:
        self._links: dict[Hashable, tuple[Link, ...]] = {}
        self._attached: set[Hashable] = set()
        self._issued: dict[Hashable, int] = {}
        self._committed: dict[Hashable, int] = {}
        self._bindings: list[_Binding] = []
        self._owners: dict[Hashable, _Binding] = {}
        if event_bus is not None:
            self.bind(event_bus, document_validator)

    def bind(self, event_bus: EventBus, document_validator: DocumentValidator | None = None) -> None:
        """Subscribe to document lifecycle events on ``event_bus``.

        Binding a second bus adds to the existing subscriptions. Binding an
        already bound bus only replaces its validator when one is given.
        """

        self._binding_for(event_bus, document_validator)

    def unbind(self, event_bus: EventBus) -> bool:
        """Stop listening to ``event_bus``; its documents keep their links."""

        binding = self._find_binding(event_bus)
        if binding is None:
            return False
        binding.unsubscribe()
        self._bindings.remove(binding)
        for document_id in [doc for doc, owner in self._owners.items() if owner is binding]:
            del self._owners[document_id]
        return True

    def _find_binding(self, event_bus: EventBus) -> _Binding | None:
        for binding in self._bindings:
            if binding.event_bus is event_bus:
                return binding
        return None

    def _binding_for(self, event_bus: EventBus, validator: DocumentValidator | None = None) -> _Binding:
        binding = self._find_binding(event_bus)
        if binding is None:
            binding = _Binding(self, event_bus, validator)
            binding.subscribe()
            self._bindings.append(binding)
        elif validator is not None:
            binding.validator = validator
        return binding

    def _owner_for(self, document_id: Hashable) -> _Binding | None:
        owner = self._owners.get(document_id)
        if owner is not None:
            return owner
        for binding in self._bindings:
            if binding.accepts(document_id):
                return binding
        return None

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get(self, document_id: Hashable) -> tuple[Link, ...]:
        """Return the links of ``document_id``; empty when none are cached."""

        return self._links.get(document_id, ())

    def commit(
        self,
        document_id: Hashable,
        links: Iterable[Link],
        *,
        sequence: int | None = None,
        event_bus: EventBus | None = None,
        document_validator: DocumentValidator | None = None,
    ) -> bool:
        """Replace the links of ``document_id`` wholesale.

        ``event_bus`` names the host the document belongs to; it is bound on
        first use. Without it the document's previous owner is used, or the
        first bound host whose validator knows the document.

        Returns ``False`` without touching the entry when the document is no
        longer valid or when ``sequence`` is older than the last committed
        sequence for the document.
        """

        if event_bus is not None:
            owner: _Binding | None = self._binding_for(event_bus)
        else:
            owner = self._owner_for(document_id)

        validator = document_validator
        if validator is None and owner is not None:
            validator = owner.validator
        if owner is None and self._bindings and validator is None:
            LOGGER.debug("LinkRegistry.commit: no bound host knows document_id=%s", document_id)
            return False
        if validator is not None and not validator(document_id):
            LOGGER.debug("LinkRegistry.commit: document_id=%s is no longer valid", document_id)
            return False

        if sequence is not None:
            newest = self._committed.get(document_id, 0)
            if sequence < newest:
                LOGGER.debug(
                    "LinkRegistry.commit: superseded response for document_id=%s (sequence=%d, newest=%d)",
                    document_id,
                    sequence,
                    newest,
                )
                return False
            self._committed[document_id] = sequence

        snapshot = tuple(links)
        self.attach_lifecycle(document_id)
        self._links[document_id] = snapshot
        LOGGER.debug("LinkRegistry.commit: document_id=%s, links=%d", document_id, len(snapshot))
        if owner is not None:
            self._owners[document_id] = owner
            owner.event_bus.publish(LinksUpdated(document_id=document_id, count=len(snapshot)))
        return True

    def discard(self, document_id: Hashable) -> bool:
        """Forget everything known about ``document_id``."""

        had_entry = document_id in self._links
        self._links.pop(document_id, None)
        self._attached.discard(document_id)
        self._issued.pop(document_id, None)
        self._committed.pop(document_id, None)
        self._owners.pop(document_id, None)
        return had_entry

    def clear(self) -> None:
        self._links.clear()
        self._attached.clear()
        self._issued.clear()
        self._committed.clear()
        self._owners.clear()

    def document_ids(self, event_bus: EventBus | None = None) -> tuple[Hashable, ...]:
        """Return cached document ids, only those owned by ``event_bus`` if given."""

        if event_bus is None:
            return tuple(self._links)
        binding = self._find_binding(event_bus)
        return tuple(doc for doc in self._links if binding is not None and self._owners.get(doc) is binding)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._links

    def __len__(self) -> int:
        return len(self._links)

    # ------------------------------------------------------------------
    # Sequencing
    # ------------------------------------------------------------------

    def next_sequence(self, document_id: Hashable) -> int:
        """Issue the next request token for ``document_id``."""

        value = self._issued.get(document_id, 0) + 1
        self._issued[document_id] = value
        return value

    def committed_sequence(self, document_id: Hashable) -> int:
        return self._committed.get(document_id, 0)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach_lifecycle(self, document_id: Hashable) -> bool:
        """Start tracking close and line-change events for ``document_id``.

        Returns ``False`` when the document was already attached.
        """

        if document_id in self._attached:
            return False
        self._attached.add(document_id)
        LOGGER.debug("LinkRegistry.attach_lifecycle: document_id=%s", document_id)
        return True

    def is_attached(self, document_id: Hashable) -> bool:
        return document_id in self._attached

    def _owned_elsewhere(self, binding: _Binding, document_id: Hashable) -> bool:
        owner = self._owners.get(document_id)
        return owner is not None and owner is not binding

    def _on_document_closed(self, binding: _Binding, event: DocumentClosed) -> None:
        document_id = event.document_id
        if document_id not in self._attached and document_id not in self._links:
            return
        if self._owned_elsewhere(binding, document_id):
            return
        self.discard(document_id)
        LOGGER.debug("LinkRegistry: dropped links of closed document_id=%s", document_id)
        binding.event_bus.publish(LinksDiscarded(document_id=document_id))

    def _on_lines_changed(self, binding: _Binding, event: DocumentLinesChanged) -> None:
        if event.document_id not in self._attached:
            return
        if self._owned_elsewhere(binding, event.document_id):
            return
        first = max(0, event.first_line)
        last = max(first + 1, event.last_line, event.new_last_line or 0)
        binding.event_bus.publish(
            DecorationsInvalidated(document_id=event.document_id, first_line=first, last_line=last)
        )


_GLOBAL_REGISTRY: LinkRegistry | None = None


def get_link_registry() -> LinkRegistry:
    """Return the process-wide registry, creating it on first use."""

    global _GLOBAL_REGISTRY
    if _GLOBAL_REGISTRY is None:
        _GLOBAL_REGISTRY = LinkRegistry()
    return _GLOBAL_REGISTRY


def set_link_registry(registry: LinkRegistry | None) -> LinkRegistry:
    """Replace the process-wide registry; ``None`` installs a fresh one."""

    global _GLOBAL_REGISTRY
    _GLOBAL_REGISTRY = registry if registry is not None else LinkRegistry()
    return _GLOBAL_REGISTRY
