"""Event bus infrastructure connecting the host editor and the link engine.

The host publishes document lifecycle and trigger events; the registry,
refresh controller and highlighter subscribe to them. The engine publishes
its own events (links updated, notices) for the host to render.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Hashable,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

# Type variable for event types
E = TypeVar("E", bound="Event")

# Handler type: a callable that takes an event and returns None
Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events in the system.

    Example::

        @dataclass(slots=True)
        class DocumentFocused(Event):
            document_id: Hashable
    """

    pass


# High-frequency event types that should not log each publish
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Refresh Triggers
# =============================================================================


@dataclass(slots=True)
class DocumentFocused(Event):
    """Emitted when a document gains focus in the host editor.

    Attributes:
        document_id: The focused document, or None for the current one.
    """

    document_id: Hashable | None = None


@dataclass(slots=True)
class InsertModeLeft(Event):
    """Emitted when the user leaves an editing mode in the given document."""

    document_id: Hashable | None = None


@dataclass(slots=True)
class IdleTick(Event):
    """Emitted periodically while the editor is idle."""

    document_id: Hashable | None = None


_QUIET_EVENT_TYPES.add(IdleTick)


@dataclass(slots=True)
class ServerAttached(Event):
    """Emitted when a language server connection is attached to a document.

    Attributes:
        document_id: The document the server now serves.
        server_name: Human-readable name of the server connection.
    """

    document_id: Hashable
    server_name: str = ""


# =============================================================================
# Document Lifecycle
# =============================================================================


@dataclass(slots=True)
class DocumentOpened(Event):
    """Emitted when the host opens a document.

    Attributes:
        document_id: The identifier of the opened document.
        uri: The URI the document was opened from.
    """

    document_id: Hashable
    uri: str


@dataclass(slots=True)
class DocumentClosed(Event):
    """Emitted when a document is closed or detached from the host."""

    document_id: Hashable


@dataclass(slots=True)
class DocumentLinesChanged(Event):
    """Emitted after a range of lines in a document was rewritten.

    Attributes:
        document_id: The mutated document.
        first_line: First changed line (0-based).
        last_line: Line after the last changed line, in pre-edit numbering.
        new_last_line: Line after the last changed line, in post-edit numbering.
    """

    document_id: Hashable
    first_line: int
    last_line: int
    new_last_line: int | None = None


# =============================================================================
# Link Engine Events
# =============================================================================


@dataclass(slots=True)
class LinksUpdated(Event):
    """Emitted after a link list was committed for a document."""

    document_id: Hashable
    count: int


@dataclass(slots=True)
class LinksDiscarded(Event):
    """Emitted when the cached links of a closed document are dropped."""

    document_id: Hashable


@dataclass(slots=True)
class DecorationsInvalidated(Event):
    """Emitted when link decorations on a line span no longer match the text.

    Attributes:
        document_id: The mutated document.
        first_line: First affected line (0-based).
        last_line: Line after the last affected line.
    """

    document_id: Hashable
    first_line: int
    last_line: int


@dataclass(slots=True)
class NoticePosted(Event):
    """Emitted when a message should be shown to the user.

    Attributes:
        message: The notice text.
        level: ``"info"``, ``"warning"`` or ``"error"``.
        code: Optional machine-readable error code.
    """

    message: str
    level: str = "info"
    code: str | None = None


@dataclass(slots=True)
class SettingsChanged(Event):
    """Emitted after the link settings were reconfigured."""

    settings: dict[str, Any]


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus for decoupled communication.

    Handlers are stored as weak references where possible to prevent memory
    leaks.

    Example::

        bus = EventBus()
        bus.subscribe(DocumentClosed, registry.on_document_closed)
        bus.publish(DocumentClosed(document_id="doc-1"))

    Thread Safety:
        This implementation is NOT thread-safe. All operations should be
        performed from the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        """Initialize an empty event bus."""
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register a handler to receive events of the specified type.

        Bound methods are held weakly so subscribers do not need to
        unsubscribe before they are garbage collected. Subscribing the same
        handler twice results in two invocations per publish.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler`` for ``event_type``.

        Safe to call for handlers that were never subscribed.
        """
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Broadcast an event to all registered handlers.

        Handlers are invoked synchronously in the order they were
        registered. If a handler raises an exception, it is logged
        and remaining handlers continue to be invoked.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if handlers is None:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead_indices: list[int] = []

        # Iterate over a snapshot: handlers may subscribe or unsubscribe.
        for i, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(i)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for i in reversed(dead_indices):
            if i < len(handlers) and handlers[i].resolve() is None:
                handlers.pop(i)

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of registered handlers, optionally for one event type."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Wrapper for handler references supporting both weak and strong refs.

    Bound methods use ``WeakMethod``; plain functions and lambdas are held
    strongly since they typically have module-level lifetime.
    """

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                # Some callables can't be weakly referenced
                pass

        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    """Get a human-readable name for a handler for logging purposes."""
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    # Core infrastructure
    "Event",
    "EventBus",
    "Handler",
    # Refresh triggers
    "DocumentFocused",
    "InsertModeLeft",
    "IdleTick",
    "ServerAttached",
    # Document lifecycle
    "DocumentOpened",
    "DocumentClosed",
    "DocumentLinesChanged",
    # Link engine events
    "LinksUpdated",
    "LinksDiscarded",
    "DecorationsInvalidated",
    "NoticePosted",
    "SettingsChanged",
]
