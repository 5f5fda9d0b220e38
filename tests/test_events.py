"""Unit tests for :mod:`doclinks.events`."""

from __future__ import annotations

import gc
import logging
from dataclasses import dataclass

import pytest

from doclinks.events import (
    DocumentClosed,
    DocumentFocused,
    Event,
    EventBus,
    IdleTick,
    LinksUpdated,
)


@dataclass(slots=True)
class SampleEvent(Event):
    """A sample event for testing."""

    message: str
    value: int = 0


class _Subscriber:
    def __init__(self) -> None:
        self.received: list[Event] = []

    def on_event(self, event: Event) -> None:
        self.received.append(event)


class TestEventBusSubscription:
    """Tests for subscribe/unsubscribe bookkeeping."""

    def test_subscribe_adds_handler(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.subscribe(SampleEvent, lambda e: None)
        assert bus.handler_count(SampleEvent) == 1
        assert bus.handler_count() == 1

    def test_same_handler_twice_is_invoked_twice(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[Event] = []

        def handler(event: Event) -> None:
            received.append(event)

        bus.subscribe(SampleEvent, handler)
        bus.subscribe(SampleEvent, handler)
        bus.publish(SampleEvent(message="x"))

        assert len(received) == 2

    def test_unsubscribe_removes_handler(self) -> None:
        bus: EventBus[Event] = EventBus()

        def handler(event: Event) -> None:
            pass

        bus.subscribe(SampleEvent, handler)
        bus.unsubscribe(SampleEvent, handler)
        assert bus.handler_count(SampleEvent) == 0

    def test_unsubscribe_unknown_handler_is_safe(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.unsubscribe(SampleEvent, lambda e: None)
        assert bus.handler_count() == 0

    def test_clear_removes_everything(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.subscribe(SampleEvent, lambda e: None)
        bus.subscribe(DocumentClosed, lambda e: None)
        bus.clear()
        assert bus.handler_count() == 0


class TestEventBusPublish:
    """Tests for event delivery."""

    def test_delivers_only_matching_type(self) -> None:
        bus: EventBus[Event] = EventBus()
        closed: list[Event] = []
        focused: list[Event] = []
        bus.subscribe(DocumentClosed, closed.append)
        bus.subscribe(DocumentFocused, focused.append)

        bus.publish(DocumentClosed(document_id="doc-1"))

        assert closed == [DocumentClosed(document_id="doc-1")]
        assert focused == []

    def test_handlers_run_in_subscription_order(self) -> None:
        bus: EventBus[Event] = EventBus()
        order: list[str] = []
        bus.subscribe(SampleEvent, lambda e: order.append("first"))
        bus.subscribe(SampleEvent, lambda e: order.append("second"))

        bus.publish(SampleEvent(message="go"))

        assert order == ["first", "second"]

    def test_failing_handler_does_not_stop_others(self, caplog: pytest.LogCaptureFixture) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[Event] = []

        def broken(event: Event) -> None:
            raise RuntimeError("boom")

        bus.subscribe(SampleEvent, broken)
        bus.subscribe(SampleEvent, received.append)

        with caplog.at_level(logging.ERROR, logger="doclinks.events"):
            bus.publish(SampleEvent(message="x"))

        assert len(received) == 1
        assert "raised exception" in caplog.text

    def test_handler_may_unsubscribe_during_publish(self) -> None:
        bus: EventBus[Event] = EventBus()
        calls: list[str] = []

        def once(event: Event) -> None:
            calls.append("once")
            bus.unsubscribe(SampleEvent, once)

        bus.subscribe(SampleEvent, once)
        bus.subscribe(SampleEvent, lambda e: calls.append("other"))

        bus.publish(SampleEvent(message="a"))
        bus.publish(SampleEvent(message="b"))

        assert calls == ["once", "other", "other"]

    def test_publish_without_handlers_is_noop(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.publish(IdleTick())
        bus.publish(LinksUpdated(document_id="doc-1", count=0))


class TestWeakReferences:
    """Bound-method handlers do not keep their owners alive."""

    def test_bound_method_is_dropped_after_collection(self) -> None:
        bus: EventBus[Event] = EventBus()
        subscriber = _Subscriber()
        bus.subscribe(SampleEvent, subscriber.on_event)

        bus.publish(SampleEvent(message="alive"))
        assert len(subscriber.received) == 1

        del subscriber
        gc.collect()
        bus.publish(SampleEvent(message="gone"))

        assert bus.handler_count(SampleEvent) == 0

    def test_bound_method_unsubscribe_matches(self) -> None:
        bus: EventBus[Event] = EventBus()
        subscriber = _Subscriber()
        bus.subscribe(SampleEvent, subscriber.on_event)
        bus.unsubscribe(SampleEvent, subscriber.on_event)
        assert bus.handler_count(SampleEvent) == 0
