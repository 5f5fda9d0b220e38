"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

from doclinks.documents import DocumentStore
from doclinks.events import EventBus
from doclinks.registry import LinkRegistry, set_link_registry
from doclinks.servers import ServerConnectionManager
from doclinks.utils.logging import disable_debug_log


@pytest.fixture(autouse=True)
def _fresh_link_registry():
    """Give every test its own process-wide registry."""
    set_link_registry(None)
    yield
    set_link_registry(None)


@pytest.fixture(autouse=True)
def _no_debug_log():
    yield
    disable_debug_log()


@pytest.fixture(autouse=True)
def _clean_doclinks_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("DOCLINKS_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(event_bus: EventBus) -> DocumentStore:
    return DocumentStore(event_bus)


@pytest.fixture
def registry(event_bus: EventBus, store: DocumentStore) -> LinkRegistry:
    return LinkRegistry(event_bus, document_validator=store.is_valid)


@pytest.fixture
def servers(event_bus: EventBus) -> ServerConnectionManager:
    return ServerConnectionManager(event_bus)


@pytest.fixture
def recorded(event_bus: EventBus):
    """Collect published events of the requested types.

    Example:
        events = recorded(LinksUpdated, NoticePosted)
    """

    def _record(*event_types: type) -> list:
        received: list = []
        for event_type in event_types:
            event_bus.subscribe(event_type, received.append)
        return received

    return _record
