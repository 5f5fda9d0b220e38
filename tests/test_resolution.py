"""Tests for cursor lookup and link activation."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from doclinks.core.positions import Position
from doclinks.documents import DocumentStore
from doclinks.errors import ErrorCode
from doclinks.events import EventBus, NoticePosted
from doclinks.registry import LinkRegistry
from doclinks.resolution import LinkResolver
from doclinks.servers import DOCUMENT_LINK_RESOLVE_METHOD, ServerConnectionManager
from doclinks.utils.file_io import path_to_uri
from tests.helpers import FakeConnection, RecordingOpener, make_link


@pytest.fixture
def opener() -> RecordingOpener:
    return RecordingOpener()


@pytest.fixture
def encoding() -> dict[str, str]:
    return {"name": "utf-16"}


@pytest.fixture
def resolver(
    registry: LinkRegistry,
    store: DocumentStore,
    opener: RecordingOpener,
    servers: ServerConnectionManager,
    event_bus: EventBus,
    encoding: dict[str, str],
) -> LinkResolver:
    return LinkResolver(
        registry=registry,
        documents=store,
        opener=opener,
        navigator=store,
        servers=servers,
        event_bus=event_bus,
        encoding_for=lambda document_id: encoding["name"],
    )


@pytest.fixture
def document(store: DocumentStore) -> str:
    return store.open("file:///notes.md", "see docs/readme here\nsecond line", document_id="doc-1").document_id


# =============================================================================
# Lookup
# =============================================================================


class TestLinkAt:
    def test_cursor_inside_link(
        self, resolver: LinkResolver, registry: LinkRegistry, store: DocumentStore, document: str
    ) -> None:
        link = make_link(0, 4, 0, 15, "file:///docs/readme")
        registry.commit(document, [link])

        store.set_cursor(document, 1, 8)
        assert resolver.link_at() is link

        store.set_cursor(document, 1, 15)
        assert resolver.link_at() is link

        store.set_cursor(document, 1, 16)
        assert resolver.link_at() is None

    def test_explicit_position(self, resolver: LinkResolver, registry: LinkRegistry, document: str) -> None:
        link = make_link(0, 5, 0, 8, "https://example.com")
        registry.commit(document, [link])

        assert resolver.link_at(document, Position(0, 8)) is link
        assert resolver.link_at(document, Position(0, 9)) is None

    def test_cursor_column_is_translated(
        self,
        resolver: LinkResolver,
        registry: LinkRegistry,
        store: DocumentStore,
        encoding: dict[str, str],
    ) -> None:
        store.open("file:///accents.md", "ééé abc", document_id="doc-2")
        link = make_link(0, 4, 0, 7, "https://example.com")
        registry.commit("doc-2", [link])
        # "b" starts at byte 8, which is UTF-16 offset 5.
        store.set_cursor("doc-2", 1, 8)

        assert resolver.cursor_position("doc-2") == Position(0, 5)
        assert resolver.link_at("doc-2") is link

        encoding["name"] = "utf-8"
        assert resolver.link_at("doc-2") is None

    def test_no_links_or_no_document(self, resolver: LinkResolver, document: str) -> None:
        assert resolver.link_at(document) is None
        assert resolver.link_at("missing") is None


# =============================================================================
# Activation
# =============================================================================


class TestActivate:
    def test_resource_target_goes_to_opener_untouched(
        self, resolver: LinkResolver, opener: RecordingOpener
    ) -> None:
        assert resolver.activate("https://example.com")
        assert opener.opened == ["https://example.com"]

    def test_location_target_jumps(self, resolver: LinkResolver, store: DocumentStore, opener: RecordingOpener) -> None:
        store.open("file:///tmp/x.txt", "one\ntwo\nthree lines\nfour", document_id="doc-x", make_current=False)

        assert resolver.activate("file:///tmp/x.txt#3,7")

        assert store.current_document_id() == "doc-x"
        assert store.cursor_position("doc-x") == (3, 6)
        assert opener.opened == []

    def test_location_target_loads_file_from_disk(
        self, resolver: LinkResolver, store: DocumentStore, tmp_path: Path
    ) -> None:
        path = tmp_path / "guide.md"
        path.write_text("a\nb\nc", encoding="utf-8")

        assert resolver.activate(f"{path_to_uri(path)}#2")

        document = store.find_by_uri(path_to_uri(path))
        assert document is not None
        assert store.current_document_id() == document.document_id
        assert document.cursor == (2, 0)

    def test_missing_location_file_fails(
        self, resolver: LinkResolver, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="doclinks.resolution"):
            assert not resolver.activate(f"{path_to_uri(tmp_path / 'gone.md')}#4,2")
        assert "Cannot open" in caplog.text

    def test_link_under_cursor_is_activated(
        self,
        resolver: LinkResolver,
        registry: LinkRegistry,
        store: DocumentStore,
        opener: RecordingOpener,
        document: str,
    ) -> None:
        registry.commit(document, [make_link(0, 4, 0, 15, "https://docs.example/readme")])
        store.set_cursor(document, 1, 5)

        assert resolver.activate()
        assert opener.opened == ["https://docs.example/readme"]

    def test_no_link_under_cursor_returns_false(
        self, resolver: LinkResolver, registry: LinkRegistry, opener: RecordingOpener, document: str
    ) -> None:
        registry.commit(document, [make_link(1, 0, 1, 3, "https://example.com")])

        assert not resolver.activate()
        assert opener.opened == []

    def test_malformed_target_returns_false(
        self, resolver: LinkResolver, opener: RecordingOpener, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="doclinks.resolution"):
            assert not resolver.activate("docs/readme.md")
        assert opener.opened == []
        assert "Cannot activate link" in caplog.text

    def test_declined_by_opener_returns_false(self, resolver: LinkResolver, opener: RecordingOpener) -> None:
        opener.result = False
        assert not resolver.activate("https://example.com")

    def test_location_without_navigator_fails(
        self, registry: LinkRegistry, store: DocumentStore, opener: RecordingOpener
    ) -> None:
        resolver = LinkResolver(
            registry=registry,
            documents=store,
            opener=opener,
            encoding_for=lambda document_id: "utf-16",
        )
        assert not resolver.activate("file:///x#1")


# =============================================================================
# Unresolved links
# =============================================================================


class TestUnresolvedLinks:
    def test_warns_once_without_resolve_support(
        self,
        resolver: LinkResolver,
        registry: LinkRegistry,
        servers: ServerConnectionManager,
        store: DocumentStore,
        opener: RecordingOpener,
        document: str,
        recorded,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        notices = recorded(NoticePosted)
        servers.attach(document, FakeConnection())
        registry.commit(document, [make_link(0, 4, 0, 15)])
        store.set_cursor(document, 1, 6)

        with caplog.at_level(logging.WARNING, logger="doclinks.resolution"):
            assert resolver.activate()
            assert resolver.activate()

        assert opener.opened == []
        assert [(notice.level, notice.code) for notice in notices] == [("warning", ErrorCode.UNRESOLVED_TARGET)]
        assert len([record for record in caplog.records if record.name == "doclinks.resolution"]) == 1

    @pytest.mark.asyncio
    async def test_resolves_through_server(
        self,
        resolver: LinkResolver,
        registry: LinkRegistry,
        servers: ServerConnectionManager,
        store: DocumentStore,
        opener: RecordingOpener,
        document: str,
    ) -> None:
        link = make_link(0, 4, 0, 15, data={"id": 3})
        connection = FakeConnection(
            capabilities={"documentLinkProvider": {"resolveProvider": True}},
            responses={DOCUMENT_LINK_RESOLVE_METHOD: {**link.to_payload(), "target": "https://resolved.example"}},
        )
        servers.attach(document, connection)
        registry.commit(document, [link])
        store.set_cursor(document, 1, 6)

        assert resolver.activate()
        await resolver.drain()

        assert connection.calls == [(DOCUMENT_LINK_RESOLVE_METHOD, link.to_payload())]
        assert opener.opened == ["https://resolved.example"]

    def test_resolve_without_event_loop_falls_through(
        self,
        resolver: LinkResolver,
        registry: LinkRegistry,
        servers: ServerConnectionManager,
        store: DocumentStore,
        opener: RecordingOpener,
        document: str,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        connection = FakeConnection(capabilities={"documentLinkProvider": {"resolveProvider": True}})
        servers.attach(document, connection)
        registry.commit(document, [make_link(0, 4, 0, 15)])
        store.set_cursor(document, 1, 6)

        with caplog.at_level(logging.WARNING, logger="doclinks.resolution"):
            assert not resolver.activate()

        assert connection.calls == []
        assert opener.opened == []
        assert "no running event loop" in caplog.text

    @pytest.mark.asyncio
    async def test_resolve_without_target_warns(
        self,
        resolver: LinkResolver,
        servers: ServerConnectionManager,
        opener: RecordingOpener,
        document: str,
        recorded,
    ) -> None:
        notices = recorded(NoticePosted)
        link = make_link(0, 4, 0, 15)
        servers.attach(
            document,
            FakeConnection(
                capabilities={"documentLinkProvider": {"resolveProvider": True}},
                responses={DOCUMENT_LINK_RESOLVE_METHOD: link.to_payload()},
            ),
        )

        assert not await resolver.resolve_and_activate(document, link)

        assert opener.opened == []
        assert [notice.code for notice in notices] == [ErrorCode.UNRESOLVED_TARGET]

    @pytest.mark.asyncio
    async def test_resolve_failure_posts_error(
        self,
        resolver: LinkResolver,
        servers: ServerConnectionManager,
        document: str,
        recorded,
    ) -> None:
        notices = recorded(NoticePosted)
        servers.attach(
            document,
            FakeConnection(
                capabilities={"documentLinkProvider": {"resolveProvider": True}},
                responses={DOCUMENT_LINK_RESOLVE_METHOD: TimeoutError("too slow")},
            ),
        )

        assert not await resolver.resolve_and_activate(document, make_link(0, 4, 0, 15))

        assert [(notice.level, notice.code) for notice in notices] == [("error", ErrorCode.TRANSPORT_ERROR)]
