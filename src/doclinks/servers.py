"""Per-document language server connections and capability lookups."""

from __future__ import annotations

import logging
from typing import Any, Hashable, Iterator, Mapping

from .core.encoding import normalize_encoding
from .errors import LinkRequestError
from .events import EventBus, ServerAttached
from .protocols import ServerConnection

__all__ = [
    "DOCUMENT_LINK_CAPABILITY",
    "DOCUMENT_LINK_METHOD",
    "DOCUMENT_LINK_RESOLVE_METHOD",
    "ServerConnectionManager",
]

LOGGER = logging.getLogger(__name__)

DOCUMENT_LINK_CAPABILITY = "documentLinkProvider"
DOCUMENT_LINK_METHOD = "textDocument/documentLink"
DOCUMENT_LINK_RESOLVE_METHOD = "documentLink/resolve"


class ServerConnectionManager:
    """Tracks which server connections serve which documents.

    Capabilities are read from each connection's ``server_capabilities`` at
    the point of use, so servers that register capabilities late are picked
    up without re-attaching.
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._bus = event_bus
        self._connections: dict[Hashable, list[ServerConnection]] = {}

    # ------------------------------------------------------------------
    # Attachment
    # ------------------------------------------------------------------

    def attach(self, document_id: Hashable, connection: ServerConnection) -> None:
        """Associate ``connection`` with ``document_id`` and announce it."""

        connections = self._connections.setdefault(document_id, [])
        if any(existing is connection for existing in connections):
            return
        connections.append(connection)
        name = _connection_name(connection)
        LOGGER.debug("ServerConnectionManager.attach: document_id=%s, server=%s", document_id, name)
        if self._bus is not None:
            self._bus.publish(ServerAttached(document_id=document_id, server_name=name))

    def detach(self, document_id: Hashable, connection: ServerConnection | None = None) -> None:
        """Remove one connection, or all connections when ``connection`` is None."""

        if connection is None:
            self._connections.pop(document_id, None)
            return
        connections = self._connections.get(document_id)
        if not connections:
            return
        connections[:] = [existing for existing in connections if existing is not connection]
        if not connections:
            self._connections.pop(document_id, None)

    def connections_for(self, document_id: Hashable) -> tuple[ServerConnection, ...]:
        return tuple(self._connections.get(document_id, ()))

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def capabilities_for(self, document_id: Hashable) -> frozenset[str]:
        """Return the names of all capabilities advertised for the document."""

        names: set[str] = set()
        for connection in self.connections_for(document_id):
            for name, value in _capabilities(connection).items():
                if _advertised(value):
                    names.add(name)
        return frozenset(names)

    def supports(self, document_id: Hashable, capability: str) -> bool:
        return capability in self.capabilities_for(document_id)

    def supports_link_resolve(self, document_id: Hashable) -> bool:
        return self._resolve_connection(document_id) is not None

    def position_encoding(self, document_id: Hashable, default: str) -> str:
        """Return the position encoding declared by the link provider, if any."""

        connection = self._provider_connection(document_id)
        if connection is None:
            return normalize_encoding(default)
        declared = _capabilities(connection).get("positionEncoding")
        if not declared:
            return normalize_encoding(default)
        try:
            return normalize_encoding(declared)
        except ValueError:
            LOGGER.warning(
                "Server %s declared unsupported position encoding %r; using %s",
                _connection_name(connection),
                declared,
                default,
            )
            return normalize_encoding(default)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(self, document_id: Hashable, method: str, params: Mapping[str, Any]) -> Any:
        """Send ``method`` to the first connection able to serve it.

        Any failure of the underlying connection is raised as
        :class:`LinkRequestError`.
        """

        if method == DOCUMENT_LINK_RESOLVE_METHOD:
            connection = self._resolve_connection(document_id)
        else:
            connection = self._provider_connection(document_id)
        if connection is None:
            raise LinkRequestError(
                message=f"No connected server handles {method}",
                details={"document_id": str(document_id)},
                method=method,
            )

        name = _connection_name(connection)
        try:
            return await connection.request(method, params)
        except LinkRequestError:
            raise
        except Exception as exc:
            raise LinkRequestError(
                message=str(exc) or f"{method} request failed",
                details={"document_id": str(document_id), "exception": type(exc).__name__},
                method=method,
                server=name,
            ) from exc

    def _iter_link_providers(self, document_id: Hashable) -> Iterator[ServerConnection]:
        for connection in self.connections_for(document_id):
            if _advertised(_capabilities(connection).get(DOCUMENT_LINK_CAPABILITY)):
                yield connection

    def _provider_connection(self, document_id: Hashable) -> ServerConnection | None:
        return next(self._iter_link_providers(document_id), None)

    def _resolve_connection(self, document_id: Hashable) -> ServerConnection | None:
        for connection in self._iter_link_providers(document_id):
            options = _capabilities(connection).get(DOCUMENT_LINK_CAPABILITY)
            if isinstance(options, Mapping) and options.get("resolveProvider"):
                return connection
        return None


def _capabilities(connection: ServerConnection) -> Mapping[str, Any]:
    capabilities = getattr(connection, "server_capabilities", None)
    return capabilities if isinstance(capabilities, Mapping) else {}


def _advertised(value: Any) -> bool:
    # An empty options object still advertises the capability.
    return value is not None and value is not False


def _connection_name(connection: ServerConnection) -> str:
    return str(getattr(connection, "name", "") or type(connection).__name__)
