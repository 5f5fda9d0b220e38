"""Document link discovery, highlighting and activation for editors."""

from .core.positions import Link, Position, Range
from .documents import DocumentStore, TextDocument
from .errors import LinkError
from .events import EventBus
from .refresh import LinkRefreshController, RefreshOutcome
from .registry import LinkRegistry, get_link_registry, set_link_registry
from .resolution import LinkResolver
from .servers import ServerConnectionManager
from .service import DocumentLinks
from .settings import LinkSettings, SettingsStore

__all__ = [
    "DocumentLinks",
    "DocumentStore",
    "EventBus",
    "Link",
    "LinkError",
    "LinkRefreshController",
    "LinkRegistry",
    "LinkResolver",
    "LinkSettings",
    "Position",
    "Range",
    "RefreshOutcome",
    "ServerConnectionManager",
    "SettingsStore",
    "TextDocument",
    "get_link_registry",
    "set_link_registry",
]
