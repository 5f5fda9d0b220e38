"""Classification of link targets into navigable locations and resources."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from .errors import MalformedTargetError

__all__ = ["LocationTarget", "ResourceTarget", "parse_target"]

# ``#<line>`` or ``#<line>,<column>``, both 1-based.
_LOCATION_FRAGMENT = re.compile(r"^(\d+)(?:,(\d+))?$")
_LOCAL_SCHEMES = frozenset({"file"})


@dataclass(slots=True, frozen=True)
class LocationTarget:
    """A position inside a local document.

    ``row`` is 1-based and ``column`` is a 0-based raw column, ready to be
    handed to the navigator.
    """

    uri: str
    row: int
    column: int


@dataclass(slots=True, frozen=True)
class ResourceTarget:
    """Any other resource, opened by the operating system."""

    uri: str


def parse_target(target: str | None) -> LocationTarget | ResourceTarget:
    """Classify ``target``; raise :class:`MalformedTargetError` when it is not a URI."""

    text = str(target or "").strip()
    if not text:
        raise MalformedTargetError(message="Link target is empty", target=target)

    try:
        parts = urlsplit(text)
    except ValueError as exc:
        raise MalformedTargetError(message=f"Link target is not a valid URI: {exc}", target=text) from exc

    scheme = parts.scheme.lower()
    # Single-letter schemes are Windows drive letters, not URIs.
    if len(scheme) < 2:
        raise MalformedTargetError(message="Link target has no URI scheme", target=text)

    if scheme not in _LOCAL_SCHEMES:
        return ResourceTarget(uri=text)

    document_uri = urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
    match = _LOCATION_FRAGMENT.match(parts.fragment)
    if match is None:
        return ResourceTarget(uri=document_uri)

    row = int(match.group(1))
    column = int(match.group(2)) if match.group(2) is not None else 1
    return LocationTarget(uri=document_uri, row=row, column=max(0, column - 1))
