"""Pure coordinate and range primitives used by the link engine."""

from .encoding import CoordinateTranslator, to_protocol_offset, to_raw_offset
from .positions import Link, Position, Range, contains, first_link_at, parse_links

__all__ = [
    "CoordinateTranslator",
    "Link",
    "Position",
    "Range",
    "contains",
    "first_link_at",
    "parse_links",
    "to_protocol_offset",
    "to_raw_offset",
]
