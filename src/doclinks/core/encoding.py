"""Translation between raw storage columns and protocol character offsets.

Raw columns are UTF-8 byte offsets into a line, which is what the host
editor reports for its cursor. Protocol offsets count code units of the
position encoding negotiated with the language server.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import CoordinateTranslationError

if TYPE_CHECKING:  # pragma: no cover
    from ..protocols import DocumentSource

__all__ = [
    "DEFAULT_ENCODING",
    "SUPPORTED_ENCODINGS",
    "CoordinateTranslator",
    "normalize_encoding",
    "to_protocol_offset",
    "to_raw_offset",
]

DEFAULT_ENCODING = "utf-16"
SUPPORTED_ENCODINGS: tuple[str, ...] = ("utf-8", "utf-16", "utf-32")

_ENCODING_ALIASES = {
    "utf8": "utf-8",
    "utf-8": "utf-8",
    "utf16": "utf-16",
    "utf-16": "utf-16",
    "utf32": "utf-32",
    "utf-32": "utf-32",
}


def normalize_encoding(encoding: str | None) -> str:
    """Return the canonical encoding name, raising ``ValueError`` if unsupported."""

    if encoding is None:
        return DEFAULT_ENCODING
    key = str(encoding).strip().lower().replace("_", "-")
    try:
        return _ENCODING_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unsupported position encoding: {encoding!r}") from None


def _code_units(char: str, encoding: str) -> int:
    if encoding == "utf-8":
        return len(char.encode("utf-8"))
    if encoding == "utf-16":
        return 1 if ord(char) <= 0xFFFF else 2
    return 1


def to_protocol_offset(line_text: str, raw_column: int, encoding: str = DEFAULT_ENCODING) -> int:
    """Convert a raw byte column on ``line_text`` into a protocol offset.

    Columns past the end of the line clamp to the line length; a column
    inside a multi-byte character counts up to that character's start.
    """

    resolved = normalize_encoding(encoding)
    data = line_text.encode("utf-8")
    column = max(0, min(len(data), int(raw_column)))
    prefix = data[:column].decode("utf-8", errors="ignore")
    if resolved == "utf-8":
        return len(prefix.encode("utf-8"))
    if resolved == "utf-16":
        return len(prefix.encode("utf-16-le")) // 2
    return len(prefix)


def to_raw_offset(line_text: str, character: int, encoding: str = DEFAULT_ENCODING) -> int:
    """Convert a protocol offset on ``line_text`` back into a raw byte column."""

    resolved = normalize_encoding(encoding)
    remaining = max(0, int(character))
    index = 0
    while index < len(line_text):
        units = _code_units(line_text[index], resolved)
        if remaining < units:
            break
        remaining -= units
        index += 1
    return len(line_text[:index].encode("utf-8"))


class CoordinateTranslator:
    """Per-document translator reading the current line content from the host."""

    def __init__(self, documents: DocumentSource, encoding: str = DEFAULT_ENCODING) -> None:
        self._documents = documents
        self._encoding = normalize_encoding(encoding)

    @property
    def encoding(self) -> str:
        return self._encoding

    def line_text(self, document_id: object, line: int) -> str:
        """Return the current content of ``line`` or raise if it is gone."""

        text = self._documents.line_content(document_id, line) if line >= 0 else None
        if text is None:
            raise CoordinateTranslationError(
                message=f"Line {line} is no longer present in the document",
                details={"document_id": str(document_id)},
                line=line,
            )
        return text

    def to_protocol(self, document_id: object, line: int, raw_column: int) -> int:
        return to_protocol_offset(self.line_text(document_id, line), raw_column, self._encoding)

    def to_raw(self, document_id: object, line: int, character: int) -> int:
        return to_raw_offset(self.line_text(document_id, line), character, self._encoding)
