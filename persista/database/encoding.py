"""
Parameter encoding for the relational store.

Sequence parameters are sent as composite (array) literals:

    ["a,b", 'say "hi"']   ->  {a\\,b,say \\"hi\\"}
    [[1, 2], [3]]         ->  {{1,2},{3}}

Elements are comma-joined inside braces, nested sequences recurse, and string
elements escape the characters that are significant in the literal syntax.
Non-sequence parameters pass through unchanged.

PostgreSQL only parses a text literal into an array when the placeholder is
text-typed, so statements cast it: ``WHERE id = ANY($1::text::int[])``. A
placeholder cast straight to an array type (``ANY($1::int[])``) is bound by
asyncpg's own array codec instead; those parameters are left as sequences.
"""

import re
from collections.abc import Collection, Iterable, Sequence
from typing import Any

# $n cast directly to an array type, e.g. $1::int[] or $2::text[][]
_ARRAY_PLACEHOLDER = re.compile(r"\$(\d+)\s*::\s*[A-Za-z_][\w.]*(?:\[\])+")

# Backslash first so later escapes are not doubled
_SPECIAL = ("\\", ",", '"', "{", "}")


def is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(
        value, (str, bytes, bytearray, memoryview)
    )


def escape_element(text: str) -> str:
    """Escape a string element of a composite literal."""
    if text == "":
        return '""'
    for char in _SPECIAL:
        text = text.replace(char, "\\" + char)
    if text.upper() == "NULL":
        # An unquoted NULL means a null element
        return "\\" + text
    if text != text.strip():
        return f'"{text}"'
    return text


def encode_element(value: Any) -> str:
    if is_sequence(value):
        return encode_sequence(value)
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return escape_element(value)
    return str(value)


def encode_sequence(values: Iterable[Any]) -> str:
    return "{" + ",".join(encode_element(v) for v in values) + "}"


def encode_param(value: Any) -> Any:
    """Encode one statement parameter."""
    if is_sequence(value):
        return encode_sequence(value)
    return value


def array_placeholders(command: str) -> frozenset[int]:
    """Zero-based positions of parameters whose placeholder is cast to an array type."""
    return frozenset(int(n) - 1 for n in _ARRAY_PLACEHOLDER.findall(command))


def encode_params(
    params: Iterable[Any] | None, native: Collection[int] = ()
) -> list[Any]:
    """
    Encode a statement's parameter list.

    Args:
        params: Positional parameters
        native: Zero-based positions left untouched for the driver to bind
    """
    if not params:
        return []
    return [
        p if position in native else encode_param(p)
        for position, p in enumerate(params)
    ]


class _LiteralParser:
    """Recursive-descent reader for composite literals."""

    def __init__(self, literal: str):
        self.text = literal
        self.pos = 0

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _skip_whitespace(self) -> None:
        while self._peek().isspace():
            self.pos += 1

    def _error(self, message: str) -> ValueError:
        return ValueError(f"{message} at position {self.pos} in {self.text!r}")

    def parse(self) -> list[Any]:
        self._skip_whitespace()
        value = self._array()
        self._skip_whitespace()
        if self.pos != len(self.text):
            raise self._error("Unexpected trailing characters")
        return value

    def _array(self) -> list[Any]:
        if self._peek() != "{":
            raise self._error("Expected '{'")
        self.pos += 1
        items: list[Any] = []
        self._skip_whitespace()
        if self._peek() == "}":
            self.pos += 1
            return items

        while True:
            self._skip_whitespace()
            if self._peek() == "{":
                items.append(self._array())
            elif self._peek() == '"':
                items.append(self._quoted())
            else:
                items.append(self._unquoted())
            self._skip_whitespace()
            char = self._peek()
            self.pos += 1
            if char == ",":
                continue
            if char == "}":
                return items
            raise self._error("Expected ',' or '}'")

    def _quoted(self) -> str:
        self.pos += 1
        out = []
        while True:
            char = self._peek()
            if char == "":
                raise self._error("Unterminated quoted element")
            self.pos += 1
            if char == "\\":
                out.append(self._peek())
                self.pos += 1
            elif char == '"':
                return "".join(out)
            else:
                out.append(char)

    def _unquoted(self) -> str | None:
        chars: list[tuple[str, bool]] = []
        while True:
            char = self._peek()
            if char in (",", "}"):
                break
            if char == "":
                raise self._error("Unterminated array")
            self.pos += 1
            if char == "\\":
                chars.append((self._peek(), True))
                self.pos += 1
            else:
                chars.append((char, False))

        # Unescaped surrounding whitespace is not part of the element
        while chars and not chars[-1][1] and chars[-1][0].isspace():
            chars.pop()
        if not chars:
            raise self._error("Empty unquoted element")
        text = "".join(c for c, _ in chars)
        if text.upper() == "NULL" and not any(escaped for _, escaped in chars):
            return None
        return text


def decode_composite(literal: str) -> list[Any]:
    """
    Parse a composite literal back into nested lists.

    Element values come back as strings (``None`` for NULL); callers convert
    scalar types themselves.

    Raises:
        ValueError: If the literal is malformed
    """
    return _LiteralParser(literal).parse()
