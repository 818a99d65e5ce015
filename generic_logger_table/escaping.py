"""
Encoding helpers for values embedded in textual queries.

Two independent codecs live here:

* quote escaping, applied to every literal rendered into a direct query and
  reversed on every value read back from the store
* a hexadecimal codec over UTF-16 code units for callers that prefer to move
  arbitrary text around as plain ``[0-9A-F]`` strings
"""

from __future__ import annotations

import re

_QUOTE = "'"
_ESCAPED_QUOTE = "''"
_HEX_CODE_UNITS = re.compile(r"(?:[0-9A-Fa-f]{4})+")
_TEXT_ENCODING = "utf-16-le"


def escape(data: str | None) -> str | None:
    """
    Double every ``'`` in ``data`` so it can sit inside a quoted literal.

    ``None`` is passed through unchanged.
    """
    if data is None:
        return None
    return data.replace(_QUOTE, _ESCAPED_QUOTE)


def unescape(data: str | None) -> str | None:
    """Collapse doubled ``''`` sequences produced by :func:`escape`."""
    if data is None:
        return None
    return data.replace(_ESCAPED_QUOTE, _QUOTE)


def to_hex_string(text: str | None) -> str | None:
    """
    Convert ``text`` to uppercase hex over its UTF-16 little-endian code units.

    Returns
    -------
    str | None
        Hex representation, or ``None`` for ``None``/empty input.
    """
    if not text:
        return None
    return text.encode(_TEXT_ENCODING, "surrogatepass").hex().upper()


def from_hex_string(hex_string: str | None) -> str | None:
    """
    Convert a string produced by :func:`to_hex_string` back to text.

    Input that is not a whole number of hex-encoded code units is not
    considered encoded and is returned unchanged.
    """
    if not hex_string:
        return None
    if _HEX_CODE_UNITS.fullmatch(hex_string) is None:
        return hex_string
    return bytes.fromhex(hex_string).decode(_TEXT_ENCODING, "surrogatepass")
