"""mpedit: lossless MessagePack ⇄ editable text.

Decode an untrusted MessagePack buffer into a typed Value tree, show it as
JSON text a person can edit, and pack the edited text back into canonical
minimal-width MessagePack.

Quick start:
    >>> from mpedit import decode, encode, to_text, from_text
    >>> tree = decode(bytes([0x81, 0xa1, 0x61, 0x01]))
    >>> print(to_text(tree))
    {
      "a": 1
    }
    >>> encode(from_text('{"a": 1}'))
    b'\\x81\\xa1a\\x01'

Values the plain JSON model would flatten (Bin, Ext, float32, integers past
2**53, non-string map keys) travel through the text as "$"-tagged objects,
so decode → to_text → from_text → encode never loses a distinction.
"""

from __future__ import annotations

from ._constants import DEFAULT_MIME, HISTORY_CAPACITY, MAX_DEPTH, MAX_LENGTH
from ._decode import decode, decode_all
from ._encode import encode
from ._errors import (
    ERR_EOF,
    ERR_FIDELITY,
    ERR_LENGTH,
    ERR_LIMIT_DEPTH,
    ERR_TAG,
    ERR_TEXT_PARSE,
    ERR_TRAILING,
    ERR_TYPE,
    ERR_UTF8,
    DecodeError,
    EncodeError,
    FidelityLossError,
    InvalidFormatTag,
    InvalidUtf8,
    LengthOverflow,
    PackError,
    RecursionLimitExceeded,
    TextError,
    TextParseError,
    TrailingBytes,
    UnexpectedEndOfBuffer,
    UnsupportedValue,
)
from ._files import format_file_size, repack_name, text_name
from ._history import HistoryEntry, HistoryRecord, HistoryStore, default_home
from ._text import from_text, to_text
from ._value import (
    NIL,
    Array,
    Bin,
    Bool,
    Ext,
    Float32,
    Float64,
    Int,
    Map,
    Nil,
    Str,
    Value,
    from_python,
    to_python,
)

__version__ = "1.0.0"

__all__ = [
    # Codec
    "decode",
    "decode_all",
    "encode",
    "to_text",
    "from_text",
    "repack",
    "unpack",
    # Value model
    "Value",
    "Nil",
    "NIL",
    "Bool",
    "Int",
    "Float32",
    "Float64",
    "Str",
    "Bin",
    "Array",
    "Map",
    "Ext",
    "from_python",
    "to_python",
    # Exceptions
    "PackError",
    "DecodeError",
    "EncodeError",
    "TextError",
    "UnexpectedEndOfBuffer",
    "InvalidFormatTag",
    "TrailingBytes",
    "InvalidUtf8",
    "RecursionLimitExceeded",
    "LengthOverflow",
    "UnsupportedValue",
    "TextParseError",
    "FidelityLossError",
    # Error codes
    "ERR_EOF",
    "ERR_TAG",
    "ERR_TRAILING",
    "ERR_UTF8",
    "ERR_LIMIT_DEPTH",
    "ERR_LENGTH",
    "ERR_TYPE",
    "ERR_TEXT_PARSE",
    "ERR_FIDELITY",
    # Files & history
    "format_file_size",
    "repack_name",
    "text_name",
    "HistoryStore",
    "HistoryRecord",
    "HistoryEntry",
    "default_home",
    # Limits
    "MAX_DEPTH",
    "MAX_LENGTH",
    "DEFAULT_MIME",
    "HISTORY_CAPACITY",
]


# ── One-step pipelines ────────────────────────────────────────

def unpack(raw: bytes, *, max_depth: int = MAX_DEPTH, indent: int = 2) -> str:
    """MessagePack bytes → editable text."""
    return to_text(decode(raw, max_depth=max_depth), indent=indent, max_depth=max_depth)


def repack(text: str, *, max_depth: int = MAX_DEPTH) -> bytes:
    """Edited text → canonical MessagePack bytes."""
    return encode(from_text(text, max_depth=max_depth), max_depth=max_depth)
