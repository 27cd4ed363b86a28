"""Error codes and the exception hierarchy.

Every failure raised by the codec or the text bridge is a PackError.  The
`.code` attribute is one of the ERR_* strings below; tests and the CLI
compare against it, so the strings are stable.

Errors are terminal for the operation that raised them: decode, encode and
from_text never return a partial tree or buffer.
"""

from __future__ import annotations

from typing import Optional

# ── Error codes ───────────────────────────────────────────────

ERR_EOF: str = "ERR_EOF"                  # declared length runs past the buffer
ERR_TAG: str = "ERR_TAG"                  # unknown / reserved format byte
ERR_TRAILING: str = "ERR_TRAILING"        # bytes left after the root value
ERR_UTF8: str = "ERR_UTF8"                # invalid UTF-8 or lone surrogate
ERR_LIMIT_DEPTH: str = "ERR_LIMIT_DEPTH"  # nesting deeper than max_depth
ERR_LENGTH: str = "ERR_LENGTH"            # length/count exceeds 2**32 - 1
ERR_TYPE: str = "ERR_TYPE"                # object in the tree is not a Value
ERR_TEXT_PARSE: str = "ERR_TEXT_PARSE"    # edited text is malformed
ERR_FIDELITY: str = "ERR_FIDELITY"        # text names a value we can't hold


class PackError(Exception):
    """Base exception for mpedit codec and text-bridge errors."""

    code: str = "ERR_PACK"

    def __init__(self, msg: str = "", code: Optional[str] = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(msg or self.code)


# ── Stage groupings ───────────────────────────────────────────

class DecodeError(PackError):
    """Raised while reading the binary wire format."""


class EncodeError(PackError):
    """Raised while writing the binary wire format."""


class TextError(PackError):
    """Raised while reading the text projection."""


# ── Concrete errors ───────────────────────────────────────────

class UnexpectedEndOfBuffer(DecodeError):
    code = ERR_EOF


class InvalidFormatTag(DecodeError):
    code = ERR_TAG


class TrailingBytes(DecodeError):
    code = ERR_TRAILING


class LengthOverflow(EncodeError):
    code = ERR_LENGTH


class UnsupportedValue(EncodeError):
    code = ERR_TYPE


class TextParseError(TextError):
    code = ERR_TEXT_PARSE


class FidelityLossError(TextError):
    code = ERR_FIDELITY


# These two can come out of any stage, so they hang off the root.

class InvalidUtf8(PackError):
    code = ERR_UTF8


class RecursionLimitExceeded(PackError):
    code = ERR_LIMIT_DEPTH
