"""MessagePack wire constants, integer bounds, and safety limits.

Format-byte values follow the MessagePack wire format.  Everything the
decoder dispatches on and the encoder emits is named here so the two
sides can never drift apart.
"""

from __future__ import annotations

# ── Fixed-range format bytes ─────────────────────────────────
# Each "fix" family packs its payload (value or length) into the low bits
# of the format byte itself.
POSITIVE_FIXINT_MAX: int = 0x7F
FIXMAP_MIN: int = 0x80          # 0x80–0x8f, low 4 bits = pair count
FIXARRAY_MIN: int = 0x90        # 0x90–0x9f, low 4 bits = element count
FIXSTR_MIN: int = 0xA0          # 0xa0–0xbf, low 5 bits = byte length
NEGATIVE_FIXINT_MIN: int = 0xE0  # 0xe0–0xff, value = byte - 256

FIXMAP_MAX_COUNT: int = 15
FIXARRAY_MAX_COUNT: int = 15
FIXSTR_MAX_LEN: int = 31

# ── Single-byte format tags ──────────────────────────────────
TAG_NIL: int = 0xC0
TAG_NEVER_USED: int = 0xC1      # reserved, always invalid
TAG_FALSE: int = 0xC2
TAG_TRUE: int = 0xC3

TAG_BIN8: int = 0xC4
TAG_BIN16: int = 0xC5
TAG_BIN32: int = 0xC6

TAG_EXT8: int = 0xC7
TAG_EXT16: int = 0xC8
TAG_EXT32: int = 0xC9

TAG_FLOAT32: int = 0xCA
TAG_FLOAT64: int = 0xCB

TAG_UINT8: int = 0xCC
TAG_UINT16: int = 0xCD
TAG_UINT32: int = 0xCE
TAG_UINT64: int = 0xCF

TAG_INT8: int = 0xD0
TAG_INT16: int = 0xD1
TAG_INT32: int = 0xD2
TAG_INT64: int = 0xD3

TAG_FIXEXT1: int = 0xD4
TAG_FIXEXT2: int = 0xD5
TAG_FIXEXT4: int = 0xD6
TAG_FIXEXT8: int = 0xD7
TAG_FIXEXT16: int = 0xD8

TAG_STR8: int = 0xD9
TAG_STR16: int = 0xDA
TAG_STR32: int = 0xDB

TAG_ARRAY16: int = 0xDC
TAG_ARRAY32: int = 0xDD
TAG_MAP16: int = 0xDE
TAG_MAP32: int = 0xDF

# fixext payload size → tag.  Only these five sizes have a fixed form.
FIXEXT_TAGS = {
    1: TAG_FIXEXT1,
    2: TAG_FIXEXT2,
    4: TAG_FIXEXT4,
    8: TAG_FIXEXT8,
    16: TAG_FIXEXT16,
}

# ── Integer ranges ───────────────────────────────────────────
# Python ints are unbounded, so every range is checked by hand.
INT8_MIN: int = -(2**7)
INT16_MIN: int = -(2**15)
INT32_MIN: int = -(2**31)
INT64_MIN: int = -(2**63)
INT64_MAX: int = 2**63 - 1
UINT64_MAX: int = 2**64 - 1
NEGATIVE_FIXINT_LOWEST: int = -32

# Largest magnitude a JSON reader backed by IEEE754 doubles keeps exact.
SAFE_INT_MAX: int = 2**53

# ── Extension types ──────────────────────────────────────────
EXT_CODE_MIN: int = -128
EXT_CODE_MAX: int = 127
TIMESTAMP_EXT: int = -1

# ── Safety limits ────────────────────────────────────────────
# MAX_DEPTH bounds container nesting in every stage (decode, encode, text).
# It sits well under the interpreter's default recursion limit because the
# text projection can nest up to three JSON levels per container.
MAX_DEPTH: int = 256

# Largest length or count any MessagePack header can carry (32-bit field).
MAX_LENGTH: int = 2**32 - 1

# ── Application defaults ─────────────────────────────────────
DEFAULT_MIME: str = "application/x-msgpack"
HISTORY_CAPACITY: int = 20
