"""MessagePack decoder — bytes to a Value tree.

Single-pass recursive descent over an offset into the input buffer.  The
input is untrusted, so the rules are:

  - every length or count is checked against the bytes that remain
    *before* anything is sliced or allocated (UnexpectedEndOfBuffer);
  - nesting is bounded by max_depth (RecursionLimitExceeded);
  - str payloads must be strict UTF-8 (InvalidUtf8);
  - 0xc1 and anything else unassigned is rejected (InvalidFormatTag).

On any error the exception propagates out of decode(); no partial tree is
ever returned.
"""

from __future__ import annotations

import struct
from typing import List, Tuple

from ._constants import (
    FIXARRAY_MIN,
    FIXMAP_MIN,
    FIXSTR_MIN,
    MAX_DEPTH,
    NEGATIVE_FIXINT_MIN,
    POSITIVE_FIXINT_MAX,
    TAG_ARRAY16,
    TAG_ARRAY32,
    TAG_BIN8,
    TAG_BIN16,
    TAG_BIN32,
    TAG_EXT8,
    TAG_EXT16,
    TAG_EXT32,
    TAG_FALSE,
    TAG_FIXEXT1,
    TAG_FIXEXT2,
    TAG_FIXEXT4,
    TAG_FIXEXT8,
    TAG_FIXEXT16,
    TAG_FLOAT32,
    TAG_FLOAT64,
    TAG_INT8,
    TAG_INT16,
    TAG_INT32,
    TAG_INT64,
    TAG_MAP16,
    TAG_MAP32,
    TAG_NIL,
    TAG_STR8,
    TAG_STR16,
    TAG_STR32,
    TAG_TRUE,
    TAG_UINT8,
    TAG_UINT16,
    TAG_UINT32,
    TAG_UINT64,
)
from ._errors import (
    InvalidFormatTag,
    InvalidUtf8,
    RecursionLimitExceeded,
    TrailingBytes,
    UnexpectedEndOfBuffer,
)
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
    Str,
    Value,
)

# ── Tag tables ────────────────────────────────────────────────
# struct format for each fixed-width numeric tag, plus signedness.

_INT_FORMATS = {
    TAG_UINT8: (">B", 1, False),
    TAG_UINT16: (">H", 2, False),
    TAG_UINT32: (">I", 4, False),
    TAG_UINT64: (">Q", 8, False),
    TAG_INT8: (">b", 1, True),
    TAG_INT16: (">h", 2, True),
    TAG_INT32: (">i", 4, True),
    TAG_INT64: (">q", 8, True),
}

# Width in bytes of the length field that follows each variable-length tag.
_STR_LEN_WIDTH = {TAG_STR8: 1, TAG_STR16: 2, TAG_STR32: 4}
_BIN_LEN_WIDTH = {TAG_BIN8: 1, TAG_BIN16: 2, TAG_BIN32: 4}
_EXT_LEN_WIDTH = {TAG_EXT8: 1, TAG_EXT16: 2, TAG_EXT32: 4}
_ARRAY_LEN_WIDTH = {TAG_ARRAY16: 2, TAG_ARRAY32: 4}
_MAP_LEN_WIDTH = {TAG_MAP16: 2, TAG_MAP32: 4}

_FIXEXT_SIZES = {
    TAG_FIXEXT1: 1,
    TAG_FIXEXT2: 2,
    TAG_FIXEXT4: 4,
    TAG_FIXEXT8: 8,
    TAG_FIXEXT16: 16,
}

_UINT_BY_WIDTH = {1: ">B", 2: ">H", 4: ">I"}


# ── Bounded readers ───────────────────────────────────────────

def _take(buf: bytes, off: int, n: int, what: str) -> Tuple[bytes, int]:
    """Slice n bytes at off, or fail without touching anything past the end."""
    if n > len(buf) - off:
        raise UnexpectedEndOfBuffer(
            "truncated {}: need {} bytes at offset {}, have {}".format(
                what, n, off, len(buf) - off))
    return buf[off:off + n], off + n


def _read_len(buf: bytes, off: int, width: int, what: str) -> Tuple[int, int]:
    raw, off = _take(buf, off, width, what + " length")
    return struct.unpack(_UINT_BY_WIDTH[width], raw)[0], off


def _read_str(buf: bytes, off: int, n: int) -> Tuple[Value, int]:
    raw, off = _take(buf, off, n, "str payload")
    try:
        return Str(raw.decode("utf-8", errors="strict")), off
    except UnicodeDecodeError as e:
        raise InvalidUtf8("invalid utf-8 in str at offset {}: {}".format(
            off - n + e.start, e.reason))


def _read_ext(buf: bytes, off: int, n: int) -> Tuple[Value, int]:
    code_byte, off = _take(buf, off, 1, "ext type")
    payload, off = _take(buf, off, n, "ext payload")
    return Ext(struct.unpack(">b", code_byte)[0], payload), off


def _read_array(buf: bytes, off: int, count: int, depth: int,
                max_depth: int) -> Tuple[Value, int]:
    # Every element takes at least one byte, so a count larger than what's
    # left can be rejected before looping.
    if count > len(buf) - off:
        raise UnexpectedEndOfBuffer(
            "array declares {} elements, only {} bytes remain".format(count, len(buf) - off))
    items: List[Value] = []
    for _ in range(count):
        item, off = _decode_one(buf, off, depth, max_depth)
        items.append(item)
    return Array(tuple(items)), off


def _read_map(buf: bytes, off: int, count: int, depth: int,
              max_depth: int) -> Tuple[Value, int]:
    if count * 2 > len(buf) - off:
        raise UnexpectedEndOfBuffer(
            "map declares {} pairs, only {} bytes remain".format(count, len(buf) - off))
    pairs: List[Tuple[Value, Value]] = []
    for _ in range(count):
        k, off = _decode_one(buf, off, depth, max_depth)
        v, off = _decode_one(buf, off, depth, max_depth)
        pairs.append((k, v))
    return Map(tuple(pairs)), off


def _enter(depth: int, max_depth: int) -> int:
    if depth + 1 > max_depth:
        raise RecursionLimitExceeded("nesting exceeds max depth {}".format(max_depth))
    return depth + 1


# ── Dispatch ──────────────────────────────────────────────────

def _decode_one(buf: bytes, off: int, depth: int, max_depth: int = MAX_DEPTH) -> Tuple[Value, int]:
    """Decode one value starting at off.  Returns (value, next offset).

    `depth` counts the containers enclosing this value.  Entering an array
    or map checks depth + 1 against max_depth; scalars don't count.
    """
    tag_byte, off = _take(buf, off, 1, "format byte")
    tag = tag_byte[0]

    # ── fix families: payload lives in the tag ──
    if tag <= POSITIVE_FIXINT_MAX:
        return Int(tag, signed=False), off
    if tag >= NEGATIVE_FIXINT_MIN:
        return Int(tag - 256, signed=True), off
    if FIXMAP_MIN <= tag < FIXARRAY_MIN:
        return _read_map(buf, off, tag & 0x0F, _enter(depth, max_depth), max_depth)
    if FIXARRAY_MIN <= tag < FIXSTR_MIN:
        return _read_array(buf, off, tag & 0x0F, _enter(depth, max_depth), max_depth)
    if FIXSTR_MIN <= tag < TAG_NIL:
        return _read_str(buf, off, tag & 0x1F)

    # ── single-byte constants ──
    if tag == TAG_NIL:
        return NIL, off
    if tag == TAG_FALSE:
        return Bool(False), off
    if tag == TAG_TRUE:
        return Bool(True), off

    # ── integers and floats ──
    if tag in _INT_FORMATS:
        fmt, width, signed = _INT_FORMATS[tag]
        raw, off = _take(buf, off, width, "integer payload")
        return Int(struct.unpack(fmt, raw)[0], signed=signed), off
    if tag == TAG_FLOAT32:
        raw, off = _take(buf, off, 4, "float32 payload")
        return Float32.from_bits(raw), off
    if tag == TAG_FLOAT64:
        raw, off = _take(buf, off, 8, "float64 payload")
        return Float64(struct.unpack(">d", raw)[0]), off

    # ── length-prefixed payloads ──
    if tag in _STR_LEN_WIDTH:
        n, off = _read_len(buf, off, _STR_LEN_WIDTH[tag], "str")
        return _read_str(buf, off, n)
    if tag in _BIN_LEN_WIDTH:
        n, off = _read_len(buf, off, _BIN_LEN_WIDTH[tag], "bin")
        raw, off = _take(buf, off, n, "bin payload")
        return Bin(raw), off
    if tag in _FIXEXT_SIZES:
        return _read_ext(buf, off, _FIXEXT_SIZES[tag])
    if tag in _EXT_LEN_WIDTH:
        n, off = _read_len(buf, off, _EXT_LEN_WIDTH[tag], "ext")
        return _read_ext(buf, off, n)

    # ── containers ──
    if tag in _ARRAY_LEN_WIDTH:
        count, off = _read_len(buf, off, _ARRAY_LEN_WIDTH[tag], "array")
        return _read_array(buf, off, count, _enter(depth, max_depth), max_depth)
    if tag in _MAP_LEN_WIDTH:
        count, off = _read_len(buf, off, _MAP_LEN_WIDTH[tag], "map")
        return _read_map(buf, off, count, _enter(depth, max_depth), max_depth)

    # Only 0xc1 (never used) is left.
    raise InvalidFormatTag("invalid format byte 0x{:02x} at offset {}".format(tag, off - 1))


# ── Public entry points ───────────────────────────────────────

def decode(buf: bytes, *, max_depth: int = MAX_DEPTH) -> Value:
    """Decode exactly one MessagePack value that fills the whole buffer."""
    buf = bytes(buf)
    val, end = _decode_one(buf, 0, 0, max_depth)
    if end != len(buf):
        raise TrailingBytes("{} extra byte(s) after root value".format(len(buf) - end))
    return val


def decode_all(buf: bytes, *, max_depth: int = MAX_DEPTH) -> List[Value]:
    """Decode a concatenation of MessagePack values (an empty buffer gives [])."""
    buf = bytes(buf)
    out: List[Value] = []
    off = 0
    while off < len(buf):
        val, off = _decode_one(buf, off, 0, max_depth)
        out.append(val)
    return out
