"""MessagePack encoder — Value tree to canonical minimal-width bytes.

Every value is written in the narrowest form that holds it exactly:

    Int      fixint, then the smallest int*/uint* of the value's family
    Float32  always 4 bytes; Float64 always 8 (width is never changed)
    Str      fixstr (≤31 bytes), str8, str16, str32
    Bin      bin8, bin16, bin32 (there is no fixed-length bin form)
    Array    fixarray (≤15), array16, array32
    Map      fixmap (≤15), map16, map32 — pairs in stored order
    Ext      fixext1/2/4/8/16 on an exact size match, else ext8/16/32

The output is a pure function of the tree: no sorting, no dedup, no
coercion.  A length above 2**32 - 1 raises LengthOverflow instead of
being truncated.
"""

from __future__ import annotations

import struct

from ._constants import (
    FIXARRAY_MAX_COUNT,
    FIXARRAY_MIN,
    FIXEXT_TAGS,
    FIXMAP_MAX_COUNT,
    FIXMAP_MIN,
    FIXSTR_MAX_LEN,
    FIXSTR_MIN,
    INT8_MIN,
    INT16_MIN,
    INT32_MIN,
    MAX_DEPTH,
    MAX_LENGTH,
    NEGATIVE_FIXINT_LOWEST,
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
    LengthOverflow,
    RecursionLimitExceeded,
    UnsupportedValue,
)
from ._value import (
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
)


# ── Integers ──────────────────────────────────────────────────

def _encode_int(val: Int, out: bytearray) -> None:
    v = val.value
    if 0 <= v <= POSITIVE_FIXINT_MAX:
        out.append(v)
        return

    if not val.signed:
        if v <= 0xFF:
            out += struct.pack(">BB", TAG_UINT8, v)
        elif v <= 0xFFFF:
            out += struct.pack(">BH", TAG_UINT16, v)
        elif v <= 0xFFFFFFFF:
            out += struct.pack(">BI", TAG_UINT32, v)
        else:
            out += struct.pack(">BQ", TAG_UINT64, v)
        return

    # Signed family.  Non-negative values here are ≥128, so int8 never fits them.
    if NEGATIVE_FIXINT_LOWEST <= v < 0:
        out.append(v + 256)
    elif INT8_MIN <= v < 0:
        out += struct.pack(">Bb", TAG_INT8, v)
    elif INT16_MIN <= v <= 0x7FFF:
        out += struct.pack(">Bh", TAG_INT16, v)
    elif INT32_MIN <= v <= 0x7FFFFFFF:
        out += struct.pack(">Bi", TAG_INT32, v)
    else:
        out += struct.pack(">Bq", TAG_INT64, v)


# ── Length headers ────────────────────────────────────────────

def _check_length(n: int, what: str) -> None:
    if n > MAX_LENGTH:
        raise LengthOverflow("{} length {} exceeds {}".format(what, n, MAX_LENGTH))


def _write_sized(out: bytearray, n: int, tag8: int, tag16: int, tag32: int) -> None:
    """Header for str/bin/ext: the narrowest of the 8/16/32-bit length forms."""
    if n <= 0xFF:
        out += struct.pack(">BB", tag8, n)
    elif n <= 0xFFFF:
        out += struct.pack(">BH", tag16, n)
    else:
        out += struct.pack(">BI", tag32, n)


def _write_count(out: bytearray, n: int, fix_base: int, fix_max: int,
                 tag16: int, tag32: int) -> None:
    """Header for array/map: fix form, then 16- or 32-bit count."""
    if n <= fix_max:
        out.append(fix_base | n)
    elif n <= 0xFFFF:
        out += struct.pack(">BH", tag16, n)
    else:
        out += struct.pack(">BI", tag32, n)


# ── Recursive writer ──────────────────────────────────────────

def _encode_into(val: Value, out: bytearray, depth: int, max_depth: int) -> None:
    """Append the encoding of val to out.

    Depth semantics mirror the decoder: entering an Array or Map checks
    depth + 1 against max_depth, scalars don't count.
    """
    if isinstance(val, Nil):
        out.append(TAG_NIL)
        return

    if isinstance(val, Bool):
        out.append(TAG_TRUE if val.value else TAG_FALSE)
        return

    if isinstance(val, Int):
        _encode_int(val, out)
        return

    if isinstance(val, Float32):
        out.append(TAG_FLOAT32)
        out += val.bits()
        return

    if isinstance(val, Float64):
        out += struct.pack(">Bd", TAG_FLOAT64, val.value)
        return

    if isinstance(val, Str):
        raw = val.value.encode("utf-8")
        n = len(raw)
        _check_length(n, "str")
        if n <= FIXSTR_MAX_LEN:
            out.append(FIXSTR_MIN | n)
        else:
            _write_sized(out, n, TAG_STR8, TAG_STR16, TAG_STR32)
        out += raw
        return

    if isinstance(val, Bin):
        n = len(val.data)
        _check_length(n, "bin")
        _write_sized(out, n, TAG_BIN8, TAG_BIN16, TAG_BIN32)
        out += val.data
        return

    if isinstance(val, Ext):
        n = len(val.data)
        _check_length(n, "ext")
        if n in FIXEXT_TAGS:
            out.append(FIXEXT_TAGS[n])
        else:
            _write_sized(out, n, TAG_EXT8, TAG_EXT16, TAG_EXT32)
        out += struct.pack(">b", val.code)
        out += val.data
        return

    if isinstance(val, Array):
        if depth + 1 > max_depth:
            raise RecursionLimitExceeded("nesting exceeds max depth {}".format(max_depth))
        n = len(val.items)
        _check_length(n, "array")
        _write_count(out, n, FIXARRAY_MIN, FIXARRAY_MAX_COUNT, TAG_ARRAY16, TAG_ARRAY32)
        for item in val.items:
            _encode_into(item, out, depth + 1, max_depth)
        return

    if isinstance(val, Map):
        if depth + 1 > max_depth:
            raise RecursionLimitExceeded("nesting exceeds max depth {}".format(max_depth))
        n = len(val.pairs)
        _check_length(n, "map")
        _write_count(out, n, FIXMAP_MIN, FIXMAP_MAX_COUNT, TAG_MAP16, TAG_MAP32)
        for k, v in val.pairs:
            _encode_into(k, out, depth + 1, max_depth)
            _encode_into(v, out, depth + 1, max_depth)
        return

    raise UnsupportedValue("not a Value: {}".format(type(val).__name__))


def encode(value: Value, *, max_depth: int = MAX_DEPTH) -> bytes:
    """Encode a Value tree to canonical minimal-width MessagePack bytes."""
    out = bytearray()
    _encode_into(value, out, 0, max_depth)
    return bytes(out)
