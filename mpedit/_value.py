"""Value model — the closed set of variants a MessagePack tree can hold.

    Nil      — nil
    Bool     — true / false
    Int      — 64-bit integer with a signedness flag (int* vs uint* family)
    Float32  — binary32, kept at 32 bits
    Float64  — binary64
    Str      — UTF-8 text
    Bin      — opaque bytes, distinct from Str
    Array    — ordered sequence of values
    Map      — ordered (key, value) pairs; any key type, duplicates kept
    Ext      — int8 type code + opaque payload (timestamp is code -1)

All variants are frozen.  Containers store tuples so a tree can't be
mutated in place once built; editing means building a fresh tree.

Python's own types can't carry these distinctions on their own (int has
no signedness, float has no width, dict needs hashable unique keys), which
is why every variant is wrapped even where a native type looks close.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Tuple

from ._constants import (
    EXT_CODE_MAX,
    EXT_CODE_MIN,
    INT64_MAX,
    INT64_MIN,
    POSITIVE_FIXINT_MAX,
    TIMESTAMP_EXT,
    UINT64_MAX,
)
from ._errors import InvalidUtf8, UnsupportedValue


class Value:
    """Marker base for every variant."""

    __slots__ = ()


@dataclass(frozen=True)
class Nil(Value):
    pass


NIL = Nil()


@dataclass(frozen=True)
class Bool(Value):
    value: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bool(self.value))


@dataclass(frozen=True)
class Int(Value):
    """A 64-bit integer plus the wire family it belongs to.

    `signed` defaults to True for negatives and False otherwise.  The flag
    is normalised where only one family can hold the value:

      - negative            → signed
      - above INT64_MAX     → unsigned
      - 0..127              → unsigned (positive fixint is shared by both)

    Outside those cases the flag is kept as given, so an int16 holding 200
    stays distinct from a uint8 holding 200.
    """

    value: int
    signed: Optional[bool] = None

    def __post_init__(self) -> None:
        v = self.value
        # bool is an int subclass; Int(True) is always a caller bug.
        if isinstance(v, bool) or not isinstance(v, int):
            raise TypeError("Int value must be int, got {}".format(type(v).__name__))
        if v < INT64_MIN or v > UINT64_MAX:
            raise ValueError("integer {} outside 64-bit range".format(v))
        if v < 0:
            if self.signed is False:
                raise ValueError("negative integer {} cannot be unsigned".format(v))
            signed = True
        elif v > INT64_MAX:
            if self.signed:
                raise ValueError("integer {} exceeds int64".format(v))
            signed = False
        elif v <= POSITIVE_FIXINT_MAX:
            signed = False
        else:
            signed = bool(self.signed)
        object.__setattr__(self, "signed", signed)


def _f32_round(x: float) -> float:
    """Round a double to the nearest binary32.  OverflowError when too big."""
    return struct.unpack(">f", struct.pack(">f", x))[0]


class _FloatBits:
    """Bitwise equality, so NaN == NaN and 0.0 != -0.0."""

    __slots__ = ()
    _FMT = ">d"

    def bits(self) -> bytes:
        return struct.pack(self._FMT, self.value)  # type: ignore[attr-defined]

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.bits() == other.bits()  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.bits()))


@dataclass(frozen=True, eq=False)
class Float32(_FloatBits, Value):
    """binary32.  A NaN keeps its exact 4 payload bytes in `_raw`; equality
    and re-encoding use those bytes, not the widened double.
    """

    value: float
    _raw: Optional[bytes] = field(default=None, repr=False)
    _FMT = ">f"

    def __post_init__(self) -> None:
        x = float(self.value)
        if math.isnan(x):
            if self._raw is not None:
                raw = bytes(self._raw)
                if len(raw) != 4 or not math.isnan(struct.unpack(">f", raw)[0]):
                    raise ValueError("raw bits must be a 4-byte float32 NaN")
                object.__setattr__(self, "_raw", raw)
        else:
            try:
                x = _f32_round(x)
            except OverflowError:
                raise ValueError("{!r} overflows float32".format(self.value))
            object.__setattr__(self, "_raw", None)
        object.__setattr__(self, "value", x)

    @classmethod
    def from_bits(cls, raw: bytes) -> "Float32":
        """Build from 4 big-endian IEEE bytes, NaN payload included."""
        x = struct.unpack(">f", raw)[0]
        return cls(x, bytes(raw)) if math.isnan(x) else cls(x)

    def bits(self) -> bytes:
        if self._raw is not None:
            return self._raw
        return struct.pack(">f", self.value)


@dataclass(frozen=True, eq=False)
class Float64(_FloatBits, Value):
    value: float
    _FMT = ">d"

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))


@dataclass(frozen=True)
class Str(Value):
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeError("Str value must be str")
        # Lone surrogates have no UTF-8 form.
        try:
            self.value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise InvalidUtf8("str holds lone surrogate U+{:04X}".format(
                ord(self.value[e.start])))


@dataclass(frozen=True)
class Bin(Value):
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))


# ── Containers ────────────────────────────────────────────────
# Generated dataclass __eq__/__hash__ recurse through tuple compares, which
# runs out of interpreter stack well before MAX_DEPTH on older Pythons.
# Containers walk the tree with an explicit stack instead.

def _tree_eq(a: Value, b: Value) -> bool:
    stack = [(a, b)]
    while stack:
        x, y = stack.pop()
        if x is y:
            continue
        if type(x) is not type(y):
            return False
        if isinstance(x, Array):
            if len(x.items) != len(y.items):
                return False
            stack.extend(zip(x.items, y.items))
        elif isinstance(x, Map):
            if len(x.pairs) != len(y.pairs):
                return False
            for (xk, xv), (yk, yv) in zip(x.pairs, y.pairs):
                stack.append((xk, yk))
                stack.append((xv, yv))
        elif x != y:
            return False
    return True


def _tree_hash(root: Value) -> int:
    parts = []
    stack = [root]
    while stack:
        x = stack.pop()
        if isinstance(x, Array):
            parts.append(("Array", len(x.items)))
            stack.extend(reversed(x.items))
        elif isinstance(x, Map):
            parts.append(("Map", len(x.pairs)))
            for k, v in reversed(x.pairs):
                stack.append(v)
                stack.append(k)
        else:
            parts.append(hash(x))
    return hash(tuple(parts))


@dataclass(frozen=True, eq=False)
class Array(Value):
    items: Tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Value]:
        return iter(self.items)

    def __eq__(self, other: object) -> bool:
        if type(other) is not Array:
            return NotImplemented
        return _tree_eq(self, other)  # type: ignore[arg-type]

    def __hash__(self) -> int:
        return _tree_hash(self)


@dataclass(frozen=True, eq=False)
class Map(Value):
    """Ordered key/value pairs.  Order is wire order; nothing is sorted or merged."""

    pairs: Tuple[Tuple[Value, Value], ...] = ()

    def __post_init__(self) -> None:
        frozen = []
        for pair in self.pairs:
            k, v = pair
            frozen.append((k, v))
        object.__setattr__(self, "pairs", tuple(frozen))

    def __len__(self) -> int:
        return len(self.pairs)

    def __iter__(self) -> Iterator[Tuple[Value, Value]]:
        return iter(self.pairs)

    def __eq__(self, other: object) -> bool:
        if type(other) is not Map:
            return NotImplemented
        return _tree_eq(self, other)  # type: ignore[arg-type]

    def __hash__(self) -> int:
        return _tree_hash(self)

    def get(self, key: Value, default: Optional[Value] = None) -> Optional[Value]:
        """First value stored under `key`, or `default`."""
        for k, v in self.pairs:
            if k == key:
                return v
        return default


# ── Extension & timestamp ─────────────────────────────────────
# Timestamp (type -1) has three payload layouts:
#   4 bytes : uint32 seconds
#   8 bytes : uint64 = nanoseconds << 34 | seconds (34-bit)
#  12 bytes : uint32 nanoseconds + int64 seconds

_NSEC_MAX = 999_999_999


@dataclass(frozen=True)
class Ext(Value):
    code: int
    data: bytes = b""

    def __post_init__(self) -> None:
        if isinstance(self.code, bool) or not isinstance(self.code, int):
            raise TypeError("Ext code must be int")
        if not EXT_CODE_MIN <= self.code <= EXT_CODE_MAX:
            raise ValueError("ext type {} outside int8 range".format(self.code))
        object.__setattr__(self, "data", bytes(self.data))

    def timestamp(self) -> Optional[Tuple[int, int]]:
        """(seconds, nanoseconds) for a well-formed timestamp, else None."""
        if self.code != TIMESTAMP_EXT:
            return None
        d = self.data
        if len(d) == 4:
            return struct.unpack(">I", d)[0], 0
        if len(d) == 8:
            packed = struct.unpack(">Q", d)[0]
            nsec, sec = packed >> 34, packed & 0x3_FFFF_FFFF
        elif len(d) == 12:
            nsec, sec = struct.unpack(">Iq", d)
        else:
            return None
        if nsec > _NSEC_MAX:
            return None
        return sec, nsec

    @classmethod
    def from_timestamp(cls, seconds: int, nanoseconds: int = 0) -> "Ext":
        """Build a timestamp using the narrowest layout that holds it."""
        if not 0 <= nanoseconds <= _NSEC_MAX:
            raise ValueError("nanoseconds out of range: {}".format(nanoseconds))
        if 0 <= seconds < 2**34:
            if nanoseconds == 0 and seconds < 2**32:
                return cls(TIMESTAMP_EXT, struct.pack(">I", seconds))
            return cls(TIMESTAMP_EXT, struct.pack(">Q", (nanoseconds << 34) | seconds))
        if not INT64_MIN <= seconds <= INT64_MAX:
            raise ValueError("seconds out of int64 range: {}".format(seconds))
        return cls(TIMESTAMP_EXT, struct.pack(">Iq", nanoseconds, seconds))

    def is_canonical_timestamp(self) -> bool:
        ts = self.timestamp()
        return ts is not None and Ext.from_timestamp(*ts) == self


# ── Native Python conversion ──────────────────────────────────

def from_python(obj: Any) -> Value:
    """Wrap native Python data as a Value tree.

    int → Int (natural signedness), float → Float64, bytes → Bin,
    list/tuple → Array, dict → Map in iteration order.  Values pass through.
    """
    if isinstance(obj, Value):
        return obj
    if obj is None:
        return NIL
    # bool before int
    if isinstance(obj, bool):
        return Bool(obj)
    if isinstance(obj, int):
        try:
            return Int(obj)
        except ValueError as e:
            raise UnsupportedValue(str(e))
    if isinstance(obj, float):
        return Float64(obj)
    if isinstance(obj, str):
        return Str(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return Bin(bytes(obj))
    if isinstance(obj, (list, tuple)):
        return Array(tuple(from_python(x) for x in obj))
    if isinstance(obj, dict):
        return Map(tuple((from_python(k), from_python(v)) for k, v in obj.items()))
    raise UnsupportedValue("unsupported type: {}".format(type(obj).__name__))


def to_python(val: Value) -> Any:
    """Unwrap a Value tree into plain Python data.

    Lossy by nature: signedness and float width are dropped.  A Map becomes
    a dict only when its keys are hashable and unique, otherwise a list of
    (key, value) tuples.  Ext values are returned as-is.
    """
    if isinstance(val, Nil):
        return None
    if isinstance(val, (Bool, Int, Float32, Float64, Str)):
        return val.value
    if isinstance(val, Bin):
        return val.data
    if isinstance(val, Array):
        return [to_python(x) for x in val.items]
    if isinstance(val, Map):
        pairs = [(to_python(k), to_python(v)) for k, v in val.pairs]
        try:
            out = dict(pairs)
        except TypeError:
            return pairs
        return out if len(out) == len(pairs) else pairs
    if isinstance(val, Ext):
        return val
    raise UnsupportedValue("not a Value: {}".format(type(val).__name__))
