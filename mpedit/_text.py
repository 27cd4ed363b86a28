"""Value ⇄ JSON text bridge.

Plain JSON can't tell Bin from Str, has no extension marker, can't key an
object by anything but a string, and is routinely read by tools that
squeeze every number through an IEEE754 double.  The projection therefore
reserves single-key objects whose key starts with "$" as type tags:

    Nil / Bool / Str     null, true/false, "text"   (strings are never tagged)
    Int                  42 / -7 when |v| ≤ 2**53 and the signedness is the
                         natural one (negative → int, non-negative → uint);
                         otherwise {"$int": "-9007199254740993"} or
                         {"$uint": "18446744073709551615"}
    Float64              1.5, 1e+300           (always has a '.' or exponent)
    Float32              {"$f32": 1.5}
    non-finite floats    {"$f64": "0x7ff8000000000000"}, {"$f32": "0x7f800000"}
    Bin                  {"$bin": "<base64>"}
    Ext                  {"$ext": {"type": 5, "data": "<base64>"}}
    canonical timestamp  {"$timestamp": {"seconds": 1, "nanoseconds": 0}}
    Map                  {"k": v, ...} when every key is a Str, none starts
                         with "$" and none repeats; else
                         {"$map": [[key, value], ...]}

With that, from_text(to_text(v)) == v for every Value.  A hand-edited
text can still name something the model can't hold (an integer past
64 bits, a float32 overflow); that raises FidelityLossError rather than
being clamped.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import re
import struct
from typing import Any, Dict, List, Tuple

from ._constants import (
    EXT_CODE_MAX,
    EXT_CODE_MIN,
    INT64_MAX,
    INT64_MIN,
    MAX_DEPTH,
    SAFE_INT_MAX,
    UINT64_MAX,
)
from ._errors import (
    FidelityLossError,
    InvalidUtf8,
    RecursionLimitExceeded,
    TextParseError,
    UnsupportedValue,
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
    Nil,
    Str,
    Value,
)

TAG_INT = "$int"
TAG_UINT = "$uint"
TAG_F32 = "$f32"
TAG_F64 = "$f64"
TAG_BIN = "$bin"
TAG_EXT = "$ext"
TAG_TIMESTAMP = "$timestamp"
TAG_MAP = "$map"

_DECIMAL = re.compile(r"^-?[0-9]+$")
_HEX32 = re.compile(r"^0x[0-9a-fA-F]{8}$")
_HEX64 = re.compile(r"^0x[0-9a-fA-F]{16}$")


def _enter(depth: int, max_depth: int) -> int:
    if depth + 1 > max_depth:
        raise RecursionLimitExceeded("nesting exceeds max depth {}".format(max_depth))
    return depth + 1


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ── Value → JSON-able ─────────────────────────────────────────

def _plain_keys(val: Map) -> bool:
    """True when the map can be shown as an ordinary JSON object."""
    seen = set()
    for k, _ in val.pairs:
        if not isinstance(k, Str) or k.value.startswith("$") or k.value in seen:
            return False
        seen.add(k.value)
    return True


def _to_json(val: Value, depth: int, max_depth: int) -> Any:
    if isinstance(val, Nil):
        return None
    if isinstance(val, Bool):
        return val.value
    if isinstance(val, Str):
        return val.value

    if isinstance(val, Int):
        v = val.value
        natural = val.signed == (v < 0)
        if natural and -SAFE_INT_MAX <= v <= SAFE_INT_MAX:
            return v
        return {TAG_INT if val.signed else TAG_UINT: str(v)}

    if isinstance(val, Float64):
        if math.isfinite(val.value):
            return val.value
        return {TAG_F64: "0x" + val.bits().hex()}
    if isinstance(val, Float32):
        if math.isfinite(val.value):
            return {TAG_F32: val.value}
        return {TAG_F32: "0x" + val.bits().hex()}

    if isinstance(val, Bin):
        return {TAG_BIN: _b64(val.data)}

    if isinstance(val, Ext):
        ts = val.timestamp()
        # Only the canonical layout is shown as a timestamp; anything else
        # would come back re-packed and no longer equal.
        if ts is not None and val.is_canonical_timestamp():
            return {TAG_TIMESTAMP: {"seconds": ts[0], "nanoseconds": ts[1]}}
        return {TAG_EXT: {"type": val.code, "data": _b64(val.data)}}

    if isinstance(val, Array):
        depth = _enter(depth, max_depth)
        return [_to_json(x, depth, max_depth) for x in val.items]

    if isinstance(val, Map):
        depth = _enter(depth, max_depth)
        if _plain_keys(val):
            return {k.value: _to_json(v, depth, max_depth) for k, v in val.pairs}
        return {TAG_MAP: [[_to_json(k, depth, max_depth), _to_json(v, depth, max_depth)]
                          for k, v in val.pairs]}

    raise UnsupportedValue("not a Value: {}".format(type(val).__name__))


def to_text(value: Value, *, indent: int = 2, max_depth: int = MAX_DEPTH) -> str:
    """Render a Value tree as editable JSON text."""
    obj = _to_json(value, 0, max_depth)
    return json.dumps(obj, indent=indent, ensure_ascii=False, allow_nan=False)


# ── JSON text → Value ─────────────────────────────────────────

class _Object(list):
    """A parsed JSON object kept as its raw (key, value) pairs, in order."""


def _reject_constant(name: str) -> Any:
    raise TextParseError("bare {} is not JSON; use {{\"$f64\": \"0x...\"}}".format(name))


def _fields(obj: Any, names: Tuple[str, ...], tag: str) -> Dict[str, Any]:
    if not isinstance(obj, _Object):
        raise TextParseError("{} expects an object".format(tag))
    out = dict(obj)
    if len(obj) != len(names) or set(out) != set(names):
        raise TextParseError("{} expects exactly the keys {}".format(tag, ", ".join(names)))
    return out


def _is_int(x: Any) -> bool:
    return isinstance(x, int) and not isinstance(x, bool)


def _parse_decimal(x: Any, tag: str) -> int:
    if _is_int(x):
        return x
    if isinstance(x, str) and _DECIMAL.match(x):
        try:
            return int(x)
        except ValueError:
            raise FidelityLossError("{} has too many digits".format(tag))
    raise TextParseError("{} expects a decimal string".format(tag))


def _parse_b64(x: Any, tag: str) -> bytes:
    if not isinstance(x, str):
        raise TextParseError("{} expects a base64 string".format(tag))
    try:
        return base64.b64decode(x, validate=True)
    except (binascii.Error, ValueError):
        raise TextParseError("{}: invalid base64".format(tag))


def _parse_bits(x: str, tag: str, pattern: "re.Pattern[str]", width: int) -> bytes:
    if not pattern.match(x):
        raise TextParseError("{} bit pattern must look like 0x{}".format(tag, "0" * width * 2))
    return bytes.fromhex(x[2:])


def _parse_number(x: Any, tag: str) -> float:
    if not isinstance(x, (int, float)) or isinstance(x, bool):
        raise TextParseError("{} expects a number or a bit-pattern string".format(tag))
    try:
        f = float(x)
    except OverflowError:
        raise FidelityLossError("{} value overflows a double".format(tag))
    if math.isinf(f):
        raise FidelityLossError("{} overflows a double; write infinities as bit patterns".format(tag))
    return f


def _from_tagged(tag: str, payload: Any, depth: int, max_depth: int) -> Value:
    if tag == TAG_INT:
        v = _parse_decimal(payload, tag)
        if not INT64_MIN <= v <= INT64_MAX:
            raise FidelityLossError("{} {} outside int64 range".format(tag, v))
        return Int(v, signed=True)

    if tag == TAG_UINT:
        v = _parse_decimal(payload, tag)
        if not 0 <= v <= UINT64_MAX:
            raise FidelityLossError("{} {} outside uint64 range".format(tag, v))
        return Int(v, signed=False)

    if tag == TAG_F32:
        if isinstance(payload, str):
            return Float32.from_bits(_parse_bits(payload, tag, _HEX32, 4))
        try:
            return Float32(_parse_number(payload, tag))
        except ValueError as e:
            raise FidelityLossError(str(e))

    if tag == TAG_F64:
        if isinstance(payload, str):
            return Float64(struct.unpack(">d", _parse_bits(payload, tag, _HEX64, 8))[0])
        return Float64(_parse_number(payload, tag))

    if tag == TAG_BIN:
        return Bin(_parse_b64(payload, tag))

    if tag == TAG_EXT:
        f = _fields(payload, ("type", "data"), tag)
        code = f["type"]
        if not _is_int(code):
            raise TextParseError("{} type must be an integer".format(tag))
        if not EXT_CODE_MIN <= code <= EXT_CODE_MAX:
            raise FidelityLossError("{} type {} outside int8 range".format(tag, code))
        return Ext(code, _parse_b64(f["data"], tag))

    if tag == TAG_TIMESTAMP:
        f = _fields(payload, ("seconds", "nanoseconds"), tag)
        if not (_is_int(f["seconds"]) and _is_int(f["nanoseconds"])):
            raise TextParseError("{} fields must be integers".format(tag))
        try:
            return Ext.from_timestamp(f["seconds"], f["nanoseconds"])
        except ValueError as e:
            raise FidelityLossError(str(e))

    if tag == TAG_MAP:
        if not isinstance(payload, list) or isinstance(payload, _Object):
            raise TextParseError("{} expects a list of [key, value] pairs".format(tag))
        depth = _enter(depth, max_depth)
        pairs: List[Tuple[Value, Value]] = []
        for entry in payload:
            if not isinstance(entry, list) or isinstance(entry, _Object) or len(entry) != 2:
                raise TextParseError("{} entries must be [key, value]".format(tag))
            pairs.append((_from_json(entry[0], depth, max_depth),
                          _from_json(entry[1], depth, max_depth)))
        return Map(tuple(pairs))

    raise TextParseError("unknown type tag {!r}".format(tag))


def _from_json(x: Any, depth: int, max_depth: int) -> Value:
    if isinstance(x, _Object):
        if any(k.startswith("$") for k, _ in x):
            if len(x) != 1:
                raise TextParseError(
                    "keys starting with '$' are reserved; use the {} form".format(TAG_MAP))
            tag, payload = x[0]
            return _from_tagged(tag, payload, depth, max_depth)
        depth = _enter(depth, max_depth)
        pairs = []
        for k, v in x:
            pairs.append((Str(k), _from_json(v, depth, max_depth)))
        return Map(tuple(pairs))

    if isinstance(x, list):
        depth = _enter(depth, max_depth)
        return Array(tuple(_from_json(v, depth, max_depth) for v in x))

    if isinstance(x, str):
        return Str(x)

    # bool before int
    if isinstance(x, bool):
        return Bool(x)

    if isinstance(x, int):
        if not INT64_MIN <= x <= UINT64_MAX:
            raise FidelityLossError("integer {} outside 64-bit range".format(x))
        return Int(x)

    if isinstance(x, float):
        if math.isinf(x):
            raise FidelityLossError("number overflows a double; write infinities as bit patterns")
        return Float64(x)

    if x is None:
        return NIL

    raise TextParseError("unexpected JSON type: {}".format(type(x).__name__))


def from_text(text: str, *, max_depth: int = MAX_DEPTH) -> Value:
    """Parse JSON text (as produced by to_text, possibly edited) into a Value tree."""
    try:
        obj = json.loads(
            text,
            object_pairs_hook=_Object,
            parse_constant=_reject_constant,
        )
    except json.JSONDecodeError as e:
        raise TextParseError("line {} column {}: {}".format(e.lineno, e.colno, e.msg))
    except UnicodeDecodeError:
        raise InvalidUtf8("text is not valid UTF-8")
    except ValueError as e:
        # integer literals past the interpreter's digit limit
        raise FidelityLossError(str(e))
    except RecursionError:
        raise RecursionLimitExceeded("text nesting too deep to parse")
    return _from_json(obj, 0, max_depth)
