#!/usr/bin/env python3
# tools/fuzz_runner.py
#
# Randomised round-trip fuzzing for the mpedit codec.
#
# Each round builds a random Value tree and checks:
#   A) decode(encode(v)) == v, and re-encoding is byte-identical
#   B) from_text(to_text(v)) == v
#   C) every strict prefix of encode(v) fails with ERR_EOF
#   D) random byte strings decode or fail with a PackError, never anything else
#
# Any failure prints a minimal repro payload and exits non-zero.
#
#   MPEDIT_SEED=7 MPEDIT_FUZZ_ROUNDS=20000 python tools/fuzz_runner.py

import os, sys, math, random
from typing import Any, Dict

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from mpedit import (
    NIL, Array, Bin, Bool, Ext, Float32, Float64, Int, Map, Str, Value,
    PackError, UnexpectedEndOfBuffer, decode, encode, from_text, to_text,
)

SEED = int(os.environ.get("MPEDIT_SEED", "4242"))
ROUNDS = int(os.environ.get("MPEDIT_FUZZ_ROUNDS", "5000"))

random.seed(SEED)

def failure(label: str, ctx: Dict[str, Any]) -> None:
    print("FAILURE:", label)
    for k, v in ctx.items():
        print("  {}: {}".format(k, str(v)[:4000]))
    raise SystemExit(1)

# --- generators ---

def rand_bytes(n: int) -> bytes:
    return bytes(random.getrandbits(8) for _ in range(n))

# Values near every width boundary the encoder switches on.
INT_EDGES = [
    0, 1, 127, 128, 255, 256, 65535, 65536, 2**32 - 1, 2**32, 2**53, 2**53 + 1,
    2**63 - 1, 2**63, 2**64 - 1,
    -1, -32, -33, -128, -129, -32768, -32769, -2**31, -2**31 - 1, -2**63,
]

FLOAT_EDGES = [0.0, -0.0, 1.5, -2.25, 1e300, 5e-324, math.inf, -math.inf, math.nan]

def rand_text(nmax: int) -> str:
    n = random.randint(0, nmax)
    out = []
    for _ in range(n):
        r = random.random()
        if r < 0.8:
            out.append(chr(random.randint(0x20, 0x7E)))
        elif r < 0.95:
            out.append(chr(random.randint(0xA0, 0xD7FF)))
        else:
            out.append(chr(random.randint(0x10000, 0x10FFFF)))
    s = "".join(out)
    # keys that look like tags must survive too
    if random.random() < 0.05:
        s = "$" + s
    return s

def rand_int() -> Int:
    if random.random() < 0.5:
        v = random.choice(INT_EDGES)
    else:
        v = random.randint(-2**63, 2**64 - 1)
    if 128 <= v <= 2**63 - 1 and random.random() < 0.3:
        return Int(v, signed=True)
    return Int(v)

def rand_float() -> Value:
    x = random.choice(FLOAT_EDGES) if random.random() < 0.4 else random.uniform(-1e6, 1e6)
    if random.random() < 0.5:
        if math.isfinite(x) and abs(x) > 3.4e38:
            x = 1.0
        return Float32(x)
    return Float64(x)

def rand_ext() -> Ext:
    if random.random() < 0.4:
        sec = random.choice([0, 1, 2**32 - 1, 2**32, 2**34 - 1, 2**34, -1, -2**40])
        nsec = random.choice([0, 1, 999_999_999])
        return Ext.from_timestamp(sec, nsec)
    n = random.choice([0, 1, 2, 3, 4, 8, 16, 17, 255, 256])
    return Ext(random.randint(-128, 127), rand_bytes(n))

def rand_scalar() -> Value:
    r = random.random()
    if r < 0.05:
        return NIL
    if r < 0.10:
        return Bool(random.random() < 0.5)
    if r < 0.40:
        return rand_int()
    if r < 0.50:
        return rand_float()
    if r < 0.80:
        return Str(rand_text(40))
    if r < 0.90:
        return Bin(rand_bytes(random.randint(0, 40)))
    return rand_ext()

def rand_tree(depth: int = 0) -> Value:
    if depth > 5 or random.random() < 0.35:
        return rand_scalar()
    if random.random() < 0.5:
        return Array([rand_tree(depth + 1) for _ in range(random.randint(0, 6))])
    pairs = []
    for _ in range(random.randint(0, 6)):
        # mostly string keys, sometimes anything
        key = Str(rand_text(10)) if random.random() < 0.8 else rand_tree(depth + 1)
        pairs.append((key, rand_tree(depth + 1)))
    # duplicate keys are legal on the wire
    if pairs and random.random() < 0.05:
        pairs.append(pairs[0])
    return Map(pairs)

# --- checks ---

def check_tree(i: int, v: Value) -> None:
    try:
        raw = encode(v)
    except PackError as e:
        failure("encode raised", {"round": i, "value": v, "err": e.code})
        return
    back = decode(raw)
    if back != v:
        failure("A binary round trip", {"round": i, "hex": raw.hex(), "value": v, "got": back})
    if encode(back) != raw:
        failure("A re-encode differs", {"round": i, "hex": raw.hex()})
    text = to_text(v)
    if from_text(text) != v:
        failure("B text round trip", {"round": i, "hex": raw.hex(), "text": text})
    cuts = range(len(raw)) if len(raw) <= 64 else random.sample(range(len(raw)), 64)
    for cut in cuts:
        try:
            decode(raw[:cut])
        except UnexpectedEndOfBuffer:
            continue
        except PackError as e:
            failure("C wrong error on prefix", {"round": i, "hex": raw[:cut].hex(), "err": e.code})
        failure("C prefix decoded", {"round": i, "hex": raw[:cut].hex()})

def check_noise(i: int) -> None:
    raw = rand_bytes(random.randint(0, 32))
    try:
        decode(raw)
    except PackError:
        pass
    except Exception as e:  # anything else is a decoder bug
        failure("D unexpected exception", {"round": i, "hex": raw.hex(), "exc": repr(e)})

def main() -> int:
    for i in range(ROUNDS):
        if random.random() < 0.8:
            check_tree(i, rand_tree())
        else:
            check_noise(i)

    print(f"OK: fuzz rounds={ROUNDS} seed={SEED} (no failures)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
