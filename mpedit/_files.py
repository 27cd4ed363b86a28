"""Display and naming helpers for files moving in and out of the editor."""

from __future__ import annotations

import re

_UNITS = ("Bytes", "KB", "MB", "GB")
_PACKED_SUFFIX = re.compile(r"\.(json|msgpack)$", re.IGNORECASE)


def format_file_size(size: int) -> str:
    """Human-readable size: '0 Bytes', '512 Bytes', '1.5 KB', '2 MB'.

    Up to two decimals, trailing zeros dropped.  GB is the largest unit.
    """
    if size <= 0:
        return "0 Bytes"
    i = 0
    scaled = float(size)
    while scaled >= 1024 and i < len(_UNITS) - 1:
        scaled /= 1024
        i += 1
    text = "{:.2f}".format(scaled).rstrip("0").rstrip(".")
    return "{} {}".format(text, _UNITS[i])


def repack_name(name: str) -> str:
    """'save.json' / 'save.msgpack' / 'save' → 'save.msgpack'."""
    return _PACKED_SUFFIX.sub("", name) + ".msgpack"


def text_name(name: str) -> str:
    """Name for the exported text projection: 'save.msgpack' → 'save.msgpack.json'."""
    return name + ".json"
