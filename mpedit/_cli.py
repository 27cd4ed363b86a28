"""mpedit command-line interface.

Usage:
    mpedit unpack -i save.msgpack > save.json
    mpedit pack -i save.json -o save.msgpack
    cat save.json | mpedit pack            # base64 on stdout
    mpedit history list
    mpedit history show <id>
    mpedit history clear
    mpedit version
"""

from __future__ import annotations

import argparse
import base64
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import (
    MAX_DEPTH,
    HistoryStore,
    PackError,
    __version__,
    format_file_size,
    repack,
    unpack,
)

logger = logging.getLogger("mpedit")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mpedit",
        description="mpedit: view and edit MessagePack as lossless JSON text",
    )
    parser.add_argument("--max-depth", type=int, default=MAX_DEPTH, metavar="N",
                        help="Maximum container nesting (default: %(default)s)")
    parser.add_argument("--home", metavar="DIR",
                        help="State directory (default: $MPEDIT_HOME or ~/.mpedit)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging on stderr")
    sub = parser.add_subparsers(dest="command")

    # ── unpack ──
    unpack_p = sub.add_parser("unpack", help="MessagePack → text")
    unpack_p.add_argument("--input", "-i", metavar="FILE",
                          help="Read MessagePack from FILE instead of stdin")
    unpack_p.add_argument("--output", "-o", metavar="FILE",
                          help="Write text to FILE instead of stdout")
    unpack_p.add_argument("--no-history", action="store_true",
                          help="Don't record the input file in history")

    # ── pack ──
    pack_p = sub.add_parser("pack", help="Text → MessagePack")
    pack_p.add_argument("--input", "-i", metavar="FILE",
                        help="Read text from FILE instead of stdin")
    pack_p.add_argument("--output", "-o", metavar="FILE",
                        help="Write raw bytes to FILE (default: base64 on stdout)")

    # ── history ──
    hist_p = sub.add_parser("history", help="Recently unpacked files")
    hist_sub = hist_p.add_subparsers(dest="history_command")
    hist_sub.add_parser("list", help="List entries, newest first")
    show_p = hist_sub.add_parser("show", help="Unpack a stored entry")
    show_p.add_argument("id", help="Entry id from 'history list'")
    hist_sub.add_parser("clear", help="Delete every entry")

    # ── version ──
    sub.add_parser("version", help="Print version and exit")

    return parser


def _read_input(filepath: Optional[str]) -> bytes:
    """Read bytes from a file or stdin."""
    if filepath:
        with open(filepath, "rb") as f:
            return f.read()
    if sys.stdin.isatty():
        print("mpedit: reading from stdin (Ctrl-D to end)...", file=sys.stderr)
    return sys.stdin.buffer.read()


def _write_text(text: str, filepath: Optional[str]) -> None:
    if filepath:
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(text + "\n")
    else:
        print(text)


def _store(args: argparse.Namespace) -> HistoryStore:
    if args.home:
        return HistoryStore(Path(args.home) / "history")
    return HistoryStore()


def _cmd_unpack(args: argparse.Namespace) -> None:
    raw = _read_input(args.input)
    text = unpack(raw, max_depth=args.max_depth)
    _write_text(text, args.output)

    # Only files opened by path go into history, and only once they decoded.
    if args.input and not args.no_history:
        try:
            rec = _store(args).add(Path(args.input).name, raw)
            logger.debug("recorded %s in history as %s", rec.name, rec.id)
        except OSError as e:
            logger.warning("could not record %s in history: %s", args.input, e)


def _cmd_pack(args: argparse.Namespace) -> None:
    text = _read_input(args.input).decode("utf-8")
    packed = repack(text, max_depth=args.max_depth)
    if args.output:
        with open(args.output, "wb") as f:
            f.write(packed)
        logger.info("wrote %s (%s)", args.output, format_file_size(len(packed)))
    else:
        # base64 for safe terminal display
        print(base64.b64encode(packed).decode("ascii"))


def _cmd_history(args: argparse.Namespace) -> None:
    store = _store(args)
    if args.history_command == "list":
        for rec in store.list():
            print("{}  {}  {}  {}".format(rec.id, rec.name, format_file_size(rec.size), rec.type))
    elif args.history_command == "show":
        entry = store.get(args.id)
        if entry is None:
            print("mpedit: no history entry {}".format(args.id), file=sys.stderr)
            sys.exit(1)
        print(unpack(entry.data, max_depth=args.max_depth))
    elif args.history_command == "clear":
        store.clear()
    else:
        print("mpedit: history needs one of: list, show, clear", file=sys.stderr)
        sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "version":
        print(f"mpedit {__version__}")
        return

    try:
        if args.command == "unpack":
            _cmd_unpack(args)
        elif args.command == "pack":
            _cmd_pack(args)
        elif args.command == "history":
            _cmd_history(args)
    except PackError as e:
        print(f"mpedit: error [{e.code}]: {e}", file=sys.stderr)
        sys.exit(2)
    except UnicodeDecodeError as e:
        print(f"mpedit: input is not UTF-8 text: {e}", file=sys.stderr)
        sys.exit(2)
    except OSError as e:
        print(f"mpedit: I/O error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
