"""Tests for the recency history store and the file naming helpers."""

from __future__ import annotations

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mpedit import (
    DEFAULT_MIME,
    HistoryStore,
    default_home,
    format_file_size,
    repack_name,
    text_name,
)


class _StoreTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "history"
        self.store = HistoryStore(self.root)

    def tearDown(self):
        self._tmp.cleanup()


class TestHistoryBasics(_StoreTestCase):
    def test_empty(self):
        self.assertEqual(self.store.list(), [])
        self.assertIsNone(self.store.get("missing"))

    def test_add_and_get(self):
        rec = self.store.add("save.msgpack", b"\x81\xa1a\x01")
        self.assertEqual(rec.name, "save.msgpack")
        self.assertEqual(rec.size, 4)
        self.assertEqual(rec.type, DEFAULT_MIME)
        entry = self.store.get(rec.id)
        self.assertIsNotNone(entry)
        self.assertEqual(entry.data, b"\x81\xa1a\x01")
        self.assertEqual(entry.record, rec)

    def test_explicit_type(self):
        rec = self.store.add("x.bin", b"\xc0", "application/octet-stream")
        self.assertEqual(rec.type, "application/octet-stream")

    def test_ids_are_unique(self):
        a = self.store.add("a", b"1")
        b = self.store.add("b", b"2")
        self.assertNotEqual(a.id, b.id)

    def test_newest_first(self):
        for name in ("first", "second", "third"):
            self.store.add(name, name.encode())
        self.assertEqual([r.name for r in self.store.list()], ["third", "second", "first"])

    def test_persisted_across_instances(self):
        rec = self.store.add("a", b"1")
        again = HistoryStore(self.root)
        self.assertEqual(again.list(), [rec])

    def test_index_layout(self):
        rec = self.store.add("a", b"xyz")
        with open(self.root / "index.json", encoding="utf-8") as f:
            index = json.load(f)
        self.assertEqual(index[0]["id"], rec.id)
        self.assertEqual((self.root / "{}.bin".format(rec.id)).read_bytes(), b"xyz")

    def test_clear(self):
        rec = self.store.add("a", b"1")
        self.store.clear()
        self.assertEqual(self.store.list(), [])
        self.assertIsNone(self.store.get(rec.id))
        self.assertFalse((self.root / "{}.bin".format(rec.id)).exists())


class TestHistoryDedup(_StoreTestCase):
    def test_same_name_size_type_replaced(self):
        old = self.store.add("a", b"12")
        self.store.add("b", b"x")
        new = self.store.add("a", b"34")
        names = [r.name for r in self.store.list()]
        self.assertEqual(names, ["a", "b"])
        self.assertIsNone(self.store.get(old.id))
        self.assertEqual(self.store.get(new.id).data, b"34")

    def test_different_size_kept(self):
        self.store.add("a", b"1")
        self.store.add("a", b"12")
        self.assertEqual(len(self.store.list()), 2)

    def test_different_type_kept(self):
        self.store.add("a", b"1")
        self.store.add("a", b"1", "application/json")
        self.assertEqual(len(self.store.list()), 2)


class TestHistoryFailures(_StoreTestCase):
    def test_failed_index_write_keeps_old_entry(self):
        old = self.store.add("a", b"12")
        with mock.patch.object(self.store, "_save", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                self.store.add("a", b"34")
        self.assertEqual([r.id for r in self.store.list()], [old.id])
        self.assertEqual(self.store.get(old.id).data, b"12")
        self.assertEqual(len(list(self.root.glob("*.bin"))), 1)

    def test_failed_index_write_keeps_evicted_entry(self):
        store = HistoryStore(self.root, capacity=1)
        old = store.add("a", b"1")
        with mock.patch.object(store, "_save", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                store.add("b", b"2")
        self.assertEqual(store.get(old.id).data, b"1")

    def test_missing_blob_reads_as_missing_entry(self):
        rec = self.store.add("a", b"1")
        (self.root / "{}.bin".format(rec.id)).unlink()
        with self.assertLogs("mpedit._history", level="WARNING"):
            self.assertIsNone(self.store.get(rec.id))

    def test_corrupt_index_reads_as_empty(self):
        for junk in ("{not json", '{"a": 1}', '[{"id": "x"}]', "[1, 2]"):
            with self.subTest(junk=junk):
                self.root.mkdir(parents=True, exist_ok=True)
                (self.root / "index.json").write_text(junk, encoding="utf-8")
                with self.assertLogs("mpedit._history", level="WARNING"):
                    self.assertEqual(self.store.list(), [])

    def test_add_after_corrupt_index(self):
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / "index.json").write_text("garbage", encoding="utf-8")
        with self.assertLogs("mpedit._history", level="WARNING"):
            rec = self.store.add("a", b"1")
        self.assertEqual(self.store.list(), [rec])


class TestHistoryCapacity(_StoreTestCase):
    def test_default_capacity(self):
        self.assertEqual(self.store.capacity, 20)

    def test_oldest_evicted(self):
        store = HistoryStore(self.root, capacity=3)
        first = store.add("f0", b"0")
        for i in range(1, 5):
            store.add("f{}".format(i), b"0")
        self.assertEqual([r.name for r in store.list()], ["f4", "f3", "f2"])
        self.assertIsNone(store.get(first.id))
        self.assertEqual(len(list(self.root.glob("*.bin"))), 3)

    def test_dedup_frees_a_slot(self):
        store = HistoryStore(self.root, capacity=2)
        store.add("a", b"1")
        store.add("b", b"1")
        store.add("b", b"22")  # same name, different size: full, so "a" goes
        store.add("b", b"22")  # duplicate: replaces itself, nothing evicted
        self.assertEqual([(r.name, r.size) for r in store.list()], [("b", 2), ("b", 1)])

    def test_bad_capacity(self):
        with self.assertRaises(ValueError):
            HistoryStore(self.root, capacity=0)


class TestDefaultHome(unittest.TestCase):
    def test_env_override(self):
        with mock.patch.dict(os.environ, {"MPEDIT_HOME": "/tmp/mpedit-test-home"}):
            self.assertEqual(default_home(), Path("/tmp/mpedit-test-home"))

    def test_fallback(self):
        env = {k: v for k, v in os.environ.items() if k != "MPEDIT_HOME"}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(default_home(), Path.home() / ".mpedit")


class TestFileHelpers(unittest.TestCase):
    def test_format_file_size(self):
        cases = [
            (0, "0 Bytes"),
            (1, "1 Bytes"),
            (500, "500 Bytes"),
            (1024, "1 KB"),
            (1536, "1.5 KB"),
            (1048576, "1 MB"),
            (1234567, "1.18 MB"),
            (3 * 1024**3, "3 GB"),
            (5 * 1024**4, "5120 GB"),
        ]
        for size, want in cases:
            with self.subTest(size=size):
                self.assertEqual(format_file_size(size), want)

    def test_repack_name(self):
        cases = [
            ("save.json", "save.msgpack"),
            ("save.msgpack", "save.msgpack"),
            ("SAVE.MSGPACK", "SAVE.msgpack"),
            ("save", "save.msgpack"),
            ("save.bin", "save.bin.msgpack"),
            ("a.json.json", "a.json.msgpack"),
        ]
        for name, want in cases:
            with self.subTest(name=name):
                self.assertEqual(repack_name(name), want)

    def test_text_name(self):
        self.assertEqual(text_name("save.msgpack"), "save.msgpack.json")


if __name__ == "__main__":
    unittest.main()
