"""
Tests for storage/store.py - JSON file persistence.
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from storage.store import KEY_ACTIVE_THEME, KEY_TOTAL_COINS, InMemoryStore, JsonFileStore


class TestJsonFileStore(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "nested" / "store.json"

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_missing_file_is_empty(self):
        store = JsonFileStore(self.path)
        self.assertIsNone(store.get(KEY_TOTAL_COINS))
        self.assertFalse(self.path.exists())

    def test_values_survive_reload(self):
        JsonFileStore(self.path).set(KEY_TOTAL_COINS, "120")
        reloaded = JsonFileStore(self.path)
        self.assertEqual(reloaded.get(KEY_TOTAL_COINS), "120")

    def test_set_many_single_write(self):
        store = JsonFileStore(self.path)
        with patch.object(store, "_save_data", wraps=store._save_data) as save:
            store.set_many({KEY_TOTAL_COINS: "5", KEY_ACTIVE_THEME: "dark"})
        self.assertEqual(save.call_count, 1)
        on_disk = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(on_disk, {KEY_TOTAL_COINS: "5", KEY_ACTIVE_THEME: "dark"})

    def test_failed_write_leaves_state_unchanged(self):
        store = JsonFileStore(self.path)
        store.set(KEY_TOTAL_COINS, "10")
        with patch("storage.store.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                store.set_many({KEY_TOTAL_COINS: "99", KEY_ACTIVE_THEME: "pink"})
        self.assertEqual(store.get(KEY_TOTAL_COINS), "10")
        self.assertIsNone(store.get(KEY_ACTIVE_THEME))
        self.assertEqual(JsonFileStore(self.path).get(KEY_TOTAL_COINS), "10")
        # No temp files left behind
        self.assertEqual([p.name for p in self.path.parent.iterdir()], ["store.json"])

    def test_remove(self):
        store = JsonFileStore(self.path)
        store.set(KEY_TOTAL_COINS, "1")
        store.remove(KEY_TOTAL_COINS)
        store.remove("never-set")
        self.assertIsNone(JsonFileStore(self.path).get(KEY_TOTAL_COINS))

    def test_corrupt_file_starts_fresh(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")
        store = JsonFileStore(self.path)
        self.assertIsNone(store.get(KEY_TOTAL_COINS))

    def test_non_string_entries_discarded(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({KEY_TOTAL_COINS: 5, KEY_ACTIVE_THEME: "dark"}), encoding="utf-8")
        store = JsonFileStore(self.path)
        self.assertIsNone(store.get(KEY_TOTAL_COINS))
        self.assertEqual(store.get(KEY_ACTIVE_THEME), "dark")

    def test_non_object_file_starts_fresh(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("[1, 2, 3]", encoding="utf-8")
        self.assertIsNone(JsonFileStore(self.path).get(KEY_TOTAL_COINS))


class TestInMemoryStore(unittest.TestCase):

    def test_round_trip(self):
        store = InMemoryStore({KEY_TOTAL_COINS: "3"})
        store.set_many({KEY_ACTIVE_THEME: "ocean"})
        store.remove(KEY_TOTAL_COINS)
        self.assertEqual(store.data, {KEY_ACTIVE_THEME: "ocean"})


if __name__ == "__main__":
    unittest.main()
