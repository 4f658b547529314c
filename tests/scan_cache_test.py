# --- tests/scan_cache_test.py ---

import json
import os
import shutil
import sys
import tempfile
import unittest
from dataclasses import astuple, replace

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from models import CacheLoadStatus, FileCategory, ScanSnapshot
from scan_cache import ScanCache
from scanner import walk
from tree import find_node, iter_nodes


def make_file(path, size):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(b"x" * size)


class TestScanCache(unittest.TestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp(prefix="cache_root_")
        self.cache_dir = tempfile.mkdtemp(prefix="cache_dir_")
        self.addCleanup(shutil.rmtree, self.root, True)
        self.addCleanup(shutil.rmtree, self.cache_dir, True)

        make_file(os.path.join(self.root, "top.bin"), 11)
        make_file(os.path.join(self.root, "a", "b.txt"), 40)
        make_file(os.path.join(self.root, "a", "c.jpg"), 60)
        make_file(os.path.join(self.root, "a", "deeper", "d.mp4"), 200)

        self.cache = ScanCache(os.path.join(self.cache_dir, "scan_cache.json"))
        self.snapshot = walk(self.root)

    def assert_aggregates(self, node):
        for n in iter_nodes(node):
            self.assertEqual(n.total_size,
                             sum(f.size for f in n.files) + sum(c.total_size for c in n.children))
            self.assertEqual(n.total_file_count,
                             len(n.files) + sum(c.total_file_count for c in n.children))

    def test_absent(self):
        result = self.cache.load()
        self.assertEqual(result.status, CacheLoadStatus.ABSENT)
        self.assertIsNone(result.snapshot)

    def test_round_trip(self):
        print("\nTesting: ScanCache round trip...")
        tagged = replace(self.snapshot.files[0], duplicate_group=3)
        snapshot = ScanSnapshot(files=(tagged,) + self.snapshot.files[1:], root=self.snapshot.root)
        self.cache.save(snapshot)

        result = self.cache.load()
        self.assertEqual(result.status, CacheLoadStatus.LOADED)
        loaded = result.snapshot

        self.assertEqual(sorted(astuple(f) for f in loaded.files),
                         sorted(astuple(f) for f in snapshot.files))
        self.assertEqual(loaded.files[0].duplicate_group, 3)

        original_nodes = {n.path: n for n in iter_nodes(snapshot.root)}
        loaded_nodes = {n.path: n for n in iter_nodes(loaded.root)}
        self.assertEqual(set(original_nodes), set(loaded_nodes))
        for path, node in loaded_nodes.items():
            before = original_nodes[path]
            self.assertEqual((node.name, node.depth, node.total_size, node.total_file_count),
                             (before.name, before.depth, before.total_size, before.total_file_count))
            self.assertEqual([astuple(f) for f in node.files], [astuple(f) for f in before.files])
            self.assertEqual([c.path for c in node.children], [c.path for c in before.children])
        print("PASS: ScanCache round trip")

    def test_ghost_entries_are_pruned(self):
        print("\nTesting: ScanCache revalidation...")
        self.cache.save(self.snapshot)
        removed = os.path.join(self.root, "a", "b.txt")
        os.remove(removed)

        loaded = self.cache.load().snapshot
        self.assertNotIn(removed, {f.path for f in loaded.files})
        self.assertEqual(len(loaded.files), len(self.snapshot.files) - 1)

        parent = find_node(loaded.root, os.path.join(self.root, "a"))
        self.assertNotIn(removed, {f.path for f in parent.files})
        self.assertEqual(parent.total_size, 60 + 200)
        self.assertEqual(parent.total_file_count, 2)
        self.assertEqual(loaded.root.total_size, 11 + 60 + 200)
        self.assert_aggregates(loaded.root)
        print("PASS: ScanCache revalidation")

    def test_stored_aggregates_are_not_trusted(self):
        self.cache.save(self.snapshot)
        with open(self.cache.path, encoding="utf-8") as f:
            data = json.load(f)
        for directory in data["tree"]["directories"]:
            directory["totalSize"] = 999999
            directory["totalFileCount"] = -5
        with open(self.cache.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

        loaded = self.cache.load().snapshot
        self.assertEqual(loaded.root.total_size, self.snapshot.root.total_size)
        self.assert_aggregates(loaded.root)

    def test_unknown_category_falls_back_to_other(self):
        self.cache.save(self.snapshot)
        with open(self.cache.path, encoding="utf-8") as f:
            data = json.load(f)
        data["files"][0]["category"] = "HOLOGRAM"
        with open(self.cache.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

        loaded = self.cache.load().snapshot
        self.assertEqual(loaded.files[0].category, FileCategory.OTHER)

    def write_artifact(self, text):
        os.makedirs(os.path.dirname(self.cache.path), exist_ok=True)
        with open(self.cache.path, "w", encoding="utf-8") as f:
            f.write(text)

    def assert_discarded(self):
        result = self.cache.load()
        self.assertEqual(result.status, CacheLoadStatus.DISCARDED)
        self.assertIsNone(result.snapshot)
        self.assertFalse(os.path.exists(self.cache.path))

    def test_corrupt_json_is_discarded(self):
        print("\nTesting: ScanCache corrupt artifact...")
        self.write_artifact("{not json")
        self.assert_discarded()
        # A second load finds nothing at all
        self.assertEqual(self.cache.load().status, CacheLoadStatus.ABSENT)
        print("PASS: ScanCache corrupt artifact")

    def test_structurally_invalid_is_discarded(self):
        self.write_artifact(json.dumps({"version": 1, "files": 3}))
        self.assert_discarded()

    def test_wrong_shape_is_discarded(self):
        self.write_artifact(json.dumps([1, 2, 3]))
        self.assert_discarded()

    def test_unknown_version_is_discarded(self):
        self.cache.save(self.snapshot)
        with open(self.cache.path, encoding="utf-8") as f:
            data = json.load(f)
        data["version"] = 99
        self.write_artifact(json.dumps(data))
        self.assert_discarded()

    def test_inconsistent_tree_is_discarded(self):
        self.cache.save(self.snapshot)
        with open(self.cache.path, encoding="utf-8") as f:
            data = json.load(f)
        for directory in data["tree"]["directories"]:
            if directory["depth"] > 0:
                directory["depth"] = 0
        self.write_artifact(json.dumps(data))
        self.assert_discarded()

    def shared_child_artifact(self):
        def directory(path, depth, children=(), files=()):
            return {"path": path, "name": os.path.basename(path), "depth": depth,
                    "totalSize": 0, "totalFileCount": 0,
                    "files": list(files), "children": list(children)}

        c_file = {"path": "/r/c/f.bin", "name": "f.bin", "size": 10,
                  "lastModified": 0, "category": "OTHER", "duplicateGroup": -1}
        return {
            "version": 1,
            "files": [c_file],
            "tree": {"root": "/r", "directories": [
                directory("/r", 0, ["/r/a", "/r/b"]),
                directory("/r/a", 1, ["/r/c"]),
                directory("/r/b", 1, ["/r/c"]),
                directory("/r/c", 2, files=[c_file]),
            ]},
        }

    def test_directory_with_two_parents_is_discarded(self):
        print("\nTesting: ScanCache shared child directory...")
        self.cache = ScanCache(self.cache.path, exists=lambda path: True)
        self.write_artifact(json.dumps(self.shared_child_artifact()))
        self.assert_discarded()
        print("PASS: ScanCache shared child directory")

    def test_root_listed_as_child_is_discarded(self):
        data = self.shared_child_artifact()
        directories = data["tree"]["directories"]
        directories[2]["children"] = []
        directories[1]["children"] = ["/r"]
        self.cache = ScanCache(self.cache.path, exists=lambda path: True)
        self.write_artifact(json.dumps(data))
        self.assert_discarded()

    def test_unreachable_directory_is_discarded(self):
        data = self.shared_child_artifact()
        data["tree"]["directories"][1]["children"] = []
        data["tree"]["directories"][2]["children"] = []
        self.cache = ScanCache(self.cache.path, exists=lambda path: True)
        self.write_artifact(json.dumps(data))
        self.assert_discarded()

    def test_save_overwrites(self):
        self.cache.save(self.snapshot)
        smaller = ScanSnapshot(files=self.snapshot.files[:1], root=self.snapshot.root)
        self.cache.save(smaller)
        self.assertEqual(len(self.cache.load().snapshot.files), 1)
        leftovers = [n for n in os.listdir(self.cache_dir) if n.endswith(".tmp")]
        self.assertEqual(leftovers, [])

    def test_clear(self):
        self.cache.save(self.snapshot)
        self.cache.clear()
        self.assertFalse(os.path.exists(self.cache.path))
        self.cache.clear()  # no error when already gone


if __name__ == "__main__":
    unittest.main()
