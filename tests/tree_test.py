# --- tests/tree_test.py ---

import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from models import FileRecord
from tree import DirEntry, assemble_tree, find_node, flatten, rebuild, relocate


def record(path, size):
    return FileRecord(path=path, name=os.path.basename(path), size=size, last_modified=0)


class TestTree(unittest.TestCase):

    def setUp(self):
        self.arena = {
            "/r": DirEntry("/r", "r", 0, [record("/r/top", 1)], ["/r/a", "/r/b"]),
            "/r/a": DirEntry("/r/a", "a", 1, [record("/r/a/x", 10), record("/r/a/y", 20)], ["/r/a/deep"]),
            "/r/a/deep": DirEntry("/r/a/deep", "deep", 2, [record("/r/a/deep/z", 300)]),
            "/r/b": DirEntry("/r/b", "b", 1),
        }
        self.root = assemble_tree(self.arena, "/r")

    def test_assemble_aggregates(self):
        self.assertEqual(self.root.total_size, 331)
        self.assertEqual(self.root.total_file_count, 4)
        a = find_node(self.root, "/r/a")
        self.assertEqual((a.total_size, a.total_file_count, a.own_size), (330, 3, 30))
        self.assertEqual([c.name for c in self.root.children], ["a", "b"])

    def test_flatten_round_trip(self):
        again = assemble_tree(flatten(self.root), "/r")
        self.assertEqual(again, self.root)

    def test_rebuild_recomputes_ancestors(self):
        pruned = rebuild(self.root, keep_file=lambda f: f.path != "/r/a/deep/z")
        self.assertEqual(pruned.total_size, 31)
        self.assertEqual(find_node(pruned, "/r/a").total_size, 30)
        self.assertEqual(find_node(pruned, "/r/a/deep").total_file_count, 0)
        # The original is untouched
        self.assertEqual(self.root.total_size, 331)

    def test_relocate(self):
        moved = record("/r/b/x", 10)
        tree = relocate(self.root, "/r/a/x", moved)
        self.assertEqual(find_node(tree, "/r/a").total_size, 320)
        self.assertEqual([f.path for f in find_node(tree, "/r/b").files], ["/r/b/x"])
        self.assertEqual(tree.total_size, 331)

    def test_relocate_outside_tree(self):
        tree = relocate(self.root, "/r/top", record("/elsewhere/top", 1))
        self.assertEqual(tree.total_size, 330)


if __name__ == "__main__":
    unittest.main()
