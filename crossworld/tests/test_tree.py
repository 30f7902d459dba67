"""
test_tree — tree algebra over tagged leaves.

Tests verify invariant properties:
  - untree removes every Leaf tag and only Leaf tags.
  - map_leaves preserves namespace shape; only payloads change.
  - leaves yields one entry per Leaf, and each path walks back to it.
  - Malformed nodes fail immediately, naming their path.
"""
import pytest

from crossworld.core.matrix import cross_systems
from crossworld.core.tree import (
    Leaf,
    MalformedTreeError,
    from_leaves,
    get_path,
    is_leaf,
    leaves,
    map_leaves,
    untree,
    wrap_leaf,
)


def _sample():
    return {
        "build": wrap_leaf(None),
        "host": {
            "arm": {"none": wrap_leaf(1), "linux": wrap_leaf(2)},
            "x86": {"linux": wrap_leaf(3)},
        },
        # A leaf whose payload is itself a mapping must stay opaque.
        "meta": wrap_leaf({"nested": wrap_leaf("kept")}),
    }


class TestLeafTagging:

    def test_wrap_and_detect(self):
        node = wrap_leaf({"a": 1})
        assert is_leaf(node)
        assert node == Leaf({"a": 1})
        assert not is_leaf({"a": 1})
        assert not is_leaf(None)


class TestUntree:

    def test_strips_tags_keeps_nesting(self):
        assert untree(_sample()) == {
            "build": None,
            "host": {
                "arm": {"none": 1, "linux": 2},
                "x86": {"linux": 3},
            },
            "meta": {"nested": Leaf("kept")},
        }

    def test_only_leaf_tags_removed(self):
        """A tag inside a leaf payload is part of the payload, not the tree."""
        result = untree(_sample())
        assert is_leaf(result["meta"]["nested"])

    def test_root_leaf(self):
        assert untree(wrap_leaf(7)) == 7

    def test_malformed_node_names_path(self):
        tree = {"host": {"arm": {"none": "not-a-leaf"}}}
        with pytest.raises(MalformedTreeError) as exc_info:
            untree(tree)
        assert exc_info.value.path == ("host", "arm", "none")
        assert "host.arm.none" in str(exc_info.value)

    def test_non_string_name_rejected(self):
        with pytest.raises(MalformedTreeError):
            untree({"host": {1: wrap_leaf(None)}})


class TestMapLeaves:

    def test_shape_preserved(self):
        mapped = map_leaves(lambda v: ("seen", v), _sample())
        assert untree(mapped) == {
            "build": ("seen", None),
            "host": {
                "arm": {"none": ("seen", 1), "linux": ("seen", 2)},
                "x86": {"linux": ("seen", 3)},
            },
            "meta": ("seen", {"nested": Leaf("kept")}),
        }

    def test_paths_unchanged(self):
        tree = _sample()
        mapped = map_leaves(str, tree)
        assert [p for p, _ in leaves(mapped)] == [p for p, _ in leaves(tree)]

    def test_input_not_mutated(self):
        tree = _sample()
        map_leaves(lambda v: 0, tree)
        assert untree(tree)["host"]["arm"]["none"] == 1

    def test_malformed_node_fails(self):
        with pytest.raises(MalformedTreeError) as exc_info:
            map_leaves(lambda v: v, {"a": {"b": 3}})
        assert exc_info.value.path == ("a", "b")


class TestLeaves:

    def test_declaration_order(self):
        assert leaves(_sample()) == [
            (("build",), None),
            (("host", "arm", "none"), 1),
            (("host", "arm", "linux"), 2),
            (("host", "x86", "linux"), 3),
            (("meta",), {"nested": Leaf("kept")}),
        ]

    def test_every_path_reaches_its_leaf(self):
        tree = cross_systems()
        entries = leaves(tree)
        assert len(entries) == 16
        for path, value in entries:
            node = get_path(tree, path)
            assert is_leaf(node)
            assert node.value == value

    def test_root_leaf_has_empty_path(self):
        assert leaves(wrap_leaf("x")) == [((), "x")]

    def test_empty_namespace(self):
        assert leaves({}) == []


class TestGetPath:

    def test_missing_segment(self):
        with pytest.raises(KeyError, match="host.mips"):
            get_path(_sample(), ("host", "mips"))

    def test_cannot_descend_into_leaf(self):
        with pytest.raises(KeyError):
            get_path(_sample(), ("build", "anything"))


class TestFromLeaves:

    def test_inverse_of_leaves(self):
        tree = _sample()
        assert from_leaves(leaves(tree)) == tree

    def test_leaf_and_namespace_conflict(self):
        with pytest.raises(ValueError):
            from_leaves([(("a",), 1), (("a", "b"), 2)])

    def test_duplicate_path(self):
        with pytest.raises(ValueError):
            from_leaves([(("a", "b"), 1), (("a", "b"), 2)])

    def test_root_leaf_rejected(self):
        with pytest.raises(ValueError):
            from_leaves([((), 1)])
