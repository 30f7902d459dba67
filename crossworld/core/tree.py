"""
Tree — generic operations over nested namespaces with tagged leaves.

A node is either:
  - a namespace: a mapping of name -> node, iterated in insertion order, or
  - a Leaf: an explicitly tagged terminal value.

Leaves must be tagged because a leaf payload may itself be a mapping; the
tag is the only thing that separates "stop here" from "descend".  Anything
that is neither is a malformed node and fails immediately with its path.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Tuple, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Path = Tuple[str, ...]


class MalformedTreeError(ValueError):
    """A node is neither a namespace mapping nor a Leaf."""

    def __init__(self, path: Path, node: Any):
        self.path = path
        self.node = node
        super().__init__(
            f"Malformed tree node at {format_path(path)}: expected a namespace "
            f"mapping or Leaf, got {type(node).__name__}"
        )


@dataclass(frozen=True)
class Leaf(Generic[T]):
    """Terminal node wrapping a single value."""

    value: T


def format_path(path: Path) -> str:
    return ".".join(path) if path else "<root>"


def wrap_leaf(value: T) -> Leaf[T]:
    return Leaf(value)


def is_leaf(node: Any) -> bool:
    return isinstance(node, Leaf)


def _namespace(node: Any, path: Path) -> Mapping[str, Any]:
    """Validate *node* as a namespace and return it."""
    if not isinstance(node, Mapping):
        raise MalformedTreeError(path, node)
    for name in node:
        if not isinstance(name, str):
            raise MalformedTreeError(path + (repr(name),), node[name])
    return node


def untree(tree: Any, _path: Path = ()) -> Any:
    """Strip every Leaf tag, keeping the nesting.

    The result is plain nested dicts with leaf values in place of leaves.
    """
    if is_leaf(tree):
        return tree.value
    return {
        name: untree(child, _path + (name,))
        for name, child in _namespace(tree, _path).items()
    }


def map_leaves(f: Callable[[T], U], tree: Any, _path: Path = ()) -> Any:
    """Apply *f* to every leaf value; namespaces are rebuilt with the same shape.

    *f* must be pure: only the order within a single path is guaranteed.
    """
    if is_leaf(tree):
        return Leaf(f(tree.value))
    return {
        name: map_leaves(f, child, _path + (name,))
        for name, child in _namespace(tree, _path).items()
    }


def leaves(tree: Any, _path: Path = ()) -> List[Tuple[Path, Any]]:
    """Flatten to ``[(path, value), ...]`` in per-level insertion order."""
    if is_leaf(tree):
        return [(_path, tree.value)]
    out: List[Tuple[Path, Any]] = []
    for name, child in _namespace(tree, _path).items():
        out.extend(leaves(child, _path + (name,)))
    return out


def get_path(tree: Any, path: Iterable[str]) -> Any:
    """Walk *path* from the root and return the node found there."""
    node = tree
    walked: Path = ()
    for name in path:
        if is_leaf(node):
            raise KeyError(f"{format_path(walked)} is a leaf, cannot descend into {name!r}")
        children = _namespace(node, walked)
        walked = walked + (name,)
        if name not in children:
            raise KeyError(f"No node at {format_path(walked)}")
        node = children[name]
    return node


def from_leaves(entries: Iterable[Tuple[Path, Any]]) -> Dict[str, Any]:
    """Build a tree from ``(path, value)`` pairs; the inverse of ``leaves``."""
    root: Dict[str, Any] = {}
    for path, value in entries:
        path = tuple(path)
        if not path:
            raise ValueError("Cannot place a leaf at the root of a namespace tree")
        node = root
        for depth, name in enumerate(path[:-1]):
            child = node.setdefault(name, {})
            if is_leaf(child):
                raise ValueError(
                    f"{format_path(path[:depth + 1])} is a leaf and a namespace"
                )
            node = child
        if path[-1] in node:
            raise ValueError(f"Duplicate entry at {format_path(path)}")
        node[path[-1]] = Leaf(value)
    return root
