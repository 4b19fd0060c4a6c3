"""Read-only cursors over an index of one document tree snapshot"""

from dataclasses import dataclass
from typing import Optional, Union

from mdsite.core.models import Document, DocumentTree
from mdsite.core.path import Path
from mdsite.core.tree_config import TreeConfig


@dataclass(frozen=True)
class _Entry:
    node:     Union[Document, DocumentTree]
    parent:   Optional[int]
    children: tuple[int, ...]


class TreeIndex:
    """Flat arena of a tree's nodes in pre-order, built once per snapshot.

    Entry 0 is the root tree. Each tree entry is followed by its documents,
    then by its sub-trees (recursively). Cursors are (index, position) pairs,
    so parent and sibling navigation never needs back-pointers.
    """

    def __init__(self, tree: DocumentTree, base_config: Optional[dict] = None):
        self.tree = tree
        self.base = TreeConfig(base_config)
        self._entries: list[_Entry] = []
        self._by_path: dict[Path, int] = {}
        self._configs: dict[int, TreeConfig] = {}
        self._add(tree, None)

    def _add(self, node, parent: Optional[int]) -> int:
        position = len(self._entries)
        self._entries.append(_Entry(node, parent, ()))
        self._by_path[node.path] = position
        if isinstance(node, DocumentTree):
            kids = [self._add(doc, position) for doc in node.documents]
            kids += [self._add(sub, position) for sub in node.trees]
            self._entries[position] = _Entry(node, parent, tuple(kids))
        return position

    def __len__(self) -> int:
        return len(self._entries)

    def root(self) -> "Cursor":
        return Cursor(self, 0)

    def cursor(self, path: Path) -> Optional["Cursor"]:
        position = self._by_path.get(path)
        return Cursor(self, position) if position is not None else None

    def documents(self) -> list["Cursor"]:
        """Cursors for all documents in pre-order."""
        return [Cursor(self, i) for i, e in enumerate(self._entries) if isinstance(e.node, Document)]

    def config_at(self, position: int) -> TreeConfig:
        config = self._configs.get(position)
        if config is None:
            entry = self._entries[position]
            parent = self.base if entry.parent is None else self.config_at(entry.parent)
            config = parent.child(entry.node.config)
            self._configs[position] = config
        return config


class Cursor:
    """Navigation handle for one node of an indexed tree; never mutates the tree."""

    __slots__ = ("index", "position")

    def __init__(self, index: TreeIndex, position: int):
        self.index = index
        self.position = position

    def __repr__(self) -> str:
        return f"Cursor({self.path})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Cursor) and other.index is self.index and other.position == self.position

    def __hash__(self) -> int:
        return hash((id(self.index), self.position))

    @property
    def _entry(self) -> _Entry:
        return self.index._entries[self.position]

    @property
    def target(self) -> Union[Document, DocumentTree]:
        return self._entry.node

    @property
    def path(self) -> Path:
        return self.target.path

    @property
    def is_document(self) -> bool:
        return isinstance(self.target, Document)

    @property
    def directory(self) -> Path:
        """Path relative references are resolved against."""
        return self.path.parent if self.is_document else self.path

    def root(self) -> "Cursor":
        return self.index.root()

    def parent(self) -> Optional["Cursor"]:
        parent = self._entry.parent
        return Cursor(self.index, parent) if parent is not None else None

    def children(self) -> list["Cursor"]:
        return [Cursor(self.index, i) for i in self._entry.children]

    def siblings(self) -> list["Cursor"]:
        """All cursors sharing this node's parent, this one included, in declared order."""
        parent = self.parent()
        return parent.children() if parent else [self]

    def config(self) -> TreeConfig:
        return self.index.config_at(self.position)

    def resolve(self, ref: Union[str, Path]) -> Optional[Union[Document, DocumentTree]]:
        """Whole-tree lookup by absolute Path or by reference relative to this cursor."""
        path = ref if isinstance(ref, Path) else self.directory.resolve(ref)
        found = self.index.cursor(path)
        return found.target if found else None

    def title(self) -> Optional[str]:
        """Document title, or the tree's configured title."""
        if self.is_document:
            return self.target.title
        return self.target.config.get("title")
