"""Immutable document tree: content nodes, documents, trees and static inputs"""

import io
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path as FilePath
from typing import Any, BinaryIO, Callable, Optional, Union
from uuid import uuid4

from mdsite.core.errors import Severity
from mdsite.core.path import Path, Root


class Phase(str, Enum):
    """Resolution phases: structural rewrites first, format-specific ones at render time."""
    structure = "structure"
    render = "render"


class Pending(Enum):
    """Returned by a resolver that needs another pass before it can produce content."""
    DEFER = "defer"


@dataclass(frozen=True)
class Failure:
    """Typed failure value returned by resolvers instead of raising."""
    message: str
    severity: Severity = Severity.ERROR


# --- leaf nodes ---

@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Code:
    text: str


@dataclass(frozen=True)
class CodeBlock:
    text: str
    language: str = ""


@dataclass(frozen=True)
class RawBlock:
    """Source-faithful block the front end has no dedicated node for (tables, html)."""
    source: str


@dataclass(frozen=True)
class Rule:
    pass


@dataclass(frozen=True)
class Invalid:
    """Placeholder left where a resolver failed; renderers show the message."""
    message: str
    severity: Severity = Severity.ERROR
    source: Optional[str] = None


@dataclass(frozen=True, eq=False)
class Unresolved:
    """A node whose content depends on whole-tree context.

    resolve_fn receives a Cursor for the owning document and returns the
    replacement node, a Failure, or Pending.DEFER to be retried next pass.
    """
    resolve_fn: Callable[[Any], Any]
    phases: frozenset
    message: str
    source: Optional[str] = None
    ident: str = field(default_factory=lambda: uuid4().hex)

    def runs_in(self, phase: Phase) -> bool:
        return phase in self.phases

    def resolve(self, cursor, phase: Phase):
        if not self.runs_in(phase):
            raise ValueError(f"Resolver '{self.message}' does not run in the {phase.value} phase")
        return self.resolve_fn(cursor)


# --- containers ---

@dataclass(frozen=True)
class BlockSequence:
    content: tuple = ()


@dataclass(frozen=True)
class Paragraph:
    content: tuple = ()


@dataclass(frozen=True)
class Heading:
    level: int
    content: tuple = ()


@dataclass(frozen=True)
class BulletList:
    content: tuple = ()         # ListItem nodes
    ordered: bool = False


@dataclass(frozen=True)
class ListItem:
    content: tuple = ()


@dataclass(frozen=True)
class Quote:
    content: tuple = ()


@dataclass(frozen=True)
class Emphasis:
    content: tuple = ()


@dataclass(frozen=True)
class Strong:
    content: tuple = ()


@dataclass(frozen=True)
class InternalLink:
    target: Path
    content: tuple = ()
    fragment: str = ""


@dataclass(frozen=True)
class ExternalLink:
    url: str
    content: tuple = ()


@dataclass(frozen=True)
class Choice:
    label: str
    content: tuple = ()


@dataclass(frozen=True)
class Choices:
    """Alternative contents for one classifier dimension, one Choice per label."""
    name: str
    options: tuple = ()


Node = Union[
    Text, Code, CodeBlock, RawBlock, Rule, Invalid, Unresolved,
    BlockSequence, Paragraph, Heading, BulletList, ListItem, Quote,
    Emphasis, Strong, InternalLink, ExternalLink, Choice, Choices,
]


def children(node) -> tuple:
    """Direct child nodes of node in structural order."""
    if isinstance(node, Choices):
        return node.options
    return getattr(node, "content", ())


def with_children(node, new_children: tuple):
    if isinstance(node, Choices):
        return Choices(node.name, new_children)
    return type(node)(**{**node.__dict__, "content": new_children})


def walk(nodes):
    """Pre-order iteration over nodes and all their descendants."""
    for node in nodes:
        yield node
        yield from walk(children(node))


def transform(nodes: tuple, fn: Callable) -> tuple:
    """Bottom-up rewrite: fn(node) returns the replacement; unchanged subtrees keep identity."""
    result = []
    for node in nodes:
        kids = children(node)
        if kids:
            new_kids = transform(kids, fn)
            if any(a is not b for a, b in zip(kids, new_kids)):
                node = with_children(node, new_kids)
        result.append(fn(node))
    return tuple(result)


def extract_text(nodes) -> Optional[str]:
    """Plain text of nodes, or None while any of them is still unresolved."""
    parts = []
    for node in walk(nodes):
        if isinstance(node, Unresolved):
            return None
        if isinstance(node, (Text, Code)):
            parts.append(node.text)
    return "".join(parts)


# --- documents and trees ---

@dataclass(frozen=True)
class StaticInput:
    """A non-renderable input (image, stylesheet) copied through to the output."""
    path: Path
    open: Callable[[], BinaryIO]

    @classmethod
    def from_bytes(cls, path: Path, data: bytes) -> "StaticInput":
        return cls(path, lambda: io.BytesIO(data))

    @classmethod
    def from_file(cls, path: Path, file: FilePath) -> "StaticInput":
        return cls(path, lambda: open(file, "rb"))


@dataclass(frozen=True)
class Document:
    path: Path
    content: tuple = ()
    config: dict = field(default_factory=dict)

    @property
    def title(self) -> Optional[str]:
        """Text of the first heading, None if absent or not resolved yet."""
        for node in walk(self.content):
            if isinstance(node, Heading):
                return extract_text(node.content)
        return None


@dataclass(frozen=True)
class DocumentTree:
    path: Path = Root
    documents: tuple = ()
    trees: tuple = ()
    config: dict = field(default_factory=dict)
    static_inputs: dict = field(default_factory=dict)   # Path -> StaticInput

    def __post_init__(self):
        seen: set[Path] = set()
        for child in (*self.documents, *self.trees):
            if child.path.parent != self.path:
                raise ValueError(f"{child.path} is not a direct child of {self.path}")
            if child.path in seen:
                raise ValueError(f"Duplicate path in tree {self.path}: {child.path}")
            seen.add(child.path)

    def all_documents(self) -> list[Document]:
        """Documents in pre-order: own documents first, then each sub-tree."""
        docs = list(self.documents)
        for tree in self.trees:
            docs.extend(tree.all_documents())
        return docs

    def all_static_inputs(self) -> dict[Path, StaticInput]:
        inputs = dict(self.static_inputs)
        for tree in self.trees:
            inputs.update(tree.all_static_inputs())
        return inputs

    def map_documents(self, fn: Callable[[Document], Optional[Document]]) -> "DocumentTree":
        """New tree with fn applied to every document; None drops the document."""
        docs = tuple(d for d in (fn(doc) for doc in self.documents) if d is not None)
        trees = tuple(t.map_documents(fn) for t in self.trees)
        return DocumentTree(self.path, docs, trees, self.config, self.static_inputs)

    def with_config(self, **values) -> "DocumentTree":
        return DocumentTree(self.path, self.documents, self.trees, {**self.config, **values}, self.static_inputs)

    def with_static_inputs(self, inputs: dict) -> "DocumentTree":
        return DocumentTree(self.path, self.documents, self.trees, self.config, {**self.static_inputs, **inputs})
