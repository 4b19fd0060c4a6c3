"""Built-in resolver nodes: internal links, navigation lists and download links"""

from typing import Optional

from mdsite.core.cursor import Cursor
from mdsite.core.models import (
    BlockSequence,
    BulletList,
    Document,
    Failure,
    Heading,
    InternalLink,
    ListItem,
    Paragraph,
    Pending,
    Phase,
    Text,
    Unresolved,
    walk,
)
from mdsite.core.path import Path
from mdsite.core.selections import artifact_name, combination_labels, dimensions_from_config


STRUCTURE = frozenset({Phase.structure})
RENDER = frozenset({Phase.render})


class _NotReady(Exception):
    """A linked document's title is still unresolved."""


def _title_pending(doc: Document) -> bool:
    """True when doc has a heading whose text cannot be extracted yet."""
    return doc.title is None and any(isinstance(n, Heading) for n in walk(doc.content))


def _label(cursor_or_node, path: Path) -> tuple:
    title = cursor_or_node.title() if isinstance(cursor_or_node, Cursor) else cursor_or_node.title
    return (Text(title or path.name),)


def link(ref: str, content: tuple = (), source: Optional[str] = None) -> Unresolved:
    """Link to another document by relative or absolute reference ('../b.md#part').

    Empty link text is filled in with the target document's title, so the
    link stays pending until that title is itself resolved.
    """
    target_ref, _, fragment = ref.partition("#")

    def _resolve(cursor: Cursor):
        if not target_ref:
            return InternalLink(cursor.path, content, fragment)
        path = cursor.directory.resolve(target_ref)
        target = cursor.resolve(path)
        if target is None:
            return Failure(f"Unresolved internal reference: {ref}")
        if content:
            return InternalLink(path, content, fragment)
        if isinstance(target, Document):
            if _title_pending(target):
                return Pending.DEFER
            return InternalLink(path, _label(target, path), fragment)
        return InternalLink(path, (Text(target.config.get("title") or path.name),), fragment)

    return Unresolved(_resolve, STRUCTURE, f"link to {ref}", source or f"[...]({ref})")


def navigation(depth: int = 2, source: Optional[str] = None) -> Unresolved:
    """Bullet list of links to every document under the root, nested per sub-tree."""

    def _entries(cursor: Cursor, level: int) -> tuple:
        items = []
        for child in cursor.children():
            if child.is_document:
                if _title_pending(child.target):
                    raise _NotReady
                entry = InternalLink(child.path, _label(child, child.path))
                items.append(ListItem((Paragraph((entry,)),)))
            elif level < depth:
                nested = _entries(child, level + 1)
                heading = Paragraph(_label(child, child.path))
                items.append(ListItem((heading, BulletList(nested)) if nested else (heading,)))
        return tuple(items)

    def _resolve(cursor: Cursor):
        try:
            return BulletList(_entries(cursor.root(), 1))
        except _NotReady:
            return Pending.DEFER

    return Unresolved(_resolve, STRUCTURE, "navigation list", source or "@nav")


def downloads(source: Optional[str] = None) -> Unresolved:
    """Links to the binary artifacts of the build; empty inside binary formats.

    A variant tree links its own artifacts, the unspecialized tree links the
    artifacts of every configured combination.
    """

    def _resolve(cursor: Cursor):
        config = cursor.config()
        fmt = config.get("render.format", None)
        if fmt is None:
            return Failure("Download links can only be resolved while rendering")
        if fmt not in config.get_as("site.text_formats", list[str], ["html"]):
            return BlockSequence()

        download_dir = Path.parse(config.get_as("site.download_path", str, "/downloads"))
        base = config.get_as("site.artifact_base_name", str, "download")
        if "classifiers" in config:
            combinations = [tuple(config.get_as("classifiers", list[str]))]
        else:
            combinations = combination_labels(dimensions_from_config(config))

        items = []
        for labels in combinations:
            for suffix in config.get_as("site.binary_suffixes", list[str], []):
                target = download_dir / artifact_name(base, labels, suffix)
                text = (Text(target.name),)
                items.append(ListItem((Paragraph((InternalLink(target, text),)),)))
        return BulletList(tuple(items))

    return Unresolved(_resolve, RENDER, "download links", source or "@downloads")
