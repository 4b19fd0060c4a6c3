"""HTML page renderer: one page per document, internal links as relative hrefs"""

from typing import Optional

from markdown_it.common.utils import escapeHtml

from mdsite.core.cursor import TreeIndex
from mdsite.core.errors import CollisionError, UnresolvedReferenceError
from mdsite.core.models import (
    BlockSequence,
    BulletList,
    Choice,
    Choices,
    Code,
    CodeBlock,
    Document,
    DocumentTree,
    Emphasis,
    ExternalLink,
    Heading,
    InternalLink,
    Invalid,
    ListItem,
    Paragraph,
    Quote,
    RawBlock,
    Rule,
    Strong,
    Text,
    Unresolved,
)
from mdsite.core.path import Path
from mdsite.core.utils.slug import slugify, unique_slug


PAGE_TEMPLATE = """\
<!DOCTYPE html>
<html lang="{lang}">
<head>
<meta charset="utf-8">
<title>{title}</title>
{styles}</head>
<body>
{body}
</body>
</html>
"""


class HTMLRenderer:
    """Textual renderer producing one HTML page per document."""

    name = "html"
    suffix = "html"
    source_suffixes = ("md", "mdx")

    def __init__(self):
        self._slugs: dict[str, int] = {}

    def output_path(self, path: Path) -> Path:
        """Page path for a document: source suffix swapped for .html."""
        if path.suffix in self.source_suffixes or not path.suffix:
            return path.with_suffix(self.suffix)
        return path

    # --- node rendering ---

    def link_href(self, node: InternalLink, current: Path) -> str:
        target = self.output_path(node.target) if node.target.suffix in self.source_suffixes else node.target
        href = target.relative_to(current.parent)
        return f"{href}#{node.fragment}" if node.fragment else href

    def spans(self, nodes, current: Path) -> str:
        return "".join(self.node(n, current) for n in nodes)

    def blocks(self, nodes, current: Path) -> str:
        return "\n".join(self.node(n, current) for n in nodes)

    def node(self, node, current: Path) -> str:
        if isinstance(node, Text):
            return escapeHtml(node.text)
        if isinstance(node, Code):
            return f"<code>{escapeHtml(node.text)}</code>"
        if isinstance(node, Emphasis):
            return f"<em>{self.spans(node.content, current)}</em>"
        if isinstance(node, Strong):
            return f"<strong>{self.spans(node.content, current)}</strong>"
        if isinstance(node, InternalLink):
            return f'<a href="{escapeHtml(self.link_href(node, current))}">{self.spans(node.content, current)}</a>'
        if isinstance(node, ExternalLink):
            return f'<a href="{escapeHtml(node.url)}">{self.spans(node.content, current)}</a>'
        if isinstance(node, Paragraph):
            return f"<p>{self.spans(node.content, current)}</p>"
        if isinstance(node, Heading):
            text = self.spans(node.content, current)
            anchor = self.heading_id(node, current)
            id_attr = f' id="{anchor}"' if anchor else ""
            return f"<h{node.level}{id_attr}>{text}</h{node.level}>"
        if isinstance(node, BulletList):
            tag = "ol" if node.ordered else "ul"
            return f"<{tag}>\n{self.blocks(node.content, current)}\n</{tag}>"
        if isinstance(node, ListItem):
            return f"<li>{self.blocks(node.content, current)}</li>"
        if isinstance(node, Quote):
            return f"<blockquote>\n{self.blocks(node.content, current)}\n</blockquote>"
        if isinstance(node, CodeBlock):
            cls = f' class="language-{escapeHtml(node.language)}"' if node.language else ""
            return f"<pre><code{cls}>{escapeHtml(node.text)}</code></pre>"
        if isinstance(node, RawBlock):
            return f"<pre>{escapeHtml(node.source)}</pre>"
        if isinstance(node, Rule):
            return "<hr>"
        if isinstance(node, BlockSequence):
            return self.blocks(node.content, current)
        if isinstance(node, Choices):
            return f'<div class="choices" data-dimension="{escapeHtml(node.name)}">\n{self.blocks(node.options, current)}\n</div>'
        if isinstance(node, Choice):
            return f'<div class="choice" data-label="{escapeHtml(node.label)}">\n{self.blocks(node.content, current)}\n</div>'
        if isinstance(node, Invalid):
            return f'<span class="message {node.severity.name.lower()}">{escapeHtml(node.message)}</span>'
        if isinstance(node, Unresolved):
            raise UnresolvedReferenceError(f"Unresolved node reached the renderer: {node.message}")
        raise TypeError(f"No HTML rendering for node type {type(node).__name__}")

    def heading_id(self, node: Heading, current: Path) -> str:
        """Anchor for a heading, unique within the page being rendered."""
        slug = slugify(_plain(node.content))
        return unique_slug(slug, self._slugs) if slug else ""

    # --- pages ---

    def styles(self, tree: DocumentTree, current: Path) -> str:
        links = [
            f'<link rel="stylesheet" href="{escapeHtml(path.relative_to(current.parent))}">\n'
            for path in sorted(tree.all_static_inputs())
            if path.suffix == "css"
        ]
        return "".join(links)

    def render_document(self, doc: Document, index: TreeIndex) -> str:
        path = self.output_path(doc.path)
        self._slugs = {}
        config = index.cursor(doc.path).config()
        return PAGE_TEMPLATE.format(
            lang=escapeHtml(config.get_as("language", str, "en")),
            title=escapeHtml(doc.title or config.get("title", doc.path.name)),
            styles=self.styles(index.tree, path),
            body=self.blocks(doc.content, path),
        )

    def render_tree(self, tree: DocumentTree, base_config: Optional[dict] = None) -> dict[Path, str]:
        """All pages of tree keyed by output path.

        Raises CollisionError when two documents map to the same page, e.g.
        '/a.md' and '/a.mdx'.
        """
        index = TreeIndex(tree, base_config)
        pages: dict[Path, str] = {}
        sources: dict[Path, Path] = {}
        for doc in tree.all_documents():
            path = self.output_path(doc.path)
            if path in pages:
                raise CollisionError(path, str(sources[path]), str(doc.path))
            pages[path] = self.render_document(doc, index)
            sources[path] = doc.path
        return pages


def _plain(nodes) -> str:
    parts = []
    for n in nodes:
        if isinstance(n, (Text, Code)):
            parts.append(n.text)
        else:
            parts.append(_plain(getattr(n, "content", ())))
    return "".join(parts)
