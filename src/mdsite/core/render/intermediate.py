"""Whole-tree intermediate representation handed to binary post-processors"""

from typing import Optional

from markdown_it.common.utils import escapeHtml

from mdsite.core.cursor import TreeIndex
from mdsite.core.models import Document, DocumentTree, Heading, InternalLink
from mdsite.core.path import Path
from mdsite.core.render.html import HTMLRenderer
from mdsite.core.utils.slug import unique_slug


IR_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" lang="{lang}">
<head>
<title>{title}</title>
</head>
<body>
{pages}
</body>
</html>
"""


class IntermediateRenderer(HTMLRenderer):
    """Renders every document of a tree into one paginated XHTML document.

    Each document becomes a <section class="page">; internal links point to
    the page anchors, so the result is self-contained. Heading ids are
    prefixed with their page id and "--", which no page id contains. Create
    one instance per render task: page ids are assigned per rendered tree.
    """

    name = "intermediate"
    suffix = "xhtml"

    def __init__(self):
        super().__init__()
        self.page_ids: dict[Path, str] = {}

    def link_href(self, node: InternalLink, current: Path) -> str:
        if node.target not in self.page_ids:
            return node.target.relative_to(current.parent)
        page_id = self.page_ids[node.target]
        return f"#{page_id}--{node.fragment}" if node.fragment else f"#{page_id}"

    def heading_id(self, node: Heading, current: Path) -> str:
        slug = super().heading_id(node, current)
        return f"{self.page_ids[current]}--{slug}" if slug else ""

    def node(self, node, current: Path) -> str:
        rendered = super().node(node, current)
        # void elements must be closed in XHTML
        return "<hr/>" if rendered == "<hr>" else rendered

    def page_section(self, doc: Document) -> str:
        self._slugs = {}
        body = self.blocks(doc.content, doc.path)
        return f'<section class="page" id="{self.page_ids[doc.path]}">\n{body}\n</section>'

    def render_intermediate(self, tree: DocumentTree, base_config: Optional[dict] = None) -> str:
        index = TreeIndex(tree, base_config)
        config = index.root().config()
        docs = tree.all_documents()
        seen: dict[str, int] = {}
        self.page_ids = {doc.path: unique_slug("page-" + "-".join(doc.path.segments), seen) for doc in docs}
        pages = [self.page_section(doc) for doc in docs]
        return IR_TEMPLATE.format(
            lang=escapeHtml(config.get_as("language", str, "en")),
            title=escapeHtml(str(config.get("title", ""))),
            pages="\n".join(pages),
        )
