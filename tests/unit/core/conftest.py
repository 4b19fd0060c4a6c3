"""Shared fixtures for core unit tests"""

import pytest
from markdown_it import MarkdownIt

from mdsite.core.models import Document, DocumentTree, Heading, Paragraph, Text
from mdsite.core.path import Path, Root


SAMPLE_MD = """\
# Heading 1

A paragraph with **bold** text.

## Heading 2

- item one
- item two

```python
print("hello")
```

---

Footer paragraph.
"""

def _make_doc(path: str, title: str = None, *blocks, **config) -> Document:
    """Document at path with an optional level-1 heading followed by blocks."""
    heading = (Heading(1, (Text(title),)),) if title else ()
    return Document(Path.parse(path), heading + tuple(blocks), config)


@pytest.fixture(name="make_doc")
def make_doc_fixture():
    return _make_doc


@pytest.fixture(name="parser")
def parser_fixture():
    return MarkdownIt("gfm-like", options_update={"linkify": False})


@pytest.fixture(name="sample_tokens")
def sample_tokens_fixture(parser):
    return parser.parse(SAMPLE_MD)


@pytest.fixture(name="site_tree")
def site_tree_fixture():
    """/index.md plus a /guide sub-tree with an index and a setup page.

    /               title=Site, language=en
      index.md      "Home"
      guide/        title=Guide
        index.md    "Guide Intro", language=de
        setup.md    "Setup"
    """
    guide = DocumentTree(
        Path.parse("/guide"),
        documents=(
            _make_doc("/guide/index.md", "Guide Intro", language="de"),
            _make_doc("/guide/setup.md", "Setup", Paragraph((Text("Install it."),))),
        ),
        config={"title": "Guide"},
    )
    return DocumentTree(
        Root,
        documents=(_make_doc("/index.md", "Home"),),
        trees=(guide,),
        config={"title": "Site", "language": "en"},
    )
