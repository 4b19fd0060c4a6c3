"""Unit tests for core/models.py"""

import pytest

from mdsite.core.models import (
    Choice,
    Choices,
    Document,
    DocumentTree,
    Heading,
    Paragraph,
    Phase,
    Strong,
    Text,
    Unresolved,
    extract_text,
    transform,
    walk,
)
from mdsite.core.path import Path, Root


P = Path.parse


def _pending(message="pending") -> Unresolved:
    return Unresolved(lambda cursor: Text("done"), frozenset({Phase.structure}), message)


def test_tree_rejects_duplicate_paths():
    """Sibling paths must be unique."""
    doc = Document(P("/a.md"))
    with pytest.raises(ValueError, match="Duplicate"):
        DocumentTree(Root, documents=(doc, doc))


def test_tree_rejects_non_child_paths():
    """Documents must sit directly below their tree."""
    with pytest.raises(ValueError, match="not a direct child"):
        DocumentTree(Root, documents=(Document(P("/sub/a.md")),))


def test_walk_is_pre_order():
    """walk yields a node before its children."""
    para = Paragraph((Text("a"), Strong((Text("b"),))))
    kinds = [type(n).__name__ for n in walk((para,))]
    assert kinds == ["Paragraph", "Text", "Strong", "Text"]


def test_walk_visits_choice_options():
    """Choices expose their options as children."""
    choices = Choices("lang", (Choice("en", (Text("hi"),)),))
    assert Text("hi") in list(walk((choices,)))


def test_transform_keeps_identity_of_untouched_subtrees():
    """Unchanged nodes are returned as the same objects."""
    untouched = Paragraph((Text("keep"),))
    changed = Paragraph((Text("old"),))
    result = transform((untouched, changed), lambda n: Text("new") if n == Text("old") else n)
    assert result[0] is untouched
    assert result[1] == Paragraph((Text("new"),))


def test_extract_text_none_while_unresolved():
    """extract_text refuses to guess at unresolved content."""
    assert extract_text((Text("a"), Strong((Text("b"),)))) == "ab"
    assert extract_text((Text("a"), _pending())) is None


def test_document_title_from_first_heading():
    doc = Document(P("/a.md"), (Paragraph((Text("x"),)), Heading(2, (Text("First"),)), Heading(1, (Text("Second"),))))
    assert doc.title == "First"
    assert Document(P("/b.md")).title is None


def test_unresolved_rejects_undeclared_phase():
    """Resolving in a phase the node does not run in is a caller error."""
    with pytest.raises(ValueError, match="render"):
        _pending().resolve(None, Phase.render)


def test_unresolved_idents_are_unique():
    """Each resolver node carries its own identity for cycle detection."""
    assert _pending().ident != _pending().ident


def test_map_documents_drops_none(site_tree):
    """Returning None from the mapping function removes the document."""
    tree = site_tree.map_documents(lambda d: None if d.path.name == "setup.md" else d)
    assert [d.path for d in tree.all_documents()] == [P("/index.md"), P("/guide/index.md")]
    assert len(site_tree.all_documents()) == 3
