"""Unit tests for core/cursor.py"""

import pytest

from mdsite.core.cursor import TreeIndex
from mdsite.core.models import Document, DocumentTree
from mdsite.core.path import Path, Root


P = Path.parse


@pytest.fixture(name="index")
def index_fixture(site_tree):
    return TreeIndex(site_tree, {"site": {"index_filename": "index.html"}, "language": "fr"})


def test_root_cursor(index):
    root = index.root()
    assert root.path == Root
    assert root.parent() is None
    assert not root.is_document


def test_children_documents_before_trees(index):
    """A tree's children are its documents first, then its sub-trees."""
    assert [c.path for c in index.root().children()] == [P("/index.md"), P("/guide")]


def test_documents_in_pre_order(index):
    assert [c.path for c in index.documents()] == [P("/index.md"), P("/guide/index.md"), P("/guide/setup.md")]


def test_parent_and_siblings(index):
    setup = index.cursor(P("/guide/setup.md"))
    assert setup.parent().path == P("/guide")
    assert [c.path for c in setup.siblings()] == [P("/guide/index.md"), P("/guide/setup.md")]
    assert index.root().siblings() == [index.root()]


def test_unknown_path_has_no_cursor(index):
    assert index.cursor(P("/missing.md")) is None


def test_config_nearest_wins(index):
    """Own settings shadow ancestors; the tree config shadows the base config."""
    assert index.cursor(P("/guide/index.md")).config().get("language") == "de"
    assert index.cursor(P("/guide/setup.md")).config().get("language") == "en"
    assert index.cursor(P("/guide/setup.md")).config().get("title") == "Guide"


def test_config_falls_back_to_base(index):
    assert index.cursor(P("/index.md")).config().get("site.index_filename") == "index.html"


def test_config_is_cached_per_position(index):
    cursor = index.cursor(P("/guide/setup.md"))
    assert cursor.config() is cursor.config()


@pytest.mark.parametrize("ref,expected", [
    ("setup.md", "/guide/setup.md"),
    ("../index.md", "/index.md"),
    ("/guide", "/guide"),
])
def test_resolve_relative_and_absolute(index, ref, expected):
    """References resolve against the document's directory."""
    target = index.cursor(P("/guide/index.md")).resolve(ref)
    assert target is not None
    assert target.path == P(expected)


def test_resolve_missing_returns_none(index):
    assert index.cursor(P("/index.md")).resolve("nope.md") is None


def test_resolve_types(index):
    cursor = index.cursor(P("/index.md"))
    assert isinstance(cursor.resolve(P("/guide/setup.md")), Document)
    assert isinstance(cursor.resolve("guide"), DocumentTree)


def test_title(index):
    """Documents take their first heading; trees their configured title."""
    assert index.cursor(P("/guide/setup.md")).title() == "Setup"
    assert index.cursor(P("/guide")).title() == "Guide"


def test_cursors_compare_by_position(index):
    assert index.cursor(P("/guide")) == index.cursor(P("/guide/index.md")).parent()
    assert len({index.cursor(P("/guide")), index.cursor(P("/guide"))}) == 1
