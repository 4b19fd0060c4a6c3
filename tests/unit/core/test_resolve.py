"""Unit tests for core/resolve.py"""

import pytest

from mdsite.core import resolvers
from mdsite.core.errors import (
    CyclicReferenceError,
    DiagnosticKind,
    Severity,
    ThresholdExceededError,
)
from mdsite.core.models import (
    DocumentTree,
    Failure,
    Heading,
    InternalLink,
    Invalid,
    Paragraph,
    Phase,
    Text,
    Unresolved,
    walk,
)
from mdsite.core.path import Path, Root
from mdsite.core.resolve import ResolutionState, pending_nodes, resolve_tree, tree_state


P = Path.parse


STRUCTURE = frozenset({Phase.structure})


def _tree(*docs) -> DocumentTree:
    return DocumentTree(Root, documents=docs)


def _nodes(tree, node_type) -> list:
    return [n for d in tree.all_documents() for n in walk(d.content) if isinstance(n, node_type)]


# --- fixpoint ---

def test_nothing_pending_returns_same_tree(site_tree):
    """A tree without resolver nodes is returned unchanged."""
    result = resolve_tree(site_tree)
    assert result.tree is site_tree
    assert result.passes == 0
    assert result.state == ResolutionState.resolved


def test_link_resolves_to_internal_link(make_doc):
    tree = _tree(
        make_doc("/a.md", "A", Paragraph((resolvers.link("b.md", (Text("to b"),)),))),
        make_doc("/b.md", "B"),
    )
    result = resolve_tree(tree)
    assert _nodes(result.tree, InternalLink) == [InternalLink(P("/b.md"), (Text("to b"),))]
    assert result.passes == 1
    assert not result.diagnostics


def test_resolved_tree_is_idempotent(make_doc):
    """Resolving an already resolved tree changes nothing."""
    tree = _tree(
        make_doc("/a.md", "A", Paragraph((resolvers.link("b.md"),))),
        make_doc("/b.md", "B"),
    )
    resolved = resolve_tree(tree).tree
    again = resolve_tree(resolved)
    assert again.tree is resolved
    assert again.passes == 0


def test_resolver_receives_owning_document_cursor(make_doc):
    seen = []

    def _record(cursor):
        seen.append(cursor.path)
        return Text("ok")

    tree = _tree(make_doc("/a.md", None, Unresolved(_record, STRUCTURE, "record")))
    resolve_tree(tree)
    assert seen == [P("/a.md")]


def test_chained_resolvers_take_multiple_passes(make_doc):
    """A resolver may return another resolver node, resolved on the next pass."""
    second = lambda cursor: Text("final")
    first = lambda cursor: Unresolved(second, STRUCTURE, "second")
    tree = _tree(make_doc("/a.md", None, Paragraph((Unresolved(first, STRUCTURE, "first"),))))
    result = resolve_tree(tree)
    assert result.passes == 2
    assert result.tree.documents[0].content == (Paragraph((Text("final"),)),)


def test_empty_link_text_waits_for_target_title(make_doc):
    """A title taken from a page whose heading is itself a link resolves one pass later."""
    tree = _tree(
        make_doc("/a.md", None, Paragraph((resolvers.link("b.md"),))),
        make_doc("/b.md", None, Heading(1, (resolvers.link("c.md", (Text("See C"),)),))),
        make_doc("/c.md", "C"),
    )
    result = resolve_tree(tree)
    assert result.passes == 2
    link = result.tree.documents[0].content[0].content[0]
    assert link == InternalLink(P("/b.md"), (Text("See C"),))


def test_other_phase_nodes_are_left_alone(make_doc):
    """Render-phase resolvers survive structure resolution untouched."""
    tree = _tree(make_doc("/a.md", "A", resolvers.downloads()))
    result = resolve_tree(tree, Phase.structure)
    assert result.tree is tree
    assert len(pending_nodes(result.tree, Phase.render)) == 1


def test_tree_state_tracks_pending_nodes_per_phase(make_doc):
    tree = _tree(make_doc("/a.md", "A", Paragraph((resolvers.link("b.md"),))), make_doc("/b.md", "B"))
    assert tree_state(tree, Phase.structure) == ResolutionState.unresolved
    assert tree_state(tree, Phase.render) == ResolutionState.resolved
    assert tree_state(resolve_tree(tree).tree, Phase.structure) == ResolutionState.resolved


# --- failures ---

def test_failure_becomes_invalid_with_diagnostic(make_doc):
    tree = _tree(make_doc("/a.md", "A", Paragraph((resolvers.link("missing.md", (Text("x"),)),))))
    result = resolve_tree(tree)
    [invalid] = _nodes(result.tree, Invalid)
    [diag] = result.diagnostics
    assert invalid.message == "Unresolved internal reference: missing.md"
    assert diag.path == P("/a.md")
    assert diag.severity == Severity.ERROR
    assert diag.kind == DiagnosticKind.resolver
    assert diag.source == "[...](missing.md)"
    assert result.state == ResolutionState.failed


def test_warning_failure_keeps_state_resolved(make_doc):
    fail = lambda cursor: Failure("minor", Severity.WARNING)
    tree = _tree(make_doc("/a.md", None, Unresolved(fail, STRUCTURE, "warn")))
    result = resolve_tree(tree)
    assert result.diagnostics[0].severity == Severity.WARNING
    assert result.state == ResolutionState.resolved


def test_mutual_cycle_raises_within_one_pass(make_doc):
    """Two pages whose titles are links to each other can never resolve."""
    calls = []

    def _link(ref):
        node = resolvers.link(ref)
        def _counted(cursor):
            calls.append(ref)
            return node.resolve_fn(cursor)
        return Unresolved(_counted, STRUCTURE, f"link to {ref}")

    tree = _tree(
        make_doc("/a.md", None, Heading(1, (_link("b.md"),))),
        make_doc("/b.md", None, Heading(1, (_link("a.md"),))),
    )
    with pytest.raises(CyclicReferenceError) as exc:
        resolve_tree(tree, max_passes=10)
    assert sorted(path for path, _ in exc.value.unresolved) == [P("/a.md"), P("/b.md")]
    assert len(calls) == 2


def test_exhausted_passes_invalidate_remaining_nodes(make_doc):
    """Nodes still pending after max_passes become Invalid with an error message."""
    def _again(cursor):
        return Unresolved(_again, STRUCTURE, "endless")

    tree = _tree(make_doc("/a.md", None, Unresolved(_again, STRUCTURE, "endless")))
    result = resolve_tree(tree, max_passes=3)
    assert result.passes == 3
    assert not pending_nodes(result.tree, Phase.structure)
    [diag] = result.diagnostics
    assert diag.kind == DiagnosticKind.unresolved_reference
    assert diag.severity == Severity.ERROR


def test_invalid_max_passes():
    with pytest.raises(ValueError):
        resolve_tree(_tree(), max_passes=0)


# --- threshold ---

def test_per_pass_threshold_raises_after_offending_pass(make_doc):
    tree = _tree(make_doc("/a.md", "A", Paragraph((resolvers.link("missing.md", (Text("x"),)),))))
    with pytest.raises(ThresholdExceededError) as exc:
        resolve_tree(tree, failure_level=Severity.ERROR, check_per_pass=True)
    assert exc.value.level == Severity.ERROR
    assert len(exc.value.diagnostics) == 1


def test_threshold_ignored_without_per_pass_check(make_doc):
    tree = _tree(make_doc("/a.md", "A", Paragraph((resolvers.link("missing.md", (Text("x"),)),))))
    result = resolve_tree(tree, failure_level=Severity.ERROR)
    assert len(result.diagnostics) == 1


def test_render_diagnostics_carry_format_and_classifiers(make_doc):
    fail = lambda cursor: Failure("bad")
    tree = _tree(make_doc("/a.md", None, Unresolved(fail, frozenset({Phase.render}), "render-only")))
    result = resolve_tree(tree, Phase.render, fmt="zip", classifiers=("std",))
    assert result.diagnostics[0].format == "zip"
    assert result.diagnostics[0].classifiers == ("std",)
