"""Resolution engine: rewrites unresolved nodes against whole-tree context until a fixpoint"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from mdsite.core.cursor import Cursor, TreeIndex
from mdsite.core.errors import (
    CyclicReferenceError,
    Diagnostic,
    DiagnosticKind,
    Severity,
    ThresholdExceededError,
    exceeds,
)
from mdsite.core.models import (
    Document,
    DocumentTree,
    Failure,
    Invalid,
    Pending,
    Phase,
    Unresolved,
    transform,
    walk,
)


logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 10


class ResolutionState(str, Enum):
    unresolved = "unresolved"
    resolved = "resolved"
    failed = "failed"


@dataclass
class ResolutionResult:
    tree:        DocumentTree
    diagnostics: list[Diagnostic] = field(default_factory=list)
    passes:      int = 0

    @property
    def state(self) -> ResolutionState:
        if any(d.severity >= Severity.ERROR for d in self.diagnostics):
            return ResolutionState.failed
        return ResolutionState.resolved


def pending_nodes(tree: DocumentTree, phase: Phase) -> list[tuple[Document, Unresolved]]:
    """Unresolved nodes applicable to phase, in tree pre-order."""
    return [
        (doc, node)
        for doc in tree.all_documents()
        for node in walk(doc.content)
        if isinstance(node, Unresolved) and node.runs_in(phase)
    ]


def tree_state(tree: DocumentTree, phase: Phase) -> ResolutionState:
    """'unresolved' while any node applicable to phase remains, else 'resolved'."""
    return ResolutionState.unresolved if pending_nodes(tree, phase) else ResolutionState.resolved


def _describe(node: Unresolved) -> str:
    return node.source or node.message


def _run_pass(
    index: TreeIndex,
    phase: Phase,
    fmt: Optional[str],
    classifiers: tuple[str, ...],
    ) -> tuple[DocumentTree, int, list[Diagnostic]]:
    """Invoke every applicable resolver once; returns (new_tree, rewrites, diagnostics)."""
    rewrites = 0
    diagnostics: list[Diagnostic] = []

    def _resolve_doc(doc: Document) -> Document:
        nonlocal rewrites
        cursor: Optional[Cursor] = None

        def _rewrite(node):
            nonlocal rewrites, cursor
            if not isinstance(node, Unresolved) or not node.runs_in(phase):
                return node
            if cursor is None:
                cursor = index.cursor(doc.path)
            result = node.resolve(cursor, phase)
            if result is Pending.DEFER or result is node:
                return node
            rewrites += 1
            if isinstance(result, Failure):
                diagnostics.append(Diagnostic(
                    path=doc.path, severity=result.severity, message=result.message,
                    kind=DiagnosticKind.resolver, source=_describe(node),
                    format=fmt, classifiers=classifiers,
                ))
                return Invalid(result.message, result.severity, _describe(node))
            return result

        content = transform(doc.content, _rewrite)
        if all(a is b for a, b in zip(content, doc.content)):
            return doc
        return Document(doc.path, content, doc.config)

    tree = index.tree.map_documents(_resolve_doc)
    return tree, rewrites, diagnostics


def _invalidate_remaining(
    tree: DocumentTree,
    phase: Phase,
    fmt: Optional[str],
    classifiers: tuple[str, ...],
    ) -> tuple[DocumentTree, list[Diagnostic]]:
    """Replace nodes still unresolved after the last pass with Invalid placeholders."""
    diagnostics: list[Diagnostic] = []

    def _resolve_doc(doc: Document) -> Document:
        def _fail(node):
            if isinstance(node, Unresolved) and node.runs_in(phase):
                message = f"Unresolved reference: {node.message}"
                diagnostics.append(Diagnostic(
                    path=doc.path, severity=Severity.ERROR, message=message,
                    kind=DiagnosticKind.unresolved_reference, source=_describe(node),
                    format=fmt, classifiers=classifiers,
                ))
                return Invalid(message, Severity.ERROR, _describe(node))
            return node
        return Document(doc.path, transform(doc.content, _fail), doc.config)

    return tree.map_documents(_resolve_doc), diagnostics


def resolve_tree(
    tree: DocumentTree,
    phase: Phase = Phase.structure,
    *,
    max_passes: int = DEFAULT_MAX_PASSES,
    base_config: Optional[dict] = None,
    failure_level: Optional[Severity] = None,
    check_per_pass: bool = False,
    fmt: Optional[str] = None,
    classifiers: tuple[str, ...] = (),
    ) -> ResolutionResult:
    """Resolve all nodes applicable to phase, producing a new tree.

    Raises CyclicReferenceError when a pass leaves exactly the same set of
    unresolved nodes it started with, and ThresholdExceededError when
    check_per_pass is set and a pass emits a diagnostic at failure_level.
    Nodes still unresolved after max_passes become Invalid with an error
    diagnostic.
    """
    if max_passes < 1:
        raise ValueError("max_passes must be at least 1")

    previous = {node.ident for _, node in pending_nodes(tree, phase)}
    if not previous:
        return ResolutionResult(tree)

    diagnostics: list[Diagnostic] = []
    for n in range(1, max_passes + 1):
        index = TreeIndex(tree, base_config)
        tree, rewrites, pass_diagnostics = _run_pass(index, phase, fmt, classifiers)
        diagnostics.extend(pass_diagnostics)
        logger.debug("%s pass %d: %d rewrite(s), %d message(s)", phase.value, n, rewrites, len(pass_diagnostics))

        if check_per_pass and exceeds(pass_diagnostics, failure_level):
            raise ThresholdExceededError(diagnostics, failure_level)

        remaining = pending_nodes(tree, phase)
        if not remaining:
            return ResolutionResult(tree, diagnostics, n)

        current = {node.ident for _, node in remaining}
        if current == previous:
            raise CyclicReferenceError([(doc.path, node.message) for doc, node in remaining])
        previous = current

    logger.warning("%s resolution stopped after %d passes with unresolved nodes", phase.value, max_passes)
    tree, exhausted = _invalidate_remaining(tree, phase, fmt, classifiers)
    diagnostics.extend(exhausted)
    return ResolutionResult(tree, diagnostics, max_passes)
