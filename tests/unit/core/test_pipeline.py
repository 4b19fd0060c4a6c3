"""Unit tests for core/pipeline.py helpers"""

import threading

import pytest

from mdsite.config import Settings
from mdsite.core import pipeline
from mdsite.core.errors import Diagnostic, Severity
from mdsite.core.models import Document, DocumentTree
from mdsite.core.path import Path, Root
from mdsite.core.pipeline import (
    TaskKey,
    _artifact_path,
    _Cancelled,
    _format_config,
    _Outcome,
    _run_task,
    run_build,
)
from mdsite.core.render.postprocess import PostProcessorFactory


P = Path.parse


def test_task_keys_order_binary_variants_then_text():
    keys = [TaskKey("text", "html"), TaskKey("binary", "zip", ("pro",)), TaskKey("binary", "zip", ("free",))]
    assert sorted(keys) == [
        TaskKey("binary", "zip", ("free",)), TaskKey("binary", "zip", ("pro",)), TaskKey("text", "html"),
    ]


def test_artifact_path_from_site_settings():
    base = {"site": {"download_path": "/downloads", "artifact_base_name": "book"}}
    assert _artifact_path(DocumentTree(Root), base, ("std", "en"), "zip") == P("/downloads/book-std-en.zip")


def test_artifact_path_honours_root_config_override():
    base = {"site": {"download_path": "/downloads", "artifact_base_name": "book"}}
    tree = DocumentTree(Root, config={"site": {"artifact_base_name": "manual"}})
    assert _artifact_path(tree, base, (), "zip") == P("/downloads/manual.zip")


def test_format_config_adds_render_format():
    base = {"site": {"index_filename": "index.html"}}
    assert _format_config(base, "html") == {"site": {"index_filename": "index.html"}, "render": {"format": "html"}}
    assert "render" not in base


def test_cancelled_task_never_runs():
    calls = []
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(_Cancelled):
        _run_task(lambda: calls.append(1), (), cancel, Severity.ERROR)
    assert calls == []


def test_task_reaching_failure_level_sets_cancel():
    cancel = threading.Event()
    diag = Diagnostic(path=P("/a.md"), severity=Severity.ERROR, message="late failure")
    outcome = _run_task(lambda: _Outcome(diagnostics=[diag]), (), cancel, Severity.ERROR)
    assert outcome.diagnostics == [diag]
    assert cancel.is_set()


def test_task_below_failure_level_leaves_cancel_clear():
    cancel = threading.Event()
    diag = Diagnostic(path=P("/a.md"), severity=Severity.WARNING, message="minor")
    _run_task(lambda: _Outcome(diagnostics=[diag]), (), cancel, Severity.ERROR)
    assert not cancel.is_set()


def test_no_binary_formats_skips_default_factory(monkeypatch):
    built = []
    monkeypatch.setattr(pipeline, "default_factory", lambda: built.append(1))
    result = run_build(DocumentTree(Root, documents=(Document(P("/a.md")),)), Settings())
    assert built == []
    assert P("/a.html") in result.outputs


def test_binary_formats_use_default_factory(monkeypatch):
    built = []

    def _factory():
        built.append(1)
        return PostProcessorFactory()

    monkeypatch.setattr(pipeline, "default_factory", _factory)
    run_build(DocumentTree(Root, documents=(Document(P("/a.md")),)), Settings(binary_formats=["zip"]))
    assert built == [1]
