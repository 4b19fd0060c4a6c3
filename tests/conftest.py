"""Root test configuration: environment isolation and session-level cleanup"""

import os
import shutil
from pathlib import Path

import pytest

from mdsite.core.render.postprocess import shutdown_default_factory


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_DIRS = ["dist"]


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """Drop MDSITE_* variables from the developer's shell so defaults are predictable."""
    for name in list(os.environ):
        if name.startswith("MDSITE_"):
            monkeypatch.delenv(name)


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove build output created during the test session and drop the shared factory."""
    yield
    shutdown_default_factory()
    for name in _CLEANUP_DIRS:
        p = _PROJECT_ROOT / name
        if p.exists():
            shutil.rmtree(p)
