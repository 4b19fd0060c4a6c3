"""Path-keyed output map of rendered pages and static artifacts, plus the build result"""

import io
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Optional, Union

from mdsite.core.errors import CollisionError, Diagnostic, Severity
from mdsite.core.models import StaticInput
from mdsite.core.path import Path


@dataclass(frozen=True)
class RenderedResult:
    """Inline text content of a rendered page."""
    content: str


@dataclass(frozen=True)
class StaticResult:
    """A byte stream opened on demand (copied asset or finished binary artifact)."""
    open: Callable[[], BinaryIO]

    @classmethod
    def from_bytes(cls, data: bytes) -> "StaticResult":
        return cls(lambda: io.BytesIO(data))

    @classmethod
    def from_input(cls, static: StaticInput) -> "StaticResult":
        return cls(static.open)

    def read(self) -> bytes:
        with self.open() as stream:
            return stream.read()


Result = Union[RenderedResult, StaticResult]


class OutputMap:
    """All build results by output path; any path may be claimed by one source only.

    The one expected duplication is index aliasing: a page named like the
    index file is also reachable at its directory path.
    """

    def __init__(self):
        self._results: dict[Path, Result] = {}
        self._sources: dict[Path, str] = {}
        self._aliases: set[Path] = set()

    def __contains__(self, path: Path) -> bool:
        return path in self._results

    def __len__(self) -> int:
        return len(self._results)

    def get(self, path: Path) -> Optional[Result]:
        return self._results.get(path)

    def source_of(self, path: Path) -> Optional[str]:
        return self._sources.get(path)

    @property
    def aliases(self) -> frozenset:
        return frozenset(self._aliases)

    def list(self) -> list[Path]:
        """All known paths sorted by Path ordering."""
        return sorted(self._results)

    def items(self) -> "list[tuple[Path, Result]]":
        return [(p, self._results[p]) for p in self.list()]

    def add(self, path: Path, result: Result, source: str) -> None:
        if path in self._results:
            raise CollisionError(path, self._sources[path], source)
        self._results[path] = result
        self._sources[path] = source

    def add_static(self, inputs: dict, source: str) -> None:
        for path in sorted(inputs):
            self.add(path, StaticResult.from_input(inputs[path]), source)

    def add_pages(self, pages: dict[Path, str], index_name: str, source: str) -> None:
        """Add rendered pages, aliasing every '<dir>/<index_name>' page at '<dir>'."""
        entries = []
        for path in sorted(pages):
            result = RenderedResult(pages[path])
            entries.append((path, result, source))
            if path.name == index_name:
                entries.append((path.parent, result, f"{source} (index of {path.parent})"))
        claimed: dict[Path, str] = {}
        for path, _, src in entries:
            owner = self._sources.get(path) or claimed.get(path)
            if owner is not None:
                raise CollisionError(path, owner, src)
            claimed[path] = src
        for path, result, src in entries:
            self.add(path, result, src)
            if src != source:
                self._aliases.add(path)


@dataclass(frozen=True)
class TaskFailure:
    """A (tree, format) render task that produced no artifact."""
    format:      str
    classifiers: tuple[str, ...]
    path:        Path
    severity:    Severity
    message:     str

    def __str__(self) -> str:
        variant = "-".join(self.classifiers) or "default"
        return f"{self.severity.name} {self.path} [{self.format}/{variant}]: {self.message}"


@dataclass
class BuildResult:
    outputs:     OutputMap
    diagnostics: list[Diagnostic] = field(default_factory=list)
    failures:    list[TaskFailure] = field(default_factory=list)
    completed:   list[tuple[str, tuple[str, ...]]] = field(default_factory=list)   # (format, classifiers)
    aborted:     bool = False

    @property
    def status(self) -> str:
        """'success', 'partial' (some tasks failed, others completed) or 'failed'."""
        if self.aborted or (self.failures and not self.completed):
            return "failed"
        return "partial" if self.failures else "success"

    def messages(self) -> list[str]:
        return [str(d) for d in self.diagnostics] + [str(f) for f in self.failures]
