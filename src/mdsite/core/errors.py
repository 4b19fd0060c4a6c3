"""Error taxonomy, severities and per-node diagnostics"""

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_serializer

from mdsite.core.path import Path, Root


class Severity(IntEnum):
    """Ordered message levels; a failure threshold compares against these."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4

    @classmethod
    def parse(cls, name: str) -> Optional["Severity"]:
        """Map a config name ('error', 'none', ...) to a Severity; 'none' disables the threshold."""
        if name.lower() == "none":
            return None
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown severity: {name!r}") from None


class DiagnosticKind(str, Enum):
    resolver = "resolver"
    unresolved_reference = "unresolved_reference"
    cyclic_reference = "cyclic_reference"
    render = "render"
    post_processor = "post_processor"
    configuration = "configuration"
    collision = "collision"


class Diagnostic(BaseModel):
    """A located problem found while resolving or rendering."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path:        Path = Root
    severity:    Severity
    message:     str
    kind:        DiagnosticKind = DiagnosticKind.resolver
    source:      Optional[str] = None      # source fragment or node description
    format:      Optional[str] = None      # render format, None during structure resolution
    classifiers: tuple[str, ...] = ()

    @field_serializer("path")
    def _serialize_path(self, path: Path) -> str:
        return str(path)

    def sort_key(self) -> tuple:
        return (self.classifiers, self.format or "", self.path, -self.severity, self.message)

    def __str__(self) -> str:
        where = str(self.path)
        if self.format:
            where += f" [{self.format}{'/' + '-'.join(self.classifiers) if self.classifiers else ''}]"
        return f"{self.severity.name} {where}: {self.message}"


def exceeds(diagnostics, level: Optional[Severity]) -> bool:
    """True when any diagnostic is at or above level (never when level is None)."""
    return level is not None and any(d.severity >= level for d in diagnostics)


class MdsiteError(Exception):
    """Base class for all build errors."""


class ConfigurationError(MdsiteError):
    """Missing or mistyped configuration, or ambiguous classifier setup."""


class UnresolvedReferenceError(MdsiteError):
    """A resolver did not succeed within the allowed number of passes."""


class CyclicReferenceError(MdsiteError):
    """The set of unresolved nodes stopped shrinking before reaching zero."""

    def __init__(self, unresolved: list[tuple[Path, str]]):
        self.unresolved = unresolved
        listing = "; ".join(f"{path}: {msg}" for path, msg in unresolved)
        super().__init__(f"Cyclic reference between {len(unresolved)} node(s): {listing}")


class RenderError(MdsiteError):
    """A single (tree, format) render task failed."""


class PostProcessorError(RenderError):
    """An external binary post-processor failed."""


class CollisionError(MdsiteError):
    """Two logical artifacts map to the same output path."""

    def __init__(self, path: Path, existing: str, incoming: str):
        self.path = path
        super().__init__(f"Output path {path} produced by both {existing} and {incoming}")


class ThresholdExceededError(MdsiteError):
    """Diagnostics reached the configured failure level."""

    def __init__(self, diagnostics: list[Diagnostic], level: Severity):
        self.diagnostics = diagnostics
        self.level = level
        worst = [d for d in diagnostics if d.severity >= level]
        super().__init__(
            f"{len(worst)} message(s) at or above {level.name}: " + "; ".join(str(d) for d in worst[:5])
        )
