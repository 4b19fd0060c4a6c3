"""Hierarchical configuration: node settings layered over ancestor settings, key by key"""

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from mdsite.core.errors import ConfigurationError


MISSING: Any = object()


def _lookup(values: Mapping, key: str) -> Any:
    """Find a dotted key in a nested mapping; a literal flat key wins over traversal."""
    if key in values:
        return values[key]
    node: Any = values
    for part in key.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return MISSING
        node = node[part]
    return node


class TreeConfig:
    """Read-only view of one node's settings with fallback to its parent chain."""

    __slots__ = ("values", "parent")

    def __init__(self, values: Optional[Mapping] = None, parent: Optional["TreeConfig"] = None):
        self.values = dict(values or {})
        self.parent = parent

    def child(self, values: Optional[Mapping]) -> "TreeConfig":
        return TreeConfig(values, self) if values else self

    def _find(self, key: str) -> Any:
        config: Optional[TreeConfig] = self
        while config is not None:
            value = _lookup(config.values, key)
            if value is not MISSING:
                return value
            config = config.parent
        return MISSING

    def __contains__(self, key: str) -> bool:
        return self._find(key) is not MISSING

    def get(self, key: str, default: Any = MISSING) -> Any:
        """Nearest value for key, else default; raises ConfigurationError if neither exists."""
        value = self._find(key)
        if value is not MISSING:
            return value
        if default is not MISSING:
            return default
        raise ConfigurationError(f"Missing configuration key: {key}")

    def get_as(self, key: str, type_: Any, default: Any = MISSING) -> Any:
        """Like get(), but validates/coerces the found value to type_."""
        value = self._find(key)
        if value is MISSING:
            return self.get(key, default)
        try:
            return TypeAdapter(type_).validate_python(value)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid value for configuration key {key}: {e}") from e

    def flatten(self) -> dict[str, Any]:
        """Merged top-level mapping, nearest node first (used for debugging output)."""
        merged = dict(self.parent.flatten()) if self.parent else {}
        merged.update(self.values)
        return merged
