"""Virtual slash-segmented paths addressing tree nodes and output artifacts"""

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Path:
    """An absolute virtual path; the empty segment tuple is the root."""
    segments: tuple[str, ...] = ()

    @classmethod
    def parse(cls, value: str) -> "Path":
        """Parse '/a/b' (a leading slash is optional) into a Path."""
        return Root.resolve(value if value.startswith("/") else "/" + value)

    def __truediv__(self, other: "str | Path") -> "Path":
        if isinstance(other, Path):
            return Path(self.segments + other.segments)
        return self.resolve(other.lstrip("/")) if other else self

    def __str__(self) -> str:
        return "/" + "/".join(self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def parent(self) -> "Path":
        return Path(self.segments[:-1]) if self.segments else self

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""

    @property
    def suffix(self) -> str:
        """File suffix without the dot, or '' when the name has none."""
        stem, dot, suffix = self.name.rpartition(".")
        return suffix if dot and stem else ""

    def with_suffix(self, suffix: str) -> "Path":
        if self.is_root:
            raise ValueError("Root has no name to attach a suffix to")
        stem = self.name[: -len(self.suffix) - 1] if self.suffix else self.name
        return self.parent / f"{stem}.{suffix}"

    def is_ancestor_of(self, other: "Path") -> bool:
        return other.segments[: len(self.segments)] == self.segments and other != self

    def resolve(self, ref: str) -> "Path":
        """Resolve an absolute ('/x') or relative ('../x') reference against this directory."""
        parts = list(() if ref.startswith("/") else self.segments)
        for seg in ref.split("/"):
            if seg in ("", "."):
                continue
            if seg == "..":
                if parts:
                    parts.pop()
            else:
                parts.append(seg)
        return Path(tuple(parts))

    def relative_to(self, directory: "Path") -> str:
        """Relative href from directory to this path (e.g. '../b/c.html')."""
        common = 0
        for a, b in zip(self.segments, directory.segments):
            if a != b:
                break
            common += 1
        ups = [".."] * (len(directory.segments) - common)
        rel = "/".join(ups + list(self.segments[common:]))
        return rel or "."


Root = Path()
