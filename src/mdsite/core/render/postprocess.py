"""Binary post-processor contract, document metadata and the shared processor factory"""

import json
import logging
import threading
import zipfile
from dataclasses import dataclass
import datetime as dt
from typing import BinaryIO, Optional, Protocol, Union

from pydantic import BaseModel, ValidationError, field_validator

from mdsite.core.errors import ConfigurationError
from mdsite.core.models import DocumentTree, StaticInput
from mdsite.core.path import Path
from mdsite.core.tree_config import TreeConfig


logger = logging.getLogger(__name__)


class DocumentMetadata(BaseModel):
    """Best-effort title/authors/date passed along to post-processors."""
    title:   Optional[str] = None
    authors: list[str] = []
    date:    Optional[Union[dt.datetime, dt.date]] = None

    @field_validator("authors", mode="before")
    @classmethod
    def _authors_list(cls, value):
        if value is None:
            return []
        return [value] if isinstance(value, str) else value

    @classmethod
    def from_tree(cls, tree: DocumentTree, base_config: Optional[dict] = None) -> "DocumentMetadata":
        """Metadata from root config keys title/authors/date, falling back to the first heading."""
        config = TreeConfig(base_config).child(tree.config)
        title = config.get("title", None)
        if title is None:
            title = next((doc.title for doc in tree.all_documents() if doc.title), None)
        try:
            return cls(title=title, authors=config.get("authors", None), date=config.get("date", None))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid document metadata: {e}") from e


class PostProcessor(Protocol):
    """Turns a rendered intermediate representation into a packaged binary."""

    def process(
        self,
        intermediate: str,
        metadata: DocumentMetadata,
        sink: BinaryIO,
        static_inputs: dict[Path, StaticInput],
        ) -> None:
        """Write the binary artifact to sink; raise on failure."""
        ...


@dataclass(frozen=True)
class BinaryFormat:
    """A configured binary output: format name, file suffix and its post-processor."""
    name:      str
    suffix:    str
    processor: PostProcessor


class ZipBundle:
    """Reference post-processor: a zip archive with the document, metadata and assets."""

    mimetype = "application/x-mdsite-bundle"

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression

    def process(self, intermediate, metadata, sink, static_inputs) -> None:
        with zipfile.ZipFile(sink, "w", compression=self.compression) as zf:
            zf.writestr("mimetype", self.mimetype, compress_type=zipfile.ZIP_STORED)
            zf.writestr("content.xhtml", intermediate)
            zf.writestr("metadata.json", metadata.model_dump_json(indent=2))
            manifest = []
            for path in sorted(static_inputs):
                with static_inputs[path].open() as stream:
                    zf.writestr("assets" + str(path), stream.read())
                manifest.append(str(path))
            zf.writestr("manifest.json", json.dumps(manifest, indent=2))


class PostProcessorFactory:
    """Creates post-processors by format name; built once and shared read-only."""

    def __init__(self):
        self._registry = {"zip": ZipBundle}
        self._instances: dict[str, PostProcessor] = {name: cls() for name, cls in self._registry.items()}

    @property
    def formats(self) -> list[str]:
        return sorted(self._registry)

    def create(self, name: str) -> PostProcessor:
        if name not in self._registry:
            raise ConfigurationError(f"Unknown binary format '{name}'; available: {', '.join(self.formats)}")
        return self._instances[name]

    def binary_format(self, name: str) -> BinaryFormat:
        return BinaryFormat(name, name, self.create(name))


_factory: Optional[PostProcessorFactory] = None
_factory_lock = threading.Lock()


def default_factory() -> PostProcessorFactory:
    """The process-wide factory, constructed on first use."""
    global _factory
    with _factory_lock:
        if _factory is None:
            logger.debug("Constructing default post-processor factory")
            _factory = PostProcessorFactory()
        return _factory


def shutdown_default_factory() -> None:
    """Drop the shared factory; the next default_factory() call builds a new one."""
    global _factory
    with _factory_lock:
        _factory = None
