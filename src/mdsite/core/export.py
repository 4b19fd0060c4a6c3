"""Write an output map to a directory: pages as UTF-8 text, artifacts as bytes"""

import logging
import shutil
from pathlib import Path as FilePath

from mdsite.core.output import OutputMap, RenderedResult


logger = logging.getLogger(__name__)


def target_file(output_dir: FilePath, path) -> FilePath:
    """Filesystem location of a virtual output path under output_dir."""
    return output_dir.joinpath(*path.segments)


def write_outputs(outputs: OutputMap, output_dir: FilePath) -> list[FilePath]:
    """Write every non-alias result; returns the written files in path order.

    Index aliases are skipped: on disk the directory itself serves its index page.
    """
    written = []
    aliases = outputs.aliases
    for path, result in outputs.items():
        if path in aliases or path.is_root:
            continue
        dest = target_file(output_dir, path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(result, RenderedResult):
            dest.write_text(result.content, encoding='utf-8')
        else:
            with result.open() as src, open(dest, 'wb') as out:
                shutil.copyfileobj(src, out)
        written.append(dest)
    logger.info("Wrote %d file(s) to %s", len(written), output_dir)
    return written
