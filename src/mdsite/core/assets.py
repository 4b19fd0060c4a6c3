"""Static asset providers invoked once per build before rendering"""

from typing import Callable

from mdsite.core.models import StaticInput
from mdsite.core.path import Root
from mdsite.core.tree_config import TreeConfig


FALLBACK_STYLE_PATH = Root / "styles" / "fallback.css"

FALLBACK_CSS = b"""\
body { font-family: sans-serif; line-height: 1.5; max-width: 48em; margin: 0 auto; padding: 1em; }
pre { background: #f4f4f4; padding: 0.5em; overflow-x: auto; }
.message.error, .message.fatal { color: #b00020; }
.message.warning { color: #a06000; }
"""

AssetProvider = Callable[[TreeConfig, dict], dict]


def fallback_styles(config: TreeConfig, static_inputs: dict) -> dict:
    """Inject a minimal stylesheet when the inputs contain no CSS at all."""
    if not config.get_as("site.fallback_styles", bool, True):
        return {}
    if any(path.suffix == "css" for path in static_inputs):
        return {}
    return {FALLBACK_STYLE_PATH: StaticInput.from_bytes(FALLBACK_STYLE_PATH, FALLBACK_CSS)}
