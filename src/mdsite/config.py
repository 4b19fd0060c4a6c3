"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

from mdsite.core.errors import Severity


CONFIG_FILE = "config.yaml"


class Settings(BaseModel):
    app_name:           str = "mdsite"
    input_dir:          str = Field(default="docs",       description="Root directory of the markdown sources")
    output_dir:         str = Field(default="dist",       description="Directory the rendered site is written to")
    parser_config:      str = Field(default="gfm-like",   description="MarkdownIt parser preset name")
    index_filename:     str = Field(default="index.html", description="Page name also served at its directory path")
    download_path:      str = Field(default="/downloads", description="Virtual directory for binary artifacts")
    artifact_base_name: str = Field(default="download",   description="Base file name of binary artifacts")
    text_formats:       list[str] = Field(default=["html"], description="Page renderers to run")
    binary_formats:     list[str] = Field(default=[],       description="Binary post-processors to run (e.g. zip)")
    max_passes:         int = Field(default=10, ge=1, description="Resolution passes before giving up")
    max_workers:        int = Field(default=4,  ge=1, description="Concurrent render tasks")
    failure_level:      str = Field(default="error", pattern="^(debug|info|warning|error|fatal|none)$",
                                    description="Lowest message severity that fails the build; none disables")
    threshold_check:    str = Field(default="final", pattern="^(final|per_pass)$",
                                    description="Check the failure level after each resolution pass or at the end")
    fallback_styles:    bool = Field(default=True, description="Inject a stylesheet when the input has none")

    @property
    def failure_severity(self) -> Optional[Severity]:
        return Severity.parse(self.failure_level)

    def base_config(self) -> dict[str, Any]:
        """Settings exposed to the document tree as the outermost configuration layer."""
        return {
            "site": {
                "index_filename": self.index_filename,
                "download_path": self.download_path,
                "artifact_base_name": self.artifact_base_name,
                "text_formats": list(self.text_formats),
                "binary_suffixes": list(self.binary_formats),
                "fallback_styles": self.fallback_styles,
            }
        }


def _env_value(name: str, raw: str) -> Any:
    """Comma-separated env values populate list fields."""
    if Settings.model_fields[name].annotation == list[str]:
        return [v.strip() for v in raw.split(",") if v.strip()]
    return raw


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then MDSITE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e

    for name in Settings.model_fields:
        if val := os.getenv(f"MDSITE_{name.upper()}"):
            data[name] = _env_value(name, val)

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
