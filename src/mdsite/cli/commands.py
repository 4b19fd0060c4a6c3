"""CLI command implementations"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from mdsite.config import Settings, load_config
from mdsite.core.errors import MdsiteError
from mdsite.core.export import write_outputs
from mdsite.core.output import BuildResult
from mdsite.core.parse import parse_dir
from mdsite.core.pipeline import run_build


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _split(value: Optional[str]) -> Optional[list[str]]:
    return [v.strip() for v in value.split(",") if v.strip()] if value is not None else None


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build(settings: Settings) -> BuildResult:
    """Parse the input directory and run the build with CLI error handling."""
    try:
        tree = parse_dir(Path(settings.input_dir), settings.parser_config)
    except (ValueError, RuntimeError) as e:
        _fail("Parsing failed", e)
    try:
        return run_build(tree, settings)
    except MdsiteError as e:
        _fail("Build failed", e)


def _echo_result(result: BuildResult) -> None:
    """Print messages, failures and a summary line."""
    for message in result.messages():
        typer.echo(f"  {message}", err=True)
    typer.echo(
        f"Build {result.status} - "
        f"{len(result.outputs)} output(s), "
        f"{len(result.failures)} failed task(s), "
        f"{len(result.diagnostics)} message(s)"
    )


def build_cmd(
    path: Annotated[Optional[str], typer.Argument(help="Input directory")] = None,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    formats: Annotated[Optional[str], typer.Option("--binary-formats", help="Comma-separated binary formats (e.g. zip)")] = None,
    parser: Annotated[Optional[str], typer.Option("--parser-config", help="MarkdownIt preset name")] = None,
    failure_level: Annotated[Optional[str], typer.Option("--failure-level", help="debug|info|warning|error|fatal|none")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    ):
    """Parse, resolve and render the input tree, then write all outputs."""
    _configure_logging(verbose)
    settings = _settings(overrides={
        "input_dir": path, "output_dir": out, "binary_formats": _split(formats),
        "parser_config": parser, "failure_level": failure_level,
    })
    result = _build(settings)
    _echo_result(result)
    if result.status == "failed":
        raise typer.Exit(1)

    output_dir = Path(settings.output_dir)
    try:
        written = write_outputs(result.outputs, output_dir)
    except OSError as e:
        _fail("Writing outputs failed", e)
    typer.echo(f"Wrote {len(written)} file(s) to {output_dir}/")


def list_cmd(
    path: Annotated[Optional[str], typer.Argument(help="Input directory")] = None,
    formats: Annotated[Optional[str], typer.Option("--binary-formats", help="Comma-separated binary formats (e.g. zip)")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    ):
    """Build in memory and print every output path without writing files."""
    _configure_logging(verbose)
    settings = _settings(overrides={"input_dir": path, "binary_formats": _split(formats)})
    result = _build(settings)
    aliases = result.outputs.aliases
    for p in result.outputs.list():
        typer.echo(f"{p} (alias)" if p in aliases else str(p))
    _echo_result(result)
    if result.status == "failed":
        raise typer.Exit(1)
