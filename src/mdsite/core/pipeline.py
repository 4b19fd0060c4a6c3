"""Build orchestration: structure resolution, variants, and the (tree x format) render fan-out"""

import io
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Optional

from mdsite.config import Settings
from mdsite.core.assets import AssetProvider, fallback_styles
from mdsite.core.errors import (
    CollisionError,
    CyclicReferenceError,
    Diagnostic,
    MdsiteError,
    PostProcessorError,
    RenderError,
    Severity,
    ThresholdExceededError,
    exceeds,
)
from mdsite.core.models import DocumentTree, Phase
from mdsite.core.output import BuildResult, OutputMap, StaticResult, TaskFailure
from mdsite.core.path import Path
from mdsite.core.render.html import HTMLRenderer
from mdsite.core.render.intermediate import IntermediateRenderer
from mdsite.core.render.postprocess import BinaryFormat, DocumentMetadata, PostProcessorFactory, default_factory
from mdsite.core.resolve import resolve_tree
from mdsite.core.selections import Variant, artifact_name, create_combinations
from mdsite.core.tree_config import TreeConfig


logger = logging.getLogger(__name__)

TEXT_RENDERERS: dict[str, Callable[[], HTMLRenderer]] = {"html": HTMLRenderer}


class _Cancelled(Exception):
    """Raised inside a render task that noticed the build was cancelled."""


@dataclass(frozen=True, order=True)
class TaskKey:
    """Identity of one render task; outcomes are merged in this order."""
    kind:        str                  # "text" or "binary"
    format:      str
    classifiers: tuple[str, ...] = ()


@dataclass
class _Outcome:
    pages:       dict[Path, str] = field(default_factory=dict)
    artifact:    Optional[tuple[Path, bytes]] = None
    diagnostics: list[Diagnostic] = field(default_factory=list)


def _checkpoint(cancel: threading.Event) -> None:
    if cancel.is_set():
        raise _Cancelled()


def _run_task(fn: Callable, args: tuple, cancel: threading.Event, level: Severity) -> _Outcome:
    """Run one render task unless the build was cancelled before it started.

    A task whose messages reach level sets cancel itself, so no task queued
    behind it starts even before the main thread sees its result.
    """
    _checkpoint(cancel)
    outcome = fn(*args)
    if exceeds(outcome.diagnostics, level):
        cancel.set()
    return outcome


def _format_config(base: dict, fmt: str) -> dict:
    return {**base, "render": {"format": fmt}}


def _render_pages(
    renderer: HTMLRenderer,
    tree: DocumentTree,
    base: dict,
    max_passes: int,
    cancel: threading.Event,
    ) -> _Outcome:
    config = _format_config(base, renderer.name)
    resolved = resolve_tree(tree, Phase.render, max_passes=max_passes, base_config=config, fmt=renderer.name)
    _checkpoint(cancel)
    try:
        pages = renderer.render_tree(resolved.tree, config)
    except (ValueError, TypeError) as e:
        raise RenderError(f"{renderer.name} rendering failed: {e}") from e
    return _Outcome(pages=pages, diagnostics=resolved.diagnostics)


def _artifact_path(tree: DocumentTree, base: dict, classifiers: tuple[str, ...], suffix: str) -> Path:
    """<download_path>/<base>[-<classifiers>].<suffix>, honouring overrides in the root config."""
    config = TreeConfig(base).child(tree.config)
    download_dir = Path.parse(config.get_as("site.download_path", str, "/downloads"))
    base_name = config.get_as("site.artifact_base_name", str, "download")
    return download_dir / artifact_name(base_name, classifiers, suffix)


def _render_binary(
    fmt: BinaryFormat,
    variant: Variant,
    path: Path,
    base: dict,
    max_passes: int,
    cancel: threading.Event,
    ) -> _Outcome:
    """Resolve, render the intermediate document and run the post-processor into a private buffer."""
    config = _format_config(base, fmt.name)
    resolved = resolve_tree(
        variant.tree, Phase.render, max_passes=max_passes, base_config=config,
        fmt=fmt.name, classifiers=variant.classifiers,
    )
    _checkpoint(cancel)
    tree = resolved.tree
    try:
        intermediate = IntermediateRenderer().render_intermediate(tree, config)
    except (ValueError, TypeError) as e:
        raise RenderError(f"{fmt.name} intermediate rendering failed: {e}") from e
    metadata = DocumentMetadata.from_tree(tree, config)
    _checkpoint(cancel)
    sink = io.BytesIO()
    try:
        fmt.processor.process(intermediate, metadata, sink, tree.all_static_inputs())
    except Exception as e:
        raise PostProcessorError(f"{fmt.name} post-processor failed: {e}") from e
    return _Outcome(artifact=(path, sink.getvalue()), diagnostics=resolved.diagnostics)


def _failure(key: TaskKey, path: Path, severity: Severity, message: str) -> TaskFailure:
    return TaskFailure(format=key.format, classifiers=key.classifiers, path=path, severity=severity, message=message)


def _merge(outputs: OutputMap, key: TaskKey, outcome: _Outcome, index_name: str) -> None:
    source = f"{key.format} renderer" + (f" ({'-'.join(key.classifiers)})" if key.classifiers else "")
    if outcome.artifact is not None:
        path, data = outcome.artifact
        outputs.add(path, StaticResult.from_bytes(data), source)
    else:
        outputs.add_pages(outcome.pages, index_name, source)


def run_build(
    tree: DocumentTree,
    settings: Optional[Settings] = None,
    *,
    text_renderers: Optional[list] = None,
    binary_formats: Optional[list[BinaryFormat]] = None,
    asset_provider: Optional[AssetProvider] = fallback_styles,
    factory: Optional[PostProcessorFactory] = None,
    ) -> BuildResult:
    """Resolve tree, generate variants and render every (variant, format) pair.

    Renderer failures are isolated per task and reported in BuildResult.failures.
    Resolution messages at or above the configured failure level stop new
    tasks from starting and mark the build as aborted. CyclicReferenceError
    during structure resolution and ConfigurationError propagate to the caller.
    """
    settings = settings or Settings()
    level = settings.failure_severity
    if text_renderers is None:
        text_renderers = [TEXT_RENDERERS[name]() for name in settings.text_formats]
    if binary_formats is None:
        binary_formats = []
        if settings.binary_formats:
            factory = factory or default_factory()
            binary_formats = [factory.binary_format(name) for name in settings.binary_formats]

    base = settings.base_config()
    base["site"]["text_formats"] = [r.name for r in text_renderers]
    base["site"]["binary_suffixes"] = [f.suffix for f in binary_formats]
    outputs = OutputMap()

    # --- static inputs ---
    if asset_provider is not None:
        injected = asset_provider(TreeConfig(base).child(tree.config), tree.all_static_inputs())
        tree = tree.with_static_inputs(injected)
    outputs.add_static(tree.all_static_inputs(), "static input")

    # --- structure resolution ---
    logger.info("Resolving %d document(s)", len(tree.all_documents()))
    try:
        resolved = resolve_tree(
            tree, Phase.structure, max_passes=settings.max_passes, base_config=base,
            failure_level=level, check_per_pass=settings.threshold_check == "per_pass",
        )
    except ThresholdExceededError as e:
        logger.error("Resolution aborted: %s", e)
        return BuildResult(outputs, sorted(e.diagnostics, key=Diagnostic.sort_key), aborted=True)
    diagnostics = list(resolved.diagnostics)
    if exceeds(diagnostics, level):
        logger.error("Resolution produced messages at or above %s; no render tasks started", level.name)
        return BuildResult(outputs, sorted(diagnostics, key=Diagnostic.sort_key), aborted=True)

    # --- variants and tasks ---
    variants = create_combinations(resolved.tree) if binary_formats else []
    cancel = threading.Event()
    tasks: list[tuple[TaskKey, Callable, tuple]] = []
    for renderer in text_renderers:
        tasks.append((TaskKey("text", renderer.name), _render_pages,
                      (renderer, resolved.tree, base, settings.max_passes, cancel)))
    for variant in variants:
        for fmt in binary_formats:
            tasks.append((TaskKey("binary", fmt.name, variant.classifiers), _render_binary,
                          (fmt, variant, _artifact_path(variant.tree, base, variant.classifiers, fmt.suffix),
                           base, settings.max_passes, cancel)))

    locations = {key: args[2] if key.kind == "binary" else resolved.tree.path for key, _, args in tasks}
    outcomes: dict[TaskKey, _Outcome] = {}
    failures: list[TaskFailure] = []
    aborted = False
    logger.debug("Submitting %d render task(s) to %d worker(s)", len(tasks), settings.max_workers)
    with ThreadPoolExecutor(max_workers=settings.max_workers, thread_name_prefix="RenderTask") as executor:
        futures = {executor.submit(_run_task, fn, args, cancel, level): key for key, fn, args in tasks}
        for future in as_completed(futures):
            key = futures[future]
            if future.cancelled():
                continue
            try:
                outcome = future.result()
            except _Cancelled:
                logger.info("Discarded cancelled task %s", key)
                continue
            except CyclicReferenceError as e:
                logger.error("Render task %s hit a reference cycle: %s", key, e)
                failures.append(_failure(key, e.unresolved[0][0], Severity.FATAL, str(e)))
                continue
            except CollisionError as e:
                logger.error("Render task %s produced colliding pages: %s", key, e)
                failures.append(_failure(key, e.path, Severity.FATAL, str(e)))
                continue
            except MdsiteError as e:
                logger.warning("Render task %s failed: %s", key, e)
                failures.append(_failure(key, locations[key], Severity.ERROR, str(e)))
                continue
            except Exception as e:
                logger.exception("Render task %s crashed", key)
                failures.append(_failure(key, locations[key], Severity.ERROR, f"{type(e).__name__}: {e}"))
                continue

            logger.debug("Task %s completed with %d message(s)", key, len(outcome.diagnostics))
            outcomes[key] = outcome
            if exceeds(outcome.diagnostics, level) and not aborted:
                aborted = True
                logger.error("Task %s produced messages at or above %s; cancelling pending tasks", key, level.name)
                cancel.set()
                for other in futures:
                    other.cancel()

    # --- merge in task order ---
    completed = []
    index_name = settings.index_filename
    for key in sorted(outcomes):
        outcome = outcomes[key]
        diagnostics.extend(outcome.diagnostics)
        try:
            _merge(outputs, key, outcome, index_name)
        except CollisionError as e:
            failures.append(_failure(key, e.path, Severity.FATAL, str(e)))
            continue
        completed.append((key.format, key.classifiers))

    failures.sort(key=lambda f: (f.classifiers, f.format, f.path))
    result = BuildResult(
        outputs, sorted(diagnostics, key=Diagnostic.sort_key), failures, completed, aborted,
    )
    logger.info("Build %s: %d output(s), %d failure(s)", result.status, len(outputs), len(failures))
    return result
