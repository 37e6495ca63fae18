"""Build a notebook at most once per distinct content, then run it.

Flow: fingerprint -> cache lookup -> (miss: lock, generate, build, commit,
unlock) -> run the cached project -> split its output per cell.
"""

import logging
import os
import tempfile
from pathlib import Path

from ..config import Settings
from .cache import CacheStore
from .demux import demux
from .errors import LockUnavailable, PipelineError
from .fingerprint import fingerprint
from .generators import get_generator
from .toolchain import (
    build_project,
    check_build,
    check_execution,
    execute_artifact,
)
from .types import ExecutionResult

logger = logging.getLogger(__name__)


def execute_notebook(
    notebook,
    cache_dir=None,
    verbose_level=0,
    settings=None,
    generator=None,
) -> ExecutionResult:
    """Run ``notebook`` and return one result per cell.

    Failures never raise: lock contention and build failures abort before
    anything runs, a failed or timed-out run marks every cell failed, and in
    all cases ``error_message`` says what happened.
    """
    if settings is None:
        settings = Settings()
    if generator is None:
        generator = get_generator(settings.toolchain)
    say = logger.info if verbose_level > 0 else logger.debug

    notebook = generator.prepare(notebook)
    key = fingerprint(notebook.cells)
    store = CacheStore(
        settings.resolve_cache_dir(cache_dir) / generator.name,
        stale_after=settings.lock_stale_after,
    )
    logger.debug(
        "notebook %s: %d cells, cache %s (pid %d)",
        key[:12],
        len(notebook),
        store.root,
        os.getpid(),
    )
    try:
        store.ensure_root()
        entry = ensure_built(store, key, notebook, generator, settings, say)
        cells = run_built(store, entry, notebook, generator, settings, say)
    except PipelineError as e:
        logger.debug("notebook %s failed: %s", key[:12], type(e).__name__)
        return ExecutionResult.failed(notebook, e.message, e.cell_error)
    except (OSError, UnicodeError) as e:
        # unwritable or full cache, or cell text the project files cannot hold
        logger.debug("notebook %s failed", key[:12], exc_info=True)
        return ExecutionResult.failed(
            notebook, f"{type(e).__name__}: {e}", PipelineError.cell_error
        )
    return ExecutionResult(success=True, cells=cells)


def ensure_built(store, key, notebook, generator, settings, say=logger.debug):
    """Return a valid cache entry for ``key``, building it if needed."""
    entry = store.lookup(key)
    if entry.valid:
        say("Cache hit: using existing notebook build %s", entry.path)
        return entry
    say("Cache miss: building notebook %s", key[:12])

    # no waiting: a second build of the same content is reported, not queued
    lock = store.lock_for(key)
    if not lock.try_acquire():
        logger.debug("could not acquire %s", lock.path)
        raise LockUnavailable("Could not acquire cache lock")
    with lock:
        # somebody may have finished the same build between our lookup and
        # taking the lock
        entry = store.lookup(key)
        if entry.valid:
            say("Cache hit after locking: %s", entry.path)
            return entry
        with tempfile.TemporaryDirectory(
            prefix=f"pynbbuild_{os.getpid()}_"
        ) as tmp:
            project_dir = Path(tmp) / "notebook_project"
            generator.generate(notebook, project_dir)
            command = settings.build_command or generator.build_command
            outcome = build_project(
                project_dir, command, timeout=settings.build_timeout
            )
            check_build(outcome, settings.build_timeout)
            say("Build finished in %.1fs", outcome.duration)
            return store.commit(key, project_dir)


def run_built(store, entry, notebook, generator, settings, say=logger.debug):
    """Run a committed build and split its output per cell."""
    output_file = store.output_path(entry.fingerprint)
    # a leftover file would be mistaken for this run's output
    output_file.unlink(missing_ok=True)
    command = settings.run_command or generator.run_command
    try:
        outcome = execute_artifact(
            entry.path, command, output_file, timeout=settings.run_timeout
        )
        check_execution(outcome, settings.run_timeout)
        say("Execution finished in %.1fs", outcome.duration)
        return demux(output_file, notebook)
    finally:
        if not settings.keep_outputs:
            output_file.unlink(missing_ok=True)
