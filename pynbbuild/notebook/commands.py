import sys

from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexers import get_lexer_by_name

from ..command_registry import register_command
from ..config import load_settings
from .cache import CacheStore
from .executor import execute_notebook
from .generators import get_generator
from .loader import load_notebook


def _settings(config, toolchain):
    return load_settings(config).with_overrides(toolchain=toolchain)


@register_command(
    "Build (once, cached) and run a notebook, printing each cell's output",
    help={
        "filename": "Jupyter .ipynb file to run",
        "cache_dir": "Cache root (defaults to the per-user cache directory)",
        "toolchain": "Project generator to use (fpm or python)",
        "config": "Settings file (defaults to ./pynbbuild.yml if present)",
        "show_source": "Print each code cell's source above its output",
        "verbose": "Log cache hits and misses (-vv for debug detail)",
    },
)
def nbrun(
    filename,
    cache_dir=None,
    toolchain=None,
    config=None,
    show_source=False,
    verbose=0,
):
    settings = _settings(config, toolchain)
    generator = get_generator(settings.toolchain)
    notebook = load_notebook(filename)
    result = execute_notebook(
        notebook,
        cache_dir=cache_dir,
        verbose_level=verbose,
        settings=settings,
        generator=generator,
    )
    if not result.success:
        print(f"Error: {result.error_message}", file=sys.stderr, flush=True)
        return 1
    lexer = get_lexer_by_name(generator.lexer) if show_source else None
    code_number = 0
    for cell, cell_result in zip(notebook.cells, result.cells):
        if not cell.is_code:
            continue
        code_number += 1
        print(f"--- cell {code_number} ---", flush=True)
        if lexer is not None:
            print(
                highlight(cell.content, lexer, TerminalFormatter()).rstrip(),
                flush=True,
            )
            print("--- output ---", flush=True)
        if cell_result.output:
            print(cell_result.output, flush=True)
    return 0


@register_command(
    "Remove old or excess notebook builds from the cache",
    help={
        "cache_dir": "Cache root (defaults to the per-user cache directory)",
        "toolchain": "Only prune builds made with this toolchain",
        "config": "Settings file (defaults to ./pynbbuild.yml if present)",
        "max_age_days": "Remove builds older than this many days",
        "max_size_mb": "Then remove oldest builds until under this size (0 = no limit)",
    },
)
def nbprune(
    cache_dir=None,
    toolchain=None,
    config=None,
    max_age_days=30.0,
    max_size_mb=0.0,
):
    settings = _settings(config, toolchain)
    root = settings.resolve_cache_dir(cache_dir)
    store = CacheStore(
        root / settings.toolchain, stale_after=settings.lock_stale_after
    )
    removed = store.prune(
        max_age=max_age_days * 86400 if max_age_days > 0 else None,
        max_bytes=int(max_size_mb * 1024 * 1024) if max_size_mb > 0 else None,
    )
    for path in removed:
        print(f"removed {path}", flush=True)
    print(f"{len(removed)} cache entries removed from {store.root}", flush=True)
    return 0
