import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pynbbuild.notebook.types import Cell, CellKind, Notebook  # noqa: E402


def make_notebook(*cells):
    """``make_notebook(("code", "print(1)"), ("markdown", "# hi"))``"""
    return Notebook([Cell(CellKind(kind), text) for kind, text in cells])


@pytest.fixture
def cache_root(tmp_path, monkeypatch):
    root = tmp_path / "cache"
    monkeypatch.setenv("PYNBBUILD_CACHE_DIR", str(root))
    monkeypatch.delenv("PYNBBUILD_TOOLCHAIN", raising=False)
    return root
