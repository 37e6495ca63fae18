from pathlib import Path

import nbformat

from .types import Cell, CellKind, Notebook


def _source_text(source):
    if isinstance(source, list):
        return "".join(source)
    return source or ""


def load_notebook(path) -> Notebook:
    """Read a Jupyter ``.ipynb`` file into a ``Notebook``.

    Code cells stay code cells; markdown and raw cells are carried along as
    markdown so the results line up with the file.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Notebook {path} not found")
    nb = nbformat.read(str(path), as_version=4)
    cells = []
    for cell in nb.cells:
        text = _source_text(cell.get("source", ""))
        if cell.get("cell_type") == "code":
            cells.append(Cell(CellKind.CODE, text))
        else:
            cells.append(Cell(CellKind.MARKDOWN, text))
    return Notebook(cells)


def notebook_from_sources(pairs) -> Notebook:
    """Build a notebook from ``(kind, text)`` pairs, e.g. ``("code", "x = 1")``."""
    return Notebook([Cell(CellKind(kind), text) for kind, text in pairs])
