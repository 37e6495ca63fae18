from .executor import execute_notebook
from .loader import load_notebook
from .types import Cell, CellKind, CellResult, ExecutionResult, Notebook

__all__ = [
    "Cell",
    "CellKind",
    "CellResult",
    "ExecutionResult",
    "Notebook",
    "execute_notebook",
    "load_notebook",
]
