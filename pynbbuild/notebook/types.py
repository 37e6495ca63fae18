"""Value types shared by the build-and-execute pipeline."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple


class CellKind(str, Enum):
    CODE = "code"
    MARKDOWN = "markdown"


@dataclass(frozen=True)
class Cell:
    kind: CellKind
    content: str = ""

    @property
    def is_code(self) -> bool:
        return self.kind == CellKind.CODE


@dataclass(frozen=True)
class Notebook:
    """Ordered, immutable sequence of cells.

    Two notebooks with the same cells are the same notebook; the file they
    came from does not matter.
    """

    cells: Tuple[Cell, ...] = ()

    def __post_init__(self):
        # accept any sequence but always store a tuple
        object.__setattr__(self, "cells", tuple(self.cells))

    def __len__(self):
        return len(self.cells)

    def __iter__(self):
        return iter(self.cells)

    def code_cells(self) -> List[Cell]:
        return [c for c in self.cells if c.is_code]

    def replace_cells(self, cells: Sequence[Cell]) -> "Notebook":
        """Return a copy with rewritten cells (used by preprocessing hooks)."""
        return replace(self, cells=tuple(cells))


@dataclass
class CellResult:
    success: bool = True
    output: str = ""
    error: Optional[str] = None
    # figure capture is not implemented; kept for renderers
    figure_data: Optional[bytes] = None


@dataclass
class ExecutionResult:
    success: bool = True
    error_message: Optional[str] = None
    cells: List[CellResult] = field(default_factory=list)

    @classmethod
    def failed(cls, notebook, message, cell_error=None):
        """Build the uniform all-cells-failed result for ``notebook``.

        Code cells carry ``cell_error``; markdown cells are marked failed
        without an error so the result still lines up with the notebook.
        """
        cells = []
        for cell in notebook.cells:
            cells.append(
                CellResult(
                    success=False,
                    output="",
                    error=cell_error if cell.is_code else None,
                )
            )
        return cls(success=False, error_message=message, cells=cells)
