"""Turn a notebook into a buildable project for an external toolchain.

Generators only write files.  Building, caching and running the result is
the pipeline's job; a generator just says which commands do that.
"""

import re
import sys
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from .toolchain import OUTPUT_ENV_VAR

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    keep_trailing_newline=True,
)


def render_template(name, **context):
    return _env.get_template(name).render(**context)


class ProjectGenerator:
    """Interface for project generators."""

    name = None
    # pygments lexer used when the CLI shows cell source
    lexer = "text"
    build_command = ()
    run_command = ()

    def prepare(self, notebook):
        """Rewrite cell content before it is fingerprinted."""
        return notebook

    def generate(self, notebook, target_directory):
        raise NotImplementedError


# {{{ fpm (Fortran)
implicit_pattern = re.compile(r"^\s*implicit\s+none\b", re.IGNORECASE)
use_pattern = re.compile(r"^\s*use\b", re.IGNORECASE)
declaration_pattern = re.compile(
    r"^\s*(integer|real|double\s+precision|complex|logical|character"
    r"|type\s*\(|class\s*\()[^!]*::",
    re.IGNORECASE,
)
# print <format>[, args] where the format is * or a quoted format string
print_pattern = re.compile(
    r"^(\s*)print\s*(\*|'[^']*'|\"[^\"]*\")\s*(?:,\s*(.*))?$",
    re.IGNORECASE,
)


def transform_fortran_line(line):
    """Route ``print`` statements through the output-capture module."""
    m = print_pattern.match(line)
    if not m:
        return [line]
    indent, fmt, args = m.groups()
    if not args:
        return [f'{indent}call notebook_print("")']
    return [
        f"{indent}write(nb_line, {fmt}) {args}",
        f"{indent}call notebook_print(trim(adjustl(nb_line)))",
    ]


def split_fortran_cell(content):
    """Split a cell into (use statements, declarations, executable lines)."""
    uses, declarations, body = [], [], []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if use_pattern.match(line):
            uses.append(stripped)
        elif declaration_pattern.match(line):
            declarations.append(stripped)
        else:
            body.extend(transform_fortran_line(line.rstrip()))
    return uses, declarations, body


class FpmGenerator(ProjectGenerator):
    """Single-module fpm project, one subroutine per code cell.

    Declarations from every cell are hoisted into the module so later cells
    see variables defined by earlier ones, like in an interactive session.
    """

    name = "fpm"
    lexer = "fortran"
    build_command = ("fpm", "build")
    run_command = ("fpm", "run")

    def prepare(self, notebook):
        # the generated module always declares implicit none itself
        cells = []
        for cell in notebook.cells:
            if cell.is_code and implicit_pattern.search(cell.content):
                lines = [
                    line
                    for line in cell.content.splitlines()
                    if not implicit_pattern.match(line)
                ]
                cell = type(cell)(cell.kind, "\n".join(lines))
            cells.append(cell)
        return notebook.replace_cells(cells)

    def generate(self, notebook, target_directory):
        target = Path(target_directory)
        (target / "src").mkdir(parents=True, exist_ok=True)
        (target / "app").mkdir(parents=True, exist_ok=True)
        uses, declarations, cells = [], [], []
        for number, cell in enumerate(notebook.code_cells(), start=1):
            cell_uses, cell_decls, body = split_fortran_cell(cell.content)
            uses.extend(u for u in cell_uses if u not in uses)
            declarations.extend(cell_decls)
            cells.append({"number": number, "lines": body})
        (target / "fpm.toml").write_text(render_template("fpm.toml.j2"))
        (target / "src" / "notebook_output.f90").write_text(
            render_template(
                "notebook_output.f90.j2", output_env=OUTPUT_ENV_VAR
            )
        )
        (target / "src" / "notebook_execution.f90").write_text(
            render_template(
                "notebook_execution.f90.j2",
                uses=uses,
                declarations=declarations,
                cells=cells,
            )
        )
        (target / "app" / "main.f90").write_text(
            render_template("main.f90.j2", cells=cells)
        )
        return target


# }}}


# {{{ python
class PythonGenerator(ProjectGenerator):
    """Plain Python project: cells share one namespace, stdout per cell.

    ``compileall`` stands in for the compile step, so a syntax error in any
    cell fails the build rather than the run.
    """

    name = "python"
    lexer = "python"
    build_command = (sys.executable, "-m", "compileall", "-q", ".")
    run_command = (sys.executable, "runner.py")

    def generate(self, notebook, target_directory):
        target = Path(target_directory)
        cell_dir = target / "cells"
        cell_dir.mkdir(parents=True, exist_ok=True)
        files = []
        for number, cell in enumerate(notebook.code_cells(), start=1):
            name = f"cell_{number:03d}.py"
            (cell_dir / name).write_text(cell.content, encoding="utf-8")
            files.append(f"cells/{name}")
        (target / "runner.py").write_text(
            render_template(
                "runner.py.j2", cell_files=files, output_env=OUTPUT_ENV_VAR
            ),
            encoding="utf-8",
        )
        return target


# }}}

GENERATORS = {
    FpmGenerator.name: FpmGenerator,
    PythonGenerator.name: PythonGenerator,
}


def get_generator(name):
    if name not in GENERATORS:
        raise ValueError(
            f"unknown toolchain {name!r}; choose from "
            + ", ".join(sorted(GENERATORS))
        )
    return GENERATORS[name]()
