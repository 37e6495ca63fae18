import pytest

from conftest import make_notebook
from pynbbuild.notebook import generators
from pynbbuild.notebook.fingerprint import fingerprint
from pynbbuild.notebook.toolchain import OUTPUT_ENV_VAR


def test_get_generator():
    assert isinstance(generators.get_generator("fpm"), generators.FpmGenerator)
    assert generators.get_generator("python").lexer == "python"
    with pytest.raises(ValueError, match="unknown toolchain"):
        generators.get_generator("cobol")


@pytest.mark.parametrize(
    "line, expected",
    [
        ("x = 1", ["x = 1"]),
        ("print *, x", ["write(nb_line, *) x", "call notebook_print(trim(adjustl(nb_line)))"]),
        ("  PRINT '(F6.2)', y", ["  write(nb_line, '(F6.2)') y", "  call notebook_print(trim(adjustl(nb_line)))"]),
        ("print *", ['call notebook_print("")']),
    ],
)
def test_transform_fortran_line(line, expected):
    assert generators.transform_fortran_line(line) == expected


def test_split_fortran_cell():
    uses, decls, body = generators.split_fortran_cell(
        "use iso_fortran_env\n"
        "integer :: i\n"
        "real(8), dimension(3) :: v\n"
        "\n"
        "i = 2\n"
        "print *, i\n"
    )
    assert uses == ["use iso_fortran_env"]
    assert decls == ["integer :: i", "real(8), dimension(3) :: v"]
    assert body[0] == "i = 2"
    assert body[-1].startswith("call notebook_print")


def test_fpm_prepare_strips_implicit_none():
    gen = generators.FpmGenerator()
    nb = make_notebook(
        ("code", "implicit none\ninteger :: x\nx = 1"),
        ("markdown", "implicit none is mentioned here"),
    )
    prepared = gen.prepare(nb)
    assert prepared.cells[0].content == "integer :: x\nx = 1"
    assert prepared.cells[1] == nb.cells[1]
    # the prepared form is what gets fingerprinted
    with_implicit = fingerprint(gen.prepare(nb).cells)
    without = fingerprint(
        gen.prepare(
            make_notebook(
                ("code", "integer :: x\nx = 1"),
                ("markdown", "implicit none is mentioned here"),
            )
        ).cells
    )
    assert with_implicit == without


def test_fpm_project_layout(tmp_path):
    gen = generators.FpmGenerator()
    nb = make_notebook(
        ("markdown", "# intro"),
        ("code", "integer :: n\nn = 3\nprint *, n"),
        ("code", "print *, n * 2"),
    )
    target = gen.generate(nb, tmp_path / "notebook_project")
    assert (target / "fpm.toml").read_text().startswith('name = "notebook_exec"')
    execution = (target / "src" / "notebook_execution.f90").read_text()
    assert "integer :: n" in execution
    assert "subroutine cell_1()" in execution
    assert "subroutine cell_2()" in execution
    assert "subroutine cell_3()" not in execution
    main = (target / "app" / "main.f90").read_text()
    assert "call init_output_capture(2)" in main
    assert "call cell_2()" in main
    output = (target / "src" / "notebook_output.f90").read_text()
    assert OUTPUT_ENV_VAR in output


def test_python_project_layout(tmp_path):
    gen = generators.PythonGenerator()
    nb = make_notebook(("code", "x = 1"), ("markdown", "m"), ("code", "print(x)"))
    target = gen.generate(nb, tmp_path / "notebook_project")
    assert (target / "cells" / "cell_001.py").read_text() == "x = 1"
    assert (target / "cells" / "cell_002.py").read_text() == "print(x)"
    runner = (target / "runner.py").read_text()
    assert '"cells/cell_002.py"' in runner
    assert OUTPUT_ENV_VAR in runner
