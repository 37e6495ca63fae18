from conftest import make_notebook
from pynbbuild.notebook.types import ExecutionResult


def test_notebook_is_value():
    a = make_notebook(("code", "x"))
    b = make_notebook(("code", "x"))
    assert a == b
    assert isinstance(a.cells, tuple)


def test_failed_result_shape():
    nb = make_notebook(("markdown", "m"), ("code", "a"), ("code", "b"))
    result = ExecutionResult.failed(nb, "boom", "Execution failed")
    assert not result.success
    assert result.error_message == "boom"
    assert len(result.cells) == 3
    assert all(not c.success for c in result.cells)
    assert all(c.output == "" for c in result.cells)
    assert [c.error for c in result.cells] == [
        None,
        "Execution failed",
        "Execution failed",
    ]
