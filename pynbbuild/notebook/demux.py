"""Split the artifact's output-capture file back into per-cell results.

The built program writes one record per code cell, in execution order::

    CELL <index> <byte-length>
    <byte-length bytes of UTF-8 text>

Each record is followed by a newline.  Because every record states its own
length, cell output may contain anything (including lines that look like
headers) without escaping.
"""

import logging
import re
from pathlib import Path

from .types import CellResult

logger = logging.getLogger(__name__)

NO_OUTPUT_PLACEHOLDER = "No output captured"
header_pattern = re.compile(rb"^CELL (\d+) (\d+)$")


def write_records(path, outputs):
    """Write ``outputs`` in the record format (the reference writer)."""
    with open(path, "wb") as fp:
        for index, text in enumerate(outputs, start=1):
            data = text.encode("utf-8")
            fp.write(f"CELL {index} {len(data)}\n".encode("ascii"))
            fp.write(data)
            fp.write(b"\n")


def read_records(path):
    """Return the recorded outputs of ``path`` in file order."""
    data = Path(path).read_bytes()
    outputs = []
    pos = 0
    while pos < len(data):
        end = data.find(b"\n", pos)
        if end == -1:
            end = len(data)
        line = data[pos:end].rstrip(b"\r")
        if not line.strip():
            pos = end + 1
            continue
        m = header_pattern.match(line)
        if not m:
            # anything after a garbled header cannot be attributed to a cell
            logger.warning(
                "unexpected line in %s at byte %d: %r", path, pos, line[:60]
            )
            break
        length = int(m.group(2))
        start = end + 1
        body = data[start:start + length]
        if len(body) < length:
            # the program died while writing; keep what made it to disk
            logger.warning("truncated record %s in %s", m.group(1), path)
        outputs.append(body.decode("utf-8", errors="replace"))
        pos = start + length + 1
    return outputs


def demux(output_file, notebook):
    """Map the recorded outputs onto ``notebook``'s cells.

    Returns one ``CellResult`` per cell in notebook order.  Markdown cells get
    empty output.  Recorded outputs are handed to code cells in order; extra
    records are dropped and code cells left over get empty output.  When the
    file does not exist at all, code cells are marked successful with a
    placeholder.
    """
    output_file = Path(output_file)
    if not output_file.exists():
        logger.warning("no output capture file at %s", output_file)
        return [
            CellResult(
                success=True,
                output=NO_OUTPUT_PLACEHOLDER if cell.is_code else "",
            )
            for cell in notebook.cells
        ]
    outputs = read_records(output_file)
    code_count = len(notebook.code_cells())
    if len(outputs) > code_count:
        logger.info(
            "discarding %d surplus output records", len(outputs) - code_count
        )
    results = []
    code_index = 0
    for cell in notebook.cells:
        if not cell.is_code:
            results.append(CellResult(success=True, output=""))
            continue
        if code_index < len(outputs):
            text = outputs[code_index].rstrip()
        else:
            text = ""
        code_index += 1
        results.append(CellResult(success=True, output=text))
    return results
