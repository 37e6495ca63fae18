"""Run the external build and the built artifact under a wall-clock budget.

Commands are argument lists run in an explicit working directory; nothing
goes through a shell.  The deadline is enforced here rather than by a
``timeout`` wrapper so it behaves the same on every platform: when it
expires the whole process group is killed and the outcome is flagged as
timed out instead of failed.
"""

import logging
import os
import signal
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import BuildFailed, BuildTimedOut, ExecutionFailed, ExecutionTimedOut

logger = logging.getLogger(__name__)

OUTPUT_ENV_VAR = "PYNBBUILD_OUTPUT_FILE"
DEFAULT_BUILD_TIMEOUT = 30.0
DEFAULT_RUN_TIMEOUT = 30.0
# conventional shell status for "command not found"
NOT_FOUND_STATUS = 127


@dataclass
class CommandOutcome:
    returncode: Optional[int] = None
    output: str = ""
    timed_out: bool = False
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.returncode == 0


def _popen_kwargs():
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    # own session, so a timeout can take out compiler children as well
    return {"start_new_session": True}


def _kill_tree(proc):
    if os.name == "nt":
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def run_command(args, cwd, timeout, log_path, env=None) -> CommandOutcome:
    """Run ``args`` in ``cwd`` with stdout and stderr combined in ``log_path``."""
    args = [str(a) for a in args]
    log_path = Path(log_path)
    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update({k: str(v) for k, v in env.items()})
    logger.debug("running %s in %s (timeout %ss)", args, cwd, timeout)
    start = time.monotonic()
    timed_out = False
    with open(log_path, "wb") as log:
        try:
            proc = subprocess.Popen(
                args,
                cwd=str(cwd),
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                env=full_env,
                **_popen_kwargs(),
            )
        except OSError as e:
            return CommandOutcome(
                returncode=NOT_FOUND_STATUS,
                output=f"could not run {' '.join(args)}: {e}",
                duration=time.monotonic() - start,
            )
        try:
            returncode = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            _kill_tree(proc)
            returncode = proc.wait()
    duration = time.monotonic() - start
    output = log_path.read_text(encoding="utf-8", errors="replace")
    logger.debug(
        "%s finished with %s after %.1fs%s",
        args[0],
        returncode,
        duration,
        " (timed out)" if timed_out else "",
    )
    return CommandOutcome(
        returncode=returncode,
        output=output,
        timed_out=timed_out,
        duration=duration,
    )


def _run_with_private_log(args, cwd, timeout, prefix, env=None):
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        return run_command(
            args, cwd, timeout, Path(tmp) / "combined.log", env=env
        )


def build_project(project_dir, command, timeout=DEFAULT_BUILD_TIMEOUT):
    """Run the build command against a generated project."""
    return _run_with_private_log(
        command, project_dir, timeout, "pynbbuild_build_"
    )


def execute_artifact(
    artifact_dir, command, output_file, timeout=DEFAULT_RUN_TIMEOUT
):
    """Run a built project; it writes per-cell records to ``output_file``."""
    return _run_with_private_log(
        command,
        artifact_dir,
        timeout,
        "pynbbuild_run_",
        env={OUTPUT_ENV_VAR: Path(output_file).resolve()},
    )


def check_build(outcome, timeout):
    if outcome.succeeded:
        return outcome
    if outcome.timed_out:
        raise BuildTimedOut(
            f"Build timed out after {timeout:g} seconds", outcome.output
        )
    message = outcome.output
    if not message.strip():
        message = "Build failed with unknown error"
    raise BuildFailed(message, outcome.output)


def check_execution(outcome, timeout):
    if outcome.succeeded:
        return outcome
    if outcome.timed_out:
        raise ExecutionTimedOut(
            f"Execution timed out after {timeout:g} seconds", outcome.output
        )
    message = outcome.output
    if not message.strip():
        message = f"Execution failed with exit status {outcome.returncode}"
    raise ExecutionFailed(message, outcome.output)
