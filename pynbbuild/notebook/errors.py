class PipelineError(RuntimeError):
    """Base class for failures that end a notebook run.

    ``message`` is the short text reported to the user; ``output`` holds
    whatever the failing tool printed, if anything.
    """

    # generic per-cell error used when the whole run is marked failed
    cell_error = "Not executed"

    def __init__(self, message, output=None):
        super().__init__(message)
        self.message = message
        self.output = output


class LockUnavailable(PipelineError):
    """Another process holds the build lock for this fingerprint."""


class BuildFailed(PipelineError):
    pass


class BuildTimedOut(PipelineError):
    pass


class ExecutionFailed(PipelineError):
    cell_error = "Execution failed"


class ExecutionTimedOut(PipelineError):
    cell_error = "Execution timed out"
