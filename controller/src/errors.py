"""
Pipeline error taxonomy.
"""

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass


class InvalidConfiguration(PipelineError):
    """Resolved configuration is unusable. Aborts the pipeline before any job runs."""
    pass


class GateEvaluationError(PipelineError):
    """A gate could not be evaluated, e.g. for an unrecognized trigger kind."""
    pass


class StepExecutionError(PipelineError):
    """The external tool could not be started."""
    pass


class StepTimeout(PipelineError):
    """The external tool ran past its timeout and was killed."""

    def __init__(self, message: str, timeout: int, output: str = ""):
        super().__init__(message)
        self.timeout = timeout
        self.output = output


class ToolReportedFailure(PipelineError):
    """The external tool ran and reported failure through its exit code."""

    def __init__(self, message: str, exit_code: Optional[int], output: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output
