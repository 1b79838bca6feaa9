from controller.src.models.run import (
    TriggerKind,
    TriggerContext,
    RunConfiguration,
    check_relative_path,
)
from controller.src.models.step import (
    StepStatus,
    ExitCode,
    GateDecision,
    CommandOutcome,
    StepResult,
    JobResult,
    PipelineResult,
    StepSpec,
    JobSpec,
)

__all__ = [
    "TriggerKind",
    "TriggerContext",
    "RunConfiguration",
    "check_relative_path",
    "StepStatus",
    "ExitCode",
    "GateDecision",
    "CommandOutcome",
    "StepResult",
    "JobResult",
    "PipelineResult",
    "StepSpec",
    "JobSpec",
]
