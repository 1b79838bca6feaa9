"""
Job, step and result models.
"""

from pydantic import BaseModel
from typing import Callable, List, Optional, Dict
from datetime import datetime
from enum import Enum, IntEnum

from controller.src.models.run import RunConfiguration, TriggerContext

class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @property
    def finished(self) -> bool:
        return self not in (StepStatus.PENDING, StepStatus.RUNNING)

class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_CONFIGURATION = 2
    LINT_FAILED = 10
    SECURITY_FAILED = 11
    DOCS_FAILED = 12
    DEPENDENCIES_FAILED = 13
    CANCELLED = 130

class GateDecision(BaseModel):
    run: bool
    reason: str = ""

    class Config:
        frozen = True

class CommandOutcome(BaseModel):
    exit_code: int
    output: str = ""

    class Config:
        frozen = True

class StepResult(BaseModel):
    name: str
    status: StepStatus = StepStatus.PENDING
    exit_code: Optional[int] = None
    output: str = ""
    reason: str = ""
    continue_on_failure: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        frozen = True

class JobResult(BaseModel):
    name: str
    status: StepStatus = StepStatus.PENDING
    steps: List[StepResult] = []
    reason: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        frozen = True

    def step(self, name: str) -> Optional[StepResult]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

class PipelineResult(BaseModel):
    status: StepStatus
    exit_code: int
    runner: str = ""
    jobs: List[JobResult] = []

    class Config:
        frozen = True

    def job(self, name: str) -> JobResult:
        for job in self.jobs:
            if job.name == name:
                return job
        raise KeyError(name)

# condition(config, results of earlier steps in the same job) -> run?
StepCondition = Callable[[RunConfiguration, Dict[str, StepResult]], bool]
# gate(config, trigger, final status of the jobs listed in `needs`) -> decision
Gate = Callable[[RunConfiguration, TriggerContext, Dict[str, StepStatus]], GateDecision]

class StepSpec(BaseModel):
    """One external tool invocation. String fields are templates over RunConfiguration."""
    name: str
    command: str
    directory: str = "{working_directory}"
    env: Dict[str, str] = {}
    secrets: Dict[str, str] = {}  # env var -> secret handle
    continue_on_failure: bool = False
    condition: Optional[StepCondition] = None
    success_exit_codes: List[int] = [0]
    exit_code_messages: Dict[int, str] = {}
    timeout: Optional[int] = None

    class Config:
        frozen = True

class JobSpec(BaseModel):
    name: str
    steps: List[StepSpec]
    gate: Gate
    needs: List[str] = []
    failure_exit_code: ExitCode

    class Config:
        frozen = True
