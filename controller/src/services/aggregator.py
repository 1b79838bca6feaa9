"""
Collect job and step results and compute the pipeline outcome.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from controller.src.models.step import (
    ExitCode,
    JobResult,
    JobSpec,
    PipelineResult,
    StepResult,
    StepStatus,
)

logger = logging.getLogger(__name__)

class ResultAggregator:
    """
    Sole writer of job and step results.
    Each result is finalized exactly once and never changes afterwards.
    """

    def __init__(self, jobs: List[JobSpec], runner: str = ""):
        self._order = [job.name for job in jobs]
        self._exit_codes = {job.name: job.failure_exit_code for job in jobs}
        self._step_names = {job.name: [step.name for step in job.steps] for job in jobs}
        self._jobs: Dict[str, JobResult] = {
            job.name: JobResult(name=job.name) for job in jobs
        }
        self._runner = runner

    def _replace(self, name: str, **values) -> JobResult:
        current = self._jobs[name]
        if current.status.finished:
            raise RuntimeError(f"Job '{name}' already finalized as {current.status.value}")
        updated = current.model_copy(update=values)
        self._jobs[name] = updated
        return updated

    def start_job(self, name: str):
        self._replace(name, status=StepStatus.RUNNING, started_at=datetime.utcnow())
        logger.info(f"Job '{name}' started")

    def start_step(self, job_name: str, step_name: str):
        job = self._jobs[job_name]
        step = StepResult(name=step_name, status=StepStatus.RUNNING, started_at=datetime.utcnow())
        self._replace(job_name, steps=job.steps + [step])
        logger.debug(f"Step '{job_name}/{step_name}' started")

    def finish_step(self, job_name: str, result: StepResult):
        """Finalize a step, replacing its running entry if one exists."""
        if not result.status.finished:
            raise ValueError(f"Step '{result.name}' cannot be finalized as {result.status.value}")

        job = self._jobs[job_name]
        steps = list(job.steps)
        for i, step in enumerate(steps):
            if step.name == result.name:
                if step.status.finished:
                    raise RuntimeError(f"Step '{job_name}/{result.name}' already finalized")
                if result.started_at is None:
                    result = result.model_copy(update={"started_at": step.started_at})
                steps[i] = result
                break
        else:
            steps.append(result)

        self._replace(job_name, steps=steps)
        logger.info(f"Step '{job_name}/{result.name}' {result.status.value}")

    def finish_job(self, name: str, status: StepStatus, reason: str = "") -> JobResult:
        if not status.finished:
            raise ValueError(f"Job '{name}' cannot be finalized as {status.value}")
        result = self._replace(name, status=status, reason=reason, finished_at=datetime.utcnow())
        log = logger.error if status == StepStatus.FAILED else logger.info
        log(f"Job '{name}' {status.value}" + (f": {reason}" if reason else ""))
        return result

    def skip_job(self, name: str, reason: str) -> JobResult:
        return self.finish_job(name, StepStatus.SKIPPED, reason)

    def cancel_job(self, name: str, reason: str = "cancelled") -> Optional[JobResult]:
        """Mark a job and any running step cancelled. No-op if already finalized."""
        job = self._jobs[name]
        if job.status.finished:
            return None

        steps = [
            step.model_copy(update={"status": StepStatus.CANCELLED, "finished_at": datetime.utcnow()})
            if not step.status.finished else step
            for step in job.steps
        ]
        self._replace(name, steps=steps)
        return self.finish_job(name, StepStatus.CANCELLED, reason)

    def fail_job(self, name: str, reason: str) -> JobResult:
        """Fail a job that stopped unexpectedly. Its running step fails, unstarted steps are skipped."""
        job = self._jobs[name]
        now = datetime.utcnow()
        steps = [
            step.model_copy(update={"status": StepStatus.FAILED, "reason": reason, "finished_at": now})
            if not step.status.finished else step
            for step in job.steps
        ]
        recorded = {step.name for step in steps}
        steps += [
            StepResult(name=step_name, status=StepStatus.SKIPPED, reason=reason)
            for step_name in self._step_names[name]
            if step_name not in recorded
        ]
        self._replace(name, steps=steps)
        return self.finish_job(name, StepStatus.FAILED, reason)

    def job(self, name: str) -> JobResult:
        return self._jobs[name]

    def job_status(self, name: str) -> StepStatus:
        return self._jobs[name].status

    def is_finalized(self, name: str) -> bool:
        return self._jobs[name].status.finished

    def overall_status(self) -> StepStatus:
        statuses = [self._jobs[name].status for name in self._order]
        if StepStatus.FAILED in statuses:
            return StepStatus.FAILED
        if StepStatus.CANCELLED in statuses:
            return StepStatus.CANCELLED
        if any(not status.finished for status in statuses):
            return StepStatus.RUNNING
        return StepStatus.SUCCEEDED

    def exit_code(self) -> int:
        """First failed job in declared order decides the exit code."""
        for name in self._order:
            if self._jobs[name].status == StepStatus.FAILED:
                return int(self._exit_codes[name])
        if self.overall_status() == StepStatus.CANCELLED:
            return int(ExitCode.CANCELLED)
        return int(ExitCode.SUCCESS)

    def result(self) -> PipelineResult:
        return PipelineResult(
            status=self.overall_status(),
            exit_code=self.exit_code(),
            runner=self._runner,
            jobs=[self._jobs[name] for name in self._order],
        )

def format_report(result: PipelineResult) -> str:
    """Render a per-job / per-step status table with output of failed steps."""
    lines = [f"Pipeline {result.status.value} (exit code {result.exit_code}) on {result.runner}"]

    for job in result.jobs:
        header = f"  {job.name:<14} {job.status.value}"
        if job.reason:
            header += f"  ({job.reason})"
        lines.append(header)

        for step in job.steps:
            code = "" if step.exit_code is None else f" [exit {step.exit_code}]"
            row = f"    {step.name:<16} {step.status.value}{code}"
            if step.reason:
                row += f"  {step.reason}"
            lines.append(row)

    for job in result.jobs:
        for step in job.steps:
            if step.status == StepStatus.FAILED and step.output:
                lines.append("")
                lines.append(f"--- {job.name}/{step.name} output ---")
                lines.append(step.output.rstrip())

    return "\n".join(lines)
