"""
Pipeline orchestrator - gates jobs, runs them concurrently and aggregates results.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from pydantic import SecretStr

from controller.src.models.run import RunConfiguration, TriggerContext
from controller.src.models.step import JobSpec, PipelineResult
from controller.src.services.aggregator import ResultAggregator
from controller.src.services.gates import evaluate_gate
from controller.src.services.job_runner import Executor, run_job
from controller.src.services.jobs import default_jobs
from controller.src.services.step_executor import execute_command

logger = logging.getLogger(__name__)

class PipelineOrchestrator:
    """
    Runs every job as its own task. A job waits for the jobs in its `needs`
    to finalize, then its gate decides between running and skipping.
    """

    def __init__(
        self,
        config: RunConfiguration,
        trigger: TriggerContext,
        jobs: Optional[List[JobSpec]] = None,
        executor: Executor = execute_command,
        secrets: Optional[Dict[str, SecretStr]] = None,
        workspace: str = ".",
    ):
        self.config = config
        self.trigger = trigger
        self.jobs = jobs if jobs is not None else default_jobs()
        self.executor = executor
        self.workspace = workspace
        self._secrets = secrets or {}
        self.aggregator = ResultAggregator(self.jobs, runner=config.runner)

        names = [job.name for job in self.jobs]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate job names: {names}")
        for job in self.jobs:
            missing = [need for need in job.needs if need not in names or need == job.name]
            if missing:
                raise ValueError(f"Job '{job.name}' needs unknown jobs: {missing}")

        self._finalized: Dict[str, asyncio.Event] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cancelled = False

    async def _run_gated(self, job: JobSpec):
        try:
            for need in job.needs:
                await self._finalized[need].wait()

            if self._cancelled:
                self.aggregator.cancel_job(job.name, "pipeline cancelled")
                return

            upstream = {need: self.aggregator.job_status(need) for need in job.needs}
            decision = evaluate_gate(job, self.config, self.trigger, upstream)

            if not decision.run:
                self.aggregator.skip_job(job.name, decision.reason)
                return

            logger.info(f"Gate open for job '{job.name}': {decision.reason}")
            await run_job(
                job,
                self.config,
                self.aggregator,
                executor=self.executor,
                secrets=self._secrets,
                workspace=self.workspace,
            )
        except asyncio.CancelledError:
            self.aggregator.cancel_job(job.name, "pipeline cancelled")
        except Exception as e:
            logger.exception(f"Job '{job.name}' crashed")
            if not self.aggregator.is_finalized(job.name):
                self.aggregator.fail_job(job.name, f"internal error: {e}")
        finally:
            self._finalized[job.name].set()

    async def run(self) -> PipelineResult:
        logger.info(
            f"Starting pipeline for {self.trigger.kind} on '{self.trigger.branch}' "
            f"by '{self.trigger.actor}' ({len(self.jobs)} jobs, runner {self.config.runner})"
        )

        self._finalized = {job.name: asyncio.Event() for job in self.jobs}
        self._tasks = {
            job.name: asyncio.create_task(self._run_gated(job), name=f"job-{job.name}")
            for job in self.jobs
        }

        await asyncio.gather(*self._tasks.values())

        result = self.aggregator.result()
        logger.info(f"Pipeline finished with status: {result.status.value} (exit code {result.exit_code})")
        return result

    def cancel(self):
        """Request cooperative cancellation of every job."""
        if self._cancelled:
            return
        logger.warning("Cancellation requested, stopping all jobs")
        self._cancelled = True
        for task in self._tasks.values():
            if not task.done():
                task.cancel()

async def run_pipeline(
    config: RunConfiguration,
    trigger: TriggerContext,
    **kwargs,
) -> PipelineResult:
    """Convenience wrapper around PipelineOrchestrator."""
    return await PipelineOrchestrator(config, trigger, **kwargs).run()
