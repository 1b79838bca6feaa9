"""
Job runner - executes a job's steps in order.
"""

import asyncio
import logging
import os
import shlex
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import SecretStr

from controller.src.errors import StepExecutionError, StepTimeout, ToolReportedFailure
from controller.src.models.run import RunConfiguration
from controller.src.models.step import (
    CommandOutcome,
    JobResult,
    JobSpec,
    StepResult,
    StepSpec,
    StepStatus,
)
from controller.src.services.aggregator import ResultAggregator
from controller.src.services.step_executor import execute_command, interpret_exit_code

logger = logging.getLogger(__name__)

Executor = Callable[..., Awaitable[CommandOutcome]]

def template_context(config: RunConfiguration) -> Dict[str, Any]:
    """Values available to step templates."""
    context = config.model_dump()
    context["tenv_tool"] = config.tenv_tool
    context["renovate_log_level"] = "debug" if config.renovate_debug else "info"
    return context

def render_step(
    step: StepSpec,
    config: RunConfiguration,
    workspace: str = ".",
) -> Tuple[List[str], str, Dict[str, str]]:
    """Render a step's command, directory and env. Returns (argv, cwd, env)."""
    context = template_context(config)
    try:
        argv = shlex.split(step.command.format(**context))
        directory = step.directory.format(**context)
        env = {key: value.format(**context) for key, value in step.env.items()}
    except (KeyError, IndexError) as e:
        raise StepExecutionError(f"Step '{step.name}' references unknown placeholder {e}")
    except ValueError as e:
        raise StepExecutionError(f"Step '{step.name}' has a malformed command: {e}")

    return argv, os.path.normpath(os.path.join(workspace, directory)), env

def select_secrets(step: StepSpec, secrets: Optional[Dict[str, SecretStr]]) -> Dict[str, SecretStr]:
    """Pick only the secret handles this step asks for."""
    selected = {}
    for env_name, handle in step.secrets.items():
        secret = (secrets or {}).get(handle)
        if secret is None or not secret.get_secret_value():
            raise StepExecutionError(f"Step '{step.name}' needs credential '{handle}' which is not set")
        selected[env_name] = secret
    return selected

async def run_step(
    step: StepSpec,
    config: RunConfiguration,
    executor: Executor = execute_command,
    secrets: Optional[Dict[str, SecretStr]] = None,
    workspace: str = ".",
) -> Tuple[StepResult, bool]:
    """
    Execute a single step.
    Returns the finalized result and whether the failure (if any) must end the job
    regardless of continue_on_failure.
    """
    started_at = datetime.utcnow()

    def finished(status: StepStatus, **values) -> StepResult:
        return StepResult(
            name=step.name,
            status=status,
            continue_on_failure=step.continue_on_failure,
            started_at=started_at,
            finished_at=datetime.utcnow(),
            **values,
        )

    try:
        argv, cwd, env = render_step(step, config, workspace)
        logger.info(f"Running step '{step.name}': {shlex.join(argv)} (in {cwd})")

        outcome = await executor(
            argv,
            cwd,
            env=env,
            timeout=step.timeout or config.step_timeout,
            secrets=select_secrets(step, secrets),
        )
        outcome = interpret_exit_code(step, outcome)
        return finished(StepStatus.SUCCEEDED, exit_code=outcome.exit_code, output=outcome.output), False

    except ToolReportedFailure as e:
        return finished(StepStatus.FAILED, exit_code=e.exit_code, output=e.output, reason=str(e)), False
    except StepTimeout as e:
        return finished(StepStatus.FAILED, output=e.output, reason=str(e)), True
    except StepExecutionError as e:
        return finished(StepStatus.FAILED, reason=str(e)), True

async def run_job(
    job: JobSpec,
    config: RunConfiguration,
    aggregator: ResultAggregator,
    executor: Executor = execute_command,
    secrets: Optional[Dict[str, SecretStr]] = None,
    workspace: str = ".",
) -> JobResult:
    """
    Execute a job's steps strictly in declared order.
    Stops at the first failed step unless it continues on failure;
    remaining steps are recorded as skipped.
    """
    logger.info(f"Starting job '{job.name}' with {len(job.steps)} steps")
    aggregator.start_job(job.name)

    previous: Dict[str, StepResult] = {}
    failed_step: Optional[StepResult] = None

    try:
        for step in job.steps:
            if failed_step is not None:
                result = StepResult(
                    name=step.name,
                    status=StepStatus.SKIPPED,
                    reason=f"'{failed_step.name}' failed",
                )
            elif step.condition is not None and not step.condition(config, previous):
                result = StepResult(name=step.name, status=StepStatus.SKIPPED, reason="condition not met")
            else:
                aggregator.start_step(job.name, step.name)
                result, fatal = await run_step(step, config, executor, secrets, workspace)

                if result.status == StepStatus.FAILED:
                    if step.continue_on_failure and not fatal:
                        logger.warning(f"Step '{job.name}/{step.name}' failed, continuing: {result.reason}")
                    else:
                        failed_step = result

            aggregator.finish_step(job.name, result)
            previous[step.name] = result

    except asyncio.CancelledError:
        logger.warning(f"Job '{job.name}' cancelled")
        for step in job.steps:
            if step.name not in previous:
                aggregator.finish_step(
                    job.name,
                    StepResult(name=step.name, status=StepStatus.CANCELLED, reason="pipeline cancelled"),
                )
        aggregator.cancel_job(job.name, "pipeline cancelled")
        raise

    if failed_step is not None:
        return aggregator.finish_job(job.name, StepStatus.FAILED, f"step '{failed_step.name}' failed")

    return aggregator.finish_job(job.name, StepStatus.SUCCEEDED)
