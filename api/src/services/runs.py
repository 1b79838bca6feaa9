"""
In-memory registry of pipeline runs started from webhooks.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional

from api.src.config import get_settings
from api.src.models.run import PipelineRunResponse
from api.src.services.github import RepositoryError, clone_repository, cleanup_repo, read_file_at_commit
from controller.src.config import get_settings as get_controller_settings
from controller.src.errors import InvalidConfiguration
from controller.src.models.run import RunConfiguration, TriggerContext, TriggerKind
from controller.src.models.step import GateDecision, JobSpec, StepStatus
from controller.src.services.config_resolver import (
    CONFIG_FILE_NAMES,
    load_config_file,
    parse_config_file,
    resolve_configuration,
)
from controller.src.services.jobs import default_jobs
from controller.src.services.orchestrator import PipelineOrchestrator
from controller.src.services.step_executor import execute_command

logger = logging.getLogger(__name__)
settings = get_settings()

_runs: "OrderedDict[str, PipelineRunResponse]" = OrderedDict()

def create_run(trigger: TriggerContext, repo_info: Dict[str, str]) -> PipelineRunResponse:
    """Register a queued run, evicting the oldest beyond max_runs_kept."""
    run = PipelineRunResponse(
        id=str(uuid.uuid4()),
        status="queued",
        trigger=trigger,
        repo_full_name=repo_info.get("repo_full_name", ""),
        commit_sha=repo_info.get("commit_sha", ""),
        created_at=datetime.utcnow(),
    )
    _runs[run.id] = run

    while len(_runs) > settings.max_runs_kept:
        _runs.popitem(last=False)

    return run

def update_run(run_id: str, **values) -> Optional[PipelineRunResponse]:
    run = _runs.get(run_id)
    if run is None:
        return None
    run = run.model_copy(update=values)
    _runs[run_id] = run
    logger.info(f"Updated run {run_id} status to {run.status}")
    return run

def get_run(run_id: str) -> Optional[PipelineRunResponse]:
    return _runs.get(run_id)

def list_runs(limit: int = 20, offset: int = 0, status: Optional[str] = None) -> List[PipelineRunResponse]:
    runs = list(reversed(_runs.values()))
    if status:
        runs = [run for run in runs if run.status == status]
    return runs[offset:offset + limit]

def clear_runs():
    _runs.clear()

def _docs_not_published(config: RunConfiguration, trigger: TriggerContext, upstream: Dict[str, StepStatus]) -> GateDecision:
    return GateDecision(run=False, reason="docs are not published from webhook runs")

def webhook_jobs() -> List[JobSpec]:
    """
    The default jobs, minus docs publishing: webhook checkouts are shallow,
    detached and hold no push credentials.
    """
    return [
        job.model_copy(update={"gate": _docs_not_published}) if job.name == "docs" else job
        for job in default_jobs()
    ]

def load_run_configuration(repo_path: str, trigger: TriggerContext, repo_info: Dict[str, str]) -> RunConfiguration:
    """
    Resolve the configuration for a webhook run. Pull requests are configured
    from their base commit so the pull request cannot change its own gates.
    """
    if trigger.trigger_kind != TriggerKind.PULL_REQUEST:
        return resolve_configuration(load_config_file(repo_path))

    base_sha = repo_info.get("base_sha", "")
    if not base_sha:
        raise RepositoryError("Pull request payload has no base commit")

    content = read_file_at_commit(repo_path, base_sha, CONFIG_FILE_NAMES)
    return resolve_configuration(parse_config_file(content) if content else {})

async def execute_run(run_id: str, repo_info: Dict[str, str], trigger: TriggerContext):
    """Check out the commit, resolve its config and run the pipeline against it."""
    update_run(run_id, status="running")

    repo_path = None
    try:
        repo_path = await asyncio.to_thread(
            clone_repository, repo_info["clone_url"], repo_info["commit_sha"]
        )
        config = await asyncio.to_thread(load_run_configuration, repo_path, trigger, repo_info)

        result = await PipelineOrchestrator(
            config,
            trigger,
            jobs=webhook_jobs(),
            executor=execute_command,
            secrets={"renovate_token": get_controller_settings().renovate_token},
            workspace=repo_path,
        ).run()

        update_run(
            run_id,
            status=result.status.value,
            result=result,
            finished_at=datetime.utcnow(),
        )
    except (RepositoryError, InvalidConfiguration) as e:
        logger.error(f"Run {run_id} failed before any job ran: {e}")
        update_run(run_id, status="error", error=str(e), finished_at=datetime.utcnow())
    except Exception as e:
        logger.exception(f"Run {run_id} crashed")
        update_run(run_id, status="error", error=f"internal error: {e}", finished_at=datetime.utcnow())
    finally:
        if repo_path:
            cleanup_repo(repo_path)
