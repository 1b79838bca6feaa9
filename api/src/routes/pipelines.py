from fastapi import APIRouter, HTTPException
from typing import List, Optional

from api.src.models.run import PipelineRunResponse, PipelineRunSummary
from api.src.services.runs import get_run, list_runs

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

@router.get("/runs", response_model=List[PipelineRunSummary])
async def list_pipeline_runs(
    limit: int = 20,
    offset: int = 0,
    status: Optional[str] = None,
):
    """List recent pipeline runs, newest first."""
    return [
        PipelineRunSummary(
            id=run.id,
            status=run.status,
            kind=run.trigger.kind,
            branch=run.trigger.branch,
            actor=run.trigger.actor,
            exit_code=run.result.exit_code if run.result else None,
            created_at=run.created_at,
        )
        for run in list_runs(limit=limit, offset=offset, status=status)
    ]

@router.get("/runs/{run_id}", response_model=PipelineRunResponse)
async def get_pipeline_run(run_id: str):
    """Get a specific pipeline run with its job and step results."""
    run = get_run(run_id)

    if not run:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    return run

@router.get("/runs/{run_id}/logs")
async def get_run_logs(run_id: str):
    """Get captured output for all steps in a pipeline run."""
    run = get_run(run_id)

    if not run:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    if not run.result:
        return {"run_id": run_id, "status": run.status, "jobs": []}

    return {
        "run_id": run_id,
        "status": run.status,
        "jobs": [
            {
                "name": job.name,
                "status": job.status.value,
                "steps": [
                    {
                        "name": step.name,
                        "status": step.status.value,
                        "exit_code": step.exit_code,
                        "logs": step.output,
                    }
                    for step in job.steps
                ],
            }
            for job in run.result.jobs
        ],
    }
