"""
GitHub webhook endpoints.
"""

from fastapi import APIRouter, Request, HTTPException, Header, BackgroundTasks
from typing import Optional
import logging

from api.src.services.github import verify_signature, parse_repo_info
from api.src.services.runs import create_run, execute_run
from controller.src.services.trigger import parse_webhook_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

HANDLED_EVENTS = ("push", "pull_request")

# Pull request actions that change the code under test
PULL_REQUEST_ACTIONS = ("opened", "synchronize", "reopened")

def process_event(event: str, payload: dict, background_tasks: BackgroundTasks) -> dict:
    """Turn a GitHub event into a queued pipeline run."""
    repo_info = parse_repo_info(payload)

    if not repo_info["commit_sha"]:
        logger.warning("No commit SHA in webhook payload")
        return {"status": "skipped", "reason": "No commit SHA"}

    if not repo_info["clone_url"]:
        return {"status": "skipped", "reason": "No clone URL"}

    trigger = parse_webhook_payload(event, payload)
    run = create_run(trigger, repo_info)

    background_tasks.add_task(execute_run, run.id, repo_info, trigger)

    logger.info(f"Pipeline run {run.id} queued for {trigger.kind} on {trigger.branch}")

    return {
        "status": "queued",
        "run_id": run.id,
        "trigger": trigger.model_dump(),
    }

@router.post("/github")
async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
):
    """
    Receive GitHub webhook events.
    """
    # Get raw body for signature verification
    body = await request.body()

    if not verify_signature(body, x_hub_signature_256 or ""):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if x_github_event == "ping":
        return {"status": "pong", "message": "Webhook configured successfully"}

    if x_github_event == "pull_request" and payload.get("action") not in PULL_REQUEST_ACTIONS:
        return {
            "status": "ignored",
            "event": x_github_event,
            "message": f"Pull request action '{payload.get('action')}' not handled"
        }

    if x_github_event in HANDLED_EVENTS:
        return process_event(x_github_event, payload, background_tasks)

    # Ignore other events
    return {
        "status": "ignored",
        "event": x_github_event,
        "message": f"Event type '{x_github_event}' not handled"
    }
