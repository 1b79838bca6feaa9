"""
Build a TriggerContext from GitHub event data.
"""

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

from controller.src.models.run import TriggerContext, TriggerKind

logger = logging.getLogger(__name__)

# GitHub event name -> trigger kind. Anything else is passed through verbatim.
EVENT_KINDS = {
    "push": TriggerKind.PUSH,
    "pull_request": TriggerKind.PULL_REQUEST,
    "pull_request_target": TriggerKind.PULL_REQUEST,
    "workflow_dispatch": TriggerKind.MANUAL,
    "workflow_call": TriggerKind.MANUAL,
    "manual": TriggerKind.MANUAL,
    "schedule": TriggerKind.SCHEDULE,
}

def normalize_event(event_name: str) -> str:
    kind = EVENT_KINDS.get(event_name.strip().lower())
    return kind.value if kind else event_name

def branch_from_ref(ref: str) -> str:
    # refs/heads/main -> main
    return ref.replace("refs/heads/", "", 1) if ref.startswith("refs/heads/") else ref

def parse_webhook_payload(event_name: str, payload: Dict[str, Any]) -> TriggerContext:
    """Extract the trigger context from a GitHub event payload."""
    kind = normalize_event(event_name)
    repo = payload.get("repository") or {}
    pull_request = payload.get("pull_request") or {}

    if pull_request:
        # Target branch and PR author, not whoever pushed the last commit
        branch = (pull_request.get("base") or {}).get("ref", "")
        actor = (pull_request.get("user") or {}).get("login", "")
    else:
        branch = branch_from_ref(payload.get("ref", ""))
        actor = (
            (payload.get("sender") or {}).get("login")
            or (payload.get("pusher") or {}).get("name", "")
        )

    return TriggerContext(
        kind=kind,
        branch=branch,
        actor=actor,
        repository=repo.get("full_name", ""),
    )

def _load_event_payload(path: Optional[str]) -> Dict[str, Any]:
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable event payload {path}: {e}")
        return {}
    return payload if isinstance(payload, dict) else {}

def trigger_from_environment(
    environ: Optional[Mapping[str, str]] = None,
    event: Optional[str] = None,
    branch: Optional[str] = None,
    actor: Optional[str] = None,
) -> TriggerContext:
    """
    Derive the trigger from the GitHub Actions environment.
    Explicit arguments override what the environment says.
    """
    environ = os.environ if environ is None else environ

    event_name = event or environ.get("GITHUB_EVENT_NAME", "manual")
    payload = _load_event_payload(environ.get("GITHUB_EVENT_PATH"))

    if payload:
        context = parse_webhook_payload(event_name, payload)
    else:
        kind = normalize_event(event_name)
        if kind == TriggerKind.PULL_REQUEST.value:
            env_branch = environ.get("GITHUB_BASE_REF", "")
        else:
            env_branch = environ.get("GITHUB_REF_NAME") or branch_from_ref(environ.get("GITHUB_REF", ""))
        context = TriggerContext(
            kind=kind,
            branch=env_branch,
            actor=environ.get("GITHUB_ACTOR", ""),
            repository=environ.get("GITHUB_REPOSITORY", ""),
        )

    overrides = {}
    if event:
        overrides["kind"] = normalize_event(event)
    if branch:
        overrides["branch"] = branch
    if actor:
        overrides["actor"] = actor

    return context.model_copy(update=overrides) if overrides else context
