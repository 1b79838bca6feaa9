"""
Job gates: decide per job whether it runs for a given configuration and trigger.
"""

import logging
from typing import Dict, Optional

from controller.src.errors import GateEvaluationError
from controller.src.models.run import RunConfiguration, TriggerContext, TriggerKind
from controller.src.models.step import GateDecision, JobSpec, StepStatus

logger = logging.getLogger(__name__)

def _known_kind(trigger: TriggerContext) -> TriggerKind:
    kind = trigger.trigger_kind
    if kind is None:
        raise GateEvaluationError(f"Unrecognized trigger kind '{trigger.kind}'")
    return kind

def lint_gate(
    config: RunConfiguration,
    trigger: TriggerContext,
    upstream: Optional[Dict[str, StepStatus]] = None,
) -> GateDecision:
    kind = _known_kind(trigger)

    if (
        config.allowed_pr_author
        and kind == TriggerKind.PULL_REQUEST
        and trigger.actor != config.allowed_pr_author
    ):
        return GateDecision(
            run=False,
            reason=f"pull request by '{trigger.actor}' is not from allowed author '{config.allowed_pr_author}'",
        )

    return GateDecision(run=True, reason=f"{kind.value} trigger")

def security_gate(
    config: RunConfiguration,
    trigger: TriggerContext,
    upstream: Optional[Dict[str, StepStatus]] = None,
) -> GateDecision:
    if not config.enable_security_scan:
        # Still validates the trigger kind so unknown events fail closed with a clear reason
        _known_kind(trigger)
        return GateDecision(run=False, reason="security scan disabled")

    lint = lint_gate(config, trigger)
    if not lint.run:
        return GateDecision(run=False, reason=f"lint gate closed: {lint.reason}")

    return GateDecision(run=True, reason="security scan enabled")

def docs_gate(
    config: RunConfiguration,
    trigger: TriggerContext,
    upstream: Optional[Dict[str, StepStatus]] = None,
) -> GateDecision:
    kind = _known_kind(trigger)
    upstream = upstream or {}

    if not config.enable_docs:
        return GateDecision(run=False, reason="docs generation disabled")

    # Never write back on pull requests: the content is untrusted
    if kind != TriggerKind.PUSH:
        return GateDecision(run=False, reason=f"docs only run on push, not {kind.value}")

    if trigger.branch != config.main_branch:
        return GateDecision(
            run=False,
            reason=f"docs only run on '{config.main_branch}', not '{trigger.branch}'",
        )

    lint_status = upstream.get("lint", StepStatus.PENDING)
    if lint_status != StepStatus.SUCCEEDED:
        return GateDecision(run=False, reason=f"lint job is {lint_status.value}")

    return GateDecision(run=True, reason=f"push to {config.main_branch} with lint passing")

def dependencies_gate(
    config: RunConfiguration,
    trigger: TriggerContext,
    upstream: Optional[Dict[str, StepStatus]] = None,
) -> GateDecision:
    kind = _known_kind(trigger)

    if not config.enable_dependency_updates:
        return GateDecision(run=False, reason="dependency updates disabled")

    if kind not in (TriggerKind.SCHEDULE, TriggerKind.MANUAL):
        return GateDecision(run=False, reason=f"dependency updates do not run on {kind.value}")

    return GateDecision(run=True, reason=f"{kind.value} trigger")

def evaluate_gate(
    job: JobSpec,
    config: RunConfiguration,
    trigger: TriggerContext,
    upstream: Optional[Dict[str, StepStatus]] = None,
) -> GateDecision:
    """
    Evaluate a job's gate.
    Any GateEvaluationError becomes a skip: unknown situations never run a job.
    """
    try:
        return job.gate(config, trigger, upstream or {})
    except GateEvaluationError as e:
        logger.warning(f"Gate for job '{job.name}' failed closed: {e}")
        return GateDecision(run=False, reason=f"gate failed closed: {e}")
