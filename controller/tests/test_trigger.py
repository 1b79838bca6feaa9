"""Tests for trigger context derivation."""

import json

from controller.src.models.run import TriggerKind
from controller.src.services.trigger import parse_webhook_payload, trigger_from_environment

def test_push_from_environment():
    trigger = trigger_from_environment({
        "GITHUB_EVENT_NAME": "push",
        "GITHUB_REF_NAME": "main",
        "GITHUB_ACTOR": "alice",
        "GITHUB_REPOSITORY": "acme/infra",
    })
    assert trigger.kind == "push"
    assert trigger.branch == "main"
    assert trigger.actor == "alice"
    assert trigger.repository == "acme/infra"

def test_pull_request_uses_base_ref():
    trigger = trigger_from_environment({
        "GITHUB_EVENT_NAME": "pull_request",
        "GITHUB_REF_NAME": "42/merge",
        "GITHUB_BASE_REF": "main",
        "GITHUB_ACTOR": "bob",
    })
    assert trigger.trigger_kind == TriggerKind.PULL_REQUEST
    assert trigger.branch == "main"

def test_branch_from_full_ref():
    trigger = trigger_from_environment({"GITHUB_EVENT_NAME": "push", "GITHUB_REF": "refs/heads/release"})
    assert trigger.branch == "release"

def test_workflow_dispatch_is_manual():
    trigger = trigger_from_environment({"GITHUB_EVENT_NAME": "workflow_dispatch"})
    assert trigger.trigger_kind == TriggerKind.MANUAL

def test_default_is_manual():
    assert trigger_from_environment({}).trigger_kind == TriggerKind.MANUAL

def test_unknown_event_kept_verbatim():
    trigger = trigger_from_environment({"GITHUB_EVENT_NAME": "release"})
    assert trigger.kind == "release"
    assert trigger.trigger_kind is None

def test_overrides_win():
    trigger = trigger_from_environment(
        {"GITHUB_EVENT_NAME": "push", "GITHUB_REF_NAME": "feature", "GITHUB_ACTOR": "alice"},
        event="pull_request",
        branch="main",
        actor="bob",
    )
    assert trigger.kind == "pull_request"
    assert trigger.branch == "main"
    assert trigger.actor == "bob"

def test_event_payload_gives_pull_request_author(tmp_path):
    payload = {
        "pull_request": {
            "user": {"login": "renovate[bot]"},
            "base": {"ref": "main"},
            "head": {"sha": "abc123"},
        },
        "repository": {"full_name": "acme/infra"},
        "sender": {"login": "someone-else"},
    }
    event_path = tmp_path / "event.json"
    event_path.write_text(json.dumps(payload))

    trigger = trigger_from_environment({
        "GITHUB_EVENT_NAME": "pull_request_target",
        "GITHUB_EVENT_PATH": str(event_path),
        "GITHUB_ACTOR": "someone-else",
    })

    assert trigger.kind == "pull_request"
    assert trigger.actor == "renovate[bot]"
    assert trigger.branch == "main"
    assert trigger.repository == "acme/infra"

def test_unreadable_payload_falls_back_to_environment(tmp_path):
    event_path = tmp_path / "event.json"
    event_path.write_text("{not json")

    trigger = trigger_from_environment({
        "GITHUB_EVENT_NAME": "push",
        "GITHUB_EVENT_PATH": str(event_path),
        "GITHUB_REF_NAME": "main",
    })
    assert trigger.branch == "main"

def test_push_payload_uses_pusher_when_no_sender():
    trigger = parse_webhook_payload("push", {
        "ref": "refs/heads/main",
        "pusher": {"name": "alice"},
        "repository": {"full_name": "acme/infra"},
    })
    assert trigger.kind == "push"
    assert trigger.branch == "main"
    assert trigger.actor == "alice"
