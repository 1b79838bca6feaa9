"""Tests for the HTTP API."""

import asyncio
import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from api.src.main import app
from api.src.routes import webhooks
from api.src.services import github, runs
from api.src.services.github import RepositoryError
from controller.src.models.run import TriggerContext
from controller.src.models.step import CommandOutcome, StepStatus

PUSH_PAYLOAD = {
    "ref": "refs/heads/main",
    "after": "abc123",
    "repository": {"full_name": "acme/infra", "clone_url": "https://github.com/acme/infra.git"},
    "sender": {"login": "alice"},
}

@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(github.settings, "github_webhook_secret", "")
    runs.clear_runs()
    yield TestClient(app)
    runs.clear_runs()

@pytest.fixture
def queued(monkeypatch):
    calls = []

    async def fake_execute_run(run_id, repo_info, trigger):
        calls.append((run_id, repo_info, trigger))

    monkeypatch.setattr(webhooks, "execute_run", fake_execute_run)
    return calls

def post_event(client, event, payload, headers=None):
    return client.post(
        "/api/webhooks/github",
        content=json.dumps(payload),
        headers={"X-GitHub-Event": event, "Content-Type": "application/json", **(headers or {})},
    )

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "tfpipe-api"

def test_ping(client):
    response = post_event(client, "ping", {"zen": "Keep it logically awesome."})
    assert response.json()["status"] == "pong"

def test_unhandled_event_ignored(client, queued):
    response = post_event(client, "issues", {"action": "opened"})
    assert response.json()["status"] == "ignored"
    assert queued == []

def test_push_queues_run(client, queued):
    response = post_event(client, "push", PUSH_PAYLOAD)

    body = response.json()
    assert body["status"] == "queued"
    assert body["trigger"]["kind"] == "push"
    assert body["trigger"]["branch"] == "main"

    run_id, repo_info, trigger = queued[0]
    assert run_id == body["run_id"]
    assert repo_info["commit_sha"] == "abc123"
    assert trigger.actor == "alice"

    listed = client.get("/api/pipelines/runs").json()
    assert [run["id"] for run in listed] == [run_id]
    assert listed[0]["status"] == "queued"

def test_push_without_commit_is_skipped(client, queued):
    payload = dict(PUSH_PAYLOAD, after="")
    response = post_event(client, "push", payload)
    assert response.json()["status"] == "skipped"
    assert queued == []

def test_invalid_signature_rejected(client, queued, monkeypatch):
    monkeypatch.setattr(github.settings, "github_webhook_secret", "s3cret")

    response = post_event(client, "push", PUSH_PAYLOAD, headers={"X-Hub-Signature-256": "sha256=bad"})

    assert response.status_code == 401
    assert queued == []

def test_valid_signature_accepted(client, queued, monkeypatch):
    monkeypatch.setattr(github.settings, "github_webhook_secret", "s3cret")
    body = json.dumps(PUSH_PAYLOAD).encode()
    signature = "sha256=" + hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()

    response = client.post(
        "/api/webhooks/github",
        content=body,
        headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": signature},
    )

    assert response.status_code == 200
    assert len(queued) == 1

def test_invalid_json(client):
    response = client.post("/api/webhooks/github", content=b"{nope", headers={"X-GitHub-Event": "push"})
    assert response.status_code == 400

def test_unknown_run_404(client):
    assert client.get("/api/pipelines/runs/does-not-exist").status_code == 404
    assert client.get("/api/pipelines/runs/does-not-exist/logs").status_code == 404

def test_clone_failure_marks_run_error(client, monkeypatch):
    def failing_clone(clone_url, commit_sha):
        raise RepositoryError("Repository clone timed out")

    monkeypatch.setattr(runs, "clone_repository", failing_clone)
    trigger = TriggerContext(kind="push", branch="main", actor="alice")
    repo_info = {"repo_full_name": "acme/infra", "clone_url": "https://example.invalid/x.git", "commit_sha": "abc"}
    run = runs.create_run(trigger, repo_info)

    asyncio.run(runs.execute_run(run.id, repo_info, trigger))

    response = client.get(f"/api/pipelines/runs/{run.id}")
    assert response.json()["status"] == "error"
    assert "timed out" in response.json()["error"]

def test_invalid_repository_config_marks_run_error(client, monkeypatch, tmp_path):
    checkout = tmp_path / "checkout" / "repo"
    checkout.mkdir(parents=True)
    (checkout / ".tfci.yml").write_text("working_directory: ../outside\n")
    monkeypatch.setattr(runs, "clone_repository", lambda clone_url, commit_sha: str(checkout))

    trigger = TriggerContext(kind="push", branch="main", actor="alice")
    repo_info = {"repo_full_name": "acme/infra", "clone_url": "https://example.invalid/x.git", "commit_sha": "abc"}
    run = runs.create_run(trigger, repo_info)

    asyncio.run(runs.execute_run(run.id, repo_info, trigger))

    stored = runs.get_run(run.id)
    assert stored.status == "error"
    assert "working_directory" in stored.error
    assert not checkout.exists()

def test_run_logs_before_completion(client):
    trigger = TriggerContext(kind="push", branch="main")
    run = runs.create_run(trigger, {"commit_sha": "abc"})

    response = client.get(f"/api/pipelines/runs/{run.id}/logs")

    assert response.json() == {"run_id": run.id, "status": "queued", "jobs": []}

PR_PAYLOAD = {
    "action": "opened",
    "pull_request": {
        "user": {"login": "mallory"},
        "base": {"ref": "main", "sha": "base111"},
        "head": {"sha": "head222"},
    },
    "repository": {"full_name": "acme/infra", "clone_url": "https://github.com/acme/infra.git"},
    "sender": {"login": "mallory"},
}

@pytest.fixture
def commands(monkeypatch):
    seen = []

    async def fake_execute(argv, cwd, env=None, timeout=None, secrets=None):
        seen.append(" ".join(argv))
        return CommandOutcome(exit_code=0, output="ok")

    monkeypatch.setattr(runs, "execute_command", fake_execute)
    return seen

def checkout_with_config(tmp_path, monkeypatch, content):
    checkout = tmp_path / "checkout" / "repo"
    checkout.mkdir(parents=True)
    (checkout / ".tfci.yml").write_bytes(content)
    monkeypatch.setattr(runs, "clone_repository", lambda clone_url, commit_sha: str(checkout))
    return checkout

def execute(trigger, repo_info):
    run = runs.create_run(trigger, repo_info)
    asyncio.run(runs.execute_run(run.id, repo_info, trigger))
    return runs.get_run(run.id)

@pytest.mark.parametrize("action", ["closed", "labeled", "edited"])
def test_pull_request_actions_without_new_code_ignored(client, queued, action):
    response = post_event(client, "pull_request", dict(PR_PAYLOAD, action=action))

    assert response.json()["status"] == "ignored"
    assert queued == []

@pytest.mark.parametrize("action", ["opened", "synchronize", "reopened"])
def test_pull_request_actions_with_new_code_queued(client, queued, action):
    response = post_event(client, "pull_request", dict(PR_PAYLOAD, action=action))

    assert response.json()["status"] == "queued"
    run_id, repo_info, trigger = queued[0]
    assert repo_info["commit_sha"] == "head222"
    assert repo_info["base_sha"] == "base111"
    assert trigger.actor == "mallory"

def test_unreadable_repository_config_marks_run_error(client, monkeypatch, tmp_path, commands):
    checkout_with_config(tmp_path, monkeypatch, b"\xff\xfe\x00bad")
    trigger = TriggerContext(kind="push", branch="main", actor="alice")

    stored = execute(trigger, {"clone_url": "https://example.invalid/x.git", "commit_sha": "abc"})

    assert stored.status == "error"
    assert "Cannot read config file" in stored.error
    assert commands == []

def test_unexpected_failure_marks_run_error(client, monkeypatch, tmp_path, commands):
    checkout = checkout_with_config(tmp_path, monkeypatch, b"")

    def broken(repo_path, trigger, repo_info):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(runs, "load_run_configuration", broken)
    trigger = TriggerContext(kind="push", branch="main", actor="alice")

    stored = execute(trigger, {"clone_url": "https://example.invalid/x.git", "commit_sha": "abc"})

    assert stored.status == "error"
    assert stored.error == "internal error: disk on fire"
    assert not checkout.exists()

def test_pull_request_configured_from_base_commit(client, monkeypatch, tmp_path, commands):
    # The pull request drops the author restriction in its own copy of the config
    checkout_with_config(tmp_path, monkeypatch, b"allowed_pr_author: ''\nenable_security_scan: false\n")
    requested = []

    def base_config(repo_path, commit_sha, names):
        requested.append(commit_sha)
        return "allowed_pr_author: maintainer\nenable_security_scan: true\n"

    monkeypatch.setattr(runs, "read_file_at_commit", base_config)
    trigger = TriggerContext(kind="pull_request", branch="main", actor="mallory")
    repo_info = {"clone_url": "https://example.invalid/x.git", "commit_sha": "head222", "base_sha": "base111"}

    stored = execute(trigger, repo_info)

    assert requested == ["base111"]
    assert stored.status == StepStatus.SUCCEEDED.value
    assert stored.result.job("lint").status == StepStatus.SKIPPED
    assert stored.result.job("security").status == StepStatus.SKIPPED
    assert "maintainer" in stored.result.job("lint").reason
    assert commands == []

def test_pull_request_without_base_commit_is_error(client, monkeypatch, tmp_path, commands):
    checkout_with_config(tmp_path, monkeypatch, b"")
    trigger = TriggerContext(kind="pull_request", branch="main", actor="mallory")

    stored = execute(trigger, {"clone_url": "https://example.invalid/x.git", "commit_sha": "head222"})

    assert stored.status == "error"
    assert "base commit" in stored.error

def test_webhook_push_does_not_publish_docs(client, monkeypatch, tmp_path, commands):
    checkout_with_config(tmp_path, monkeypatch, b"enable_docs: true\n")
    trigger = TriggerContext(kind="push", branch="main", actor="alice")

    stored = execute(trigger, {"clone_url": "https://example.invalid/x.git", "commit_sha": "abc"})

    docs = stored.result.job("docs")
    assert stored.result.job("lint").status == StepStatus.SUCCEEDED
    assert docs.status == StepStatus.SKIPPED
    assert docs.reason == "docs are not published from webhook runs"
    assert not any(command.startswith(("terraform-docs", "git")) for command in commands)
    assert stored.result.exit_code == 0
