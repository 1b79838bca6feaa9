"""
Built-in job catalog for Terraform/OpenTofu repositories.
"""

from typing import Dict, List

from controller.src.config import get_settings
from controller.src.models.run import RunConfiguration
from controller.src.models.step import ExitCode, JobSpec, StepResult, StepSpec
from controller.src.services.gates import (
    dependencies_gate,
    docs_gate,
    lint_gate,
    security_gate,
)

# `terraform fmt -check` / `tofu fmt -check` exit with 3 when files are unformatted
FMT_NEEDS_FORMATTING = 3

def _version_pinned(config: RunConfiguration, previous: Dict[str, StepResult]) -> bool:
    return config.version_pinned

def _docs_changed(config: RunConfiguration, previous: Dict[str, StepResult]) -> bool:
    # git diff --quiet exits 1 when the staged docs differ from HEAD
    detect = previous.get("detect-changes")
    return detect is not None and detect.exit_code == 1

def lint_job() -> JobSpec:
    return JobSpec(
        name="lint",
        gate=lint_gate,
        failure_exit_code=ExitCode.LINT_FAILED,
        steps=[
            StepSpec(
                name="setup",
                command="tenv {tenv_tool} use {tool_version}",
                condition=_version_pinned,
            ),
            StepSpec(
                name="fmt",
                command="{tool} fmt -check -recursive -diff -no-color",
                exit_code_messages={FMT_NEEDS_FORMATTING: "files need formatting"},
            ),
            StepSpec(
                name="init",
                command="{tool} init -backend=false -input=false -no-color",
                directory="{validate_directory}",
            ),
            StepSpec(
                name="validate",
                command="{tool} validate -no-color",
                directory="{validate_directory}",
            ),
            StepSpec(
                name="tflint-init",
                command="tflint --init",
            ),
            StepSpec(
                name="tflint",
                command="tflint --recursive --format compact",
            ),
        ],
    )

def security_job() -> JobSpec:
    return JobSpec(
        name="security",
        gate=security_gate,
        failure_exit_code=ExitCode.SECURITY_FAILED,
        steps=[
            StepSpec(
                name="checkov",
                command="checkov --directory . --framework terraform --compact --quiet",
            ),
            StepSpec(
                name="tfsec",
                command="tfsec . --no-color",
            ),
        ],
    )

def _literal(value: str) -> str:
    # Step env values are format templates
    return value.replace("{", "{{").replace("}", "}}")

def docs_job(needs: List[str]) -> JobSpec:
    settings = get_settings()
    identity = {
        "GIT_AUTHOR_NAME": _literal(settings.git_author_name),
        "GIT_AUTHOR_EMAIL": _literal(settings.git_author_email),
        "GIT_COMMITTER_NAME": _literal(settings.git_author_name),
        "GIT_COMMITTER_EMAIL": _literal(settings.git_author_email),
    }

    return JobSpec(
        name="docs",
        gate=docs_gate,
        needs=needs,
        failure_exit_code=ExitCode.DOCS_FAILED,
        steps=[
            StepSpec(
                name="terraform-docs",
                command="terraform-docs markdown table --output-file {docs_output_file} --output-mode inject .",
            ),
            StepSpec(
                name="stage",
                command="git add -- {docs_output_file}",
            ),
            StepSpec(
                name="detect-changes",
                command="git diff --cached --quiet -- {docs_output_file}",
                success_exit_codes=[0, 1],
            ),
            StepSpec(
                name="commit",
                command="git commit -m 'docs: update {docs_output_file}' -- {docs_output_file}",
                env=identity,
                condition=_docs_changed,
            ),
            StepSpec(
                name="push",
                command="git push",
                condition=_docs_changed,
            ),
        ],
    )

def dependencies_job() -> JobSpec:
    return JobSpec(
        name="dependencies",
        gate=dependencies_gate,
        failure_exit_code=ExitCode.DEPENDENCIES_FAILED,
        steps=[
            StepSpec(
                name="renovate",
                command="renovate",
                directory=".",
                env={
                    "RENOVATE_CONFIG_FILE": "{renovate_config}",
                    "LOG_LEVEL": "{renovate_log_level}",
                },
                secrets={"RENOVATE_TOKEN": "renovate_token"},
            ),
        ],
    )

def default_jobs() -> List[JobSpec]:
    """All jobs in declared order. Docs waits for every other job."""
    jobs = [lint_job(), security_job(), dependencies_job()]
    jobs.append(docs_job(needs=[job.name for job in jobs]))
    return jobs
