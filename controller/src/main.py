"""
tfpipe controller - command line entry point.

Usage:
    tfpipe run --enable-security-scan --enable-docs
    tfpipe run --event pull_request --branch main --actor renovate[bot]
    tfpipe config
"""

import asyncio
import json
import logging
import signal
import sys
from typing import Any, Dict, Optional

import click

from controller.src.config import get_settings
from controller.src.errors import InvalidConfiguration
from controller.src.models.run import RunConfiguration
from controller.src.models.step import ExitCode, PipelineResult
from controller.src.services.aggregator import format_report
from controller.src.services.config_resolver import load_config_file, resolve_configuration
from controller.src.services.orchestrator import PipelineOrchestrator
from controller.src.services.step_executor import execute_command
from controller.src.services.trigger import trigger_from_environment

logger = logging.getLogger(__name__)

def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

def config_options(func):
    """Every RunConfiguration field as a named option. Unset options fall back to defaults."""
    options = [
        click.option("--runner", default=None, help="Runner label (default: ubuntu-latest)."),
        click.option("--working-directory", default=None, help="Terraform root, relative to the repository."),
        click.option("--validate-directory", default=None, help="Directory for init/validate (default: working directory)."),
        click.option("--tool", type=click.Choice(["terraform", "tofu"]), default=None, help="Terraform or OpenTofu CLI."),
        click.option("--tool-version", default=None, help="Tool version to pin with tenv (default: latest)."),
        click.option("--enable-security-scan/--no-enable-security-scan", default=None, help="Run Checkov and TFSec."),
        click.option("--enable-docs/--no-enable-docs", default=None, help="Generate and commit terraform-docs output."),
        click.option("--docs-output-file", default=None, help="File terraform-docs writes into (default: README.md)."),
        click.option("--allowed-pr-author", default=None, help="Only lint pull requests opened by this login."),
        click.option("--main-branch", default=None, help="Branch docs are published from (default: main)."),
        click.option("--enable-dependency-updates/--no-enable-dependency-updates", default=None, help="Run Renovate on schedule/manual triggers."),
        click.option("--renovate-config", default=None, help="Renovate configuration file."),
        click.option("--renovate-debug/--no-renovate-debug", default=None, help="Run Renovate with debug logging."),
        click.option("--step-timeout", type=int, default=None, help="Per-step timeout in seconds."),
    ]
    for option in reversed(options):
        func = option(func)
    return func

def build_configuration(workspace: str, config_file: Optional[str], cli_values: Dict[str, Any]) -> RunConfiguration:
    """Config file values, overridden by command line options, over the defaults."""
    settings = get_settings()
    partial: Dict[str, Any] = {"step_timeout": settings.step_timeout}
    partial.update(load_config_file(workspace, config_file))
    partial.update({k: v for k, v in cli_values.items() if v is not None})
    return resolve_configuration(partial)

async def _run_with_signals(orchestrator: PipelineOrchestrator) -> PipelineResult:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.cancel)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform / thread
            pass
    return await orchestrator.run()

@click.group()
@click.option("--log-level", default=None, help="Logging level (default: from TFPIPE_LOG_LEVEL or INFO).")
def cli(log_level: Optional[str]):
    """tfpipe - lint, scan and document Terraform/OpenTofu repositories."""
    configure_logging(log_level or get_settings().log_level)

@cli.command()
@config_options
@click.option("--workspace", default=".", type=click.Path(file_okay=False), help="Repository root.")
@click.option("--config-file", default=None, help="Config file (default: .tfci.yml in the workspace).")
@click.option("--event", default=None, help="Trigger kind (default: GITHUB_EVENT_NAME).")
@click.option("--branch", default=None, help="Target branch (default: from GitHub environment).")
@click.option("--actor", default=None, help="Actor login (default: from GitHub environment).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output the result as JSON.")
def run(workspace, config_file, event, branch, actor, as_json, **cli_values):
    """Run the pipeline and exit with its status code."""
    settings = get_settings()

    try:
        config = build_configuration(workspace, config_file, cli_values)
    except InvalidConfiguration as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(int(ExitCode.INVALID_CONFIGURATION))

    trigger = trigger_from_environment(event=event, branch=branch, actor=actor)
    logger.info(f"Trigger: {trigger.kind} on '{trigger.branch}' by '{trigger.actor}'")

    orchestrator = PipelineOrchestrator(
        config,
        trigger,
        executor=execute_command,
        secrets={"renovate_token": settings.renovate_token},
        workspace=workspace,
    )
    result = asyncio.run(_run_with_signals(orchestrator))

    if as_json:
        click.echo(result.model_dump_json(indent=2))
    else:
        click.echo(format_report(result))

    sys.exit(result.exit_code)

@cli.command("config")
@config_options
@click.option("--workspace", default=".", type=click.Path(file_okay=False), help="Repository root.")
@click.option("--config-file", default=None, help="Config file (default: .tfci.yml in the workspace).")
def show_config(workspace, config_file, **cli_values):
    """Print the resolved configuration."""
    try:
        config = build_configuration(workspace, config_file, cli_values)
    except InvalidConfiguration as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(int(ExitCode.INVALID_CONFIGURATION))

    click.echo(json.dumps(config.model_dump(), indent=2))

def main():
    """Main entry point."""
    cli()

if __name__ == "__main__":
    main()
