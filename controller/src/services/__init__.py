from controller.src.services.config_resolver import (
    DEFAULTS,
    resolve_configuration,
    parse_config_file,
    load_config_file,
)
from controller.src.services.gates import (
    lint_gate,
    security_gate,
    docs_gate,
    dependencies_gate,
    evaluate_gate,
)
from controller.src.services.step_executor import execute_command, interpret_exit_code
from controller.src.services.job_runner import run_job, run_step, render_step
from controller.src.services.aggregator import ResultAggregator, format_report
from controller.src.services.jobs import default_jobs
from controller.src.services.orchestrator import PipelineOrchestrator, run_pipeline
from controller.src.services.trigger import parse_webhook_payload, trigger_from_environment

__all__ = [
    "DEFAULTS",
    "resolve_configuration",
    "parse_config_file",
    "load_config_file",
    "lint_gate",
    "security_gate",
    "docs_gate",
    "dependencies_gate",
    "evaluate_gate",
    "execute_command",
    "interpret_exit_code",
    "run_job",
    "run_step",
    "render_step",
    "ResultAggregator",
    "format_report",
    "default_jobs",
    "PipelineOrchestrator",
    "run_pipeline",
    "parse_webhook_payload",
    "trigger_from_environment",
]
