"""
Step executor - runs one external tool as a subprocess.
"""

import asyncio
import logging
import os
from typing import Dict, List, Optional

from pydantic import SecretStr

from controller.src.config import get_settings
from controller.src.errors import StepExecutionError, StepTimeout, ToolReportedFailure
from controller.src.models.step import CommandOutcome, StepSpec

logger = logging.getLogger(__name__)
settings = get_settings()

REDACTED = "***"

def redact(text: str, secrets: Optional[Dict[str, SecretStr]] = None) -> str:
    """Mask secret values in captured output."""
    for secret in (secrets or {}).values():
        value = secret.get_secret_value()
        if value:
            text = text.replace(value, REDACTED)
    return text

def tail(text: str, lines: int) -> str:
    """Keep only the last `lines` lines of output."""
    split = text.splitlines()
    if len(split) <= lines:
        return text
    return "\n".join([f"... ({len(split) - lines} lines truncated)"] + split[-lines:])

async def _terminate(process: asyncio.subprocess.Process):
    if process.returncode is not None:
        return
    try:
        process.terminate()
        await asyncio.wait_for(process.wait(), timeout=10)
    except ProcessLookupError:
        pass
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()

async def execute_command(
    argv: List[str],
    cwd: str,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[int] = None,
    secrets: Optional[Dict[str, SecretStr]] = None,
) -> CommandOutcome:
    """
    Run a command to completion and capture its combined output.
    Raises StepExecutionError if it cannot start, StepTimeout if it overruns.
    Cancellation terminates the subprocess before propagating.
    """
    timeout = timeout or settings.step_timeout

    if not argv:
        raise StepExecutionError("Empty command")

    process_env = dict(os.environ)
    process_env.update(env or {})
    for name, secret in (secrets or {}).items():
        process_env[name] = secret.get_secret_value()

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            env=process_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as e:
        raise StepExecutionError(f"Cannot start '{argv[0]}' in '{cwd}': {e.strerror or e}")
    except PermissionError as e:
        raise StepExecutionError(f"Permission denied starting '{argv[0]}': {e.strerror or e}")
    except OSError as e:
        raise StepExecutionError(f"Failed to start '{argv[0]}': {e}")

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"'{argv[0]}' timed out after {timeout}s")
        await _terminate(process)
        raise StepTimeout(f"'{argv[0]}' timed out after {timeout}s", timeout=timeout)
    except asyncio.CancelledError:
        logger.warning(f"Cancelling '{argv[0]}'")
        await _terminate(process)
        raise

    output = stdout.decode("utf-8", errors="replace") if stdout else ""
    output = tail(redact(output, secrets), settings.output_tail_lines)

    return CommandOutcome(exit_code=process.returncode, output=output)

def interpret_exit_code(step: StepSpec, outcome: CommandOutcome) -> CommandOutcome:
    """
    Map an exit code to success or failure using the tool's exit-code convention.
    Output is never inspected.
    """
    if outcome.exit_code in step.success_exit_codes:
        return outcome

    message = step.exit_code_messages.get(outcome.exit_code, "tool reported failure")
    raise ToolReportedFailure(
        f"{step.name}: {message} (exit code {outcome.exit_code})",
        exit_code=outcome.exit_code,
        output=outcome.output,
    )
