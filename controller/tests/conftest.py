"""Shared fixtures for controller tests."""

import asyncio
from types import SimpleNamespace

import pytest

from controller.src.models.run import RunConfiguration, TriggerContext
from controller.src.models.step import CommandOutcome

class FakeExecutor:
    """
    Stands in for execute_command. Commands containing a key of `exit_codes`
    return that exit code; keys of `raises` raise the given exception.
    """

    def __init__(self, exit_codes=None, raises=None, delay=0.0):
        self.exit_codes = exit_codes or {}
        self.raises = raises or {}
        self.delay = delay
        self.calls = []

    async def __call__(self, argv, cwd, env=None, timeout=None, secrets=None):
        command = " ".join(argv)
        self.calls.append(
            SimpleNamespace(argv=argv, cwd=cwd, env=env, timeout=timeout, secrets=secrets, command=command)
        )
        if self.delay:
            await asyncio.sleep(self.delay)

        for needle, exc in self.raises.items():
            if needle in command:
                raise exc

        for needle, code in self.exit_codes.items():
            if needle in command:
                return CommandOutcome(exit_code=code, output=f"{command} exited {code}")

        return CommandOutcome(exit_code=0, output=f"{command} ok")

    def commands(self):
        return [call.command for call in self.calls]

@pytest.fixture
def fake_executor():
    return FakeExecutor

@pytest.fixture
def config():
    return RunConfiguration()

@pytest.fixture
def push_main():
    return TriggerContext(kind="push", branch="main", actor="alice")

@pytest.fixture
def pull_request():
    return TriggerContext(kind="pull_request", branch="main", actor="bob")
