"""Shared fixtures for yamltest tests."""

import stat
from collections.abc import Callable
from pathlib import Path

import pytest

from yamltest.config import RunnerConfig
from yamltest.variables import VariableStore


@pytest.fixture
def store() -> VariableStore:
    """Create an empty variable store."""
    return VariableStore()


@pytest.fixture
def runner_config() -> RunnerConfig:
    """Create runner configuration with fast retries and tunnel timeouts."""
    return RunnerConfig(
        retry_delay_seconds=0,
        port_forward_ready_timeout=2.0,
        port_forward_kill_timeout=0.5,
    )


@pytest.fixture
def fake_kubectl(tmp_path: Path) -> Callable[[str], Path]:
    """Return a factory writing an executable shell script standing in for kubectl.

    The script body receives the kubectl arguments as ``$@``.
    """

    def _create(body: str) -> Path:
        script = tmp_path / "kubectl"
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        return script

    return _create
