"""Declarative YAML test runner for HTTP endpoints, commands and Kubernetes."""

from yamltest.config import RunnerConfig
from yamltest.dispatcher import execute_test
from yamltest.errors import (
    ConfigurationError,
    ExpectationFailure,
    WaitError,
    YamlTestError,
)
from yamltest.models.test_definition import TestDefinition
from yamltest.models.test_result import RunResult, TestOutcome
from yamltest.orchestrator import TestOrchestrator
from yamltest.test_loader import load_test_file, parse_test_definitions
from yamltest.variables import (
    VariableStore,
    clear_captured_variables,
    get_captured_variables,
)


async def run_tests(
    definitions: list[TestDefinition], store: VariableStore | None = None
) -> RunResult:
    """Run a batch of definitions with the fail-fast orchestrator."""
    return await TestOrchestrator(store=store).run_tests(definitions)


async def run_tests_from_yaml(
    yaml_text: str, store: VariableStore | None = None
) -> RunResult:
    """Parse a YAML batch and run it with the fail-fast orchestrator."""
    return await TestOrchestrator(store=store).run_tests_from_yaml(yaml_text)


__all__ = [
    "ConfigurationError",
    "ExpectationFailure",
    "RunResult",
    "RunnerConfig",
    "TestOrchestrator",
    "TestOutcome",
    "VariableStore",
    "WaitError",
    "YamlTestError",
    "clear_captured_variables",
    "execute_test",
    "get_captured_variables",
    "load_test_file",
    "parse_test_definitions",
    "run_tests",
    "run_tests_from_yaml",
]
