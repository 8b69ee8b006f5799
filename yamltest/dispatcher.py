"""Routing a single test definition to the executor for its kind."""

import logging
from collections.abc import Mapping

import yaml

from yamltest.body_comparison import execute_body_comparison_test
from yamltest.command import execute_command_test
from yamltest.config import RunnerConfig
from yamltest.errors import ConfigurationError
from yamltest.http_test import execute_http_test
from yamltest.kubectl import KubectlClient
from yamltest.models.test_definition import (
    BodyComparisonTest,
    CommandTest,
    HttpTest,
    TestDefinition,
    WaitTest,
    parse_test_definition,
)
from yamltest.variables import VariableStore, default_store
from yamltest.wait import execute_wait_test

logger = logging.getLogger(__name__)


def coerce_definition(
    definition: TestDefinition | Mapping[str, object] | str,
) -> TestDefinition:
    """Turn a model, raw mapping or YAML document into a validated definition.

    Raises:
        ConfigurationError: If the input is not a single valid definition

    """
    if isinstance(definition, HttpTest | CommandTest | WaitTest | BodyComparisonTest):
        return definition
    if isinstance(definition, str):
        try:
            raw = yaml.safe_load(definition)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse test YAML definition: {e}"
            ) from e
        return parse_test_definition(raw)
    return parse_test_definition(definition)


async def execute_test(
    definition: TestDefinition | Mapping[str, object] | str,
    store: VariableStore | None = None,
    *,
    kubectl: KubectlClient | None = None,
    config: RunnerConfig | None = None,
) -> bool:
    """Execute one test definition.

    Args:
        definition: Parsed definition, raw mapping or YAML text
        store: Variable store shared with other steps (process-wide default if None)
        kubectl: Cluster client (built from ``config`` if None)
        config: Runtime settings (read from the environment if None)

    Returns:
        True when the test passed

    Raises:
        ConfigurationError: If the definition is invalid
        ExpectationFailure: If the test ran and failed
        WaitError: If a wait test gave up

    """
    test = coerce_definition(definition)
    store = store if store is not None else default_store()
    config = config if config is not None else RunnerConfig.from_env()
    kubectl = kubectl if kubectl is not None else KubectlClient(config.kubectl_binary)

    logger.debug(f"Dispatching {test.kind} test {test.name or ''}".rstrip())

    if isinstance(test, HttpTest):
        return await execute_http_test(test, store, kubectl, config)
    if isinstance(test, CommandTest):
        return await execute_command_test(test, store, kubectl)
    if isinstance(test, WaitTest):
        return await execute_wait_test(test, store, kubectl)
    return await execute_body_comparison_test(test, store, kubectl, config)
