"""Polling a Kubernetes resource until a JSONPath condition holds."""

import asyncio
import logging
from typing import Any

from yamltest.comparator import compare, render_text, to_json
from yamltest.errors import (
    EvaluationFailure,
    InvalidJsonPathError,
    KubectlError,
    RetriesExhaustedError,
    WaitTimeoutError,
)
from yamltest.extraction import apply_set_vars
from yamltest.jsonpath import find_values
from yamltest.kubectl import KubectlClient
from yamltest.models.response import WaitResult
from yamltest.models.test_definition import Comparison, WaitConfig, WaitTest
from yamltest.variables import VariableStore

logger = logging.getLogger(__name__)


class NotReady(Exception):
    """The resource was observed but the condition does not hold yet."""


def describe_condition(path: str | None, expectation: Comparison | None) -> str:
    """Render ``path to <op> <value>`` for log and timeout messages."""
    if not path:
        return ""
    text = f" → {path}"
    if expectation is not None:
        operation = (
            f"not {expectation.comparator}"
            if expectation.negate
            else expectation.comparator
        )
        value = ""
        if expectation.comparator != "exists":
            value = f" {to_json(expectation.value)}"
        text += f" to {operation}{value}"
    return text


def query_path(path: str, document: Any) -> list[Any]:
    """Evaluate a JSONPath, retrying as ``$<path>`` for jq-style paths.

    Raises:
        InvalidJsonPathError: If no variant of the path can be parsed

    """
    candidates = [path] if path.startswith("$") else [path, f"${path}"]
    errors: list[InvalidJsonPathError] = []
    for candidate in candidates:
        try:
            results = find_values(candidate, document)
        except InvalidJsonPathError as e:
            errors.append(e)
            continue
        if results:
            return results
    if len(errors) == len(candidates):
        raise errors[0]
    return []


def evaluate(document: Any, wait: WaitConfig) -> Any:
    """Check one observation of the resource.

    Returns:
        The value at ``wait.json_path`` (None when no path is configured)

    Raises:
        NotReady: If the condition does not hold yet
        ConfigurationError: If the path or comparator is invalid

    """
    if (
        isinstance(document, dict)
        and document.get("kind") == "List"
        and not document.get("items")
    ):
        raise NotReady("no resource matches the selector yet")

    if not wait.json_path:
        return None

    results = query_path(wait.json_path, document)
    if not results or results[0] is None:
        raise NotReady(f"jsonPath {wait.json_path} not found yet")

    value = results[0]
    if wait.json_path_expectation is not None:
        try:
            compare(value, wait.json_path_expectation, f"JSONPath {wait.json_path}")
        except EvaluationFailure as e:
            raise NotReady(str(e)) from e
    elif value == "":
        raise NotReady("value is empty string")

    logger.debug(f"Found value for {wait.json_path}: {render_text(value)}")
    return value


async def wait_for_resource(wait: WaitConfig, kubectl: KubectlClient) -> Any:
    """Poll the target until the condition holds.

    Kubectl failures and unparsable output count as failed attempts.

    Args:
        wait: Target, condition and polling bounds
        kubectl: Client used to fetch the target

    Returns:
        The value observed at ``wait.json_path`` when the condition held

    Raises:
        RetriesExhaustedError: If ``max_retries`` attempts failed
        WaitTimeoutError: If the deadline passed first
        ConfigurationError: If the path or comparator is invalid

    """
    polling = wait.polling
    description = wait.target.describe()
    condition = describe_condition(wait.json_path, wait.json_path_expectation)
    retry_info = (
        f" (max {polling.max_retries} retries)"
        if polling.max_retries is not None
        else ""
    )
    logger.info(f"Waiting for {description}{condition}{retry_info}")

    loop = asyncio.get_event_loop()
    deadline = loop.time() + polling.timeout_seconds
    attempts = 0

    while loop.time() < deadline:
        if polling.max_retries is not None and attempts >= polling.max_retries:
            raise RetriesExhaustedError(
                f"Maximum retries ({polling.max_retries}) exceeded while waiting "
                f"for {description}"
            )

        attempt = (
            f"Attempt {attempts + 1}/{polling.max_retries}"
            if polling.max_retries is not None
            else f"Attempt {attempts + 1}"
        )
        try:
            document = await kubectl.get_json(wait.target)
            value = evaluate(document, wait)
        except NotReady as e:
            logger.debug(f"{attempt}: {e}, retrying...")
        except KubectlError as e:
            logger.debug(f"{attempt}: lookup failed, will retry: {e}")
        else:
            logger.debug(f"Condition met for {description}")
            return value

        attempts += 1
        await asyncio.sleep(polling.interval_seconds)

    raise WaitTimeoutError(
        f"Timed-out ({polling.timeout_seconds:g}s) waiting for {description}{condition}"
    )


async def execute_wait_test(
    test: WaitTest, store: VariableStore, kubectl: KubectlClient
) -> bool:
    """Wait for the test's condition and publish its setVars.

    Returns:
        True once the condition held

    """
    target = test.wait.target
    if target.context:
        context = store.interpolate(target.context)
        target = target.model_copy(update={"context": context})
    wait = test.wait.model_copy(update={"target": target})

    value = await wait_for_resource(wait, kubectl)
    apply_set_vars(test.set_vars, WaitResult(extracted_value=value), "wait", store)
    return True
