"""Validation of HTTP responses and command results against expectations."""

import json
import logging
import re
from typing import Any

from yamltest.comparator import compare, deep_equals, render_text, to_json
from yamltest.errors import EvaluationFailure
from yamltest.jsonpath import find_values
from yamltest.models.response import CommandResult, HttpResponse
from yamltest.models.test_definition import (
    CommandExpectations,
    Comparison,
    ContainsExpectation,
    HttpExpectations,
    OutputExpectation,
    RegexExpectation,
)
from yamltest.variables import VariableStore

logger = logging.getLogger(__name__)


def _json_body(body: Any) -> Any:
    if isinstance(body, str):
        try:
            return json.loads(body)
        except ValueError:
            return body
    return body


def _check_status_code(response: HttpResponse, expected: int | list[int]) -> None:
    accepted = expected if isinstance(expected, list) else [expected]
    if response.status_code not in accepted:
        shown = ",".join(str(code) for code in accepted)
        raise EvaluationFailure(
            f"Status code mismatch: expected {shown}, got {response.status_code}"
        )
    logger.debug(f"✓ Status code matches: {response.status_code}")


def _check_contains(
    raw_body: str, item: ContainsExpectation, store: VariableStore
) -> None:
    needle = store.interpolate(item.value)
    if item.matchword:
        found = re.search(rf"\b{re.escape(needle)}\b", raw_body) is not None
    else:
        found = needle in raw_body

    if item.negate and found:
        raise EvaluationFailure(
            f'Body should not contain substring but does: "{needle}"'
        )
    if not item.negate and not found:
        raise EvaluationFailure(f'Body does not contain substring: "{needle}"')
    logger.debug(
        f'✓ Body {"does not contain" if item.negate else "contains"} "{needle}"'
    )


def _check_regex(raw_body: str, item: RegexExpectation) -> None:
    try:
        matched = re.search(item.value, raw_body) is not None
    except re.error as e:
        raise EvaluationFailure(
            f"Invalid regular expression {item.value!r}: {e}"
        ) from e

    if item.negate and matched:
        raise EvaluationFailure(f"Body should not match regex but does: {item.value}")
    if not item.negate and not matched:
        raise EvaluationFailure(f"Body does not match regex: {item.value}")
    logger.debug(
        f"✓ Body {'does not match' if item.negate else 'matches'} regex {item.value}"
    )


def validate_http_expectations(
    response: HttpResponse,
    expect: HttpExpectations,
    test_name: str,
    store: VariableStore,
) -> None:
    """Check a response against every expectation, stopping at the first failure.

    Checks run in order: status code, exact body, substrings, regular
    expressions, JSONPath comparisons and headers.

    Args:
        response: Response returned by the transport
        expect: Expectations of the test
        test_name: Test name used in log messages
        store: Variable store used to interpolate substring expectations

    Raises:
        EvaluationFailure: If any expectation is not met
        ConfigurationError: If a comparator or JSONPath expression is invalid

    """
    logger.debug(f"Validating expectations for: {test_name}")

    if expect.status_code is not None:
        _check_status_code(response, expect.status_code)

    raw_body = render_text(response.body)

    if expect.checks_body:
        if not deep_equals(response.body, expect.body):
            raise EvaluationFailure(
                f"Body mismatch: expected {to_json(expect.body)}, "
                f"got {to_json(response.body)}"
            )
        logger.debug("✓ Body exactly matches")

    for contains in expect.body_contains:
        _check_contains(raw_body, contains, store)

    for regex in expect.body_regex:
        _check_regex(raw_body, regex)

    if expect.body_json_path:
        document = _json_body(response.body)
        for jp in expect.body_json_path:
            results = find_values(jp.path, document)
            if not results:
                if jp.negate and jp.comparator == "exists":
                    logger.debug(f'✓ JSONPath "{jp.path}" does not exist')
                    continue
                raise EvaluationFailure(
                    f'JSONPath "{jp.path}" did not return any results'
                )
            compare(results[0], jp, f"JSONPath {jp.path}")

    for header in expect.headers:
        value = response.header(header.name)
        description = f'Header "{header.name}"'
        if header.comparator != "exists" and value is None:
            raise EvaluationFailure(f"{description} not found in response")
        compare(value, header, description)

    logger.debug(f"✓ All expectations validated successfully for: {test_name}")


def _check_output(actual: str, items: list[OutputExpectation], label: str) -> None:
    for item in items:
        comparison, suffix = item.to_comparison()
        compare(actual, comparison, f"{label} {suffix}".strip())


def _require_json(result: CommandResult, purpose: str) -> Any:
    if result.json_parsed:
        return result.json_data
    if result.json_parse_error:
        raise EvaluationFailure(
            f"JSON parsing failed{purpose}: {result.json_parse_error}"
        )
    raise EvaluationFailure("No JSON output available for validation")


def _check_json(document: Any, path: str | None, comparison: Comparison) -> None:
    if path is None:
        compare(document, comparison, "JSON output")
        return
    results = find_values(path, document)
    if not results:
        raise EvaluationFailure(f'JSONPath "{path}" not found in output')
    compare(results[0], comparison, f'JSONPath "{path}"')


def validate_command_expectations(
    result: CommandResult, expect: CommandExpectations, test_name: str
) -> None:
    """Check a command result against every expectation.

    Raises:
        EvaluationFailure: If any expectation is not met
        ConfigurationError: If a comparator or JSONPath expression is invalid

    """
    logger.debug(f"Validating expectations for: {test_name}")

    if expect.exit_code is not None:
        if result.exit_code != expect.exit_code:
            raise EvaluationFailure(
                f"Exit code mismatch: expected {expect.exit_code}, "
                f"got {result.exit_code}"
            )
        logger.debug(f"✓ Exit code matches: {result.exit_code}")

    _check_output(result.stdout, expect.stdout, "stdout")
    _check_output(result.stderr, expect.stderr, "stderr")
    _check_output(result.output, expect.output, "output")

    if expect.json_output:
        document = _require_json(result, "")
        for item in expect.json_output:
            _check_json(document, item.path, item)

    if expect.json_path:
        document = _require_json(result, ", cannot validate jsonPath")
        for jp in expect.json_path:
            _check_json(document, jp.path, jp)

    logger.debug(f"✓ All expectations validated successfully for: {test_name}")
