"""Publish values extracted from a passing test into the variable store."""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, cast

from yamltest.comparator import render_text
from yamltest.errors import (
    ExtractionError,
    InvalidSourceForKindError,
    NoResultsError,
)
from yamltest.jsonpath import find_values
from yamltest.models.response import CommandResult, HttpResponse, WaitResult
from yamltest.models.test_definition import ExtractionRule, RegexRule, TestKind
from yamltest.variables import VariableStore

logger = logging.getLogger(__name__)

ResultData = HttpResponse | CommandResult | WaitResult

VALID_KINDS: dict[str, frozenset[TestKind]] = {
    "jsonPath": frozenset({"http", "command"}),
    "header": frozenset({"http"}),
    "statusCode": frozenset({"http"}),
    "body": frozenset({"http"}),
    "stdout": frozenset({"command"}),
    "stderr": frozenset({"command"}),
    "exitCode": frozenset({"command"}),
    "value": frozenset({"wait"}),
    "regex": frozenset({"http", "command"}),
}


def _check_kind(var_name: str, source: str, kind: TestKind) -> None:
    valid = VALID_KINDS[source]
    if kind not in valid:
        raise InvalidSourceForKindError(
            f'setVars "{var_name}": "{source}" source is not valid for {kind} tests '
            f"(valid for: {', '.join(sorted(valid))})",
            details={"variable": var_name, "source": source, "kind": kind},
        )


def _json_document(var_name: str, data: ResultData) -> Any:
    if isinstance(data, HttpResponse):
        if isinstance(data.body, str):
            try:
                return json.loads(data.body)
            except ValueError as e:
                raise ExtractionError(
                    f'setVars "{var_name}": response body is not valid JSON: {e}'
                ) from e
        return data.body
    if isinstance(data, CommandResult):
        if not data.json_parsed:
            reason = data.json_parse_error or 'enable "parseJson" on the command'
            raise ExtractionError(
                f'setVars "{var_name}": no JSON data available for jsonPath '
                f"extraction ({reason})"
            )
        return data.json_data
    raise ExtractionError(f'setVars "{var_name}": no JSON data available')


def _regex_text(var_name: str, regex: RegexRule, data: ResultData) -> str:
    if isinstance(data, HttpResponse):
        return render_text(data.body)
    if isinstance(data, CommandResult):
        return data.stderr if regex.source == "stderr" else data.stdout
    raise ExtractionError(f'setVars "{var_name}": no text available for regex')


def extract_value(
    var_name: str, rule: ExtractionRule, data: ResultData, kind: TestKind
) -> Any:
    """Extract the raw value of a single rule.

    Raises:
        InvalidSourceForKindError: If the rule's source does not apply to the kind
        NoResultsError: If a JSONPath query matches nothing
        ExtractionError: If the value is missing

    """
    source = rule.source
    _check_kind(var_name, source, kind)

    if source == "jsonPath":
        json_path = cast(str, rule.json_path)
        results = find_values(json_path, _json_document(var_name, data))
        if not results:
            raise NoResultsError(
                f'setVars "{var_name}": jsonPath "{json_path}" returned no results'
            )
        return results[0] if len(results) == 1 else results

    if isinstance(data, HttpResponse):
        if source == "header":
            header = cast(str, rule.header)
            value = data.header(header)
            if value is None:
                raise ExtractionError(
                    f'setVars "{var_name}": header "{header}" '
                    "not found in response"
                )
            return value
        if source == "statusCode":
            return data.status_code
        if source == "body":
            return render_text(data.body)

    if isinstance(data, CommandResult):
        if source == "stdout":
            return data.stdout
        if source == "stderr":
            return data.stderr
        if source == "exitCode":
            return data.exit_code

    if isinstance(data, WaitResult) and source == "value":
        return data.extracted_value

    if source == "regex":
        regex = cast(RegexRule, rule.regex)
        text = _regex_text(var_name, regex, data)
        match = re.search(regex.pattern, text)
        if match is None:
            raise ExtractionError(
                f'setVars "{var_name}": regex "{regex.pattern}" did not match'
            )
        try:
            value = match.group(regex.group)
        except IndexError as e:
            raise ExtractionError(
                f'setVars "{var_name}": regex capture group {regex.group} '
                "not found in match"
            ) from e
        if value is None:
            raise ExtractionError(
                f'setVars "{var_name}": regex capture group {regex.group} '
                "did not participate in the match"
            )
        return value

    raise ExtractionError(
        f'setVars "{var_name}": "{source}" source has no data in this result'
    )


def apply_set_vars(
    rules: Mapping[str, ExtractionRule] | None,
    data: ResultData,
    kind: TestKind,
    store: VariableStore,
) -> None:
    """Extract every rule and publish the values into the store.

    Rules are applied in order and the first failure aborts the block. Values
    published by earlier rules are kept.

    Args:
        rules: Variable names mapped to extraction rules
        data: Result data of the passing attempt
        kind: Kind of the test that produced ``data``
        store: Variable store receiving the values

    """
    if not rules:
        return

    for var_name, rule in rules.items():
        value = extract_value(var_name, rule, data, kind)
        if value is None:
            raise ExtractionError(f'setVars "{var_name}": extracted value is null')
        text = render_text(value).strip()
        store.set(var_name, text)
        logger.debug(f"setVars: {var_name}={text}")
