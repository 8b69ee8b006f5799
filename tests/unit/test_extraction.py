"""Tests for setVars extraction."""

import pytest

from yamltest.errors import (
    ExtractionError,
    InvalidSourceForKindError,
    NoResultsError,
)
from yamltest.extraction import apply_set_vars, extract_value
from yamltest.models.response import CommandResult, HttpResponse, WaitResult
from yamltest.models.test_definition import ExtractionRule
from yamltest.variables import VariableStore


def _rule(raw: dict) -> ExtractionRule:
    return ExtractionRule.model_validate(raw)


@pytest.fixture
def response() -> HttpResponse:
    """Create an HTTP response with a JSON body and a header."""
    return HttpResponse(
        status_code=201,
        headers={"Location": "/items/42"},
        body={"id": 42, "tags": ["a", "b"], "owner": {"name": "ops"}},
    )


def test_apply_set_vars_json_path_number(
    response: HttpResponse, store: VariableStore
) -> None:
    """Numbers are published as their JSON text."""
    apply_set_vars({"ID": _rule({"jsonPath": "$.id"})}, response, "http", store)
    assert store.get("ID") == "42"


def test_apply_set_vars_multiple_matches_serialized(
    response: HttpResponse, store: VariableStore
) -> None:
    """Several matches are published as a JSON array."""
    apply_set_vars({"TAGS": _rule({"jsonPath": "$.tags[*]"})}, response, "http", store)
    assert store.get("TAGS") == '["a","b"]'


def test_apply_set_vars_object_serialized(
    response: HttpResponse, store: VariableStore
) -> None:
    """Objects are published as compact JSON."""
    apply_set_vars({"OWNER": _rule({"jsonPath": "$.owner"})}, response, "http", store)
    assert store.get("OWNER") == '{"name":"ops"}'


def test_apply_set_vars_http_sources(
    response: HttpResponse, store: VariableStore
) -> None:
    """Header, status code and body sources read the response."""
    apply_set_vars(
        {
            "LOC": _rule({"header": "location"}),
            "STATUS": _rule({"statusCode": True}),
            "BODY": _rule({"body": True}),
        },
        response,
        "http",
        store,
    )
    assert store.get("LOC") == "/items/42"
    assert store.get("STATUS") == "201"
    assert store.get("BODY") == '{"id":42,"tags":["a","b"],"owner":{"name":"ops"}}'


def test_apply_set_vars_json_path_on_string_body(store: VariableStore) -> None:
    """A string body is parsed as JSON before querying."""
    response = HttpResponse(status_code=200, body='{"token": "abc"}')
    apply_set_vars({"T": _rule({"jsonPath": "$.token"})}, response, "http", store)
    assert store.get("T") == "abc"


def test_apply_set_vars_no_results(
    response: HttpResponse, store: VariableStore
) -> None:
    """A JSONPath with no results fails extraction."""
    with pytest.raises(NoResultsError) as exc_info:
        apply_set_vars(
            {"X": _rule({"jsonPath": "$.missing"})}, response, "http", store
        )
    assert 'jsonPath "$.missing" returned no results' in str(exc_info.value)


def test_apply_set_vars_missing_header(
    response: HttpResponse, store: VariableStore
) -> None:
    """A missing header fails extraction."""
    with pytest.raises(ExtractionError) as exc_info:
        apply_set_vars({"X": _rule({"header": "x-nope"})}, response, "http", store)
    assert 'header "x-nope" not found' in str(exc_info.value)


@pytest.mark.parametrize(
    ("raw", "kind"),
    [
        ({"header": "location"}, "command"),
        ({"statusCode": True}, "command"),
        ({"stdout": True}, "http"),
        ({"exitCode": True}, "wait"),
        ({"value": True}, "http"),
        ({"jsonPath": "$.id"}, "bodyComparison"),
    ],
)
def test_extract_value_rejects_source_for_kind(raw: dict, kind: str) -> None:
    """Sources unavailable to a test kind raise InvalidSourceForKindError."""
    data = CommandResult(stdout="x", exit_code=0)
    with pytest.raises(InvalidSourceForKindError):
        extract_value("VAR", _rule(raw), data, kind)  # type: ignore[arg-type]


def test_apply_set_vars_command_sources(store: VariableStore) -> None:
    """Command results provide stdout, stderr, exit code and regex captures."""
    result = CommandResult(
        stdout="created id=17\n", stderr="warning", exit_code=3
    )
    apply_set_vars(
        {
            "OUT": _rule({"stdout": True}),
            "ERR": _rule({"stderr": True}),
            "CODE": _rule({"exitCode": True}),
            "ID": _rule({"regex": {"pattern": r"id=(\d+)"}}),
            "WARN": _rule({"regex": {"pattern": "warn(ing)", "source": "stderr"}}),
        },
        result,
        "command",
        store,
    )
    assert store.get("OUT") == "created id=17"
    assert store.get("ERR") == "warning"
    assert store.get("CODE") == "3"
    assert store.get("ID") == "17"
    assert store.get("WARN") == "ing"


def test_apply_set_vars_command_json_requires_parse(store: VariableStore) -> None:
    """jsonPath on a command needs parsed JSON output."""
    result = CommandResult(stdout='{"a": 1}', exit_code=0)
    with pytest.raises(ExtractionError) as exc_info:
        apply_set_vars({"A": _rule({"jsonPath": "$.a"})}, result, "command", store)
    assert "parseJson" in str(exc_info.value)


def test_apply_set_vars_command_json(store: VariableStore) -> None:
    """jsonPath reads parsed command output."""
    result = CommandResult(
        stdout='{"a": 1}', exit_code=0, json_data={"a": 1}, json_parsed=True
    )
    apply_set_vars({"A": _rule({"jsonPath": "$.a"})}, result, "command", store)
    assert store.get("A") == "1"


def test_apply_set_vars_regex_no_match(store: VariableStore) -> None:
    """A regex that does not match fails extraction."""
    result = CommandResult(stdout="nothing here", exit_code=0)
    with pytest.raises(ExtractionError) as exc_info:
        apply_set_vars(
            {"ID": _rule({"regex": {"pattern": r"id=(\d+)"}})},
            result,
            "command",
            store,
        )
    assert "did not match" in str(exc_info.value)


def test_apply_set_vars_wait_value(store: VariableStore) -> None:
    """Wait tests publish the value observed by the poller."""
    apply_set_vars(
        {"PHASE": _rule({"value": True})},
        WaitResult(extracted_value="Running"),
        "wait",
        store,
    )
    assert store.get("PHASE") == "Running"


def test_apply_set_vars_stops_at_first_failure(
    response: HttpResponse, store: VariableStore
) -> None:
    """Values published before a failing rule are kept."""
    with pytest.raises(NoResultsError):
        apply_set_vars(
            {
                "FIRST": _rule({"statusCode": True}),
                "SECOND": _rule({"jsonPath": "$.nope"}),
                "THIRD": _rule({"header": "location"}),
            },
            response,
            "http",
            store,
        )
    assert store.get("FIRST") == "201"
    assert "THIRD" not in store
