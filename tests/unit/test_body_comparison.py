"""Tests for HTTP body comparison."""

import pytest
from aioresponses import aioresponses

from yamltest.body_comparison import (
    compare_bodies,
    execute_body_comparison_test,
    format_differences,
)
from yamltest.config import RunnerConfig
from yamltest.errors import EvaluationFailure, InvalidSourceForKindError
from yamltest.kubectl import KubectlClient
from yamltest.models.test_definition import BodyComparisonTest, parse_test_definition
from yamltest.variables import VariableStore


def _comparison_test(**extra: object) -> BodyComparisonTest:
    raw: dict = {
        "name": "blue/green parity",
        "bodyComparison": {
            "request1": {"http": {"url": "http://blue.local", "path": "/items"}},
            "request2": {"http": {"url": "http://green.local", "path": "/items"}},
            "parseAsJson": True,
            "removeJsonPaths": ["$.generatedAt"],
        },
    }
    raw.update(extra)
    test = parse_test_definition(raw)
    assert isinstance(test, BodyComparisonTest)
    return test


def test_format_differences_reports_changes() -> None:
    """Changed, added and removed keys each get a bullet."""
    report = format_differences(
        {"a": 1, "b": "x", "gone": True},
        {"a": 2, "b": "x", "new": None},
    )
    assert "• a: 1 => 2" in report
    assert "• new: Added null" in report
    assert "• gone: Removed true" in report


def test_format_differences_arrays_as_yaml_blocks() -> None:
    """Element additions show the whole array before and after."""
    report = format_differences({"tags": ["a", "b"]}, {"tags": ["a", "b", "c"]})
    assert report.startswith("• tags:\n\nBefore:\n- a\n- b\nAfter:\n- a\n- b\n- c")


def test_format_differences_orders_list_indices_numerically() -> None:
    """Index 2 is reported before index 10."""
    before = {"items": list(range(12))}
    after = {"items": [*range(2), 20, *range(3, 10), 100, 11]}

    report = format_differences(before, after)

    assert report.splitlines() == ["• items.2: 2 => 20", "• items.10: 10 => 100"]


def test_compare_bodies_equal_after_removal() -> None:
    """Removed paths do not count as differences."""
    compare_bodies(
        '{"id": 1, "generatedAt": "10:00"}',
        '{"id": 1, "generatedAt": "10:05"}',
        parse_as_json=True,
        remove_json_paths=["$.generatedAt"],
    )


def test_compare_bodies_mismatch_message() -> None:
    """A mismatch lists the differing paths."""
    with pytest.raises(EvaluationFailure) as exc_info:
        compare_bodies({"id": 1}, {"id": 2})
    assert str(exc_info.value) == (
        "HTTP response bodies do not match:\n\nDifferences:\n• id: 1 => 2"
    )


def test_compare_bodies_text_mismatch() -> None:
    """Text bodies that differ are compared as strings."""
    with pytest.raises(EvaluationFailure) as exc_info:
        compare_bodies("hello", "world")
    assert "HTTP response bodies do not match" in str(exc_info.value)


def test_compare_bodies_invalid_json() -> None:
    """parseAsJson requires both bodies to be JSON."""
    with pytest.raises(EvaluationFailure) as exc_info:
        compare_bodies('{"ok": true}', "<html>", parse_as_json=True)
    assert "Failed to parse response2 body as JSON" in str(exc_info.value)


async def test_execute_body_comparison_test_passes(
    store: VariableStore, runner_config: RunnerConfig
) -> None:
    """Two responses equal after removal pass."""
    with aioresponses() as m:
        m.get(
            "http://blue.local/items",
            payload={"items": [1, 2], "generatedAt": "a"},
        )
        m.get(
            "http://green.local/items",
            payload={"items": [1, 2], "generatedAt": "b"},
        )

        result = await execute_body_comparison_test(
            _comparison_test(), store, KubectlClient(), runner_config
        )

    assert result is True


async def test_execute_body_comparison_test_fails(
    store: VariableStore, runner_config: RunnerConfig
) -> None:
    """Different responses fail with the differing path."""
    with aioresponses() as m:
        m.get("http://blue.local/items", payload={"items": [1, 2]})
        m.get("http://green.local/items", payload={"items": [1, 3]})

        with pytest.raises(EvaluationFailure) as exc_info:
            await execute_body_comparison_test(
                _comparison_test(), store, KubectlClient(), runner_config
            )

    assert "• items.1: 2 => 3" in str(exc_info.value)


async def test_execute_body_comparison_test_rejects_set_vars(
    store: VariableStore, runner_config: RunnerConfig
) -> None:
    """setVars sources are not available to body comparison tests."""
    test = _comparison_test(setVars={"ID": {"jsonPath": "$.items[0]"}})
    with aioresponses() as m:
        m.get("http://blue.local/items", payload={"items": [1]})
        m.get("http://green.local/items", payload={"items": [1]})

        with pytest.raises(InvalidSourceForKindError):
            await execute_body_comparison_test(
                test, store, KubectlClient(), runner_config
            )
