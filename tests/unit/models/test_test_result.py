"""Tests for run result models."""

from yamltest.models.test_result import RunResult, TestOutcome


def test_run_result_from_outcomes_counts() -> None:
    """Passed, failed and skipped counts add up to the total."""
    outcomes = [
        TestOutcome(name="a", passed=True, attempts=1),
        TestOutcome(name="b", passed=False, error="boom", attempts=2),
        TestOutcome(name="c", passed=False, skipped=True, error="skipped"),
    ]

    result = RunResult.from_outcomes(outcomes)

    assert result.total == 3
    assert result.passed == 1
    assert result.failed == 1
    assert result.skipped == 1
    assert result.results == outcomes


def test_run_result_serializes_camel_case() -> None:
    """JSON output uses camelCase field names."""
    result = RunResult.from_outcomes(
        [TestOutcome(name="a", passed=True, duration_ms=12, attempts=1)]
    )
    dumped = result.model_dump(by_alias=True)
    assert dumped["results"][0]["durationMs"] == 12
    assert dumped["results"][0]["attempts"] == 1


def test_run_result_empty() -> None:
    """An empty batch has zero counts."""
    result = RunResult.from_outcomes([])
    assert (result.total, result.passed, result.failed, result.skipped) == (0, 0, 0, 0)
