"""Comparator engine shared by every expectation."""

import json
import logging
import math
import re
from collections.abc import Mapping
from typing import Any

from yamltest.errors import EvaluationFailure, UnknownComparatorError
from yamltest.models.test_definition import Comparison

logger = logging.getLogger(__name__)


def to_json(value: Any) -> str:
    """Serialize a value as compact JSON."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def render_text(value: Any) -> str:
    """Render a value as text, serializing non-strings as JSON."""
    if isinstance(value, str):
        return value
    return to_json(value)


def deep_equals(left: Any, right: Any) -> bool:
    """Structural equality of JSON-shaped values.

    Booleans never equal numbers, sequences compare element-wise and mappings
    compare by key set and value.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    if isinstance(left, list | tuple) or isinstance(right, list | tuple):
        if not (isinstance(left, list | tuple) and isinstance(right, list | tuple)):
            return False
        if len(left) != len(right):
            return False
        return all(deep_equals(a, b) for a, b in zip(left, right, strict=True))

    if isinstance(left, Mapping) or isinstance(right, Mapping):
        if not (isinstance(left, Mapping) and isinstance(right, Mapping)):
            return False
        if set(left) != set(right):
            return False
        return all(deep_equals(left[key], right[key]) for key in left)

    if isinstance(left, int | float) and isinstance(right, int | float):
        return left == right

    return type(left) is type(right) and left == right


def _to_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _evaluate(actual: Any, actual_text: str, comparison: Comparison) -> bool:
    comparator = comparison.comparator
    expected = comparison.value

    if comparator == "exists":
        return actual is not None
    if comparator == "equals":
        return deep_equals(actual, expected)
    if comparator == "contains":
        needle = render_text(expected)
        if comparison.matchword:
            return re.search(rf"\b{re.escape(needle)}\b", actual_text) is not None
        return needle in actual_text
    if comparator == "matches":
        try:
            pattern = re.compile(render_text(expected))
        except re.error as e:
            raise EvaluationFailure(
                f"Invalid regular expression {expected!r}: {e}"
            ) from e
        return pattern.search(actual_text) is not None
    if comparator == "greaterThan":
        return _to_number(actual) > _to_number(expected)
    if comparator == "lessThan":
        return _to_number(actual) < _to_number(expected)

    raise UnknownComparatorError(f"Unknown comparator: {comparator}")


def compare(actual: Any, comparison: Comparison, description: str = "Value") -> None:
    """Apply a comparison to an observed value.

    Args:
        actual: The observed value (None means absent)
        comparison: Comparator, expected value and modifiers
        description: Label used in log and failure messages

    Raises:
        UnknownComparatorError: If the comparator is not supported
        EvaluationFailure: If the (possibly negated) comparison is false

    """
    actual_text = render_text(actual)
    result = _evaluate(actual, actual_text, comparison)
    final = not result if comparison.negate else result

    operation = (
        f"not {comparison.comparator}" if comparison.negate else comparison.comparator
    )
    expected = (
        f" {to_json(comparison.value)}" if comparison.comparator != "exists" else ""
    )
    logger.debug(
        f"{description} expected to {operation}{expected} (found {actual_text}): "
        f"{'pass' if final else 'fail'}"
    )

    if not final:
        raise EvaluationFailure(
            f"{description} comparison failed: expected to {operation}{expected}, "
            f"found {actual_text}"
        )
