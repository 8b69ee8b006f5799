"""Comparing the bodies of two HTTP responses."""

import asyncio
import json
import logging
from typing import Any

import yaml
from deepdiff import DeepDiff

from yamltest.comparator import deep_equals, to_json
from yamltest.config import RunnerConfig
from yamltest.errors import EvaluationFailure
from yamltest.extraction import apply_set_vars
from yamltest.http_test import describe_request, send_request
from yamltest.jsonpath import remove_paths
from yamltest.kubectl import KubectlClient
from yamltest.models.test_definition import BodyComparisonTest
from yamltest.variables import VariableStore

logger = logging.getLogger(__name__)

Path = tuple[Any, ...]

_EDIT_REPORTS = ("values_changed", "type_changes")
_ARRAY_REPORTS = ("iterable_item_added", "iterable_item_removed")


def _format_path(path: Path) -> str:
    return ".".join(str(part) for part in path) if path else "(root)"


def _path_sort_key(part: Any) -> tuple[bool, int | str]:
    # list indices sort numerically, ahead of mapping keys
    if isinstance(part, int):
        return (False, part)
    return (True, str(part))


def _value_at(data: Any, path: Path) -> Any:
    for part in path:
        data = data[part]
    return data


def _dump_yaml(value: Any) -> str:
    return yaml.safe_dump(value, sort_keys=False, allow_unicode=True).strip()


def format_differences(before: Any, after: Any) -> str:
    """Render the differences between two bodies, one bullet per path.

    Element additions and removals are reported once per containing array as
    a YAML Before/After block. Other changes inside that array are folded into
    it.
    """
    tree = DeepDiff(before, after, view="tree")

    array_paths: set[Path] = set()
    for report in _ARRAY_REPORTS:
        for level in tree.get(report, []):
            array_paths.add(tuple(level.path(output_format="list"))[:-1])

    entries: list[tuple[Path, str]] = []
    for path in array_paths:
        entries.append(
            (
                path,
                f"• {_format_path(path)}:\n\n"
                f"Before:\n{_dump_yaml(_value_at(before, path))}\n"
                f"After:\n{_dump_yaml(_value_at(after, path))}\n",
            )
        )

    def folded(path: Path) -> bool:
        return any(path[: len(prefix)] == prefix for prefix in array_paths)

    for report, template in (
        *((name, "{lhs} => {rhs}") for name in _EDIT_REPORTS),
        ("dictionary_item_added", "Added {rhs}"),
        ("dictionary_item_removed", "Removed {lhs}"),
    ):
        for level in tree.get(report, []):
            path = tuple(level.path(output_format="list"))
            if folded(path):
                continue
            text = template.format(lhs=to_json(level.t1), rhs=to_json(level.t2))
            entries.append((path, f"• {_format_path(path)}: {text}"))

    entries.sort(key=lambda entry: [_path_sort_key(part) for part in entry[0]])
    return "\n".join(text for _, text in entries)


def _as_json(body: Any, label: str) -> Any:
    if not isinstance(body, str):
        return body
    try:
        return json.loads(body)
    except ValueError as e:
        raise EvaluationFailure(f"Failed to parse {label} body as JSON: {e}") from e


def compare_bodies(
    before: Any,
    after: Any,
    *,
    parse_as_json: bool = False,
    remove_json_paths: list[str] | None = None,
) -> None:
    """Compare two bodies after optional JSON parsing and path removal.

    Raises:
        EvaluationFailure: If the bodies differ, with a per-path report

    """
    if parse_as_json:
        before = _as_json(before, "response1")
        after = _as_json(after, "response2")

    if remove_json_paths:
        logger.debug(f"Removing from both bodies: {', '.join(remove_json_paths)}")
        if isinstance(before, dict | list):
            before = remove_paths(before, remove_json_paths)
        if isinstance(after, dict | list):
            after = remove_paths(after, remove_json_paths)

    if deep_equals(before, after):
        logger.debug("✓ Bodies match")
        return

    report = format_differences(before, after)
    if report:
        raise EvaluationFailure(
            f"HTTP response bodies do not match:\n\nDifferences:\n{report}"
        )

    def _pretty(body: Any) -> str:
        return body if isinstance(body, str) else json.dumps(body, indent=2)

    raise EvaluationFailure(
        "HTTP response bodies do not match:\n\n"
        f"Response 1 body:\n{_pretty(before)}\n\nResponse 2 body:\n{_pretty(after)}"
    )


async def execute_body_comparison_test(
    test: BodyComparisonTest,
    store: VariableStore,
    kubectl: KubectlClient,
    config: RunnerConfig,
) -> bool:
    """Send both requests and compare their bodies.

    Returns:
        True when the bodies match

    Raises:
        EvaluationFailure: If the bodies differ
        ExpectationFailure: If either request fails

    """
    comparison = test.body_comparison
    first = comparison.request1
    second = comparison.request2

    prepared1, response1 = await send_request(
        first.http, first.source, store, kubectl, config
    )
    if comparison.delay_seconds > 0:
        logger.debug(
            f"Waiting {comparison.delay_seconds} seconds before the second request"
        )
        await asyncio.sleep(comparison.delay_seconds)
    prepared2, response2 = await send_request(
        second.http, second.source, store, kubectl, config
    )

    logger.debug(
        f"Comparing bodies of {describe_request(prepared1, first.source)} and "
        f"{describe_request(prepared2, second.source)}"
    )
    compare_bodies(
        response1.body,
        response2.body,
        parse_as_json=comparison.parse_as_json,
        remove_json_paths=comparison.remove_json_paths,
    )

    apply_set_vars(test.set_vars, response2, "bodyComparison", store)
    return True
