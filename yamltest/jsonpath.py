"""JSONPath queries over parsed JSON bodies."""

import copy
import logging
from functools import lru_cache
from typing import Any

from jsonpath_ng.ext import parse
from jsonpath_ng.jsonpath import DatumInContext, JSONPath

from yamltest.errors import InvalidJsonPathError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def compile_path(expression: str) -> JSONPath:
    """Parse a JSONPath expression, supporting filter and arithmetic extensions.

    Raises:
        InvalidJsonPathError: If the expression cannot be parsed

    """
    try:
        return parse(expression)
    except Exception as e:
        raise InvalidJsonPathError(f'Invalid JSONPath "{expression}": {e}') from e


def find_values(expression: str, data: Any) -> list[Any]:
    """Return every value matched by a JSONPath expression, in document order."""
    return [match.value for match in compile_path(expression).find(data)]


def _list_index(match: DatumInContext, parent: list[Any]) -> int | None:
    segment = match.path
    index = getattr(segment, "index", None)
    if index is None:
        indices = getattr(segment, "indices", None)
        if indices and len(indices) == 1:
            index = indices[0]
    if isinstance(index, int) and parent:
        return index % len(parent)
    for position, item in enumerate(parent):
        if item is match.value:
            return position
    return None


def remove_paths(data: Any, expressions: list[str]) -> Any:
    """Return a deep copy of ``data`` without the values matched by the expressions.

    Paths that match nothing are ignored. Array elements are removed from the
    highest index down so earlier removals do not shift later ones.
    """
    if not expressions:
        return data

    filtered = copy.deepcopy(data)
    for expression in expressions:
        parents: dict[int, Any] = {}
        keys: dict[int, set[Any]] = {}

        for match in compile_path(expression).find(filtered):
            if match.context is None:
                continue
            parent = match.context.value
            if isinstance(parent, dict):
                fields = getattr(match.path, "fields", ())
                targets = {field for field in fields if field in parent}
            elif isinstance(parent, list):
                index = _list_index(match, parent)
                targets = {index} if index is not None else set()
            else:
                continue
            parents[id(parent)] = parent
            keys.setdefault(id(parent), set()).update(targets)

        for parent_id, targets in keys.items():
            parent = parents[parent_id]
            if isinstance(parent, list):
                for index in sorted(targets, reverse=True):
                    del parent[index]
            else:
                for key in targets:
                    del parent[key]
        logger.debug(f"Removed values matching {expression}")

    return filtered
