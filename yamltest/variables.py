"""Shared store for values captured by setVars and their interpolation."""

import logging
import os
import re
from collections.abc import Mapping

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(
    r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))"
)


class VariableStore:
    """Name-keyed string values shared across the steps of one run.

    Lookups fall back to the process environment so definitions can reference
    variables exported before the run started. Writes never touch the process
    environment; commands receive a snapshot through ``environment()``.
    """

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        """Initialize the store, optionally with pre-seeded values."""
        self._values: dict[str, str] = dict(initial or {})

    def set(self, name: str, value: str) -> None:
        """Publish a value, overwriting any previous value of the same name."""
        self._values[name] = value

    def get(self, name: str) -> str | None:
        """Return a captured value, falling back to the process environment."""
        if name in self._values:
            return self._values[name]
        return os.environ.get(name)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of every value captured during the run."""
        return dict(self._values)

    def clear(self) -> None:
        """Forget every captured value."""
        self._values.clear()

    def __contains__(self, name: object) -> bool:
        """Check whether a value was captured under this name."""
        return name in self._values

    def __len__(self) -> int:
        """Return the number of captured values."""
        return len(self._values)

    def interpolate(self, text: str) -> str:
        """Replace ``$NAME`` and ``${NAME}`` references with stored values.

        Unresolved references are left verbatim and logged as a warning.

        Args:
            text: String possibly containing variable references

        Returns:
            The string with every resolvable reference substituted

        """

        def _replace(match: re.Match[str]) -> str:
            name = match.group(1) or match.group(2)
            value = self.get(name)
            if value is None:
                logger.warning(f"Variable {name} is not set")
                return match.group(0)
            return value

        return VARIABLE_PATTERN.sub(_replace, text)

    def environment(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        """Build a subprocess environment from the process, store and extras."""
        env = dict(os.environ)
        env.update(self._values)
        if extra:
            env.update(extra)
        return env


_default_store = VariableStore()


def default_store() -> VariableStore:
    """Return the process-wide store used when callers do not pass one."""
    return _default_store


def get_captured_variables() -> dict[str, str]:
    """Return a snapshot of the values captured in the default store."""
    return _default_store.snapshot()


def clear_captured_variables() -> None:
    """Clear the default store."""
    _default_store.clear()
