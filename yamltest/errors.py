"""Exception types for yamltest.

Exception Hierarchy:
    YamlTestError (base)
    ├── ConfigurationError - Invalid test definition, never retried
    │   ├── UnknownTestKindError
    │   ├── AmbiguousTestKindError
    │   ├── UnknownComparatorError
    │   ├── InvalidJsonPathError
    │   └── InvalidSourceForKindError (also an ExtractionError)
    ├── ExpectationFailure - Retryable test failure
    │   ├── EvaluationFailure - Comparator or expectation mismatch
    │   ├── ExtractionError - setVars could not extract a value
    │   │   └── NoResultsError
    │   └── TransportError - Subprocess, tunnel or network failure
    │       └── KubectlError
    └── WaitError - Polling gave up
        ├── WaitTimeoutError
        └── RetriesExhaustedError
"""

from __future__ import annotations

from typing import Any


class YamlTestError(Exception):
    """Base exception for all yamltest errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.

    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize YamlTestError."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the human-readable message."""
        return self.message


class ConfigurationError(YamlTestError):
    """The test definition itself is invalid."""


class UnknownTestKindError(ConfigurationError):
    """No test kind key is present in the definition."""


class AmbiguousTestKindError(ConfigurationError):
    """More than one test kind key is present in the definition."""


class UnknownComparatorError(ConfigurationError):
    """A comparison names a comparator that does not exist."""


class InvalidJsonPathError(ConfigurationError):
    """A JSONPath expression could not be parsed."""


class ExpectationFailure(YamlTestError):
    """A test ran but did not meet its expectations."""


class EvaluationFailure(ExpectationFailure):
    """A comparison or expectation evaluated to false."""


class ExtractionError(ExpectationFailure):
    """A setVars rule could not produce a value."""


class NoResultsError(ExtractionError):
    """A JSONPath extraction matched nothing."""


class InvalidSourceForKindError(ConfigurationError, ExtractionError):
    """An extraction rule was used with a test kind that cannot provide it."""


class TransportError(ExpectationFailure):
    """The request or command could not be carried out."""


class KubectlError(TransportError):
    """A kubectl invocation failed.

    Attributes:
        returncode: Exit code of the kubectl process.
        stdout: Captured standard output.
        stderr: Captured standard error.

    """

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Initialize KubectlError with the captured process output."""
        super().__init__(
            message,
            details={"returncode": returncode} if returncode is not None else None,
        )
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class WaitError(YamlTestError):
    """Waiting for a Kubernetes resource gave up."""


class WaitTimeoutError(WaitError):
    """The polling deadline passed before the condition was met."""


class RetriesExhaustedError(WaitError):
    """The polling retry budget ran out before the condition was met."""
