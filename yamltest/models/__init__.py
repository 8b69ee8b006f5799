"""Data models for test definitions, response data, and results."""

from yamltest.models.response import CommandResult, HttpResponse, WaitResult
from yamltest.models.test_definition import (
    BodyComparisonTest,
    CommandTest,
    Comparison,
    ExtractionRule,
    HttpRequest,
    HttpTest,
    Selector,
    Source,
    TestDefinition,
    WaitTest,
    parse_test_definition,
)
from yamltest.models.test_result import RunResult, TestOutcome

__all__ = [
    "BodyComparisonTest",
    "CommandResult",
    "CommandTest",
    "Comparison",
    "ExtractionRule",
    "HttpRequest",
    "HttpResponse",
    "HttpTest",
    "RunResult",
    "Selector",
    "Source",
    "TestDefinition",
    "TestOutcome",
    "WaitResult",
    "WaitTest",
    "parse_test_definition",
]
