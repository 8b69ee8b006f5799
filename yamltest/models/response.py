"""Result data produced by one execution attempt."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field, field_validator

from yamltest.models.base import CamelModel


class HttpResponse(CamelModel):
    """Response returned by every HTTP transport."""

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None

    @field_validator("headers", mode="before")
    @classmethod
    def _normalize_headers(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        normalized: dict[str, str] = {}
        for name, header_value in value.items():
            if isinstance(header_value, list):
                header_value = ", ".join(str(v) for v in header_value)
            normalized[str(name).lower()] = str(header_value)
        return normalized

    def header(self, name: str) -> str | None:
        """Look up a header case-insensitively."""
        return self.headers.get(name.lower())


class CommandResult(CamelModel):
    """Captured output of a local or in-pod command."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int
    json_data: Any = None
    json_parsed: bool = False
    json_parse_error: str | None = None

    @property
    def output(self) -> str:
        """Alias of stdout."""
        return self.stdout


class WaitResult(CamelModel):
    """Value observed by the wait poller when its condition was met."""

    extracted_value: Any = None
