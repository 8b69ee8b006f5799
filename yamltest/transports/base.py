"""Abstract base class for HTTP transports."""

import json
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlencode

from yamltest.config import RunnerConfig
from yamltest.kubectl import KubectlClient
from yamltest.models.response import HttpResponse
from yamltest.models.test_definition import HttpRequest, Source


class HttpTransport(ABC):
    """Abstract base for the ways an HTTP request can reach its target."""

    name: str

    def __init__(self, kubectl: KubectlClient, config: RunnerConfig) -> None:
        """Initialize the transport with cluster access and runtime settings."""
        self.kubectl = kubectl
        self.config = config

    @abstractmethod
    async def send(self, request: HttpRequest, source: Source) -> HttpResponse:
        """Perform the request and return the response.

        Non-2xx statuses are returned, not raised.

        Args:
            request: Preprocessed request (url interpolated, defaults applied)
            source: Where the request originates from

        Returns:
            Response with lower-cased headers and a JSON or text body

        Raises:
            TransportError: If the request could not be carried out

        """


def parse_body(text: str) -> Any:
    """Return the JSON value of a body when it parses, otherwise the text."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def body_text(body: Any) -> str | None:
    """Render a request body for transports that send raw text."""
    if body is None:
        return None
    if isinstance(body, str):
        return body
    return json.dumps(body)


def target_url(request: HttpRequest) -> str:
    """Full request URL including the encoded query parameters."""
    url = request.full_url
    if request.params:
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}{urlencode(request.params, doseq=True)}"
    return url
