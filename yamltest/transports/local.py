"""Direct HTTP calls from the machine running the tests."""

import asyncio
import logging
import ssl

import aiohttp

from yamltest.errors import TransportError
from yamltest.models.response import HttpResponse
from yamltest.models.test_definition import HttpRequest, Source
from yamltest.transports.base import HttpTransport, parse_body

logger = logging.getLogger(__name__)


def build_ssl_context(request: HttpRequest) -> ssl.SSLContext | None:
    """Build the TLS context for client certificates, CA and verification.

    Returns None when the default context applies.

    Raises:
        TransportError: If a certificate, key or CA file cannot be loaded

    """
    if not (request.skip_ssl_verification or request.cert or request.ca):
        return None

    try:
        context = ssl.create_default_context(cafile=request.ca)
        if request.cert:
            context.load_cert_chain(request.cert, keyfile=request.key)
    except (OSError, ssl.SSLError) as e:
        raise TransportError(f"Failed to load TLS material: {e}") from e

    if request.skip_ssl_verification:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class LocalTransport(HttpTransport):
    """Sends requests with aiohttp."""

    name = "local"

    async def send(self, request: HttpRequest, source: Source) -> HttpResponse:
        """Send the request directly."""
        if not request.url:
            raise TransportError("HTTP request has no url")

        url = request.full_url
        logger.debug(f"Executing local HTTP request: {request.method} {url}")

        kwargs: dict[str, object] = {
            "headers": {k: str(v) for k, v in request.headers.items()},
            "params": {k: str(v) for k, v in request.params.items()},
            "allow_redirects": request.max_redirects > 0,
        }
        if request.max_redirects > 0:
            kwargs["max_redirects"] = request.max_redirects
        if isinstance(request.body, str):
            kwargs["data"] = request.body
        elif request.body is not None:
            kwargs["json"] = request.body

        ssl_context = build_ssl_context(request)
        if ssl_context is not None:
            kwargs["ssl"] = ssl_context

        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(request.method, url, **kwargs) as response:
                    text = await response.text(errors="replace")
                    headers: dict[str, list[str]] = {}
                    for name, value in response.headers.items():
                        headers.setdefault(name.lower(), []).append(value)
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"HTTP request to {url} failed: {e}") from e

        return HttpResponse(status_code=status, headers=headers, body=parse_body(text))
