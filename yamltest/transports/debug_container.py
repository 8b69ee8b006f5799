"""HTTP requests sent from an ephemeral debug container attached to a pod."""

import json
import logging
from typing import Any

from yamltest.errors import KubectlError, TransportError
from yamltest.kubectl import scope_args
from yamltest.models.response import HttpResponse
from yamltest.models.test_definition import HttpRequest, Source
from yamltest.transports.base import HttpTransport, body_text, target_url

logger = logging.getLogger(__name__)

RESPONSE_START = "HTTP_RESPONSE_START"
RESPONSE_END = "HTTP_RESPONSE_END"

_REQUEST_SCRIPT = """\
import json
import ssl
import urllib.error
import urllib.request

config = json.loads(__CONFIG__)


def emit(payload):
    print("HTTP_RESPONSE_START")
    print(json.dumps(payload))
    print("HTTP_RESPONSE_END")


class NoRedirect(urllib.request.HTTPRedirectHandler):
    def redirect_request(self, *args, **kwargs):
        return None


context = ssl.create_default_context()
if config["insecure"]:
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE

handlers = [urllib.request.HTTPSHandler(context=context)]
if config["max_redirects"] == 0:
    handlers.append(NoRedirect())
opener = urllib.request.build_opener(*handlers)

data = config["body"].encode() if config["body"] is not None else None
request = urllib.request.Request(
    config["url"], data=data, headers=config["headers"], method=config["method"]
)

try:
    try:
        response = opener.open(request, timeout=config["timeout"])
        status, headers, raw = response.status, response.headers, response.read()
    except urllib.error.HTTPError as error:
        status, headers, raw = error.code, error.headers, error.read()
except Exception as error:
    emit({"error": True, "message": str(error), "statusCode": 0, "headers": {}})
else:
    text = raw.decode("utf-8", "replace")
    try:
        body = json.loads(text)
    except ValueError:
        body = text
    emit(
        {
            "statusCode": status,
            "headers": {k.lower(): v for k, v in headers.items()},
            "body": body,
        }
    )
"""


def build_request_script(request: HttpRequest, timeout: float = 30.0) -> str:
    """Return a self-contained Python program performing the request.

    The program prints the response as JSON between the
    ``HTTP_RESPONSE_START`` and ``HTTP_RESPONSE_END`` marker lines.
    """
    config = {
        "url": target_url(request),
        "method": request.method.upper(),
        "headers": {k: str(v) for k, v in request.headers.items()},
        "body": body_text(request.body),
        "insecure": request.skip_ssl_verification,
        "max_redirects": request.max_redirects,
        "timeout": timeout,
    }
    return _REQUEST_SCRIPT.replace("__CONFIG__", repr(json.dumps(config)))


def extract_response(output: str) -> dict[str, Any]:
    """Extract the JSON response printed between the marker lines.

    Raises:
        TransportError: If the markers are missing or the block is not JSON

    """
    start = output.find(RESPONSE_START)
    end = output.find(RESPONSE_END, start + 1) if start >= 0 else -1
    if start < 0 or end < 0:
        raise TransportError("Could not find HTTP response markers in the output")

    block = output[start + len(RESPONSE_START) : end].strip()
    try:
        payload = json.loads(block)
    except ValueError as e:
        raise TransportError(f"Failed to parse JSON response: {e}") from e
    if not isinstance(payload, dict):
        raise TransportError("Failed to parse JSON response: expected an object")
    return payload


class DebugContainerTransport(HttpTransport):
    """Runs the request inside ``kubectl debug`` next to the target pod."""

    name = "debug-container"

    async def send(self, request: HttpRequest, source: Source) -> HttpResponse:
        """Send the request from an ephemeral container in the selected pod."""
        if source.selector is None:
            raise TransportError("Kubernetes selector is required for pod sources")

        selector = source.selector
        pod = await self.kubectl.resolve_pod_name(selector)
        script = build_request_script(request)

        args = [
            "debug",
            "-i",
            "--quiet",
            *scope_args(selector),
            pod,
            f"--image={self.config.debug_image}",
            "--profile=general",
        ]
        if source.container:
            args.append(f"--target={source.container}")
        args.extend(["--", "python3", "-c", script])

        namespace = selector.metadata.namespace or "default"
        logger.debug(
            f"Executing {request.method} {request.full_url} "
            f"from debug container in {namespace}/{pod}"
        )
        result = await self.kubectl.run(args, check=False, input_text="")

        try:
            payload = extract_response(result.stdout)
        except TransportError:
            if result.returncode != 0:
                raise KubectlError(
                    f"Failed to debug pod {namespace}/{pod}: "
                    f"{result.stderr.strip() or result.stdout.strip()}",
                    returncode=result.returncode,
                    stdout=result.stdout,
                    stderr=result.stderr,
                ) from None
            raise

        if payload.get("error"):
            raise TransportError(
                f"HTTP request from {namespace}/{pod} failed: {payload.get('message')}"
            )

        return HttpResponse(
            status_code=payload.get("statusCode", 0),
            headers=payload.get("headers") or {},
            body=payload.get("body"),
        )
