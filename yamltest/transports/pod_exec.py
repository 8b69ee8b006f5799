"""HTTP requests sent with curl from inside an existing pod."""

import logging
import re

from yamltest.command import shell_quote
from yamltest.errors import TransportError
from yamltest.kubectl import scope_args
from yamltest.models.response import HttpResponse
from yamltest.models.test_definition import HttpRequest, Source
from yamltest.transports.base import HttpTransport, body_text, parse_body, target_url

logger = logging.getLogger(__name__)

RESPONSE_END_MARKER = "---RESPONSE_END---"

_STATUS_LINE = re.compile(r"^HTTP/\d+(?:\.\d+)?\s+(\d{3})")


def build_curl_command(request: HttpRequest) -> str:
    """Render the curl invocation as a single shell command line.

    Every dynamic argument is single-quoted so header values and bodies
    survive the ``sh -c`` hop unchanged.
    """
    args = ["curl", "-s", "-i", "-w", f"\\n{RESPONSE_END_MARKER}\\n"]
    method = request.method.upper()
    if method != "GET":
        args.extend(["-X", method])
    for name, value in request.headers.items():
        args.extend(["-H", f"{name}: {value}"])
    data = body_text(request.body)
    if data is not None:
        args.extend(["--data-raw", data])
    if request.skip_ssl_verification:
        args.append("-k")
    if request.max_redirects > 0:
        args.extend(["-L", "--max-redirs", str(request.max_redirects)])
    args.append(target_url(request))
    return " ".join(shell_quote(arg) for arg in args)


def parse_curl_response(output: str) -> tuple[int, dict[str, str], str]:
    """Split ``curl -i`` output into status code, headers and body.

    Interim responses (``100 Continue``, followed redirects) are skipped so
    the last response wins.

    Raises:
        TransportError: If the output holds no response

    """
    response = output.split(RESPONSE_END_MARKER)[0].strip()
    if not response:
        raise TransportError("No response data found in curl output")

    status_code = 200
    headers: dict[str, str] = {}
    lines = response.replace("\r\n", "\n").split("\n")
    index = 0

    while index < len(lines):
        match = _STATUS_LINE.match(lines[index])
        if match is None:
            break
        status_code = int(match.group(1))
        headers = {}
        index += 1
        while index < len(lines) and lines[index].strip():
            name, sep, value = lines[index].partition(":")
            if sep and name.strip():
                headers[name.strip().lower()] = value.strip()
            index += 1
        index += 1

    body = "\n".join(lines[index:]) if index else response
    return status_code, headers, body.strip()


class PodExecTransport(HttpTransport):
    """Runs curl in the source pod through ``kubectl exec``."""

    name = "pod-exec"

    async def send(self, request: HttpRequest, source: Source) -> HttpResponse:
        """Send the request from the source pod."""
        if source.selector is None:
            raise TransportError("Source selector is required for pod-exec mode")

        selector = source.selector
        target = await self.kubectl.resolve_target(selector)
        curl = build_curl_command(request)

        args = [*scope_args(selector), "exec", target]
        if source.container:
            args.extend(["-c", source.container])
        args.extend(["--", "sh", "-c", curl])

        logger.debug(f"Executing curl via pod-exec in {target}: {curl}")
        result = await self.kubectl.run(args, check=False)

        if result.returncode == 0:
            status_code, headers, body = parse_curl_response(result.stdout)
            return HttpResponse(
                status_code=status_code, headers=headers, body=parse_body(body)
            )

        logger.debug(
            f"Pod-exec curl exited with code {result.returncode}, "
            "reconstructing response"
        )
        status_code, headers, body = 500, {}, ""
        if result.stdout.strip():
            try:
                status_code, headers, body = parse_curl_response(result.stdout)
            except TransportError:
                body = result.stdout.strip()
        if result.stderr:
            body = f"{body}\n{result.stderr}"

        return HttpResponse(
            status_code=status_code, headers=headers, body=parse_body(body)
        )
