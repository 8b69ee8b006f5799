"""HTTP requests tunnelled through ``kubectl port-forward``."""

import asyncio
import logging
import socket
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlsplit

from yamltest.errors import TransportError
from yamltest.kubectl import scope_args
from yamltest.models.response import HttpResponse
from yamltest.models.test_definition import HttpRequest, Selector, Source
from yamltest.transports.base import HttpTransport
from yamltest.transports.local import LocalTransport

logger = logging.getLogger(__name__)

READY_SIGNAL = "Forwarding from"


def find_free_port() -> int:
    """Ask the OS for an unused local TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


class PortForwardTransport(HttpTransport):
    """Opens a tunnel to the selected resource and sends the request locally."""

    name = "port-forward"

    async def send(self, request: HttpRequest, source: Source) -> HttpResponse:
        """Send the request through a port-forward tunnel."""
        if source.selector is None:
            raise TransportError("Kubernetes selector is required for pod sources")

        parsed = urlsplit(request.url or "")
        scheme = parsed.scheme or request.scheme
        if parsed.port:
            remote_port = parsed.port
        elif isinstance(request.port, int):
            remote_port = request.port
        else:
            remote_port = 443 if scheme == "https" else 80

        async with self.tunnel(source.selector, remote_port) as local_port:
            forwarded = request.model_copy(
                update={"url": f"{scheme}://localhost:{local_port}"}
            )
            logger.debug(f"Executing HTTP request via tunnel: {forwarded.full_url}")
            return await LocalTransport(self.kubectl, self.config).send(
                forwarded, source
            )

    @asynccontextmanager
    async def tunnel(self, selector: Selector, remote_port: int) -> AsyncIterator[int]:
        """Keep a port-forward open for the duration of the block.

        Yields:
            The local port forwarded to ``remote_port``

        Raises:
            TransportError: If kubectl exits or the tunnel is not ready in time

        """
        target = await self.kubectl.resolve_target(selector)
        local_port = find_free_port()
        args = [
            *scope_args(selector),
            "port-forward",
            target,
            f"{local_port}:{remote_port}",
        ]
        logger.debug(f"Starting port-forward: {self.kubectl.binary} {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                self.kubectl.binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError(f"Port-forward process error: {e}") from e

        ready = asyncio.Event()
        errors: list[str] = []
        readers = [
            asyncio.create_task(self._watch(process.stdout, "stdout", ready, errors)),
            asyncio.create_task(self._watch(process.stderr, "stderr", ready, errors)),
        ]

        try:
            await self._wait_until_ready(process, ready, errors)
            await asyncio.sleep(0.1)
            yield local_port
        finally:
            await self._terminate(process)
            for reader in readers:
                reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)

    @staticmethod
    async def _watch(
        stream: asyncio.StreamReader | None,
        label: str,
        ready: asyncio.Event,
        errors: list[str],
    ) -> None:
        if stream is None:
            return
        while line := await stream.readline():
            text = line.decode(errors="replace").rstrip()
            logger.debug(f"Port-forward {label}: {text}")
            if READY_SIGNAL in text:
                ready.set()
            elif "error" in text.lower():
                errors.append(text)

    async def _wait_until_ready(
        self,
        process: asyncio.subprocess.Process,
        ready: asyncio.Event,
        errors: list[str],
    ) -> None:
        ready_task = asyncio.create_task(ready.wait())
        exit_task = asyncio.create_task(process.wait())
        try:
            await asyncio.wait(
                {ready_task, exit_task},
                timeout=self.config.port_forward_ready_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (ready_task, exit_task):
                task.cancel()
            await asyncio.gather(ready_task, exit_task, return_exceptions=True)

        if ready.is_set():
            logger.debug("Port-forward is ready")
            return
        if process.returncode is not None:
            detail = f": {'; '.join(errors)}" if errors else ""
            raise TransportError(
                f"Port-forward exited with code {process.returncode}{detail}"
            )
        raise TransportError("Port-forward timed out waiting to become ready")

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        logger.debug("Cleaning up port-forward process")
        try:
            process.terminate()
            try:
                await asyncio.wait_for(
                    process.wait(), timeout=self.config.port_forward_kill_timeout
                )
            except asyncio.TimeoutError:
                logger.debug("Port-forward did not exit after SIGTERM, killing it")
                process.kill()
                await process.wait()
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.warning(f"Error killing port-forward process: {e}")
