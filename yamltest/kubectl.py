"""Async access to the cluster through the kubectl binary."""

import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from yamltest.errors import ConfigurationError, KubectlError
from yamltest.models.test_definition import Selector, Source
from yamltest.variables import VariableStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KubectlResult:
    """Completed kubectl invocation."""

    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class ServiceEndpoint:
    """Externally reachable address of a LoadBalancer service."""

    ip: str
    port: int


def interpolate_context(source: Source, store: VariableStore) -> Source:
    """Return the source with its selector context resolved from the store."""
    if source.selector is None or not source.selector.context:
        return source
    selector = source.selector.model_copy(
        update={"context": store.interpolate(source.selector.context)}
    )
    return source.model_copy(update={"selector": selector})


def scope_args(selector: Selector) -> list[str]:
    """Return the ``--context`` and ``-n`` arguments for a selector."""
    args: list[str] = []
    if selector.context:
        args.append(f"--context={selector.context}")
    if selector.metadata.namespace:
        args.extend(["-n", selector.metadata.namespace])
    return args


def target_args(selector: Selector) -> list[str]:
    """Return the resource kind and name or label selector arguments."""
    kind = selector.kind.lower()
    if selector.metadata.name:
        return [kind, selector.metadata.name]
    return [kind, "-l", selector.label_selector or ""]


class KubectlClient:
    """Runs kubectl as a subprocess and interprets its JSON output."""

    def __init__(self, binary: str = "kubectl") -> None:
        """Initialize the client with the kubectl executable to use."""
        self.binary = binary

    async def run(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
        input_text: str | None = None,
    ) -> KubectlResult:
        """Run kubectl and capture its output.

        Args:
            args: Arguments following the binary name
            check: Raise KubectlError on a non-zero exit code
            input_text: Optional text written to stdin

        Returns:
            Exit code and decoded stdout/stderr

        Raises:
            KubectlError: If kubectl cannot be started, or exits non-zero with check

        """
        logger.debug(f"kubectl {' '.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdin=asyncio.subprocess.PIPE if input_text is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise KubectlError(f"Failed to start {self.binary}: {e}") from e

        stdout, stderr = await process.communicate(
            input_text.encode() if input_text is not None else None
        )
        returncode = process.returncode if process.returncode is not None else -1
        result = KubectlResult(
            returncode=returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

        if check and result.returncode != 0:
            raise KubectlError(
                f"kubectl {' '.join(args)} failed with exit code {result.returncode}: "
                f"{result.stderr.strip()}",
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    async def get_json(self, selector: Selector) -> Any:
        """Fetch the selected resource (or list) as parsed JSON.

        Raises:
            KubectlError: If kubectl fails or prints something other than JSON

        """
        result = await self.run(
            [*scope_args(selector), "get", *target_args(selector), "-o", "json"]
        )
        if not result.stdout.strip():
            raise KubectlError(f"No output from kubectl for {selector.describe()}")
        try:
            return json.loads(result.stdout)
        except ValueError as e:
            raise KubectlError(
                f"Invalid JSON from kubectl for {selector.describe()}: {e}"
            ) from e

    async def resolve_pod_name(self, selector: Selector) -> str:
        """Return the pod name for a selector.

        Label selectors resolve to the first matching pod. Several matches are
        logged as a warning since the choice depends on list order.

        Raises:
            KubectlError: If no pod matches the labels

        """
        if selector.metadata.name:
            return selector.metadata.name

        labels = selector.label_selector
        pods = await self.get_json(selector.model_copy(update={"kind": "pods"}))
        items = pods.get("items", []) if isinstance(pods, dict) else []
        names = [
            item.get("metadata", {}).get("name")
            for item in items
            if isinstance(item, dict)
        ]
        names = [name for name in names if name]
        namespace = selector.metadata.namespace or "default"

        if not names:
            raise KubectlError(
                f"No pods found matching labels {labels} in namespace {namespace}"
            )
        if len(names) > 1:
            logger.warning(
                f"{len(names)} pods match labels {labels} in namespace {namespace}; "
                f"using the first one ({names[0]})"
            )
        logger.debug(f"Resolved labels {labels} to pod {names[0]}")
        return names[0]

    async def resolve_target(self, selector: Selector) -> str:
        """Return the ``exec``/``port-forward`` target for a selector.

        Named pods are addressed by name, other named resources as
        ``kind/name``, label selectors resolve to a concrete pod.
        """
        name = selector.metadata.name
        if not name:
            return await self.resolve_pod_name(selector)
        kind = selector.kind.lower()
        return name if kind in ("pod", "pods") else f"{kind}/{name}"

    async def discover_load_balancer(
        self, selector: Selector, port: int | str | None = None
    ) -> ServiceEndpoint:
        """Find the ingress address and port of a LoadBalancer service.

        Args:
            selector: Selector of kind Service
            port: Port number, port name, or index into spec.ports (first if None)

        Raises:
            ConfigurationError: If the selector is not a Service or the port is unknown
            KubectlError: If the service has no ingress address or no ports

        """
        if selector.kind != "Service":
            raise ConfigurationError(
                'Selector must be of kind "Service" for LoadBalancer IP discovery'
            )

        service = await self.get_json(selector)
        if isinstance(service, dict) and service.get("kind") == "List":
            items = service.get("items") or []
            service = items[0] if items else {}

        description = selector.describe()
        ingress = service.get("status", {}).get("loadBalancer", {}).get("ingress") or []
        address = None
        if ingress:
            address = ingress[0].get("ip") or ingress[0].get("hostname")
        if not address:
            raise KubectlError(f"No LoadBalancer IP/hostname found for {description}")

        ports = service.get("spec", {}).get("ports") or []
        if not ports:
            raise KubectlError(f"No ports defined for {description}")

        resolved = self._select_port(ports, port)
        logger.debug(f"Discovered LoadBalancer endpoint {address}:{resolved}")
        return ServiceEndpoint(ip=address, port=resolved)

    @staticmethod
    def _select_port(ports: list[dict[str, Any]], port: int | str | None) -> int:
        if port is None:
            if len(ports) > 1:
                logger.debug(f"Multiple ports available, using {ports[0].get('port')}")
            return int(ports[0]["port"])

        if isinstance(port, int):
            for entry in ports:
                if entry.get("port") == port:
                    return port
            if 0 <= port < len(ports):
                return int(ports[port]["port"])
            raise ConfigurationError(f"Port {port} not found in service")

        for entry in ports:
            if entry.get("name") == port:
                return int(entry["port"])
        raise ConfigurationError(f'Port with name "{port}" not found in service')
