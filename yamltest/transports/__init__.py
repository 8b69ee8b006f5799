"""HTTP transports and the table selecting one for a request source."""

from yamltest.config import RunnerConfig
from yamltest.kubectl import KubectlClient
from yamltest.models.test_definition import Source, Transport
from yamltest.transports.base import HttpTransport
from yamltest.transports.debug_container import DebugContainerTransport
from yamltest.transports.local import LocalTransport
from yamltest.transports.pod_exec import PodExecTransport
from yamltest.transports.port_forward import PortForwardTransport

TRANSPORTS: dict[Transport, type[HttpTransport]] = {
    "local": LocalTransport,
    "debug-container": DebugContainerTransport,
    "pod-exec": PodExecTransport,
    "port-forward": PortForwardTransport,
}


def select_transport(
    source: Source, kubectl: KubectlClient, config: RunnerConfig
) -> HttpTransport:
    """Return the transport matching the source type and pod transport flags."""
    return TRANSPORTS[source.transport](kubectl, config)


__all__ = [
    "TRANSPORTS",
    "DebugContainerTransport",
    "HttpTransport",
    "LocalTransport",
    "PodExecTransport",
    "PortForwardTransport",
    "select_transport",
]
