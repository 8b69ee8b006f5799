"""Runtime configuration for test execution."""

import os

from pydantic import BaseModel, Field


class RunnerConfig(BaseModel):
    """Settings shared by every step of a run."""

    kubectl_binary: str = Field(
        default="kubectl", description="kubectl executable used for cluster access"
    )
    debug_image: str = Field(
        default="python:3-slim",
        description="Image for ephemeral debug containers running HTTP requests",
    )
    retry_delay_seconds: float = Field(
        default=0.5, ge=0, description="Pause between retry attempts of a test"
    )
    port_forward_ready_timeout: float = Field(
        default=30.0, gt=0, description="Seconds to wait for a port-forward tunnel"
    )
    port_forward_kill_timeout: float = Field(
        default=1.0,
        gt=0,
        description="Seconds to wait after SIGTERM before killing a tunnel",
    )

    @classmethod
    def from_env(cls) -> "RunnerConfig":
        """Build configuration, applying YAMLTEST_* environment overrides."""
        overrides: dict[str, str] = {}
        if "YAMLTEST_KUBECTL" in os.environ:
            overrides["kubectl_binary"] = os.environ["YAMLTEST_KUBECTL"]
        if "YAMLTEST_DEBUG_IMAGE" in os.environ:
            overrides["debug_image"] = os.environ["YAMLTEST_DEBUG_IMAGE"]
        return cls.model_validate(overrides)
