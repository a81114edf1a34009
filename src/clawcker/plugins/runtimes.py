"""Built-in container runtime plugins."""

from __future__ import annotations

from typing import Any

from clawcker.plugins.hookspecs import hookimpl
from clawcker.runtime import ContainerRuntime


class DockerRuntimePlugin:
    @hookimpl
    def clawcker_container_runtime(self) -> Any | None:
        return ContainerRuntime(name="docker", cli="docker")


class PodmanRuntimePlugin:
    """Podman speaks the Docker CLI dialect but filters names without a leading slash."""

    @hookimpl
    def clawcker_container_runtime(self) -> Any | None:
        return ContainerRuntime(name="podman", cli="podman", name_filter_prefix="")
