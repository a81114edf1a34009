"""Pluggy hook specifications for clawcker plugins.

All hooks use the "clawcker" namespace and are validated by pluggy at
registration time.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("clawcker")
hookimpl = pluggy.HookimplMarker("clawcker")


class ClawckerSpec:
    """Hook specifications for clawcker plugins."""

    @hookspec
    def clawcker_container_runtime(self) -> Any | None:
        """Provide a container runtime implementation.

        Runtime plugins return a :class:`clawcker.runtime.ContainerRuntime`
        (or an object with the same async interface) whose ``cli`` accepts
        Docker-compatible ``pull``/``run``/``start``/``stop``/``ps``/``exec``/
        ``rm`` arguments.

        Returns:
            Runtime object, or None if this plugin doesn't provide one.
        """
