"""Exceptions raised by the lifecycle workflows.

Validation and precondition errors are raised before anything is written.
Soft failures (setup commands inside the ephemeral container) and health-probe
failures never surface as exceptions.
"""

from __future__ import annotations

from clawcker.types import CommandResult


class ClawckerError(Exception):
    """Base class. Every message is meant to be shown to the operator as-is."""


class InstanceValidationError(ClawckerError, ValueError):
    """Raised for an empty/invalid instance name or an unknown provider."""


class InstanceExistsError(ClawckerError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Instance '{name}' already exists")
        self.name = name


class InstanceNotFoundError(ClawckerError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"Instance '{name}' not found. Create it first with 'clawcker new {name}'"
        )
        self.name = name


class InstanceNotRunningError(ClawckerError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"Instance '{name}' is not running. Start it first with 'clawcker start {name}'"
        )
        self.name = name


class RuntimeUnavailableError(ClawckerError):
    """The container CLI is missing or its daemon cannot be reached."""


class ContainerCommandError(ClawckerError):
    """Raised when a runtime command needed by a workflow exits non-zero."""

    def __init__(self, action: str, target: str, result: CommandResult | None = None) -> None:
        super().__init__(f"Failed to {action} '{target}'")
        self.action = action
        self.target = target
        self.result = result
