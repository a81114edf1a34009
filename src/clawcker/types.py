"""Data models for Clawcker."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

CONTAINER_PREFIX = "clawcker-"


@dataclass
class InstanceRecord:
    """Metadata for one managed instance, persisted as ``instance.json``.

    ``port`` and ``gateway_token`` are fixed at creation. Only ``provider``
    and ``api_key`` change afterwards (via configure).
    """

    name: str
    port: int
    config_path: str  # absolute host path, mounted as the gateway config dir
    workspace_path: str  # absolute host path, mounted as the agent workspace
    gateway_token: str
    is_created: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    provider: str | None = None
    api_key: str | None = None

    @property
    def container_name(self) -> str:
        return f"{CONTAINER_PREFIX}{self.name}"

    @property
    def setup_container_name(self) -> str:
        """Name of the short-lived container used for credential/model setup."""
        return f"{self.container_name}-setup"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "port": self.port,
            "configPath": self.config_path,
            "workspacePath": self.workspace_path,
            "gatewayToken": self.gateway_token,
            "isCreated": self.is_created,
            "createdAt": self.created_at.astimezone(UTC).isoformat(),
        }
        if self.provider is not None:
            data["provider"] = self.provider
        if self.api_key is not None:
            data["apiKey"] = self.api_key
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> InstanceRecord:
        """Build a record from parsed ``instance.json`` content.

        Raises KeyError/TypeError/ValueError on malformed input; the store
        turns those into "not found".
        """
        if not isinstance(raw, dict):
            raise TypeError(f"Expected a JSON object, got {type(raw).__name__}")
        port = raw["port"]
        if not isinstance(port, int) or isinstance(port, bool):
            raise TypeError("port must be an integer")
        for key in ("name", "configPath", "workspacePath", "gatewayToken"):
            if not isinstance(raw[key], str):
                raise TypeError(f"{key} must be a string")
        for key in ("provider", "apiKey"):
            if raw.get(key) is not None and not isinstance(raw[key], str):
                raise TypeError(f"{key} must be a string")

        created_at = datetime.fromisoformat(raw["createdAt"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)

        return cls(
            name=raw["name"],
            port=port,
            config_path=raw["configPath"],
            workspace_path=raw["workspacePath"],
            gateway_token=raw["gatewayToken"],
            is_created=bool(raw.get("isCreated", False)),
            created_at=created_at,
            provider=raw.get("provider"),
            api_key=raw.get("apiKey"),
        )


class InstanceStatus(enum.StrEnum):
    """Run state derived from record presence plus two runtime queries."""

    NOT_FOUND = "not found"
    CREATED = "created (not started)"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class CommandResult:
    """Outcome of one container-runtime CLI invocation."""

    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    start_error: str | None = None  # set when the CLI could not be launched at all

    @property
    def ok(self) -> bool:
        return self.start_error is None and self.returncode == 0


@dataclass
class ContainerSpec:
    """Everything ``run -d`` needs to create a container."""

    name: str
    image: str
    args: list[str] = field(default_factory=list)
    # Values are passed through the child environment (``-e NAME``), never argv.
    env: dict[str, str] = field(default_factory=dict)
    mounts: list[tuple[str, str]] = field(default_factory=list)  # (host, container)
    ports: list[tuple[int, int]] = field(default_factory=list)  # (host, container)
    restart_policy: str | None = None


@runtime_checkable
class CredentialPrompter(Protocol):
    """Interactive collaborator used when a provider or API key is not given."""

    def select_provider(self, choices: list[str]) -> str: ...
    def prompt_secret(self, label: str) -> str: ...
