"""Shared test fixtures for Clawcker."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from clawcker.types import CommandResult, ContainerSpec

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures, importable by test files)
# ---------------------------------------------------------------------------

# Cached property names that must be set via __dict__ (not model_construct).
_CACHED_PROPERTY_NAMES = frozenset({"project_root", "instances_dir"})


def make_settings(**overrides):
    """Create a Settings object with sensible defaults for testing.

    Accepts both model fields (image, container, etc.) and cached property
    overrides (project_root, instances_dir).

    Usage::

        s = make_settings(instances_dir=tmp_path)
        s = make_settings(container=ContainerConfig(setup_delay=0))
    """
    from clawcker.config import (
        _DEFAULT_PROVIDERS,
        ContainerConfig,
        HealthConfig,
        ImageConfig,
        InstancesConfig,
        LoggingConfig,
        Settings,
    )

    cached = {k: overrides.pop(k) for k in list(overrides) if k in _CACHED_PROPERTY_NAMES}

    defaults = {
        "image": ImageConfig(),
        "instances": InstancesConfig(),
        "container": ContainerConfig(setup_delay=0),
        "health": HealthConfig(poll_interval=0.05),
        "providers": dict(_DEFAULT_PROVIDERS),
        "logging": LoggingConfig(),
        "plugins": {},
    }
    defaults.update(overrides)
    s = Settings.model_construct(**defaults)

    for key, value in cached.items():
        s.__dict__[key] = value

    return s


@dataclass
class FakeRuntime:
    """In-memory stand-in for ContainerRuntime.

    ``containers`` maps container name → running flag. ``fail`` names
    operations (``pull``, ``run``, ``create``, ``start``, ``stop``, ``rm``,
    ``exec``, ``run-setup``) that should exit non-zero.
    """

    name: str = "docker"
    cli: str = "docker"
    available: bool = True
    daemon_running: bool = True
    containers: dict[str, bool] = field(default_factory=dict)
    fail: set[str] = field(default_factory=set)
    calls: list[tuple] = field(default_factory=list)
    specs: list[ContainerSpec] = field(default_factory=list)
    execs: list[tuple[str, tuple[str, ...], str | None]] = field(default_factory=list)

    def _result(self, op: str) -> CommandResult:
        if op in self.fail:
            return CommandResult(returncode=1, stderr=f"{op} failed")
        return CommandResult(returncode=0)

    async def is_available(self) -> bool:
        self.calls.append(("version",))
        return self.available

    async def is_daemon_running(self) -> bool:
        self.calls.append(("info",))
        return self.daemon_running

    async def pull_image(self, image, *, on_output=None):
        self.calls.append(("pull", image))
        if on_output:
            on_output(f"latest: Pulling from {image}")
        return self._result("pull")

    async def run_container(self, spec, *, on_output=None):
        self.calls.append(("run", spec.name))
        self.specs.append(spec)
        op = "run-setup" if spec.name.endswith("-setup") else "run"
        result = self._result(op)
        if result.ok:
            self.containers[spec.name] = True
        return result

    async def create_container(self, spec):
        self.calls.append(("create", spec.name))
        self.specs.append(spec)
        result = self._result("create")
        if result.ok:
            self.containers[spec.name] = False
        return result

    async def start_container(self, name):
        self.calls.append(("start", name))
        result = self._result("start")
        if result.ok:
            self.containers[name] = True
        return result

    async def stop_container(self, name):
        self.calls.append(("stop", name))
        result = self._result("stop")
        if result.ok and name in self.containers:
            self.containers[name] = False
        return result

    async def remove_container(self, name):
        self.calls.append(("rm", name))
        if name not in self.containers:
            return CommandResult(returncode=1, stderr="No such container")
        result = self._result("rm")
        if result.ok:
            del self.containers[name]
        return result

    async def exec_in_container(self, name, *command, stdin=None):
        self.calls.append(("exec", name))
        self.execs.append((name, command, stdin))
        return self._result("exec")

    async def container_exists(self, name):
        self.calls.append(("ps -a", name))
        return name in self.containers

    async def is_container_running(self, name):
        self.calls.append(("ps", name))
        return self.containers.get(name, False)


class FakePrompter:
    """Returns canned answers and records what it was asked."""

    def __init__(self, provider: str = "anthropic", secret: str = "sk-ant-test") -> None:
        self.provider = provider
        self.secret = secret
        self.asked: list[str] = []

    def select_provider(self, choices: list[str]) -> str:
        self.asked.append("provider")
        assert self.provider in choices
        return self.provider

    def prompt_secret(self, label: str) -> str:
        self.asked.append(label)
        return self.secret


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch, tmp_path):
    """Ensure each test starts with a clean Settings singleton.

    Built from pure defaults (no clawcker.toml, no .env) with the instance
    root under the test's tmp_path.
    """
    safe = make_settings(project_root=tmp_path, instances_dir=tmp_path / ".clawcker")
    monkeypatch.setattr("clawcker.config._settings", safe)
    monkeypatch.setattr("clawcker.runtime._runtime", None)


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def store(tmp_path):
    from clawcker.store import InstanceStore

    return InstanceStore(tmp_path / ".clawcker")


@pytest.fixture
def log_lines():
    return []


@pytest.fixture
def make_manager(store, fake_runtime, log_lines):
    """Factory fixture for an InstanceManager wired to fakes."""
    from clawcker.config import get_settings
    from clawcker.lifecycle import InstanceManager

    def _make(*, prompter=None, runtime=None, settings=None):
        return InstanceManager(
            store,
            runtime or fake_runtime,
            prompter=prompter,
            log=log_lines.append,
            settings=settings or get_settings(),
        )

    return _make
