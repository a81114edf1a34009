"""Container runtime adapter with plugin-extensible providers.

Docker and Podman are built in (see :mod:`clawcker.plugins.runtimes`).
Additional runtimes can be provided by plugins via
``clawcker_container_runtime``.

Every call shells out to the runtime CLI and returns a :class:`CommandResult`;
the adapter never raises for a non-zero exit. Short queries (``info``, ``ps``)
capture output for parsing. Long-running commands (``pull``, ``run``) stream
each output line to an ``on_output`` callback so the operator sees progress.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from clawcker.logger import log_line, logger
from clawcker.types import CommandResult, ContainerSpec

OnOutput = Callable[[str], None]


@dataclass(frozen=True)
class ContainerRuntime:
    """Runtime adapter for a Docker-compatible CLI."""

    name: str
    cli: str
    # Docker reports names as "/<name>" to the ps name filter; Podman does not.
    name_filter_prefix: str = "/"

    # ------------------------------------------------------------------
    # Process plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        *args: str,
        stdin: str | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run a CLI command and capture stdout/stderr."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.cli,
                *args,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=_child_env(env),
            )
        except OSError as exc:
            return CommandResult(returncode=None, start_error=str(exc))

        stdout, stderr = await proc.communicate(stdin.encode() if stdin is not None else None)
        return CommandResult(
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

    async def _stream(
        self,
        *args: str,
        on_output: OnOutput | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run a CLI command, forwarding merged stdout/stderr line by line."""
        sink = on_output or log_line
        try:
            proc = await asyncio.create_subprocess_exec(
                self.cli,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=_child_env(env),
            )
        except OSError as exc:
            return CommandResult(returncode=None, start_error=str(exc))

        lines: list[str] = []
        assert proc.stdout is not None
        async for raw in proc.stdout:
            line = raw.decode(errors="replace").rstrip()
            lines.append(line)
            sink(line)
        await proc.wait()
        return CommandResult(returncode=proc.returncode, stdout="\n".join(lines))

    # ------------------------------------------------------------------
    # Engine checks
    # ------------------------------------------------------------------

    async def is_available(self) -> bool:
        """True if the CLI is installed (``<cli> --version`` exits 0)."""
        return (await self._run("--version")).ok

    async def is_daemon_running(self) -> bool:
        """True if the engine answers ``<cli> info``."""
        return (await self._run("info")).ok

    # ------------------------------------------------------------------
    # Lifecycle commands
    # ------------------------------------------------------------------

    async def pull_image(self, image: str, *, on_output: OnOutput | None = None) -> CommandResult:
        return await self._stream("pull", image, on_output=on_output)

    async def run_container(
        self, spec: ContainerSpec, *, on_output: OnOutput | None = None
    ) -> CommandResult:
        """Create and start a detached container from ``spec``."""
        return await self._stream(*build_run_args(spec), on_output=on_output, env=spec.env)

    async def create_container(self, spec: ContainerSpec) -> CommandResult:
        """Create a container from ``spec`` without starting it."""
        return await self._run(*build_run_args(spec, command="create"), env=spec.env)

    async def start_container(self, name: str) -> CommandResult:
        return await self._run("start", name)

    async def stop_container(self, name: str) -> CommandResult:
        return await self._run("stop", name)

    async def remove_container(self, name: str) -> CommandResult:
        """Force-remove a container. Non-zero when it does not exist."""
        return await self._run("rm", "-f", name)

    async def exec_in_container(
        self, name: str, *command: str, stdin: str | None = None
    ) -> CommandResult:
        """Run ``command`` inside a running container.

        With ``stdin`` the command runs as ``exec -i`` and receives the text on
        its standard input, which keeps secrets out of the argument list.
        """
        args = ["exec", "-i", name] if stdin is not None else ["exec", name]
        return await self._run(*args, *command, stdin=stdin)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _name_filter(self, name: str) -> str:
        return f"name=^{self.name_filter_prefix}{name}$"

    async def _ps_matches(self, name: str, *, all_states: bool) -> bool:
        args = ["ps", "-a"] if all_states else ["ps"]
        result = await self._run(*args, "--filter", self._name_filter(name), "--format", "{{.Names}}")
        # Compare verbatim: the filter is a regex, so never trust it alone.
        return result.ok and result.stdout.strip() == name

    async def container_exists(self, name: str) -> bool:
        return await self._ps_matches(name, all_states=True)

    async def is_container_running(self, name: str) -> bool:
        return await self._ps_matches(name, all_states=False)


def build_run_args(spec: ContainerSpec, *, command: str = "run") -> list[str]:
    """Translate a :class:`ContainerSpec` into ``run -d`` (or ``create``) arguments.

    Environment variables use the bare ``-e NAME`` form; their values come
    from the child process environment.
    """
    args = [command, "-d"] if command == "run" else [command]
    args += ["--name", spec.name]
    if spec.restart_policy:
        args += ["--restart", spec.restart_policy]
    for var in spec.env:
        args += ["-e", var]
    for host_path, container_path in spec.mounts:
        args += ["-v", f"{host_path}:{container_path}"]
    for host_port, container_port in spec.ports:
        args += ["-p", f"{host_port}:{container_port}"]
    args.append(spec.image)
    args.extend(spec.args)
    return args


def _child_env(extra: dict[str, str] | None) -> dict[str, str] | None:
    if not extra:
        return None
    return {**os.environ, **extra}


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def _is_valid_plugin_runtime(candidate: Any) -> bool:
    return all(
        [
            isinstance(getattr(candidate, "name", None), str),
            isinstance(getattr(candidate, "cli", None), str),
            callable(getattr(candidate, "is_available", None)),
            callable(getattr(candidate, "container_exists", None)),
        ]
    )


def _iter_plugin_runtimes() -> list[ContainerRuntime]:
    from clawcker.plugins import get_plugin_manager

    runtimes: list[ContainerRuntime] = []
    for runtime in get_plugin_manager().hook.clawcker_container_runtime():
        if runtime is None:
            continue
        if not _is_valid_plugin_runtime(runtime):
            logger.warning(
                "Ignoring invalid plugin runtime object",
                runtime_type=type(runtime).__name__,
            )
            continue
        runtimes.append(runtime)
    return runtimes


def detect_runtime() -> ContainerRuntime:
    """Pick the container runtime to use.

    Priority:
    1) settings.container.runtime override, if a provider of that name exists
    2) docker, when registered
    3) first registered provider, then a plain docker fallback

    Availability is not probed here; create reports a missing CLI or daemon
    with its own error.
    """
    from clawcker.config import get_settings

    candidates: dict[str, ContainerRuntime] = {}
    for runtime in _iter_plugin_runtimes():
        name = runtime.name.lower().strip()
        if not name:
            continue
        if name in candidates:
            logger.warning("Duplicate runtime provider ignored", runtime=name)
            continue
        candidates[name] = runtime

    override = (get_settings().container.runtime or "").lower()
    if override:
        selected = candidates.get(override)
        if selected is not None:
            return selected
        logger.warning("Unknown runtime override; falling back to auto-detection", runtime=override)

    if "docker" in candidates:
        return candidates["docker"]
    if candidates:
        return next(iter(candidates.values()))
    return ContainerRuntime(name="docker", cli="docker")


_runtime: ContainerRuntime | None = None


def get_runtime() -> ContainerRuntime:
    """Lazy singleton. Caches the result of detect_runtime()."""
    global _runtime
    if _runtime is None:
        _runtime = detect_runtime()
        logger.debug("Container runtime selected", name=_runtime.name, cli=_runtime.cli)
    return _runtime
