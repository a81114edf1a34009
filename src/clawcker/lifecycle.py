"""Instance lifecycle manager: create, start, stop, configure, status, health.

Run state is derived on every call, never stored::

    not found → created (not started) → stopped ⇄ running

A record can exist without a container ("created (not started)"); that is a
normal state, not an error. Creation is an ordered, non-transactional
sequence: a failed image pull deletes the whole instance directory so the
caller sees all-or-nothing. Credential setup runs in a short-lived
"setup" container against the persisted config volume; its failures are
logged as warnings and never abort the workflow.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from pathlib import Path

from clawcker.config import Settings, get_settings
from clawcker.errors import (
    ContainerCommandError,
    InstanceExistsError,
    InstanceNotFoundError,
    InstanceNotRunningError,
    InstanceValidationError,
    RuntimeUnavailableError,
)
from clawcker.health import probe_endpoint
from clawcker.logger import log_line, logger
from clawcker.ports import next_available_port
from clawcker.runtime import ContainerRuntime, get_runtime
from clawcker.store import InstanceStore, write_json_atomic
from clawcker.tokens import generate_gateway_token
from clawcker.types import ContainerSpec, CredentialPrompter, InstanceRecord, InstanceStatus

GATEWAY_CONFIG_FILE = "openclaw.json"

_NAME_RE = re.compile(r"[A-Za-z0-9_-]+")


def validate_instance_name(name: str) -> None:
    """Raise InstanceValidationError unless ``name`` is letters, digits, ``-`` or ``_``."""
    if not name or not name.strip():
        raise InstanceValidationError("Instance name cannot be empty")
    if not _NAME_RE.fullmatch(name):
        raise InstanceValidationError(
            "Instance name must contain only letters, numbers, dashes, and underscores"
        )


def web_ui_url(record: InstanceRecord) -> str:
    return f"http://localhost:{record.port}/?token={record.gateway_token}"


def health_url(record: InstanceRecord) -> str:
    return f"http://localhost:{record.port}/"


class InstanceManager:
    """Orchestrates instance workflows over the store and a container runtime.

    Args:
        store: Metadata store; defaults to one rooted at ``settings.instances_dir``.
        runtime: Container runtime adapter; defaults to :func:`get_runtime`.
        prompter: Asked for a provider and API key when a workflow needs them
            and the caller did not pass them. ``None`` disables prompting.
        log: Operator-facing line sink. Streamed runtime output goes here too.
    """

    def __init__(
        self,
        store: InstanceStore | None = None,
        runtime: ContainerRuntime | None = None,
        *,
        prompter: CredentialPrompter | None = None,
        log: Callable[[str], None] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store or InstanceStore(self.settings.instances_dir)
        self.runtime = runtime or get_runtime()
        self._prompter = prompter
        self._log = log or log_line

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def create(
        self,
        name: str,
        provider: str | None = None,
        api_key: str | None = None,
    ) -> InstanceRecord:
        validate_instance_name(name)
        if self.store.exists(name):
            raise InstanceExistsError(name)

        self._log(f"Creating new Clawcker instance: {name}")
        await self._ensure_runtime()
        provider, api_key = self._resolve_credentials(provider, api_key)

        config_dir = self.store.config_dir(name)
        workspace_dir = self.store.workspace_dir(name)
        image = self.settings.image.name
        try:
            config_dir.mkdir(parents=True)
            workspace_dir.mkdir(parents=True)

            token = generate_gateway_token()
            self._write_gateway_config(config_dir, token)
            port = next_available_port(self.store, self.settings.instances.base_port)

            record = InstanceRecord(
                name=name,
                port=port,
                config_path=str(config_dir.resolve()),
                workspace_path=str(workspace_dir.resolve()),
                gateway_token=token,
                is_created=True,
                provider=provider,
                api_key=api_key,
            )
            self.store.save(record)

            self._log("Pulling OpenClaw image (this may take a few minutes on first run)...")
            result = await self.runtime.pull_image(image, on_output=self._log)
        except BaseException:
            self.store.remove(name)
            raise

        if not result.ok:
            self.store.remove(name)
            logger.error(
                "Image pull failed, instance rolled back",
                instance=name,
                image=image,
                exit_code=result.returncode,
                err=result.start_error,
            )
            raise ContainerCommandError("pull image", image, result)

        if provider is not None:
            if not await self._run_setup(record):
                self._log(
                    f"Warning: credential setup did not complete. "
                    f"Run 'clawcker configure {name}' to retry."
                )

        self._log(f"✓ Instance '{name}' created successfully")
        self._log(f"  Configuration: {record.config_path}")
        self._log(f"  Workspace: {record.workspace_path}")
        self._log(f"  Port: {record.port}")
        self._log("Next steps:")
        self._log(f"  1. Run 'clawcker start {name}' to start the instance")
        self._log(f"  2. Run 'clawcker talk {name}' to open the web UI")
        return record

    async def start(self, name: str) -> InstanceRecord:
        record = self._require(name)
        container = record.container_name
        self._log(f"Starting Clawcker instance: {name}")

        if await self.runtime.container_exists(container):
            if await self.runtime.is_container_running(container):
                self._log(f"Instance '{name}' is already running")
                self._log(f"Access it at: {web_ui_url(record)}")
                return record
            self._log("Starting existing container...")
            result = await self.runtime.start_container(container)
        else:
            self._log("Creating and starting container...")
            result = await self.runtime.run_container(
                self._container_spec(record), on_output=self._log
            )

        if not result.ok:
            logger.error(
                "Container start failed",
                container=container,
                exit_code=result.returncode,
                stderr_tail=result.stderr[-500:],
                err=result.start_error,
            )
            raise ContainerCommandError("start container", container, result)

        self._log(f"✓ Instance '{name}' is now running")
        self._log(f"  Access the web UI at: {web_ui_url(record)}")
        self._log(f"  Container name: {container}")
        return record

    async def stop(self, name: str) -> None:
        record = self._require(name)
        container = record.container_name
        self._log(f"Stopping Clawcker instance: {name}")

        if not await self.runtime.container_exists(container):
            self._log(f"Instance '{name}' has no container")
            return
        if not await self.runtime.is_container_running(container):
            self._log(f"Instance '{name}' is already stopped")
            return

        result = await self.runtime.stop_container(container)
        if not result.ok:
            raise ContainerCommandError("stop container", container, result)
        self._log(f"✓ Instance '{name}' stopped")

    async def configure(
        self,
        name: str,
        provider: str | None = None,
        api_key: str | None = None,
    ) -> bool:
        """Re-run credential/model setup and persist the new provider settings.

        The run state is preserved: a running instance is restarted with the
        new settings, a stopped one is recreated but not started, and one that
        never had a container still has none.

        Returns:
            True if every setup command succeeded, False if setup finished with
            warnings. The record is updated either way.
        """
        record = self._require(name)
        provider, api_key = self._resolve_credentials(provider, api_key, current=record)
        if provider is None:
            raise InstanceValidationError(f"No provider given for instance '{name}'")
        await self._ensure_runtime()

        container = record.container_name
        existed = await self.runtime.container_exists(container)
        was_running = existed and await self.runtime.is_container_running(container)
        if existed:
            if was_running:
                self._log("Stopping running container...")
                result = await self.runtime.stop_container(container)
                if not result.ok:
                    raise ContainerCommandError("stop container", container, result)
            result = await self.runtime.remove_container(container)
            if not result.ok:
                raise ContainerCommandError("remove container", container, result)

        record.provider = provider
        record.api_key = api_key
        self._log(f"Configuring instance '{name}' for provider '{provider}'...")
        try:
            applied = await self._run_setup(record)
        finally:
            self.store.save(record)

        if applied:
            self._log(f"✓ Instance '{name}' configured")
        else:
            self._log(f"Instance '{name}' configured with warnings; check the log above")

        if was_running:
            await self.start(name)
        elif existed:
            # Rebuild with the new key env var but leave it stopped
            result = await self.runtime.create_container(self._container_spec(record))
            if not result.ok:
                raise ContainerCommandError("create container", container, result)
        return applied

    async def status(self, name: str) -> InstanceStatus:
        record = self._load(name)
        if record is None:
            return InstanceStatus.NOT_FOUND
        if not await self.runtime.container_exists(record.container_name):
            return InstanceStatus.CREATED
        if await self.runtime.is_container_running(record.container_name):
            return InstanceStatus.RUNNING
        return InstanceStatus.STOPPED

    def list_instances(self) -> list[InstanceRecord]:
        return self.store.list_all()

    async def is_healthy(self, name: str, timeout: float | None = None) -> bool:
        """Probe the gateway; False without a network call if it cannot be up."""
        record = self._load(name)
        if record is None:
            return False
        if not await self.runtime.is_container_running(record.container_name):
            return False
        if timeout is None:
            timeout = self.settings.health.timeout
        return await probe_endpoint(health_url(record), timeout)

    async def wait_for_healthy(self, name: str, max_wait: float | None = None) -> bool:
        """Poll :meth:`is_healthy` until it passes or ``max_wait`` seconds elapse.

        A timeout is a normal negative outcome, reported as False.
        """
        health = self.settings.health
        if max_wait is None:
            max_wait = health.max_wait
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_wait

        while loop.time() < deadline:
            if await self.is_healthy(name, timeout=health.probe_timeout):
                return True
            await asyncio.sleep(health.poll_interval)
        return False

    async def open_web_ui(self, name: str, opener: Callable[[str], object]) -> str:
        """Open the tokenized web UI URL with ``opener`` and return the URL.

        An opener failure is reported to the operator, not raised.
        """
        record = self._require(name)
        if not await self.runtime.is_container_running(record.container_name):
            raise InstanceNotRunningError(name)

        url = web_ui_url(record)
        self._log(f"Opening web UI for instance '{name}'...")
        try:
            opened = opener(url)
        except Exception as exc:
            logger.warning("Browser opener failed", instance=name, err=str(exc))
            opened = False

        if opened is False:
            self._log("Could not automatically open browser")
            self._log(f"Please manually open: {url}")
        else:
            self._log("✓ Web UI opened in your default browser")
        return url

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, name: str) -> InstanceRecord | None:
        # Invalid names can't have been created; also keeps paths inside the root.
        try:
            validate_instance_name(name)
        except InstanceValidationError:
            return None
        return self.store.load(name)

    def _require(self, name: str) -> InstanceRecord:
        record = self._load(name)
        if record is None:
            raise InstanceNotFoundError(name)
        return record

    async def _ensure_runtime(self) -> None:
        cli = self.runtime.cli
        if not await self.runtime.is_available():
            raise RuntimeUnavailableError(
                f"Container runtime '{cli}' is not installed. "
                "Please install Docker from https://www.docker.com/get-started"
            )
        if not await self.runtime.is_daemon_running():
            raise RuntimeUnavailableError(
                f"The '{cli}' daemon is not running. Please start it and try again"
            )

    def _resolve_credentials(
        self,
        provider: str | None,
        api_key: str | None,
        current: InstanceRecord | None = None,
    ) -> tuple[str | None, str | None]:
        """Fill in provider/API key from arguments, the prompter, or ``current``."""
        providers = self.settings.providers
        if provider is None and self._prompter is not None:
            provider = self._prompter.select_provider(sorted(providers))
        if provider is None and current is not None:
            provider = current.provider
        if provider is None:
            if api_key is not None:
                raise InstanceValidationError("An API key was given without a provider")
            return None, None

        provider = provider.strip().lower()
        if provider not in providers:
            raise InstanceValidationError(
                f"Unknown provider '{provider}'. Choose one of: {', '.join(sorted(providers))}"
            )

        if api_key is None and self._prompter is not None:
            api_key = self._prompter.prompt_secret(f"{provider} API key")
        if api_key is None and current is not None and current.provider == provider:
            api_key = current.api_key
        if api_key is not None:
            api_key = api_key.strip() or None
        return provider, api_key

    def _write_gateway_config(self, config_dir: Path, token: str) -> None:
        config = {
            "gateway": {
                "mode": "local",
                "bind": "lan",
                "auth": {"mode": "token", "token": token},
                # The UI is reached over plain http://localhost through the port mapping.
                "controlUi": {"allowInsecureAuth": True},
            }
        }
        path = config_dir / GATEWAY_CONFIG_FILE
        write_json_atomic(path, config, indent=2)
        logger.debug("Wrote gateway config", path=str(path))

    def _mounts(self, record: InstanceRecord) -> list[tuple[str, str]]:
        c = self.settings.container
        return [
            (record.config_path, c.config_mount),
            (record.workspace_path, c.workspace_mount),
        ]

    def _container_spec(self, record: InstanceRecord) -> ContainerSpec:
        c = self.settings.container
        env = {c.token_env: record.gateway_token}
        provider_cfg = self.settings.providers.get(record.provider or "")
        if provider_cfg is not None and record.api_key:
            env[provider_cfg.env_var] = record.api_key
        return ContainerSpec(
            name=record.container_name,
            image=self.settings.image.name,
            args=list(self.settings.image.entrypoint_args),
            env=env,
            mounts=self._mounts(record),
            ports=[(record.port, c.port)],
            restart_policy=c.restart_policy,
        )

    async def _run_setup(self, record: InstanceRecord) -> bool:
        """Write credentials and model selection through a setup container.

        Never raises for command failures; each one becomes a warning. The
        setup container is removed afterwards no matter what happened.

        Returns:
            True if every step succeeded.
        """
        assert record.provider is not None
        c = self.settings.container
        setup = record.setup_container_name
        model = self.settings.providers[record.provider].model
        warnings: list[str] = []

        # Left over from an earlier attempt that died before cleanup
        await self.runtime.remove_container(setup)

        spec = ContainerSpec(
            name=setup,
            image=self.settings.image.name,
            args=list(self.settings.image.entrypoint_args),
            env={c.token_env: record.gateway_token},
            mounts=self._mounts(record),
        )
        try:
            result = await self.runtime.run_container(spec, on_output=self._log)
            if not result.ok:
                warnings.append(f"could not start setup container '{setup}'")
            else:
                # No readiness signal from the image; give the gateway time to boot.
                await asyncio.sleep(c.setup_delay)
                if record.api_key:
                    result = await self.runtime.exec_in_container(
                        setup,
                        *c.cli_command,
                        "models",
                        "auth",
                        "paste-token",
                        "--provider",
                        record.provider,
                        stdin=f"{record.api_key}\n",
                    )
                    if not result.ok:
                        warnings.append(f"storing the {record.provider} API key failed")
                result = await self.runtime.exec_in_container(
                    setup, *c.cli_command, "models", "set", model
                )
                if not result.ok:
                    warnings.append(f"selecting model '{model}' failed")
        finally:
            removed = await self.runtime.remove_container(setup)
            if not removed.ok:
                logger.warning("Failed to remove setup container", container=setup)

        for warning in warnings:
            logger.warning("Instance setup step failed", instance=record.name, detail=warning)
            self._log(f"Warning: {warning}")
        return not warnings
