"""Centralized configuration: Pydantic BaseSettings with TOML + dotenv sources.

Non-secret settings live in clawcker.toml. Environment variables override it
using ``__`` as the nested delimiter (e.g. ``CONTAINER__RUNTIME=podman``).
Provider API keys are never read from here; they belong to the instance
record they were entered for.

Priority (highest wins): init args > env vars > .env > clawcker.toml

Usage::

    from clawcker.config import get_settings

    s = get_settings()
    print(s.image.name)
    print(s.instances_dir)
"""

from __future__ import annotations

from functools import cached_property
from pathlib import Path

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in clawcker.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models. Rejects unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class ImageConfig(_StrictModel):
    name: str = "ghcr.io/phioranex/openclaw-docker:latest"
    entrypoint_args: list[str] = ["gateway"]


class InstancesConfig(_StrictModel):
    root: str = ".clawcker"  # relative to the current directory, or absolute
    base_port: int = 18789

    @field_validator("base_port")
    @classmethod
    def validate_base_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("base_port must be a valid TCP port")
        return v


class ContainerConfig(_StrictModel):
    runtime: str | None = None  # "docker" | "podman" | plugin runtime name | None
    port: int = 18789  # gateway port inside the container
    config_mount: str = "/home/node/.openclaw"
    workspace_mount: str = "/home/node/.openclaw/workspace"
    token_env: str = "OPENCLAW_GATEWAY_TOKEN"
    restart_policy: str = "unless-stopped"
    setup_delay: float = 5.0  # seconds; the image has no readiness signal
    cli_command: list[str] = ["openclaw"]


class HealthConfig(_StrictModel):
    timeout: float = 5.0  # single probe
    probe_timeout: float = 2.0  # each probe inside wait_for_healthy
    max_wait: float = 30.0
    poll_interval: float = 0.5

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("poll_interval must be positive")
        return v


class ProviderConfig(_StrictModel):
    env_var: str  # API key variable the gateway reads inside the container
    model: str  # default model selected during setup


_DEFAULT_PROVIDERS: dict[str, ProviderConfig] = {
    "anthropic": ProviderConfig(env_var="ANTHROPIC_API_KEY", model="anthropic/claude-sonnet-4-5"),
    "openai": ProviderConfig(env_var="OPENAI_API_KEY", model="openai/gpt-4o"),
    "openrouter": ProviderConfig(env_var="OPENROUTER_API_KEY", model="openrouter/auto"),
    "gemini": ProviderConfig(env_var="GEMINI_API_KEY", model="google/gemini-2.5-pro"),
}


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


class PluginConfig(_StrictModel):
    enabled: bool = True


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="clawcker.toml",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    image: ImageConfig = ImageConfig()
    instances: InstancesConfig = InstancesConfig()
    container: ContainerConfig = ContainerConfig()
    health: HealthConfig = HealthConfig()
    providers: dict[str, ProviderConfig] = dict(_DEFAULT_PROVIDERS)
    logging: LoggingConfig = LoggingConfig()
    plugins: dict[str, PluginConfig] = {}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > clawcker.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # --- Computed properties ---

    @cached_property
    def project_root(self) -> Path:
        return Path.cwd()

    @cached_property
    def instances_dir(self) -> Path:
        root = Path(self.instances.root).expanduser()
        if not root.is_absolute():
            root = self.project_root / root
        return root.resolve()


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
