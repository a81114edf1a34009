"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

import clawcker.config as config_mod
from clawcker.config import HealthConfig, InstancesConfig, Settings


@pytest.fixture
def in_tmp_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("IMAGE__NAME", "CONTAINER__RUNTIME", "INSTANCES__BASE_PORT"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


class TestSettings:
    def test_defaults(self, in_tmp_cwd):
        s = Settings()
        assert s.instances.base_port == 18789
        assert s.container.port == 18789
        assert s.container.token_env == "OPENCLAW_GATEWAY_TOKEN"
        assert s.image.entrypoint_args == ["gateway"]
        assert s.health.poll_interval == 0.5
        assert set(s.providers) == {"anthropic", "openai", "openrouter", "gemini"}
        assert s.instances_dir == (in_tmp_cwd / ".clawcker").resolve()

    def test_reads_toml(self, in_tmp_cwd):
        (in_tmp_cwd / "clawcker.toml").write_text(
            '[image]\nname = "example/openclaw:dev"\n\n'
            '[instances]\nroot = "state"\nbase_port = 20000\n'
        )
        s = Settings()
        assert s.image.name == "example/openclaw:dev"
        assert s.instances.base_port == 20000
        assert s.instances_dir == (in_tmp_cwd / "state").resolve()

    def test_env_overrides_toml(self, in_tmp_cwd, monkeypatch):
        (in_tmp_cwd / "clawcker.toml").write_text('[container]\nruntime = "docker"\n')
        monkeypatch.setenv("CONTAINER__RUNTIME", "podman")
        assert Settings().container.runtime == "podman"

    def test_absolute_root(self, in_tmp_cwd, tmp_path_factory):
        root = tmp_path_factory.mktemp("elsewhere")
        s = Settings(instances=InstancesConfig(root=str(root)))
        assert s.instances_dir == Path(root).resolve()

    def test_unknown_keys_rejected(self, in_tmp_cwd):
        (in_tmp_cwd / "clawcker.toml").write_text("[health]\npoll_intervall = 1\n")
        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            InstancesConfig(base_port=0)
        with pytest.raises(ValidationError):
            HealthConfig(poll_interval=0)

    def test_custom_provider(self, in_tmp_cwd):
        (in_tmp_cwd / "clawcker.toml").write_text(
            '[providers.mistral]\nenv_var = "MISTRAL_API_KEY"\nmodel = "mistral/large"\n'
        )
        assert Settings().providers["mistral"].env_var == "MISTRAL_API_KEY"


class TestSingleton:
    def test_get_settings_caches(self, in_tmp_cwd):
        config_mod.reset_settings()
        assert config_mod.get_settings() is config_mod.get_settings()
        config_mod.reset_settings()
