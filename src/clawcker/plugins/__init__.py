"""Plugin system for clawcker.

Plugins extend clawcker with additional container runtimes. Built on pluggy
(pytest's plugin framework).

Usage:
    from clawcker.plugins import get_plugin_manager

    pm = get_plugin_manager()
    runtimes = pm.hook.clawcker_container_runtime()
"""

from __future__ import annotations

import importlib

import pluggy

from clawcker.config import get_settings
from clawcker.logger import logger
from clawcker.plugins.hookspecs import ClawckerSpec

__all__ = ["get_plugin_manager"]

# Static registry of built-in plugins.
# Each entry: (module_path, class_name, config_key)
# config_key is checked against [plugins.<key>].enabled in clawcker.toml.
_BUILTIN_PLUGIN_SPECS: list[tuple[str, str, str]] = [
    ("clawcker.plugins.runtimes", "DockerRuntimePlugin", "docker-runtime"),
    ("clawcker.plugins.runtimes", "PodmanRuntimePlugin", "podman-runtime"),
]


def get_plugin_manager() -> pluggy.PluginManager:
    """Create the plugin manager from built-ins and ``clawcker`` entry points."""
    pm = pluggy.PluginManager("clawcker")
    pm.add_hookspecs(ClawckerSpec)

    s = get_settings()
    for module_path, class_name, config_key in _BUILTIN_PLUGIN_SPECS:
        plugin_cfg = s.plugins.get(config_key)
        if plugin_cfg is not None and not plugin_cfg.enabled:
            logger.info("Plugin disabled via config", plugin=config_key)
            continue
        mod = importlib.import_module(module_path)
        pm.register(getattr(mod, class_name)(), name=f"builtin-{config_key}")

    discovered = pm.load_setuptools_entrypoints("clawcker")
    if discovered:
        logger.info("Loaded third-party plugins", count=discovered)
    return pm
