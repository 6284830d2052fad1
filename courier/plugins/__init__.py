"""Plugin system: plugin records, registry, hook dispatch, and stock plugins."""

from courier.plugins.core import (
    Hook,
    HookContext,
    HookError,
    Plugin,
    PluginRegistry,
    define_plugin,
)
from courier.plugins.logger import logger_plugin

__all__ = [
    "Hook",
    "HookContext",
    "HookError",
    "Plugin",
    "PluginRegistry",
    "define_plugin",
    "logger_plugin",
]
