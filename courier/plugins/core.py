"""Plugin records and the hook dispatcher.

A plugin is an immutable bundle of metadata plus optional hook callables.
``PluginRegistry`` owns the ordered plugin list and fans every hook call out
to all plugins concurrently, collecting failures as ``HookError`` reports
instead of letting them escape.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from courier.config import settings
from courier.errors import DuplicatePluginError, HookFailure, RegistryDestroyedError
from courier.sender import maybe_await

logger = logging.getLogger(__name__)

HookFn = Callable[..., Awaitable[None] | None]


class Hook(str, Enum):
    """Lifecycle events a plugin can observe."""

    INIT = "on_init"
    BEFORE_SEND = "on_before_send"
    AFTER_SEND = "on_after_send"
    NEW_MESSAGE = "on_new_message"
    ERROR = "on_error"
    DESTROY = "on_destroy"


@dataclass(frozen=True)
class HookContext:
    """Identifies the plugin and hook behind an echoed error."""

    plugin_name: str
    hook: Hook

    def __str__(self) -> str:
        return f"Plugin {self.plugin_name} - {self.hook.value}"


@dataclass(frozen=True)
class HookError:
    """A hook failure report. Returned by dispatch, never raised."""

    plugin_name: str
    hook: Hook
    error: Exception


@dataclass(frozen=True)
class Plugin:
    """Plugin metadata and its hook implementations.

    Every hook is optional and may be a plain function or a coroutine
    function. Signatures:

    - ``on_init()``
    - ``on_before_send(to, content)``
    - ``on_after_send(to, result)``
    - ``on_new_message(message)``
    - ``on_error(error, context)``
    - ``on_destroy()``
    """

    name: str
    version: str | None = None
    description: str | None = None
    on_init: HookFn | None = None
    on_before_send: HookFn | None = None
    on_after_send: HookFn | None = None
    on_new_message: HookFn | None = None
    on_error: HookFn | None = None
    on_destroy: HookFn | None = None

    def hook(self, hook: Hook) -> HookFn | None:
        """Return the callable implementing *hook*, or None."""
        if hook is Hook.INIT:
            return self.on_init
        if hook is Hook.BEFORE_SEND:
            return self.on_before_send
        if hook is Hook.AFTER_SEND:
            return self.on_after_send
        if hook is Hook.NEW_MESSAGE:
            return self.on_new_message
        if hook is Hook.ERROR:
            return self.on_error
        if hook is Hook.DESTROY:
            return self.on_destroy
        msg = f"Unknown hook: {hook!r}"
        raise ValueError(msg)

    def get_info(self) -> dict[str, Any]:
        """Return plugin metadata and implemented hooks as a dict."""
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "hooks": [h.value for h in Hook if self.hook(h) is not None],
        }


class PluginRegistry:
    """Ordered collection of plugins with concurrent, failure-isolated dispatch.

    Args:
        hook_timeout: Seconds a single hook may run before it is reported as
            a ``HookFailure``. ``None`` (default from settings) disables it.

    Usage::

        registry = PluginRegistry().use(logger_plugin()).use(audit)
        await registry.init()
        errors = await registry.dispatch(Hook.BEFORE_SEND, "+15550100", "hi")
    """

    def __init__(self, hook_timeout: float | None = None) -> None:
        self._plugins: list[Plugin] = []
        self._hook_timeout = (
            hook_timeout if hook_timeout is not None else settings.plugin_hook_timeout_seconds
        )
        self._late_inits: set[asyncio.Task] = set()
        self._destroyed = False
        self.initialized = False

    @property
    def plugins(self) -> list[Plugin]:
        """Registered plugins in registration order (a copy)."""
        return list(self._plugins)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def get(self, name: str) -> Plugin | None:
        """Look up a plugin by name."""
        for plugin in self._plugins:
            if plugin.name == name:
                return plugin
        return None

    # -- Registration ----------------------------------------------------------

    def use(self, plugin: Plugin) -> PluginRegistry:
        """Register a plugin. Returns the registry so calls can be chained.

        When the registry is already initialized the plugin's ``on_init`` is
        started in the background; its failure goes to the error echo.
        """
        if self._destroyed:
            raise RegistryDestroyedError
        if self.get(plugin.name) is not None:
            raise DuplicatePluginError(plugin.name)

        self._plugins.append(plugin)
        logger.info("Registered plugin: %s", plugin.name)

        if self.initialized and plugin.on_init is not None:
            task = asyncio.get_running_loop().create_task(self._late_init(plugin))
            self._late_inits.add(task)
            task.add_done_callback(self._late_inits.discard)
        return self

    register = use

    async def _late_init(self, plugin: Plugin) -> None:
        error = await self._call(plugin, Hook.INIT, ())
        if error is not None:
            await self._echo([error])

    # -- Lifecycle -------------------------------------------------------------

    async def init(self) -> list[HookError]:
        """Mark the registry initialized and run every ``on_init``."""
        if self._destroyed:
            raise RegistryDestroyedError
        self.initialized = True
        errors = await self.dispatch(Hook.INIT)
        logger.info("Initialized %d plugin(s)", len(self._plugins))
        return errors

    async def destroy(self) -> list[HookError]:
        """Run every ``on_destroy``, then drop all plugins.

        Safe to call more than once; later calls return an empty list.
        """
        if self._destroyed:
            return []
        if self._late_inits:
            await asyncio.gather(*self._late_inits, return_exceptions=True)
        errors = await self.dispatch(Hook.DESTROY)
        self._plugins = []
        self.initialized = False
        self._destroyed = True
        logger.info("Plugin registry destroyed")
        return errors

    # -- Dispatch --------------------------------------------------------------

    async def dispatch(self, hook: Hook | str, *args: Any) -> list[HookError]:
        """Invoke *hook* on every plugin that implements it, concurrently.

        Returns one ``HookError`` per failing plugin. Failures of any hook
        other than ``Hook.ERROR`` are echoed to the ``on_error`` hooks.
        """
        hook = Hook(hook)
        targets = [p for p in self._plugins if p.hook(hook) is not None]
        if not targets:
            return []

        results = await asyncio.gather(*(self._call(p, hook, args) for p in targets))
        errors = [r for r in results if r is not None]

        if errors and hook is not Hook.ERROR:
            await self._echo(errors)
        return errors

    async def before_send(self, to: str, content: Any) -> list[HookError]:
        return await self.dispatch(Hook.BEFORE_SEND, to, content)

    async def after_send(self, to: str, result: Any) -> list[HookError]:
        return await self.dispatch(Hook.AFTER_SEND, to, result)

    async def new_message(self, message: Any) -> list[HookError]:
        return await self.dispatch(Hook.NEW_MESSAGE, message)

    async def error(self, error: Exception, context: Any = None) -> list[HookError]:
        return await self.dispatch(Hook.ERROR, error, context)

    # -- Internal --------------------------------------------------------------

    async def _call(self, plugin: Plugin, hook: Hook, args: tuple) -> HookError | None:
        """Run one plugin's hook and convert any failure into a HookError."""
        fn = plugin.hook(hook)
        if fn is None:
            return None
        try:
            pending = maybe_await(fn(*args))
            if self._hook_timeout is None:
                await pending
            else:
                try:
                    await asyncio.wait_for(pending, self._hook_timeout)
                except TimeoutError as exc:
                    msg = f"{hook.value} timed out after {self._hook_timeout}s"
                    raise HookFailure(plugin.name, hook.value, msg) from exc
        except Exception as exc:
            return HookError(plugin_name=plugin.name, hook=hook, error=exc)
        return None

    async def _echo(self, errors: list[HookError]) -> None:
        """Forward hook failures to ``on_error`` without re-echoing."""
        for err in errors:
            logger.error(
                "Plugin %s %s failed: %s", err.plugin_name, err.hook.value, err.error
            )
            context = HookContext(plugin_name=err.plugin_name, hook=err.hook)
            echo_errors = await self.dispatch(Hook.ERROR, err.error, context)
            for echo in echo_errors:
                logger.error(
                    "Plugin %s on_error failed while handling %s: %s",
                    echo.plugin_name,
                    context,
                    echo.error,
                )


def define_plugin(name: str, **hooks: Any) -> Plugin:
    """Shorthand for ``Plugin(name=name, **hooks)``."""
    return Plugin(name=name, **hooks)
