"""Stock plugin that reports lifecycle events through ``logging``."""

from __future__ import annotations

import logging
from typing import Any

from courier.plugins.core import Plugin, define_plugin

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _preview(content: Any, limit: int) -> str:
    if isinstance(content, str):
        text = content
    elif isinstance(content, dict):
        text = content.get("text") or ""
    else:
        text = getattr(content, "text", None) or ""
    return text[:limit] or "(no text)"


def _attachment_count(content: Any) -> int:
    if not isinstance(content, dict):
        return 0
    return sum(
        len(content.get(key) or []) for key in ("images", "files", "attachments")
    )


def logger_plugin(
    level: str = "info",
    *,
    log_send: bool = True,
    log_new_message: bool = False,
    logger_name: str = "courier.plugins.logger",
) -> Plugin:
    """Build a plugin that logs init, sends, new messages, errors and destroy.

    Args:
        level: Minimum level to emit (``debug``, ``info``, ``warn``, ``error``).
        log_send: Log before/after each send.
        log_new_message: Log incoming messages.
        logger_name: Name of the ``logging`` logger to write to.
    """
    if level.lower() not in _LEVELS:
        msg = f"Unknown log level: {level!r}"
        raise ValueError(msg)

    log = logging.getLogger(logger_name)
    log.setLevel(_LEVELS[level.lower()])

    def on_init() -> None:
        log.info("Plugins initialized")

    def on_before_send(to: str, content: Any) -> None:
        if not log_send:
            return
        attachments = _attachment_count(content)
        suffix = f" + {attachments} attachment(s)" if attachments else ""
        log.info("[SEND] Sending to %s: %s%s", to, _preview(content, 30), suffix)

    def on_after_send(to: str, result: Any) -> None:
        if log_send:
            log.info("[OK] Sent successfully -> %s", to)

    def on_new_message(message: Any) -> None:
        if not log_new_message:
            return
        sender = getattr(message, "sender", None)
        if sender is None and isinstance(message, dict):
            sender = message.get("sender")
        log.info("[MSG] New message from %s: %s", sender or "unknown", _preview(message, 40))

    def on_error(error: Exception, context: Any = None) -> None:
        log.error("[ERROR] %s: %s", context or "Error", error)

    def on_destroy() -> None:
        log.info("[CLOSE] Plugins destroyed")

    return define_plugin(
        "logger",
        version="1.0.0",
        description="Logs send, receive and lifecycle events",
        on_init=on_init,
        on_before_send=on_before_send,
        on_after_send=on_after_send,
        on_new_message=on_new_message,
        on_error=on_error,
        on_destroy=on_destroy,
    )
