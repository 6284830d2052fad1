"""Interfaces to the messaging host: message delivery and wall-clock time."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol, TypeAlias, TypeVar, runtime_checkable

# Plain text, or a mapping such as {"text": ..., "images": [...], "files": [...]}
Content: TypeAlias = str | dict[str, Any]

T = TypeVar("T")


@dataclass(frozen=True)
class SendResult:
    """Delivery metadata reported by a MessageSender."""

    sent_at: datetime


@runtime_checkable
class MessageSender(Protocol):
    """Protocol for anything that can deliver content to a recipient.

    ``send`` may be a plain method or a coroutine. It raises when delivery
    cannot be confirmed.
    """

    def send(self, to: str, content: Content) -> SendResult | Awaitable[SendResult]:
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Clock backed by the system time, always timezone-aware UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


async def maybe_await(value: T | Awaitable[T]) -> T:
    """Await *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
