"""DeliveryExecutor: the send path shared by every scheduled job."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from courier.errors import SendFailure
from courier.sender import maybe_await

if TYPE_CHECKING:
    from courier.plugins.core import PluginRegistry
    from courier.scheduler.models import Job
    from courier.sender import MessageSender, SendResult

logger = logging.getLogger(__name__)


class DeliveryExecutor:
    """Delivers a job through the sender, surrounded by plugin hooks.

    Args:
        sender: MessageSender that talks to the messaging host.
        plugins: Optional PluginRegistry receiving ``before_send``,
            ``after_send`` and ``error`` hooks.
    """

    def __init__(
        self,
        sender: MessageSender,
        plugins: PluginRegistry | None = None,
    ) -> None:
        self._sender = sender
        self._plugins = plugins

    @property
    def plugins(self) -> PluginRegistry | None:
        return self._plugins

    async def deliver(self, job: Job) -> SendResult:
        """Send *job* and return the sender's result.

        Raises SendFailure (chained to the sender's exception) when delivery
        fails. Plugin hook failures never abort the send.
        """
        if self._plugins is not None:
            await self._plugins.before_send(job.to, job.content)

        logger.info("Sending %s job %s to %s", job.kind.value, job.id, job.to)
        try:
            result = await maybe_await(self._sender.send(job.to, job.content))
        except Exception as exc:
            logger.exception("Send failed for job %s (%s)", job.id, job.to)
            failure = SendFailure(job.id, job.to, str(exc))
            if self._plugins is not None:
                await self._plugins.error(failure, f"Send to {job.to} (job {job.id})")
            raise failure from exc

        if self._plugins is not None:
            await self._plugins.after_send(job.to, result)
        return result
