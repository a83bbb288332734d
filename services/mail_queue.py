"""
Post-success mail dispatch.

Workflows enqueue a composed MailMessage only after their state change has
been committed; a background worker drains the queue into the MailSender.
Delivery faults are logged and dropped so they can never roll back, block,
or fail the request that queued the message.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from infrastructure.email.protocol import MailMessage, MailSender
from shared.logging import get_logger

log = get_logger(__name__)


class MailDispatcher:
    def __init__(self, sender: MailSender, maxsize: int = 1000) -> None:
        self._sender = sender
        self._queue: asyncio.Queue[MailMessage] = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    def enqueue(self, message: MailMessage) -> bool:
        """Queue *message* without waiting. Returns False if the queue is full."""
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            log.error("mail_queue_full", to_email=message.address, subject=message.subject)
            return False
        return True

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="mail-dispatcher")
            log.info("mail_dispatcher_started")

    async def join(self) -> None:
        """Wait until every queued message has been handed to the sender."""
        await self._queue.join()

    async def stop(self, drain_timeout: float = 5.0) -> None:
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            log.warning("mail_dispatcher_drain_timeout", pending=self._queue.qsize())
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        log.info("mail_dispatcher_stopped")

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                delivered = await self._sender.send(
                    message.address, message.subject, message.body, message.text_body
                )
                if not delivered:
                    log.warning(
                        "mail_delivery_failed",
                        to_email=message.address,
                        subject=message.subject,
                    )
            except Exception as e:
                log.error(
                    "mail_delivery_error",
                    to_email=message.address,
                    subject=message.subject,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                self._queue.task_done()
