"""In-process outbound email queue.

Request handlers call ``enqueue`` and return without waiting for delivery.
A single asyncio worker drains the queue and retries each message with
exponential backoff. A message that still fails is logged and dropped.
"""

import asyncio
import logging
from typing import Optional, Protocol

import aiosmtplib

from seminar_backend.core import config
from seminar_backend.services.email_service import EmailMessage, EmailService

logger = logging.getLogger(__name__)


class Outbox(Protocol):
    def enqueue(self, message: EmailMessage) -> bool: ...


class EmailOutbox:
    def __init__(
        self,
        service: EmailService,
        max_retries: int = config.EMAIL_MAX_RETRIES,
        base_delay: float = config.EMAIL_RETRY_BASE_DELAY_SECONDS,
        max_delay: float = 30.0,
    ):
        self.service = service
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker on the running event loop."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._worker = self._loop.create_task(self._run(self._queue), name='email-outbox')

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._queue = None
        self._loop = None

    def enqueue(self, message: EmailMessage) -> bool:
        """Accept a message for delivery. Safe to call from any thread."""
        loop, queue = self._loop, self._queue
        if loop is None or queue is None or loop.is_closed():
            logger.warning('[Outbox] Worker not running, dropping "%s" to %s', message.subject, message.to)
            return False

        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is loop:
            queue.put_nowait(message)
        else:
            loop.call_soon_threadsafe(queue.put_nowait, message)
        return True

    async def deliver_with_retry(self, message: EmailMessage) -> bool:
        for attempt in range(self.max_retries):
            try:
                return await self.service.deliver(message)
            except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as exc:
                if attempt < self.max_retries - 1:
                    delay = min(self.base_delay * (2 ** attempt), self.max_delay)
                    logger.warning(
                        '[Outbox] Attempt %d/%d for %s failed: %s. Retrying in %.1fs',
                        attempt + 1, self.max_retries, message.to, exc, delay,
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        '[Outbox] Giving up on "%s" to %s after %d attempts: %s',
                        message.subject, message.to, self.max_retries, exc,
                    )
        return False

    async def _run(self, queue: asyncio.Queue) -> None:
        while True:
            message = await queue.get()
            try:
                await self.deliver_with_retry(message)
            except Exception:
                logger.exception('[Outbox] Unexpected failure delivering "%s" to %s', message.subject, message.to)
            finally:
                queue.task_done()
