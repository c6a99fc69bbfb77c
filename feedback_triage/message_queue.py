"""In-process message queue with at-least-once delivery."""
import asyncio
import logging
from typing import Any, Iterable, List, Optional, Set

from config import config

logger = logging.getLogger(__name__)


class QueueMessage:
    """A delivered message that must be settled with ack() or retry().

    Only the first settlement counts.
    """

    def __init__(self, body: Any, queue: "FeedbackQueue", attempts: int = 1):
        self.body = body
        self.attempts = attempts
        self._queue = queue
        self.settled: Optional[str] = None

    def ack(self) -> None:
        if self.settled:
            return
        self.settled = "ack"

    def retry(self) -> None:
        if self.settled:
            return
        self.settled = "retry"
        self._queue.redeliver(self)


class FeedbackQueue:
    """asyncio-backed queue that hands out batches of messages.

    Retried messages come back after ``retry_delay`` seconds until they
    have been redelivered ``max_retries`` times; after that they are dropped.
    """

    def __init__(
        self,
        max_batch_size: Optional[int] = None,
        batch_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None
    ):
        self.max_batch_size = max_batch_size or config.QUEUE_MAX_BATCH_SIZE
        self.batch_timeout = batch_timeout if batch_timeout is not None else config.QUEUE_BATCH_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else config.QUEUE_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else config.QUEUE_RETRY_DELAY_SECONDS
        self._queue: asyncio.Queue = asyncio.Queue()
        self._pending: Set[asyncio.Task] = set()
        self.dropped = 0

    def qsize(self) -> int:
        return self._queue.qsize()

    async def send(self, body: Any) -> None:
        await self._queue.put(QueueMessage(body, self))

    async def send_batch(self, bodies: Iterable[Any]) -> int:
        count = 0
        for body in bodies:
            await self.send(body)
            count += 1
        return count

    def redeliver(self, message: QueueMessage) -> None:
        """Schedule another delivery of a message that asked for a retry."""
        if message.attempts > self.max_retries:
            self.dropped += 1
            logger.error(
                f"Dropping message after {message.attempts} delivery attempts: "
                f"{str(message.body)[:100]}"
            )
            return

        again = QueueMessage(message.body, self, attempts=message.attempts + 1)
        if self.retry_delay <= 0:
            self._queue.put_nowait(again)
            return

        task = asyncio.get_running_loop().create_task(self._delayed_put(again))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _delayed_put(self, message: QueueMessage) -> None:
        await asyncio.sleep(self.retry_delay)
        await self._queue.put(message)

    async def receive_batch(self) -> List[QueueMessage]:
        """Wait for at least one message, then drain up to a full batch.

        Returns an empty list if nothing arrived within ``batch_timeout``.
        """
        try:
            first = await asyncio.wait_for(self._queue.get(), timeout=self.batch_timeout)
        except asyncio.TimeoutError:
            return []

        batch = [first]
        while len(batch) < self.max_batch_size:
            try:
                batch.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return batch

    async def close(self) -> None:
        """Cancel any redeliveries still waiting on their delay."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
