"""Queue consumer that classifies and stores feedback."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

from pydantic import ValidationError
from classifier import Classifier
from database import AsyncSessionLocal, insert_feedback
from message_queue import FeedbackQueue, QueueMessage
from schemas import FeedbackSubmission

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """How each message in a batch was settled."""
    acked: int = 0
    retried: int = 0
    rejected: int = 0


class FeedbackConsumer:
    """Drives the classifier from queued feedback submissions.

    Messages are handled one at a time in delivery order. A message is
    acknowledged only after its row is committed; a storage failure marks
    it for redelivery and the batch carries on. Redelivered messages are
    classified again and may produce duplicate rows.
    """

    def __init__(self, classifier: Classifier, session_factory=None):
        self.classifier = classifier
        self.session_factory = session_factory or AsyncSessionLocal

    async def process_batch(self, messages: Iterable[QueueMessage]) -> BatchOutcome:
        outcome = BatchOutcome()

        for message in messages:
            try:
                submission = FeedbackSubmission.model_validate(message.body)
            except ValidationError as e:
                # Redelivery cannot fix a malformed body
                logger.warning(f"Discarding invalid feedback message: {e.error_count()} validation error(s)")
                message.ack()
                outcome.rejected += 1
                continue

            analysis = await self.classifier.classify(submission.content)

            try:
                async with self.session_factory() as session:
                    record = await insert_feedback(session, submission, analysis)
            except Exception:
                logger.exception(
                    f"Failed to store feedback (delivery attempt {message.attempts}); marking for retry"
                )
                message.retry()
                outcome.retried += 1
                continue

            message.ack()
            outcome.acked += 1
            logger.info(
                f"Stored feedback {record.id}: {analysis.sentiment.value} "
                f"(confidence {analysis.confidence:.2f})"
            )

        return outcome

    async def run(self, queue: FeedbackQueue) -> None:
        """Consume batches until cancelled."""
        logger.info("Feedback consumer started")
        try:
            while True:
                batch = await queue.receive_batch()
                if not batch:
                    continue
                outcome = await self.process_batch(batch)
                logger.info(
                    f"Processed batch of {len(batch)}: {outcome.acked} stored, "
                    f"{outcome.retried} retried, {outcome.rejected} rejected"
                )
        except asyncio.CancelledError:
            logger.info("Feedback consumer stopped")
            raise
