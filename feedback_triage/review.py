"""Review queue selection and human corrections."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from database import (
    clamp_page,
    clamp_per_page,
    query_review_queue,
    total_pages,
    update_human_sentiment,
)
from schemas import PaginatedResult, Sentiment

logger = logging.getLogger(__name__)


async def select_for_review(
    db: AsyncSession,
    page: Optional[int] = 1,
    per_page: Optional[int] = None,
    exclude_ids=None
) -> PaginatedResult:
    """Return one page of records waiting for human review.

    Least confident first, Enterprise before other tiers on ties.
    Read-only.

    Args:
        db: Database session
        page: 1-indexed page number, clamped to at least 1
        per_page: Page size, clamped to [1, MAX_PER_PAGE]
        exclude_ids: Record ids to leave out, e.g. items a reviewer skipped

    Returns:
        PaginatedResult of FeedbackRecord
    """
    page = clamp_page(page)
    per_page = clamp_per_page(per_page)

    records, total = await query_review_queue(
        db, limit=per_page, offset=(page - 1) * per_page, exclude_ids=exclude_ids
    )

    return PaginatedResult(
        data=records,
        total=total,
        page=page,
        per_page=per_page,
        total_pages=total_pages(total, per_page)
    )


async def apply_correction(db: AsyncSession, feedback_id: int, human_sentiment: str) -> bool:
    """Record a reviewer's sentiment for a feedback item.

    The automated ``sentiment`` is left untouched. A later correction
    overwrites an earlier one.

    Returns:
        False if the value is not a valid sentiment or the id does not exist
    """
    if human_sentiment not in Sentiment.values():
        logger.info(f"Rejected correction for feedback {feedback_id}: invalid sentiment {human_sentiment!r}")
        return False

    rows = await update_human_sentiment(db, feedback_id, human_sentiment)
    if rows == 0:
        logger.info(f"Correction for feedback {feedback_id} matched no record")
        return False

    logger.info(f"Feedback {feedback_id} corrected to {human_sentiment}")
    return True
