"""Database connection and operations."""
import math
from typing import Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from config import config
from models import Base, FeedbackRecord
from schemas import (
    ClassificationResult,
    DashboardStats,
    FeedbackFilters,
    FeedbackSubmission,
    PaginatedResult,
    Sentiment,
)


# Create async engine
# StaticPool for SQLite to avoid threading issues
engine = create_async_engine(
    config.DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False
)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def init_db(db_engine=None):
    """Initialize database tables."""
    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        yield session


def get_db_session():
    """Get database session as context manager (for CLI usage).

    Returns:
        Async context manager for database session
    """
    return AsyncSessionLocal()


def clamp_page(page: Optional[int]) -> int:
    return max(1, page or 1)


def clamp_per_page(per_page: Optional[int]) -> int:
    if per_page is None:
        per_page = config.DEFAULT_PER_PAGE
    return min(config.MAX_PER_PAGE, max(1, per_page))


def total_pages(total: int, per_page: int) -> int:
    return max(1, math.ceil(total / per_page))


def enterprise_first():
    """Sort key putting the critical tier ahead of everything else."""
    return case((FeedbackRecord.user_tier == config.CRITICAL_TIER, 0), else_=1)


async def insert_feedback(
    db: AsyncSession,
    submission: FeedbackSubmission,
    analysis: ClassificationResult
) -> FeedbackRecord:
    """Save a submission and its classification as one row.

    Args:
        db: Database session
        submission: Validated feedback submission
        analysis: Classifier output

    Returns:
        Saved FeedbackRecord

    Raises:
        SQLAlchemyError: On connectivity or constraint failure
    """
    record = FeedbackRecord(
        source=submission.source,
        user_tier=submission.user_tier,
        product_area=submission.product_area,
        content=submission.content,
        sentiment=analysis.sentiment.value,
        confidence=analysis.confidence,
        ai_analysis=analysis.summary
    )

    db.add(record)
    await db.commit()
    await db.refresh(record)

    return record


def review_eligible():
    """Low confidence and not yet corrected by a human."""
    return (
        FeedbackRecord.confidence.is_not(None),
        FeedbackRecord.confidence < config.REVIEW_CONFIDENCE_THRESHOLD,
        FeedbackRecord.human_sentiment.is_(None),
    )


async def query_review_queue(db: AsyncSession, limit: int, offset: int, exclude_ids=None):
    """Fetch one slice of the review queue.

    Records in ``exclude_ids`` are left out of both the slice and the count.

    Returns:
        Tuple of (records, total eligible count)
    """
    conditions = list(review_eligible())
    if exclude_ids:
        conditions.append(FeedbackRecord.id.not_in(list(exclude_ids)))

    total = await db.scalar(
        select(func.count()).select_from(FeedbackRecord).where(*conditions)
    )

    result = await db.execute(
        select(FeedbackRecord)
        .where(*conditions)
        .order_by(FeedbackRecord.confidence.asc(), enterprise_first(), FeedbackRecord.id.asc())
        .limit(limit)
        .offset(offset)
    )

    return list(result.scalars().all()), total or 0


async def update_human_sentiment(db: AsyncSession, feedback_id: int, value: str) -> int:
    """Set the human sentiment on one record.

    Returns:
        Number of rows affected
    """
    result = await db.execute(
        update(FeedbackRecord)
        .where(FeedbackRecord.id == feedback_id)
        .values(human_sentiment=value)
    )
    await db.commit()
    return result.rowcount


def _filter_conditions(filters: FeedbackFilters) -> list:
    conditions = []

    if filters.source and filters.source in config.VALID_SOURCES:
        conditions.append(FeedbackRecord.source == filters.source)
    if filters.user_tier and filters.user_tier in config.VALID_TIERS:
        conditions.append(FeedbackRecord.user_tier == filters.user_tier)
    if filters.product_area and filters.product_area in config.VALID_PRODUCT_AREAS:
        conditions.append(FeedbackRecord.product_area == filters.product_area)
    if filters.sentiment and filters.sentiment in Sentiment.values():
        conditions.append(FeedbackRecord.sentiment == filters.sentiment)
    if filters.critical:
        conditions.append(FeedbackRecord.user_tier == config.CRITICAL_TIER)
        conditions.append(FeedbackRecord.sentiment == Sentiment.NEGATIVE.value)
    if filters.search and filters.search.strip():
        pattern = f"%{filters.search.strip()}%"
        conditions.append(or_(
            FeedbackRecord.content.ilike(pattern),
            FeedbackRecord.ai_analysis.ilike(pattern)
        ))

    return conditions


async def query_feedback(db: AsyncSession, filters: FeedbackFilters) -> PaginatedResult:
    """List stored feedback with filters, sorting and pagination.

    Enterprise rows always come first; the requested sort applies within
    each tier group.
    """
    conditions = _filter_conditions(filters)

    sort_name = filters.sort_by if filters.sort_by in config.VALID_SORT_COLUMNS else "id"
    sort_column = getattr(FeedbackRecord, sort_name)
    sort_clause = sort_column.asc() if filters.sort_order == "ASC" else sort_column.desc()

    page = clamp_page(filters.page)
    per_page = clamp_per_page(filters.per_page)

    total = await db.scalar(
        select(func.count()).select_from(FeedbackRecord).where(*conditions)
    ) or 0

    result = await db.execute(
        select(FeedbackRecord)
        .where(*conditions)
        .order_by(enterprise_first(), sort_clause)
        .limit(per_page)
        .offset((page - 1) * per_page)
    )

    return PaginatedResult(
        data=list(result.scalars().all()),
        total=total,
        page=page,
        per_page=per_page,
        total_pages=total_pages(total, per_page)
    )


async def get_stats(db: AsyncSession) -> DashboardStats:
    """Aggregate counts for the dashboard."""
    stats = DashboardStats()

    rows = await db.execute(
        select(FeedbackRecord.product_area, FeedbackRecord.sentiment, func.count())
        .group_by(FeedbackRecord.product_area, FeedbackRecord.sentiment)
    )
    for product_area, sentiment, count in rows.all():
        stats.total += count
        stats.by_product_area[product_area] = stats.by_product_area.get(product_area, 0) + count
        stats.by_sentiment[sentiment] = stats.by_sentiment.get(sentiment, 0) + count
        stats.by_product_sentiment.setdefault(product_area, {})[sentiment] = count

    stats.negative = stats.by_sentiment.get(Sentiment.NEGATIVE.value, 0)
    stats.positive = stats.by_sentiment.get(Sentiment.POSITIVE.value, 0)
    stats.neutral = stats.by_sentiment.get(Sentiment.NEUTRAL.value, 0)
    stats.unknown = stats.by_sentiment.get(Sentiment.UNKNOWN.value, 0)

    stats.enterprise_negative = await db.scalar(
        select(func.count()).select_from(FeedbackRecord).where(
            FeedbackRecord.user_tier == config.CRITICAL_TIER,
            FeedbackRecord.sentiment == Sentiment.NEGATIVE.value
        )
    ) or 0
    stats.low_confidence = await db.scalar(
        select(func.count()).select_from(FeedbackRecord).where(
            FeedbackRecord.confidence.is_not(None),
            FeedbackRecord.confidence < config.REVIEW_CONFIDENCE_THRESHOLD
        )
    ) or 0

    return stats
