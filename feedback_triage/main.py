"""Main FastAPI application for feedback triage."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, Optional

from fastapi import Body, FastAPI, Depends, HTTPException, Header, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import config
from database import init_db, get_db, get_stats, query_feedback
from schemas import (
    CorrectionRequest,
    CorrectionResponse,
    DashboardStats,
    FeedbackFilters,
    FeedbackResponse,
    IngestResponse,
    PaginatedResult,
    Sentiment,
)
from classifier import Classifier
from consumer import FeedbackConsumer
from message_queue import FeedbackQueue
from review import apply_correction, select_for_review

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize services
feedback_queue = FeedbackQueue()
consumer = FeedbackConsumer(Classifier())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Initializing database...")
    await init_db()
    consumer_task = asyncio.create_task(consumer.run(feedback_queue))
    logger.info("Application started successfully")
    yield
    # Shutdown
    logger.info("Application shutting down")
    consumer_task.cancel()
    with suppress(asyncio.CancelledError):
        await consumer_task
    await feedback_queue.close()


app = FastAPI(
    title="Feedback Triage API",
    description="Sentiment classification and human review for user feedback",
    version="1.0.0",
    lifespan=lifespan
)


async def verify_api_key(x_api_key: str = Header(...)) -> None:
    """Verify API key authentication.

    Single shared key from config.
    """
    if x_api_key != config.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )


def to_response_page(result: PaginatedResult) -> PaginatedResult[FeedbackResponse]:
    return PaginatedResult[FeedbackResponse](
        data=[FeedbackResponse(**record.to_dict()) for record in result.data],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        total_pages=result.total_pages
    )


@app.post("/api/feedback", response_model=IngestResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_feedback(
    items: Any = Body(...),
    _: None = Depends(verify_api_key)
):
    """Queue a batch of feedback items for classification.

    Items without a non-empty string ``content`` are dropped. The request
    is rejected if nothing valid is left.
    """
    if not isinstance(items, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON. Expected an array of feedback items."
        )

    valid_items = [
        item for item in items
        if isinstance(item, dict) and isinstance(item.get("content"), str) and item["content"]
    ]

    if not valid_items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid feedback items with content found."
        )

    dropped = len(items) - len(valid_items)
    if dropped:
        logger.warning(f"Dropped {dropped} feedback item(s) without content")

    queued = await feedback_queue.send_batch(valid_items)
    logger.info(f"Queued {queued} feedback item(s)")

    return IngestResponse(message=f"Accepted {queued} items for processing", queued=queued)


@app.get("/api/feedback", response_model=PaginatedResult[FeedbackResponse])
async def list_feedback(
    source: Optional[str] = None,
    tier: Optional[str] = None,
    product: Optional[str] = None,
    sentiment: Optional[str] = None,
    critical: bool = False,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    order: str = "DESC",
    page: int = 1,
    per_page: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    _: None = Depends(verify_api_key)
):
    """List stored feedback with filters and pagination."""
    filters = FeedbackFilters(
        source=source,
        user_tier=tier,
        product_area=product,
        sentiment=sentiment,
        critical=critical,
        search=search,
        sort_by=sort,
        sort_order="ASC" if order == "ASC" else "DESC",
        page=page,
        per_page=per_page
    )
    return to_response_page(await query_feedback(db, filters))


@app.get("/api/review", response_model=PaginatedResult[FeedbackResponse])
async def review_queue(
    page: int = Query(1),
    per_page: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    _: None = Depends(verify_api_key)
):
    """Low-confidence feedback waiting for a human decision."""
    return to_response_page(await select_for_review(db, page, per_page))


@app.patch("/api/feedback/{feedback_id}", response_model=CorrectionResponse)
async def correct_feedback(
    feedback_id: int,
    request: CorrectionRequest,
    db: AsyncSession = Depends(get_db),
    _: None = Depends(verify_api_key)
):
    """Apply a human sentiment correction."""
    if request.human_sentiment not in Sentiment.values():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid human_sentiment. Must be one of: {', '.join(Sentiment.values())}"
        )

    if not await apply_correction(db, feedback_id, request.human_sentiment):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Feedback item not found"
        )

    return CorrectionResponse(success=True, id=feedback_id, human_sentiment=request.human_sentiment)


@app.get("/api/stats", response_model=DashboardStats)
async def stats(
    db: AsyncSession = Depends(get_db),
    _: None = Depends(verify_api_key)
):
    """Aggregate counts over stored feedback."""
    return await get_stats(db)


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns system status including AI availability and queue depth.
    """
    ai_status = "healthy" if consumer.classifier.client else "degraded"

    return {
        "status": "healthy",
        "ai_provider": ai_status,
        "queue": {
            "pending": feedback_queue.qsize(),
            "dropped": feedback_queue.dropped
        }
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )
