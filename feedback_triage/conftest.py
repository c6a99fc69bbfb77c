"""Shared pytest fixtures."""
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import init_db
from models import FeedbackRecord


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_record(db_session):
    """Insert a stored feedback row directly."""
    async def _add(confidence, user_tier="Pro", sentiment="Neutral", human_sentiment=None, **fields):
        record = FeedbackRecord(
            source=fields.pop("source", "Discord"),
            user_tier=user_tier,
            product_area=fields.pop("product_area", "Workers"),
            content=fields.pop("content", f"feedback at {confidence}"),
            sentiment=sentiment,
            confidence=confidence,
            ai_analysis=fields.pop("ai_analysis", "summary"),
            human_sentiment=human_sentiment
        )
        db_session.add(record)
        await db_session.commit()
        await db_session.refresh(record)
        return record

    return _add
