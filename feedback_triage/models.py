"""Database models for feedback storage."""
from datetime import datetime, UTC
from sqlalchemy import Column, Integer, String, DateTime, Text, Float
from sqlalchemy.orm import declarative_base

from config import config

Base = declarative_base()


class FeedbackRecord(Base):
    """Classified feedback row.

    Everything except ``human_sentiment`` is written once at insert time.
    """

    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    source = Column(String(50), nullable=False, default="unknown")
    user_tier = Column(String(50), nullable=False, default="unknown")
    product_area = Column(String(50), nullable=False, default="unknown")
    content = Column(Text, nullable=False)
    sentiment = Column(String(20), nullable=False)  # Negative, Neutral, Positive, Unknown
    confidence = Column(Float, nullable=True, index=True)
    ai_analysis = Column(Text, nullable=True)  # one sentence summary from the model
    human_sentiment = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))

    @property
    def is_critical(self) -> bool:
        """Enterprise feedback the model classified as Negative."""
        return self.user_tier == config.CRITICAL_TIER and self.sentiment == "Negative"

    def to_dict(self):
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "source": self.source,
            "user_tier": self.user_tier,
            "product_area": self.product_area,
            "content": self.content,
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "ai_analysis": self.ai_analysis,
            "human_sentiment": self.human_sentiment,
            "is_critical": self.is_critical,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
