"""Configuration management for the feedback triage service."""
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration."""

    # OpenAI Configuration
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    AI_MODEL = os.getenv("AI_MODEL", "gpt-4o-mini")
    AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "10"))

    # Classifier retry policy
    AI_MAX_ATTEMPTS = int(os.getenv("AI_MAX_ATTEMPTS", "3"))
    AI_BASE_DELAY_SECONDS = float(os.getenv("AI_BASE_DELAY_SECONDS", "0.5"))

    # API Configuration
    API_KEY = os.getenv("API_KEY", "test-api-key-12345")

    # Database Configuration
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./feedback.db")

    # Queue Configuration
    QUEUE_MAX_BATCH_SIZE = int(os.getenv("QUEUE_MAX_BATCH_SIZE", "10"))
    QUEUE_BATCH_TIMEOUT_SECONDS = float(os.getenv("QUEUE_BATCH_TIMEOUT_SECONDS", "5"))
    QUEUE_MAX_RETRIES = int(os.getenv("QUEUE_MAX_RETRIES", "3"))
    QUEUE_RETRY_DELAY_SECONDS = float(os.getenv("QUEUE_RETRY_DELAY_SECONDS", "5"))

    # Review Configuration
    REVIEW_CONFIDENCE_THRESHOLD = float(os.getenv("REVIEW_CONFIDENCE_THRESHOLD", "0.6"))
    DEFAULT_PER_PAGE = int(os.getenv("DEFAULT_PER_PAGE", "15"))
    MAX_PER_PAGE = int(os.getenv("MAX_PER_PAGE", "100"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Reference values used to validate filters
    VALID_SOURCES = [
        "Support Ticket",
        "Discord",
        "GitHub Issue",
        "Twitter",
        "Community Forum"
    ]
    VALID_TIERS = ["Enterprise", "Pro", "Free"]
    VALID_PRODUCT_AREAS = ["Workers", "D1", "Workers AI", "General/Billing"]
    VALID_SORT_COLUMNS = [
        "id", "source", "user_tier", "product_area",
        "sentiment", "confidence", "created_at"
    ]

    CRITICAL_TIER = "Enterprise"


config = Config()
