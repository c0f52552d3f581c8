# config.py
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .settings import Settings, settings

logger = logging.getLogger(__name__)


class Config:
    """Environment helpers for the weather query service"""

    # Common requests used by the demo entry point
    SAMPLE_QUERIES = [
        "What's the weather in Tokyo right now?",
        "weather in Tokyo tomorrow",
        "台北明天會下雨嗎",
        "東京の明日の天気",
        "Should I bring an umbrella in London this weekend?",
        "How hot was it in Paris yesterday?",
        "Where is Springfield?",
        "hourly forecast for New York",
    ]

    # Environment configuration
    IS_DEVELOPMENT = os.getenv("ENVIRONMENT", "development") == "development"

    @classmethod
    def load_env_for_development(cls) -> bool:
        """Load .env file only for local development"""
        if not cls.IS_DEVELOPMENT:
            return False
        loaded = load_dotenv()
        if loaded:
            logger.info("Loaded .env file for local development")
        return loaded

    @classmethod
    def get_groq_api_key(cls) -> Optional[str]:
        """Get Groq API key from environment"""
        cls.load_env_for_development()

        api_key = os.getenv("GROQ_API_KEY")
        if not api_key:
            logger.warning("GROQ_API_KEY not found in environment variables")
        return api_key


@dataclass(frozen=True)
class RouterConfig:
    """Read-only thresholds used by the query router"""

    min_confidence_threshold: float = 0.3
    ai_threshold: float = 0.5
    ai_timeout_seconds: float = 5.0
    fallback_confidence_ceiling: float = 0.75
    default_timezone: str = "Asia/Taipei"

    def __post_init__(self):
        for name in ("min_confidence_threshold", "ai_threshold", "fallback_confidence_ceiling"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be between 0 and 1, got {value}")
        if self.ai_timeout_seconds <= 0:
            raise ConfigurationError(
                f"ai_timeout_seconds must be positive, got {self.ai_timeout_seconds}"
            )

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "RouterConfig":
        return cls(
            min_confidence_threshold=source.MIN_CONFIDENCE_THRESHOLD,
            ai_threshold=source.AI_THRESHOLD,
            ai_timeout_seconds=source.AI_PARSER_TIMEOUT,
            fallback_confidence_ceiling=source.FALLBACK_CONFIDENCE_CEILING,
            default_timezone=source.DEFAULT_TIMEZONE,
        )


@dataclass(frozen=True)
class InputLimits:
    """Size limits applied to tool arguments before parsing"""

    max_query_length: int = 1000
    max_word_length: int = 200
    max_context_length: int = 500

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "InputLimits":
        return cls(
            max_query_length=source.MAX_QUERY_LENGTH,
            max_word_length=source.MAX_WORD_LENGTH,
            max_context_length=source.MAX_CONTEXT_LENGTH,
        )
