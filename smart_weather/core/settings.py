# settings.py
"""Centralized settings and configuration management."""

import os
from pathlib import Path


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


class Settings:
    """Application settings and configuration"""

    # Base paths
    BASE_DIR = Path(__file__).parent.parent
    CONFIG_DIR = BASE_DIR / "config"

    # LLM Configuration
    GROQ_API_KEY = os.getenv("GROQ_API_KEY")
    LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.1-8b-instant")

    # Application settings
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    DEBUG = ENVIRONMENT == "development"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()

    # Timeouts (seconds)
    AI_PARSER_TIMEOUT = _float_env("AI_PARSER_TIMEOUT", 5.0)
    DOWNSTREAM_TIMEOUT = _float_env("DOWNSTREAM_TIMEOUT", 10.0)

    # Confidence gate
    MIN_CONFIDENCE_THRESHOLD = _float_env("MIN_CONFIDENCE_THRESHOLD", 0.3)
    AI_THRESHOLD = _float_env("AI_THRESHOLD", 0.5)
    FALLBACK_CONFIDENCE_CEILING = _float_env("FALLBACK_CONFIDENCE_CEILING", 0.75)

    # Locale
    DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Taipei")
    DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en")
    SUPPORTED_LANGUAGES = ("en", "zh-TW", "zh-CN", "ja")

    # Input limits
    MAX_QUERY_LENGTH = _int_env("MAX_QUERY_LENGTH", 1000)
    MAX_WORD_LENGTH = _int_env("MAX_WORD_LENGTH", 200)
    MAX_CONTEXT_LENGTH = _int_env("MAX_CONTEXT_LENGTH", 500)

    # Known places
    LOCATIONS_CONFIG_PATH = os.getenv(
        "LOCATIONS_CONFIG_PATH", str(CONFIG_DIR / "locations.yaml")
    )


# Global settings instance
settings = Settings()
