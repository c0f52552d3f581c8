# Providers package
"""External service providers for the smart weather query system."""

from .ai_parser import LLMQueryParser, ValidationConfig
from .llm_providers import GroqLLM, LangChainLLMWrapper
from .mock_llm import MockLLM

__all__ = ["GroqLLM", "LangChainLLMWrapper", "LLMQueryParser", "MockLLM", "ValidationConfig"]
