# llm_providers.py
"""
Groq LLM provider for the smart weather query parser using LangChain

This module provides Groq integration using LangChain for query parsing
and weather advice generation.
"""

import logging
from typing import Optional

# LangChain imports
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.output_parsers import StrOutputParser
from langchain_core.utils.utils import convert_to_secret_str
from langchain_groq import ChatGroq

from smart_weather.core.exceptions import AIParserError, ConfigurationError
from smart_weather.core.interfaces import LLMInterface
from smart_weather.core.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a weather query understanding assistant. "
    "Always answer with a single valid JSON object and nothing else."
)


class LangChainLLMWrapper(LLMInterface):
    """Base wrapper for LangChain chat model implementations"""

    def __init__(self, llm, model_name: str = "unknown", system_prompt: str = DEFAULT_SYSTEM_PROMPT):
        self.llm = llm
        self.model_name = model_name
        self.system_prompt = system_prompt
        self.output_parser = StrOutputParser()

    def _messages(self, prompt: str):
        return [
            SystemMessage(content=self.system_prompt),
            HumanMessage(content=prompt),
        ]

    def generate_response(self, prompt: str) -> str:
        try:
            response = self.llm.invoke(self._messages(prompt))
            return self.output_parser.invoke(response)
        except Exception as e:
            raise AIParserError(f"Error generating response: {str(e)}") from e

    async def agenerate_response(self, prompt: str) -> str:
        try:
            response = await self.llm.ainvoke(self._messages(prompt))
            return self.output_parser.invoke(response)
        except Exception as e:
            raise AIParserError(f"Error generating response: {str(e)}") from e


class GroqLLM(LangChainLLMWrapper):
    """
    Groq API using LangChain - free tier available with very fast inference

    Setup:
    1. Sign up at https://console.groq.com/
    2. Get free API key
    3. Set environment variable: export GROQ_API_KEY=your_key
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ):
        model_name = model_name or settings.LLM_MODEL
        api_key = api_key or settings.GROQ_API_KEY

        if not api_key:
            raise ConfigurationError(
                "GROQ_API_KEY not set. Set it as environment variable to enable AI parsing."
            )

        logger.info(f"Using Groq model {model_name}")
        llm = ChatGroq(
            model=model_name,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=convert_to_secret_str(api_key),
        )
        super().__init__(llm, model_name=model_name)
