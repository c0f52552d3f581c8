# interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import ParsingRequest, ParsingResult


class LLMInterface(ABC):
    """Abstract interface for LLM implementations"""

    model_name: str = "unknown"

    @abstractmethod
    def generate_response(self, prompt: str) -> str:
        pass

    async def agenerate_response(self, prompt: str) -> str:
        """Async variant; implementations with a native async client override this"""
        return self.generate_response(prompt)


class QueryParser(ABC):
    """Abstract interface for AI query parsers"""

    @abstractmethod
    async def parse_query(self, request: ParsingRequest) -> ParsingResult:
        pass


class WeatherBackend(ABC):
    """Abstract interface for weather data providers.

    Payloads are opaque dictionaries. Failures are raised as
    ``UpstreamAPIError`` (or a network error) and converted by the caller.
    """

    @abstractmethod
    async def current_conditions(self, lat: float, lng: float, **params) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def daily_forecast(
        self, lat: float, lng: float, days: int = 5, **params
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def hourly_forecast(
        self, lat: float, lng: float, hours: int = 24, **params
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def history(
        self,
        lat: float,
        lng: float,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        **params,
    ) -> Dict[str, Any]:
        pass


class LocationBackend(ABC):
    """Abstract interface for geocoding providers"""

    @abstractmethod
    async def search(self, query: str, language: str = "en") -> List[Dict[str, Any]]:
        pass
