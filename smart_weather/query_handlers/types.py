# types.py
"""Data types and models for the query routing system."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from smart_weather.core.models import (
    Coordinates,
    DetailLevel,
    IntentType,
    TemperatureUnit,
)


class Capability(str, Enum):
    """Downstream capabilities a parsed query can be dispatched to"""

    CURRENT_CONDITIONS = "current_conditions"
    DAILY_FORECAST = "daily_forecast"
    HOURLY_FORECAST = "hourly_forecast"
    HISTORY = "history"
    LOCATION_SEARCH = "location_search"
    ADVICE = "advice"


class ToolName(str, Enum):
    """Tools exposed to the AI assistant"""

    SEARCH_WEATHER = "search_weather"
    FIND_LOCATION = "find_location"
    GET_WEATHER_ADVICE = "get_weather_advice"


@dataclass(frozen=True)
class ContextHints:
    """Structured hints recovered from the free-text context"""

    location: Optional[str] = None
    timeframe: Optional[str] = None
    temperature_unit: Optional[TemperatureUnit] = None
    language: Optional[str] = None
    detail_level: Optional[DetailLevel] = None


@dataclass(frozen=True)
class IntentClassification:
    """Classification result for a query"""

    primary: IntentType
    confidence: float
    secondary: Tuple[IntentType, ...]
    scores: Dict[IntentType, float]
    reasoning: str


@dataclass(frozen=True)
class ApiParameters:
    """Parameters handed to the selected capability"""

    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    units: str = "metric"
    language: str = "en"
    forecast_days: Optional[int] = None
    forecast_hours: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "units": self.units,
            "language": self.language,
            "forecast_days": self.forecast_days,
            "forecast_hours": self.forecast_hours,
        }


@dataclass(frozen=True)
class DispatchDecision:
    """Which capability serves a parsed query, and with which parameters"""

    capability: Capability
    tool: ToolName
    intent: IntentType
    parameters: ApiParameters = field(default_factory=ApiParameters)
    reasoning: str = ""
    demoted_from: Optional[IntentType] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capability": self.capability.value,
            "tool": self.tool.value,
            "intent": self.intent.value,
            "parameters": self.parameters.to_dict(),
            "reasoning": self.reasoning,
            "demoted_from": self.demoted_from.value if self.demoted_from else None,
        }
