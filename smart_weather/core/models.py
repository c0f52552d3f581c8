# models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple


class IntentType(str, Enum):
    """Closed set of user intents"""

    CURRENT_WEATHER = "current_weather"
    WEATHER_FORECAST = "weather_forecast"
    HISTORICAL_WEATHER = "historical_weather"
    WEATHER_ADVICE = "weather_advice"
    LOCATION_SEARCH = "location_search"


# Narrower intents first; used to break equal scores
INTENT_SPECIFICITY: Tuple[IntentType, ...] = (
    IntentType.WEATHER_ADVICE,
    IntentType.HISTORICAL_WEATHER,
    IntentType.WEATHER_FORECAST,
    IntentType.CURRENT_WEATHER,
    IntentType.LOCATION_SEARCH,
)


class TimeScopeType(str, Enum):
    CURRENT = "current"
    FORECAST = "forecast"
    HISTORICAL = "historical"


class ParsingSource(str, Enum):
    AI = "ai"
    RULE_BASED = "rule_based"
    HYBRID = "hybrid"


class WeatherMetric(str, Enum):
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    PRECIPITATION = "precipitation"
    WIND = "wind"
    PRESSURE = "pressure"
    VISIBILITY = "visibility"
    UV_INDEX = "uv_index"
    AIR_QUALITY = "air_quality"
    CONDITIONS = "conditions"
    FEELS_LIKE = "feels_like"


DEFAULT_METRICS: FrozenSet[WeatherMetric] = frozenset(
    {WeatherMetric.TEMPERATURE, WeatherMetric.CONDITIONS}
)


class TemperatureUnit(str, Enum):
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"


class DetailLevel(str, Enum):
    BASIC = "basic"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def clamp_confidence(value: float) -> float:
    """Clamp a score into the 0.0-1.0 range"""
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class LocationInfo:
    """Resolved (or unresolved) location of a query"""

    name: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    confidence: float = 0.1
    suggestions: Tuple[str, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return bool(self.name) or self.coordinates is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "confidence": round(self.confidence, 3),
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class WeatherIntent:
    """Primary intent plus optional secondary intents"""

    primary: IntentType
    confidence: float
    secondary: Tuple[IntentType, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary.value,
            "secondary": [intent.value for intent in self.secondary],
            "confidence": round(self.confidence, 3),
        }


@dataclass(frozen=True)
class TimeScope:
    """Resolved temporal window of a query"""

    type: TimeScopeType
    confidence: float
    period: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_anchored(self) -> bool:
        return self.start is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "period": self.period,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "confidence": round(self.confidence, 3),
        }


@dataclass(frozen=True)
class UserPreferences:
    language: str = "en"
    temperature_unit: TemperatureUnit = TemperatureUnit.CELSIUS
    detail_level: DetailLevel = DetailLevel.BASIC

    def to_dict(self) -> Dict[str, str]:
        return {
            "language": self.language,
            "temperature_unit": self.temperature_unit.value,
            "detail_level": self.detail_level.value,
        }


@dataclass(frozen=True)
class ParsedQuery:
    """Canonical structured interpretation of a request.

    The overall confidence is clamped on construction so that it never
    exceeds the weakest contributing signal. A location only contributes
    when one was actually identified.
    """

    original_query: str
    location: LocationInfo
    intent: WeatherIntent
    time_scope: TimeScope
    weather_metrics: FrozenSet[WeatherMetric] = DEFAULT_METRICS
    user_preferences: UserPreferences = field(default_factory=UserPreferences)
    confidence: float = 0.0

    def __post_init__(self):
        metrics = frozenset(self.weather_metrics) or DEFAULT_METRICS
        object.__setattr__(self, "weather_metrics", metrics)
        weakest = min(self.contributing_signals())
        object.__setattr__(
            self, "confidence", clamp_confidence(min(self.confidence, weakest))
        )

    def contributing_signals(self) -> List[float]:
        signals = [self.intent.confidence, self.time_scope.confidence]
        if self.location.is_resolved:
            signals.append(self.location.confidence)
        return signals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_query": self.original_query,
            "location": self.location.to_dict(),
            "intent": self.intent.to_dict(),
            "time_scope": self.time_scope.to_dict(),
            "weather_metrics": sorted(metric.value for metric in self.weather_metrics),
            "user_preferences": self.user_preferences.to_dict(),
            "confidence": round(self.confidence, 3),
        }


def average_confidence(scores: Iterable[float]) -> float:
    values = list(scores)
    if not values:
        return 0.0
    return sum(values) / len(values)


@dataclass(frozen=True)
class RoutingResult:
    """Output envelope of the query router"""

    parsed_query: Optional[ParsedQuery]
    parsing_source: Optional[ParsingSource]
    processing_time_ms: float
    confidence: float
    error: Optional[Any] = None  # RoutingError when rejected
    model_used: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.parsed_query is not None and self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "parsing_source": self.parsing_source.value if self.parsing_source else None,
            "confidence": round(self.confidence, 3),
            "processing_time_ms": round(self.processing_time_ms, 2),
            "model_used": self.model_used,
            "parsed_query": self.parsed_query.to_dict() if self.parsed_query else None,
            "error": (
                {"code": self.error.code, "message": self.error.message}
                if self.error is not None
                else None
            ),
        }


@dataclass(frozen=True)
class ParsingRequest:
    """Input of an AI query parser"""

    query: str
    context: Optional[str] = None
    preferences: Optional[UserPreferences] = None


@dataclass(frozen=True)
class ParsingError:
    type: str  # 'INVALID_INPUT', 'PARSING_FAILED', 'API_ERROR', 'TIMEOUT'
    message: str
    retryable: bool = True
    suggestions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ParsingResult:
    """Output of an AI query parser"""

    success: bool
    result: Optional[ParsedQuery] = None
    error: Optional[ParsingError] = None
    processing_time_ms: float = 0.0
    model_used: str = "unknown"


@dataclass(frozen=True)
class CurrentTimeContext:
    """Snapshot of "now" injected ahead of AI parsing"""

    now: datetime
    timezone: str
    description: str

    def as_context_line(self) -> str:
        return f"Current time: {self.now.isoformat()} ({self.timezone}); {self.description}"


@dataclass(frozen=True)
class UserFriendlyError:
    """Stable, caller-safe description of a failure"""

    message: str
    suggestions: Tuple[str, ...]
    retryable: bool
    severity: Severity
    code: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "suggestions": list(self.suggestions),
            "retryable": self.retryable,
        }


@dataclass(frozen=True)
class TextSegment:
    text: str
    type: str = "text"


@dataclass(frozen=True)
class ToolResponse:
    """Dual-format tool response handed back to the transport layer"""

    content: Tuple[TextSegment, ...]
    is_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": [{"type": seg.type, "text": seg.text} for seg in self.content],
            "isError": self.is_error,
        }
