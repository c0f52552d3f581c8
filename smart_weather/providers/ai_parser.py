# ai_parser.py
"""LLM-backed query parser producing structured ``ParsedQuery`` objects."""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, time as dt_time
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser

from smart_weather.core.exceptions import AIParserError, QueryValidationError
from smart_weather.core.interfaces import LLMInterface, QueryParser
from smart_weather.core.models import (
    Coordinates,
    DetailLevel,
    IntentType,
    LocationInfo,
    ParsedQuery,
    ParsingError,
    ParsingRequest,
    ParsingResult,
    TemperatureUnit,
    TimeScope,
    TimeScopeType,
    UserPreferences,
    WeatherIntent,
    WeatherMetric,
)
from smart_weather.core.settings import settings

logger = logging.getLogger(__name__)

SUSPICIOUS_PATTERNS = [
    re.compile(r"<script>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"eval\(", re.IGNORECASE),
    re.compile(r"document\.", re.IGNORECASE),
]

STRICT_MIN_CONFIDENCE = 0.7
REQUIRED_LOCATION_CONFIDENCE = 0.5

PARSING_PROMPT = """You are a weather query parser. Parse the following weather query and return a JSON response with the specified structure.

Query: "{query}"
Context: {context}

Instructions:
1. Extract location information (name, coordinates if obvious like "Tokyo" -> lat: 35.6762, lng: 139.6503)
2. Determine primary intent: CURRENT_WEATHER, WEATHER_FORECAST, HISTORICAL_WEATHER, WEATHER_ADVICE, LOCATION_SEARCH
3. Identify time scope: current, forecast (future), or historical (past)
4. Extract weather metrics mentioned: temperature, humidity, precipitation, wind, pressure, visibility, uv_index, air_quality, conditions, feels_like
5. Determine user preferences: language, temperature unit, detail level
6. Provide confidence score (0.0 to 1.0) for overall parsing quality

Support multiple languages:
- English: "What's the weather like in New York today?"
- Chinese: "明天北京的天氣如何？", "台北今天會下雨嗎？"
- Japanese: "今日の東京の天気はどうですか？"

Return JSON in this exact format:
{{
  "location": {{
    "name": "location name or null",
    "coordinates": {{"lat": number, "lng": number}} or null,
    "confidence": number between 0-1,
    "suggestions": ["alternative locations"] or null
  }},
  "intent": {{
    "primary": "CURRENT_WEATHER|WEATHER_FORECAST|HISTORICAL_WEATHER|WEATHER_ADVICE|LOCATION_SEARCH",
    "secondary": ["additional intents"] or null,
    "confidence": number between 0-1
  }},
  "timeScope": {{
    "type": "current|forecast|historical",
    "period": "description like 'today', 'tomorrow', 'next week'",
    "startDate": "ISO date or null",
    "endDate": "ISO date or null",
    "confidence": number between 0-1
  }},
  "weatherMetrics": ["array of weather metrics mentioned"],
  "userPreferences": {{
    "language": "en|zh-TW|zh-CN|ja",
    "temperatureUnit": "celsius|fahrenheit",
    "detailLevel": "basic|detailed|comprehensive"
  }},
  "confidence": number between 0-1
}}"""


@dataclass
class ValidationConfig:
    strict_mode: bool = False
    min_confidence: float = 0.3
    require_location: bool = False
    allowed_languages: List[str] = field(
        default_factory=lambda: list(settings.SUPPORTED_LANGUAGES)
    )


class LLMQueryParser(QueryParser):
    """Parses weather questions with an LLM and validates the structured answer"""

    def __init__(
        self,
        llm: LLMInterface,
        validation: Optional[ValidationConfig] = None,
        default_timezone: Optional[str] = None,
    ):
        self.llm = llm
        self.validation = validation or ValidationConfig()
        self.timezone = ZoneInfo(default_timezone or settings.DEFAULT_TIMEZONE)
        self.json_parser = JsonOutputParser()

    @property
    def model_name(self) -> str:
        return getattr(self.llm, "model_name", "unknown")

    async def parse_query(self, request: ParsingRequest) -> ParsingResult:
        started = time.perf_counter()

        try:
            self.validate_input(request)
        except QueryValidationError as e:
            logger.info(f"Rejected AI parsing input: {str(e)}")
            return self._failure("INVALID_INPUT", str(e), request.query, started, retryable=False)

        try:
            prompt = self.build_prompt(request)
            response = await self.llm.agenerate_response(prompt)
            data = self.json_parser.parse(response)
            parsed = self.to_parsed_query(request.query, data)
            self.validate_parsed_query(parsed)

        except AIParserError as e:
            logger.error(f"LLM call failed: {str(e)}")
            return self._failure("API_ERROR", str(e), request.query, started)
        except (OutputParserException, KeyError, TypeError, ValueError) as e:
            logger.error(f"Query parsing failed: {str(e)}")
            return self._failure("PARSING_FAILED", str(e), request.query, started)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Query parsing successful: intent={parsed.intent.primary.value} "
            f"location={parsed.location.name!r} confidence={parsed.confidence:.2f} "
            f"in {elapsed_ms:.1f}ms"
        )
        return ParsingResult(
            success=True,
            result=parsed,
            processing_time_ms=elapsed_ms,
            model_used=self.model_name,
        )

    def build_prompt(self, request: ParsingRequest) -> str:
        return PARSING_PROMPT.format(query=request.query, context=request.context or "None")

    @staticmethod
    def validate_input(request: ParsingRequest) -> None:
        query = request.query
        if not query or not isinstance(query, str):
            raise QueryValidationError("Query is required and must be a string")
        if not query.strip():
            raise QueryValidationError("Query cannot be empty")
        if len(query) > settings.MAX_QUERY_LENGTH:
            raise QueryValidationError(
                f"Query is too long (maximum {settings.MAX_QUERY_LENGTH} characters)"
            )
        for pattern in SUSPICIOUS_PATTERNS:
            if pattern.search(query):
                raise QueryValidationError("Query contains potentially unsafe content")

    def validate_parsed_query(self, parsed: ParsedQuery) -> None:
        if parsed.confidence < self.validation.min_confidence:
            raise ValueError(
                f"Parsing confidence {parsed.confidence:.2f} is below minimum threshold "
                f"{self.validation.min_confidence}"
            )

        if self.validation.require_location and (
            not parsed.location.name
            or parsed.location.confidence < REQUIRED_LOCATION_CONFIDENCE
        ):
            raise ValueError(
                "Location is required but could not be identified with sufficient confidence"
            )

        if parsed.user_preferences.language not in self.validation.allowed_languages:
            raise ValueError(f"Language {parsed.user_preferences.language} is not supported")

        if self.validation.strict_mode:
            if parsed.intent.confidence < STRICT_MIN_CONFIDENCE:
                raise ValueError("Intent confidence too low for strict mode")
            if parsed.time_scope.confidence < STRICT_MIN_CONFIDENCE:
                raise ValueError("Time scope confidence too low for strict mode")

    def to_parsed_query(self, original_query: str, data: Dict[str, Any]) -> ParsedQuery:
        """Convert the model's JSON answer into a ``ParsedQuery``"""
        if not isinstance(data, dict):
            raise ValueError("Model response is not a JSON object")

        location_data = self._section(data, "location")
        coordinates = None
        if isinstance(location_data.get("coordinates"), dict):
            raw = location_data["coordinates"]
            coordinates = Coordinates(lat=float(raw["lat"]), lng=float(raw["lng"]))
        location = LocationInfo(
            name=location_data.get("name") or None,
            coordinates=coordinates,
            confidence=float(location_data.get("confidence", 0.0)),
            suggestions=tuple(location_data.get("suggestions") or ()),
        )

        intent_data = self._section(data, "intent", required=True)
        primary = IntentType(str(intent_data["primary"]).lower())
        secondary: List[IntentType] = []
        for value in intent_data.get("secondary") or []:
            try:
                intent = IntentType(str(value).lower())
            except ValueError:
                logger.debug(f"Ignoring unknown secondary intent {value!r}")
                continue
            if intent != primary and intent not in secondary:
                secondary.append(intent)
        intent = WeatherIntent(
            primary=primary,
            confidence=float(intent_data.get("confidence", 0.0)),
            secondary=tuple(secondary),
        )

        time_data = self._section(data, "timeScope")
        start, end = self._window(time_data.get("startDate"), time_data.get("endDate"))
        time_scope = TimeScope(
            type=TimeScopeType(str(time_data.get("type", "current")).lower()),
            confidence=float(time_data.get("confidence", 0.0)),
            period=time_data.get("period"),
            start=start,
            end=end,
        )

        metrics = set()
        for value in data.get("weatherMetrics") or []:
            try:
                metrics.add(WeatherMetric(str(value).lower()))
            except ValueError:
                logger.debug(f"Ignoring unknown weather metric {value!r}")

        prefs_data = self._section(data, "userPreferences")
        preferences = UserPreferences(
            language=prefs_data.get("language") or settings.DEFAULT_LANGUAGE,
            temperature_unit=TemperatureUnit(prefs_data.get("temperatureUnit") or "celsius"),
            detail_level=DetailLevel(prefs_data.get("detailLevel") or "basic"),
        )

        return ParsedQuery(
            original_query=original_query,
            location=location,
            intent=intent,
            time_scope=time_scope,
            weather_metrics=frozenset(metrics),
            user_preferences=preferences,
            confidence=float(data.get("confidence", 0.0)),
        )

    @staticmethod
    def _section(data: Dict[str, Any], key: str, required: bool = False) -> Dict[str, Any]:
        value = data.get(key)
        if value is None and not required:
            return {}
        if not isinstance(value, dict):
            raise ValueError(f"Model response field {key!r} is not a JSON object")
        return value

    def _window(
        self, start_value: Optional[str], end_value: Optional[str]
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        start = self._parse_moment(start_value, dt_time.min)
        end = self._parse_moment(end_value, dt_time(23, 59, 59))
        if start is not None and end is None:
            end = datetime.combine(start.date(), dt_time(23, 59, 59), tzinfo=start.tzinfo)
        if start is not None and end is not None and end < start:
            raise ValueError("Time scope ends before it starts")
        return start, end

    def _parse_moment(self, value: Optional[str], default_time: dt_time) -> Optional[datetime]:
        if not value:
            return None
        text = str(value).strip()
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        if len(text) == 10:
            moment = datetime.combine(moment.date(), default_time)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self.timezone)
        return moment

    def _failure(
        self,
        error_type: str,
        details: str,
        query: str,
        started: float,
        retryable: bool = True,
    ) -> ParsingResult:
        return ParsingResult(
            success=False,
            error=ParsingError(
                type=error_type,
                message=f"Failed to parse weather query: {details}",
                retryable=retryable,
                suggestions=tuple(self.error_suggestions(query or "", details)),
            ),
            processing_time_ms=(time.perf_counter() - started) * 1000,
            model_used=self.model_name,
        )

    @staticmethod
    def error_suggestions(query: str, error: str) -> List[str]:
        suggestions = []
        error_lower = error.lower()

        if "location" in error_lower:
            suggestions.append("Try including a specific city or location name")
            suggestions.append('Use well-known location names like "New York" or "Tokyo"')
        if "confidence" in error_lower:
            suggestions.append("Be more specific about what weather information you need")
            suggestions.append('Include time information like "today", "tomorrow", or "this week"')
        if "language" in error_lower:
            suggestions.append("Try asking in English, Chinese (Traditional/Simplified), or Japanese")
        if len(query.strip()) < 10:
            suggestions.append("Provide more detailed information about your weather query")

        if not suggestions:
            suggestions.append("Try rephrasing your question with more specific details")
            suggestions.append("Include location and time information in your query")
        return suggestions
