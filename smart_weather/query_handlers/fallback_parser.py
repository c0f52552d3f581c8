# fallback_parser.py
"""Deterministic rule-based parser used when the AI parser is unavailable or unsure."""

import logging
from typing import Optional

from smart_weather.core.models import (
    IntentType,
    LocationInfo,
    ParsedQuery,
    TimeScope,
    TimeScopeType,
    WeatherIntent,
    average_confidence,
)
from smart_weather.core.settings import settings

from .classifier import IntentClassifier
from .extractor import (
    LocationExtractor,
    extract_metrics,
    extract_preferences,
    parse_context,
)
from .location_config import LocationConfigLoader
from .time_resolver import TimeResolver

logger = logging.getLogger(__name__)


class RuleBasedParser:
    """Builds a ``ParsedQuery`` from keyword tables, a place dictionary and the time resolver.

    Parsing is synchronous, performs no I/O and never raises. The aggregate
    confidence is the average of the sub-scores that are present, capped by
    ``confidence_ceiling`` so a fallback parse always reads lower than a
    well-formed AI parse.
    """

    def __init__(
        self,
        time_resolver: Optional[TimeResolver] = None,
        location_config: Optional[LocationConfigLoader] = None,
        confidence_ceiling: Optional[float] = None,
    ):
        self.time_resolver = time_resolver or TimeResolver()
        self.location_extractor = LocationExtractor(location_config)
        self.intent_classifier = IntentClassifier()
        self.confidence_ceiling = (
            confidence_ceiling
            if confidence_ceiling is not None
            else settings.FALLBACK_CONFIDENCE_CEILING
        )

    def parse(self, query: str, context: Optional[str] = None) -> ParsedQuery:
        try:
            return self._parse(query or "", context)
        except Exception as e:
            logger.error(f"Rule-based parsing failed: {str(e)}")
            return ParsedQuery(
                original_query=query or "",
                location=LocationInfo(),
                intent=WeatherIntent(primary=IntentType.CURRENT_WEATHER, confidence=0.0),
                time_scope=TimeScope(type=TimeScopeType.CURRENT, confidence=0.0),
                confidence=0.0,
            )

    def _parse(self, query: str, context: Optional[str]) -> ParsedQuery:
        hints = parse_context(context)
        all_text = f"{query} {context or ''}"

        location = self.location_extractor.extract(query, hints)
        time_scope = self._resolve_time(query, hints.timeframe)
        classification = self.intent_classifier.classify(
            query, time_scope=time_scope, has_location=location.is_resolved
        )
        metrics = extract_metrics(all_text)
        preferences = extract_preferences(
            query, hints, metric_count=len(metrics), context=context
        )

        sub_scores = [classification.confidence, time_scope.confidence]
        if location.is_resolved:
            sub_scores.append(location.confidence)
        confidence = min(average_confidence(sub_scores), self.confidence_ceiling)

        logger.debug(
            f"Rule-based parse: intent={classification.primary.value} "
            f"location={location.name!r} time={time_scope.period!r} "
            f"confidence={confidence:.2f} ({classification.reasoning})"
        )

        return ParsedQuery(
            original_query=query,
            location=location,
            intent=WeatherIntent(
                primary=classification.primary,
                confidence=classification.confidence,
                secondary=classification.secondary,
            ),
            time_scope=time_scope,
            weather_metrics=frozenset(metrics),
            user_preferences=preferences,
            confidence=confidence,
        )

    def _resolve_time(self, query: str, timeframe_hint: Optional[str]) -> TimeScope:
        time_scope = self.time_resolver.resolve(query)
        if time_scope.is_anchored or not timeframe_hint:
            return time_scope

        hinted = self.time_resolver.resolve(timeframe_hint)
        if hinted.confidence > time_scope.confidence:
            return hinted
        return time_scope
