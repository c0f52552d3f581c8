# router.py
"""Confidence-gated router choosing between the AI parser and the rule-based parser."""

import asyncio
import logging
import time
from typing import Optional, Tuple

from smart_weather.core.config import RouterConfig
from smart_weather.core.exceptions import RoutingError
from smart_weather.core.interfaces import QueryParser
from smart_weather.core.models import (
    ParsedQuery,
    ParsingRequest,
    ParsingSource,
    RoutingResult,
)

from .fallback_parser import RuleBasedParser
from .time_resolver import TimeResolver

logger = logging.getLogger(__name__)


class QueryRouter:
    """Turns ``(query, context)`` into a ``RoutingResult``.

    The AI parser is optional and injected at construction. Its answer is
    trusted when it clears ``ai_threshold``; otherwise the rule-based parser
    runs and the two are merged when the fallback is at least as confident.
    Results below ``min_confidence_threshold`` are rejected, never raised.
    """

    def __init__(
        self,
        ai_parser: Optional[QueryParser] = None,
        fallback_parser: Optional[RuleBasedParser] = None,
        time_resolver: Optional[TimeResolver] = None,
        config: Optional[RouterConfig] = None,
    ):
        self.config = config or RouterConfig.from_settings()
        self.ai_parser = ai_parser
        self.time_resolver = time_resolver or TimeResolver(self.config.default_timezone)
        self.fallback_parser = fallback_parser or RuleBasedParser(
            time_resolver=self.time_resolver,
            confidence_ceiling=self.config.fallback_confidence_ceiling,
        )

    async def route(self, query: str, context: Optional[str] = None) -> RoutingResult:
        """Route a query to a structured interpretation"""
        started = time.perf_counter()

        try:
            if not query or not query.strip():
                return self._rejected(
                    RoutingError(
                        "INVALID_QUERY",
                        "Please enter a weather question.",
                        suggestions=["Try: 'What's the weather in Tokyo today?'"],
                    ),
                    started,
                )

            parsed, source, model_used = await self._parse(query, context)

            if parsed.confidence < self.config.min_confidence_threshold:
                logger.info(
                    f"Rejecting query: confidence {parsed.confidence:.2f} below "
                    f"{self.config.min_confidence_threshold:.2f}"
                )
                return self._rejected(
                    RoutingError(
                        "PARSING_FAILED",
                        "I couldn't confidently understand your weather request.",
                        suggestions=[
                            "Include a location, for example 'weather in Tokyo'",
                            "Say when you mean, such as 'today', 'tomorrow' or 'next week'",
                            "Ask one weather question at a time",
                        ],
                        details=f"confidence={parsed.confidence:.3f} source={source.value}",
                    ),
                    started,
                    source=source,
                    confidence=parsed.confidence,
                    model_used=model_used,
                )

            elapsed_ms = self._elapsed_ms(started)
            logger.info(
                f"Query routed via {source.value} with confidence {parsed.confidence:.2f} "
                f"in {elapsed_ms:.1f}ms"
            )
            return RoutingResult(
                parsed_query=parsed,
                parsing_source=source,
                processing_time_ms=elapsed_ms,
                confidence=parsed.confidence,
                model_used=model_used,
            )

        except Exception as e:
            logger.error(f"Unexpected error routing query: {str(e)}", exc_info=True)
            return self._rejected(
                RoutingError(
                    "UNKNOWN",
                    "An unexpected error occurred while processing your weather request.",
                    suggestions=["Please try your request again"],
                    details=repr(e),
                ),
                started,
            )

    async def _parse(
        self, query: str, context: Optional[str]
    ) -> Tuple[ParsedQuery, ParsingSource, Optional[str]]:
        ai_parsed, model_used = await self._try_ai(query, context)

        if ai_parsed is not None and ai_parsed.confidence >= self.config.ai_threshold:
            return ai_parsed, ParsingSource.AI, model_used

        fallback = self.fallback_parser.parse(query, context)
        if ai_parsed is None:
            return fallback, ParsingSource.RULE_BASED, None

        if fallback.confidence >= ai_parsed.confidence:
            logger.debug(
                f"Merging AI ({ai_parsed.confidence:.2f}) and rule-based "
                f"({fallback.confidence:.2f}) parses"
            )
            return self.merge(ai_parsed, fallback), ParsingSource.HYBRID, model_used

        return ai_parsed, ParsingSource.AI, model_used

    async def _try_ai(
        self, query: str, context: Optional[str]
    ) -> Tuple[Optional[ParsedQuery], Optional[str]]:
        if self.ai_parser is None:
            return None, None

        time_line = self.time_resolver.current_context().as_context_line()
        request = ParsingRequest(
            query=query,
            context=f"{context}\n{time_line}" if context else time_line,
        )

        try:
            result = await asyncio.wait_for(
                self.ai_parser.parse_query(request),
                timeout=self.config.ai_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"AI parser timed out after {self.config.ai_timeout_seconds}s, using rule-based parser"
            )
            return None, None
        except Exception as e:
            logger.warning(f"AI parser failed, using rule-based parser: {str(e)}")
            return None, None

        if not getattr(result, "success", False) or not isinstance(
            getattr(result, "result", None), ParsedQuery
        ):
            error = getattr(result, "error", None)
            logger.warning(
                f"AI parser returned no usable result: {getattr(error, 'message', 'malformed response')}"
            )
            return None, None

        return result.result, getattr(result, "model_used", None)

    @staticmethod
    def merge(ai_parsed: ParsedQuery, fallback: ParsedQuery) -> ParsedQuery:
        """Combine an unsure AI parse with an equally or more confident rule-based parse"""
        location = ai_parsed.location if ai_parsed.location.is_resolved else fallback.location
        time_scope = (
            ai_parsed.time_scope
            if ai_parsed.time_scope.confidence >= fallback.time_scope.confidence
            else fallback.time_scope
        )
        return ParsedQuery(
            original_query=ai_parsed.original_query,
            location=location,
            intent=ai_parsed.intent,
            time_scope=time_scope,
            weather_metrics=ai_parsed.weather_metrics | fallback.weather_metrics,
            user_preferences=ai_parsed.user_preferences,
            confidence=max(ai_parsed.confidence, fallback.confidence),
        )

    def _rejected(
        self,
        error: RoutingError,
        started: float,
        source: Optional[ParsingSource] = None,
        confidence: float = 0.0,
        model_used: Optional[str] = None,
    ) -> RoutingResult:
        logger.info(f"Query rejected with {error.code}")
        return RoutingResult(
            parsed_query=None,
            parsing_source=source,
            processing_time_ms=self._elapsed_ms(started),
            confidence=confidence,
            error=error,
            model_used=model_used,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000
