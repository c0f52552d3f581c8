# dispatcher.py
"""Maps a parsed query onto the downstream capability that can answer it."""

import logging
import math
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from smart_weather.core.exceptions import ConfigurationError, RoutingError
from smart_weather.core.models import IntentType, ParsedQuery, TemperatureUnit, TimeScopeType

from .time_resolver import Clock, system_clock
from .types import ApiParameters, Capability, DispatchDecision, ToolName

logger = logging.getLogger(__name__)

DEFAULT_FORECAST_DAYS = 5
MAX_FORECAST_DAYS = 16
DEFAULT_FORECAST_HOURS = 24
MAX_FORECAST_HOURS = 240

HOURLY_MARKERS = ("hourly", "小時", "小时")

INTENT_CAPABILITIES: Dict[IntentType, Capability] = {
    IntentType.CURRENT_WEATHER: Capability.CURRENT_CONDITIONS,
    IntentType.WEATHER_FORECAST: Capability.DAILY_FORECAST,
    IntentType.HISTORICAL_WEATHER: Capability.HISTORY,
    IntentType.LOCATION_SEARCH: Capability.LOCATION_SEARCH,
    IntentType.WEATHER_ADVICE: Capability.ADVICE,
}

CAPABILITY_TOOLS: Dict[Capability, ToolName] = {
    Capability.CURRENT_CONDITIONS: ToolName.SEARCH_WEATHER,
    Capability.DAILY_FORECAST: ToolName.SEARCH_WEATHER,
    Capability.HOURLY_FORECAST: ToolName.SEARCH_WEATHER,
    Capability.HISTORY: ToolName.SEARCH_WEATHER,
    Capability.LOCATION_SEARCH: ToolName.FIND_LOCATION,
    Capability.ADVICE: ToolName.GET_WEATHER_ADVICE,
}

# Advice resolves its own location and location search can geocode the raw query
LOCATION_REQUIRED: FrozenSet[IntentType] = frozenset(
    {
        IntentType.CURRENT_WEATHER,
        IntentType.WEATHER_FORECAST,
        IntentType.HISTORICAL_WEATHER,
    }
)


def _check_exhaustive() -> None:
    missing = [intent.value for intent in IntentType if intent not in INTENT_CAPABILITIES]
    if missing:
        raise ConfigurationError(f"No capability mapped for intents: {', '.join(missing)}")
    unmapped = [cap.value for cap in Capability if cap not in CAPABILITY_TOOLS]
    if unmapped:
        raise ConfigurationError(f"No tool mapped for capabilities: {', '.join(unmapped)}")


_check_exhaustive()


class CapabilityDispatcher:
    """Maps a ``ParsedQuery`` to a ``DispatchDecision``.

    Forecast days and hours are counted from the clock's current time,
    the first slot a forecast backend returns.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or system_clock

    def dispatch(
        self, parsed_query: ParsedQuery, forced_intent: Optional[IntentType] = None
    ) -> DispatchDecision:
        """Pick the capability for a parsed query.

        ``forced_intent`` pins the capability for tools that only serve one
        intent; it replaces the primary and secondary intents entirely.
        """
        primary = forced_intent or parsed_query.intent.primary
        candidates: List[IntentType] = [primary]
        if forced_intent is None:
            candidates += [
                intent for intent in parsed_query.intent.secondary if intent != primary
            ]

        for intent in candidates:
            if not self._is_satisfiable(intent, parsed_query):
                logger.debug(f"Intent {intent.value} needs a location; trying next candidate")
                continue

            capability = self._capability_for(intent, parsed_query)
            reasoning = self._reasoning(intent, capability, parsed_query)
            demoted_from = None
            if intent != primary:
                demoted_from = primary
                reasoning += f"; demoted from {primary.value} because no location was identified"

            decision = DispatchDecision(
                capability=capability,
                tool=CAPABILITY_TOOLS[capability],
                intent=intent,
                parameters=self._parameters(capability, parsed_query),
                reasoning=reasoning,
                demoted_from=demoted_from,
            )
            logger.info(f"Dispatching to {capability.value} via {decision.tool.value}")
            return decision

        raise RoutingError(
            "NO_SUITABLE_API",
            "I need to know which location you're asking about.",
            suggestions=[
                "Include a city name: 'What's the weather in Tokyo?'",
                "Add the location to the context, e.g. 'location: Taipei'",
            ],
            retryable=True,
            details=f"no satisfiable intent among {[i.value for i in candidates]}",
        )

    @staticmethod
    def _is_satisfiable(intent: IntentType, parsed_query: ParsedQuery) -> bool:
        if intent not in LOCATION_REQUIRED:
            return True
        return parsed_query.location.is_resolved

    @staticmethod
    def _capability_for(intent: IntentType, parsed_query: ParsedQuery) -> Capability:
        capability = INTENT_CAPABILITIES[intent]
        if capability == Capability.DAILY_FORECAST:
            period = (parsed_query.time_scope.period or "").lower()
            if any(marker in period for marker in HOURLY_MARKERS):
                return Capability.HOURLY_FORECAST
        return capability

    def _parameters(self, capability: Capability, parsed_query: ParsedQuery) -> ApiParameters:
        time_scope = parsed_query.time_scope
        preferences = parsed_query.user_preferences

        forecast_days = None
        forecast_hours = None
        if capability == Capability.DAILY_FORECAST:
            forecast_days = self._days_until(time_scope.end) or DEFAULT_FORECAST_DAYS
        elif capability == Capability.ADVICE and time_scope.type == TimeScopeType.FORECAST:
            forecast_days = self._days_until(time_scope.end)
        elif capability == Capability.HOURLY_FORECAST:
            forecast_hours = DEFAULT_FORECAST_HOURS
            if time_scope.end:
                now = self.clock(time_scope.end.tzinfo)
                span = math.ceil((time_scope.end - now).total_seconds() / 3600)
                forecast_hours = max(1, min(MAX_FORECAST_HOURS, span))

        return ApiParameters(
            location=parsed_query.location.name,
            coordinates=parsed_query.location.coordinates,
            start=time_scope.start,
            end=time_scope.end,
            units=(
                "imperial"
                if preferences.temperature_unit == TemperatureUnit.FAHRENHEIT
                else "metric"
            ),
            language=preferences.language,
            forecast_days=forecast_days,
            forecast_hours=forecast_hours,
        )

    def _days_until(self, end: Optional[datetime]) -> Optional[int]:
        """Daily forecast length from today through the end of the window"""
        if end is None:
            return None
        today = self.clock(end.tzinfo).date()
        return max(1, min(MAX_FORECAST_DAYS, (end.date() - today).days + 1))

    @staticmethod
    def _reasoning(intent: IntentType, capability: Capability, parsed_query: ParsedQuery) -> str:
        reason = f"Intent {intent.value} maps to {capability.value}"
        if capability == Capability.HOURLY_FORECAST:
            reason += " (hourly granularity requested)"
        if parsed_query.location.name:
            reason += f" for {parsed_query.location.name}"
        return reason
