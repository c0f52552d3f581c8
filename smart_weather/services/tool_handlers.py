# tool_handlers.py
"""Tool surface: argument validation, routing, capability execution and dual-format responses."""

import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

from smart_weather.core.config import InputLimits
from smart_weather.core.error_classifier import ErrorClassifier, error_classifier
from smart_weather.core.exceptions import (
    InvalidParamsError,
    QueryValidationError,
    UnsupportedRequestError,
)
from smart_weather.core.models import IntentType, ParsedQuery, TextSegment, ToolResponse
from smart_weather.query_handlers.dispatcher import CapabilityDispatcher
from smart_weather.query_handlers.router import QueryRouter
from smart_weather.query_handlers.types import Capability, DispatchDecision, ToolName

logger = logging.getLogger(__name__)

SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
JAVASCRIPT_URL = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
DATA_URL = re.compile(r"data:text/html", re.IGNORECASE)
UNSAFE_CONTEXT = re.compile(r"<[^>]+>|[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

# Tools that only ever serve one intent
FORCED_INTENTS: Dict[ToolName, IntentType] = {
    ToolName.FIND_LOCATION: IntentType.LOCATION_SEARCH,
    ToolName.GET_WEATHER_ADVICE: IntentType.WEATHER_ADVICE,
}

TOOL_DEFINITIONS = [
    {
        "name": ToolName.SEARCH_WEATHER.value,
        "description": (
            "Find weather information for any location. Works out whether the "
            "request is about current conditions, a forecast or past weather."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The weather question, e.g. '台北今天天氣', 'Tokyo next week forecast'",
                },
                "context": {
                    "type": "string",
                    "description": "Optional preferences such as temperature unit, language or detail level",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": ToolName.FIND_LOCATION.value,
        "description": (
            "Discover and confirm places, resolving ambiguous names and vague "
            "addresses into coordinates."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Place to look up, e.g. 'Taipei 101', 'Springfield'",
                },
                "context": {
                    "type": "string",
                    "description": "Optional geographic preferences such as a country or region",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": ToolName.GET_WEATHER_ADVICE.value,
        "description": (
            "Personalised advice based on the weather: what to wear, whether to "
            "bring an umbrella, whether conditions suit an activity."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Activity or decision question, e.g. 'Do I need an umbrella?'",
                },
                "context": {
                    "type": "string",
                    "description": "Optional personal preferences or planned activity",
                },
            },
            "required": ["query"],
        },
    },
]


def _strip_injection(text: str) -> str:
    text = SCRIPT_TAG.sub("", text)
    text = JAVASCRIPT_URL.sub("", text)
    text = EVENT_HANDLER.sub("", text)
    return DATA_URL.sub("", text)


class ToolHandlerService:
    """Runs a tool call end to end and never lets an exception escape.

    Capability handlers are optional. Without one, the tool answers with the
    routing result and dispatch decision so callers can run the capability
    themselves.
    """

    def __init__(
        self,
        router: QueryRouter,
        dispatcher: Optional[CapabilityDispatcher] = None,
        weather_handler=None,
        location_handler=None,
        advice_handler=None,
        limits: Optional[InputLimits] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.router = router
        self.dispatcher = dispatcher or CapabilityDispatcher(clock=router.time_resolver.clock)
        self.limits = limits or InputLimits.from_settings()
        self.classifier = classifier or error_classifier
        self.handlers = {
            Capability.CURRENT_CONDITIONS: weather_handler,
            Capability.DAILY_FORECAST: weather_handler,
            Capability.HOURLY_FORECAST: weather_handler,
            Capability.HISTORY: weather_handler,
            Capability.LOCATION_SEARCH: location_handler,
            Capability.ADVICE: advice_handler,
        }

    @staticmethod
    def get_tool_definitions() -> Dict[str, Any]:
        return {"tools": TOOL_DEFINITIONS}

    def validate_arguments(self, arguments: Any) -> Tuple[str, Optional[str]]:
        """Validate and sanitize tool arguments, returning ``(query, context)``"""
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Tool arguments must be an object")

        raw_query = arguments.get("query")
        if not raw_query or not isinstance(raw_query, str):
            raise InvalidParamsError("Query parameter is required and must be a string")

        query = _strip_injection(raw_query.strip())[: self.limits.max_query_length].strip()
        if not query:
            raise InvalidParamsError("Query cannot be empty after sanitization")

        if any(len(word) > self.limits.max_word_length for word in query.split()):
            raise QueryValidationError(
                f"Query contains words longer than {self.limits.max_word_length} characters"
            )

        raw_context = arguments.get("context")
        if raw_context is None or raw_context == "":
            return query, None
        if not isinstance(raw_context, str):
            raise InvalidParamsError(
                'Context parameter must be a string. Example: "location: Tokyo, timeframe: today"'
            )

        context = _strip_injection(raw_context.strip())[: self.limits.max_context_length]
        if UNSAFE_CONTEXT.search(context):
            raise QueryValidationError("Context contains invalid control characters or HTML tags")

        return query, context or None

    async def handle_tool_call(self, name: str, arguments: Any) -> ToolResponse:
        """Execute a tool call and render a dual-format response"""
        try:
            try:
                tool = ToolName(name)
            except ValueError:
                raise UnsupportedRequestError(f"Unknown tool: {name}") from None

            query, context = self.validate_arguments(arguments)
            logger.info(f"Tool call {tool.value}: {query[:100]!r}")

            routing = await self.router.route(query, context)
            if not routing.accepted:
                return self._error_response(routing.error, {"tool": tool.value, "query": query})

            decision = self.dispatcher.dispatch(
                routing.parsed_query, forced_intent=FORCED_INTENTS.get(tool)
            )

            payload: Dict[str, Any] = {
                "tool": tool.value,
                "routing": routing.to_dict(),
                "decision": decision.to_dict(),
            }
            text, result = await self._execute(routing.parsed_query, decision)
            if result is not None:
                payload["result"] = result

            return ToolResponse(
                content=(
                    TextSegment(json.dumps(payload, ensure_ascii=False, default=str)),
                    TextSegment(text),
                )
            )

        except Exception as e:
            return self._error_response(e, {"tool": name})

    async def _execute(
        self, parsed_query: ParsedQuery, decision: DispatchDecision
    ) -> Tuple[str, Optional[Dict[str, Any]]]:
        handler = self.handlers.get(decision.capability)
        if handler is None:
            logger.debug(f"No handler configured for {decision.capability.value}")
            return self._routing_summary(parsed_query, decision), None

        return await handler.handle(parsed_query, decision)

    @staticmethod
    def _routing_summary(parsed_query: ParsedQuery, decision: DispatchDecision) -> str:
        time_scope = parsed_query.time_scope
        metrics = ", ".join(sorted(metric.value for metric in parsed_query.weather_metrics))
        lines = [
            "**Query Analysis:**",
            f"- Original: \"{parsed_query.original_query}\"",
            f"- Intent: {decision.intent.value}",
            f"- Location: {parsed_query.location.name or 'Not specified'}",
            f"- Time: {time_scope.period or time_scope.type.value}",
            f"- Metrics: {metrics}",
            f"- Language: {parsed_query.user_preferences.language}",
            f"- Confidence: {round(parsed_query.confidence * 100)}%",
            "",
            f"Routed to {decision.capability.value} via {decision.tool.value}.",
        ]
        if parsed_query.location.suggestions:
            lines.append(f"Did you mean: {', '.join(parsed_query.location.suggestions)}?")
        return "\n".join(lines)

    def _error_response(self, error: Any, context: Dict[str, Any]) -> ToolResponse:
        user_error = self.classifier.classify(error, context)
        self.classifier.log_error(user_error, error, context)

        payload = {"error": user_error.to_dict()}
        return ToolResponse(
            content=(
                TextSegment(json.dumps(payload, ensure_ascii=False)),
                TextSegment(self.classifier.format_for_user(user_error)),
            ),
            is_error=True,
        )
