# Query package
"""Query understanding and routing for the smart weather service."""

from .advice_handler import AdviceHandler
from .classifier import IntentClassifier
from .dispatcher import CapabilityDispatcher
from .extractor import LocationExtractor
from .fallback_parser import RuleBasedParser
from .location_handler import LocationSearchHandler
from .router import QueryRouter
from .time_resolver import TimeResolver
from .types import ApiParameters, Capability, DispatchDecision, IntentClassification, ToolName
from .weather_handler import WeatherSearchHandler

__all__ = [
    # Handlers
    "AdviceHandler",
    "LocationSearchHandler",
    "WeatherSearchHandler",
    # Core components
    "CapabilityDispatcher",
    "IntentClassifier",
    "LocationExtractor",
    "QueryRouter",
    "RuleBasedParser",
    "TimeResolver",
    # Types
    "ApiParameters",
    "Capability",
    "DispatchDecision",
    "IntentClassification",
    "ToolName",
]
