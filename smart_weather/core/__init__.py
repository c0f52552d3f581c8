# Core package
"""Core models, configuration and error handling for the smart weather service."""

from .config import Config, InputLimits, RouterConfig
from .error_classifier import ErrorClassifier, error_classifier
from .exceptions import RoutingError, UpstreamAPIError, WeatherServiceError
from .interfaces import LLMInterface, LocationBackend, QueryParser, WeatherBackend
from .models import IntentType, ParsedQuery, RoutingResult, TimeScopeType
from .settings import settings

__all__ = [
    "Config",
    "ErrorClassifier",
    "InputLimits",
    "IntentType",
    "LLMInterface",
    "LocationBackend",
    "ParsedQuery",
    "QueryParser",
    "RouterConfig",
    "RoutingError",
    "RoutingResult",
    "TimeScopeType",
    "UpstreamAPIError",
    "WeatherBackend",
    "WeatherServiceError",
    "error_classifier",
    "settings",
]
