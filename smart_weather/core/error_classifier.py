# error_classifier.py
"""Conversion of arbitrary failures into caller-safe error descriptions."""

import asyncio
import errno
import logging
from typing import Any, Dict, Optional, Tuple

from .exceptions import (
    InternalServiceError,
    InvalidParamsError,
    NetworkError,
    QueryValidationError,
    RoutingError,
    UnsupportedRequestError,
)
from .models import Severity, UserFriendlyError

logger = logging.getLogger(__name__)

_TIMEOUT_TYPES: Tuple[type, ...] = (TimeoutError, asyncio.TimeoutError)

_NETWORK_ERRNOS = {errno.ECONNREFUSED, errno.ETIMEDOUT, errno.ECONNRESET, errno.EHOSTUNREACH}
_NETWORK_CODE_NAMES = {"ECONNREFUSED", "ETIMEDOUT", "ENOTFOUND", "ECONNRESET"}

_SEVERITY_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
}


def _friendly(
    code: str, message: str, suggestions, retryable: bool, severity: Severity
) -> UserFriendlyError:
    return UserFriendlyError(
        message=message,
        suggestions=tuple(suggestions),
        retryable=retryable,
        severity=severity,
        code=code,
    )


class ErrorClassifier:
    """Maps exceptions to a closed taxonomy of user-friendly errors.

    ``classify`` is total: any object, including non-exceptions, yields a
    ``UserFriendlyError``. Raw exception text never reaches the caller,
    except for routing errors whose messages are written for end users.
    """

    DEFAULT_ROUTING_SUGGESTIONS = (
        "Try rephrasing your query",
        "Be more specific about the location",
        "Check your internet connection",
    )

    def classify(
        self, error: Any, context: Optional[Dict[str, Any]] = None
    ) -> UserFriendlyError:
        context = context or {}

        if isinstance(error, (InvalidParamsError, UnsupportedRequestError, InternalServiceError)):
            return self._classify_tool_error(error)

        if self._is_routing_error(error):
            return self._classify_routing_error(error)

        if isinstance(error, _TIMEOUT_TYPES):
            return self._timeout_error()

        if self._is_upstream_error(error):
            return self._classify_upstream_error(error, context)

        if self._is_validation_error(error):
            return _friendly(
                "VALIDATION_ERROR",
                "Your weather request has some issues that need to be fixed.",
                [
                    "Make sure to include a location in your request",
                    "Check that dates and times are in a valid format",
                    "Ensure your request is not too long or complex",
                ],
                True,
                Severity.LOW,
            )

        if self._is_network_error(error):
            return _friendly(
                "NETWORK_ERROR",
                "I'm having trouble connecting to the weather service.",
                [
                    "Please check your internet connection",
                    "Try your request again in a moment",
                    "The service might be temporarily unavailable",
                ],
                True,
                Severity.HIGH,
            )

        logger.error(f"Unhandled error in weather service: {error!r}")
        return _friendly(
            "UNKNOWN_ERROR",
            "I encountered an unexpected issue while processing your weather request.",
            [
                "Please try your request again",
                "Try simplifying your query",
                "Contact support if the problem continues",
            ],
            True,
            Severity.MEDIUM,
        )

    # Tool call errors

    def _classify_tool_error(self, error: Exception) -> UserFriendlyError:
        if isinstance(error, InvalidParamsError):
            return _friendly(
                "INVALID_PARAMS",
                "I couldn't understand your weather request. Could you please rephrase it?",
                [
                    "Try specifying a location: 'What's the weather in Tokyo?'",
                    "Be more specific about timing: 'Will it rain tomorrow?'",
                    "Include the type of information you want: 'temperature forecast for this week'",
                ],
                True,
                Severity.LOW,
            )
        if isinstance(error, UnsupportedRequestError):
            return _friendly(
                "UNSUPPORTED_REQUEST",
                "I don't recognize that weather request type.",
                [
                    "Try asking for current weather, forecasts, or location searches",
                    "Use simpler language in your request",
                    "Check if you're using a supported weather query format",
                ],
                False,
                Severity.MEDIUM,
            )
        return _friendly(
            "INTERNAL_ERROR",
            "I'm experiencing technical difficulties while processing your weather request.",
            [
                "Please try your request again in a moment",
                "If the problem persists, try simplifying your query",
                "Contact support if you continue to have issues",
            ],
            True,
            Severity.HIGH,
        )

    # Routing errors

    @staticmethod
    def _is_routing_error(error: Any) -> bool:
        if isinstance(error, RoutingError):
            return True
        code = getattr(error, "code", None)
        return (
            isinstance(code, str)
            and code in RoutingError.CODES
            and isinstance(getattr(error, "message", None), str)
        )

    def _classify_routing_error(self, error: Any) -> UserFriendlyError:
        if error.code == "TIMEOUT":
            friendly = self._timeout_error()
            return _friendly(
                friendly.code,
                error.message or friendly.message,
                getattr(error, "suggestions", None) or friendly.suggestions,
                friendly.retryable,
                friendly.severity,
            )
        return _friendly(
            error.code,
            error.message or "An error occurred while processing your weather request",
            getattr(error, "suggestions", None) or self.DEFAULT_ROUTING_SUGGESTIONS,
            getattr(error, "retryable", True),
            Severity.MEDIUM,
        )

    @staticmethod
    def _timeout_error() -> UserFriendlyError:
        return _friendly(
            "TIMEOUT",
            "Your weather request took too long to process.",
            [
                "Please try your request again in a moment",
                "Try a shorter or simpler query",
            ],
            True,
            Severity.MEDIUM,
        )

    # Upstream API errors

    @staticmethod
    def _status_of(error: Any) -> Optional[int]:
        for attr in ("status_code", "status"):
            value = getattr(error, attr, None)
            if isinstance(value, int):
                return value
        response = getattr(error, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
        return None

    def _is_upstream_error(self, error: Any) -> bool:
        return bool(getattr(error, "vendor_code", None)) or self._status_of(error) is not None

    def _classify_upstream_error(
        self, error: Any, context: Dict[str, Any]
    ) -> UserFriendlyError:
        location = context.get("location")
        vendor_code = getattr(error, "vendor_code", None)

        if vendor_code == "ZERO_RESULTS":
            return _friendly(
                "NO_RESULTS",
                f'No weather data available for "{location or "that location"}".',
                [
                    "Try a different location name",
                    "Check if the location name is spelled correctly",
                    "Use a nearby major city instead",
                ],
                True,
                Severity.LOW,
            )
        if vendor_code == "OVER_QUERY_LIMIT":
            return _friendly(
                "QUOTA_EXCEEDED",
                "I've reached the limit for weather service requests. Please try again later.",
                [
                    "Wait a few minutes before making another request",
                    "Try again during off-peak hours",
                ],
                True,
                Severity.HIGH,
            )
        if vendor_code == "REQUEST_DENIED":
            return _friendly(
                "REQUEST_DENIED",
                "The weather service denied this request.",
                [
                    "This might be a temporary issue - try again",
                    "Contact support if the problem persists",
                ],
                True,
                Severity.MEDIUM,
            )

        status = self._status_of(error)
        if status == 401:
            return _friendly(
                "AUTH_ERROR",
                "I'm having authentication issues with the weather service.",
                [
                    "This is likely a temporary issue - please try again",
                    "Contact support if the problem persists",
                ],
                True,
                Severity.HIGH,
            )
        if status == 403:
            return _friendly(
                "FORBIDDEN",
                "I don't have permission to access weather data for this request.",
                [
                    "Try asking for a different location",
                    "This might be a temporary restriction",
                    "Contact support for assistance",
                ],
                False,
                Severity.MEDIUM,
            )
        if status == 404:
            return _friendly(
                "DATA_NOT_FOUND",
                f'Weather data not found for "{location or "the requested location"}".',
                [
                    "Check the spelling of the location name",
                    "Try a nearby major city",
                    "Use a more specific location name",
                ],
                True,
                Severity.LOW,
            )
        if status == 429:
            return _friendly(
                "RATE_LIMITED",
                "I'm making too many requests to the weather service. Please wait a moment.",
                [
                    "Wait a few minutes before trying again",
                    "Try combining multiple questions into one request",
                ],
                True,
                Severity.MEDIUM,
            )
        if status is not None and status >= 500:
            return _friendly(
                "SERVICE_ERROR",
                "The weather service is temporarily experiencing issues.",
                [
                    "Please try again in a few minutes",
                    "The service should be back online shortly",
                    "Contact support if issues persist",
                ],
                True,
                Severity.HIGH,
            )
        return _friendly(
            "INVALID_PARAMS",
            "Your weather request contains invalid parameters.",
            [
                "Check that your location name is spelled correctly",
                "Ensure your request is formatted properly",
                "Try simplifying your query",
            ],
            True,
            Severity.LOW,
        )

    # Validation and network errors

    @staticmethod
    def _is_validation_error(error: Any) -> bool:
        if isinstance(error, QueryValidationError):
            return True
        if type(error).__name__ == "ValidationError":
            return True
        return isinstance(error, Exception) and "validation" in str(error).lower()

    @staticmethod
    def _is_network_error(error: Any) -> bool:
        if isinstance(error, (ConnectionError, NetworkError)):
            return True
        if isinstance(error, OSError) and error.errno in _NETWORK_ERRNOS:
            return True
        if getattr(error, "code", None) in _NETWORK_CODE_NAMES:
            return True
        return isinstance(error, Exception) and "network" in str(error).lower()

    # Rendering

    @staticmethod
    def format_for_user(user_error: UserFriendlyError) -> str:
        formatted = user_error.message

        if user_error.suggestions:
            formatted += "\n\nSuggestions:"
            for index, suggestion in enumerate(user_error.suggestions, start=1):
                formatted += f"\n{index}. {suggestion}"

        if user_error.retryable:
            formatted += "\n\nYou can try this request again."

        return formatted

    @staticmethod
    def log_error(
        user_error: UserFriendlyError,
        original_error: Any,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        level = _SEVERITY_LEVELS[user_error.severity]
        logger.log(
            level,
            f"Weather service error ({user_error.severity.value} severity): "
            f"code={user_error.code} retryable={user_error.retryable} "
            f"original={original_error!r} context={context or {}}",
        )


# Global classifier instance
error_classifier = ErrorClassifier()
