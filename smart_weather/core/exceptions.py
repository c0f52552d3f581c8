# exceptions.py
"""Custom exceptions for the smart weather query system."""

from typing import List, Optional


class WeatherServiceError(Exception):
    """Base exception for weather service errors"""
    pass


class ConfigurationError(WeatherServiceError):
    """Raised when configuration is invalid"""
    pass


class QueryValidationError(WeatherServiceError):
    """Raised when a query or its context fails input validation"""
    pass


class InvalidParamsError(WeatherServiceError):
    """Raised when tool arguments are malformed"""
    pass


class UnsupportedRequestError(WeatherServiceError):
    """Raised when a tool or capability does not exist"""
    pass


class InternalServiceError(WeatherServiceError):
    """Raised when a component fails in an unexpected way"""
    pass


class AIParserError(WeatherServiceError):
    """Raised when the AI query parser fails or returns an unusable result"""
    pass


class NetworkError(WeatherServiceError):
    """Raised when a backend cannot be reached"""
    pass


class RoutingError(WeatherServiceError):
    """Raised (or returned) when a query cannot be routed to a capability"""

    CODES = ("PARSING_FAILED", "NO_SUITABLE_API", "INVALID_QUERY", "TIMEOUT", "UNKNOWN")

    def __init__(
        self,
        code: str,
        message: str,
        suggestions: Optional[List[str]] = None,
        retryable: bool = True,
        details: Optional[str] = None,
    ):
        if code not in self.CODES:
            raise ValueError(f"Unknown routing error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestions = list(suggestions or [])
        self.retryable = retryable
        # Internal diagnostics only, never rendered to the caller
        self.details = details

    def __repr__(self) -> str:
        return f"RoutingError(code={self.code!r}, message={self.message!r})"


class UpstreamAPIError(WeatherServiceError):
    """Raised when a weather or geocoding backend answers with an error"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        vendor_code: Optional[str] = None,
        api: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.vendor_code = vendor_code
        self.api = api
