# conftest.py
"""Pytest configuration and shared fixtures."""

from datetime import datetime
from typing import Any, Dict, List
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from smart_weather.core.config import RouterConfig
from smart_weather.core.interfaces import LocationBackend, WeatherBackend
from smart_weather.core.models import (
    Coordinates,
    IntentType,
    LocationInfo,
    ParsedQuery,
    ParsingResult,
    TimeScope,
    TimeScopeType,
    WeatherIntent,
)
from smart_weather.query_handlers.fallback_parser import RuleBasedParser
from smart_weather.query_handlers.location_config import LocationConfigLoader
from smart_weather.query_handlers.router import QueryRouter
from smart_weather.query_handlers.time_resolver import TimeResolver

# Wednesday morning in Taipei
FIXED_NOW = datetime(2025, 1, 15, 10, 0, tzinfo=ZoneInfo("Asia/Taipei"))


def fixed_clock(tz: ZoneInfo) -> datetime:
    return FIXED_NOW.astimezone(tz)


@pytest.fixture
def clock():
    """Clock pinned to a fixed Wednesday morning."""
    return fixed_clock


@pytest.fixture
def time_resolver():
    """Time resolver pinned to a fixed Wednesday morning."""
    return TimeResolver("Asia/Taipei", clock=fixed_clock)


@pytest.fixture(scope="session")
def location_config():
    """Known-place dictionary loaded from the packaged YAML file."""
    return LocationConfigLoader()


@pytest.fixture
def fallback_parser(time_resolver, location_config):
    return RuleBasedParser(time_resolver=time_resolver, location_config=location_config)


@pytest.fixture
def router_config():
    return RouterConfig(default_timezone="Asia/Taipei", ai_timeout_seconds=0.5)


@pytest.fixture
def make_router(time_resolver, fallback_parser, router_config):
    """Factory for routers with an optional AI parser."""

    def _make(ai_parser=None, config=None):
        return QueryRouter(
            ai_parser=ai_parser,
            fallback_parser=fallback_parser,
            time_resolver=time_resolver,
            config=config or router_config,
        )

    return _make


def build_parsed_query(
    query: str = "weather in Tokyo tomorrow",
    intent: IntentType = IntentType.WEATHER_FORECAST,
    location_name="Tokyo",
    coordinates=Coordinates(35.6762, 139.6503),
    confidence: float = 0.9,
    time_type: TimeScopeType = TimeScopeType.FORECAST,
    period="tomorrow",
    start=None,
    end=None,
    secondary=(),
    **kwargs,
) -> ParsedQuery:
    location = (
        LocationInfo(name=location_name, coordinates=coordinates, confidence=confidence)
        if location_name or coordinates
        else LocationInfo()
    )
    return ParsedQuery(
        original_query=query,
        location=location,
        intent=WeatherIntent(primary=intent, confidence=confidence, secondary=tuple(secondary)),
        time_scope=TimeScope(
            type=time_type, confidence=confidence, period=period, start=start, end=end
        ),
        confidence=confidence,
        **kwargs,
    )


@pytest.fixture
def parsed_query_factory():
    return build_parsed_query


@pytest.fixture
def mock_ai_parser():
    """AI parser mock returning a confident Tokyo forecast."""
    parser = AsyncMock()
    parser.parse_query.return_value = ParsingResult(
        success=True,
        result=build_parsed_query(confidence=0.9),
        processing_time_ms=12.0,
        model_used="mock-model",
    )
    return parser


class FakeWeatherBackend(WeatherBackend):
    """In-memory weather backend recording its calls."""

    def __init__(self, current=None, days=None, hours=None, error=None):
        self.calls: List[Dict[str, Any]] = []
        self.current = current if current is not None else {
            "temperature": 22.5,
            "description": "Partly cloudy",
            "humidity": 65,
            "wind_kph": 12.0,
            "wind_direction": 90,
            "uv_index": 5,
        }
        self.days = days if days is not None else [
            {"date": "2025-01-16", "high": 24, "low": 17, "description": "Showers", "precipitation_chance": 70},
        ]
        self.hours = hours if hours is not None else [
            {"time": "2025-01-15T11:00", "temperature": 23, "description": "Cloudy", "precipitation_chance": 10},
        ]
        self.error = error

    def _record(self, method: str, **kwargs):
        self.calls.append({"method": method, **kwargs})
        if self.error is not None:
            raise self.error

    async def current_conditions(self, lat, lng, **params):
        self._record("current_conditions", lat=lat, lng=lng, **params)
        return dict(self.current)

    async def daily_forecast(self, lat, lng, days=5, **params):
        self._record("daily_forecast", lat=lat, lng=lng, days=days, **params)
        return {"days": list(self.days)}

    async def hourly_forecast(self, lat, lng, hours=24, **params):
        self._record("hourly_forecast", lat=lat, lng=lng, hours=hours, **params)
        return {"hours": list(self.hours)}

    async def history(self, lat, lng, start=None, end=None, **params):
        self._record("history", lat=lat, lng=lng, start=start, end=end, **params)
        return {"days": list(self.days)}


class FakeLocationBackend(LocationBackend):
    def __init__(self, results=None):
        self.results = results if results is not None else []
        self.queries: List[str] = []

    async def search(self, query, language="en"):
        self.queries.append(query)
        return list(self.results)


@pytest.fixture
def weather_backend():
    return FakeWeatherBackend()


@pytest.fixture
def weather_backend_factory():
    return FakeWeatherBackend


@pytest.fixture
def location_backend_factory():
    return FakeLocationBackend


@pytest.fixture
def location_backend():
    return FakeLocationBackend(
        [{"name": "Kyoto", "lat": 35.0116, "lng": 135.7681, "country": "JP"}]
    )


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )


# Custom collection hook for organizing tests
def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "test_tool_handlers" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        elif "test_handlers" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)

        # Mark slow tests
        if any(keyword in item.nodeid.lower() for keyword in ["timeout", "slow"]):
            item.add_marker(pytest.mark.slow)
