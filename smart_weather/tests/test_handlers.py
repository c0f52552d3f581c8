# test_handlers.py
"""Tests for the weather, location and advice capability handlers."""

import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from smart_weather.core.exceptions import InternalServiceError, UpstreamAPIError
from smart_weather.core.models import (
    Coordinates,
    IntentType,
    TemperatureUnit,
    TimeScopeType,
    UserPreferences,
)
from smart_weather.providers import MockLLM
from smart_weather.query_handlers.advice_handler import (
    AdviceHandler,
    advice_language,
    days_in_window,
)
from smart_weather.query_handlers.dispatcher import CapabilityDispatcher
from smart_weather.query_handlers.location_handler import MAX_CANDIDATES, LocationSearchHandler
from smart_weather.query_handlers.types import (
    ApiParameters,
    Capability,
    DispatchDecision,
    ToolName,
)
from smart_weather.query_handlers.weather_handler import (
    WeatherSearchHandler,
    uv_description,
    wind_direction,
)

TAIPEI = ZoneInfo("Asia/Taipei")
NOW = datetime(2025, 1, 15, 10, 0, tzinfo=TAIPEI)

dispatcher = CapabilityDispatcher(clock=lambda tz: NOW.astimezone(tz))


def run_handler(handler, parsed, forced_intent=None):
    decision = dispatcher.dispatch(parsed, forced_intent=forced_intent)
    return asyncio.run(handler.handle(parsed, decision))


class TestWeatherSearchHandler:
    def test_current_conditions(self, weather_backend, parsed_query_factory):
        parsed = parsed_query_factory(
            intent=IntentType.CURRENT_WEATHER, time_type=TimeScopeType.CURRENT, period="now"
        )

        text, info = run_handler(WeatherSearchHandler(weather_backend), parsed)

        call = weather_backend.calls[0]
        assert call["method"] == "current_conditions"
        assert call["lat"] == pytest.approx(35.6762)
        assert call["units"] == "metric"
        assert "**Weather for Tokyo**" in text
        assert "- Temperature: 22.5°C" in text
        assert "- Wind: 12.0 km/h (E)" in text
        assert "- UV Index: 5 (Moderate)" in text
        assert info["capability"] == "current_conditions"
        assert info["location"]["coordinates"] == {"lat": 35.6762, "lng": 139.6503}

    def test_fahrenheit(self, weather_backend, parsed_query_factory):
        parsed = parsed_query_factory(
            intent=IntentType.CURRENT_WEATHER,
            user_preferences=UserPreferences(temperature_unit=TemperatureUnit.FAHRENHEIT),
        )

        text, info = run_handler(WeatherSearchHandler(weather_backend), parsed)

        assert weather_backend.calls[0]["units"] == "imperial"
        assert "°F" in text
        assert info["units"] == "imperial"

    def test_daily_forecast(self, weather_backend, parsed_query_factory):
        parsed = parsed_query_factory(
            start=datetime(2025, 1, 16, tzinfo=TAIPEI),
            end=datetime(2025, 1, 17, 23, 59, 59, tzinfo=TAIPEI),
        )

        text, _ = run_handler(WeatherSearchHandler(weather_backend), parsed)

        assert weather_backend.calls[0]["method"] == "daily_forecast"
        assert weather_backend.calls[0]["days"] == 3
        assert "**Forecast:**" in text
        assert "- 2025-01-16: 24°C/17°C, Showers (70% rain)" in text

    def test_hourly_forecast(self, weather_backend, parsed_query_factory):
        parsed = parsed_query_factory(period="today, hourly")

        text, _ = run_handler(WeatherSearchHandler(weather_backend), parsed)

        assert weather_backend.calls[0]["method"] == "hourly_forecast"
        assert weather_backend.calls[0]["hours"] == 24
        assert "**Hourly Forecast:**" in text
        assert "- 2025-01-15T11:00: 23°C, Cloudy (10% rain)" in text

    def test_history(self, weather_backend, parsed_query_factory):
        start = datetime(2025, 1, 14, tzinfo=TAIPEI)
        parsed = parsed_query_factory(
            intent=IntentType.HISTORICAL_WEATHER,
            time_type=TimeScopeType.HISTORICAL,
            period="yesterday",
            start=start,
            end=datetime(2025, 1, 14, 23, 59, 59, tzinfo=TAIPEI),
        )

        text, _ = run_handler(WeatherSearchHandler(weather_backend), parsed)

        assert weather_backend.calls[0]["method"] == "history"
        assert weather_backend.calls[0]["start"] == start
        assert "**History:**" in text

    def test_empty_forecast(self, weather_backend_factory, parsed_query_factory):
        backend = weather_backend_factory(days=[])

        text, _ = run_handler(WeatherSearchHandler(backend), parsed_query_factory())

        assert "- No data returned for this period" in text

    def test_geocodes_location_name(
        self, weather_backend, location_backend, parsed_query_factory
    ):
        parsed = parsed_query_factory(
            intent=IntentType.CURRENT_WEATHER, location_name="Kyoto", coordinates=None
        )
        handler = WeatherSearchHandler(weather_backend, location_backend=location_backend)

        _, info = run_handler(handler, parsed)

        assert location_backend.queries == ["Kyoto"]
        assert info["location"]["coordinates"]["lat"] == pytest.approx(35.0116)

    def test_no_geocoding_results(
        self, weather_backend, location_backend_factory, parsed_query_factory
    ):
        parsed = parsed_query_factory(location_name="Atlantis", coordinates=None)
        handler = WeatherSearchHandler(
            weather_backend, location_backend=location_backend_factory([])
        )

        with pytest.raises(UpstreamAPIError) as exc_info:
            run_handler(handler, parsed)

        assert exc_info.value.vendor_code == "ZERO_RESULTS"
        assert weather_backend.calls == []

    def test_unsupported_capability(self, weather_backend):
        decision = DispatchDecision(
            capability=Capability.ADVICE,
            tool=ToolName.GET_WEATHER_ADVICE,
            intent=IntentType.WEATHER_ADVICE,
            parameters=ApiParameters(location="Tokyo", coordinates=Coordinates(35.6762, 139.6503)),
        )
        handler = WeatherSearchHandler(weather_backend)

        with pytest.raises(InternalServiceError):
            asyncio.run(handler.handle(None, decision))

    def test_slow_backend_times_out(self, weather_backend_factory, parsed_query_factory):
        class SlowBackend(weather_backend_factory):
            async def daily_forecast(self, lat, lng, days=5, **params):
                await asyncio.sleep(1)

        handler = WeatherSearchHandler(SlowBackend(), timeout=0.05)

        with pytest.raises(asyncio.TimeoutError):
            run_handler(handler, parsed_query_factory())

    @pytest.mark.parametrize(
        "degrees, expected", [(0, "N"), (90, "E"), (225, "SW"), (350, "N"), (-90, "W")]
    )
    def test_wind_direction(self, degrees, expected):
        assert wind_direction(degrees) == expected

    @pytest.mark.parametrize(
        "index, expected",
        [(0, "Low"), (2, "Low"), (3, "Moderate"), (7, "High"), (10, "Very High"), (11, "Extreme")],
    )
    def test_uv_description(self, index, expected):
        assert uv_description(index) == expected


class TestLocationSearchHandler:
    @pytest.fixture
    def handler(self, location_config):
        return LocationSearchHandler(location_config=location_config)

    def location_query(self, factory, **kwargs):
        kwargs.setdefault("intent", IntentType.LOCATION_SEARCH)
        return factory(**kwargs)

    def test_single_known_place(self, handler, parsed_query_factory):
        text, info = run_handler(handler, self.location_query(parsed_query_factory))

        assert text.startswith("**Tokyo (JP)**")
        assert info["ambiguous"] is False
        assert info["candidates"][0]["timezone"] == "Asia/Tokyo"

    def test_ambiguous_name(self, handler, parsed_query_factory):
        parsed = self.location_query(
            parsed_query_factory, location_name="Springfield", coordinates=None
        )

        text, info = run_handler(handler, parsed)

        assert info["ambiguous"] is True
        assert [c["name"] for c in info["candidates"]] == [
            "Springfield, Illinois",
            "Springfield, Missouri",
        ]
        assert text.startswith("Found 2 places matching 'Springfield':")
        assert text.endswith("Please specify which one you mean.")

    def test_place_found_in_raw_query(self, handler, parsed_query_factory):
        parsed = self.location_query(
            parsed_query_factory, query=" 京都在哪裡 ", location_name=None, coordinates=None
        )

        _, info = run_handler(handler, parsed)

        assert info["query"] == "京都在哪裡"
        assert info["candidates"][0]["name"] == "Kyoto"

    def test_coordinates_are_a_candidate(self, handler, parsed_query_factory):
        parsed = self.location_query(
            parsed_query_factory,
            query="25.03, 121.56",
            location_name=None,
            coordinates=Coordinates(25.03, 121.56),
        )

        _, info = run_handler(handler, parsed)

        assert info["candidates"][0]["name"] == "25.0300, 121.5600"

    def test_backend_results_are_merged(
        self, location_config, location_backend_factory, parsed_query_factory
    ):
        backend = location_backend_factory(
            [
                {"name": "Tokyo", "lat": 35.677, "lng": 139.651, "country": "JP"},
                {"name": "Tokio", "lat": 19.2, "lng": -155.0, "country": "US"},
            ]
        )
        handler = LocationSearchHandler(location_backend=backend, location_config=location_config)

        _, info = run_handler(handler, self.location_query(parsed_query_factory))

        assert backend.queries == ["Tokyo"]
        assert [c["name"] for c in info["candidates"]] == ["Tokyo", "Tokio"]

    def test_candidates_are_capped(
        self, location_config, location_backend_factory, parsed_query_factory
    ):
        backend = location_backend_factory(
            [{"name": f"Place {i}", "lat": float(i), "lng": float(i)} for i in range(10)]
        )
        handler = LocationSearchHandler(location_backend=backend, location_config=location_config)
        parsed = self.location_query(
            parsed_query_factory, location_name="Place", coordinates=None
        )

        _, info = run_handler(handler, parsed)

        assert len(info["candidates"]) == MAX_CANDIDATES

    def test_nothing_found(self, handler, parsed_query_factory):
        parsed = self.location_query(
            parsed_query_factory, query="where is Atlantis", location_name="Atlantis", coordinates=None
        )

        with pytest.raises(UpstreamAPIError) as exc_info:
            run_handler(handler, parsed)

        assert exc_info.value.vendor_code == "ZERO_RESULTS"


HOT_WEATHER = {
    "current": {"temperature": 33, "humidity": 85, "wind_kph": 30, "uv_index": 8},
    "daily": [{"precipitation_chance": 80}],
}


class TestAdviceRules:
    def test_hot_humid_windy_rainy_day(self):
        advice = AdviceHandler.rule_based_advice(HOT_WEATHER)

        categories = [item["category"] for item in advice["recommendations"]]
        assert categories == [
            "Clothing",
            "Comfort",
            "Outdoor Activities",
            "Sun Protection",
            "Items to Bring",
        ]
        assert advice["warnings"][0]["type"] == "heat"
        assert "80% chance of rain" in advice["recommendations"][-1]["advice"]

    @pytest.mark.parametrize(
        "temperature, text",
        [
            (2, "Wear warm layers and windproof clothing."),
            (10, "Wear long sleeves, consider bringing a light jacket."),
        ],
    )
    def test_cold_and_cool(self, temperature, text):
        advice = AdviceHandler.rule_based_advice({"current": {"temperature": temperature}})

        assert advice["recommendations"][0]["advice"] == text

    def test_pleasant_day(self):
        advice = AdviceHandler.rule_based_advice(
            {"current": {"temperature": 22, "humidity": 50}, "daily": [{"precipitation_chance": 10}]}
        )

        assert advice["recommendations"][0]["category"] == "General"
        assert advice["warnings"] == []

    def test_traditional_chinese_texts(self):
        advice = AdviceHandler.rule_based_advice(HOT_WEATHER, "zh")

        assert advice["summary"] == "根據當前天氣狀況，為您提供以下建議："
        assert advice["recommendations"][-1]["advice"] == "降雨機率 80%，建議攜帶雨具"

    def test_keyword_advice(self):
        advice = AdviceHandler.keyword_advice("Is it a good day for hiking? Need a jacket?")

        categories = {item["category"] for item in advice["recommendations"]}
        assert categories == {"Clothing", "Outdoor Activities"}

    def test_keyword_advice_in_chinese(self):
        advice = AdviceHandler.keyword_advice("明天要帶傘嗎", "zh")

        assert advice["recommendations"][0]["advice"] == "可能會下雨，建議隨身攜帶折疊傘"

    def test_keyword_advice_default(self):
        advice = AdviceHandler.keyword_advice("what about tomorrow")

        assert advice["recommendations"][0]["category"] == "General"

    @pytest.mark.parametrize(
        "language, query, expected",
        [
            ("zh-TW", "umbrella?", "zh"),
            ("en", "台北明天", "zh"),
            ("ja", "東京の天気", "en"),
            ("en", "Tokyo", "en"),
        ],
    )
    def test_advice_language(self, language, query, expected):
        assert advice_language(language, query) == expected


class TestAdviceHandler:
    def test_rule_based_with_weather(self, weather_backend, parsed_query_factory):
        parsed = parsed_query_factory(query="Should I bring an umbrella in Tokyo tomorrow?")

        text, info = run_handler(
            AdviceHandler(weather_backend=weather_backend), parsed, IntentType.WEATHER_ADVICE
        )

        methods = sorted(call["method"] for call in weather_backend.calls)
        assert methods == ["current_conditions", "daily_forecast"]
        assert info["source"] == "rule_based"
        assert info["weather_available"] is True
        assert text.startswith("**Weather advice for Tokyo**")
        assert "70% chance of rain - bring an umbrella." in text

    def test_advice_uses_the_requested_day(self, weather_backend_factory, parsed_query_factory):
        backend = weather_backend_factory(
            days=[
                {"date": "2025-01-15", "high": 20, "low": 14, "precipitation_chance": 90},
                {"date": "2025-01-16", "high": 22, "low": 15, "precipitation_chance": 10},
            ]
        )
        parsed = parsed_query_factory(
            query="Should I bring an umbrella in Tokyo tomorrow?",
            start=datetime(2025, 1, 16, tzinfo=TAIPEI),
            end=datetime(2025, 1, 16, 23, 59, 59, tzinfo=TAIPEI),
        )

        text, info = run_handler(
            AdviceHandler(weather_backend=backend), parsed, IntentType.WEATHER_ADVICE
        )

        forecast_call = next(call for call in backend.calls if call["method"] == "daily_forecast")
        assert forecast_call["days"] == 2
        assert info["source"] == "rule_based"
        assert "90% chance of rain" not in text
        assert "favorable" in text

    def test_keyword_fallback_when_backend_fails(
        self, weather_backend_factory, parsed_query_factory
    ):
        backend = weather_backend_factory(error=ConnectionError("unreachable"))
        parsed = parsed_query_factory(query="Do I need a jacket in Tokyo?")

        text, info = run_handler(
            AdviceHandler(weather_backend=backend), parsed, IntentType.WEATHER_ADVICE
        )

        assert info["weather_available"] is False
        assert "Bring a jacket" in text

    def test_without_location(self, weather_backend, parsed_query_factory):
        parsed = parsed_query_factory(
            query="should I wear sunscreen", location_name=None, coordinates=None
        )

        text, info = run_handler(
            AdviceHandler(weather_backend=weather_backend), parsed, IntentType.WEATHER_ADVICE
        )

        assert weather_backend.calls == []
        assert info["location"] is None
        assert "sunscreen" in text

    def test_llm_advice(self, weather_backend, parsed_query_factory):
        llm = MockLLM()
        parsed = parsed_query_factory(query="What should I bring in Tokyo tomorrow?")

        text, info = run_handler(
            AdviceHandler(weather_backend=weather_backend, llm=llm), parsed, IntentType.WEATHER_ADVICE
        )

        assert info["source"] == "ai"
        assert "Pack a light umbrella for the evening." in text
        assert "User query: What should I bring in Tokyo tomorrow?" in llm.prompts[0]
        assert "Weather data:" in llm.prompts[0]

    @pytest.mark.parametrize("response", ["not json", {"summary": "nothing useful"}])
    def test_unusable_llm_advice_falls_back(self, weather_backend, parsed_query_factory, response):
        llm = MockLLM(responses=[response])

        _, info = run_handler(
            AdviceHandler(weather_backend=weather_backend, llm=llm),
            parsed_query_factory(),
            IntentType.WEATHER_ADVICE,
        )

        assert info["source"] == "rule_based"

    def test_failing_llm_falls_back(self, parsed_query_factory):
        llm = MockLLM(fail_with="quota exceeded")

        _, info = run_handler(
            AdviceHandler(llm=llm), parsed_query_factory(), IntentType.WEATHER_ADVICE
        )

        assert info["source"] == "rule_based"
        assert info["weather_available"] is False

    def test_chinese_query(self, parsed_query_factory):
        parsed = parsed_query_factory(
            query="台北明天會下雨嗎",
            location_name="Taipei",
            coordinates=Coordinates(25.033, 121.5654),
            user_preferences=UserPreferences(language="zh-TW"),
        )

        text, _ = run_handler(AdviceHandler(), parsed, IntentType.WEATHER_ADVICE)

        assert "目前無法取得即時天氣資料" in text
        assert "可能會下雨" in text


class TestDaysInWindow:
    DAYS = [
        {"date": "2025-01-15", "precipitation_chance": 90},
        {"date": "2025-01-16", "precipitation_chance": 10},
        {"date": "2025-01-17", "precipitation_chance": 40},
    ]

    def test_without_window(self):
        assert days_in_window(self.DAYS, None, None) == self.DAYS

    def test_selects_days_in_window(self):
        selected = days_in_window(
            self.DAYS,
            datetime(2025, 1, 16, tzinfo=TAIPEI),
            datetime(2025, 1, 17, 23, 59, 59, tzinfo=TAIPEI),
        )

        assert [day["date"] for day in selected] == ["2025-01-16", "2025-01-17"]

    def test_unmatched_window_keeps_forecast(self):
        start = datetime(2025, 2, 1, tzinfo=TAIPEI)

        assert days_in_window(self.DAYS, start, None) == self.DAYS
