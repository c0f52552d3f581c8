# test_ai_parser.py
"""Tests for the LLM-backed query parser and LLM providers."""

import asyncio
import json
from datetime import date
from unittest.mock import Mock

import pytest
from langchain_core.language_models import FakeListChatModel

from smart_weather.core.exceptions import AIParserError, ConfigurationError
from smart_weather.core.models import (
    DEFAULT_METRICS,
    IntentType,
    ParsingRequest,
    TimeScopeType,
    WeatherMetric,
)
from smart_weather.core.settings import settings
from smart_weather.providers import (
    GroqLLM,
    LangChainLLMWrapper,
    LLMQueryParser,
    MockLLM,
    ValidationConfig,
)

FORECAST_RESPONSE = {
    "location": {"name": "Osaka", "coordinates": {"lat": 34.6937, "lng": 135.5023}, "confidence": 0.9},
    "intent": {"primary": "WEATHER_FORECAST", "secondary": ["WEATHER_ADVICE", "MAKE_COFFEE"], "confidence": 0.85},
    "timeScope": {
        "type": "forecast",
        "period": "tomorrow",
        "startDate": "2025-01-16",
        "endDate": None,
        "confidence": 0.8,
    },
    "weatherMetrics": ["temperature", "precipitation", "pollen"],
    "userPreferences": {"language": "en", "temperatureUnit": "fahrenheit", "detailLevel": "detailed"},
    "confidence": 0.88,
}


def make_parser(llm=None, **validation):
    return LLMQueryParser(
        llm or MockLLM(),
        validation=ValidationConfig(**validation) if validation else None,
        default_timezone="Asia/Taipei",
    )


def parse(parser, query, context=None):
    return asyncio.run(parser.parse_query(ParsingRequest(query=query, context=context)))


class TestSuccessfulParsing:
    def test_tokyo_current_weather(self):
        result = parse(make_parser(), "What's the weather in Tokyo?")

        assert result.success
        assert result.model_used == "mock-llm"
        parsed = result.result
        assert parsed.location.name == "Tokyo"
        assert parsed.intent.primary == IntentType.CURRENT_WEATHER
        assert parsed.time_scope.type == TimeScopeType.CURRENT
        assert parsed.user_preferences.language == "en"
        assert parsed.confidence == pytest.approx(0.9)

    def test_chinese_query_keeps_secondary_intent(self):
        parsed = parse(make_parser(), "台北明天會下雨嗎").result

        assert parsed.intent.primary == IntentType.WEATHER_ADVICE
        assert parsed.intent.secondary == (IntentType.WEATHER_FORECAST,)
        assert parsed.user_preferences.language == "zh-TW"

    def test_prompt_carries_query_and_context(self):
        llm = MockLLM()
        parse(make_parser(llm), "東京の天気", "Current time: 2025-01-15T10:00:00+08:00")

        assert 'Query: "東京の天気"' in llm.prompts[0]
        assert "Context: Current time: 2025-01-15T10:00:00+08:00" in llm.prompts[0]

    def test_missing_context_rendered_as_none(self):
        llm = MockLLM()
        parse(make_parser(llm), "weather in Tokyo")

        assert "Context: None" in llm.prompts[0]

    def test_fenced_json_is_accepted(self):
        fenced = "```json\n" + json.dumps(FORECAST_RESPONSE) + "\n```"
        result = parse(make_parser(MockLLM(responses=[fenced])), "Osaka tomorrow")

        assert result.success
        assert result.result.location.name == "Osaka"

    def test_unsure_answer_still_succeeds(self):
        result = parse(make_parser(), "hmm")

        assert result.success
        assert result.result.confidence == pytest.approx(0.4)
        assert not result.result.location.is_resolved


class TestConversion:
    def test_to_parsed_query(self):
        parsed = make_parser().to_parsed_query("Osaka tomorrow", FORECAST_RESPONSE)

        assert parsed.location.coordinates.lat == pytest.approx(34.6937)
        assert parsed.intent.secondary == (IntentType.WEATHER_ADVICE,)
        assert parsed.weather_metrics == {WeatherMetric.TEMPERATURE, WeatherMetric.PRECIPITATION}
        assert parsed.user_preferences.temperature_unit.value == "fahrenheit"
        assert parsed.user_preferences.detail_level.value == "detailed"
        assert parsed.confidence == pytest.approx(0.8)

    def test_date_only_window_covers_whole_day(self):
        parsed = make_parser().to_parsed_query("Osaka tomorrow", FORECAST_RESPONSE)

        start, end = parsed.time_scope.start, parsed.time_scope.end
        assert start.date() == end.date() == date(2025, 1, 16)
        assert (start.hour, start.minute) == (0, 0)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)
        assert start.tzinfo.key == "Asia/Taipei"

    def test_explicit_offset_is_kept(self):
        data = dict(FORECAST_RESPONSE, timeScope=dict(
            FORECAST_RESPONSE["timeScope"], startDate="2025-01-16T09:00:00Z", endDate="2025-01-16T18:00:00Z"
        ))

        parsed = make_parser().to_parsed_query("Osaka tomorrow", data)

        assert parsed.time_scope.start.utcoffset().total_seconds() == 0
        assert parsed.time_scope.start.hour == 9

    def test_window_ending_before_start_is_rejected(self):
        data = dict(FORECAST_RESPONSE, timeScope=dict(
            FORECAST_RESPONSE["timeScope"], startDate="2025-01-18", endDate="2025-01-16"
        ))

        with pytest.raises(ValueError):
            make_parser().to_parsed_query("Osaka", data)

    def test_empty_metrics_use_defaults(self):
        data = dict(FORECAST_RESPONSE, weatherMetrics=[])

        parsed = make_parser().to_parsed_query("Osaka", data)

        assert parsed.weather_metrics == DEFAULT_METRICS


class TestFailures:
    @pytest.mark.parametrize("query", ["", "   ", "<script>alert(1)</script> weather"])
    def test_invalid_input_is_not_retryable(self, query):
        llm = MockLLM()
        result = parse(make_parser(llm), query)

        assert not result.success
        assert result.error.type == "INVALID_INPUT"
        assert result.error.retryable is False
        assert llm.prompts == []

    def test_api_error(self):
        result = parse(make_parser(MockLLM(fail_with="rate limited")), "weather in Tokyo")

        assert result.error.type == "API_ERROR"
        assert result.error.retryable
        assert "rate limited" in result.error.message

    def test_unparseable_output(self):
        result = parse(make_parser(MockLLM(responses=["not json at all"])), "weather in Tokyo")

        assert result.error.type == "PARSING_FAILED"
        assert result.error.suggestions

    def test_unknown_primary_intent(self):
        data = dict(FORECAST_RESPONSE, intent={"primary": "ORDER_PIZZA", "confidence": 0.9})
        result = parse(make_parser(MockLLM(responses=[data])), "weather in Osaka")

        assert result.error.type == "PARSING_FAILED"

    @pytest.mark.parametrize(
        "field, value",
        [
            ("location", "Tokyo"),
            ("timeScope", "tomorrow"),
            ("userPreferences", ["en"]),
            ("intent", "WEATHER_FORECAST"),
        ],
    )
    def test_flat_values_instead_of_objects(self, field, value):
        data = dict(FORECAST_RESPONSE, **{field: value})

        result = parse(make_parser(MockLLM(responses=[data])), "weather in Osaka tomorrow")

        assert not result.success
        assert result.error.type == "PARSING_FAILED"
        assert field in result.error.message

    def test_missing_intent(self):
        data = {key: value for key, value in FORECAST_RESPONSE.items() if key != "intent"}
        result = parse(make_parser(MockLLM(responses=[data])), "weather in Osaka")

        assert result.error.type == "PARSING_FAILED"


class TestValidation:
    def test_minimum_confidence(self):
        result = parse(make_parser(min_confidence=0.5), "hmm")

        assert result.error.type == "PARSING_FAILED"
        assert any("specific" in suggestion for suggestion in result.error.suggestions)

    def test_required_location(self):
        result = parse(make_parser(require_location=True), "hmm, weather please")

        assert not result.success
        assert "Try including a specific city or location name" in result.error.suggestions

    def test_language_allow_list(self):
        result = parse(make_parser(allowed_languages=["en"]), "台北明天會下雨嗎")

        assert not result.success
        assert any("Chinese" in suggestion for suggestion in result.error.suggestions)

    def test_strict_mode(self):
        data = dict(FORECAST_RESPONSE, timeScope=dict(FORECAST_RESPONSE["timeScope"], confidence=0.6))

        relaxed = parse(make_parser(MockLLM(responses=[data])), "Osaka tomorrow")
        strict = parse(make_parser(MockLLM(responses=[data]), strict_mode=True), "Osaka tomorrow")

        assert relaxed.success
        assert not strict.success
        assert "strict mode" in strict.error.message

    def test_short_query_gets_detail_suggestion(self):
        suggestions = LLMQueryParser.error_suggestions("hmm", "something broke")

        assert "Provide more detailed information about your weather query" in suggestions


class TestProviders:
    def test_langchain_wrapper_sync_and_async(self):
        chat_model = FakeListChatModel(responses=['{"ok": true}', '{"ok": false}'])
        llm = LangChainLLMWrapper(chat_model, model_name="fake-chat")

        assert llm.generate_response("hello") == '{"ok": true}'
        assert asyncio.run(llm.agenerate_response("hello")) == '{"ok": false}'
        assert llm.model_name == "fake-chat"

    def test_langchain_wrapper_wraps_errors(self):
        chat_model = Mock()
        chat_model.invoke.side_effect = RuntimeError("503 from provider")
        llm = LangChainLLMWrapper(chat_model)

        with pytest.raises(AIParserError):
            llm.generate_response("hello")

    def test_wrapper_feeds_query_parser(self):
        chat_model = FakeListChatModel(responses=[json.dumps(FORECAST_RESPONSE)])
        parser = make_parser(LangChainLLMWrapper(chat_model, model_name="fake-chat"))

        result = parse(parser, "Osaka tomorrow")

        assert result.success
        assert result.model_used == "fake-chat"

    def test_groq_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "GROQ_API_KEY", None)

        with pytest.raises(ConfigurationError):
            GroqLLM(api_key=None)

    def test_groq_model_from_settings(self):
        llm = GroqLLM(api_key="test_key_12345")

        assert llm.model_name == settings.LLM_MODEL
