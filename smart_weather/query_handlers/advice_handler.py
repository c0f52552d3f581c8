# advice_handler.py
"""Actionable weather advice from an LLM advisor, weather thresholds or query keywords."""

import asyncio
import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser

from smart_weather.core.interfaces import LLMInterface, LocationBackend, WeatherBackend
from smart_weather.core.models import ParsedQuery
from smart_weather.core.settings import settings

from .types import DispatchDecision
from .utils import QueryPatternUtils
from .weather_handler import resolve_coordinates

logger = logging.getLogger(__name__)

_w = QueryPatternUtils.word

HOT_THRESHOLD = 30
COLD_THRESHOLD = 5
COOL_THRESHOLD = 15
HUMID_THRESHOLD = 80
WINDY_THRESHOLD_KPH = 25
UV_THRESHOLD = 6
RAIN_CHANCE_THRESHOLD = 60

KEYWORD_RULES = [
    ("rain", re.compile(_w(r"(?:rain|rainy|umbrella|shower|showers|wet)") + r"|雨|傘|伞")),
    ("cold", re.compile(_w(r"(?:jacket|coat|cold|chilly|freezing|sweater)") + r"|外套|冷|寒")),
    ("sun", re.compile(_w(r"(?:sunscreen|sunburn|uv|sunny)") + r"|防曬|防晒|紫外線|紫外线|日焼け")),
    ("outdoor", re.compile(_w(r"(?:outdoors?|hike|hiking|picnic|run|running|beach|cycling)") + r"|戶外|户外|出門|出门|登山|野餐|運動|运动")),
]

TEXTS = {
    "en": {
        "clothing": "Clothing",
        "comfort": "Comfort",
        "outdoor": "Outdoor Activities",
        "sun": "Sun Protection",
        "items": "Items to Bring",
        "general": "General",
        "heat": "Wear light, breathable clothing. Avoid prolonged outdoor activities.",
        "heat_warning": "Heat Warning: Take precautions against heat exhaustion",
        "cold": "Wear warm layers and windproof clothing.",
        "cool": "Wear long sleeves, consider bringing a light jacket.",
        "humid": "High humidity - choose breathable fabrics.",
        "windy": "Strong winds - be cautious with outdoor activities.",
        "uv": "High UV index - use sunscreen and protective clothing.",
        "rain": "{chance}% chance of rain - bring an umbrella.",
        "favorable": "Weather conditions are favorable for outdoor activities.",
        "summary": "Based on current weather conditions, here are our recommendations:",
        "kw_rain": "Rain is on your mind - carry a compact umbrella just in case.",
        "kw_cold": "Bring a jacket; temperatures can drop in the evening.",
        "kw_sun": "Use sunscreen and a hat if you'll be outside around midday.",
        "kw_outdoor": "Check the forecast again shortly before heading out.",
        "kw_general": "Check the latest forecast before heading out.",
        "kw_summary": "Live weather data is unavailable, so these are general recommendations:",
    },
    "zh": {
        "clothing": "穿著建議",
        "comfort": "舒適度",
        "outdoor": "戶外活動",
        "sun": "防曬建議",
        "items": "攜帶物品",
        "general": "一般建議",
        "heat": "建議穿著輕薄透氣的衣物，避免長時間戶外活動",
        "heat_warning": "高溫警示：注意防暑降溫",
        "cold": "建議穿著保暖外套，注意防風保溫",
        "cool": "建議穿著長袖衣物，可攜帶薄外套",
        "humid": "濕度較高，建議選擇透氣材質的衣物",
        "windy": "風速較強，戶外活動請注意安全",
        "uv": "紫外線指數偏高，建議使用防曬用品",
        "rain": "降雨機率 {chance}%，建議攜帶雨具",
        "favorable": "天氣狀況良好，適合進行各種戶外活動",
        "summary": "根據當前天氣狀況，為您提供以下建議：",
        "kw_rain": "可能會下雨，建議隨身攜帶折疊傘",
        "kw_cold": "建議攜帶外套，早晚溫差可能較大",
        "kw_sun": "中午外出請做好防曬",
        "kw_outdoor": "出門前請再次確認最新天氣預報",
        "kw_general": "出門前請確認最新天氣預報",
        "kw_summary": "目前無法取得即時天氣資料，以下為一般建議：",
    },
}


def advice_language(language: str, query: str) -> str:
    if language.startswith("zh") or (language != "ja" and QueryPatternUtils.has_han(query)):
        return "zh"
    return "en"


def days_in_window(
    days: List[Dict[str, Any]], start: Optional[datetime], end: Optional[datetime]
) -> List[Dict[str, Any]]:
    """Forecast days falling inside the asked-about window.

    Days are matched on their ``YYYY-MM-DD`` date. Without a window, or when
    no day carries a matching date, the forecast is returned unchanged.
    """
    if start is None:
        return list(days)
    first = start.date().isoformat()
    last = (end or start).date().isoformat()
    selected = [day for day in days if first <= str(day.get("date", ""))[:10] <= last]
    return selected or list(days)


class AdviceHandler:
    """Produces clothing, item and activity advice for a location"""

    def __init__(
        self,
        weather_backend: Optional[WeatherBackend] = None,
        location_backend: Optional[LocationBackend] = None,
        llm: Optional[LLMInterface] = None,
        timeout: Optional[float] = None,
    ):
        self.weather_backend = weather_backend
        self.location_backend = location_backend
        self.llm = llm
        self.timeout = timeout or settings.DOWNSTREAM_TIMEOUT
        self.json_parser = JsonOutputParser()

    async def handle(
        self, parsed_query: ParsedQuery, decision: DispatchDecision
    ) -> Tuple[str, Dict[str, Any]]:
        lang = advice_language(decision.parameters.language, parsed_query.original_query)
        weather, location_name = await self._fetch_weather(decision)

        advice = None
        source = "rule_based"
        if self.llm is not None:
            advice = await self._ai_advice(parsed_query, weather, lang)
            if advice is not None:
                source = "ai"

        if advice is None:
            if weather is not None:
                advice = self.rule_based_advice(weather, lang)
            else:
                advice = self.keyword_advice(parsed_query.original_query, lang)

        answer = self._format(advice, location_name)
        additional_info = {
            "advice": advice,
            "source": source,
            "location": location_name,
            "weather_available": weather is not None,
        }
        return answer, additional_info

    async def _fetch_weather(
        self, decision: DispatchDecision
    ) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """Current conditions plus the forecast for the asked-about days"""
        parameters = decision.parameters
        if self.weather_backend is None or (
            parameters.coordinates is None and not parameters.location
        ):
            return None, parameters.location

        try:
            coordinates, name = await resolve_coordinates(
                parameters, self.location_backend, self.timeout
            )
            current, daily = await asyncio.wait_for(
                asyncio.gather(
                    self.weather_backend.current_conditions(
                        coordinates.lat, coordinates.lng, units="metric", language=parameters.language
                    ),
                    self.weather_backend.daily_forecast(
                        coordinates.lat,
                        coordinates.lng,
                        days=parameters.forecast_days or 1,
                        units="metric",
                        language=parameters.language,
                    ),
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"Weather lookup for advice failed, using keyword advice: {str(e)}")
            return None, parameters.location

        days = days_in_window((daily or {}).get("days", []), parameters.start, parameters.end)
        return {"current": current or {}, "daily": days}, name

    async def _ai_advice(
        self, parsed_query: ParsedQuery, weather: Optional[Dict[str, Any]], lang: str
    ) -> Optional[Dict[str, Any]]:
        prompt = self._build_prompt(parsed_query, weather, lang)
        try:
            response = await asyncio.wait_for(
                self.llm.agenerate_response(prompt),
                timeout=self.timeout,
            )
            advice = self.json_parser.parse(response)
        except (OutputParserException, asyncio.TimeoutError) as e:
            logger.warning(f"LLM advice unusable, falling back to rules: {str(e)}")
            return None
        except Exception as e:
            logger.warning(f"LLM advisor failed, falling back to rules: {str(e)}")
            return None

        if not isinstance(advice, dict) or not advice.get("recommendations"):
            logger.warning("LLM advice missing recommendations, falling back to rules")
            return None
        advice.setdefault("summary", "")
        advice.setdefault("warnings", [])
        return advice

    @staticmethod
    def _build_prompt(
        parsed_query: ParsedQuery, weather: Optional[Dict[str, Any]], lang: str
    ) -> str:
        if lang == "zh":
            intro = "你是一個專業的天氣顧問助手。請根據以下天氣資訊和用戶查詢，提供實用的天氣建議。"
        else:
            intro = (
                "You are a professional weather advisor. Based on the following weather "
                "information and user query, provide practical, actionable weather advice."
            )

        lines = [intro, "", f"User query: {parsed_query.original_query}"]
        if weather is not None:
            lines.append(f"Weather data: {json.dumps(weather, ensure_ascii=False, default=str)}")
        lines.extend(
            [
                "",
                "Respond with JSON only:",
                '{"summary": "...", '
                '"recommendations": [{"category": "...", "icon": "...", "advice": "...", "priority": "high|medium|low"}], '
                '"warnings": [{"type": "...", "message": "...", "severity": "info|warning|critical"}]}',
            ]
        )
        return "\n".join(lines)

    @staticmethod
    def rule_based_advice(weather: Dict[str, Any], lang: str = "en") -> Dict[str, Any]:
        """Threshold rules over current conditions and the forecast days in scope"""
        text = TEXTS[lang]
        recommendations: List[Dict[str, str]] = []
        warnings: List[Dict[str, str]] = []
        current = weather.get("current") or {}

        if current:
            temperature = float(current.get("temperature", 0))
            if temperature > HOT_THRESHOLD:
                recommendations.append(_recommendation(text["clothing"], "🌡️", text["heat"], "high"))
                warnings.append({"type": "heat", "message": text["heat_warning"], "severity": "warning"})
            elif temperature < COLD_THRESHOLD:
                recommendations.append(_recommendation(text["clothing"], "🧥", text["cold"], "high"))
            elif temperature < COOL_THRESHOLD:
                recommendations.append(_recommendation(text["clothing"], "👕", text["cool"], "medium"))

            if float(current.get("humidity", 0)) > HUMID_THRESHOLD:
                recommendations.append(_recommendation(text["comfort"], "💧", text["humid"], "medium"))
            if float(current.get("wind_kph", 0)) > WINDY_THRESHOLD_KPH:
                recommendations.append(_recommendation(text["outdoor"], "💨", text["windy"], "medium"))
            if current.get("uv_index") is not None and float(current["uv_index"]) > UV_THRESHOLD:
                recommendations.append(_recommendation(text["sun"], "☀️", text["uv"], "high"))

        daily = weather.get("daily") or []
        if daily:
            chance = max(day.get("precipitation_chance") or 0 for day in daily)
            if chance > RAIN_CHANCE_THRESHOLD:
                recommendations.append(
                    _recommendation(text["items"], "☂️", text["rain"].format(chance=chance), "high")
                )

        if not recommendations:
            recommendations.append(_recommendation(text["general"], "🌤️", text["favorable"], "low"))

        return {"summary": text["summary"], "recommendations": recommendations, "warnings": warnings}

    @staticmethod
    def keyword_advice(query: str, lang: str = "en") -> Dict[str, Any]:
        """Advice from what the query mentions when no weather data is available"""
        text = TEXTS[lang]
        query_lower = query.lower()
        categories = {
            "rain": (text["items"], "☂️"),
            "cold": (text["clothing"], "🧥"),
            "sun": (text["sun"], "☀️"),
            "outdoor": (text["outdoor"], "🥾"),
        }

        recommendations = [
            _recommendation(categories[name][0], categories[name][1], text[f"kw_{name}"], "medium")
            for name, pattern in KEYWORD_RULES
            if pattern.search(query_lower)
        ]
        if not recommendations:
            recommendations.append(_recommendation(text["general"], "🌤️", text["kw_general"], "low"))

        return {"summary": text["kw_summary"], "recommendations": recommendations, "warnings": []}

    @staticmethod
    def _format(advice: Dict[str, Any], location_name: Optional[str]) -> str:
        lines = []
        if location_name:
            lines.append(f"**Weather advice for {location_name}**")
            lines.append("")
        if advice.get("summary"):
            lines.append(advice["summary"])
            lines.append("")
        for item in advice.get("recommendations", []):
            lines.append(f"{item.get('icon', '•')} **{item.get('category', '')}**: {item.get('advice', '')}")
        warnings = advice.get("warnings") or []
        if warnings:
            lines.append("")
            for warning in warnings:
                lines.append(f"⚠️ {warning.get('message', '')}")
        return "\n".join(lines).rstrip()


def _recommendation(category: str, icon: str, advice: str, priority: str) -> Dict[str, str]:
    return {"category": category, "icon": icon, "advice": advice, "priority": priority}
