# extractor.py
"""Location, metric and preference extraction for rule-based parsing."""

import logging
import re
from typing import List, Optional, Set, Tuple

from smart_weather.core.models import (
    DEFAULT_METRICS,
    Coordinates,
    DetailLevel,
    LocationInfo,
    TemperatureUnit,
    UserPreferences,
    WeatherMetric,
)
from smart_weather.core.settings import settings

from .location_config import LocationConfigLoader, describe_candidates, get_location_config
from .types import ContextHints
from .utils import HAN, KANA, QueryPatternUtils

logger = logging.getLogger(__name__)

_w = QueryPatternUtils.word

DICTIONARY_CONFIDENCE = 0.9
AMBIGUOUS_CONFIDENCE = 0.6
COORDINATES_CONFIDENCE = 0.9
PREPOSITION_CONFIDENCE = 0.7
CAPITALISED_CONFIDENCE = 0.5
CJK_CONFIDENCE = 0.6
CONTEXT_CONFIDENCE = 0.6
NO_LOCATION_CONFIDENCE = 0.1

COORDINATE_PATTERN = re.compile(r"(?<![\d.])(-?\d{1,2}\.\d+)\s*,\s*(-?\d{1,3}\.\d+)(?![\d.])")
CAPITALISED_WORD = r"[A-Z][A-Za-z'.\-]*"
PREPOSITION_PATTERN = re.compile(
    rf"(?<![A-Za-z])(?:[Ii]n|[Aa]t|[Ff]or|[Nn]ear)\s+({CAPITALISED_WORD}(?:\s+{CAPITALISED_WORD})*)"
)
CAPITALISED_RUN = re.compile(rf"(?<![A-Za-z]){CAPITALISED_WORD}(?:\s+{CAPITALISED_WORD})*")
CJK_RUN = re.compile(f"[{HAN}{KANA}]{{2,10}}")

# Time words, weather words and particles removed before looking for CJK place names
CJK_NON_LOCATION = re.compile(
    r"\d+\s*(?:天[後后前]|日[後前])|未[來来]\d+天|過去\d+天"
    r"|大後天|大后天|現在|现在|目前|今天|今日|今晚|今夜|明天|後天|后天|昨天|前天"
    r"|這週|这周|這周|本週|本周|下週|下周|上週|上周|下禮拜|下礼拜|上禮拜|上礼拜|週末|周末"
    r"|明後日|明日|昨日|一昨日|今週|来週|來週|先週|きょう|あした|あさって|きのう|おととい"
    r"|天氣|天气|天気|氣象|气象|氣溫|气温|気温|溫度|温度|濕度|湿度|預報|预报|予報|預測|预测"
    r"|紫外線|紫外线|空氣品質|空气质量|能見度|能见度|體感|体感|降雨|下雨|下雪|颱風|台风|台風"
    r"|會不會|会不会|怎麼樣|怎么样|如何|需要|應該|应该|可以|是否|會|会|嗎|吗|呢|的|在|哪裡|哪里|位置|地址"
    r"|帶傘|带伞|雨傘|雨伞|外套|防曬|防晒|出門|出门|戶外|户外|活動|活动|適合|适合"
    r"|ですか|でしょうか|でしょう|ですね|です|ます|どう|どこ|の|は|が|を|に|で|か|へ|も|と|傘|雨|風|风|雪|晴|熱|热|冷|暑い|寒い"
)

METRIC_PATTERNS: List[Tuple[re.Pattern, WeatherMetric]] = [
    (re.compile(_w(r"(?:temperature|temp|hot|cold|warm|degrees?|jacket|coat)") + r"|溫度|温度|氣溫|气温|気温|熱|热|冷|暑い|寒い"), WeatherMetric.TEMPERATURE),
    (re.compile(_w(r"(?:humidity|humid|dry|muggy)") + r"|濕度|湿度|潮濕|潮湿|乾燥|干燥"), WeatherMetric.HUMIDITY),
    (re.compile(_w(r"(?:rain|rainy|precipitation|shower|showers|drizzle|snow|umbrella)") + r"|下雨|降雨|降水|陣雨|阵雨|雨|雪|傘|伞"), WeatherMetric.PRECIPITATION),
    (re.compile(_w(r"(?:wind|windy|breeze|gust|gusts)") + r"|風|风|颱風|台风"), WeatherMetric.WIND),
    (re.compile(_w(r"(?:pressure|barometric)") + r"|氣壓|气压|気圧"), WeatherMetric.PRESSURE),
    (re.compile(_w(r"(?:visibility|fog|foggy|mist)") + r"|能見度|能见度|霧|雾"), WeatherMetric.VISIBILITY),
    (re.compile(_w(r"(?:uv|sunscreen|sunburn|radiation)") + r"|紫外線|紫外线|防曬|防晒|日焼け"), WeatherMetric.UV_INDEX),
    (re.compile(_w(r"(?:air quality|pollution|smog|aqi|pm2\.5)") + r"|空氣品質|空气质量|污染|霾"), WeatherMetric.AIR_QUALITY),
    (re.compile(_w(r"(?:condition|conditions|cloudy|clear|sunny|overcast)") + r"|狀況|状况|多雲|多云|晴|陰天|阴天|曇り"), WeatherMetric.CONDITIONS),
    (re.compile(_w(r"(?:feels like|apparent|real feel)") + r"|體感|体感"), WeatherMetric.FEELS_LIKE),
]

ACTIVITY_PATTERNS: List[Tuple[re.Pattern, Tuple[WeatherMetric, ...]]] = [
    (
        re.compile(_w(r"(?:surf|surfing|waves?|beach|ocean)") + r"|衝浪|冲浪|海浪|海邊|海边|海洋|浪高"),
        (WeatherMetric.WIND, WeatherMetric.PRECIPITATION, WeatherMetric.CONDITIONS, WeatherMetric.TEMPERATURE),
    ),
    (
        re.compile(_w(r"(?:hike|hiking|climb|climbing|mountain|trail|outdoors?)") + r"|戶外|户外|登山|健行|爬山|步道|ハイキング"),
        (WeatherMetric.UV_INDEX, WeatherMetric.VISIBILITY, WeatherMetric.TEMPERATURE, WeatherMetric.PRECIPITATION, WeatherMetric.WIND),
    ),
    (
        re.compile(_w(r"(?:wedding|ceremony|event|party|picnic)") + r"|婚禮|婚礼|儀式|活動|活动|派對|派对|野餐"),
        (WeatherMetric.PRECIPITATION, WeatherMetric.WIND, WeatherMetric.HUMIDITY, WeatherMetric.TEMPERATURE),
    ),
    (
        re.compile(_w(r"(?:sports?|run|running|jog|jogging|cycle|cycling|bike|tennis|golf)") + r"|運動|运动|跑步|慢跑|騎車|骑车|網球|网球|高爾夫|高尔夫"),
        (WeatherMetric.TEMPERATURE, WeatherMetric.HUMIDITY, WeatherMetric.WIND, WeatherMetric.UV_INDEX),
    ),
]

FAHRENHEIT_PATTERN = re.compile(r"°f|℉|fahrenheit|華氏|华氏|" + _w(r"degrees? f"))
CELSIUS_PATTERN = re.compile(r"°c|℃|celsius|攝氏|摄氏|" + _w(r"degrees? c"))
DETAIL_PATTERN = re.compile(_w(r"(?:detail|details|detailed|comprehensive|full|complete)") + r"|詳細|详细|完整|全面|詳しく")

# Characters that only occur in Simplified Chinese
SIMPLIFIED_ONLY = set("气预报东这们会么吗时伞风阴雾云现门间问题说请过还从对开关发经书长车马鸟鱼见让认买卖热冻阳温湿级")
# Kanji forms specific to Japanese
JAPANESE_ONLY = set("気予県駅円込")

CONTEXT_LOCATION = re.compile(r"(?:location|地點|地点)\s*[:：]\s*([^;,；，\n]+)", re.IGNORECASE)
CONTEXT_TIMEFRAME = re.compile(r"(?:timeframe|時間|时间)\s*[:：]\s*([^;,；，\n]+)", re.IGNORECASE)


def parse_context(context: Optional[str]) -> ContextHints:
    """Recover location, timeframe and preference hints from the context string"""
    if not context or not isinstance(context, str):
        return ContextHints()

    context_lower = context.lower()

    location_match = CONTEXT_LOCATION.search(context)
    timeframe_match = CONTEXT_TIMEFRAME.search(context)

    temperature_unit = None
    if "攝氏" in context_lower or "摄氏" in context_lower or "celsius" in context_lower:
        temperature_unit = TemperatureUnit.CELSIUS
    elif "華氏" in context_lower or "华氏" in context_lower or "fahrenheit" in context_lower:
        temperature_unit = TemperatureUnit.FAHRENHEIT

    language = None
    if "繁體中文" in context_lower or "traditional chinese" in context_lower:
        language = "zh-TW"
    elif "简体中文" in context_lower or "simplified chinese" in context_lower:
        language = "zh-CN"
    elif "中文" in context_lower or "chinese" in context_lower:
        language = "zh-TW"
    elif "日本語" in context_lower or "japanese" in context_lower:
        language = "ja"
    elif "english" in context_lower:
        language = "en"

    detail_level = None
    if "comprehensive" in context_lower:
        detail_level = DetailLevel.COMPREHENSIVE
    elif DETAIL_PATTERN.search(context_lower):
        detail_level = DetailLevel.DETAILED

    return ContextHints(
        location=location_match.group(1).strip() if location_match else None,
        timeframe=timeframe_match.group(1).strip() if timeframe_match else None,
        temperature_unit=temperature_unit,
        language=language,
        detail_level=detail_level,
    )


class LocationExtractor:
    """Extracts a location from a query using the known-place dictionary and text heuristics"""

    def __init__(self, location_config: Optional[LocationConfigLoader] = None):
        self.location_config = location_config or get_location_config()

    def extract(self, query: str, hints: Optional[ContextHints] = None) -> LocationInfo:
        hints = hints or ContextHints()

        location = (
            self._from_dictionary(query)
            or self._from_coordinates(query)
            or self._after_preposition(query)
            or self._capitalised_run(query)
            or self._cjk_run(query)
        )
        if location is not None:
            return location

        if hints.location:
            return self._from_context(hints.location)

        return LocationInfo(name=None, confidence=NO_LOCATION_CONFIDENCE)

    def _from_dictionary(self, query: str) -> Optional[LocationInfo]:
        matches = self.location_config.find_in_text(query)
        if not matches:
            return None

        first = matches[0]
        if first.is_ambiguous:
            logger.debug(f"Ambiguous place alias '{first.alias}': {len(first.places)} candidates")
            return LocationInfo(
                name=query[first.start:first.end],
                confidence=AMBIGUOUS_CONFIDENCE,
                suggestions=describe_candidates(first.places),
            )

        place = first.places[0]
        return LocationInfo(
            name=place.name,
            coordinates=place.coordinates,
            confidence=DICTIONARY_CONFIDENCE,
        )

    @staticmethod
    def _from_coordinates(query: str) -> Optional[LocationInfo]:
        match = COORDINATE_PATTERN.search(query)
        if not match:
            return None
        lat, lng = float(match.group(1)), float(match.group(2))
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return None
        return LocationInfo(coordinates=Coordinates(lat=lat, lng=lng), confidence=COORDINATES_CONFIDENCE)

    def _clean_run(self, run: str) -> Optional[str]:
        """Trim stop words from both ends of a capitalised run"""
        words = [word.strip(".'") for word in run.split()]
        while words and self.location_config.is_stop_word(words[0]):
            words.pop(0)
        while words and self.location_config.is_stop_word(words[-1]):
            words.pop()
        if not words:
            return None
        name = " ".join(words)
        return name if len(name) > 1 else None

    def _after_preposition(self, query: str) -> Optional[LocationInfo]:
        for match in PREPOSITION_PATTERN.finditer(query):
            name = self._clean_run(match.group(1))
            if name:
                return LocationInfo(name=name, confidence=PREPOSITION_CONFIDENCE)
        return None

    def _capitalised_run(self, query: str) -> Optional[LocationInfo]:
        for match in CAPITALISED_RUN.finditer(query):
            name = self._clean_run(match.group(0))
            if name:
                return LocationInfo(name=name, confidence=CAPITALISED_CONFIDENCE)
        return None

    @staticmethod
    def _cjk_run(query: str) -> Optional[LocationInfo]:
        remainder = CJK_NON_LOCATION.sub(" ", query)
        match = CJK_RUN.search(remainder)
        if not match:
            return None
        return LocationInfo(name=match.group(0), confidence=CJK_CONFIDENCE)

    def _from_context(self, name: str) -> LocationInfo:
        places = self.location_config.lookup(name)
        if len(places) == 1:
            return LocationInfo(
                name=places[0].name,
                coordinates=places[0].coordinates,
                confidence=CONTEXT_CONFIDENCE,
            )
        return LocationInfo(
            name=name,
            confidence=CONTEXT_CONFIDENCE,
            suggestions=describe_candidates(places) if len(places) > 1 else (),
        )


def extract_metrics(text: str) -> Set[WeatherMetric]:
    """Find the weather metrics a query asks about, including activity bundles"""
    text_lower = text.lower()
    metrics: Set[WeatherMetric] = set()

    for pattern, metric in METRIC_PATTERNS:
        if pattern.search(text_lower):
            metrics.add(metric)

    for pattern, bundle in ACTIVITY_PATTERNS:
        if pattern.search(text_lower):
            metrics.update(bundle)

    return metrics or set(DEFAULT_METRICS)


def detect_language(text: str, hints: Optional[ContextHints] = None) -> str:
    if QueryPatternUtils.has_kana(text) or any(char in JAPANESE_ONLY for char in text):
        return "ja"
    if QueryPatternUtils.has_han(text):
        if any(char in SIMPLIFIED_ONLY for char in text):
            return "zh-CN"
        return "zh-TW"
    if hints and hints.language:
        return hints.language
    return settings.DEFAULT_LANGUAGE


def extract_preferences(
    query: str,
    hints: Optional[ContextHints] = None,
    metric_count: int = 0,
    context: Optional[str] = None,
) -> UserPreferences:
    hints = hints or ContextHints()
    text_lower = f"{query} {context or ''}".lower()

    if FAHRENHEIT_PATTERN.search(text_lower):
        unit = TemperatureUnit.FAHRENHEIT
    elif CELSIUS_PATTERN.search(text_lower):
        unit = TemperatureUnit.CELSIUS
    else:
        unit = hints.temperature_unit or TemperatureUnit.CELSIUS

    if DETAIL_PATTERN.search(text_lower):
        detail = DetailLevel.COMPREHENSIVE if metric_count > 3 else DetailLevel.DETAILED
    else:
        detail = hints.detail_level or DetailLevel.BASIC

    return UserPreferences(
        language=detect_language(query, hints),
        temperature_unit=unit,
        detail_level=detail,
    )
