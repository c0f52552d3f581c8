# classifier.py
"""Intent classification functionality for the rule-based parser."""

import logging
import re
from typing import Dict, List, Optional

from smart_weather.core.models import (
    INTENT_SPECIFICITY,
    IntentType,
    TimeScope,
    TimeScopeType,
)

from .types import IntentClassification
from .utils import QueryPatternUtils

logger = logging.getLogger(__name__)

_w = QueryPatternUtils.word

SECONDARY_THRESHOLD = 0.3
MAX_CONFIDENCE = 0.95
WITH_LOCATION_DEFAULT = 0.35
WITHOUT_LOCATION_DEFAULT = 0.2
NOISE_CONFIDENCE = 0.05

WEATHER_WORDS = re.compile(
    _w(r"(?:weather|temperature|rain|snow|forecast|humidity|wind)")
    + r"|天氣|天气|天気|氣溫|气温|気温|下雨|預報|预报|予報"
)


class IntentClassifier:
    """Classifies queries into weather intents based on weighted patterns"""

    def __init__(self):
        self.classification_patterns = self._initialize_patterns()

    def _initialize_patterns(self) -> Dict[IntentType, List[Dict]]:
        """Initialize regex patterns and keywords for intent classification"""
        return {
            IntentType.WEATHER_ADVICE: [
                {
                    "pattern": _w(
                        r"(?:should i|do i need|need to bring|bring an?|wear|what to wear|umbrella"
                        r"|jacket|coat|sunscreen|advice|recommend\w*|suggest\w*|safe to|good day for)"
                    )
                    + r"|會下雨嗎|下雨嗎|会下雨吗|下雨吗|帶傘|带伞|雨傘|雨伞|要不要|應該|应该|建議|建议"
                    r"|適合|适合|穿什麼|穿什么|持って|着る|べき|おすすめ|大丈夫",
                    "weight": 0.9,
                    "keywords": ["umbrella", "jacket", "sunscreen", "outdoor", "hiking", "picnic", "run"],
                },
                {
                    "pattern": _w(r"(?:will it rain|going to rain|is it going to)")
                    + r"|會下雨|会下雨|雨が降|降りますか",
                    "weight": 0.9,
                    "keywords": [],
                },
            ],
            IntentType.HISTORICAL_WEATHER: [
                {
                    "pattern": _w(
                        r"(?:was it|were|did it|historical|history|last year|last month|record|previous|ago)"
                    )
                    + r"|歷史|历史|過去|过去|以前|去年|上個月|上个月|當時|当时|でした|だった",
                    "weight": 0.8,
                    "keywords": ["yesterday", "last week", "average", "compare"],
                },
            ],
            IntentType.WEATHER_FORECAST: [
                {
                    "pattern": _w(r"(?:forecast|predict\w*|outlook|upcoming|next few days|coming days|later)")
                    + r"|預報|预报|予報|預測|预测|未來|未来|これから",
                    "weight": 0.8,
                    "keywords": ["tomorrow", "next week", "weekend", "hourly", "days"],
                },
            ],
            IntentType.CURRENT_WEATHER: [
                {
                    "pattern": _w(r"(?:now|right now|current|currently|at the moment)")
                    + r"|現在|现在|目前|此刻|いま|今の",
                    "weight": 0.8,
                    "keywords": ["outside", "today"],
                },
                {
                    "pattern": _w(r"(?:weather|temperature|temp|how hot|how cold|conditions)")
                    + r"|天氣|天气|天気|氣溫|气温|気温|溫度|温度",
                    "weight": 0.4,
                    "keywords": ["today"],
                },
            ],
            IntentType.LOCATION_SEARCH: [
                {
                    "pattern": _w(
                        r"(?:where is|where's|find|locate|location of|coordinates|address|which city|which country)"
                    )
                    + r"|在哪|哪裡|哪里|位置|地址|座標|坐标|どこ|場所",
                    "weight": 0.8,
                    "keywords": ["city", "place", "map"],
                },
            ],
        }

    def classify(
        self,
        query: str,
        time_scope: Optional[TimeScope] = None,
        has_location: bool = False,
    ) -> IntentClassification:
        """Classify a query into a primary intent with optional secondary intents"""
        query_lower = query.lower()
        scores: Dict[IntentType, float] = {intent: 0.0 for intent in IntentType}

        if QueryPatternUtils.is_symbol_noise(query):
            return IntentClassification(
                primary=IntentType.CURRENT_WEATHER,
                confidence=NOISE_CONFIDENCE,
                secondary=(),
                scores=scores,
                reasoning="No recognisable words in query",
            )

        # Pattern-based classification
        for intent, patterns in self.classification_patterns.items():
            for pattern_info in patterns:
                if re.search(pattern_info["pattern"], query_lower):
                    scores[intent] += pattern_info["weight"]

                    # Keyword bonus
                    keyword_matches = sum(
                        1 for keyword in pattern_info["keywords"] if keyword in query_lower
                    )
                    scores[intent] += keyword_matches * 0.1

        # Apply special rules
        self._apply_special_rules(query_lower, scores, time_scope)

        scores = {intent: round(score, 3) for intent, score in scores.items()}
        ranked = sorted(
            scores.items(), key=lambda item: (-item[1], INTENT_SPECIFICITY.index(item[0]))
        )
        best_intent, best_score = ranked[0]

        if best_score < SECONDARY_THRESHOLD:
            confidence = WITH_LOCATION_DEFAULT if has_location else WITHOUT_LOCATION_DEFAULT
            return IntentClassification(
                primary=IntentType.CURRENT_WEATHER,
                confidence=confidence,
                secondary=(),
                scores=scores,
                reasoning="No intent keywords found; assuming current weather",
            )

        secondary = tuple(
            intent
            for intent, score in ranked[1:]
            if score >= SECONDARY_THRESHOLD
        )

        return IntentClassification(
            primary=best_intent,
            confidence=min(best_score, MAX_CONFIDENCE),
            secondary=secondary,
            scores=scores,
            reasoning=self._generate_reasoning(best_intent, ranked),
        )

    def _apply_special_rules(
        self,
        query_lower: str,
        scores: Dict[IntentType, float],
        time_scope: Optional[TimeScope],
    ) -> None:
        """Apply special classification rules"""

        # The resolved time scope is strong evidence for forecast or history
        if time_scope is not None:
            if time_scope.type == TimeScopeType.FORECAST:
                scores[IntentType.WEATHER_FORECAST] += 0.6
            elif time_scope.type == TimeScopeType.HISTORICAL:
                scores[IntentType.HISTORICAL_WEATHER] += 0.6
            elif time_scope.is_anchored:
                scores[IntentType.CURRENT_WEATHER] += 0.3

        # "Find the weather in X" is a weather request, not a place lookup
        if scores[IntentType.LOCATION_SEARCH] > 0 and WEATHER_WORDS.search(query_lower):
            scores[IntentType.LOCATION_SEARCH] = max(
                0.0, scores[IntentType.LOCATION_SEARCH] - 0.5
            )

    def _generate_reasoning(self, best_intent: IntentType, ranked) -> str:
        """Generate reasoning for the classification decision"""
        reasons = []

        if best_intent == IntentType.WEATHER_ADVICE:
            reasons.append("Asks for a recommendation or a yes/no weather outcome")
        elif best_intent == IntentType.HISTORICAL_WEATHER:
            reasons.append("Refers to past weather")
        elif best_intent == IntentType.WEATHER_FORECAST:
            reasons.append("Refers to future weather")
        elif best_intent == IntentType.LOCATION_SEARCH:
            reasons.append("Asks where a place is")
        else:
            reasons.append("Asks about present conditions")

        # Add confidence info
        if len(ranked) > 1 and ranked[0][1] - ranked[1][1] < 0.2 and ranked[1][1] > 0:
            reasons.append(
                f"Close decision between {ranked[0][0].value} and {ranked[1][0].value}"
            )

        return "; ".join(reasons)
