# time_resolver.py
"""Resolution of relative and multilingual time expressions into absolute windows."""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, Pattern, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from smart_weather.core.models import CurrentTimeContext, TimeScope, TimeScopeType
from smart_weather.core.settings import settings

from .utils import QueryPatternUtils

logger = logging.getLogger(__name__)

Clock = Callable[[ZoneInfo], datetime]

ABSOLUTE_CONFIDENCE = 0.95
COUNTED_CONFIDENCE = 0.85
KNOWN_PHRASE_CONFIDENCE = 0.8
VAGUE_CONFIDENCE = 0.6
NO_MATCH_CONFIDENCE = 0.3
EMPTY_CONFIDENCE = 0.2

MAX_DAY_COUNT = 366

_CJK_NUMERALS = {
    "一": 1, "二": 2, "兩": 2, "两": 2, "三": 3, "四": 4,
    "五": 5, "六": 6, "七": 7, "八": 8, "九": 9,
}
_COUNT = r"(\d{1,4}|[一二兩两三四五六七八九十]{1,3})"


_en = QueryPatternUtils.word


def system_clock(tz: ZoneInfo) -> datetime:
    return datetime.now(tz)


def parse_count(text: str) -> Optional[int]:
    """Parse an Arabic or simple Chinese numeral ("3", "三", "十二", "二十")"""
    if not text:
        return None
    if text.isdigit():
        return int(text)
    if "十" in text:
        tens, _, units = text.partition("十")
        tens_value = _CJK_NUMERALS.get(tens, 1) if tens else 1
        units_value = _CJK_NUMERALS.get(units, 0) if units else 0
        if (tens and tens not in _CJK_NUMERALS) or (units and units not in _CJK_NUMERALS):
            return None
        return tens_value * 10 + units_value
    if len(text) == 1:
        return _CJK_NUMERALS.get(text)
    return None


@dataclass(frozen=True)
class _Rule:
    pattern: Pattern[str]
    kind: str
    label: str
    offset: int = 0


@dataclass(frozen=True)
class _Candidate:
    start: int
    end: int
    rule: _Rule
    match: "re.Match[str]"

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def text(self) -> str:
        return self.match.group(0)


def _rule(pattern: str, kind: str, label: str, offset: int = 0) -> _Rule:
    return _Rule(re.compile(pattern), kind, label, offset)


# Anchored expressions, searched against the lower-cased input
ANCHOR_RULES: Tuple[_Rule, ...] = (
    # Absolute dates
    _rule(r"(?<!\d)(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?!\d)", "absolute_ymd", "date"),
    _rule(r"(?<!\d)(\d{1,2})月(\d{1,2})[日號号]?", "absolute_md", "date"),
    # English
    _rule(_en(r"(?:right now|now|currently|current|at the moment)"), "now", "now"),
    _rule(_en("today"), "day", "today", 0),
    _rule(_en("tonight"), "tonight", "tonight"),
    _rule(_en("tomorrow"), "day", "tomorrow", 1),
    _rule(_en("(?:the )?day after tomorrow"), "day", "day after tomorrow", 2),
    _rule(_en("yesterday"), "day", "yesterday", -1),
    _rule(_en("(?:the )?day before yesterday"), "day", "day before yesterday", -2),
    _rule(_en("this week"), "week", "this week", 0),
    _rule(_en("next week"), "week", "next week", 1),
    _rule(_en("last week"), "week", "last week", -1),
    _rule(_en("(?:this )?weekend"), "weekend", "this weekend"),
    _rule(_en(r"(?:the )?(?:next|coming) (\d{1,4}) days"), "ahead", "next {n} days"),
    _rule(_en(r"in (\d{1,4}) days"), "day_count", "in {n} days", 1),
    _rule(_en(r"(\d{1,4}) days ago"), "day_count", "{n} days ago", -1),
    _rule(_en(r"(?:the )?(?:last|past) (\d{1,4}) days"), "back", "last {n} days"),
    # Traditional and Simplified Chinese
    _rule(r"現在|现在|目前", "now", "now"),
    _rule(r"今天|今日", "day", "today", 0),
    _rule(r"今晚|今夜", "tonight", "tonight"),
    _rule(r"明天", "day", "tomorrow", 1),
    _rule(r"後天|后天", "day", "day after tomorrow", 2),
    _rule(r"大後天|大后天", "day", "in 3 days", 3),
    _rule(r"昨天", "day", "yesterday", -1),
    _rule(r"前天", "day", "day before yesterday", -2),
    _rule(r"這週|这周|這周|本週|本周|這個星期|这个星期", "week", "this week", 0),
    _rule(r"下週|下周|下禮拜|下礼拜|下星期", "week", "next week", 1),
    _rule(r"上週|上周|上禮拜|上礼拜|上星期", "week", "last week", -1),
    _rule(r"週末|周末", "weekend", "this weekend"),
    _rule(_COUNT + r"天[後后]", "day_count", "in {n} days", 1),
    _rule(_COUNT + r"天前", "day_count", "{n} days ago", -1),
    _rule(r"未[來来]" + _COUNT + r"天", "ahead", "next {n} days"),
    _rule(r"(?:過去|过去)" + _COUNT + r"天", "back", "last {n} days"),
    # Japanese
    _rule(r"きょう", "day", "today", 0),
    _rule(r"明日|あした|あす", "day", "tomorrow", 1),
    _rule(r"明後日|あさって", "day", "day after tomorrow", 2),
    _rule(r"昨日|きのう", "day", "yesterday", -1),
    _rule(r"一昨日|おととい", "day", "day before yesterday", -2),
    _rule(r"今週", "week", "this week", 0),
    _rule(r"来週|來週", "week", "next week", 1),
    _rule(r"先週", "week", "last week", -1),
    _rule(r"(\d{1,4})日後", "day_count", "in {n} days", 1),
    _rule(r"(\d{1,4})日前", "day_count", "{n} days ago", -1),
)

VAGUE_FUTURE = re.compile(
    _en(r"(?:will it|forecast|going to|upcoming|later|next few days|soon)")
    + r"|預報|预报|預測|预测|會不會|会不会|將會|将会|予報|予想|でしょう"
)
VAGUE_PAST = re.compile(
    _en(r"(?:was it|were|did it|last month|last year|historical|history|previously)")
    + r"|歷史|历史|過去|过去|以前|去年|上個月|上个月|でした"
)
HOURLY_MARKERS = re.compile(
    _en(r"(?:hourly|hour by hour|next few hours|hours?)")
    + r"|小時|小时|逐時|逐时|時間ごと|毎時"
)


class TimeResolver:
    """Turns free-text time expressions into a ``TimeScope``.

    The resolver is deterministic for a given clock, performs no I/O and
    never raises: anything it cannot understand yields a low-confidence
    ``current`` scope without bounds.
    """

    def __init__(self, default_timezone: Optional[str] = None, clock: Optional[Clock] = None):
        self.default_timezone = default_timezone or settings.DEFAULT_TIMEZONE
        self.clock = clock or system_clock

    def _zone(self, timezone: Optional[str]) -> ZoneInfo:
        name = timezone or self.default_timezone
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone '{name}', using {self.default_timezone}")
            return ZoneInfo(self.default_timezone)

    def now(self, timezone: Optional[str] = None) -> datetime:
        return self.clock(self._zone(timezone))

    def resolve(self, expression: Optional[str], timezone: Optional[str] = None) -> TimeScope:
        scope, _ = self.resolve_with_notes(expression, timezone)
        return scope

    def resolve_with_notes(
        self, expression: Optional[str], timezone: Optional[str] = None
    ) -> Tuple[TimeScope, List[str]]:
        """Resolve an expression and report the alternatives that were discarded"""
        notes: List[str] = []
        try:
            return self._resolve(expression, timezone, notes), notes
        except Exception as e:
            logger.error(f"Time resolution failed for {expression!r}: {str(e)}")
            notes.append(f"resolution error: {type(e).__name__}")
            return TimeScope(type=TimeScopeType.CURRENT, confidence=NO_MATCH_CONFIDENCE), notes

    def _resolve(
        self, expression: Optional[str], timezone: Optional[str], notes: List[str]
    ) -> TimeScope:
        text = (expression or "").strip().lower()
        if not text:
            return TimeScope(type=TimeScopeType.CURRENT, confidence=EMPTY_CONFIDENCE)

        now = self.now(timezone)
        hourly = bool(HOURLY_MARKERS.search(text))

        winner = self._select(self._collect(text, now, notes), notes)
        if winner is not None:
            scope = self._scope_for(winner, now)
            if scope is not None:
                return self._with_hourly(scope, hourly)

        if VAGUE_PAST.search(text):
            return TimeScope(type=TimeScopeType.HISTORICAL, confidence=VAGUE_CONFIDENCE)
        if VAGUE_FUTURE.search(text) or hourly:
            scope = TimeScope(type=TimeScopeType.FORECAST, confidence=VAGUE_CONFIDENCE)
            return self._with_hourly(scope, hourly)

        return TimeScope(type=TimeScopeType.CURRENT, confidence=NO_MATCH_CONFIDENCE)

    def _collect(self, text: str, now: datetime, notes: List[str]) -> List[_Candidate]:
        candidates = []
        for rule in ANCHOR_RULES:
            for match in rule.pattern.finditer(text):
                candidate = _Candidate(match.start(), match.end(), rule, match)
                if self._scope_for(candidate, now) is None:
                    notes.append(f"ignored '{candidate.text}': not a valid {rule.kind} expression")
                    continue
                candidates.append(candidate)
        return candidates

    def _select(self, candidates: List[_Candidate], notes: List[str]) -> Optional[_Candidate]:
        """Pick the earliest match after dropping shorter overlapping ones"""
        kept: List[_Candidate] = []
        for candidate in sorted(candidates, key=lambda c: (-c.length, c.start)):
            if any(candidate.start < other.end and other.start < candidate.end for other in kept):
                notes.append(f"discarded '{candidate.text}': overlaps a longer expression")
                continue
            kept.append(candidate)

        if not kept:
            return None

        kept.sort(key=lambda c: c.start)
        winner = kept[0]
        for other in kept[1:]:
            notes.append(f"discarded '{other.text}': '{winner.text}' appears first")
        for note in notes:
            logger.debug(f"Time resolution note: {note}")
        return winner

    def _scope_for(self, candidate: _Candidate, now: datetime) -> Optional[TimeScope]:
        rule = candidate.rule
        match = candidate.match
        today = now.date()
        tz = now.tzinfo

        if rule.kind == "now":
            return TimeScope(
                type=TimeScopeType.CURRENT,
                period=rule.label,
                start=now,
                end=now,
                confidence=KNOWN_PHRASE_CONFIDENCE,
            )

        if rule.kind == "day":
            return self._day_window(today + timedelta(days=rule.offset), today, rule.label, tz,
                                    KNOWN_PHRASE_CONFIDENCE)

        if rule.kind == "tonight":
            start = datetime.combine(today, time(18, 0), tzinfo=tz)
            scope_type = TimeScopeType.FORECAST if now < start else TimeScopeType.CURRENT
            return TimeScope(
                type=scope_type,
                period=rule.label,
                start=start,
                end=_end_of_day(today, tz),
                confidence=KNOWN_PHRASE_CONFIDENCE,
            )

        if rule.kind == "week":
            monday = today - timedelta(days=today.weekday()) + timedelta(weeks=rule.offset)
            return TimeScope(
                type=_type_for_offset(rule.offset),
                period=rule.label,
                start=_start_of_day(monday, tz),
                end=_end_of_day(monday + timedelta(days=6), tz),
                confidence=KNOWN_PHRASE_CONFIDENCE,
            )

        if rule.kind == "weekend":
            if today.weekday() >= 5:
                saturday = today - timedelta(days=today.weekday() - 5)
                scope_type = TimeScopeType.CURRENT
            else:
                saturday = today + timedelta(days=5 - today.weekday())
                scope_type = TimeScopeType.FORECAST
            return TimeScope(
                type=scope_type,
                period=rule.label,
                start=_start_of_day(saturday, tz),
                end=_end_of_day(saturday + timedelta(days=1), tz),
                confidence=KNOWN_PHRASE_CONFIDENCE,
            )

        if rule.kind in ("ahead", "back", "day_count"):
            count = parse_count(match.group(1))
            if count is None or not 0 < count <= MAX_DAY_COUNT:
                return None
            label = rule.label.format(n=count)
            if rule.kind == "day_count":
                return self._day_window(
                    today + timedelta(days=count * rule.offset), today, label, tz,
                    COUNTED_CONFIDENCE,
                )
            if rule.kind == "ahead":
                first = today + timedelta(days=1)
                last = today + timedelta(days=count)
                scope_type = TimeScopeType.FORECAST
            else:
                first = today - timedelta(days=count)
                last = today - timedelta(days=1)
                scope_type = TimeScopeType.HISTORICAL
            return TimeScope(
                type=scope_type,
                period=label,
                start=_start_of_day(first, tz),
                end=_end_of_day(last, tz),
                confidence=COUNTED_CONFIDENCE,
            )

        if rule.kind in ("absolute_ymd", "absolute_md"):
            try:
                if rule.kind == "absolute_ymd":
                    year, month, day = (int(g) for g in match.groups())
                else:
                    year = today.year
                    month, day = (int(g) for g in match.groups())
                target = date(year, month, day)
            except ValueError:
                return None
            return self._day_window(target, today, target.isoformat(), tz, ABSOLUTE_CONFIDENCE)

        return None

    @staticmethod
    def _day_window(target: date, today: date, label: str, tz, confidence: float) -> TimeScope:
        return TimeScope(
            type=_type_for_offset((target - today).days),
            period=label,
            start=_start_of_day(target, tz),
            end=_end_of_day(target, tz),
            confidence=confidence,
        )

    @staticmethod
    def _with_hourly(scope: TimeScope, hourly: bool) -> TimeScope:
        if not hourly:
            return scope
        period = f"{scope.period}, hourly" if scope.period else "hourly"
        return TimeScope(
            type=scope.type,
            period=period,
            start=scope.start,
            end=scope.end,
            confidence=scope.confidence,
        )

    def current_context(self, timezone: Optional[str] = None) -> CurrentTimeContext:
        """Snapshot of the current time used to ground AI parsing"""
        zone = self._zone(timezone)
        now = self.clock(zone)
        return CurrentTimeContext(
            now=now,
            timezone=zone.key,
            description=now.strftime("%A, %Y-%m-%d %H:%M"),
        )


def _type_for_offset(offset_days: int) -> TimeScopeType:
    if offset_days > 0:
        return TimeScopeType.FORECAST
    if offset_days < 0:
        return TimeScopeType.HISTORICAL
    return TimeScopeType.CURRENT


def _start_of_day(day: date, tz) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _end_of_day(day: date, tz) -> datetime:
    return datetime.combine(day, time(23, 59, 59), tzinfo=tz)
