# utils.py
"""Utility functions for query routing and processing."""

import re

HAN = "一-鿿㐀-䶿"
KANA = "぀-ゟ゠-ヿ"

_KANA_RE = re.compile(f"[{KANA}]")
_HAN_RE = re.compile(f"[{HAN}]")
_WORD_CHAR_RE = re.compile(rf"[0-9A-Za-z{HAN}{KANA}À-ɏ]")


class QueryPatternUtils:
    """Utility class for query pattern matching and extraction"""

    @staticmethod
    def word(phrase: str) -> str:
        """Match an English phrase as whole words, even when it touches CJK text"""
        return rf"(?<![a-z]){phrase}(?![a-z])"

    @staticmethod
    def has_kana(text: str) -> bool:
        return bool(_KANA_RE.search(text))

    @staticmethod
    def has_han(text: str) -> bool:
        return bool(_HAN_RE.search(text))

    @staticmethod
    def is_symbol_noise(text: str) -> bool:
        """True when the text has no letters, digits or CJK characters at all"""
        return not _WORD_CHAR_RE.search(text)
