"""
한자 단일 글자 병음 조회 모듈입니다.

pypinyin으로 글자 하나의 대표 읽기를 조회합니다. 단어 단위 분절 없이
글자를 독립적으로 조회하며, 읽기가 없는 글자는 대체 문자열을 반환합니다.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable

from pypinyin import Style, lazy_pinyin

logger = logging.getLogger(__name__)

# 글자 하나 -> 읽기 문자열
ReadingLookup = Callable[[str], str]

_TONE_STYLES: dict[str, Style] = {
    "symbol": Style.TONE,
    "numeric": Style.TONE3,
    "none": Style.NORMAL,
}


@lru_cache(maxsize=8192)
def _lookup(character: str, style: Style) -> str:
    readings = lazy_pinyin(character, style=style, errors="ignore")
    return readings[0] if readings else ""


def reading_of(character: str) -> str:
    """글자의 성조 부호 표기 병음을 반환합니다. 읽기가 없으면 빈 문자열입니다."""
    return _lookup(character, Style.TONE)


def make_reading_lookup(tone_style: str = "symbol", missing_reading: str = "") -> ReadingLookup:
    """
    설정에 맞는 읽기 조회 함수를 생성합니다.

    파라미터:
        tone_style: "symbol" | "numeric" | "none"
        missing_reading: 읽기를 찾지 못한 글자에 사용할 문자열
    """
    style = _TONE_STYLES.get(tone_style)
    if style is None:
        raise ValueError(f"지원하지 않는 tone_style: {tone_style}")

    def lookup(character: str) -> str:
        reading = _lookup(character, style)
        if not reading:
            logger.debug(f"병음 없음: U+{ord(character):04X}")
            return missing_reading
        return reading

    return lookup
