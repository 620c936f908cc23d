"""
병음 주석기 모듈입니다.

역할:
- 텍스트를 한자 구간(U+4E00–U+9FFF)과 그 외 구간으로 나눔
- 한자 구간의 각 글자에 병음을 독립적으로 붙임
- 주석 결과를 원래 화면 형식("世界（shì jiè）")으로 렌더링

annotate()는 부작용이 없는 순수 함수이며 어떤 입력에도 실패하지 않습니다.

사용 예시:
    >>> annotate("Hello 世界!")
    (Segment(kind='plain', text='Hello ', readings=()),
     Segment(kind='annotated', text='世界', readings=('shì', 'jiè')),
     Segment(kind='plain', text='!', readings=()))
    >>> render_inline(annotate("Hello 世界!"))
    'Hello 世界（shì jiè）!'
"""

from __future__ import annotations

from itertools import groupby
from typing import Optional

from live_transcribe.phonetic import ANNOTATED, PLAIN, AnnotatedSpan, Segment
from live_transcribe.phonetic.lookup import ReadingLookup, reading_of

CJK_UNIFIED_FIRST = "\u4e00"
CJK_UNIFIED_LAST = "\u9fff"


def is_chinese(character: str) -> bool:
    """CJK 통합 한자 블록의 글자인지 여부를 반환합니다."""
    return CJK_UNIFIED_FIRST <= character <= CJK_UNIFIED_LAST


def annotate(text: str, lookup: Optional[ReadingLookup] = None) -> AnnotatedSpan:
    """
    텍스트를 plain/annotated 구간으로 나누고 한자 구간에 병음을 붙입니다.

    str은 코드 포인트 단위로 순회되므로 readings[i]는 text[i]에 대응합니다.
    groupby가 같은 종류의 연속 글자를 하나로 묶으므로 인접한 두 구간의
    종류는 항상 다릅니다.

    파라미터:
        text: 원문
        lookup: 글자 -> 병음 조회 함수 (기본: 성조 부호 표기)

    반환값:
        AnnotatedSpan: 원문을 순서대로 빈틈없이 나눈 구간 튜플 (빈 입력은 빈 튜플)
    """
    lookup = lookup or reading_of

    segments = []
    for chinese, run in groupby(text, key=is_chinese):
        run_text = "".join(run)
        if chinese:
            readings = tuple(lookup(character) for character in run_text)
            segments.append(Segment(ANNOTATED, run_text, readings))
        else:
            segments.append(Segment(PLAIN, run_text))
    return tuple(segments)


def source_text(span: AnnotatedSpan) -> str:
    """구간들을 이어 붙여 원문을 복원합니다."""
    return "".join(segment.text for segment in span)


def render_inline(
    span: AnnotatedSpan,
    open_bracket: str = "（",
    close_bracket: str = "）",
) -> str:
    """
    한자 구간 뒤에 괄호로 병음을 붙인 한 줄 문자열을 만듭니다.

    읽기가 빈 문자열인 글자는 병음 목록에서 생략됩니다.
    """
    parts = []
    for segment in span:
        parts.append(segment.text)
        if segment.is_annotated:
            readings = " ".join(reading for reading in segment.readings if reading)
            if readings:
                parts.append(f"{open_bracket}{readings}{close_bracket}")
    return "".join(parts)
