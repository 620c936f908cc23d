"""
병음 주석 모듈 패키지

공통 데이터 타입:
- Segment: 주석 결과의 한 구간 (plain | annotated)
- AnnotatedSpan: 원문을 빈틈없이 나눈 Segment 튜플
"""

from dataclasses import dataclass
from typing import Literal

PLAIN = "plain"
ANNOTATED = "annotated"


@dataclass(frozen=True)
class Segment:
    """
    주석 결과의 한 구간입니다.

    필드:
        kind: "plain"(한자가 아닌 구간) | "annotated"(한자 구간)
        text: 원문 구간 텍스트
        readings: annotated 구간의 글자별 병음 (text의 코드 포인트 수와 같음)
    """
    kind: Literal["plain", "annotated"]
    text: str
    readings: tuple[str, ...] = ()

    @property
    def is_annotated(self) -> bool:
        return self.kind == ANNOTATED


AnnotatedSpan = tuple[Segment, ...]
