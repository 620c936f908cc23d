"""
음성 인식 모듈 패키지

공통 데이터 타입:
- RecognitionAlternative: 하나의 인식 후보 문장
- RecognitionResult: 세션 내 한 위치의 인식 결과 (interim/final)
- RecognitionEvent: 엔진이 한 번에 전달하는 결과 묶음
- SessionHandle: 열린 엔진 세션 식별자
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

_session_counter = itertools.count(1)


@dataclass(frozen=True)
class RecognitionAlternative:
    """인식 후보 문장입니다. 첫 번째 후보가 가장 유력한 결과입니다."""
    transcript: str
    confidence: float = 1.0


@dataclass(frozen=True)
class RecognitionResult:
    """
    세션 내 한 위치(result index)의 인식 결과입니다.

    필드:
        alternatives: 인식 후보 목록 (가장 유력한 후보가 맨 앞)
        is_final: True이면 엔진이 더 이상 수정하지 않는 확정 결과
    """
    alternatives: tuple[RecognitionAlternative, ...]
    is_final: bool = False

    @classmethod
    def of(cls, text: str, is_final: bool = False, confidence: float = 1.0) -> "RecognitionResult":
        """후보가 하나뿐인 결과를 생성합니다."""
        return cls(alternatives=(RecognitionAlternative(text, confidence),), is_final=is_final)

    @property
    def text(self) -> str:
        """가장 유력한 후보의 텍스트입니다. 후보가 없으면 빈 문자열입니다."""
        if not self.alternatives:
            return ""
        return self.alternatives[0].transcript


@dataclass(frozen=True)
class RecognitionEvent:
    """
    엔진이 한 번에 전달하는 인식 결과 묶음입니다.

    results[i]는 세션 내 i번째 결과이며, result_index는 이번 이벤트가
    갱신하는 첫 번째 결과 위치입니다. result_index보다 앞선 결과는 이미
    전달된 것으로 간주되어 다시 처리하지 않습니다.

    필드:
        result_index: 이번 이벤트가 갱신하는 첫 결과 위치
        results: 세션 순서대로 정렬된 결과 목록
    """
    result_index: int
    results: tuple[RecognitionResult, ...] = ()


@dataclass(frozen=True)
class SessionHandle:
    """
    열린 엔진 세션의 식별자입니다.

    엔진 콜백은 항상 핸들을 함께 전달하며, 집계기는 현재 세션이 아닌
    핸들의 콜백을 무시합니다.
    """
    locale: str
    session_id: int = field(default_factory=lambda: next(_session_counter))
