"""
전사 모듈 패키지

공통 데이터 타입:
- TranscriptEntry: 확정된 전사 항목 (생성 후 불변)
- TranscriptState: 확정 로그 + 현재 발화 버퍼 + 결과 위치 하한
- TranscriptSnapshot: 표시 계층에 전달하는 읽기 전용 스냅샷
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from live_transcribe.phonetic import AnnotatedSpan

SessionStatus = Literal["idle", "recording", "switching"]


@dataclass(frozen=True)
class TranscriptEntry:
    """
    확정된 전사 항목입니다. 확정 시점에 한 번 생성되며 수정되지 않습니다.

    필드:
        entry_id: 확정 시 부여되는 고유 식별자
        text: 병음 주석이 붙은 확정 텍스트
        source_text: 주석 전 원문
        committed_at_ns: 확정 시각 (nanoseconds, time.time_ns() 기준)
    """
    entry_id: str
    text: AnnotatedSpan
    source_text: str
    committed_at_ns: int

    @property
    def committed_at(self) -> datetime:
        """확정 시각을 로컬 시간대 datetime으로 반환합니다."""
        return datetime.fromtimestamp(self.committed_at_ns / 1_000_000_000)


@dataclass(frozen=True)
class TranscriptState:
    """
    집계기 상태입니다. process_event()에 전달되고 새 상태로 반환됩니다.

    필드:
        entries: 확정 순서대로 정렬된 항목 (추가만 가능)
        current: 현재 발화(interim)의 주석 결과
        current_text: 현재 발화 원문
        low_water_mark: 이 위치보다 앞선 결과는 이미 확정되어 다시 처리하지 않음
    """
    entries: tuple[TranscriptEntry, ...] = ()
    current: AnnotatedSpan = ()
    current_text: str = ""
    low_water_mark: int = 0


@dataclass(frozen=True)
class TranscriptSnapshot:
    """
    매 이벤트 처리 후 표시 계층에 전달되는 읽기 전용 스냅샷입니다.

    필드:
        entries: 확정 항목 로그
        current: 현재 발화 주석 결과
        current_text: 현재 발화 원문
        status: 세션 상태 ("idle" | "recording" | "switching")
        locale: 현재 선택된 로케일
        last_error: 마지막으로 보고된 엔진 에러 코드 (없으면 None)
        new_entry: 이번 갱신에서 확정된 항목 (없으면 None)
    """
    entries: tuple[TranscriptEntry, ...]
    current: AnnotatedSpan
    current_text: str
    status: SessionStatus
    locale: str
    last_error: Optional[str] = None
    new_entry: Optional[TranscriptEntry] = None
