"""
콘솔 전사 출력 모듈입니다.

역할:
- UtteranceAggregator 스냅샷을 받아 확정 항목을 한 줄씩 출력
- interim(중간) 결과를 같은 줄에 덮어쓰며 표시
- 세션 상태/에러 변화를 알림 줄로 표시

사용 예시:
    >>> renderer = ConsoleRenderer(config)
    >>> aggregator.subscribe(renderer.render)
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from live_transcribe.config.schema import AppConfig, language_label
from live_transcribe.phonetic.annotator import render_inline
from live_transcribe.transcript import TranscriptEntry, TranscriptSnapshot

logger = logging.getLogger(__name__)


class ConsoleRenderer:
    """
    스냅샷을 터미널에 출력하는 표시 계층입니다.

    확정 항목은 "[HH:MM:SS] 世界（shì jiè）" 형식으로 출력하고,
    interim 결과는 "… " 접두어와 함께 캐리지 리턴으로 같은 줄을 덮어씁니다.
    """

    def __init__(self, config: AppConfig, stream: Optional[TextIO] = None) -> None:
        self._stream = stream or sys.stdout
        self._show_interim = config.presentation.show_interim
        self._show_timestamps = config.presentation.show_timestamps
        self._open_bracket = config.annotation.open_bracket
        self._close_bracket = config.annotation.close_bracket

        self._last_status: Optional[str] = None
        self._last_error: Optional[str] = None
        self._last_locale: Optional[str] = None
        self._printed_entries: int = 0
        self._interim_width: int = 0

    def render(self, snapshot: TranscriptSnapshot) -> None:
        """스냅샷 하나를 출력에 반영합니다."""
        if snapshot.status != self._last_status or snapshot.locale != self._last_locale:
            self._clear_interim()
            self._write_line(f"● {snapshot.status} [{language_label(snapshot.locale)}]")
            self._last_status = snapshot.status
            self._last_locale = snapshot.locale

        if snapshot.last_error and snapshot.last_error != self._last_error:
            self._clear_interim()
            self._write_line(f"! 인식 오류: {snapshot.last_error}")
        self._last_error = snapshot.last_error

        # reset 이후에는 출력 카운터를 되돌림
        if len(snapshot.entries) < self._printed_entries:
            self._printed_entries = 0

        for entry in snapshot.entries[self._printed_entries:]:
            self._clear_interim()
            self._write_line(self.format_entry(entry))
        self._printed_entries = len(snapshot.entries)

        if self._show_interim:
            self._write_interim(snapshot)

    def format_entry(self, entry: TranscriptEntry) -> str:
        """확정 항목 한 줄을 만듭니다."""
        text = render_inline(entry.text, self._open_bracket, self._close_bracket)
        if self._show_timestamps:
            return f"[{entry.committed_at.strftime('%H:%M:%S')}] {text}"
        return text

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _write_interim(self, snapshot: TranscriptSnapshot) -> None:
        text = render_inline(snapshot.current, self._open_bracket, self._close_bracket)
        if not text:
            self._clear_interim()
            return
        line = f"… {text}"
        padding = " " * max(0, self._interim_width - len(line))
        self._stream.write(f"\r{line}{padding}")
        self._stream.flush()
        self._interim_width = len(line)

    def _clear_interim(self) -> None:
        if self._interim_width:
            self._stream.write("\r" + " " * self._interim_width + "\r")
            self._interim_width = 0

    def _write_line(self, line: str) -> None:
        self._stream.write(line + "\n")
        self._stream.flush()
