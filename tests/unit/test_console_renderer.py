"""
ConsoleRenderer 단위 테스트

검증 항목:
- 상태/로케일 변화 알림 줄
- 확정 항목 "[HH:MM:SS] 世界（shì jiè）" 형식 출력 (한 번만)
- interim 결과 덮어쓰기 및 show_interim=False
- 에러 알림 줄
- reset 이후 출력 카운터 초기화
"""

from __future__ import annotations

from datetime import datetime
from io import StringIO

from live_transcribe.config.schema import AppConfig
from live_transcribe.phonetic import ANNOTATED, PLAIN, Segment
from live_transcribe.presentation.console import ConsoleRenderer
from live_transcribe.transcript import TranscriptEntry, TranscriptSnapshot


# =============================================================================
# 테스트 헬퍼
# =============================================================================

HELLO_WORLD = (Segment(PLAIN, "Hello "), Segment(ANNOTATED, "世界", ("shì", "jiè")))


def _make_renderer(show_interim: bool = True, show_timestamps: bool = True):
    config = AppConfig(**{
        "presentation": {"show_interim": show_interim, "show_timestamps": show_timestamps},
    })
    stream = StringIO()
    return ConsoleRenderer(config, stream=stream), stream


def _make_entry(entry_id: str = "e-1", span=HELLO_WORLD) -> TranscriptEntry:
    committed_at = datetime(2024, 5, 1, 9, 8, 7)
    return TranscriptEntry(
        entry_id=entry_id,
        text=span,
        source_text="".join(segment.text for segment in span),
        committed_at_ns=int(committed_at.timestamp()) * 1_000_000_000,
    )


def _make_snapshot(entries=(), current=(), status="recording", locale="zh-CN", last_error=None):
    return TranscriptSnapshot(
        entries=tuple(entries),
        current=current,
        current_text="".join(segment.text for segment in current),
        status=status,
        locale=locale,
        last_error=last_error,
    )


# =============================================================================
# 출력 형식 테스트
# =============================================================================

def test_format_entry_with_timestamp():
    renderer, _ = _make_renderer()

    assert renderer.format_entry(_make_entry()) == "[09:08:07] Hello 世界（shì jiè）"


def test_format_entry_without_timestamp():
    renderer, _ = _make_renderer(show_timestamps=False)

    assert renderer.format_entry(_make_entry()) == "Hello 世界（shì jiè）"


def test_status_line_printed_on_change_only():
    renderer, stream = _make_renderer()

    renderer.render(_make_snapshot())
    renderer.render(_make_snapshot())
    renderer.render(_make_snapshot(locale="zh-CN,en-US"))

    lines = stream.getvalue().splitlines()
    assert lines == ["● recording [Chinese]", "● recording [Both]"]


def test_entry_printed_once():
    renderer, stream = _make_renderer(show_timestamps=False)
    entry = _make_entry()

    renderer.render(_make_snapshot([entry]))
    renderer.render(_make_snapshot([entry]))

    assert stream.getvalue().count("Hello 世界（shì jiè）") == 1


def test_interim_written_with_carriage_return():
    renderer, stream = _make_renderer()

    renderer.render(_make_snapshot(current=(Segment(ANNOTATED, "你", ("nǐ",)),)))

    assert stream.getvalue().endswith("\r… 你（nǐ）")


def test_interim_hidden_when_disabled():
    renderer, stream = _make_renderer(show_interim=False)

    renderer.render(_make_snapshot(current=(Segment(ANNOTATED, "你", ("nǐ",)),)))

    assert "你" not in stream.getvalue()


def test_error_line_printed():
    renderer, stream = _make_renderer()

    renderer.render(_make_snapshot(status="idle", last_error="engine-unavailable"))
    renderer.render(_make_snapshot(status="idle", last_error="engine-unavailable"))

    assert stream.getvalue().count("! 인식 오류: engine-unavailable") == 1


def test_entries_printed_again_after_reset():
    renderer, stream = _make_renderer(show_timestamps=False)

    renderer.render(_make_snapshot([_make_entry("e-1")]))
    renderer.render(_make_snapshot([]))
    renderer.render(_make_snapshot([_make_entry("e-2")]))

    assert stream.getvalue().count("Hello 世界（shì jiè）") == 2
