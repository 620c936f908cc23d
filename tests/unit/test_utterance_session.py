"""
UtteranceAggregator 세션 관리 단위 테스트

가짜 인식 엔진(FakeEngine)으로 엔진 콜백 순서를 직접 제어합니다.

검증 항목:
- start/stop 상태 전이 및 중복 요청 무시
- 엔진 없음 → engine-unavailable 보고
- 엔진 에러/자체 종료 시 idle 전환, interim 폐기
- 이전 세션 핸들의 콜백 무시
- 언어 전환: 종료 확인 대기, grace 타임아웃, 새 요청의 대체, stop에 의한 취소
- 구독자 콜백 에러 격리
- 설정 핫스왑
"""

from __future__ import annotations

import asyncio

import pytest

from live_transcribe.config.schema import AppConfig
from live_transcribe.recognition import RecognitionEvent, RecognitionResult, SessionHandle
from live_transcribe.recognition.engine import (
    EngineUnavailableError,
    RecognitionEngine,
    RecognitionSink,
)
from live_transcribe.transcript.aggregator import ENGINE_UNAVAILABLE, UtteranceAggregator


# =============================================================================
# 테스트 헬퍼
# =============================================================================

class FakeEngine(RecognitionEngine):
    """
    콜백을 테스트가 직접 호출하는 가짜 인식 엔진입니다.

    auto_end=True이면 close() 직후 이벤트 루프에서 on_end를 호출합니다.
    """

    def __init__(self, auto_end: bool = False, unavailable: bool = False) -> None:
        self.auto_end = auto_end
        self.unavailable = unavailable
        self.opened: list[SessionHandle] = []
        self.closed: list[SessionHandle] = []
        self.sink: RecognitionSink = None

    @property
    def opened_locales(self) -> list[str]:
        return [handle.locale for handle in self.opened]

    def open(self, locale: str, sink: RecognitionSink) -> SessionHandle:
        if self.unavailable:
            raise EngineUnavailableError("테스트용 엔진 없음")
        handle = SessionHandle(locale=locale)
        self.sink = sink
        self.opened.append(handle)
        return handle

    def close(self, handle: SessionHandle) -> None:
        self.closed.append(handle)
        if self.auto_end:
            asyncio.get_running_loop().call_soon(self.sink.on_end, handle)

    def emit(self, handle: SessionHandle, result_index: int, *results: tuple[str, bool]) -> None:
        self.sink.on_result(
            handle,
            RecognitionEvent(
                result_index=result_index,
                results=tuple(RecognitionResult.of(text, is_final) for text, is_final in results),
            ),
        )

    def finish(self, handle: SessionHandle) -> None:
        self.sink.on_end(handle)


def _make_config(
    locale: str = "zh-CN",
    grace_ms: int = 1000,
    tone_style: str = "symbol",
) -> AppConfig:
    """테스트용 AppConfig를 생성합니다."""
    return AppConfig(**{
        "recognition": {"locale": locale, "language_switch_grace_ms": grace_ms},
        "annotation": {"tone_style": tone_style},
    })


def _make_aggregator(engine=None, **config_kwargs):
    """스냅샷 기록 리스트가 연결된 집계기를 생성합니다."""
    aggregator = UtteranceAggregator(_make_config(**config_kwargs), engine)
    snapshots = []
    aggregator.subscribe(snapshots.append)
    return aggregator, snapshots


# =============================================================================
# start / stop 테스트
# =============================================================================

class TestStartStop:
    def test_start_opens_session_with_configured_locale(self):
        engine = FakeEngine()
        aggregator, snapshots = _make_aggregator(engine)

        assert aggregator.start() is True
        assert engine.opened_locales == ["zh-CN"]
        assert aggregator.status == "recording"
        assert aggregator.is_recording
        assert snapshots[-1].status == "recording"

    def test_start_with_locale_overrides_current(self):
        engine = FakeEngine()
        aggregator, _ = _make_aggregator(engine)

        aggregator.start("en-US")

        assert engine.opened_locales == ["en-US"]
        assert aggregator.locale == "en-US"

    def test_start_twice_is_noop(self):
        """이미 세션이 있으면 두 번째 start는 세션을 열지 않습니다."""
        engine = FakeEngine()
        aggregator, _ = _make_aggregator(engine)

        aggregator.start()
        assert aggregator.start() is False
        assert len(engine.opened) == 1

    def test_stop_without_session_is_noop(self):
        engine = FakeEngine()
        aggregator, snapshots = _make_aggregator(engine)

        aggregator.stop()

        assert engine.closed == []
        assert snapshots == []
        assert aggregator.status == "idle"

    def test_stop_discards_interim_and_keeps_entries(self):
        engine = FakeEngine()
        aggregator, snapshots = _make_aggregator(engine)
        aggregator.start()
        handle = engine.opened[0]

        engine.emit(handle, 0, ("你好", True))
        engine.emit(handle, 1, ("你好", True), ("世界", False))
        assert aggregator.state.current_text == "世界"

        aggregator.stop()

        assert engine.closed == [handle]
        assert aggregator.status == "idle"
        assert aggregator.current == ()
        assert [e.source_text for e in aggregator.entries] == ["你好"]
        assert snapshots[-1].current_text == ""

    def test_new_session_resets_low_water_mark(self):
        """세션을 다시 시작하면 결과 위치는 0부터 다시 셉니다."""
        engine = FakeEngine()
        aggregator, _ = _make_aggregator(engine)
        aggregator.start()
        engine.emit(engine.opened[0], 0, ("第一", True))
        aggregator.stop()

        aggregator.start()
        engine.emit(engine.opened[1], 0, ("第二", True))

        assert [e.source_text for e in aggregator.entries] == ["第一", "第二"]

    def test_reset_clears_entries_during_session(self):
        engine = FakeEngine()
        aggregator, snapshots = _make_aggregator(engine)
        aggregator.start()
        handle = engine.opened[0]
        engine.emit(handle, 0, ("你好", True))

        aggregator.reset()

        assert aggregator.entries == ()
        assert aggregator.status == "recording"
        assert snapshots[-1].entries == ()

        # 같은 세션의 이미 확정된 결과는 다시 확정되지 않음
        engine.emit(handle, 0, ("你好", True), ("再见", True))
        assert [e.source_text for e in aggregator.entries] == ["再见"]


# =============================================================================
# 엔진 없음 / 엔진 에러 테스트
# =============================================================================

class TestEngineFailures:
    def test_missing_engine_reports_unavailable(self):
        aggregator, snapshots = _make_aggregator(None)

        assert aggregator.start() is False
        assert aggregator.status == "idle"
        assert aggregator.last_error == ENGINE_UNAVAILABLE
        assert snapshots[-1].last_error == "engine-unavailable"

    def test_open_failure_reports_unavailable(self):
        aggregator, _ = _make_aggregator(FakeEngine(unavailable=True))

        assert aggregator.start() is False
        assert aggregator.last_error == ENGINE_UNAVAILABLE

    def test_engine_error_returns_to_idle(self):
        engine = FakeEngine()
        aggregator, snapshots = _make_aggregator(engine)
        aggregator.start()
        handle = engine.opened[0]
        engine.emit(handle, 0, ("你", False))

        engine.sink.on_error(handle, "network")

        assert aggregator.status == "idle"
        assert aggregator.last_error == "network"
        assert aggregator.current == ()
        assert engine.closed == [handle]
        assert snapshots[-1].last_error == "network"

    def test_start_after_error_clears_last_error(self):
        engine = FakeEngine()
        aggregator, _ = _make_aggregator(engine)
        aggregator.start()
        engine.sink.on_error(engine.opened[0], "no-speech")

        assert aggregator.start() is True
        assert aggregator.last_error is None

    def test_engine_initiated_end_discards_interim(self):
        engine = FakeEngine()
        aggregator, _ = _make_aggregator(engine)
        aggregator.start()
        handle = engine.opened[0]
        engine.emit(handle, 0, ("你好", True))
        engine.emit(handle, 1, ("你好", True), ("世", False))

        engine.finish(handle)

        assert aggregator.status == "idle"
        assert aggregator.current == ()
        assert len(aggregator.entries) == 1
        assert aggregator.last_error is None

    def test_callbacks_from_stale_session_ignored(self):
        """닫힌 세션의 결과/에러/종료 콜백은 상태를 바꾸지 않습니다."""
        engine = FakeEngine()
        aggregator, _ = _make_aggregator(engine)
        aggregator.start()
        old_handle = engine.opened[0]
        aggregator.stop()
        aggregator.start()

        engine.emit(old_handle, 0, ("旧", True))
        engine.sink.on_error(old_handle, "aborted")
        engine.finish(old_handle)

        assert aggregator.entries == ()
        assert aggregator.status == "recording"
        assert aggregator.last_error is None


# =============================================================================
# 언어 전환 테스트
# =============================================================================

class TestSwitchLanguage:
    @pytest.mark.asyncio
    async def test_switch_while_idle_only_updates_locale(self):
        engine = FakeEngine()
        aggregator, snapshots = _make_aggregator(engine)

        assert await aggregator.switch_language("en-US") is False

        assert engine.opened == []
        assert aggregator.locale == "en-US"
        assert snapshots[-1].locale == "en-US"

        aggregator.start()
        assert engine.opened_locales == ["en-US"]

    @pytest.mark.asyncio
    async def test_switch_waits_for_end_then_restarts(self):
        engine = FakeEngine(auto_end=True)
        aggregator, snapshots = _make_aggregator(engine)
        aggregator.start()
        first = engine.opened[0]
        engine.emit(first, 0, ("你", False))

        assert await aggregator.switch_language("en-US") is True

        assert engine.closed == [first]
        assert engine.opened_locales == ["zh-CN", "en-US"]
        assert aggregator.status == "recording"
        assert aggregator.current == ()
        assert "switching" in [s.status for s in snapshots]

    @pytest.mark.asyncio
    async def test_switch_proceeds_after_grace_timeout(self):
        """종료 확인이 오지 않아도 grace period 후 새 세션을 시작합니다."""
        engine = FakeEngine(auto_end=False)
        aggregator, _ = _make_aggregator(engine, grace_ms=20)
        aggregator.start()

        assert await aggregator.switch_language("zh-CN,en-US") is True

        assert engine.opened_locales == ["zh-CN", "zh-CN,en-US"]
        assert aggregator.locale == "zh-CN,en-US"

    @pytest.mark.asyncio
    async def test_events_after_switch_come_from_new_session_only(self):
        engine = FakeEngine(auto_end=True)
        aggregator, _ = _make_aggregator(engine)
        aggregator.start()
        first = engine.opened[0]

        await aggregator.switch_language("en-US")
        second = engine.opened[1]
        engine.emit(first, 0, ("旧", True))
        engine.emit(second, 0, ("hello", True))

        assert [e.source_text for e in aggregator.entries] == ["hello"]

    @pytest.mark.asyncio
    async def test_newer_switch_supersedes_pending_one(self):
        """대기 중인 전환은 새 전환 요청에 의해 취소되고, 마지막 요청만 반영됩니다."""
        engine = FakeEngine(auto_end=False)
        aggregator, _ = _make_aggregator(engine, grace_ms=1000)
        aggregator.start()
        first = engine.opened[0]

        first_switch = asyncio.create_task(aggregator.switch_language("en-US"))
        await asyncio.sleep(0.01)
        assert aggregator.status == "switching"

        second_switch = asyncio.create_task(aggregator.switch_language("zh-CN,en-US"))
        await asyncio.sleep(0.01)
        engine.finish(first)

        assert await second_switch is True
        assert await first_switch is False
        assert engine.opened_locales == ["zh-CN", "zh-CN,en-US"]
        assert aggregator.locale == "zh-CN,en-US"
        assert aggregator.status == "recording"

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_switch(self):
        engine = FakeEngine(auto_end=False)
        aggregator, _ = _make_aggregator(engine, grace_ms=1000)
        aggregator.start()

        switch = asyncio.create_task(aggregator.switch_language("en-US"))
        await asyncio.sleep(0.01)
        aggregator.stop()

        assert await switch is False
        assert engine.opened_locales == ["zh-CN"]
        assert aggregator.status == "idle"

    @pytest.mark.asyncio
    async def test_start_ignored_while_switching(self):
        engine = FakeEngine(auto_end=False)
        aggregator, _ = _make_aggregator(engine, grace_ms=1000)
        aggregator.start()

        switch = asyncio.create_task(aggregator.switch_language("en-US"))
        await asyncio.sleep(0.01)
        assert aggregator.start() is False

        engine.finish(engine.opened[0])
        assert await switch is True
        assert engine.opened_locales == ["zh-CN", "en-US"]

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_end_ack(self):
        engine = FakeEngine(auto_end=True)
        aggregator, _ = _make_aggregator(engine)
        aggregator.start()

        await aggregator.shutdown()

        assert aggregator.status == "idle"
        assert engine.closed == [engine.opened[0]]


# =============================================================================
# 구독자 / 설정 핫스왑 테스트
# =============================================================================

class TestListenersAndConfig:
    def test_listener_error_does_not_block_others(self):
        engine = FakeEngine()
        aggregator = UtteranceAggregator(_make_config(), engine)
        received = []

        def _broken(snapshot):
            raise RuntimeError("표시 계층 오류")

        aggregator.subscribe(_broken)
        aggregator.subscribe(received.append)

        aggregator.start()
        engine.emit(engine.opened[0], 0, ("你好", True))

        assert len(received) == 2
        assert received[-1].new_entry is not None
        assert len(aggregator.entries) == 1

    def test_unsubscribe_stops_notifications(self):
        engine = FakeEngine()
        aggregator, snapshots = _make_aggregator(engine)
        aggregator.unsubscribe(snapshots.append)

        aggregator.start()

        assert snapshots == []

    def test_snapshot_carries_new_entry_only_on_commit(self):
        engine = FakeEngine()
        aggregator, snapshots = _make_aggregator(engine)
        aggregator.start()
        handle = engine.opened[0]

        engine.emit(handle, 0, ("你", False))
        engine.emit(handle, 0, ("你好", True))

        assert snapshots[-2].new_entry is None
        assert snapshots[-1].new_entry == aggregator.entries[0]

    def test_update_config_changes_tone_style(self):
        engine = FakeEngine()
        aggregator, _ = _make_aggregator(engine)
        aggregator.start()
        handle = engine.opened[0]
        engine.emit(handle, 0, ("你好", True))

        aggregator.update_config(_make_config(tone_style="numeric"))
        engine.emit(handle, 1, ("你好", True), ("你好", True))

        assert aggregator.entries[0].text[0].readings == ("nǐ", "hǎo")
        assert aggregator.entries[1].text[0].readings == ("ni3", "hao3")
