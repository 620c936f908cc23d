"""
발화 집계기 모듈입니다.

역할:
- 인식 이벤트를 interim/final로 분류하여 현재 발화 버퍼를 교체하거나 확정 로그에 추가
- 확정/중간 텍스트 모두 병음 주석을 붙여 보관
- 인식 엔진 세션(시작/중지/언어 전환)의 단일 소유자
- 매 이벤트 처리 후 표시 계층에 TranscriptSnapshot 전달

처리 전략:
- final 텍스트가 있는 이벤트: 항목 하나를 확정하고 현재 발화를 비움
  (같은 이벤트의 interim 텍스트는 버림)
- final 텍스트가 없는 이벤트: 현재 발화를 이번 interim 텍스트로 통째로 교체
- 결과 위치 하한(low_water_mark)보다 앞선 결과는 이미 확정된 것으로 보고 건너뜀

사용 예시:
    >>> aggregator = UtteranceAggregator(config, engine)
    >>> aggregator.subscribe(renderer.render)
    >>> aggregator.start()
    >>> await aggregator.switch_language("en-US")
    >>> aggregator.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from typing import Callable, Optional

from live_transcribe.config.schema import AppConfig
from live_transcribe.phonetic import AnnotatedSpan
from live_transcribe.phonetic.annotator import annotate
from live_transcribe.phonetic.lookup import ReadingLookup, make_reading_lookup
from live_transcribe.recognition import RecognitionEvent, SessionHandle
from live_transcribe.recognition.engine import EngineUnavailableError, RecognitionEngine
from live_transcribe.transcript import (
    SessionStatus,
    TranscriptEntry,
    TranscriptSnapshot,
    TranscriptState,
)

logger = logging.getLogger(__name__)

# 엔진이 없을 때 표시 계층에 보고하는 에러 코드
ENGINE_UNAVAILABLE = "engine-unavailable"

# 스냅샷 구독자 타입
SnapshotListener = Callable[[TranscriptSnapshot], None]


def process_event(
    state: TranscriptState,
    event: RecognitionEvent,
    annotate_text: Callable[[str], AnnotatedSpan] = annotate,
    clock: Callable[[], int] = time.time_ns,
    new_entry_id: Callable[[], str] = lambda: uuid.uuid4().hex,
) -> tuple[TranscriptState, Optional[TranscriptEntry]]:
    """
    인식 이벤트 하나를 반영한 새 상태와, 확정된 항목(없으면 None)을 반환합니다.

    입력 상태는 변경하지 않습니다. 이벤트 하나당 최대 한 개의 항목만 확정됩니다.

    파라미터:
        state: 현재 집계 상태
        event: 처리할 인식 이벤트
        annotate_text: 텍스트 -> 주석 결과 변환 함수
        clock: 확정 시각(nanoseconds) 공급 함수
        new_entry_id: 확정 항목 식별자 생성 함수
    """
    start_index = max(event.result_index, state.low_water_mark, 0)
    if event.result_index < state.low_water_mark:
        logger.debug(
            f"이미 확정된 결과 건너뜀: result_index={event.result_index}, "
            f"low_water_mark={state.low_water_mark}"
        )

    final_parts: list[str] = []
    interim_parts: list[str] = []
    low_water_mark = state.low_water_mark

    for index in range(start_index, len(event.results)):
        result = event.results[index]
        if result.is_final:
            final_parts.append(result.text)
            low_water_mark = index + 1
        else:
            interim_parts.append(result.text)

    final_text = "".join(final_parts)
    if final_text:
        entry = TranscriptEntry(
            entry_id=new_entry_id(),
            text=annotate_text(final_text),
            source_text=final_text,
            committed_at_ns=clock(),
        )
        if interim_parts:
            logger.debug(f"final과 같은 이벤트의 interim 텍스트 폐기: {''.join(interim_parts)[:30]!r}")
        new_state = replace(
            state,
            entries=state.entries + (entry,),
            current=(),
            current_text="",
            low_water_mark=low_water_mark,
        )
        return new_state, entry

    interim_text = "".join(interim_parts)
    new_state = replace(
        state,
        current=annotate_text(interim_text),
        current_text=interim_text,
        low_water_mark=low_water_mark,
    )
    return new_state, None


def reset_state(state: TranscriptState) -> TranscriptState:
    """확정 로그와 현재 발화를 비운 상태를 반환합니다. 진행 중인 세션의 결과 위치는 유지합니다."""
    return TranscriptState(low_water_mark=state.low_water_mark)


class UtteranceAggregator:
    """
    인식 엔진 세션을 소유하고 이벤트를 전사 상태로 집계하는 클래스입니다.

    RecognitionSink 인터페이스(on_start/on_result/on_error/on_end)를 구현하여
    엔진 콜백을 직접 받습니다. 현재 세션이 아닌 핸들의 콜백은 무시합니다.

    동시성:
    - 단일 이벤트 루프에서 동작하며 이벤트는 전달 순서대로 하나씩 처리됩니다.
    - 언어 전환 대기는 취소 가능하며, 새 전환 요청이 이전 요청을 대체합니다.
    """

    def __init__(self, config: AppConfig, engine: Optional[RecognitionEngine] = None) -> None:
        """
        파라미터:
            config (AppConfig): 전체 애플리케이션 설정 객체
            engine: 인식 엔진 (None이면 start() 시 engine-unavailable 보고)
        """
        self._engine = engine
        self._locale: str = config.recognition.locale
        self._grace_sec: float = config.recognition.language_switch_grace_ms / 1000.0
        self._lookup: ReadingLookup = make_reading_lookup(
            config.annotation.tone_style, config.annotation.missing_reading
        )

        self._state = TranscriptState()
        self._status: SessionStatus = "idle"
        self._last_error: Optional[str] = None

        # 현재 권한 있는 엔진 세션 (없으면 None)
        self._session: Optional[SessionHandle] = None
        # 언어 전환 중 종료 확인을 기다리는 세션
        self._awaiting_end: Optional[SessionHandle] = None
        self._session_ended = asyncio.Event()
        self._pending_switch: Optional[asyncio.Task] = None

        self._listeners: list[SnapshotListener] = []

        logger.info(
            f"UtteranceAggregator 초기화: "
            f"locale={self._locale}, "
            f"grace={config.recognition.language_switch_grace_ms}ms, "
            f"tone_style={config.annotation.tone_style}, "
            f"engine={'없음' if engine is None else type(engine).__name__}"
        )

    # =========================================================================
    # 조회
    # =========================================================================

    @property
    def state(self) -> TranscriptState:
        return self._state

    @property
    def entries(self) -> tuple[TranscriptEntry, ...]:
        return self._state.entries

    @property
    def current(self) -> AnnotatedSpan:
        return self._state.current

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def locale(self) -> str:
        return self._locale

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def is_recording(self) -> bool:
        return self._status == "recording"

    def snapshot(self, new_entry: Optional[TranscriptEntry] = None) -> TranscriptSnapshot:
        """현재 상태의 읽기 전용 스냅샷을 반환합니다."""
        return TranscriptSnapshot(
            entries=self._state.entries,
            current=self._state.current,
            current_text=self._state.current_text,
            status=self._status,
            locale=self._locale,
            last_error=self._last_error,
            new_entry=new_entry,
        )

    def subscribe(self, listener: SnapshotListener) -> None:
        """상태가 바뀔 때마다 스냅샷을 받을 콜백을 등록합니다."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            logger.warning("제거할 스냅샷 구독자를 찾을 수 없습니다")

    # =========================================================================
    # 표시 계층 명령
    # =========================================================================

    def start(self, locale: Optional[str] = None) -> bool:
        """
        인식 세션을 시작합니다.

        이미 세션이 있거나 언어 전환이 진행 중이면 아무것도 하지 않습니다.
        엔진이 없거나 세션을 열 수 없으면 engine-unavailable을 보고하고 False를 반환합니다.

        반환값:
            bool: 새 세션이 시작되었으면 True
        """
        if locale:
            self._locale = locale

        if self._session is not None:
            logger.warning(f"이미 인식 세션이 실행 중입니다: session={self._session.session_id}")
            return False

        if self._pending_switch is not None and not self._pending_switch.done():
            logger.warning("언어 전환 중에는 start 요청을 무시합니다")
            return False

        if self._engine is None:
            logger.error("인식 엔진을 사용할 수 없습니다")
            self._report_unavailable()
            return False

        try:
            handle = self._engine.open(self._locale, self)
        except EngineUnavailableError as exc:
            logger.error(f"인식 세션 시작 실패: {exc}")
            self._report_unavailable()
            return False

        self._session = handle
        # 엔진 세션마다 결과 위치는 0부터 다시 시작
        self._state = replace(self._state, low_water_mark=0)
        self._status = "recording"
        self._last_error = None

        logger.info(f"인식 세션 시작: session={handle.session_id}, locale={self._locale}")
        self._notify()
        return True

    def stop(self) -> None:
        """
        인식 세션을 중지합니다. 대기 중인 언어 전환도 취소합니다.

        확정되지 않은 현재 발화는 로그에 추가하지 않고 버립니다.
        세션이 없으면 아무것도 하지 않습니다.
        """
        switch_cancelled = self._cancel_pending_switch()

        if self._session is None:
            if switch_cancelled:
                self._status = "idle"
                self._notify()
            return

        handle = self._session
        self._close_session(handle)
        self._discard_current()
        self._status = "idle"

        logger.info(f"인식 세션 중지: session={handle.session_id}")
        self._notify()

    def reset(self) -> None:
        """확정 로그와 현재 발화를 함께 비웁니다. 진행 중인 세션에는 영향이 없습니다."""
        removed = len(self._state.entries)
        self._state = reset_state(self._state)
        logger.info(f"전사 초기화: 항목 {removed}개 제거")
        self._notify()

    async def switch_language(self, locale: str) -> bool:
        """
        인식 로케일을 바꿉니다.

        세션이 실행 중이면 현재 세션을 닫고 엔진의 종료 확인을 기다린 뒤
        새 로케일로 다시 시작합니다. 종료 확인이 grace period 안에 오지 않아도
        시작을 시도합니다. 이전 전환 요청이 대기 중이면 취소되고 이번 요청으로 대체됩니다.

        반환값:
            bool: 새 로케일로 세션이 시작되었으면 True
                  (세션이 없었거나 더 새로운 요청에 대체된 경우 False)
        """
        superseded = self._cancel_pending_switch()
        if superseded:
            logger.warning("이전 언어 전환 요청을 새 요청으로 대체합니다")

        previous_locale = self._locale
        self._locale = locale
        logger.info(f"언어 전환 요청: {previous_locale} -> {locale}")

        if self._session is None and not superseded:
            # 다음 start()에 적용
            self._notify()
            return False

        task = asyncio.get_running_loop().create_task(
            self._restart_session(locale), name="language_switch"
        )
        self._pending_switch = task

        await asyncio.wait({task})
        if task.cancelled():
            return False
        return task.result()

    async def shutdown(self) -> None:
        """세션을 중지하고 엔진의 종료 확인을 grace period 동안 기다립니다."""
        handle = self._session
        if handle is not None:
            self._awaiting_end = handle
            self._session_ended.clear()
        self.stop()
        if handle is not None:
            await self._wait_for_end_ack()
        logger.info("UtteranceAggregator 종료 완료")

    def update_config(self, config: AppConfig) -> None:
        """
        설정을 핫스왑으로 업데이트합니다.

        업데이트 가능 항목:
        - language_switch_grace_ms
        - tone_style, missing_reading (이후 처리되는 텍스트부터 적용)
        """
        self._grace_sec = config.recognition.language_switch_grace_ms / 1000.0
        self._lookup = make_reading_lookup(
            config.annotation.tone_style, config.annotation.missing_reading
        )
        logger.info(
            f"UtteranceAggregator 설정 핫스왑: "
            f"grace={config.recognition.language_switch_grace_ms}ms, "
            f"tone_style={config.annotation.tone_style}"
        )

    # =========================================================================
    # RecognitionSink 구현 (엔진 콜백)
    # =========================================================================

    def on_start(self, handle: SessionHandle) -> None:
        if handle != self._session:
            logger.debug(f"이전 세션의 on_start 무시: session={handle.session_id}")
            return
        logger.info(f"엔진 세션 시작 확인: session={handle.session_id}, locale={handle.locale}")

    def on_result(self, handle: SessionHandle, event: RecognitionEvent) -> None:
        if handle != self._session:
            logger.debug(f"이전 세션의 결과 무시: session={handle.session_id}")
            return

        self._state, entry = process_event(self._state, event, annotate_text=self._annotate)

        if entry is not None:
            logger.info(
                f"발화 확정: '{entry.source_text[:50]}', "
                f"entries={len(self._state.entries)}"
            )
        else:
            logger.debug(f"interim 갱신: '{self._state.current_text[:30]}'")

        self._notify(new_entry=entry)

    def on_error(self, handle: SessionHandle, reason: str) -> None:
        if handle != self._session:
            logger.debug(f"이전 세션의 에러 무시: session={handle.session_id}, reason={reason}")
            return

        logger.error(f"인식 엔진 오류: session={handle.session_id}, reason={reason}")
        self._close_session(handle)
        self._discard_current()
        self._status = "idle"
        self._last_error = reason
        self._notify()

    def on_end(self, handle: SessionHandle) -> None:
        if handle == self._awaiting_end:
            self._session_ended.set()

        if handle != self._session:
            logger.debug(f"이전 세션의 종료 확인: session={handle.session_id}")
            return

        # 엔진이 스스로 세션을 끝낸 경우 (무음 타임아웃 등)
        logger.info(f"엔진 세션 종료: session={handle.session_id}")
        self._session = None
        self._discard_current()
        self._status = "idle"
        self._notify()

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _annotate(self, text: str) -> AnnotatedSpan:
        return annotate(text, self._lookup)

    async def _restart_session(self, locale: str) -> bool:
        current_task = asyncio.current_task()
        try:
            self._status = "switching"
            self._notify()

            handle = self._session
            if handle is not None:
                self._awaiting_end = handle
                self._session_ended.clear()
                self._close_session(handle)
                self._discard_current()

            await self._wait_for_end_ack()

            self._status = "idle"
            self._pending_switch = None
            return self.start(locale)
        finally:
            if self._pending_switch is current_task:
                self._pending_switch = None

    async def _wait_for_end_ack(self) -> None:
        if self._awaiting_end is None or self._session_ended.is_set():
            self._awaiting_end = None
            return

        try:
            await asyncio.wait_for(self._session_ended.wait(), timeout=self._grace_sec)
        except asyncio.TimeoutError:
            logger.warning(
                f"엔진 종료 확인 없음 ({int(self._grace_sec * 1000)}ms), "
                f"session={self._awaiting_end.session_id}, 계속 진행합니다"
            )
        self._awaiting_end = None

    def _cancel_pending_switch(self) -> bool:
        task = self._pending_switch
        self._pending_switch = None
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def _close_session(self, handle: SessionHandle) -> None:
        self._session = None
        if self._engine is not None:
            self._engine.close(handle)

    def _discard_current(self) -> None:
        if self._state.current_text:
            logger.debug(f"확정되지 않은 발화 폐기: '{self._state.current_text[:30]}'")
        if self._state.current or self._state.current_text:
            self._state = replace(self._state, current=(), current_text="")

    def _report_unavailable(self) -> None:
        self._status = "idle"
        self._last_error = ENGINE_UNAVAILABLE
        self._notify()

    def _notify(self, new_entry: Optional[TranscriptEntry] = None) -> None:
        snapshot = self.snapshot(new_entry)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as listener_error:
                logger.error(f"스냅샷 구독자 콜백 실행 중 에러: {listener_error}", exc_info=True)
