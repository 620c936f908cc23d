"""
이벤트 스크립트 재생 인식 엔진 모듈입니다.

역할:
- YAML 이벤트 스크립트를 읽어 실제 인식 엔진처럼 콜백을 재생
- 단계별 지연(delay_ms)과 재생 속도(playback_speed)로 실시간 흐름 시뮬레이션
- 실제 마이크/인식기 없이 전체 파이프라인 테스트 지원

스크립트 형식:
    steps:
      - delay_ms: 300
        event:
          result_index: 0
          results:
            - {text: "你", final: false}
      - delay_ms: 500
        error: "no-speech"
      - end: true

사용 예시:
    >>> engine = ScriptedRecognitionEngine.from_config(config)
    >>> handle = engine.open("zh-CN", aggregator)
    >>> engine.close(handle)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from live_transcribe.config.schema import AppConfig
from live_transcribe.recognition import (
    RecognitionAlternative,
    RecognitionEvent,
    RecognitionResult,
    SessionHandle,
)
from live_transcribe.recognition.engine import (
    EngineRuntimeError,
    EngineUnavailableError,
    RecognitionEngine,
    RecognitionSink,
)

logger = logging.getLogger(__name__)


class ScriptFormatError(ValueError):
    """이벤트 스크립트 구조가 올바르지 않을 때 발생하는 에러입니다."""
    pass


@dataclass(frozen=True)
class ScriptStep:
    """
    스크립트의 한 단계입니다.

    필드:
        kind: "event" | "error" | "end"
        delay_ms: 직전 단계 이후 대기 시간 (밀리초)
        event: kind="event"일 때 전달할 인식 이벤트
        reason: kind="error"일 때 전달할 에러 코드
    """
    kind: str
    delay_ms: int = 0
    event: Optional[RecognitionEvent] = None
    reason: str = ""


def parse_script(raw: Any) -> list[ScriptStep]:
    """
    YAML에서 읽은 원본 데이터를 ScriptStep 목록으로 변환합니다.

    에러:
        ScriptFormatError: 필수 키가 없거나 형식이 올바르지 않을 때
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("steps"), list):
        raise ScriptFormatError("스크립트 최상위에 steps 목록이 필요합니다")

    steps: list[ScriptStep] = []
    for position, raw_step in enumerate(raw["steps"]):
        if not isinstance(raw_step, dict):
            raise ScriptFormatError(f"steps[{position}]가 딕셔너리가 아닙니다")

        delay_ms = int(raw_step.get("delay_ms", 0))
        if "event" in raw_step:
            steps.append(ScriptStep("event", delay_ms, event=_parse_event(raw_step["event"], position)))
        elif "error" in raw_step:
            steps.append(ScriptStep("error", delay_ms, reason=str(raw_step["error"])))
        elif raw_step.get("end"):
            steps.append(ScriptStep("end", delay_ms))
        else:
            raise ScriptFormatError(f"steps[{position}]에 event/error/end 중 하나가 필요합니다")

    return steps


def _parse_event(raw_event: Any, position: int) -> RecognitionEvent:
    if not isinstance(raw_event, dict):
        raise ScriptFormatError(f"steps[{position}].event가 딕셔너리가 아닙니다")

    results = []
    for raw_result in raw_event.get("results", []):
        if not isinstance(raw_result, dict):
            raise ScriptFormatError(f"steps[{position}].event.results 항목이 딕셔너리가 아닙니다")
        if "alternatives" in raw_result:
            alternatives = tuple(
                RecognitionAlternative(
                    transcript=str(alt.get("transcript", "")),
                    confidence=float(alt.get("confidence", 1.0)),
                )
                for alt in raw_result["alternatives"]
            )
        else:
            alternatives = (
                RecognitionAlternative(
                    transcript=str(raw_result.get("text", "")),
                    confidence=float(raw_result.get("confidence", 1.0)),
                ),
            )
        results.append(
            RecognitionResult(alternatives=alternatives, is_final=bool(raw_result.get("final", False)))
        )

    return RecognitionEvent(
        result_index=int(raw_event.get("result_index", 0)),
        results=tuple(results),
    )


def load_script(filepath: str | Path) -> list[ScriptStep]:
    """YAML 스크립트 파일을 읽어 ScriptStep 목록으로 반환합니다."""
    with open(filepath, "r", encoding="utf-8") as script_file:
        raw = yaml.safe_load(script_file)
    return parse_script(raw)


class ScriptedRecognitionEngine(RecognitionEngine):
    """
    스크립트를 재생하는 인식 엔진입니다.

    세션마다 재생 태스크를 하나 생성하며, 태스크가 어떤 이유로든
    끝나면(스크립트 종료, 에러, close 요청) sink.on_end가 한 번 호출됩니다.
    """

    def __init__(
        self,
        steps: Optional[list[ScriptStep]] = None,
        script_path: str | Path | None = None,
        playback_speed: float = 1.0,
    ) -> None:
        self._steps = steps
        self._script_path = Path(script_path) if script_path else None
        self._playback_speed = playback_speed

        # 열린 세션별 재생 태스크
        self._sessions: dict[SessionHandle, asyncio.Task] = {}

        logger.info(
            f"ScriptedRecognitionEngine 초기화: "
            f"script={self._script_path}, "
            f"playback_speed={self._playback_speed}x"
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> "ScriptedRecognitionEngine":
        return cls(
            script_path=config.replay.script_path,
            playback_speed=config.replay.playback_speed,
        )

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def open(self, locale: str, sink: RecognitionSink) -> SessionHandle:
        steps = self._resolve_steps()

        handle = SessionHandle(locale=locale)
        task = asyncio.get_running_loop().create_task(
            self._play(handle, sink, steps),
            name=f"scripted_session_{handle.session_id}",
        )
        task.add_done_callback(lambda done: self._on_session_done(handle, sink, done))
        self._sessions[handle] = task

        logger.info(f"스크립트 세션 시작: session={handle.session_id}, locale={locale}, steps={len(steps)}")
        return handle

    def close(self, handle: SessionHandle) -> None:
        task = self._sessions.get(handle)
        if task is None or task.done():
            logger.debug(f"이미 종료된 세션 close 무시: session={handle.session_id}")
            return
        task.cancel()
        logger.info(f"스크립트 세션 종료 요청: session={handle.session_id}")

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _resolve_steps(self) -> list[ScriptStep]:
        if self._steps is not None:
            return self._steps
        if self._script_path is None:
            raise EngineUnavailableError("재생할 스크립트가 지정되지 않았습니다")
        try:
            return load_script(self._script_path)
        except OSError as exc:
            raise EngineUnavailableError(f"스크립트를 열 수 없습니다: {self._script_path}") from exc
        except (yaml.YAMLError, ValueError) as exc:
            raise EngineUnavailableError(f"스크립트 형식 오류: {exc}") from exc

    async def _play(
        self,
        handle: SessionHandle,
        sink: RecognitionSink,
        steps: list[ScriptStep],
    ) -> None:
        sink.on_start(handle)

        try:
            for step in steps:
                if step.delay_ms > 0:
                    await asyncio.sleep(step.delay_ms / 1000.0 / self._playback_speed)

                if step.kind == "event":
                    sink.on_result(handle, step.event)
                elif step.kind == "error":
                    raise EngineRuntimeError(step.reason)
                else:
                    return
        except EngineRuntimeError as runtime_error:
            logger.warning(f"스크립트 에러 단계: session={handle.session_id}, reason={runtime_error.reason}")
            sink.on_error(handle, runtime_error.reason)
            return

        logger.info(f"스크립트 재생 완료: session={handle.session_id}")

    def _on_session_done(
        self,
        handle: SessionHandle,
        sink: RecognitionSink,
        task: asyncio.Task,
    ) -> None:
        self._sessions.pop(handle, None)

        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"스크립트 세션 오류: session={handle.session_id}",
                exc_info=task.exception(),
            )

        sink.on_end(handle)
