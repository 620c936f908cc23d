"""
음성 인식 엔진 계약 모듈입니다.

역할:
- 엔진이 호출하는 콜백 인터페이스(RecognitionSink) 정의
- 세션을 열고 닫는 엔진 추상 클래스(RecognitionEngine) 정의
- 엔진 관련 에러 타입 정의

엔진 세션 생명주기:
    open(locale, sink) → sink.on_start(handle)
                       → sink.on_result(handle, event) ...
                       → sink.on_error(handle, reason)   (선택)
                       → sink.on_end(handle)
    close(handle) 요청 후에도 on_end 콜백으로 종료를 확인합니다.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from live_transcribe.recognition import RecognitionEvent, SessionHandle


class EngineUnavailableError(Exception):
    """실행 환경에 인식 엔진이 없거나 세션을 열 수 없을 때 발생하는 에러입니다."""
    pass


class EngineRuntimeError(Exception):
    """
    세션 도중 엔진이 보고한 에러입니다.

    필드:
        reason: 엔진이 정의한 에러 코드 (예: "no-speech", "network")
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"인식 엔진 오류: {reason}")
        self.reason = reason


@runtime_checkable
class RecognitionSink(Protocol):
    """엔진 세션 이벤트를 받는 콜백 인터페이스입니다."""

    def on_start(self, handle: SessionHandle) -> None: ...

    def on_result(self, handle: SessionHandle, event: RecognitionEvent) -> None: ...

    def on_error(self, handle: SessionHandle, reason: str) -> None: ...

    def on_end(self, handle: SessionHandle) -> None: ...


class RecognitionEngine(ABC):
    """
    음성 인식 엔진 추상 클래스입니다.

    한 엔진은 동시에 여러 세션을 관리할 수 있지만, 집계기는 항상
    하나의 세션만 열어둡니다.
    """

    @abstractmethod
    def open(self, locale: str, sink: RecognitionSink) -> SessionHandle:
        """
        지정한 로케일로 인식 세션을 엽니다.

        에러:
            EngineUnavailableError: 세션을 열 수 없을 때
        """

    @abstractmethod
    def close(self, handle: SessionHandle) -> None:
        """
        세션 종료를 요청합니다.

        종료는 비동기로 완료되며, 완료 시 sink.on_end(handle)이 호출됩니다.
        이미 종료된 세션에 대한 호출은 무시됩니다.
        """
