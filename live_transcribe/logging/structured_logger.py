"""
구조화 JSON 로깅 모듈입니다.

역할:
- python-json-logger를 사용한 JSON 포맷 로그 출력
- RotatingFileHandler로 로그 파일 자동 순환 (10MB, 5개 보존)
- session_id, module, level 공통 필드 자동 추가
- 로그 레벨 및 포맷(json/text)을 설정에서 제어

사용 예시:
    >>> setup_logging(config)
    >>> logger = StructuredLogger.get("live_transcribe.transcript")
    >>> logger.info("항목 확정", extra={"entry_id": "..."})
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import uuid
from pathlib import Path
from typing import Optional, TextIO

from pythonjsonlogger.json import JsonFormatter

from live_transcribe.config.schema import AppConfig

LOG_FILENAME = "transcribe.log"

_SESSION_ID: str = ""


def setup_logging(
    config: AppConfig,
    session_id: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> str:
    """
    애플리케이션 전체 로깅 설정을 초기화하고 사용된 세션 ID를 반환합니다.

    파라미터:
        config: AppConfig 인스턴스
        session_id: 세션 식별자. None이면 config.system.session_id 또는 UUID 사용
        stream: 콘솔 핸들러 출력 스트림 (기본: stderr, 표준출력은 전사 출력용)
    """
    global _SESSION_ID

    _SESSION_ID = session_id or config.system.session_id or str(uuid.uuid4())

    log_level = getattr(logging, config.system.log_level, logging.INFO)
    log_dir = Path(config.system.log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # 재설정 시 핸들러 중복 방지
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_dir / LOG_FILENAME,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        )
    except OSError as exc:
        logging.warning(f"로그 파일 핸들러 생성 실패: {exc}")

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(_build_formatter(config.system.log_format, _SESSION_ID))
        root_logger.addHandler(handler)

    logging.getLogger(__name__).info(
        f"로깅 초기화: level={config.system.log_level}, "
        f"format={config.system.log_format}, session={_SESSION_ID}"
    )
    return _SESSION_ID


def _build_formatter(log_format: str, session_id: str) -> logging.Formatter:
    if log_format == "json":
        return _JsonFormatter(session_id=session_id)
    return _TextFormatter(session_id=session_id)


class _JsonFormatter(JsonFormatter):
    """session_id, module, level 필드를 자동 추가하는 JSON 포맷터입니다."""

    def __init__(self, session_id: str = "") -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
        self._session_id = session_id

    def add_fields(
        self,
        log_record: dict,
        record: logging.LogRecord,
        message_dict: dict,
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["session_id"] = self._session_id
        log_record["module"] = record.name
        log_record["level"] = record.levelname


class _TextFormatter(logging.Formatter):
    """세션 ID 앞 8자리를 접두어로 포함하는 텍스트 포맷터입니다."""

    def __init__(self, session_id: str = "") -> None:
        prefix = session_id[:8] if session_id else "no-sid"
        super().__init__(
            fmt=f"%(asctime)s [{prefix}] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class StructuredLogger:
    """
    모듈별 로거를 반환하는 팩토리 클래스입니다.

    표준 logging.Logger를 그대로 반환하므로 기존 logging API와 호환됩니다.
    """

    @staticmethod
    def get(name: str) -> logging.Logger:
        return logging.getLogger(name)

    @staticmethod
    def get_session_id() -> str:
        """현재 세션 ID를 반환합니다."""
        return _SESSION_ID
