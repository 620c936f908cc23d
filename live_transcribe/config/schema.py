"""
Live Pinyin Transcribe 설정 스키마 정의 모듈입니다.

역할:
- Pydantic v2 BaseModel 기반으로 config.yaml의 전체 구조를 타입 안전하게 정의
- 각 섹션(system, recognition, annotation, replay, presentation)을
  독립적인 중첩 모델로 분리하여 유지보수성 확보
- 필드별 기본값, 허용 범위, 유효성 검증(validator)을 포함

사용 예시:
    >>> from live_transcribe.config.schema import AppConfig
    >>> config = AppConfig(**yaml_data)
    >>> print(config.recognition.locale)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

# 모듈 로거 설정
logger = logging.getLogger(__name__)

# 인식 언어 표시 이름 (복합 로케일 포함)
LANGUAGE_LABELS: dict[str, str] = {
    "zh-CN": "Chinese",
    "en-US": "English",
    "zh-CN,en-US": "Both",
}


def language_label(locale: str) -> str:
    """로케일 식별자의 표시 이름을 반환합니다. 알 수 없는 값은 그대로 반환합니다."""
    return LANGUAGE_LABELS.get(locale, locale)


# =============================================================================
# system 섹션: 시스템 전역 설정
# =============================================================================

class SystemConfig(BaseModel):
    """
    시스템 전역 설정을 정의하는 모델입니다.

    역할:
    - 로깅 레벨 및 포맷 지정
    - 세션 식별자 관리
    """
    # 로그 출력 레벨
    log_level: str = Field(default="INFO", description="로그 레벨 (DEBUG | INFO | WARNING | ERROR)")
    # 로그 출력 포맷
    log_format: str = Field(default="json", description="로그 포맷 (json | text)")
    # 로그 파일 저장 디렉토리 경로
    log_dir: str = Field(default="output/logs", description="로그 저장 디렉토리")
    # 세션 고유 식별자 (빈 문자열이면 UUID로 자동 생성)
    session_id: str = Field(default="", description="세션 ID (비어있으면 UUID 자동생성)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """로그 레벨이 유효한 Python 로깅 레벨인지 검증합니다."""
        allowed_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        # 대소문자 구분 없이 비교 후 대문자로 정규화
        upper_value = value.upper()
        if upper_value not in allowed_levels:
            error_message = f"log_level은 {allowed_levels} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return upper_value

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        """로그 포맷이 지원되는 형식인지 검증합니다."""
        allowed_formats = ("json", "text")
        if value not in allowed_formats:
            error_message = f"log_format은 {allowed_formats} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value


# =============================================================================
# recognition 섹션: 음성 인식 엔진 세션 설정
# =============================================================================

class RecognitionConfig(BaseModel):
    """
    음성 인식 엔진 세션 설정입니다.

    역할:
    - 인식 로케일 선택 (엔진에 그대로 전달되는 불투명 식별자)
    - 언어 전환 시 엔진 종료 확인 대기 시간(grace period) 설정
    - 사용할 엔진 종류 지정
    """
    # 인식 로케일 (예: "zh-CN", "en-US", 복합값 "zh-CN,en-US")
    locale: str = Field(default="zh-CN", description="인식 로케일")
    # UI에서 선택 가능한 로케일 목록
    supported_locales: list[str] = Field(
        default=["zh-CN", "en-US", "zh-CN,en-US"],
        description="선택 가능한 로케일 목록",
    )
    # 언어 전환 시 엔진의 종료 확인을 기다리는 최대 시간 (밀리초)
    language_switch_grace_ms: int = Field(default=100, description="언어 전환 대기 시간 (ms)")
    # 인식 엔진 종류
    engine: str = Field(default="scripted", description="인식 엔진 (scripted)")

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, value: str) -> str:
        """로케일이 비어있지 않은지 검증합니다."""
        if not value.strip():
            raise ValueError("locale은 비어있을 수 없습니다.")
        return value.strip()

    @field_validator("language_switch_grace_ms")
    @classmethod
    def validate_grace_ms(cls, value: int) -> int:
        """대기 시간이 음수가 아닌지 검증합니다."""
        if value < 0:
            error_message = f"language_switch_grace_ms는 0 이상이어야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value

    @field_validator("engine")
    @classmethod
    def validate_engine(cls, value: str) -> str:
        """엔진 종류가 지원되는 값인지 검증합니다."""
        allowed_engines = ("scripted",)
        if value not in allowed_engines:
            error_message = f"engine은 {allowed_engines} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value


# =============================================================================
# annotation 섹션: 병음 주석 설정
# =============================================================================

class AnnotationConfig(BaseModel):
    """
    한자 병음 주석 설정입니다.

    역할:
    - 성조 표기 방식 지정 (symbol=성조 부호, numeric=숫자, none=성조 없음)
    - 읽기를 찾지 못한 글자의 대체 문자열 지정
    - 인라인 렌더링 괄호 지정
    """
    # 성조 표기 방식
    tone_style: str = Field(default="symbol", description="성조 표기 (symbol | numeric | none)")
    # 읽기가 없는 글자에 사용할 문자열
    missing_reading: str = Field(default="", description="읽기 누락 시 대체 문자열")
    # 인라인 렌더링 여는 괄호
    open_bracket: str = Field(default="（", description="인라인 렌더링 여는 괄호")
    # 인라인 렌더링 닫는 괄호
    close_bracket: str = Field(default="）", description="인라인 렌더링 닫는 괄호")

    @field_validator("tone_style")
    @classmethod
    def validate_tone_style(cls, value: str) -> str:
        """성조 표기 방식이 지원되는 값인지 검증합니다."""
        allowed_styles = ("symbol", "numeric", "none")
        if value not in allowed_styles:
            error_message = f"tone_style은 {allowed_styles} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value


# =============================================================================
# replay 섹션: 스크립트 재생 엔진 설정
# =============================================================================

class ReplayConfig(BaseModel):
    """
    이벤트 스크립트 재생 엔진(scripted) 설정입니다.

    역할:
    - 인식 이벤트 스크립트(YAML) 경로 지정
    - 재생 속도 제어
    """
    # 인식 이벤트 스크립트 경로
    script_path: str = Field(default="tests/fixtures/sample_events.yaml", description="이벤트 스크립트 경로")
    # 재생 속도 배율 (1.0 = 실시간)
    playback_speed: float = Field(default=1.0, description="재생 속도 (1.0 = 실시간)")

    @field_validator("playback_speed")
    @classmethod
    def validate_playback_speed(cls, value: float) -> float:
        """재생 속도가 양수인지 검증합니다."""
        if value <= 0:
            error_message = f"playback_speed는 0보다 커야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value


# =============================================================================
# presentation 섹션: 콘솔 표시 설정
# =============================================================================

class PresentationConfig(BaseModel):
    """
    콘솔 표시 설정입니다.

    역할:
    - 중간(interim) 결과 표시 여부
    - 확정 항목의 시각 표시 여부
    """
    # interim(중간) 결과 표시 여부
    show_interim: bool = Field(default=True, description="interim 결과 표시 여부")
    # 확정 항목 앞에 시각 표시 여부
    show_timestamps: bool = Field(default=True, description="확정 시각 표시 여부")


# =============================================================================
# 최상위 AppConfig: 모든 섹션을 통합하는 루트 모델
# =============================================================================

class AppConfig(BaseModel):
    """
    애플리케이션 전체 설정을 통합하는 최상위 모델입니다.

    사용 예시:
        >>> import yaml
        >>> with open("config.yaml") as f:
        ...     raw = yaml.safe_load(f)
        >>> config = AppConfig(**raw)
        >>> print(config.recognition.locale)
        'zh-CN'
        >>> print(config.recognition.language_switch_grace_ms)
        100
    """
    # 시스템 전역 설정
    system: SystemConfig = Field(default_factory=SystemConfig, description="시스템 설정")
    # 음성 인식 세션 설정
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig, description="인식 설정")
    # 병음 주석 설정
    annotation: AnnotationConfig = Field(default_factory=AnnotationConfig, description="주석 설정")
    # 스크립트 재생 엔진 설정
    replay: ReplayConfig = Field(default_factory=ReplayConfig, description="재생 설정")
    # 콘솔 표시 설정
    presentation: PresentationConfig = Field(default_factory=PresentationConfig, description="표시 설정")
