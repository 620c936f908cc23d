"""
Live Pinyin Transcribe 실행 진입점

역할:
- 설정 로드 및 로깅 초기화
- 인식 엔진 → UtteranceAggregator → ConsoleRenderer 연결
- 세션이 끝나거나 SIGINT/SIGTERM을 받으면 정리 후 종료

실행 예시:
    스크립트 재생 (기본 설정):
        python main.py

    다른 스크립트와 로케일로 재생:
        python main.py --script tests/fixtures/sample_events.yaml --locale zh-CN,en-US

    10초 후 자동 종료:
        python main.py --duration 10
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from live_transcribe.config.config_manager import ConfigManager
from live_transcribe.config.schema import AppConfig, language_label
from live_transcribe.logging.structured_logger import setup_logging
from live_transcribe.presentation.console import ConsoleRenderer
from live_transcribe.recognition.scripted_engine import ScriptedRecognitionEngine
from live_transcribe.transcript import TranscriptSnapshot
from live_transcribe.transcript.aggregator import UtteranceAggregator

logger = logging.getLogger(__name__)


def _parse_args() -> argparse.Namespace:
    """커맨드라인 인자를 파싱합니다."""
    parser = argparse.ArgumentParser(
        description="Live Pinyin Transcribe: 실시간 전사 + 병음 주석"
    )
    parser.add_argument(
        "--config", default="config.yaml", help="설정 파일 경로 (기본: config.yaml)"
    )
    parser.add_argument(
        "--locale", help="인식 로케일 (config.yaml 오버라이드, 예: zh-CN, en-US, zh-CN,en-US)"
    )
    parser.add_argument(
        "--script", help="재생할 이벤트 스크립트 경로 (config.yaml 오버라이드)"
    )
    parser.add_argument(
        "--no-interim", action="store_true", help="interim(중간) 결과를 표시하지 않음"
    )
    parser.add_argument(
        "--duration", type=int, default=0, help="실행 시간 제한 (초, 0=무제한)"
    )
    return parser.parse_args()


def _apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """커맨드라인 인자를 설정에 반영한 새 AppConfig를 반환합니다."""
    config_dict = config.model_dump()
    if args.locale:
        config_dict["recognition"]["locale"] = args.locale
    if args.script:
        config_dict["replay"]["script_path"] = args.script
    if args.no_interim:
        config_dict["presentation"]["show_interim"] = False
    return AppConfig(**config_dict)


async def _main() -> None:
    """비동기 메인 함수입니다."""
    args = _parse_args()

    manager = ConfigManager()
    config = _apply_cli_overrides(manager.load(args.config), args)

    session_id = setup_logging(config)
    logger.info(
        f"Live Pinyin Transcribe 시작: session_id={session_id}, "
        f"locale={config.recognition.locale} ({language_label(config.recognition.locale)})"
    )
    if config.recognition.locale not in config.recognition.supported_locales:
        logger.warning(
            f"목록에 없는 로케일입니다: {config.recognition.locale} "
            f"(지원: {', '.join(config.recognition.supported_locales)})"
        )

    engine = ScriptedRecognitionEngine.from_config(config)
    aggregator = UtteranceAggregator(config, engine)
    renderer = ConsoleRenderer(config)
    aggregator.subscribe(renderer.render)

    # 핫스왑 설정 감시 등록
    manager.subscribe(lambda old_config, new_config: aggregator.update_config(new_config))
    manager.watch()

    shutdown_event = asyncio.Event()

    def _on_snapshot(snapshot: TranscriptSnapshot) -> None:
        if snapshot.status == "idle":
            shutdown_event.set()

    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        logger.info("종료 시그널 수신")
        shutdown_event.set()

    loop.add_signal_handler(signal.SIGINT, _signal_handler)
    loop.add_signal_handler(signal.SIGTERM, _signal_handler)

    if not aggregator.start():
        logger.error(f"인식 세션을 시작하지 못했습니다: {aggregator.last_error}")
        manager.stop_watch()
        return

    # 시작 이후의 idle 전환(세션 종료/엔진 오류)만 종료 조건으로 사용
    aggregator.subscribe(_on_snapshot)

    try:
        if args.duration > 0:
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=args.duration)
            except asyncio.TimeoutError:
                logger.info(f"{args.duration}초 경과, 자동 종료")
        else:
            await shutdown_event.wait()
    finally:
        await aggregator.shutdown()
        manager.stop_watch()

    logger.info(f"Live Pinyin Transcribe 종료: 확정 항목 {len(aggregator.entries)}개")


if __name__ == "__main__":
    asyncio.run(_main())
