"""
Live Pinyin Transcribe

실시간 음성 인식 결과를 확정 전사 로그로 집계하고, 한자 구간에 병음을 붙입니다.

파이프라인:
    RecognitionEngine → UtteranceAggregator → annotate() → 표시 계층
"""

__version__ = "0.1.0"
