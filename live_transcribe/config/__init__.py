"""
설정 패키지

- schema: Pydantic 기반 AppConfig 스키마
- config_manager: YAML 로드, 환경변수 오버라이드, 핫스왑
"""
