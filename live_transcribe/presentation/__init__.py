"""
표시 계층 패키지

- console: 스냅샷을 터미널에 출력하는 ConsoleRenderer
"""
