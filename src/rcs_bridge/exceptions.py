"""
RCS Bridge Custom Exceptions
"""


class RCSBridgeError(Exception):
    """브리지 기본 예외"""
    pass


class CommunicationError(RCSBridgeError):
    """통신 오류 (전송/수신 실패)"""
    pass


class ConnectionError(RCSBridgeError):
    """시리얼 포트 연결 오류"""
    pass


class TimeoutError(RCSBridgeError):
    """응답 타임아웃"""
    pass


class CommandError(RCSBridgeError):
    """알 수 없는 명령, 모드 또는 필수 필드 누락"""
    pass


class StatusParseError(RCSBridgeError):
    """상태 라인 파싱 오류 ('=' 구분자 누락 등)"""
    pass


class QueueFullError(RCSBridgeError):
    """명령 큐가 가득 참"""
    pass


class ConfigError(RCSBridgeError):
    """설정 값 오류"""
    pass


class BusError(RCSBridgeError):
    """xPL 버스 송신/초기화 오류"""
    pass


class XPLParseError(BusError):
    """xPL 메시지 구조 오류"""
    pass
