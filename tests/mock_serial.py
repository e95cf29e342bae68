"""
Mock Serial Port for Testing

실제 하드웨어 없이 테스트하기 위한 시리얼 포트 모의 객체
RCS 서모스탯의 CR 종료 라인 응답을 시뮬레이션
"""

from typing import Dict, List, Optional, Callable


DEFAULT_STATUS = b'A=1 O=1 Z=1 T=72 SP=70 M=O FM=0\r'


class MockSerial:
    """
    시리얼 포트 모의 객체 (pyserial Serial 호환 부분 집합)

    사용 예:
        mock = MockSerial()
        mock.open()
        mock.set_response(b'A=1 R=1', b'A=1 T=72 M=O\\r')

        mock.write(b'A=1 R=1\\r')
        data = mock.read(mock.in_waiting)
    """

    def __init__(self, *args, **kwargs):
        self.port = kwargs.get('port', 'MOCK')
        self.baudrate = kwargs.get('baudrate', 9600)
        self.timeout = kwargs.get('timeout', 0)
        self.write_timeout = kwargs.get('write_timeout', 1.0)

        self._is_open = True
        self._input = bytearray()
        self.written: List[bytes] = []

        # Request prefix -> Response mapping
        self._responses: Dict[bytes, bytes] = {b'A=1 R=1': DEFAULT_STATUS}

        # Custom response handler
        self._response_handler: Optional[Callable[[bytes], Optional[bytes]]] = None

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self):
        """포트 열기"""
        self._is_open = True
        self._input = bytearray()

    def close(self):
        """포트 닫기"""
        self._is_open = False

    def fileno(self) -> int:
        return 99

    def write(self, data: bytes) -> int:
        """데이터 쓰기 및 응답 준비"""
        if not self._is_open:
            raise IOError("Port not open")

        self.written.append(bytes(data))

        response = self._find_response(data)
        if response:
            self._input.extend(response)

        return len(data)

    def _find_response(self, request: bytes) -> Optional[bytes]:
        """요청에 대한 응답 찾기"""
        if self._response_handler:
            return self._response_handler(request)

        for key, response in self._responses.items():
            if request.startswith(key):
                return response

        return None

    def read(self, size: int = 1) -> bytes:
        """데이터 읽기"""
        if not self._is_open:
            raise IOError("Port not open")

        data = bytes(self._input[:size])
        del self._input[:size]
        return data

    def flush(self):
        """버퍼 플러시"""
        pass

    def reset_input_buffer(self):
        """입력 버퍼 초기화"""
        self._input = bytearray()

    @property
    def in_waiting(self) -> int:
        """읽을 수 있는 바이트 수"""
        return len(self._input)

    def feed(self, data: bytes):
        """서모스탯이 보낸 것처럼 수신 버퍼에 데이터 추가"""
        self._input.extend(data)

    def set_response(self, request_prefix: bytes, response: bytes):
        """
        특정 요청에 대한 응답 설정

        Args:
            request_prefix: 요청 라인의 시작 부분
            response: CR 을 포함한 응답 라인
        """
        self._responses[request_prefix] = response

    def set_response_handler(self, handler: Callable[[bytes], Optional[bytes]]):
        """
        커스텀 응답 핸들러 설정

        Args:
            handler: request -> response 함수
        """
        self._response_handler = handler


def create_mock_serial():
    """MockSerial 인스턴스 생성 헬퍼"""
    mock = MockSerial()
    mock.open()
    return mock
