"""
Serial Communication Layer

RCS 서모스탯 시리얼 포트 래퍼 클래스
RS-232 / RS-485: 9600 baud, 8N1, CR 종료 ASCII 라인
읽기는 non-blocking (완성된 라인이 없으면 None 반환)
"""

import sys
import logging
import time
from typing import Optional, List

import serial
import serial.tools.list_ports

from .protocol import LINE_END
from .exceptions import ConnectionError, CommunicationError, TimeoutError

logger = logging.getLogger(__name__)


# Default serial settings
DEFAULT_BAUDRATE = 9600
DEFAULT_BYTESIZE = serial.EIGHTBITS
DEFAULT_PARITY = serial.PARITY_NONE
DEFAULT_STOPBITS = serial.STOPBITS_ONE
DEFAULT_WRITE_TIMEOUT = 1.0  # seconds
DEFAULT_POSIX_PORT = '/dev/ttyS0'

MAX_LINE_LENGTH = 256  # WS_SIZE 와 동일
LINE_TERMINATORS = (b'\r', b'\n')


class SerialConnection:
    """
    시리얼 포트 연결 관리 클래스

    Context manager 지원:
        with SerialConnection('/dev/ttyS0') as conn:
            conn.write_line('A=1 R=1')
            line = conn.read_line()   # 라인이 완성되지 않았으면 None
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        bytesize: int = DEFAULT_BYTESIZE,
        parity: str = DEFAULT_PARITY,
        stopbits: float = DEFAULT_STOPBITS,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT
    ):
        """
        Args:
            port: 시리얼 포트 이름
                  - Windows: 'COM3', 'COM4', ...
                  - Linux: '/dev/ttyS0', '/dev/ttyUSB0', ...
            baudrate: 보레이트 (기본값: 9600)
            bytesize: 데이터 비트 (기본값: 8)
            parity: 패리티 (기본값: None)
            stopbits: 스톱 비트 (기본값: 1)
            write_timeout: 쓰기 타임아웃 (초)
        """
        self.port = port
        self.baudrate = baudrate
        self.bytesize = bytesize
        self.parity = parity
        self.stopbits = stopbits
        self.write_timeout = write_timeout

        self._serial: Optional[serial.Serial] = None
        self._buffer = bytearray()

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._serial is not None and self._serial.is_open

    def connect(self) -> bool:
        """
        시리얼 포트 연결 (non-blocking 읽기 모드)

        Returns:
            성공 시 True

        Raises:
            ConnectionError: 연결 실패 시
        """
        if self.is_connected:
            logger.warning(f"Already connected to {self.port}")
            return True

        try:
            self._serial = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=self.bytesize,
                parity=self.parity,
                stopbits=self.stopbits,
                timeout=0,
                write_timeout=self.write_timeout
            )
            self._buffer.clear()
            logger.info(f"Connected to {self.port} at {self.baudrate} baud")
            return True

        except serial.SerialException as e:
            raise ConnectionError(f"Failed to connect to {self.port}: {e}")

    def disconnect(self) -> None:
        """시리얼 포트 연결 해제"""
        if self._serial is not None:
            try:
                if self._serial.is_open:
                    self._serial.close()
                    logger.info(f"Disconnected from {self.port}")
            except serial.SerialException as e:
                logger.error(f"Error closing serial port: {e}")
            finally:
                self._serial = None
                self._buffer.clear()

    def fileno(self) -> int:
        """이벤트 루프 감시용 파일 디스크립터"""
        if not self.is_connected:
            raise CommunicationError("Not connected to serial port")
        return self._serial.fileno()

    def write_line(self, text: str) -> int:
        """
        라인 전송 (CR 종료 문자 추가)

        Args:
            text: 전송할 명령 문자열

        Returns:
            전송된 바이트 수

        Raises:
            CommunicationError: 전송 실패 시
            TimeoutError: 쓰기 타임아웃 시
        """
        if not self.is_connected:
            raise CommunicationError("Not connected to serial port")

        data = f"{text}{LINE_END}".encode('ascii', errors='replace')
        try:
            bytes_written = self._serial.write(data)
            self._serial.flush()
            logger.debug(f"TX ({bytes_written} bytes): {text}")
            return bytes_written

        except serial.SerialTimeoutException:
            raise TimeoutError("Write timeout")
        except serial.SerialException as e:
            raise CommunicationError(f"Failed to send data: {e}")

    def read_line(self) -> Optional[str]:
        """
        non-blocking 라인 읽기

        수신 가능한 바이트를 내부 버퍼에 누적하고 CR/LF 로 끝나는
        라인이 완성되면 반환

        Returns:
            완성된 라인 (종료 문자 제외) 또는 None

        Raises:
            CommunicationError: 수신 실패 시
        """
        if not self.is_connected:
            raise CommunicationError("Not connected to serial port")

        try:
            waiting = self._serial.in_waiting
            if waiting:
                self._buffer.extend(self._serial.read(waiting))
        except serial.SerialException as e:
            raise CommunicationError(f"Failed to receive data: {e}")

        return self._take_line()

    def _take_line(self) -> Optional[str]:
        """버퍼에서 완성된 라인 하나를 꺼냄 (빈 라인은 건너뜀)"""
        while True:
            ends = [self._buffer.find(t) for t in LINE_TERMINATORS]
            ends = [i for i in ends if i >= 0]

            if not ends:
                if len(self._buffer) > MAX_LINE_LENGTH:
                    logger.warning(
                        f"Discarding {len(self._buffer)} bytes without line terminator"
                    )
                    self._buffer.clear()
                return None

            end = min(ends)
            raw = bytes(self._buffer[:end])
            del self._buffer[:end + 1]

            if raw:
                line = raw.decode('ascii', errors='replace')
                logger.debug(f"RX: {line}")
                return line

    def flush_input(self) -> None:
        """수신 버퍼 비우기 (부분 명령 응답 제거)"""
        if not self.is_connected:
            raise CommunicationError("Not connected to serial port")

        self._serial.reset_input_buffer()
        self._buffer.clear()

    def resync(self, settle: float = 0.1) -> None:
        """
        빈 라인 전송 후 입력 버퍼를 비워 서모스탯 쪽 부분 명령 제거

        Args:
            settle: 응답 대기 시간 (초)
        """
        self.write_line('')
        time.sleep(settle)
        self.flush_input()

    def __enter__(self) -> 'SerialConnection':
        """Context manager entry"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit"""
        self.disconnect()

    @staticmethod
    def list_ports() -> List[str]:
        """
        사용 가능한 시리얼 포트 목록 조회

        Returns:
            포트 이름 목록
        """
        ports = serial.tools.list_ports.comports()
        return [port.device for port in ports]

    @staticmethod
    def get_default_port() -> str:
        """
        플랫폼에 맞는 기본 포트 반환

        Returns:
            - Windows: 첫 번째 COM 포트 (없으면 'COM1')
            - Linux: /dev/ttyS0
        """
        if sys.platform == 'win32':
            ports = SerialConnection.list_ports()
            return ports[0] if ports else 'COM1'
        return DEFAULT_POSIX_PORT
