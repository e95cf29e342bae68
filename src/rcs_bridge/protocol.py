"""
RCS Thermostat Serial Protocol

라인 구조 (ASCII, CR 종료):
    TX 명령: A=<addr> KEY=VALUE KEY=VALUE ...\\r
    TX 폴링: A=<addr> R=1\\r
    RX 상태: A=<addr> KEY=VALUE KEY=VALUE ...

필드는 공백으로 구분되며 각 토큰은 KEY=VALUE 형식
A (주소) 필드는 라우팅 정보이므로 xPL 버스로 전달하지 않음
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from .exceptions import StatusParseError


# Protocol constants
LINE_END = '\r'
FIELD_SEPARATOR = '='
ADDRESS_KEY = 'a'

DEFAULT_ADDRESS = 1
MIN_ADDRESS = 0
MAX_ADDRESS = 255

# 작업 버퍼 크기 및 필드 제한
WS_SIZE = 256
PAIR_HEADROOM = 33          # NAME=VALUE 한 쌍당 예약 공간
MAX_STATUS_FIELDS = 19      # 상태 라인에서 파싱하는 최대 필드 수


class CommandKind(Enum):
    """명령 스키마 종류"""
    TRANSPARENT = 'transparent'  # hvac.transparent - 키/값 그대로 전달
    BASIC = 'basic'              # hvac.basic - 고정 명령 어휘


# hvac-mode 명령 테이블
HVAC_MODE_COMMANDS: Dict[str, str] = {
    'off': ' M=O',
    'heat': ' M=H',
    'cool': ' M=C',
    'auto': ' M=A',
}

# fan-mode 명령 테이블
FAN_MODE_COMMANDS: Dict[str, str] = {
    'auto': ' FM=0',
    'on': ' FM=1',
}

# basic 스키마 명령 어휘 -> 모드 테이블
BASIC_COMMANDS: Dict[str, Dict[str, str]] = {
    'hvac-mode': HVAC_MODE_COMMANDS,
    'fan-mode': FAN_MODE_COMMANDS,
}


@dataclass(frozen=True)
class StatusField:
    """상태 라인의 단일 필드"""
    key: str    # 소문자 키
    value: str

    @property
    def is_address(self) -> bool:
        return self.key == ADDRESS_KEY


def build_poll_request(address: int) -> str:
    """
    주소 지정 폴링 요청 생성 (라인 종료 문자 제외)

    Args:
        address: 서모스탯 주소 (0~255)

    Returns:
        폴링 명령 문자열 (예: "A=1 R=1")
    """
    return f"A={address} R=1"


def normalize_command(text: str) -> str:
    """서모스탯은 대문자 명령을 기대함"""
    return text.upper()


def tokenize_status(line: str, limit: int = MAX_STATUS_FIELDS) -> List[str]:
    """
    상태 라인을 공백 기준 토큰 리스트로 분리

    limit 개수를 초과하는 토큰은 조용히 버림

    Args:
        line: 수신된 상태 라인
        limit: 최대 토큰 수

    Returns:
        원본 토큰 리스트 (순서 유지)
    """
    if not line:
        return []
    return line.split()[:limit]


def split_field(token: str) -> StatusField:
    """
    KEY=VALUE 토큰 분리

    Args:
        token: 상태 토큰

    Returns:
        StatusField (키는 소문자)

    Raises:
        StatusParseError: '=' 구분자가 없을 때
    """
    key, sep, value = token.partition(FIELD_SEPARATOR)
    if not sep:
        raise StatusParseError(f"Missing '=' in status token: {token!r}")
    return StatusField(key=key.lower(), value=value)


def parse_status(line: str, limit: int = MAX_STATUS_FIELDS) -> Tuple[Dict[str, str], List[str]]:
    """
    상태 라인을 Field Set으로 변환

    주소 필드는 제외되며, 형식이 잘못된 토큰은 건너뛰고 별도로 반환

    Args:
        line: 수신된 상태 라인
        limit: 최대 토큰 수

    Returns:
        Tuple[Dict[str, str], List[str]]: (필드 딕셔너리, 파싱 실패 토큰)
    """
    fields: Dict[str, str] = {}
    bad_tokens: List[str] = []

    for token in tokenize_status(line, limit):
        try:
            field = split_field(token)
        except StatusParseError:
            bad_tokens.append(token)
            continue
        if not field.is_address:
            fields[field.key] = field.value

    return fields, bad_tokens
