"""
xPL Message Module

xPL 메시지 모델 및 텍스트 코덱

메시지 구조:
    xpl-cmnd
    {
    hop=1
    source=hwstar-xplrcs.host
    target=*
    }
    hvac.basic
    {
    zone=1
    command=hvac-mode
    mode=cool
    }
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .exceptions import XPLParseError

logger = logging.getLogger(__name__)


BROADCAST_TARGET = '*'
DEFAULT_HOP = 1


class MessageType(Enum):
    """xPL 메시지 종류"""
    COMMAND = 'xpl-cmnd'
    STATUS = 'xpl-stat'
    TRIGGER = 'xpl-trig'


@dataclass
class NameValue:
    """본문의 name=value 쌍"""
    name: str
    value: str
    is_binary: bool = False

    def encode(self) -> str:
        sep = '!=' if self.is_binary else '='
        return f"{self.name}{sep}{self.value}"


@dataclass
class XPLMessage:
    """
    xPL 메시지

    사용 예:
        msg = XPLMessage(MessageType.STATUS, 'xplrcs', 'status')
        msg.set('temp', '72')
        wire = msg.encode()

        received = XPLMessage.parse(wire)
        print(received.get('temp'))
    """
    msg_type: MessageType
    schema_class: str
    schema_type: str
    source: str = ''
    target: str = BROADCAST_TARGET
    hop: int = DEFAULT_HOP
    body: List[NameValue] = field(default_factory=list)

    @property
    def schema(self) -> str:
        return f"{self.schema_class}.{self.schema_type}"

    @property
    def is_broadcast(self) -> bool:
        """target이 '*' 이면 브로드캐스트"""
        return self.target == BROADCAST_TARGET

    @property
    def is_command(self) -> bool:
        return self.msg_type == MessageType.COMMAND

    def get(self, name: str) -> Optional[str]:
        """첫 번째로 일치하는 값 반환 (없으면 None)"""
        for pair in self.body:
            if pair.name == name:
                return pair.value
        return None

    def set(self, name: str, value: str) -> None:
        """값 설정 (기존 키가 있으면 교체, 없으면 추가)"""
        for pair in self.body:
            if pair.name == name:
                pair.value = value
                pair.is_binary = False
                return
        self.body.append(NameValue(name, value))

    def add(self, name: str, value: str, is_binary: bool = False) -> None:
        """중복 키를 허용하여 추가"""
        self.body.append(NameValue(name, value, is_binary))

    def update(self, values: Dict[str, str]) -> None:
        for name, value in values.items():
            self.set(name, value)

    def clear_body(self) -> None:
        self.body.clear()

    def items(self) -> Iterator[NameValue]:
        return iter(self.body)

    def to_dict(self) -> Dict[str, str]:
        """텍스트 값만 딕셔너리로 변환"""
        return {p.name: p.value for p in self.body if not p.is_binary}

    def encode(self) -> str:
        """
        xPL 와이어 포맷 문자열 생성

        Returns:
            인코딩된 메시지 텍스트
        """
        lines = [
            self.msg_type.value,
            '{',
            f"hop={self.hop}",
            f"source={self.source}",
            f"target={self.target}",
            '}',
            self.schema,
            '{',
        ]
        lines.extend(pair.encode() for pair in self.body)
        lines.append('}')
        return '\n'.join(lines) + '\n'

    @classmethod
    def parse(cls, text: str) -> 'XPLMessage':
        """
        xPL 와이어 포맷 파싱

        Args:
            text: 수신된 메시지 텍스트

        Returns:
            XPLMessage

        Raises:
            XPLParseError: 구조 오류 시
        """
        lines = [line.strip() for line in text.replace('\r', '').split('\n')]
        while lines and not lines[-1]:
            lines.pop()

        if len(lines) < 8:
            raise XPLParseError(f"Message too short: {len(lines)} lines")

        try:
            msg_type = MessageType(lines[0].lower())
        except ValueError:
            raise XPLParseError(f"Unknown message type: {lines[0]}")

        header, pos = cls._parse_block(lines, 1)
        schema = lines[pos] if pos < len(lines) else ''
        schema_class, dot, schema_type = schema.partition('.')
        if not dot or not schema_class or not schema_type:
            raise XPLParseError(f"Invalid schema: {schema!r}")

        body, pos = cls._parse_block(lines, pos + 1)
        if pos != len(lines):
            raise XPLParseError("Trailing data after message body")

        header_values = {pair.name: pair.value for pair in header}
        for required in ('hop', 'source', 'target'):
            if required not in header_values:
                raise XPLParseError(f"Missing header field: {required}")

        try:
            hop = int(header_values['hop'])
        except ValueError:
            raise XPLParseError(f"Invalid hop count: {header_values['hop']}")

        return cls(
            msg_type=msg_type,
            schema_class=schema_class.lower(),
            schema_type=schema_type.lower(),
            source=header_values['source'],
            target=header_values['target'],
            hop=hop,
            body=body,
        )

    @staticmethod
    def _parse_block(lines: List[str], pos: int):
        """'{' ... '}' 블록 파싱, (쌍 리스트, 다음 위치) 반환"""
        if pos >= len(lines) or lines[pos] != '{':
            raise XPLParseError(f"Expected '{{' at line {pos + 1}")

        pairs: List[NameValue] = []
        pos += 1
        while pos < len(lines) and lines[pos] != '}':
            line = lines[pos]
            name, sep, value = line.partition('=')
            if not sep or not name:
                raise XPLParseError(f"Invalid name/value line: {line!r}")
            if name.endswith('!'):
                pairs.append(NameValue(name[:-1].lower(), value, is_binary=True))
            else:
                pairs.append(NameValue(name.lower(), value))
            pos += 1

        if pos >= len(lines):
            raise XPLParseError("Unterminated block")

        return pairs, pos + 1
