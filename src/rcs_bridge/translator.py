"""
Message Translator Module

xPL 명령 메시지 <-> RCS 시리얼 명령 변환
- hvac.transparent: 본문 name=value 쌍을 그대로 전달
- hvac.basic: hvac-mode / fan-mode 고정 어휘
- hvac.request: 수신만 하고 처리하지 않음 (향후 상태 요청용)

상태 방향:
- xplrcs.status: 명령 응답 전체 필드 보고
- xplrcs.trigger: 폴링 응답 중 변경된 필드만 보고
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from .command_queue import CommandEntry, CommandQueue
from .protocol import (
    CommandKind, BASIC_COMMANDS, WS_SIZE, PAIR_HEADROOM, DEFAULT_ADDRESS
)
from .xpl_message import XPLMessage, MessageType
from .exceptions import CommandError, QueueFullError

logger = logging.getLogger(__name__)


SCHEMA_CLASS = 'hvac'
STATUS_SCHEMA = ('xplrcs', 'status')
TRIGGER_SCHEMA = ('xplrcs', 'trigger')


class BaseCommandHandler(ABC):
    """명령 핸들러 기본 클래스"""

    kind: Optional[CommandKind] = None

    def __init__(self, address: int = DEFAULT_ADDRESS):
        self.address = address

    @abstractmethod
    def build(self, message: XPLMessage) -> Optional[str]:
        """
        xPL 명령을 시리얼 명령 문자열로 변환

        Args:
            message: 수신된 xPL 명령 메시지

        Returns:
            시리얼 명령 문자열 (큐에 넣을 것이 없으면 None)

        Raises:
            CommandError: 필수 필드 누락 또는 알 수 없는 값
        """
        pass


class TransparentHandler(BaseCommandHandler):
    """
    hvac.transparent: A=<addr> 뒤에 본문 name=value 쌍을 그대로 붙임

    본문이 비어 있으면 A=<addr> 만 전송 (서모스탯은 전체 상태로 응답)
    작업 버퍼(WS_SIZE)에 들어가지 않는 메시지는 잘라내지 않고 거부
    """

    kind = CommandKind.TRANSPARENT

    def build(self, message: XPLMessage) -> Optional[str]:
        pairs = [pair for pair in message.items() if not pair.is_binary]

        ws = f"A={self.address}"
        for pair in pairs:
            text = f"{pair.name}={pair.value}"
            if len(text) >= PAIR_HEADROOM:
                raise CommandError(
                    f"Transparent pair too long ({len(text)} chars): {text}"
                )
            if len(ws) + 1 > WS_SIZE - PAIR_HEADROOM:
                raise CommandError(
                    f"Transparent command exceeds {WS_SIZE} byte buffer "
                    f"({len(pairs)} pairs)"
                )
            ws = f"{ws} {text}"

        logger.debug(f"Parsed transparent command: {ws}")
        return ws


class BasicHandler(BaseCommandHandler):
    """
    hvac.basic: zone + command (+ mode) 를 고정 테이블로 변환

    zone -> 주소 매핑은 현재 zone 1 만 지원
    """

    kind = CommandKind.BASIC

    def __init__(self, address: int = DEFAULT_ADDRESS, zones: Optional[Dict[str, int]] = None):
        super().__init__(address)
        self.zones = zones if zones is not None else {'1': address}

    def build(self, message: XPLMessage) -> Optional[str]:
        command = message.get('command')
        if command is None:
            raise CommandError("No command key in message")

        zone = message.get('zone')
        if zone is None:
            raise CommandError("No zone key in message")

        address = self.zones.get(zone)
        if address is None:
            raise CommandError(f"Unsupported zone: {zone}")

        modes = BASIC_COMMANDS.get(command)
        if modes is None:
            raise CommandError(f"Unrecognized command: {command}")

        mode = message.get('mode')
        if mode is None:
            raise CommandError(f"No mode key for command: {command}")

        suffix = modes.get(mode)
        if suffix is None:
            raise CommandError(f"Unrecognized mode for {command}: {mode}")

        return f"A={address}{suffix}"


class RequestHandler(BaseCommandHandler):
    """hvac.request: 현재는 수신만 함"""

    def build(self, message: XPLMessage) -> Optional[str]:
        logger.debug("Status request received (not supported yet)")
        return None


class MessageTranslator:
    """
    xPL 메시지 변환 통합 관리자

    사용 예:
        queue = CommandQueue()
        translator = MessageTranslator(queue, address=1)
        translator.handle_message(msg)    # 명령이면 큐에 추가

        status = translator.build_status({'m': 'C'})
    """

    def __init__(self, queue: CommandQueue, address: int = DEFAULT_ADDRESS):
        self.address = address
        self._queue = queue

        self._handlers: Dict[Tuple[str, str], BaseCommandHandler] = {}
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """핸들러 초기화"""
        transparent = TransparentHandler(self.address)
        self._handlers = {
            (SCHEMA_CLASS, 'transparent'): transparent,
            (SCHEMA_CLASS, 'transp'): transparent,
            (SCHEMA_CLASS, 'basic'): BasicHandler(self.address),
            (SCHEMA_CLASS, 'request'): RequestHandler(self.address),
        }

    def get_handler(self, schema_class: str, schema_type: str) -> Optional[BaseCommandHandler]:
        """스키마 class/type 으로 핸들러 조회"""
        return self._handlers.get((schema_class, schema_type))

    def handle_message(self, message: XPLMessage) -> Optional[CommandEntry]:
        """
        수신 메시지 처리

        브로드캐스트가 아닌 명령 메시지만 처리하며, 오류는 로그만 남기고 버림

        Args:
            message: 수신된 xPL 메시지

        Returns:
            큐에 추가된 CommandEntry 또는 None
        """
        if message.is_broadcast or not message.is_command:
            return None

        logger.info(
            f"Command received: class = {message.schema_class}, "
            f"type = {message.schema_type}"
        )

        handler = self.get_handler(message.schema_class, message.schema_type)
        if not handler:
            logger.debug(f"No handler for schema: {message.schema}")
            return None

        try:
            text = handler.build(message)
        except CommandError as e:
            logger.warning(f"Rejected {message.schema} command: {e}")
            return None

        if text is None:
            return None

        try:
            return self._queue.enqueue(text, handler.kind)
        except QueueFullError as e:
            logger.error(str(e))
            return None

    @staticmethod
    def build_status(fields: Dict[str, str]) -> XPLMessage:
        """명령 응답 전체 보고 메시지 (xpl-stat, xplrcs.status)"""
        message = XPLMessage(MessageType.STATUS, *STATUS_SCHEMA)
        message.update(fields)
        return message

    @staticmethod
    def build_trigger(fields: Dict[str, str]) -> XPLMessage:
        """폴링 응답 변경분 보고 메시지 (xpl-trig, xplrcs.trigger)"""
        message = XPLMessage(MessageType.TRIGGER, *TRIGGER_SCHEMA)
        message.update(fields)
        return message
