"""
Bridge Controller Module

xPL 버스와 RCS 서모스탯 시리얼 링크를 연결하는 메인 클래스
- handle_message: xPL -> 명령 큐
- tick: 명령 전송 또는 폴링 (1초 주기)
- handle_line: 시리얼 응답 -> xPL status / trigger
"""

import logging
from enum import Enum
from typing import Optional, TYPE_CHECKING

from .command_queue import CommandQueue, CommandEntry, DEFAULT_MAX_QUEUE_SIZE
from .protocol import parse_status, DEFAULT_ADDRESS
from .scheduler import (
    TickScheduler, TickAction, is_valid_poll_rate,
    DEFAULT_POLL_RATE, DEFAULT_POLL_TIMEOUT
)
from .status_differ import StatusDiffer, StatusDelta
from .translator import MessageTranslator
from .xpl_message import XPLMessage
from .exceptions import BusError

if TYPE_CHECKING:
    from .serial_comm import SerialConnection
    from .xpl_service import XPLService

logger = logging.getLogger(__name__)


POLL_RATE_CFG_NAME = 'prate'


class BridgeState(Enum):
    """다음 수신 라인의 해석 방식"""
    AWAITING_COMMAND_RESPONSE = 'AWAITING_COMMAND_RESPONSE'
    AWAITING_POLL_RESPONSE = 'AWAITING_POLL_RESPONSE'


class BridgeController:
    """
    브리지 컨트롤러

    사용 예:
        bridge = BridgeController(serial_conn, service, address=1)
        service.add_message_listener(bridge.handle_message)

        # 이벤트 루프에서
        bridge.tick()                    # 1초마다
        bridge.handle_line(line)         # 시리얼 라인 수신 시
    """

    def __init__(
        self,
        serial: 'SerialConnection',
        bus: 'XPLService',
        address: int = DEFAULT_ADDRESS,
        poll_rate: int = DEFAULT_POLL_RATE,
        poll_timeout: int = DEFAULT_POLL_TIMEOUT,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE
    ):
        """
        Args:
            serial: write_line(text) 를 제공하는 시리얼 연결
            bus: send(message) 를 제공하는 xPL 서비스
            address: 서모스탯 주소 (0~255)
            poll_rate: 폴링 주기 (초, 1~60)
            poll_timeout: 폴링 응답 대기 한도 (틱)
            max_queue_size: 명령 큐 최대 길이
        """
        self.address = address
        self._serial = serial
        self._bus = bus

        self.queue = CommandQueue(max_size=max_queue_size)
        self.translator = MessageTranslator(self.queue, address=address)
        self.differ = StatusDiffer()
        self.scheduler = TickScheduler(
            self.queue,
            write_line=serial.write_line,
            address=address,
            poll_rate=poll_rate,
            poll_timeout=poll_timeout
        )

        self.last_status = ''

    @property
    def poll_rate(self) -> int:
        return self.scheduler.poll_rate

    @property
    def poll_pending(self) -> bool:
        return self.scheduler.poll_pending

    @property
    def state(self) -> BridgeState:
        if self.scheduler.poll_pending:
            return BridgeState.AWAITING_POLL_RESPONSE
        return BridgeState.AWAITING_COMMAND_RESPONSE

    # xPL -> serial

    def handle_message(self, message: XPLMessage) -> Optional[CommandEntry]:
        """xPL 메시지 리스너"""
        return self.translator.handle_message(message)

    def tick(self) -> TickAction:
        """1초 틱 핸들러"""
        return self.scheduler.tick()

    # serial -> xPL

    def handle_line(self, line: str) -> Optional[XPLMessage]:
        """
        시리얼 라인 수신 처리

        폴링 대기 중이면 변경분만 trigger 로, 아니면 전체를 status 로 보고

        Args:
            line: 수신된 라인 (라인 종료 문자 제외)

        Returns:
            송신한 xPL 메시지 또는 None
        """
        line = line.strip()
        if not line:
            return None

        logger.debug(f"RX ({self.state.value}): {line}")
        if self.scheduler.clear_poll_pending():
            return self._handle_poll_response(line)
        return self._handle_command_response(line)

    def _handle_poll_response(self, line: str) -> Optional[XPLMessage]:
        delta: Optional[StatusDelta] = self.differ.diff(self.last_status, line)
        if delta is None:
            return None

        logger.info(f"Got updated poll status: {line}")
        self.last_status = line

        if delta.full_report:
            logger.info(f"Reporting all {len(delta)} fields")
        if delta.bad_tokens:
            logger.warning(f"Skipped malformed status tokens: {delta.bad_tokens}")

        if not delta:
            logger.debug("No reportable fields changed")
            return None

        return self._send(self.translator.build_trigger(delta.fields), 'Trigger')

    def _handle_command_response(self, line: str) -> Optional[XPLMessage]:
        logger.info(f"Non-poll response: {line}")
        fields, bad_tokens = parse_status(line)
        for token in bad_tokens:
            logger.warning(f"Parse error in status token: {token!r}")

        return self._send(self.translator.build_status(fields), 'Status')

    def _send(self, message: XPLMessage, label: str) -> Optional[XPLMessage]:
        try:
            self._bus.send(message)
        except BusError as e:
            logger.error(f"{label} message transmission failed: {e}")
            return None
        return message

    # configuration

    def set_poll_rate(self, value: int) -> bool:
        """
        폴링 주기 변경

        Args:
            value: 새 폴링 주기 (초)

        Returns:
            적용되었으면 True, 범위 밖이면 False
        """
        if not is_valid_poll_rate(value):
            logger.warning(f"Rejected poll rate {value}, keeping {self.poll_rate}")
            return False

        self.scheduler.poll_rate = value
        logger.info(f"Poll rate set to {value} seconds")
        return True

    def on_config_changed(self, service: 'XPLService') -> None:
        """
        설정 변경 리스너

        잘못된 값은 거부하고 현재 값을 서비스 설정에 다시 기록
        """
        raw = service.get_config_value(POLL_RATE_CFG_NAME)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = 0

        if not self.set_poll_rate(value):
            service.set_config_value(POLL_RATE_CFG_NAME, str(self.poll_rate))

    def discard_pending(self) -> int:
        """
        종료 시 아직 전송되지 않은 명령 폐기

        Returns:
            폐기된 명령 수
        """
        count = len(self.queue)
        if count:
            logger.warning(f"Discarding {count} unsent command(s)")
        self.queue.clear()
        return count
