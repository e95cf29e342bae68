"""
Tick Scheduler Module

1초 틱마다 시리얼 링크에 최대 1회만 쓰기
- 대기 명령이 있으면 명령 1개 전송 (폴링보다 우선)
- 없으면 폴링 주기에 도달했을 때 폴링 요청 전송
- 폴링 응답이 poll_timeout 틱 안에 오지 않으면 대기 플래그 해제
"""

import logging
from enum import Enum
from typing import Callable

from .command_queue import CommandQueue
from .protocol import build_poll_request, normalize_command, DEFAULT_ADDRESS

logger = logging.getLogger(__name__)


DEFAULT_POLL_RATE = 5       # seconds
MIN_POLL_RATE = 1
MAX_POLL_RATE = 60
DEFAULT_POLL_TIMEOUT = 3    # ticks


class TickAction(Enum):
    """틱 처리 결과"""
    COMMAND = 'COMMAND'
    POLL = 'POLL'
    IDLE = 'IDLE'


def is_valid_poll_rate(value: int) -> bool:
    return MIN_POLL_RATE <= value <= MAX_POLL_RATE


class TickScheduler:
    """
    명령/폴링 중재 스케줄러

    사용 예:
        scheduler = TickScheduler(queue, write_line=serial.write_line)
        loop.call_later(1.0, scheduler.tick)
    """

    def __init__(
        self,
        queue: CommandQueue,
        write_line: Callable[[str], None],
        address: int = DEFAULT_ADDRESS,
        poll_rate: int = DEFAULT_POLL_RATE,
        poll_timeout: int = DEFAULT_POLL_TIMEOUT
    ):
        """
        Args:
            queue: 명령 큐
            write_line: 라인 종료 문자를 붙여 시리얼로 쓰는 함수
            address: 서모스탯 주소
            poll_rate: 폴링 주기 (틱, 1~60)
            poll_timeout: 폴링 응답 대기 한도 (틱)
        """
        if not is_valid_poll_rate(poll_rate):
            raise ValueError(f"Poll rate out of range: {poll_rate}")

        self._queue = queue
        self._write_line = write_line
        self.address = address
        self.poll_rate = poll_rate
        self.poll_timeout = poll_timeout

        self.tick_count = 0
        self.poll_pending = False
        self._pending_ticks = 0

    def tick(self) -> TickAction:
        """
        틱 1회 처리

        Returns:
            이번 틱에 수행한 동작
        """
        self.tick_count += 1
        logger.debug(f"TICK: {self.tick_count}")

        self._check_poll_timeout()

        entry = self._queue.dequeue()
        if entry is not None:
            command = normalize_command(entry.text)
            logger.info(f"Sending command: {command}")
            self._write_line(command)
            return TickAction.COMMAND

        if self.tick_count >= self.poll_rate:
            self.tick_count = 0
            logger.debug("Polling status...")
            self._write_line(build_poll_request(self.address))
            self.poll_pending = True
            self._pending_ticks = 0
            return TickAction.POLL

        return TickAction.IDLE

    def clear_poll_pending(self) -> bool:
        """
        폴링 대기 플래그 해제 (라인 수신 시)

        Returns:
            해제 전 플래그 값
        """
        was_pending = self.poll_pending
        self.poll_pending = False
        self._pending_ticks = 0
        return was_pending

    def _check_poll_timeout(self) -> None:
        if not self.poll_pending:
            return

        self._pending_ticks += 1
        if self._pending_ticks > self.poll_timeout:
            logger.warning(
                f"No response to poll after {self.poll_timeout} ticks, "
                f"clearing pending poll"
            )
            self.clear_poll_pending()
