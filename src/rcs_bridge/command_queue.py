"""
Command Queue Module

서모스탯으로 보낼 명령의 FIFO 큐
- 삽입 순서 그대로 전송 (재정렬/병합 없음)
- 최대 길이 초과 시 새 명령 거부
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from .protocol import CommandKind
from .exceptions import QueueFullError

logger = logging.getLogger(__name__)


DEFAULT_MAX_QUEUE_SIZE = 32


@dataclass
class CommandEntry:
    """대기 중인 시리얼 명령"""
    text: str
    kind: CommandKind

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.text}"


class CommandQueue:
    """
    명령 FIFO 큐

    사용 예:
        queue = CommandQueue()
        queue.enqueue("A=1 M=C", CommandKind.BASIC)

        entry = queue.dequeue()
        if entry:
            print(entry.text)
    """

    def __init__(self, max_size: int = DEFAULT_MAX_QUEUE_SIZE):
        """
        Args:
            max_size: 최대 대기 명령 수
        """
        if max_size < 1:
            raise ValueError(f"max_size must be positive: {max_size}")

        self.max_size = max_size
        self._entries: Deque[CommandEntry] = deque()

    def enqueue(self, text: str, kind: CommandKind) -> CommandEntry:
        """
        명령을 큐 끝에 추가

        Args:
            text: 시리얼 명령 문자열
            kind: 명령 스키마 종류

        Returns:
            생성된 CommandEntry

        Raises:
            QueueFullError: 큐가 가득 찼을 때
        """
        if len(self._entries) >= self.max_size:
            raise QueueFullError(
                f"Command queue full ({self.max_size} entries), rejecting: {text}"
            )

        entry = CommandEntry(text=text, kind=kind)
        self._entries.append(entry)
        logger.debug(f"Queued {entry} (depth {len(self._entries)})")
        return entry

    def dequeue(self) -> Optional[CommandEntry]:
        """
        큐 맨 앞 명령을 꺼냄

        Returns:
            CommandEntry 또는 큐가 비었으면 None
        """
        if not self._entries:
            return None
        return self._entries.popleft()

    def clear(self) -> None:
        """대기 명령 전부 삭제"""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
