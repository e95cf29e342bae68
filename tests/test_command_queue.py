"""
CommandQueue Unit Tests

명령 큐 테스트:
- FIFO 순서
- 빈 큐 처리
- 최대 길이 제한
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rcs_bridge.command_queue import CommandQueue, CommandEntry, DEFAULT_MAX_QUEUE_SIZE
from rcs_bridge.protocol import CommandKind
from rcs_bridge.exceptions import QueueFullError


class TestCommandEntry:
    """CommandEntry 데이터클래스 테스트"""

    def test_entry_creation(self):
        """항목 생성"""
        entry = CommandEntry(text="A=1 M=C", kind=CommandKind.BASIC)
        assert entry.text == "A=1 M=C"
        assert entry.kind == CommandKind.BASIC

    def test_entry_str(self):
        """문자열 표현"""
        entry = CommandEntry(text="A=1 SP=70", kind=CommandKind.TRANSPARENT)
        assert "transparent" in str(entry)
        assert "A=1 SP=70" in str(entry)


class TestFIFO:
    """FIFO 순서 테스트"""

    def test_empty_dequeue(self):
        """빈 큐에서 꺼내면 None"""
        queue = CommandQueue()
        assert queue.dequeue() is None
        assert len(queue) == 0
        assert not queue

    def test_order_preserved(self):
        """삽입 순서대로 반환"""
        queue = CommandQueue()
        texts = [f"A=1 SP={70 + i}" for i in range(5)]
        for text in texts:
            queue.enqueue(text, CommandKind.TRANSPARENT)

        result = []
        while queue:
            result.append(queue.dequeue().text)

        assert result == texts

    def test_interleaved(self):
        """삽입/추출 교차 시에도 순서 유지, 중복 없음"""
        queue = CommandQueue()
        queue.enqueue("one", CommandKind.BASIC)
        queue.enqueue("two", CommandKind.BASIC)
        assert queue.dequeue().text == "one"

        queue.enqueue("three", CommandKind.TRANSPARENT)
        assert queue.dequeue().text == "two"
        assert queue.dequeue().text == "three"
        assert queue.dequeue() is None

    def test_duplicates_not_merged(self):
        """같은 명령도 병합하지 않음"""
        queue = CommandQueue()
        queue.enqueue("A=1 M=C", CommandKind.BASIC)
        queue.enqueue("A=1 M=C", CommandKind.BASIC)
        assert len(queue) == 2

    def test_clear(self):
        """전체 삭제"""
        queue = CommandQueue()
        queue.enqueue("A=1 M=C", CommandKind.BASIC)
        queue.clear()
        assert len(queue) == 0


class TestQueueBound:
    """최대 길이 제한 테스트"""

    def test_default_bound(self):
        """기본 최대 길이"""
        assert CommandQueue().max_size == DEFAULT_MAX_QUEUE_SIZE

    def test_rejects_when_full(self):
        """가득 차면 거부, 기존 항목은 유지"""
        queue = CommandQueue(max_size=2)
        queue.enqueue("one", CommandKind.BASIC)
        queue.enqueue("two", CommandKind.BASIC)

        with pytest.raises(QueueFullError):
            queue.enqueue("three", CommandKind.BASIC)

        assert len(queue) == 2
        assert queue.dequeue().text == "one"

    def test_accepts_after_drain(self):
        """꺼낸 뒤에는 다시 추가 가능"""
        queue = CommandQueue(max_size=1)
        queue.enqueue("one", CommandKind.BASIC)
        queue.dequeue()
        queue.enqueue("two", CommandKind.BASIC)
        assert queue.dequeue().text == "two"

    def test_invalid_bound(self):
        """0 이하 최대 길이는 오류"""
        with pytest.raises(ValueError):
            CommandQueue(max_size=0)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
