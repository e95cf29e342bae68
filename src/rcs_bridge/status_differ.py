"""
Status Differ Module

이전/현재 폴링 상태 라인을 비교하여 변경된 필드만 추출
- 라인이 완전히 같으면 보고 없음
- 필드 수가 다르면 전체 보고 (위치 비교 불가)
- 필드 수가 같으면 위치 기준 비교 (서모스탯은 항상 같은 순서로 필드 출력)
- 형식 오류 토큰이 있으면 전체 보고로 전환
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .protocol import MAX_STATUS_FIELDS, tokenize_status, split_field
from .exceptions import StatusParseError

logger = logging.getLogger(__name__)


@dataclass
class StatusDelta:
    """상태 비교 결과"""
    fields: Dict[str, str] = field(default_factory=dict)  # 변경된 필드 (주소 제외)
    full_report: bool = False                             # 전체 필드 보고 여부
    bad_tokens: List[str] = field(default_factory=list)   # '=' 누락 토큰

    def __len__(self) -> int:
        return len(self.fields)

    def __bool__(self) -> bool:
        return bool(self.fields)


class StatusDiffer:
    """
    폴링 응답 변경 감지기

    사용 예:
        differ = StatusDiffer()
        delta = differ.diff("A=1 M=O FM=0", "A=1 M=H FM=0")
        print(delta.fields)   # {'m': 'H'}
    """

    def __init__(self, max_fields: int = MAX_STATUS_FIELDS):
        self.max_fields = max_fields

    def diff(self, previous: str, current: str) -> Optional[StatusDelta]:
        """
        두 상태 라인 비교

        Args:
            previous: 마지막으로 버스에 보고된 라인 (최초에는 빈 문자열)
            current: 새로 수신된 폴링 응답

        Returns:
            StatusDelta, 라인이 동일하면 None
        """
        if previous == current:
            return None

        cur_tokens = tokenize_status(current, self.max_fields)
        last_tokens = tokenize_status(previous, self.max_fields)

        if len(cur_tokens) != len(last_tokens):
            logger.debug(
                f"Field count changed ({len(last_tokens)} -> {len(cur_tokens)}), "
                f"reporting all fields"
            )
            return self._full(cur_tokens)

        delta = StatusDelta()
        for cur, last in zip(cur_tokens, last_tokens):
            if cur == last:
                continue
            try:
                status_field = split_field(cur)
            except StatusParseError as e:
                logger.debug(f"Status parse error, reporting all fields: {e}")
                return self._full(cur_tokens)

            if not status_field.is_address:
                logger.debug(f"Changed: key = {status_field.key}, value = {status_field.value}")
                delta.fields[status_field.key] = status_field.value

        return delta

    def _full(self, tokens: List[str]) -> StatusDelta:
        """모든 필드를 변경된 것으로 처리"""
        delta = StatusDelta(full_report=True)
        for token in tokens:
            try:
                status_field = split_field(token)
            except StatusParseError as e:
                logger.debug(f"Status parse error: {e}")
                delta.bad_tokens.append(token)
                continue
            if not status_field.is_address:
                delta.fields[status_field.key] = status_field.value
        return delta
