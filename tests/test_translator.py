"""
MessageTranslator Unit Tests

xPL 명령 변환 테스트:
- hvac.basic (hvac-mode / fan-mode)
- hvac.transparent (버퍼 한도 포함)
- hvac.request (무처리)
- 브로드캐스트 / 비명령 메시지 무시
- status / trigger 메시지 생성
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rcs_bridge.translator import (
    MessageTranslator, TransparentHandler, BasicHandler, RequestHandler
)
from rcs_bridge.command_queue import CommandQueue
from rcs_bridge.protocol import CommandKind, normalize_command
from rcs_bridge.xpl_message import XPLMessage, MessageType
from rcs_bridge.exceptions import CommandError


BRIDGE_ID = 'hwstar-xplrcs.test'


def make_command(schema_type, body=None, target=BRIDGE_ID, msg_type=MessageType.COMMAND):
    """테스트용 xPL 명령 메시지 생성"""
    message = XPLMessage(msg_type, 'hvac', schema_type, source='acme-ui.den', target=target)
    for name, value in (body or []):
        message.add(name, value)
    return message


@pytest.fixture
def queue():
    return CommandQueue()


@pytest.fixture
def translator(queue):
    return MessageTranslator(queue, address=1)


class TestBasicCommand:
    """hvac.basic 변환 테스트"""

    def test_hvac_mode_cool(self, translator, queue):
        """cool 모드 -> A=1 M=C"""
        msg = make_command('basic', [('zone', '1'), ('command', 'hvac-mode'), ('mode', 'cool')])
        entry = translator.handle_message(msg)

        assert entry is not None
        assert entry.kind == CommandKind.BASIC
        assert normalize_command(entry.text) == "A=1 M=C"
        assert len(queue) == 1

    @pytest.mark.parametrize('mode,expected', [
        ('off', 'A=1 M=O'),
        ('heat', 'A=1 M=H'),
        ('auto', 'A=1 M=A'),
    ])
    def test_hvac_modes(self, translator, mode, expected):
        """hvac-mode 전체"""
        msg = make_command('basic', [('zone', '1'), ('command', 'hvac-mode'), ('mode', mode)])
        assert translator.handle_message(msg).text == expected

    @pytest.mark.parametrize('mode,expected', [
        ('auto', 'A=1 FM=0'),
        ('on', 'A=1 FM=1'),
    ])
    def test_fan_modes(self, translator, mode, expected):
        """fan-mode 전체"""
        msg = make_command('basic', [('zone', '1'), ('command', 'fan-mode'), ('mode', mode)])
        assert translator.handle_message(msg).text == expected

    def test_unknown_mode_rejected(self, translator, queue):
        """알 수 없는 모드는 큐에 넣지 않음"""
        msg = make_command('basic', [('zone', '1'), ('command', 'hvac-mode'), ('mode', 'balmy')])
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_unknown_command_rejected(self, translator, queue):
        """알 수 없는 명령"""
        msg = make_command('basic', [('zone', '1'), ('command', 'defrost'), ('mode', 'on')])
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_missing_zone(self, translator, queue):
        """zone 누락"""
        msg = make_command('basic', [('command', 'hvac-mode'), ('mode', 'cool')])
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_missing_command(self, translator, queue):
        """command 누락"""
        msg = make_command('basic', [('zone', '1'), ('mode', 'cool')])
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_missing_mode(self, translator, queue):
        """mode 누락"""
        msg = make_command('basic', [('zone', '1'), ('command', 'fan-mode')])
        assert translator.handle_message(msg) is None

    def test_unsupported_zone(self, translator, queue):
        """zone 1 이외는 미지원"""
        msg = make_command('basic', [('zone', '2'), ('command', 'hvac-mode'), ('mode', 'cool')])
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_zone_maps_to_configured_address(self, queue):
        """zone 1 은 설정된 주소로 매핑"""
        translator = MessageTranslator(queue, address=7)
        msg = make_command('basic', [('zone', '1'), ('command', 'hvac-mode'), ('mode', 'heat')])
        assert translator.handle_message(msg).text == "A=7 M=H"


class TestTransparentCommand:
    """hvac.transparent 변환 테스트"""

    def test_pairs_forwarded(self, translator):
        """본문 쌍을 순서대로 전달"""
        msg = make_command('transparent', [('sp', '72'), ('m', 'h')])
        entry = translator.handle_message(msg)

        assert entry.kind == CommandKind.TRANSPARENT
        assert entry.text == "A=1 sp=72 m=h"
        assert normalize_command(entry.text) == "A=1 SP=72 M=H"

    def test_transp_alias(self, translator):
        """hvac.transp 스키마도 허용"""
        msg = make_command('transp', [('fm', '1')])
        assert translator.handle_message(msg).text == "A=1 fm=1"

    def test_binary_pairs_skipped(self, translator):
        """바이너리 값은 제외"""
        msg = make_command('transparent', [('sp', '72')])
        msg.add('blob', '0A0B', is_binary=True)
        assert translator.handle_message(msg).text == "A=1 sp=72"

    def test_uses_configured_address(self, queue):
        """설정된 주소 사용"""
        translator = MessageTranslator(queue, address=42)
        msg = make_command('transparent', [('r', '1')])
        assert translator.handle_message(msg).text == "A=42 r=1"

    def test_empty_body_sends_address_only(self, translator, queue):
        """본문이 없으면 주소만 전송"""
        entry = translator.handle_message(make_command('transparent'))

        assert entry.text == "A=1"
        assert entry.kind == CommandKind.TRANSPARENT
        assert len(queue) == 1
        assert queue.dequeue() is entry

    def test_binary_only_body_sends_address_only(self, translator):
        """바이너리 값만 있으면 주소만 전송"""
        msg = make_command('transparent')
        msg.add('blob', '0A0B', is_binary=True)
        assert translator.handle_message(msg).text == "A=1"

    def test_buffer_capacity_fits(self):
        """최대 길이 쌍 7개는 허용"""
        handler = TransparentHandler(address=1)
        msg = make_command('transparent', [(f"k{i:02d}", 'x' * 28) for i in range(7)])
        text = handler.build(msg)
        assert text.count('=') == 8

    def test_buffer_overflow_rejected(self, translator, queue):
        """버퍼를 넘는 메시지는 잘라내지 않고 거부"""
        msg = make_command('transparent', [(f"k{i:02d}", 'x' * 28) for i in range(8)])
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_long_pair_rejected(self):
        """한 쌍이 너무 길면 거부"""
        handler = TransparentHandler(address=1)
        msg = make_command('transparent', [('note', 'y' * 40)])
        with pytest.raises(CommandError):
            handler.build(msg)


class TestRequestAndIgnored:
    """request 및 무시 대상 테스트"""

    def test_request_is_noop(self, translator, queue):
        """hvac.request 는 아무것도 큐에 넣지 않음"""
        msg = make_command('request', [('request', 'status')])
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_broadcast_ignored(self, translator, queue):
        """브로드캐스트 명령 무시"""
        msg = make_command('basic', [('zone', '1'), ('command', 'hvac-mode'), ('mode', 'cool')], target='*')
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_status_message_ignored(self, translator, queue):
        """명령이 아닌 메시지 무시"""
        msg = make_command(
            'basic', [('zone', '1'), ('command', 'hvac-mode'), ('mode', 'cool')],
            msg_type=MessageType.STATUS
        )
        assert translator.handle_message(msg) is None

    def test_other_class_ignored(self, translator, queue):
        """다른 스키마 클래스 무시"""
        msg = XPLMessage(MessageType.COMMAND, 'x10', 'basic', target=BRIDGE_ID)
        msg.add('command', 'on')
        assert translator.handle_message(msg) is None
        assert len(queue) == 0

    def test_queue_full_dropped(self):
        """큐가 가득 차면 로그 후 버림"""
        queue = CommandQueue(max_size=1)
        translator = MessageTranslator(queue, address=1)
        msg = make_command('basic', [('zone', '1'), ('command', 'fan-mode'), ('mode', 'on')])

        assert translator.handle_message(msg) is not None
        assert translator.handle_message(msg) is None
        assert len(queue) == 1


class TestHandlers:
    """핸들러 조회 테스트"""

    def test_handler_lookup(self, translator):
        """스키마별 핸들러"""
        assert isinstance(translator.get_handler('hvac', 'basic'), BasicHandler)
        assert isinstance(translator.get_handler('hvac', 'transparent'), TransparentHandler)
        assert isinstance(translator.get_handler('hvac', 'request'), RequestHandler)
        assert translator.get_handler('hvac', 'unknown') is None


class TestOutbound:
    """status / trigger 메시지 생성 테스트"""

    def test_build_status(self):
        """xpl-stat xplrcs.status"""
        msg = MessageTranslator.build_status({'t': '72', 'm': 'O'})

        assert msg.msg_type == MessageType.STATUS
        assert msg.schema == 'xplrcs.status'
        assert msg.to_dict() == {'t': '72', 'm': 'O'}

    def test_build_trigger(self):
        """xpl-trig xplrcs.trigger"""
        msg = MessageTranslator.build_trigger({'m': 'H'})

        assert msg.msg_type == MessageType.TRIGGER
        assert msg.schema == 'xplrcs.trigger'
        assert msg.get('m') == 'H'
        assert msg.is_broadcast


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
