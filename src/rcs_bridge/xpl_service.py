"""
xPL Service Module

xPL 버스 서비스 (vendor-device.instance) 및 UDP 전송 계층
- 설정 가능한 항목: prate (폴링 주기)
- config.list / config.current / config.response 처리
- hbeat.app (설정 완료) / config.app (미설정) 하트비트
- 자신의 하트비트가 허브를 통해 돌아올 때까지 짧은 주기로 재전송
- 종료 시 hbeat.end 송신
"""

import asyncio
import fcntl
import logging
import re
import socket
import struct
from typing import Callable, List, Optional, Tuple

from .config import ServiceConfig, save_config
from .xpl_message import XPLMessage, MessageType, BROADCAST_TARGET
from .exceptions import BusError, ConfigError, XPLParseError

logger = logging.getLogger(__name__)


XPL_PORT = 3865
HBEAT_INTERVAL = 5            # minutes
HUB_DISCOVERY_INTERVAL = 3    # seconds, 허브 응답 전
HUB_DISCOVERY_PERIOD = 120    # seconds, 이후 느린 재시도
HUB_RETRY_INTERVAL = 30       # seconds
INSTANCE_MAX_LENGTH = 16

SIOCGIFADDR = 0x8915
SIOCGIFBRDADDR = 0x8919

MessageListener = Callable[[XPLMessage], None]
ConfigListener = Callable[['XPLService'], None]


def default_instance() -> str:
    """호스트 이름 기반 인스턴스 이름 (xPL 규칙: 소문자 영숫자, 16자 이하)"""
    name = re.sub(r'[^a-z0-9]', '', socket.gethostname().lower())
    return (name or 'default')[:INSTANCE_MAX_LENGTH]


def interface_addresses(interface: str) -> Tuple[str, str]:
    """
    네트워크 인터페이스의 (IP, 브로드캐스트) 주소 조회 (Linux)

    Args:
        interface: 인터페이스 이름 (예: 'eth0')

    Raises:
        BusError: 조회 실패 시
    """
    packed = struct.pack('256s', interface[:15].encode('ascii'))
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            ip = fcntl.ioctl(sock.fileno(), SIOCGIFADDR, packed)[20:24]
            bcast = fcntl.ioctl(sock.fileno(), SIOCGIFBRDADDR, packed)[20:24]
        except OSError as e:
            raise BusError(f"Cannot read address of interface {interface}: {e}")
    return socket.inet_ntoa(ip), socket.inet_ntoa(bcast)


def local_address() -> str:
    """기본 경로의 로컬 IP (라우팅 테이블 조회만 하고 패킷은 보내지 않음)"""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect(('255.255.255.255', XPL_PORT))
            return sock.getsockname()[0]
        except OSError:
            return '127.0.0.1'


class XPLProtocol(asyncio.DatagramProtocol):
    """수신 데이터그램을 XPLService 로 전달"""

    def __init__(self, service: 'XPLService'):
        self._service = service

    def datagram_received(self, data: bytes, addr) -> None:
        self._service.receive(data)

    def error_received(self, exc: Exception) -> None:
        logger.error(f"xPL socket error: {exc}")


class XPLService:
    """
    xPL 설정 가능 서비스

    사용 예:
        config = load_config(path)
        service = XPLService('hwstar', 'xplrcs', config, version='1.0.0')
        service.add_configurable('prate', '5')
        service.add_message_listener(on_message)

        await service.start(loop)
        service.send(XPLMessage(MessageType.STATUS, 'xplrcs', 'status'))
    """

    def __init__(
        self,
        vendor: str,
        device: str,
        config: ServiceConfig,
        version: str = '',
        interface: Optional[str] = None
    ):
        """
        Args:
            vendor: 벤더 ID (예: 'hwstar')
            device: 디바이스 ID (예: 'xplrcs')
            config: 저장된 서비스 설정
            version: 애플리케이션 버전
            interface: 브로드캐스트 인터페이스 이름 (None이면 기본 경로)
        """
        self.vendor = vendor
        self.device = device
        self.version = version
        self.interface = interface
        self.config = config
        self.instance = config.instance or default_instance()

        self.enabled = False
        self.raw_debug = False
        self.hub_found = False

        self._configurables: List[str] = []
        self._message_listeners: List[MessageListener] = []
        self._config_listeners: List[ConfigListener] = []

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._hbeat_handle: Optional[asyncio.TimerHandle] = None
        self._hbeat_loop: Optional[asyncio.AbstractEventLoop] = None
        self._discovery_time = 0
        self._ip = '127.0.0.1'
        self._broadcast = '255.255.255.255'
        self._port = 0

    @property
    def source(self) -> str:
        """xPL 소스 ID (vendor-device.instance)"""
        return f"{self.vendor}-{self.device}.{self.instance}"

    @property
    def is_configured(self) -> bool:
        return self.config.configured

    # configuration

    def add_configurable(self, name: str, default: str) -> None:
        """재설정 가능 항목 등록 (저장된 값이 없으면 기본값 사용)"""
        if name not in self._configurables:
            self._configurables.append(name)
        if self.config.get(name) is None:
            self.config.set(name, default)

    def get_config_value(self, name: str) -> Optional[str]:
        return self.config.get(name)

    def set_config_value(self, name: str, value: str) -> None:
        self.config.set(name, value)

    def add_config_listener(self, listener: ConfigListener) -> None:
        self._config_listeners.append(listener)

    def add_message_listener(self, listener: MessageListener) -> None:
        self._message_listeners.append(listener)

    # transport

    async def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        UDP 소켓 열기 및 하트비트 시작

        Raises:
            BusError: 소켓 생성 실패 시
        """
        if self.interface:
            self._ip, self._broadcast = interface_addresses(self.interface)
        else:
            self._ip = local_address()

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: XPLProtocol(self),
                local_addr=('0.0.0.0', 0),
                allow_broadcast=True
            )
        except OSError as e:
            raise BusError(f"Unable to start xPL transport: {e}")

        self._transport = transport
        self._port = transport.get_extra_info('sockname')[1]
        logger.info(f"xPL service {self.source} listening on {self._ip}:{self._port}")

        self.enabled = True
        self._heartbeat(loop)

    def stop(self) -> None:
        """hbeat.end 송신 후 소켓 닫기"""
        if self._hbeat_handle is not None:
            self._hbeat_handle.cancel()
            self._hbeat_handle = None

        if self.enabled and self._transport is not None:
            try:
                self.send(self._build_heartbeat('hbeat', 'end'))
            except BusError as e:
                logger.warning(f"Failed to send hbeat.end: {e}")

        self.enabled = False
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def send(self, message: XPLMessage) -> None:
        """
        메시지 송신 (source 자동 설정)

        Raises:
            BusError: 전송 계층이 없거나 전송 실패 시
        """
        if self._transport is None or self._transport.is_closing():
            raise BusError("xPL transport not running")

        message.source = self.source
        text = message.encode()
        if self.raw_debug:
            logger.debug(f"xPL TX:\n{text}")

        try:
            self._transport.sendto(text.encode('utf-8'), (self._broadcast, XPL_PORT))
        except OSError as e:
            raise BusError(f"Failed to send {message.schema}: {e}")

    def receive(self, data: bytes) -> None:
        """수신 데이터그램 처리"""
        try:
            message = XPLMessage.parse(data.decode('utf-8', errors='replace'))
        except XPLParseError as e:
            logger.debug(f"Ignoring malformed xPL datagram: {e}")
            return

        if self.raw_debug:
            logger.debug(f"xPL RX:\n{message.encode()}")

        self.dispatch(message)

    def dispatch(self, message: XPLMessage) -> None:
        """
        수신 메시지를 설정 처리기 및 리스너로 전달

        자기 자신이 보낸 메시지와 다른 대상으로 가는 메시지는 무시
        """
        if message.source == self.source:
            if message.schema_type == 'app' and message.schema_class in ('hbeat', 'config'):
                self._on_hub_found()
            return
        if message.target not in (BROADCAST_TARGET, self.source):
            return

        if message.is_command and message.schema_class == 'config' and not message.is_broadcast:
            self._handle_config(message)
            return

        for listener in self._message_listeners:
            listener(message)

    # config protocol

    def _handle_config(self, message: XPLMessage) -> None:
        if message.schema_type == 'list':
            reply = XPLMessage(MessageType.STATUS, 'config', 'list')
            reply.add('config', 'newconf')
            for name in self._configurables:
                reply.add('reconf', name)
            self._reply(reply)

        elif message.schema_type == 'current':
            reply = XPLMessage(MessageType.STATUS, 'config', 'current')
            reply.add('newconf', self.instance)
            for name in self._configurables:
                reply.add(name, self.config.get(name) or '')
            self._reply(reply)

        elif message.schema_type == 'response':
            self._apply_config_response(message)

    def _apply_config_response(self, message: XPLMessage) -> None:
        values = message.to_dict()
        newconf = values.get('newconf')
        if newconf:
            self.instance = newconf[:INSTANCE_MAX_LENGTH]
            self.config.instance = self.instance

        for name in self._configurables:
            if name in values:
                self.config.set(name, values[name])

        for listener in self._config_listeners:
            listener(self)

        try:
            save_config(self.config)
        except ConfigError as e:
            logger.error(str(e))

        # 설정 완료 즉시 hbeat.app 알림
        self._send_heartbeat()

        logger.info(f"Configuration updated: {self.config.values}")

    def _reply(self, message: XPLMessage) -> None:
        try:
            self.send(message)
        except BusError as e:
            logger.error(f"Config reply failed: {e}")

    # heartbeat

    def _build_heartbeat(self, schema_class: str, schema_type: str) -> XPLMessage:
        message = XPLMessage(MessageType.STATUS, schema_class, schema_type)
        message.add('interval', str(HBEAT_INTERVAL))
        message.add('port', str(self._port))
        message.add('remote-ip', self._ip)
        if self.version:
            message.add('version', self.version)
        return message

    def _send_heartbeat(self) -> None:
        schema_class = 'hbeat' if self.is_configured else 'config'
        try:
            self.send(self._build_heartbeat(schema_class, 'app'))
        except BusError as e:
            logger.error(f"Heartbeat failed: {e}")

    def _next_heartbeat_delay(self) -> float:
        """허브 확인 전에는 짧은 주기, 확인 후에는 HBEAT_INTERVAL"""
        if self.hub_found:
            return HBEAT_INTERVAL * 60
        if self._discovery_time < HUB_DISCOVERY_PERIOD:
            self._discovery_time += HUB_DISCOVERY_INTERVAL
            return HUB_DISCOVERY_INTERVAL
        return HUB_RETRY_INTERVAL

    def _heartbeat(self, loop: asyncio.AbstractEventLoop) -> None:
        self._hbeat_loop = loop
        self._send_heartbeat()
        self._hbeat_handle = loop.call_later(self._next_heartbeat_delay(), self._heartbeat, loop)

    def _on_hub_found(self) -> None:
        if self.hub_found:
            return

        self.hub_found = True
        logger.info("xPL hub confirmed")

        if self._hbeat_handle is not None and self._hbeat_loop is not None:
            self._hbeat_handle.cancel()
            self._hbeat_handle = self._hbeat_loop.call_later(
                HBEAT_INTERVAL * 60, self._heartbeat, self._hbeat_loop
            )
