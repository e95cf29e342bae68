"""
RCS Thermostat xPL Bridge

RCS RS-485 / RS-232 서모스탯과 xPL 홈오토메이션 버스를 연결하는 라이브러리
- xPL 명령 (hvac.basic / hvac.transparent) -> 시리얼 명령 큐
- 1초 틱 스케줄러: 명령 우선, 주기적 상태 폴링
- 폴링 응답 변경분 -> xplrcs.trigger, 명령 응답 -> xplrcs.status

사용 예:
    from rcs_bridge import BridgeController, SerialConnection

    with SerialConnection('/dev/ttyS0') as conn:
        bridge = BridgeController(conn, service, address=1)
        bridge.tick()
        line = conn.read_line()
        if line:
            bridge.handle_line(line)
"""

__version__ = '1.0.0'
__author__ = 'CRK'

# Core classes
from .bridge import BridgeController, BridgeState
from .serial_comm import SerialConnection

# Bridge components
from .command_queue import CommandQueue, CommandEntry
from .status_differ import StatusDiffer, StatusDelta
from .scheduler import TickScheduler, TickAction
from .translator import (
    MessageTranslator,
    BaseCommandHandler,
    TransparentHandler,
    BasicHandler,
    RequestHandler
)

# Protocol
from .protocol import (
    CommandKind, StatusField,
    build_poll_request, normalize_command, tokenize_status,
    split_field, parse_status,
    HVAC_MODE_COMMANDS, FAN_MODE_COMMANDS, BASIC_COMMANDS
)

# xPL
from .xpl_message import XPLMessage, MessageType, NameValue
from .xpl_service import XPLService
from .config import ServiceConfig, load_config, save_config

# Exceptions
from .exceptions import (
    RCSBridgeError,
    CommunicationError,
    ConnectionError,
    TimeoutError,
    CommandError,
    StatusParseError,
    QueueFullError,
    ConfigError,
    BusError,
    XPLParseError
)

__all__ = [
    # Version
    '__version__',

    # Core
    'BridgeController',
    'BridgeState',
    'SerialConnection',

    # Bridge components
    'CommandQueue',
    'CommandEntry',
    'StatusDiffer',
    'StatusDelta',
    'TickScheduler',
    'TickAction',
    'MessageTranslator',
    'BaseCommandHandler',
    'TransparentHandler',
    'BasicHandler',
    'RequestHandler',

    # Protocol
    'CommandKind',
    'StatusField',
    'build_poll_request',
    'normalize_command',
    'tokenize_status',
    'split_field',
    'parse_status',
    'HVAC_MODE_COMMANDS',
    'FAN_MODE_COMMANDS',
    'BASIC_COMMANDS',

    # xPL
    'XPLMessage',
    'MessageType',
    'NameValue',
    'XPLService',
    'ServiceConfig',
    'load_config',
    'save_config',

    # Exceptions
    'RCSBridgeError',
    'CommunicationError',
    'ConnectionError',
    'TimeoutError',
    'CommandError',
    'StatusParseError',
    'QueueFullError',
    'ConfigError',
    'BusError',
    'XPLParseError',
]
