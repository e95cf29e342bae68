#!/usr/bin/env python3
"""
RCS Bridge Daemon

xPL <-> RCS 서모스탯 브리지 실행 스크립트
- 명령행 인자 처리
- 백그라운드 실행 (daemonize)
- asyncio 이벤트 루프: xPL UDP 수신, 시리얼 수신, 1초 틱
"""

import sys
import os
import argparse
import asyncio
import logging
import signal
from typing import List, NoReturn, Optional

from . import __version__
from .bridge import BridgeController, POLL_RATE_CFG_NAME
from .config import load_config, DEFAULT_CONFIG_PATH
from .protocol import DEFAULT_ADDRESS, MIN_ADDRESS, MAX_ADDRESS
from .scheduler import DEFAULT_POLL_RATE
from .serial_comm import SerialConnection
from .xpl_service import XPLService
from .exceptions import RCSBridgeError

logger = logging.getLogger(__name__)


VENDOR_ID = 'hwstar'
DEVICE_ID = 'xplrcs'

DEBUG_MAX = 5
TICK_INTERVAL = 1.0  # seconds
RESYNC_SETTLE = 0.1  # seconds
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class BridgeArgumentParser(argparse.ArgumentParser):
    """인자 오류 시 종료 코드 1"""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = BridgeArgumentParser(
        prog='rcs-bridge',
        description='Daemon that bridges xPL to RCS thermostats via an RS-232 or RS-485 interface',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -n -d 2                    # Foreground, verbose logging
  %(prog)s -a 3 -p /dev/ttyUSB0       # Thermostat address 3 on ttyUSB0
  %(prog)s -i eth0 -l /var/log/xplrcs.log -d 1
        """
    )

    parser.add_argument(
        '--address', '-a',
        type=int,
        default=DEFAULT_ADDRESS,
        help=f'Address of the RC-65 thermostat ({MIN_ADDRESS} - {MAX_ADDRESS}, default {DEFAULT_ADDRESS})'
    )

    parser.add_argument(
        '--debug', '-d',
        type=int,
        default=0,
        help=f'Debug level, 0 is off, max is {DEBUG_MAX}'
    )

    parser.add_argument(
        '--interface', '-i',
        type=str,
        default=None,
        help='Broadcast interface (e.g. eth0)'
    )

    parser.add_argument(
        '--log', '-l',
        type=str,
        default=None,
        help='Path name to log file when daemonized'
    )

    parser.add_argument(
        '--no-background', '-n',
        action='store_true',
        help='Do not fork into the background (useful for debugging)'
    )

    parser.add_argument(
        '--com-port', '-p',
        type=str,
        default=SerialConnection.get_default_port(),
        help='Communications port (default %(default)s)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help='Saved service configuration file (default %(default)s)'
    )

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'Version: {__version__}'
    )

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    명령행 인자 파싱 및 검증

    잘못된 주소/디버그 레벨은 종료 코드 1로 종료
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not MIN_ADDRESS <= args.address <= MAX_ADDRESS:
        parser.error(f"Invalid thermostat address: {args.address}")

    if not 0 <= args.debug <= DEBUG_MAX:
        parser.error(f"Invalid debug level: {args.debug}")

    return args


def setup_logging(debug_level: int, log_path: Optional[str] = None) -> None:
    """
    로깅 설정

    0: WARNING, 1: INFO, 2 이상: DEBUG
    """
    if debug_level >= 2:
        level = logging.DEBUG
    elif debug_level == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    if log_path:
        logging.basicConfig(level=level, format=LOG_FORMAT, filename=log_path)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)


def fatal(message: str) -> NoReturn:
    """복구 불가 오류: 진단 메시지 출력 후 종료"""
    logger.critical(message)
    print(f"rcs-bridge: {message}", file=sys.stderr)
    sys.exit(1)


def daemonize() -> None:
    """
    백그라운드 실행

    fork -> setsid -> fork 후 루트 디렉터리로 이동하고 표준 입출력을 /dev/null 로 연결
    """
    if os.fork() > 0:
        os._exit(0)

    os.setsid()

    if os.fork() > 0:
        os._exit(0)

    os.chdir('/')
    os.umask(0o022)

    devnull = os.open(os.devnull, os.O_RDWR)
    for fd in (0, 1, 2):
        os.dup2(devnull, fd)
    if devnull > 2:
        os.close(devnull)


async def run_bridge(args: argparse.Namespace) -> None:
    """
    브리지 실행 (종료 시그널까지)

    Raises:
        RCSBridgeError: 시리얼/xPL 초기화 실패 시
    """
    loop = asyncio.get_running_loop()

    config = load_config(args.config)
    service = XPLService(
        VENDOR_ID, DEVICE_ID, config,
        version=__version__,
        interface=args.interface
    )
    service.raw_debug = args.debug >= DEBUG_MAX
    service.add_configurable(POLL_RATE_CFG_NAME, str(DEFAULT_POLL_RATE))

    serial_conn = SerialConnection(args.com_port)
    serial_conn.connect()

    # 빈 라인으로 서모스탯 쪽 부분 명령 제거
    serial_conn.write_line('')
    await asyncio.sleep(RESYNC_SETTLE)
    serial_conn.flush_input()

    bridge = BridgeController(
        serial_conn, service,
        address=args.address,
        poll_rate=DEFAULT_POLL_RATE
    )
    # 저장된 prate 적용 (범위 밖이면 현재 값으로 덮어씀)
    bridge.on_config_changed(service)
    service.add_config_listener(bridge.on_config_changed)
    service.add_message_listener(bridge.handle_message)

    stop = asyncio.Event()
    failures: List[RCSBridgeError] = []
    tick_handle: Optional[asyncio.TimerHandle] = None

    def on_serial_ready() -> None:
        try:
            while True:
                line = serial_conn.read_line()
                if line is None:
                    break
                bridge.handle_line(line)
        except RCSBridgeError as e:
            logger.error(f"Serial read failed: {e}")
            failures.append(e)
            stop.set()

    def on_tick() -> None:
        nonlocal tick_handle
        try:
            bridge.tick()
        except RCSBridgeError as e:
            logger.error(f"Serial write failed: {e}")
        tick_handle = loop.call_later(TICK_INTERVAL, on_tick)

    try:
        await service.start(loop)
        loop.add_reader(serial_conn.fileno(), on_serial_ready)
        tick_handle = loop.call_later(TICK_INTERVAL, on_tick)

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, stop.set)

        logger.info(
            f"Bridging {service.source} to thermostat {args.address} "
            f"on {args.com_port} (poll every {bridge.poll_rate}s)"
        )
        await stop.wait()
        if failures:
            raise failures[0]
        logger.info("Shutting down")

    finally:
        if tick_handle is not None:
            tick_handle.cancel()
        if serial_conn.is_connected:
            loop.remove_reader(serial_conn.fileno())
        bridge.discard_pending()
        service.stop()
        serial_conn.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    """메인 함수"""
    args = parse_args(argv)

    if not args.no_background:
        daemonize()

    # 백그라운드에서는 로그 파일이 지정된 경우에만 기록
    log_path = args.log if (not args.no_background and args.debug) else None
    setup_logging(args.debug, log_path)

    try:
        asyncio.run(run_bridge(args))
    except RCSBridgeError as e:
        fatal(str(e))

    return 0


if __name__ == '__main__':
    sys.exit(main())
