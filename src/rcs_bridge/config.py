"""
Service Configuration Module

xPL 서비스 설정 항목 저장/복원 (YAML)
재시작 후에도 유지되는 값은 폴링 주기(prate) 하나뿐

파일 예:
    instance: livingroom
    config:
      prate: '5'
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser('~'), '.xplrcs.yaml')


@dataclass
class ServiceConfig:
    """저장되는 서비스 설정"""
    values: Dict[str, str] = field(default_factory=dict)
    instance: Optional[str] = None
    configured: bool = False      # 파일에서 읽었으면 True
    path: Optional[str] = None

    def get(self, name: str) -> Optional[str]:
        return self.values.get(name)

    def set(self, name: str, value: str) -> None:
        self.values[name] = str(value)

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {'config': dict(self.values)}
        if self.instance:
            data['instance'] = self.instance
        return data


def load_config(path: str) -> ServiceConfig:
    """
    설정 파일 읽기

    파일이 없으면 기본 설정(configured=False) 반환

    Args:
        path: YAML 파일 경로

    Returns:
        ServiceConfig

    Raises:
        ConfigError: 파일 형식 오류 시
    """
    if not os.path.exists(path):
        logger.info(f"No saved configuration at {path}, using defaults")
        return ServiceConfig(path=path)

    try:
        with open(path, 'r', encoding='utf-8') as fp:
            data = yaml.safe_load(fp) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read configuration {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration {path} must be a mapping")

    values = data.get('config') or {}
    if not isinstance(values, dict):
        raise ConfigError(f"'config' section in {path} must be a mapping")

    logger.info(f"Loaded configuration from {path}")
    return ServiceConfig(
        values={str(k): str(v) for k, v in values.items()},
        instance=data.get('instance'),
        configured=True,
        path=path
    )


def save_config(config: ServiceConfig, path: Optional[str] = None) -> None:
    """
    설정 파일 저장

    Args:
        config: 저장할 설정
        path: 저장 경로 (None이면 config.path 사용)

    Raises:
        ConfigError: 저장 실패 시
    """
    target = path or config.path
    if not target:
        raise ConfigError("No configuration path to save to")

    try:
        with open(target, 'w', encoding='utf-8') as fp:
            yaml.safe_dump(config.to_dict(), fp, default_flow_style=False)
    except OSError as e:
        raise ConfigError(f"Failed to write configuration {target}: {e}")

    config.path = target
    config.configured = True
    logger.debug(f"Saved configuration to {target}")
