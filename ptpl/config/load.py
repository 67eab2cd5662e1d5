from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .model import EngineConfig
from .typed import build_typed
from ..errors import ConfigError

logger = logging.getLogger(__name__)

_yaml = YAML(typ="safe")
CONFIG_FILE = "ptpl.yaml"


def read_yaml(path: Path) -> Any:
    """
    Прочитать YAML-файл безопасным загрузчиком.

    Raises:
        ConfigError: Файл не найден или содержит некорректный YAML
    """
    if not path.is_file():
        raise ConfigError(f"File not found: {path}")
    try:
        return _yaml.load(path.read_text(encoding="utf-8"))
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def load_config(path: Optional[Path] = None) -> EngineConfig:
    """
    Загрузить конфигурацию движка.

    Args:
        path: Путь к YAML-файлу; None — конфигурация по умолчанию

    Raises:
        ConfigError: Некорректный файл или значения
    """
    if path is None:
        return EngineConfig()
    raw = read_yaml(path) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path.name} must be a mapping")
    cfg = build_typed(EngineConfig, raw)
    logger.debug(f"Loaded config from {path}")
    return cfg


def find_config(start: Optional[Path] = None) -> Optional[Path]:
    """Ищет ptpl.yaml в рабочем каталоге."""
    base = (start or Path.cwd()).resolve()
    candidate = base / CONFIG_FILE
    return candidate if candidate.is_file() else None


__all__ = ["load_config", "find_config", "read_yaml", "CONFIG_FILE"]
