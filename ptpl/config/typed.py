"""
Построение dataclass-конфигурации из сырых данных YAML.

Поддерживаются подсказки, которые встречаются в моделях ptpl:
вложенные dataclass'ы, bool/int/float/str, Dict[K, V], Callable и Any.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import typing as t
from dataclasses import fields, is_dataclass

from ..errors import ConfigError


class ConfigCoerceError(ConfigError):
    """Ошибка приведения конфигурации к типу с указанием пути."""
    def __init__(self, message: str, path: tuple[str, ...] = ()):
        self.path = path
        prefix = f"{'.'.join(path)}: " if path else ""
        super().__init__(prefix + message)


_T = t.TypeVar("_T")

_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


def build_typed(cls: type[_T], data: t.Any) -> _T:
    """
    Построить секцию конфигурации; неизвестные ключи и
    неприводимые значения дают ConfigCoerceError с путём до поля.
    """
    return t.cast(_T, _build_section(cls, data, path=()))


def _build_section(cls: type, data: t.Any, path: tuple[str, ...]):
    if isinstance(data, cls):
        return data
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigCoerceError(f"expected mapping for {cls.__name__}, got {type(data).__name__}", path)

    extras = set(data.keys()) - {f.name for f in fields(cls)}
    if extras:
        raise ConfigCoerceError(f"unexpected keys: {sorted(extras)!r}", path)

    # аннотации — строки (from __future__ import annotations)
    hints = t.get_type_hints(cls)
    kwargs = {}
    for f in fields(cls):
        if f.name in data:
            kwargs[f.name] = coerce(data[f.name], hints.get(f.name, t.Any), (*path, f.name))
        elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:  # type: ignore[misc]
            raise ConfigCoerceError("required field missing", (*path, f.name))
    try:
        return cls(**kwargs)
    except (TypeError, ValueError) as e:
        # проверки __post_init__
        raise ConfigCoerceError(str(e), path)


def coerce(value: t.Any, hint: t.Any, path: tuple[str, ...]) -> t.Any:
    """Приведение одного значения к подсказке типа поля."""
    if hint is t.Any:
        return value

    if is_dataclass(hint):
        return _build_section(hint, value, path)

    if hint is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE + _FALSE:
            return value.strip().lower() in _TRUE
        raise ConfigCoerceError(f"expected bool, got {type(value).__name__}", path)

    if hint in (str, int, float):
        if isinstance(value, hint) and not isinstance(value, bool):
            return value
        # "5000" в YAML в кавычках
        try:
            return hint(value)
        except (TypeError, ValueError, OverflowError):
            raise ConfigCoerceError(f"expected {hint.__name__}, got {type(value).__name__}", path)

    origin = t.get_origin(hint)

    if origin is dict:
        k_t, v_t = t.get_args(hint) or (t.Any, t.Any)
        if not isinstance(value, dict):
            raise ConfigCoerceError(f"expected dict, got {type(value).__name__}", path)
        return {
            coerce(k, k_t, (*path, "<key>")): coerce(v, v_t, (*path, str(k)))
            for k, v in value.items()
        }

    if hint is collections.abc.Callable or origin is collections.abc.Callable:
        # из YAML обработчики не задаются
        if not callable(value):
            raise ConfigCoerceError(f"expected callable, got {type(value).__name__}", path)
        return value

    raise ConfigCoerceError(f"unsupported config type {hint!r}", path)


__all__ = ["build_typed", "coerce", "ConfigCoerceError"]
