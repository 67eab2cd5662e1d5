"""
Окружение шаблонов: реестры фильтров и функций.

Реестры меняются только через add_/remove_ методы; каждое
фактическое изменение увеличивает revision. Компиляция работает
с неизменяемым снимком EnvironmentSnapshot.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping

from .builtins import BUILTIN_FILTERS, BUILTIN_FUNCTIONS

logger = logging.getLogger(__name__)

Filter = Callable[..., Any]      # filter(value, *args)
Function = Callable[..., Any]    # function(*args)

_NAME_RE = re.compile(r"^[A-Za-z_]\w*$")


@dataclass(frozen=True)
class EnvironmentSnapshot:
    filters: Mapping[str, Filter]
    functions: Mapping[str, Function]
    revision: int


class Environment:
    """
    Реестры фильтров и функций.

    Имена, зарегистрированные вызывающим кодом, перекрывают встроенные.
    """

    def __init__(self, builtins: bool = True):
        self._filters: Dict[str, Filter] = dict(BUILTIN_FILTERS) if builtins else {}
        self._functions: Dict[str, Function] = dict(BUILTIN_FUNCTIONS) if builtins else {}
        self.revision = 0

    # ---------------------------- filters ---------------------------- #

    def add_filter(self, name: str, func: Filter) -> None:
        _check(name, func, "filter")
        self._filters[name] = func
        self.revision += 1
        logger.debug(f"Registered filter '{name}' (revision {self.revision})")

    def remove_filter(self, name: str) -> bool:
        """
        Returns:
            True, если фильтр был зарегистрирован
        """
        if self._filters.pop(name, None) is None:
            return False
        self.revision += 1
        logger.debug(f"Removed filter '{name}' (revision {self.revision})")
        return True

    def get_filter(self, name: str) -> Filter | None:
        return self._filters.get(name)

    def filters(self) -> Dict[str, Filter]:
        return dict(self._filters)

    # ---------------------------- functions ---------------------------- #

    def add_function(self, name: str, func: Function) -> None:
        _check(name, func, "function")
        self._functions[name] = func
        self.revision += 1
        logger.debug(f"Registered function '{name}' (revision {self.revision})")

    def remove_function(self, name: str) -> bool:
        if self._functions.pop(name, None) is None:
            return False
        self.revision += 1
        logger.debug(f"Removed function '{name}' (revision {self.revision})")
        return True

    def get_function(self, name: str) -> Function | None:
        return self._functions.get(name)

    def functions(self) -> Dict[str, Function]:
        return dict(self._functions)

    def snapshot(self) -> EnvironmentSnapshot:
        return EnvironmentSnapshot(
            filters=MappingProxyType(dict(self._filters)),
            functions=MappingProxyType(dict(self._functions)),
            revision=self.revision,
        )


def _check(name: str, func: Any, kind: str) -> None:
    if not isinstance(name, str) or not _NAME_RE.match(name):
        raise ValueError(f"Invalid {kind} name: {name!r}")
    if not callable(func):
        raise TypeError(f"{kind.capitalize()} '{name}' must be callable")


__all__ = ["Environment", "EnvironmentSnapshot", "Filter", "Function"]
