"""
Состояние одного вызова рендеринга.

Стек локальных областей, накопитель вывода, списки использованных
и отсутствующих переменных и дедлайн живут только внутри RenderFrame.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..config.model import RenderOptions
from ..errors import RenderError, RenderTimeout, UndefinedVariable
from ..values import MISSING, resolve_path, resolve_segments, split_path

logger = logging.getLogger(__name__)


class RenderFrame:
    """
    Контекст выполнения процедуры.

    Attributes:
        variables: Дерево переменных вызывающего кода (не изменяется)
        options: Действующие опции рендеринга
        include_hook: Обработчик ${include name}
        include_depth: Текущая глубина включений
    """

    def __init__(
        self,
        variables: Optional[Mapping[str, Any]],
        options: RenderOptions,
        *,
        include_hook: Optional[Callable[[str, "RenderFrame"], None]] = None,
    ):
        self.variables: Mapping[str, Any] = variables or {}
        self.options = options
        self.include_hook = include_hook
        self.include_depth = 0
        self.output: List[str] = []
        self.scopes: List[Dict[str, Any]] = []
        self.used: Dict[str, None] = {}
        self.missing: Dict[str, None] = {}
        self.handled: Dict[str, Any] = {}
        self.started = time.perf_counter()
        self.deadline: Optional[float] = (
            self.started + options.timeout_ms / 1000.0 if options.timeout_ms > 0 else None
        )

    # ---------------------------- time ---------------------------- #

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000.0

    def check_deadline(self) -> None:
        """
        Raises:
            RenderTimeout: Время рендеринга исчерпано
        """
        if self.deadline is not None and time.perf_counter() > self.deadline:
            raise RenderTimeout(
                f"Template rendering timeout ({self.options.timeout_ms:g}ms)",
                details={"timeoutMs": self.options.timeout_ms},
            )

    # ---------------------------- variables ---------------------------- #

    def lookup(self, path: str) -> Any:
        """
        Значение по пути из переменных, затем из default_values.

        default_values ищутся сначала по полному ключу 'a.b',
        затем как вложенный путь. К найденному значению применяется
        обработчик variable_handlers[path], один раз за рендеринг.
        """
        value = resolve_path(self.variables, path)
        if value is MISSING:
            defaults = self.options.default_values
            value = defaults[path] if path in defaults else resolve_path(defaults, path)
        if value is MISSING or path not in self.options.variable_handlers:
            return value
        if path not in self.handled:
            self.handled[path] = self._apply_handler(path, value)
        return self.handled[path]

    def _apply_handler(self, path: str, value: Any) -> Any:
        """
        Raises:
            RenderError: Сбой обработчика в строгом режиме
        """
        try:
            return self.options.variable_handlers[path](value)
        except Exception as e:
            if self.options.strict:
                raise RenderError(
                    f"Variable handler error for '{path}': {e}",
                    details={"variable": path},
                ) from e
            logger.debug(f"Variable handler for '{path}' failed, using raw value: {e}")
            return value

    def require(self, dependencies: Iterable[str]) -> None:
        """
        Проверяет зависимости перед выполнением.

        Учитывает локальные области: включение внутри цикла видит его переменные.

        Raises:
            UndefinedVariable: Отсутствующая зависимость в строгом режиме
            RenderError: Сбой обработчика переменной в строгом режиме
        """
        for path in dependencies:
            if self.resolve(path) is MISSING:
                self.missing.setdefault(path, None)
                if self.options.strict:
                    raise UndefinedVariable(path)
            else:
                self.used.setdefault(path, None)

    def resolve(self, path: str) -> Any:
        """Разрешение пути с учётом локальных областей циклов."""
        segments = split_path(path)
        if not segments:
            return MISSING
        root = segments[0]
        for scope in reversed(self.scopes):
            if root in scope:
                return resolve_segments(scope[root], segments[1:])
        return self.lookup(path)

    def push_scope(self, bindings: Dict[str, Any]) -> None:
        self.scopes.append(bindings)

    def pop_scope(self) -> None:
        self.scopes.pop()

    # ---------------------------- output ---------------------------- #

    def write(self, text: str) -> None:
        if text:
            self.output.append(text)

    def text(self) -> str:
        return "".join(self.output)


__all__ = ["RenderFrame"]
