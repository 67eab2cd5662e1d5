"""
Модели конфигурации движка.

Все секции — dataclass'ы с безопасными значениями по умолчанию;
из YAML они строятся через build_typed (см. typed.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Tuple


@dataclass(frozen=True)
class LexerConfig:
    """Разделители директив и режим сравнения."""
    variable_start: str = "${"
    variable_end: str = "}"
    conditional_start: str = "${#if"
    conditional_else: str = "${else}"
    conditional_end: str = "${/if}"
    loop_start: str = "${#each"
    loop_end: str = "${/each}"
    include: str = "${include"
    comment_start: str = "${!--"
    comment_end: str = "--}"
    ignore_case: bool = False

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, str) and value == "":
                raise ValueError(f"Lexer delimiter '{f.name}' cannot be empty")

    def delimiters(self) -> List[Tuple[str, str]]:
        """Пары (имя поля, значение) для всех разделителей."""
        return [
            (f.name, getattr(self, f.name))
            for f in fields(self)
            if f.name != "ignore_case"
        ]


@dataclass(frozen=True)
class ParserConfig:
    max_depth: int = 100                 # максимальная вложенность блоков
    allow_empty_variables: bool = False  # разрешить ${ }

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")


@dataclass(frozen=True)
class RenderOptions:
    """
    Опции рендеринга.

    Attributes:
        strict: Отсутствующая зависимость — ошибка UndefinedVariable
        timeout_ms: Лимит времени рендеринга; 0 отключает проверку
        auto_escape: Экранировать & < > " ' в результате
        default_values: Значения по умолчанию (ключи — точечные пути или вложенные словари)
        variable_handlers: Преобразования значений по точному пути зависимости;
                           сбой обработчика в строгом режиме — RenderError,
                           иначе используется исходное значение
    """
    strict: bool = False
    timeout_ms: float = 5000.0
    auto_escape: bool = False
    default_values: Dict[str, Any] = field(default_factory=dict)
    variable_handlers: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)

    def __post_init__(self):
        if self.timeout_ms < 0:
            raise ValueError(f"timeout_ms cannot be negative, got {self.timeout_ms}")

    def merged(self, **overrides: Any) -> "RenderOptions":
        """Возвращает копию с переопределёнными полями (None — не трогать)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return replace(self, **changes)


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = True
    max_entries: int = 0   # 0 — без ограничения

    def __post_init__(self):
        if self.max_entries < 0:
            raise ValueError(f"max_entries cannot be negative, got {self.max_entries}")


@dataclass(frozen=True)
class IncludesConfig:
    """Настройки файлового загрузчика включений (используется CLI)."""
    dir: str = ""
    suffix: str = ".tpl"


@dataclass(frozen=True)
class EngineConfig:
    lexer: LexerConfig = field(default_factory=LexerConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    render: RenderOptions = field(default_factory=RenderOptions)
    cache: CacheConfig = field(default_factory=CacheConfig)
    includes: IncludesConfig = field(default_factory=IncludesConfig)
    max_include_depth: int = 10


__all__ = [
    "LexerConfig",
    "ParserConfig",
    "RenderOptions",
    "CacheConfig",
    "IncludesConfig",
    "EngineConfig",
]
