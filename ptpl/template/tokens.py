"""
Лексические типы шаблонов.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List


class TokenType(enum.Enum):
    """Типы токенов в шаблоне."""
    TEXT = "text"
    VARIABLE = "variable"
    CONDITIONAL_START = "conditional_start"
    CONDITIONAL_ELSE = "conditional_else"
    CONDITIONAL_END = "conditional_end"
    LOOP_START = "loop_start"
    LOOP_END = "loop_end"
    INCLUDE = "include"
    COMMENT = "comment"  # существует для полноты; лексер комментарии не выдаёт
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    """
    Токен с позиционной информацией для точной диагностики ошибок.
    """
    type: TokenType
    value: str
    line: int           # Номер строки (начиная с 1)
    column: int         # Номер колонки (начиная с 1)
    offset: int         # Начало в исходном тексте
    end_offset: int     # Конец (не включая)

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.type.value,
            "value": self.value,
            "line": self.line,
            "column": self.column,
            "offset": self.offset,
            "endOffset": self.end_offset,
        }


@dataclass
class TokenValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class TokenStatistics:
    total_tokens: int
    token_counts: Dict[str, int] = field(default_factory=dict)


__all__ = ["TokenType", "Token", "TokenValidation", "TokenStatistics"]
