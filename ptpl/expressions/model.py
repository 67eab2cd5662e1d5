"""
Модели данных выражений.

Узлы дерева выражений для условий ${#if …}, заголовков циклов
и выводов ${…}.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List


class ExprType(Enum):
    """Типы узлов выражений."""
    LITERAL = "literal"
    PATH = "path"
    CALL = "call"
    NOT = "not"
    AND = "and"
    OR = "or"
    COMPARISON = "comparison"
    GROUP = "group"  # для явной группировки в скобках


@dataclass
class Expression(ABC):
    """Базовый абстрактный класс для всех выражений."""

    @abstractmethod
    def get_type(self) -> ExprType:
        pass

    def children(self) -> List["Expression"]:
        return []

    def paths(self) -> List[str]:
        """Пути переменных в порядке первого появления (с повторами)."""
        out: List[str] = []
        for child in self.children():
            out.extend(child.paths())
        return out

    def functions(self) -> List[str]:
        """Имена вызываемых функций в порядке появления."""
        out: List[str] = []
        for child in self.children():
            out.extend(child.functions())
        return out

    def __str__(self) -> str:
        return self._to_string()

    @abstractmethod
    def _to_string(self) -> str:
        pass


@dataclass
class LiteralExpr(Expression):
    """Литерал: строка, число, true, false, null."""
    value: Any

    def get_type(self) -> ExprType:
        return ExprType.LITERAL

    def _to_string(self) -> str:
        return json.dumps(self.value, ensure_ascii=False)


@dataclass
class PathExpr(Expression):
    """
    Точечный путь к переменной: user.profile.name

    Числовые сегменты работают как индексы последовательностей.
    """
    path: str

    @property
    def root(self) -> str:
        return self.path.split(".", 1)[0]

    def get_type(self) -> ExprType:
        return ExprType.PATH

    def paths(self) -> List[str]:
        return [self.path]

    def _to_string(self) -> str:
        return self.path


@dataclass
class CallExpr(Expression):
    """Вызов функции: name(arg, …)"""
    name: str
    args: List[Expression] = field(default_factory=list)

    def get_type(self) -> ExprType:
        return ExprType.CALL

    def children(self) -> List[Expression]:
        return list(self.args)

    def functions(self) -> List[str]:
        return [self.name, *super().functions()]

    def _to_string(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


@dataclass
class GroupExpr(Expression):
    """
    Группа в скобках: (expr)

    Используется для явной группировки и изменения приоритета операторов.
    """
    expression: Expression

    def get_type(self) -> ExprType:
        return ExprType.GROUP

    def children(self) -> List[Expression]:
        return [self.expression]

    def _to_string(self) -> str:
        return f"({self.expression})"


@dataclass
class NotExpr(Expression):
    """Отрицание: !expr"""
    expression: Expression

    def get_type(self) -> ExprType:
        return ExprType.NOT

    def children(self) -> List[Expression]:
        return [self.expression]

    def _to_string(self) -> str:
        return f"!{self.expression}"


@dataclass
class LogicalExpr(Expression):
    """
    Логическая операция: left && right, left || right

    Attributes:
        operator: ExprType.AND или ExprType.OR
    """
    left: Expression
    right: Expression
    operator: ExprType

    def get_type(self) -> ExprType:
        return self.operator

    def children(self) -> List[Expression]:
        return [self.left, self.right]

    def _to_string(self) -> str:
        op = "&&" if self.operator == ExprType.AND else "||"
        return f"{self.left} {op} {self.right}"


@dataclass
class ComparisonExpr(Expression):
    """Сравнение: left op right, где op из ==, !=, ===, !==, >, <, >=, <=."""
    left: Expression
    operator: str
    right: Expression

    def get_type(self) -> ExprType:
        return ExprType.COMPARISON

    def children(self) -> List[Expression]:
        return [self.left, self.right]

    def _to_string(self) -> str:
        return f"{self.left} {self.operator} {self.right}"


__all__ = [
    "ExprType",
    "Expression",
    "LiteralExpr",
    "PathExpr",
    "CallExpr",
    "GroupExpr",
    "NotExpr",
    "LogicalExpr",
    "ComparisonExpr",
]
