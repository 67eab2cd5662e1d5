"""
Инструкции процедуры рендеринга.

Компилятор превращает AST в дерево заранее разрешённых инструкций:
выражения уже разобраны, фильтры и функции взяты из снимка окружения.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Tuple, Union

from ..expressions.model import Expression
from ..template.nodes import Position


@dataclass(frozen=True)
class ResolvedFilter:
    name: str
    func: Callable[..., Any]
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class AppendText:
    text: str


@dataclass(frozen=True)
class EmitValue:
    """Вывод значения выражения через цепочку фильтров."""
    source: str
    expression: Expression
    filters: Tuple[ResolvedFilter, ...] = ()
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class Branch:
    condition: Expression
    then: Tuple["Instruction", ...] = ()
    otherwise: Tuple["Instruction", ...] = ()
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class Iterate:
    """
    Цикл: на каждой итерации открывается локальная область
    с variable, variable_index, variable_first, variable_last и this.
    """
    variable: str
    collection: Expression
    body: Tuple["Instruction", ...] = ()
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class IncludeCall:
    name: str
    position: Position = field(default_factory=Position)


Instruction = Union[AppendText, EmitValue, Branch, Iterate, IncludeCall]


@dataclass(frozen=True)
class RenderProcedure:
    """
    Скомпилированная процедура рендеринга.

    Attributes:
        instructions: Инструкции верхнего уровня
        functions: Функции, используемые в выражениях (из снимка окружения)
        revision: Ревизия окружения на момент компиляции
    """
    instructions: Tuple[Instruction, ...]
    functions: Mapping[str, Callable[..., Any]]
    revision: int = 0

    def count(self) -> int:
        """Общее число инструкций, включая вложенные."""
        return _count(self.instructions)


def _count(instructions: Tuple[Instruction, ...]) -> int:
    total = 0
    for ins in instructions:
        total += 1
        if isinstance(ins, Branch):
            total += _count(ins.then) + _count(ins.otherwise)
        elif isinstance(ins, Iterate):
            total += _count(ins.body)
    return total


__all__ = [
    "ResolvedFilter",
    "AppendText",
    "EmitValue",
    "Branch",
    "Iterate",
    "IncludeCall",
    "Instruction",
    "RenderProcedure",
]
