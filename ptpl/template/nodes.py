"""
AST-узлы шаблона.

Комментарии в дерево не попадают; каждый узел условия и цикла,
построенный парсером, имел парные открывающий и закрывающий токены.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class Position:
    line: int = 1
    column: int = 1
    offset: int = 0

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class TemplateNode:
    """Базовый класс для всех узлов AST шаблона."""
    position: Position = field(default_factory=Position, kw_only=True)

    node_type = "node"

    def iter_children(self) -> List["TemplateNode"]:
        """Все дочерние узлы, включая ветку else."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.node_type, "line": self.position.line, "column": self.position.column}
        data.update(self._payload())
        return data

    def _payload(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class RootNode(TemplateNode):
    children: List[TemplateNode] = field(default_factory=list)

    node_type = "root"

    def iter_children(self) -> List[TemplateNode]:
        return list(self.children)

    def _payload(self) -> Dict[str, Any]:
        return {"children": [c.to_dict() for c in self.children]}


@dataclass(frozen=True)
class TextNode(TemplateNode):
    """
    Обычный текстовый контент в шаблоне.

    Выводится в результат как есть.
    """
    text: str

    node_type = "text"

    def _payload(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class VariableNode(TemplateNode):
    """Вывод выражения с необязательной цепочкой фильтров: ${expr | filter:arg}."""
    expression: str

    node_type = "variable"

    def _payload(self) -> Dict[str, Any]:
        return {"expression": self.expression}


@dataclass(frozen=True)
class ConditionalNode(TemplateNode):
    condition: str
    children: List[TemplateNode] = field(default_factory=list)
    else_children: List[TemplateNode] = field(default_factory=list)

    node_type = "conditional"

    def iter_children(self) -> List[TemplateNode]:
        return [*self.children, *self.else_children]

    def _payload(self) -> Dict[str, Any]:
        return {
            "condition": self.condition,
            "children": [c.to_dict() for c in self.children],
            "elseChildren": [c.to_dict() for c in self.else_children],
        }


@dataclass(frozen=True)
class LoopNode(TemplateNode):
    """
    Цикл по последовательности.

    Attributes:
        variable: Имя переменной элемента (по умолчанию 'item')
        collection: Выражение коллекции
    """
    variable: str
    collection: str
    children: List[TemplateNode] = field(default_factory=list)

    node_type = "loop"

    def iter_children(self) -> List[TemplateNode]:
        return list(self.children)

    def _payload(self) -> Dict[str, Any]:
        return {
            "variable": self.variable,
            "collection": self.collection,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass(frozen=True)
class IncludeNode(TemplateNode):
    name: str

    node_type = "include"

    def _payload(self) -> Dict[str, Any]:
        return {"name": self.name}


__all__ = [
    "Position",
    "TemplateNode",
    "RootNode",
    "TextNode",
    "VariableNode",
    "ConditionalNode",
    "LoopNode",
    "IncludeNode",
]
