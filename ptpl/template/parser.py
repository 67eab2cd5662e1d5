"""
Парсер шаблонов.

Преобразует плоский поток токенов в AST рекурсивным спуском.
Терминаторы (else, конец блока, EOF) возвращаются обратно в поток:
решение о том, что терминатор неожиданный, принимает только
охватывающая конструкция.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .nodes import (
    ConditionalNode,
    IncludeNode,
    LoopNode,
    Position,
    RootNode,
    TemplateNode,
    TextNode,
    VariableNode,
)
from .tokens import Token, TokenType
from ..config.model import ParserConfig
from ..errors import InvalidTemplate
from ..expressions.parser import iter_top_level

logger = logging.getLogger(__name__)

DEFAULT_LOOP_VARIABLE = "item"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LOOP_IN_RE = re.compile(r"(?:^|\s)(in)(?:\s|$)")

_TERMINATORS = {
    TokenType.CONDITIONAL_ELSE,
    TokenType.CONDITIONAL_END,
    TokenType.LOOP_END,
    TokenType.EOF,
}


class TemplateParser:
    """
    Рекурсивный парсер для шаблонов.

    Глубина вложенности блоков ограничена ParserConfig.max_depth.
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig()
        self.tokens: List[Token] = []
        self.position = 0
        self.depth = 0

    def parse(self, tokens: List[Token]) -> RootNode:
        """
        Парсит всю последовательность токенов в AST.

        Returns:
            Корневой узел

        Raises:
            InvalidTemplate: При ошибке синтаксического анализа
        """
        if not tokens or tokens[-1].type != TokenType.EOF:
            raise InvalidTemplate("Token stream must end with EOF")
        self.tokens = tokens
        self.position = 0
        self.depth = 0

        children = self._parse_nodes()
        current = self._current_token()
        if current.type != TokenType.EOF:
            raise InvalidTemplate(
                f"Unexpected {current.type.value} token",
                line=current.line, column=current.column,
            )
        return RootNode(children=children, position=Position(1, 1, 0))

    # ---------------------------- helpers ---------------------------- #

    def _current_token(self) -> Token:
        return self.tokens[self.position]

    def _advance(self) -> Token:
        token = self.tokens[self.position]
        if token.type != TokenType.EOF:
            self.position += 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        return self._current_token().type == token_type

    @staticmethod
    def _position(token: Token) -> Position:
        return Position(token.line, token.column, token.offset)

    # ---------------------------- grammar ---------------------------- #

    def _parse_nodes(self) -> List[TemplateNode]:
        """Собирает узлы до первого терминатора (не поглощая его)."""
        nodes: List[TemplateNode] = []
        while True:
            node = self._parse_node()
            if node is None:
                return nodes
            nodes.append(node)

    def _parse_node(self) -> Optional[TemplateNode]:
        token = self._current_token()
        if token.type in _TERMINATORS:
            return None

        self._advance()
        if token.type == TokenType.TEXT:
            return TextNode(token.value, position=self._position(token))
        if token.type == TokenType.VARIABLE:
            return self._parse_variable(token)
        if token.type == TokenType.CONDITIONAL_START:
            return self._parse_conditional(token)
        if token.type == TokenType.LOOP_START:
            return self._parse_loop(token)
        if token.type == TokenType.INCLUDE:
            return self._parse_include(token)

        raise InvalidTemplate(
            f"Unexpected {token.type.value} token",
            line=token.line, column=token.column,
        )

    def _enter_block(self, token: Token) -> None:
        if self.depth >= self.config.max_depth:
            raise InvalidTemplate(
                f"Maximum nesting depth ({self.config.max_depth}) exceeded",
                line=token.line, column=token.column,
            )
        self.depth += 1

    def _parse_variable(self, token: Token) -> VariableNode:
        expression = token.value.strip()
        if not expression and not self.config.allow_empty_variables:
            raise InvalidTemplate(
                "Empty variable",
                line=token.line, column=token.column,
            )
        return VariableNode(expression, position=self._position(token))

    def _parse_conditional(self, start: Token) -> ConditionalNode:
        """
        Парсит блок ${#if cond}…[${else}…]${/if}.

        Пустое условие допускается здесь и отвергается компилятором
        и validate_ast.
        """
        self._enter_block(start)
        children: List[TemplateNode] = []
        else_children: List[TemplateNode] = []
        in_else = False

        while True:
            branch = self._parse_nodes()
            (else_children if in_else else children).extend(branch)

            token = self._current_token()
            if token.type == TokenType.CONDITIONAL_END:
                self._advance()
                break
            if token.type == TokenType.CONDITIONAL_ELSE:
                if in_else:
                    raise InvalidTemplate(
                        "Multiple else blocks in conditional",
                        line=token.line, column=token.column,
                        details={"blockLine": start.line, "blockColumn": start.column},
                    )
                self._advance()
                in_else = True
                continue
            if token.type == TokenType.EOF:
                raise InvalidTemplate(
                    "Unclosed conditional block",
                    line=start.line, column=start.column,
                )
            # чужой терминатор (конец цикла внутри условия)
            raise InvalidTemplate(
                f"Unexpected {token.type.value} token inside conditional block",
                line=token.line, column=token.column,
                details={"blockLine": start.line, "blockColumn": start.column},
            )

        self.depth -= 1
        return ConditionalNode(
            start.value.strip(),
            children=children,
            else_children=else_children,
            position=self._position(start),
        )

    def _parse_loop(self, start: Token) -> LoopNode:
        self._enter_block(start)
        variable, collection = parse_loop_header(start.value, start)

        children = self._parse_nodes()
        token = self._current_token()
        if token.type == TokenType.EOF:
            raise InvalidTemplate(
                "Unclosed loop block",
                line=start.line, column=start.column,
            )
        if token.type != TokenType.LOOP_END:
            raise InvalidTemplate(
                f"Unexpected {token.type.value} token inside loop block",
                line=token.line, column=token.column,
                details={"blockLine": start.line, "blockColumn": start.column},
            )
        self._advance()
        self.depth -= 1
        return LoopNode(variable, collection, children=children, position=self._position(start))

    def _parse_include(self, token: Token) -> IncludeNode:
        name = token.value.strip()
        if not name:
            raise InvalidTemplate(
                "Empty include directive",
                line=token.line, column=token.column,
            )
        return IncludeNode(name, position=self._position(token))


def parse_loop_header(header: str, token: Optional[Token] = None) -> Tuple[str, str]:
    """
    Разбирает заголовок цикла.

    'name in collection' связывает name; просто 'collection' связывает 'item'.

    Returns:
        Кортеж (variable, collection)

    Raises:
        InvalidTemplate: Пустая коллекция или некорректный заголовок
    """
    text = header.strip()
    line = token.line if token else None
    column = token.column if token else None

    match = _find_loop_in(text)
    if match is None:
        variable, collection = DEFAULT_LOOP_VARIABLE, text
    else:
        variable, collection = text[:match.start()].strip(), text[match.end():].strip()
        if _find_loop_in(collection) is not None:
            raise InvalidTemplate(f"Invalid loop expression: '{text}'", line=line, column=column)

    if not collection or not _IDENTIFIER_RE.match(variable):
        raise InvalidTemplate(f"Invalid loop expression: '{text}'", line=line, column=column)
    return variable, collection


def _find_loop_in(text: str) -> Optional[re.Match]:
    """Первое ключевое слово in вне строковых литералов и скобок."""
    top_level = set(iter_top_level(text))
    for match in _LOOP_IN_RE.finditer(text):
        if match.start(1) in top_level:
            return match
    return None


# ---------------------------- static utilities ---------------------------- #

@dataclass
class AstValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class AstStatistics:
    total_nodes: int
    node_counts: Dict[str, int] = field(default_factory=dict)
    max_depth: int = 0


_KNOWN_NODES = (RootNode, TextNode, VariableNode, ConditionalNode, LoopNode, IncludeNode)


def validate_ast(root: TemplateNode, max_depth: int = 100) -> AstValidation:
    """
    Статическая проверка структуры AST (обходит и ветки else).
    """
    errors: List[str] = []

    def visit(node: TemplateNode, depth: int) -> None:
        if depth > max_depth:
            errors.append(f"AST nesting depth exceeds {max_depth} at position {node.position}")
            return
        if not isinstance(node, _KNOWN_NODES):
            errors.append(f"Unknown node type '{type(node).__name__}' at position {node.position}")
            return
        if isinstance(node, ConditionalNode) and not node.condition.strip():
            errors.append(f"Conditional node missing condition at position {node.position}")
        if isinstance(node, LoopNode):
            if not node.collection.strip():
                errors.append(f"Loop node missing collection at position {node.position}")
            elif not _IDENTIFIER_RE.match(node.variable):
                errors.append(f"Invalid loop variable '{node.variable}' at position {node.position}")
        if isinstance(node, IncludeNode) and not node.name.strip():
            errors.append(f"Include node missing template name at position {node.position}")
        for child in node.iter_children():
            visit(child, depth + 1)

    visit(root, 0)
    return AstValidation(valid=not errors, errors=errors)


def ast_statistics(root: TemplateNode) -> AstStatistics:
    counts: Dict[str, int] = {}
    max_depth = 0

    def visit(node: TemplateNode, depth: int) -> None:
        nonlocal max_depth
        max_depth = max(max_depth, depth)
        counts[node.node_type] = counts.get(node.node_type, 0) + 1
        for child in node.iter_children():
            visit(child, depth + 1)

    visit(root, 0)
    return AstStatistics(total_nodes=sum(counts.values()), node_counts=counts, max_depth=max_depth)


def parse_template(tokens: List[Token], config: Optional[ParserConfig] = None) -> RootNode:
    """Удобная функция для разбора токенов."""
    return TemplateParser(config).parse(tokens)


__all__ = [
    "TemplateParser",
    "parse_template",
    "parse_loop_header",
    "validate_ast",
    "ast_statistics",
    "AstValidation",
    "AstStatistics",
    "DEFAULT_LOOP_VARIABLE",
]
