"""
Парсер выражений с рекурсивным спуском.

Строит дерево выражения из последовательности токенов.
Поддерживает приоритеты операторов и группировку в скобках.

Грамматика:
expression  → or_expr
or_expr     → and_expr ("||" and_expr)*
and_expr    → comparison ("&&" comparison)*
comparison  → unary (COMPARE_OP unary)*
unary       → "!" unary | primary
primary     → STRING | NUMBER | KEYWORD | call | IDENTIFIER | "(" expression ")"
call        → IDENTIFIER "(" [expression ("," expression)*] ")"

Выражения вывода дополнительно содержат цепочку фильтров:
output      → expression ("|" filter)*
filter      → NAME [":" arg ("," arg)*]
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Tuple

from .lexer import ExpressionLexer, ExpressionSyntaxError, Token, unescape
from .model import (
    CallExpr,
    ComparisonExpr,
    Expression,
    ExprType,
    GroupExpr,
    LiteralExpr,
    LogicalExpr,
    NotExpr,
    PathExpr,
)

COMPARISON_OPERATORS = ("===", "!==", "==", "!=", ">=", "<=", ">", "<")

_KEYWORD_VALUES = {"true": True, "false": False, "null": None}
_NAME_RE = re.compile(r"^[A-Za-z_][\w]*$")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")


class ExpressionParser:
    """
    Парсер выражений.

    Преобразует строку в дерево выражения, соблюдая приоритеты
    операторов (от низшего к высшему): ||, &&, сравнения, !, первичные.
    """

    def __init__(self):
        self.lexer = ExpressionLexer()
        self._tokens: List[Token] = []
        self._position = 0

    def parse(self, text: str) -> Expression:
        """
        Парсит строку выражения.

        Raises:
            ExpressionSyntaxError: При синтаксической ошибке
        """
        self._tokens = self.lexer.tokenize(text)
        self._position = 0

        if len(self._tokens) == 1:
            raise ExpressionSyntaxError("Empty expression", 0)

        result = self._parse_or()

        if not self._is_at_end():
            current = self._current_token()
            raise ExpressionSyntaxError(f"Unexpected token '{current.value}'", current.position)

        return result

    def _parse_or(self) -> Expression:
        left = self._parse_and()
        while self._match_operator("||"):
            right = self._parse_and()
            left = LogicalExpr(left=left, right=right, operator=ExprType.OR)
        return left

    def _parse_and(self) -> Expression:
        left = self._parse_comparison()
        while self._match_operator("&&"):
            right = self._parse_comparison()
            left = LogicalExpr(left=left, right=right, operator=ExprType.AND)
        return left

    def _parse_comparison(self) -> Expression:
        """Сравнения левоассоциативны: a == b == c → (a == b) == c."""
        left = self._parse_unary()
        while True:
            current = self._current_token()
            if current.type == 'OPERATOR' and current.value in COMPARISON_OPERATORS:
                self._advance()
                right = self._parse_unary()
                left = ComparisonExpr(left=left, operator=current.value, right=right)
            else:
                return left

    def _parse_unary(self) -> Expression:
        if self._match_operator("!"):
            return NotExpr(expression=self._parse_unary())  # правая ассоциативность
        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        current = self._current_token()

        if self._match_symbol("("):
            expr = self._parse_or()
            if not self._match_symbol(")"):
                raise ExpressionSyntaxError("Expected ')' after grouped expression", self._current_position())
            return GroupExpr(expression=expr)

        if current.type == 'STRING':
            self._advance()
            return LiteralExpr(value=current.value)

        if current.type == 'NUMBER':
            self._advance()
            return LiteralExpr(value=_number(current.value))

        if current.type == 'KEYWORD':
            self._advance()
            return LiteralExpr(value=_KEYWORD_VALUES[current.value])

        if current.type == 'IDENTIFIER':
            self._advance()
            if self._match_symbol("("):
                return self._parse_call(current)
            return PathExpr(path=current.value)

        if current.type == 'EOF':
            raise ExpressionSyntaxError("Unexpected end of expression", current.position)
        raise ExpressionSyntaxError(f"Unexpected token '{current.value}'", current.position)

    def _parse_call(self, name_token: Token) -> CallExpr:
        if not _NAME_RE.match(name_token.value):
            raise ExpressionSyntaxError(f"Invalid function name '{name_token.value}'", name_token.position)
        args: List[Expression] = []
        if self._match_symbol(")"):
            return CallExpr(name=name_token.value, args=args)
        while True:
            args.append(self._parse_or())
            if self._match_symbol(")"):
                return CallExpr(name=name_token.value, args=args)
            if not self._match_symbol(","):
                raise ExpressionSyntaxError(
                    f"Expected ',' or ')' in call to '{name_token.value}'", self._current_position()
                )

    # Вспомогательные методы для работы с токенами

    def _current_token(self) -> Token:
        return self._tokens[self._position]

    def _current_position(self) -> int:
        return self._current_token().position

    def _is_at_end(self) -> bool:
        return self._current_token().type == 'EOF'

    def _advance(self) -> Token:
        token = self._current_token()
        if not self._is_at_end():
            self._position += 1
        return token

    def _match_operator(self, operator: str) -> bool:
        current = self._current_token()
        if current.type == 'OPERATOR' and current.value == operator:
            self._advance()
            return True
        return False

    def _match_symbol(self, symbol: str) -> bool:
        current = self._current_token()
        if current.type == 'SYMBOL' and current.value == symbol:
            self._advance()
            return True
        return False


def _number(text: str) -> Any:
    return float(text) if "." in text else int(text)


# ---------------------------- output expressions ---------------------------- #

@dataclass(frozen=True)
class FilterCall:
    """Фильтр в цепочке вывода: name:arg1,arg2"""
    name: str
    args: Tuple[Any, ...] = ()
    position: int = 0

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}:{','.join(str(a) for a in self.args)}"


@dataclass
class OutputExpression:
    """
    Выражение вывода ${source | f1 | f2:arg}.

    Attributes:
        source: Текст исходного выражения (без фильтров)
        expression: Разобранное исходное выражение
        filters: Фильтры в порядке применения (слева направо)
    """
    source: str
    expression: Expression
    filters: List[FilterCall] = field(default_factory=list)


def iter_top_level(text: str) -> Iterator[int]:
    """Позиции символов вне строковых литералов и скобок."""
    depth = 0
    quote: Optional[str] = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        elif depth == 0:
            yield i
        i += 1


def split_top_level(text: str, separator: str) -> List[Tuple[str, int]]:
    """
    Делит текст по одиночному разделителю вне кавычек и скобок.

    Для '|' сдвоенный '||' не является точкой разбиения.

    Returns:
        Список пар (фрагмент, смещение начала фрагмента)
    """
    parts: List[Tuple[str, int]] = []
    start = 0
    skip_to = -1
    for i in iter_top_level(text):
        if i <= skip_to or text[i] != separator:
            continue
        if separator == "|" and text[i + 1:i + 2] == "|":
            skip_to = i + 1
            continue
        parts.append((text[start:i], start))
        start = i + 1
    parts.append((text[start:], start))
    return parts


def coerce_filter_arg(raw: str) -> Any:
    """
    Приводит аргумент фильтра к значению.

    Строки в кавычках — без кавычек, числа — числами,
    true/false/null — литералами, остальное — как есть.
    """
    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return unescape(text[1:-1])
    if _NUMBER_RE.match(text):
        return _number(text)
    if text in _KEYWORD_VALUES:
        return _KEYWORD_VALUES[text]
    return text


def parse_filter(segment: str, offset: int = 0) -> FilterCall:
    """Разбирает сегмент фильтра 'name[:arg[,arg…]]'."""
    text = segment.strip()
    if not text:
        raise ExpressionSyntaxError("Empty filter", offset)
    name, sep, arg_text = text.partition(":")
    name = name.strip()
    if not _NAME_RE.match(name):
        raise ExpressionSyntaxError(f"Invalid filter name '{name}'", offset)
    args: Tuple[Any, ...] = ()
    if sep and arg_text.strip():
        args = tuple(coerce_filter_arg(part) for part, _ in split_top_level(arg_text, ","))
    return FilterCall(name=name, args=args, position=offset)


def parse_output(text: str, parser: Optional[ExpressionParser] = None) -> OutputExpression:
    """
    Разбирает выражение вывода с фильтрами.

    Raises:
        ExpressionSyntaxError: При синтаксической ошибке
    """
    parts = split_top_level(text, "|")
    source, source_offset = parts[0]
    if not source.strip():
        raise ExpressionSyntaxError("Empty expression", source_offset)

    try:
        expression = (parser or ExpressionParser()).parse(source)
    except ExpressionSyntaxError as e:
        raise ExpressionSyntaxError(e.message, source_offset + e.position) from e

    filters = [parse_filter(segment, offset) for segment, offset in parts[1:]]
    return OutputExpression(source=source.strip(), expression=expression, filters=filters)


def parse_expression(text: str) -> Expression:
    """Удобная функция для разбора выражения."""
    return ExpressionParser().parse(text)


__all__ = [
    "ExpressionParser",
    "ExpressionSyntaxError",
    "FilterCall",
    "OutputExpression",
    "parse_expression",
    "parse_output",
    "parse_filter",
    "iter_top_level",
    "split_top_level",
    "coerce_filter_arg",
    "COMPARISON_OPERATORS",
]
