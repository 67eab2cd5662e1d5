"""
Лексер выражений условий и вывода.

Разбивает строку выражения на значимые элементы:
- Строки в одинарных и двойных кавычках (с экранированием через \\)
- Числа
- Идентификаторы (точечные пути, сегменты могут быть индексами)
- Ключевые слова true, false, null
- Операторы сравнения и логики
- Символы (скобки, запятая)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List


class ExpressionSyntaxError(Exception):
    """Синтаксическая ошибка в выражении."""

    def __init__(self, message: str, position: int):
        self.message = message
        self.position = position
        super().__init__(f"Parse error at position {position}: {message}")


@dataclass
class Token:
    """
    Токен выражения.

    Attributes:
        type: Тип токена (STRING, NUMBER, IDENTIFIER, KEYWORD, OPERATOR, SYMBOL, EOF)
        value: Значение токена (для строк — уже без кавычек)
        position: Позиция в исходной строке
    """
    type: str
    value: str
    position: int

    def __repr__(self):
        return f"Token({self.type}, '{self.value}', pos={self.position})"


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


def unescape(body: str) -> str:
    """Раскрывает экранирование внутри строкового литерала."""
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


class ExpressionLexer:
    """
    Лексер для разбиения строки выражения на токены.
    """

    # Спецификация токенов: (regex_pattern, token_type, ignore_flag)
    TOKEN_SPECS = [
        (r'\s+', 'WHITESPACE', True),

        (r'"(?:[^"\\]|\\.)*"', 'STRING', False),
        (r"'(?:[^'\\]|\\.)*'", 'STRING', False),

        (r'-?\d+(?:\.\d+)?(?![\w.])', 'NUMBER', False),

        # Длинные операторы раньше коротких
        (r'===|!==|==|!=|>=|<=|&&|\|\||>|<|!', 'OPERATOR', False),

        (r'\(', 'SYMBOL', False),
        (r'\)', 'SYMBOL', False),
        (r',', 'SYMBOL', False),

        # Путь: user.profile.name, items.0.title
        (r'[A-Za-z_$][\w$]*(?:\.[\w$]+)*', 'IDENTIFIER', False),

        (r'.', 'UNKNOWN', False),
    ]

    KEYWORDS = {'true', 'false', 'null'}

    def __init__(self):
        self._compiled_patterns = [
            (re.compile(pattern, re.DOTALL), token_type, ignore)
            for pattern, token_type, ignore in self.TOKEN_SPECS
        ]

    def tokenize(self, text: str) -> List[Token]:
        """
        Разбивает строку на токены.

        Returns:
            Список токенов, включая EOF в конце

        Raises:
            ExpressionSyntaxError: При обнаружении неизвестного символа
        """
        tokens: List[Token] = []
        position = 0

        while position < len(text):
            for pattern, token_type, ignore in self._compiled_patterns:
                match = pattern.match(text, position)
                if not match:
                    continue
                value = match.group(0)
                if not ignore:
                    if token_type == 'UNKNOWN':
                        if value in ('"', "'"):
                            raise ExpressionSyntaxError("Unterminated string literal", position)
                        raise ExpressionSyntaxError(f"Unexpected character '{value}'", position)

                    final_type = token_type
                    if token_type == 'IDENTIFIER' and value in self.KEYWORDS:
                        final_type = 'KEYWORD'
                    elif token_type == 'STRING':
                        value = unescape(value[1:-1])

                    tokens.append(Token(type=final_type, value=value, position=position))
                position = match.end()
                break

        tokens.append(Token(type='EOF', value='', position=position))
        return tokens

    def tokenize_stream(self, text: str) -> Iterator[Token]:
        for token in self.tokenize(text):
            yield token


__all__ = ["ExpressionLexer", "ExpressionSyntaxError", "Token", "unescape"]
