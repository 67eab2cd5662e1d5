"""
Лексический анализатор шаблонов.

Разбивает текст шаблона на плоский поток токенов:
- обычный текст между директивами
- переменные ${expr}
- условия ${#if expr} / ${else} / ${/if}
- циклы ${#each expr} / ${/each}
- включения ${include name}
- комментарии ${!-- ... --} (поглощаются, в поток не попадают)
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from .tokens import Token, TokenStatistics, TokenType, TokenValidation
from ..config.model import LexerConfig
from ..errors import InvalidTemplate

logger = logging.getLogger(__name__)

# Открывающие разделители: поле конфигурации → (тип токена, есть ли тело до variable_end)
_OPENERS: Dict[str, Tuple[TokenType, bool]] = {
    "variable_start": (TokenType.VARIABLE, True),
    "conditional_start": (TokenType.CONDITIONAL_START, True),
    "conditional_else": (TokenType.CONDITIONAL_ELSE, False),
    "conditional_end": (TokenType.CONDITIONAL_END, False),
    "loop_start": (TokenType.LOOP_START, True),
    "loop_end": (TokenType.LOOP_END, False),
    "include": (TokenType.INCLUDE, True),
    "comment_start": (TokenType.COMMENT, True),
}

# Названия конструкций для сообщений об ошибках
_UNCLOSED_NAMES = {
    TokenType.VARIABLE: "variable",
    TokenType.CONDITIONAL_START: "conditional start",
    TokenType.LOOP_START: "loop start",
    TokenType.INCLUDE: "include",
}

_QUOTES = ("'", '"')


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


class TemplateLexer:
    """
    Лексический анализатор шаблонов.

    В каждой позиции выбирается самый длинный подходящий открывающий
    разделитель, поэтому ${#if побеждает ${. Ключевые разделители,
    оканчивающиеся буквой (${#if, ${#each, ${include), срабатывают
    только на границе слова: ${includes} остаётся переменной.
    """

    def __init__(self, config: Optional[LexerConfig] = None):
        self.config = config or LexerConfig()
        self._fold = (lambda s: s.lower()) if self.config.ignore_case else (lambda s: s)

        openers = []
        for name, (token_type, has_body) in _OPENERS.items():
            delimiter = getattr(self.config, name)
            openers.append((self._fold(delimiter), token_type, has_body))
        # Длинные разделители проверяются первыми
        self._openers = sorted(openers, key=lambda item: len(item[0]), reverse=True)

        flags = re.IGNORECASE if self.config.ignore_case else 0
        alternatives = sorted({re.escape(o[0]) for o in openers}, key=len, reverse=True)
        self._opener_re = re.compile("|".join(alternatives), flags)

        self._reset("")

    def _reset(self, text: str) -> None:
        self.text = text
        self.position = 0
        self.line = 1
        self.column = 1
        self.length = len(text)

    # ---------------------------- public API ---------------------------- #

    def tokenize(self, text: str) -> List[Token]:
        """
        Токенизирует весь исходный текст и возвращает список токенов.

        Raises:
            InvalidTemplate: Незакрытая директива или комментарий
        """
        self._reset(text)
        tokens: List[Token] = []

        while self.position < self.length:
            opener = self._match_opener(self.position)
            if opener is None:
                tokens.append(self._read_text())
                continue
            token = self._read_directive(*opener)
            if token is not None:
                tokens.append(token)

        tokens.append(Token(TokenType.EOF, "", self.line, self.column, self.length, self.length))
        logger.debug(f"Tokenized template: {len(tokens)} tokens")
        return tokens

    def validate(self, tokens: List[Token]) -> TokenValidation:
        """
        Проверяет баланс блочных токенов.

        Returns:
            TokenValidation со списком ошибок
        """
        errors: List[str] = []
        conditional_depth = 0
        loop_depth = 0

        for token in tokens:
            if token.type == TokenType.CONDITIONAL_START:
                conditional_depth += 1
            elif token.type == TokenType.CONDITIONAL_ELSE:
                if conditional_depth <= 0:
                    errors.append(f"Unmatched else at line {token.line}, column {token.column}")
            elif token.type == TokenType.CONDITIONAL_END:
                conditional_depth -= 1
                if conditional_depth < 0:
                    errors.append(f"Unmatched conditional end at line {token.line}, column {token.column}")
                    conditional_depth = 0
            elif token.type == TokenType.LOOP_START:
                loop_depth += 1
            elif token.type == TokenType.LOOP_END:
                loop_depth -= 1
                if loop_depth < 0:
                    errors.append(f"Unmatched loop end at line {token.line}, column {token.column}")
                    loop_depth = 0

        if conditional_depth > 0:
            errors.append(f"Unclosed conditional blocks: {conditional_depth}")
        if loop_depth > 0:
            errors.append(f"Unclosed loop blocks: {loop_depth}")

        return TokenValidation(valid=not errors, errors=errors)

    @staticmethod
    def statistics(tokens: List[Token]) -> TokenStatistics:
        counts: Dict[str, int] = {}
        for token in tokens:
            counts[token.type.value] = counts.get(token.type.value, 0) + 1
        return TokenStatistics(total_tokens=len(tokens), token_counts=counts)

    # ---------------------------- scanning ---------------------------- #

    def _match_opener(self, pos: int) -> Optional[Tuple[str, TokenType, bool]]:
        """Самый длинный разделитель, начинающийся в pos (с учётом границы слова)."""
        for delimiter, token_type, has_body in self._openers:
            end = pos + len(delimiter)
            if end > self.length:
                continue
            if self._fold(self.text[pos:end]) != delimiter:
                continue
            if _is_word_char(delimiter[-1]) and end < self.length and _is_word_char(self.text[end]):
                continue
            return delimiter, token_type, has_body
        return None

    def _read_text(self) -> Token:
        start, line, column = self.position, self.line, self.column
        end = self._find_next_opener(self.position + 1)
        self._advance_to(end)
        return Token(TokenType.TEXT, self.text[start:end], line, column, start, end)

    def _find_next_opener(self, pos: int) -> int:
        """Позиция следующего разделителя или конец текста."""
        while True:
            match = self._opener_re.search(self.text, pos)
            if match is None:
                return self.length
            if self._match_opener(match.start()) is not None:
                return match.start()
            pos = match.start() + 1

    def _read_directive(self, delimiter: str, token_type: TokenType, has_body: bool) -> Optional[Token]:
        start, line, column = self.position, self.line, self.column
        body_start = start + len(delimiter)

        if token_type == TokenType.COMMENT:
            end = self._find_plain(self.config.comment_end, body_start)
            if end < 0:
                raise InvalidTemplate(
                    f"Unclosed comment, expected '{self.config.comment_end}'",
                    line=line, column=column,
                )
            self._advance_to(end + len(self.config.comment_end))
            return None

        if not has_body:
            self._advance_to(body_start)
            return Token(token_type, "", line, column, start, body_start)

        closer = self._find_closer(body_start)
        if closer < 0:
            raise InvalidTemplate(
                f"Unclosed {_UNCLOSED_NAMES[token_type]}, expected '{self.config.variable_end}'",
                line=line, column=column,
            )
        end = closer + len(self.config.variable_end)
        value = self.text[body_start:closer].strip()
        self._advance_to(end)
        return Token(token_type, value, line, column, start, end)

    def _find_plain(self, needle: str, pos: int) -> int:
        if not self.config.ignore_case:
            return self.text.find(needle, pos)
        match = re.compile(re.escape(needle), re.IGNORECASE).search(self.text, pos)
        return match.start() if match else -1

    def _find_closer(self, pos: int) -> int:
        """
        Ищет variable_end, пропуская строки в кавычках.

        Незакрытая кавычка считается обычным символом.
        """
        closer = self._fold(self.config.variable_end)
        size = len(closer)
        while pos < self.length:
            if self._fold(self.text[pos:pos + size]) == closer:
                return pos
            ch = self.text[pos]
            if ch in _QUOTES:
                quote_end = self._skip_quoted(pos)
                if quote_end is not None:
                    pos = quote_end
                    continue
            pos += 1
        return -1

    def _skip_quoted(self, pos: int) -> Optional[int]:
        quote = self.text[pos]
        i = pos + 1
        while i < self.length:
            ch = self.text[i]
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                return i + 1
            i += 1
        return None

    def _advance_to(self, new_pos: int) -> None:
        """
        Перемещает позицию, обновляя номера строк и колонок.
        """
        chunk = self.text[self.position:new_pos]
        newlines = chunk.count("\n")
        if newlines:
            self.line += newlines
            self.column = len(chunk) - chunk.rfind("\n")
        else:
            self.column += len(chunk)
        self.position = new_pos


def tokenize_template(text: str, config: Optional[LexerConfig] = None) -> List[Token]:
    """
    Удобная функция для токенизации шаблона.

    Args:
        text: Исходный текст шаблона
        config: Разделители; None — по умолчанию

    Returns:
        Список токенов, завершённый EOF

    Raises:
        InvalidTemplate: При ошибке лексического анализа
    """
    return TemplateLexer(config).tokenize(text)


__all__ = ["TemplateLexer", "tokenize_template"]
