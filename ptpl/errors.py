"""
Base exceptions for user-facing errors.

All expected errors that should be displayed to the user
as clean messages (without stack traces) must inherit from PtplUserError.

Programming errors and bugs should NOT inherit from PtplUserError;
they will propagate with full tracebacks.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PtplUserError(Exception):
    """
    Base class for all user-facing errors in ptpl.

    These errors indicate problems that the user can fix:
    broken templates, missing variables, bad configuration.
    """
    pass


class ConfigError(PtplUserError):
    """Invalid engine configuration (file or typed values)."""
    pass


class TemplateError(PtplUserError):
    """
    Ошибка обработки шаблона с позиционной информацией.

    Attributes:
        message: Текст ошибки без позиции
        line: Номер строки (начиная с 1) или None
        column: Номер колонки (начиная с 1) или None
        details: Дополнительный контекст (имя фильтра, переменной и т.п.)
    """

    code = "TEMPLATE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        column: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.line = line
        self.column = column
        self.details: Dict[str, Any] = dict(details or {})
        if line is not None and column is not None:
            super().__init__(f"{message} at {line}:{column}")
        else:
            super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "details": dict(self.details),
        }


class InvalidTemplate(TemplateError):
    """Лексическая или синтаксическая ошибка шаблона."""
    code = "INVALID_TEMPLATE"


class RenderError(TemplateError):
    """Ошибка компиляции или рендеринга."""
    code = "RENDER_ERROR"


class RenderTimeout(RenderError):
    """Рендеринг не уложился в отведённое время."""
    code = "RENDER_TIMEOUT"


class UndefinedVariable(TemplateError):
    """Отсутствующая переменная в строгом режиме."""
    code = "UNDEFINED_VARIABLE"

    def __init__(self, variable: str, **kwargs: Any):
        details = dict(kwargs.pop("details", None) or {})
        details["variable"] = variable
        super().__init__(f"Undefined variable: {variable}", details=details, **kwargs)
        self.variable = variable


__all__ = [
    "PtplUserError",
    "ConfigError",
    "TemplateError",
    "InvalidTemplate",
    "RenderError",
    "RenderTimeout",
    "UndefinedVariable",
]
