"""
Вычислитель выражений.

Проходит по дереву выражения и вычисляет его значение,
разрешая пути через переданную функцию и вызывая
предварительно разрешённые функции окружения.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, cast

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
from ..values import MISSING, compare, is_truthy

Resolver = Callable[[str], Any]


class EvaluationError(Exception):
    """Ошибка при вычислении выражения."""
    pass


class ExpressionEvaluator:
    """
    Вычислитель выражений.

    && и || вычисляются с коротким замыканием и возвращают значение
    операнда (первое ложное / первое истинное, иначе последнее);
    ! всегда возвращает bool.
    """

    def __init__(self, resolve: Resolver, functions: Mapping[str, Callable[..., Any]]):
        """
        Args:
            resolve: Разрешение пути переменной (MISSING, если не найдено)
            functions: Функции, доступные в выражениях
        """
        self.resolve = resolve
        self.functions = functions

    def evaluate(self, expression: Expression) -> Any:
        """
        Вычисляет значение выражения.

        Raises:
            EvaluationError: Неизвестный тип узла, неизвестная функция или ошибка в функции
        """
        expr_type = expression.get_type()

        if expr_type == ExprType.LITERAL:
            return cast(LiteralExpr, expression).value
        elif expr_type == ExprType.PATH:
            return self.resolve(cast(PathExpr, expression).path)
        elif expr_type == ExprType.CALL:
            return self._evaluate_call(cast(CallExpr, expression))
        elif expr_type == ExprType.GROUP:
            return self.evaluate(cast(GroupExpr, expression).expression)
        elif expr_type == ExprType.NOT:
            return not is_truthy(self.evaluate(cast(NotExpr, expression).expression))
        elif expr_type == ExprType.AND:
            return self._evaluate_and(cast(LogicalExpr, expression))
        elif expr_type == ExprType.OR:
            return self._evaluate_or(cast(LogicalExpr, expression))
        elif expr_type == ExprType.COMPARISON:
            return self._evaluate_comparison(cast(ComparisonExpr, expression))
        else:
            raise EvaluationError(f"Unknown expression type: {expr_type}")

    def test(self, expression: Expression) -> bool:
        """Истинность значения выражения."""
        return is_truthy(self.evaluate(expression))

    def _evaluate_call(self, expression: CallExpr) -> Any:
        func = self.functions.get(expression.name)
        if func is None:
            raise EvaluationError(f"Unknown function: {expression.name}")
        args = [_plain(self.evaluate(arg)) for arg in expression.args]
        try:
            return func(*args)
        except Exception as e:
            raise EvaluationError(f"Function '{expression.name}' failed: {e}") from e

    def _evaluate_and(self, expression: LogicalExpr) -> Any:
        left = self.evaluate(expression.left)
        if not is_truthy(left):
            return left  # Короткое вычисление
        return self.evaluate(expression.right)

    def _evaluate_or(self, expression: LogicalExpr) -> Any:
        left = self.evaluate(expression.left)
        if is_truthy(left):
            return left  # Короткое вычисление
        return self.evaluate(expression.right)

    def _evaluate_comparison(self, expression: ComparisonExpr) -> bool:
        left = self.evaluate(expression.left)
        right = self.evaluate(expression.right)
        try:
            return compare(expression.operator, left, right)
        except ValueError as e:
            raise EvaluationError(str(e)) from e


def _plain(value: Any) -> Any:
    """MISSING наружу не передаётся: функции и фильтры видят None."""
    return None if value is MISSING else value


__all__ = ["ExpressionEvaluator", "EvaluationError", "Resolver"]
