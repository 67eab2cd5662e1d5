"""
Язык выражений для условий, заголовков циклов и выводов.
"""

from .lexer import ExpressionLexer, ExpressionSyntaxError
from .model import (
    ExprType,
    Expression,
    LiteralExpr,
    PathExpr,
    CallExpr,
    GroupExpr,
    NotExpr,
    LogicalExpr,
    ComparisonExpr,
)
from .parser import (
    ExpressionParser,
    FilterCall,
    OutputExpression,
    parse_expression,
    parse_output,
)
from .evaluator import ExpressionEvaluator, EvaluationError

__all__ = [
    "ExpressionLexer",
    "ExpressionSyntaxError",
    "ExprType",
    "Expression",
    "LiteralExpr",
    "PathExpr",
    "CallExpr",
    "GroupExpr",
    "NotExpr",
    "LogicalExpr",
    "ComparisonExpr",
    "ExpressionParser",
    "FilterCall",
    "OutputExpression",
    "parse_expression",
    "parse_output",
    "ExpressionEvaluator",
    "EvaluationError",
]
