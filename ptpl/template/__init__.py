"""
Лексер и парсер шаблонов.
"""

from .tokens import Token, TokenType, TokenValidation, TokenStatistics
from .lexer import TemplateLexer, tokenize_template
from .nodes import (
    Position,
    TemplateNode,
    RootNode,
    TextNode,
    VariableNode,
    ConditionalNode,
    LoopNode,
    IncludeNode,
)
from .parser import (
    TemplateParser,
    parse_template,
    validate_ast,
    ast_statistics,
    AstValidation,
    AstStatistics,
)

__all__ = [
    "Token",
    "TokenType",
    "TokenValidation",
    "TokenStatistics",
    "TemplateLexer",
    "tokenize_template",
    "Position",
    "TemplateNode",
    "RootNode",
    "TextNode",
    "VariableNode",
    "ConditionalNode",
    "LoopNode",
    "IncludeNode",
    "TemplateParser",
    "parse_template",
    "validate_ast",
    "ast_statistics",
    "AstValidation",
    "AstStatistics",
]
