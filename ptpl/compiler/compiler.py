"""
Компилятор AST в процедуру рендеринга.

Один проход по дереву: выражения разбираются, фильтры и функции
разрешаются по снимку окружения, зависимости собираются в порядке
первого появления без повторов.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from .instructions import (
    AppendText,
    Branch,
    EmitValue,
    IncludeCall,
    Instruction,
    Iterate,
    RenderProcedure,
    ResolvedFilter,
)
from ..environment import EnvironmentSnapshot, Function
from ..errors import InvalidTemplate, RenderError
from ..expressions.lexer import ExpressionSyntaxError
from ..expressions.model import Expression
from ..expressions.parser import ExpressionParser, OutputExpression, parse_output
from ..template.nodes import (
    ConditionalNode,
    IncludeNode,
    LoopNode,
    RootNode,
    TemplateNode,
    TextNode,
    VariableNode,
)

logger = logging.getLogger(__name__)

THIS = "this"


def loop_bindings(variable: str) -> Tuple[str, ...]:
    """Имена, связываемые циклом в локальной области."""
    return (variable, f"{variable}_index", f"{variable}_first", f"{variable}_last", THIS)


@dataclass(frozen=True)
class CompileOutput:
    procedure: RenderProcedure
    dependencies: Tuple[str, ...]
    compile_time_ms: float


class TemplateCompiler:
    """
    Компилятор шаблонов.

    Ошибки фатальны: неизвестный фильтр или функция — RenderError,
    синтаксическая ошибка выражения — InvalidTemplate с позицией узла.
    """

    def __init__(self, environment: EnvironmentSnapshot):
        self.environment = environment
        self._parser = ExpressionParser()
        self._dependencies: Dict[str, None] = {}
        self._functions: Dict[str, Function] = {}
        self._bound: List[Set[str]] = []

    def compile(self, root: RootNode) -> CompileOutput:
        """
        Компилирует AST.

        Raises:
            InvalidTemplate: Некорректное выражение или структура
            RenderError: Неизвестный фильтр, функция или тип узла
        """
        start = time.perf_counter()
        self._dependencies = {}
        self._functions = {}
        self._bound = []

        if not isinstance(root, RootNode):
            raise RenderError(f"Unknown node type: {getattr(root, 'node_type', type(root).__name__)}")
        instructions = self._compile_nodes(root.children)

        procedure = RenderProcedure(
            instructions=instructions,
            functions=dict(self._functions),
            revision=self.environment.revision,
        )
        elapsed = (time.perf_counter() - start) * 1000.0
        dependencies = tuple(self._dependencies)
        logger.debug(
            f"Compiled template: {procedure.count()} instructions, "
            f"{len(dependencies)} dependencies in {elapsed:.2f}ms"
        )
        return CompileOutput(procedure=procedure, dependencies=dependencies, compile_time_ms=elapsed)

    # ---------------------------- nodes ---------------------------- #

    def _compile_nodes(self, nodes: List[TemplateNode]) -> Tuple[Instruction, ...]:
        return tuple(self._compile_node(node) for node in nodes)

    def _compile_node(self, node: TemplateNode) -> Instruction:
        if isinstance(node, TextNode):
            return AppendText(node.text)
        if isinstance(node, VariableNode):
            return self._compile_variable(node)
        if isinstance(node, ConditionalNode):
            return self._compile_conditional(node)
        if isinstance(node, LoopNode):
            return self._compile_loop(node)
        if isinstance(node, IncludeNode):
            return IncludeCall(node.name, position=node.position)
        raise RenderError(
            f"Unknown node type: {getattr(node, 'node_type', type(node).__name__)}",
            line=node.position.line, column=node.position.column,
            details={"nodeType": getattr(node, "node_type", type(node).__name__)},
        )

    def _compile_variable(self, node: VariableNode) -> EmitValue:
        output = self._parse_output(node)
        self._register_expression(output.expression, node)

        filters = []
        for call in output.filters:
            func = self.environment.filters.get(call.name)
            if func is None:
                raise RenderError(
                    f"Unknown filter: {call.name}",
                    line=node.position.line, column=node.position.column,
                    details={"filter": call.name},
                )
            filters.append(ResolvedFilter(call.name, func, call.args))
        return EmitValue(output.source, output.expression, tuple(filters), position=node.position)

    def _compile_conditional(self, node: ConditionalNode) -> Branch:
        if not node.condition.strip():
            raise InvalidTemplate(
                "Empty condition in conditional block",
                line=node.position.line, column=node.position.column,
            )
        condition = self._parse_expression(node.condition, node)
        self._register_expression(condition, node)
        return Branch(
            condition,
            then=self._compile_nodes(node.children),
            otherwise=self._compile_nodes(node.else_children),
            position=node.position,
        )

    def _compile_loop(self, node: LoopNode) -> Iterate:
        if not node.collection.strip() or not node.variable.isidentifier():
            raise InvalidTemplate(
                f"Invalid loop expression: '{node.variable} in {node.collection}'",
                line=node.position.line, column=node.position.column,
            )
        collection = self._parse_expression(node.collection, node)
        # коллекция вычисляется во внешней области
        self._register_expression(collection, node)

        self._bound.append(set(loop_bindings(node.variable)))
        try:
            body = self._compile_nodes(node.children)
        finally:
            self._bound.pop()
        return Iterate(node.variable, collection, body, position=node.position)

    # ---------------------------- expressions ---------------------------- #

    def _parse_expression(self, text: str, node: TemplateNode) -> Expression:
        try:
            return self._parser.parse(text)
        except ExpressionSyntaxError as e:
            raise _syntax_error(text, e, node) from e

    def _parse_output(self, node: VariableNode) -> OutputExpression:
        try:
            return parse_output(node.expression, self._parser)
        except ExpressionSyntaxError as e:
            raise _syntax_error(node.expression, e, node) from e

    def _register_expression(self, expression: Expression, node: TemplateNode) -> None:
        for path in expression.paths():
            if not self._is_loop_local(path):
                self._dependencies.setdefault(path, None)
        for name in expression.functions():
            func = self.environment.functions.get(name)
            if func is None:
                raise RenderError(
                    f"Unknown function: {name}",
                    line=node.position.line, column=node.position.column,
                    details={"function": name},
                )
            self._functions[name] = func

    def _is_loop_local(self, path: str) -> bool:
        root = path.split(".", 1)[0]
        return any(root in scope for scope in self._bound)


def _syntax_error(text: str, error: ExpressionSyntaxError, node: TemplateNode) -> InvalidTemplate:
    return InvalidTemplate(
        f"Invalid expression '{text}': {error.message}",
        line=node.position.line, column=node.position.column,
        details={"expression": text, "position": error.position},
    )


def collect_expression_issues(
    root: TemplateNode,
    environment: EnvironmentSnapshot,
) -> Tuple[List[str], List[str]]:
    """
    Статическая проверка всех выражений шаблона.

    Returns:
        (errors, warnings): синтаксические ошибки и неизвестные фильтры/функции
    """
    errors: List[str] = []
    warnings: List[str] = []
    parser = ExpressionParser()

    def check_functions(expression: Expression, where: str) -> None:
        for name in expression.functions():
            if name not in environment.functions:
                warnings.append(f"Unknown function: {name} at {where}")

    def parse(text: str, where: str, output: bool = False) -> None:
        try:
            if output:
                parsed = parse_output(text, parser)
                check_functions(parsed.expression, where)
                for call in parsed.filters:
                    if call.name not in environment.filters:
                        warnings.append(f"Unknown filter: {call.name} at {where}")
            else:
                check_functions(parser.parse(text), where)
        except ExpressionSyntaxError as e:
            errors.append(f"Invalid expression '{text}' at {where}: {e.message}")

    def visit(node: TemplateNode) -> None:
        where = str(node.position)
        if isinstance(node, VariableNode) and node.expression.strip():
            parse(node.expression, where, output=True)
        elif isinstance(node, ConditionalNode) and node.condition.strip():
            parse(node.condition, where)
        elif isinstance(node, LoopNode) and node.collection.strip():
            parse(node.collection, where)
        for child in node.iter_children():
            visit(child)

    visit(root)
    return errors, warnings


def compile_template(root: RootNode, environment: EnvironmentSnapshot) -> CompileOutput:
    """Удобная функция для компиляции AST."""
    return TemplateCompiler(environment).compile(root)


__all__ = [
    "TemplateCompiler",
    "CompileOutput",
    "compile_template",
    "collect_expression_issues",
    "loop_bindings",
    "THIS",
]
