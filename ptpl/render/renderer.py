"""
Рендерер скомпилированных шаблонов.

Выполняет процедуру рендеринга в RenderFrame: подставляет значения
по умолчанию, применяет строгий/мягкий режим, ограничение по времени
и экранирование. Также пакетный и потоковый рендеринг и статистика.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .context import RenderFrame
from ..compiler.compiler import THIS
from ..compiler.instructions import AppendText, Branch, EmitValue, IncludeCall, Instruction, Iterate
from ..config.model import RenderOptions
from ..errors import RenderError, TemplateError
from ..expressions.evaluator import EvaluationError, ExpressionEvaluator
from ..expressions.model import Expression
from ..types import CompiledTemplate, RenderResult
from ..values import MISSING, is_truthy, stringify, to_sequence

logger = logging.getLogger(__name__)

IncludeHook = Callable[[str, RenderFrame], None]

_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
)


def escape(text: str) -> str:
    """HTML-экранирование & < > " '."""
    for char, entity in _ESCAPES:
        text = text.replace(char, entity)
    return text


@dataclass
class RenderRequest:
    template: CompiledTemplate
    variables: Optional[Mapping[str, Any]] = None
    options: Optional[RenderOptions] = None


@dataclass
class DependencyCheck:
    valid: bool
    missing: List[str] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)


@dataclass
class RenderStatistics:
    total_renders: int = 0
    successful_renders: int = 0
    failed_renders: int = 0
    average_render_time_ms: float = 0.0
    used_variables: List[str] = field(default_factory=list)
    common_missing_variables: List[Tuple[str, int]] = field(default_factory=list)


class Renderer:
    """
    Рендерер шаблонов.

    Не изменяет скомпилированные шаблоны: всё состояние вызова
    находится в RenderFrame.
    """

    def __init__(self, options: Optional[RenderOptions] = None):
        self.options = options or RenderOptions()

    def render(
        self,
        compiled: CompiledTemplate,
        variables: Optional[Mapping[str, Any]] = None,
        options: Optional[RenderOptions] = None,
        *,
        include_hook: Optional[IncludeHook] = None,
        raise_errors: bool = False,
    ) -> RenderResult:
        """
        Рендерит шаблон.

        Args:
            compiled: Скомпилированный шаблон
            variables: Дерево переменных
            options: Опции вызова (по умолчанию — опции рендерера)
            include_hook: Обработчик включений
            raise_errors: Пробрасывать ошибки вместо неуспешного результата

        Returns:
            RenderResult; при ошибке — пустой вывод, error и error_code
        """
        opts = options or self.options
        frame = RenderFrame(variables, opts, include_hook=include_hook)
        try:
            self.execute(compiled, frame)
            frame.check_deadline()
            output = frame.text()
            if opts.auto_escape:
                output = escape(output)
        except TemplateError as e:
            if raise_errors:
                raise
            logger.debug(f"Render of {compiled.id[:12]} failed: {e}")
            return RenderResult(
                output="",
                render_time_ms=frame.elapsed_ms(),
                used_variables=list(frame.used),
                missing_variables=list(frame.missing),
                error=str(e),
                error_code=e.code,
            )

        return RenderResult(
            output=output,
            render_time_ms=frame.elapsed_ms(),
            used_variables=list(frame.used),
            missing_variables=list(frame.missing),
        )

    def execute(self, compiled: CompiledTemplate, frame: RenderFrame) -> None:
        """
        Выполняет процедуру шаблона в заданном контексте.

        Используется и для включений: дочерний шаблон пишет в тот же frame.
        """
        frame.require(compiled.dependencies)
        evaluator = ExpressionEvaluator(frame.resolve, compiled.procedure.functions)
        self._run(compiled.procedure.instructions, frame, evaluator)

    # ---------------------------- execution ---------------------------- #

    def _run(self, instructions: Tuple[Instruction, ...], frame: RenderFrame, evaluator: ExpressionEvaluator) -> None:
        for ins in instructions:
            frame.check_deadline()
            if isinstance(ins, AppendText):
                frame.write(ins.text)
            elif isinstance(ins, EmitValue):
                frame.write(self._emit(ins, evaluator))
            elif isinstance(ins, Branch):
                taken = self._evaluate(evaluator, ins.condition, ins)
                self._run(ins.then if is_truthy(taken) else ins.otherwise, frame, evaluator)
            elif isinstance(ins, Iterate):
                self._iterate(ins, frame, evaluator)
            elif isinstance(ins, IncludeCall):
                self._include(ins, frame)
            else:
                raise RenderError(f"Unknown instruction: {type(ins).__name__}")

    def _evaluate(self, evaluator: ExpressionEvaluator, expression: Expression, ins: Any) -> Any:
        try:
            return evaluator.evaluate(expression)
        except EvaluationError as e:
            raise RenderError(
                str(e), line=ins.position.line, column=ins.position.column,
                details={"expression": str(expression)},
            ) from e

    def _emit(self, ins: EmitValue, evaluator: ExpressionEvaluator) -> str:
        value = self._evaluate(evaluator, ins.expression, ins)
        if value is MISSING:
            value = None
        for f in ins.filters:
            try:
                value = f.func(value, *f.args)
            except TemplateError:
                raise
            except Exception as e:
                raise RenderError(
                    f"Filter '{f.name}' failed: {e}",
                    line=ins.position.line, column=ins.position.column,
                    details={"filter": f.name},
                ) from e
        return stringify(value)

    def _iterate(self, ins: Iterate, frame: RenderFrame, evaluator: ExpressionEvaluator) -> None:
        items = to_sequence(self._evaluate(evaluator, ins.collection, ins)) or []
        last = len(items) - 1
        name = ins.variable
        for index, item in enumerate(items):
            frame.check_deadline()
            frame.push_scope({
                name: item,
                f"{name}_index": index,
                f"{name}_first": index == 0,
                f"{name}_last": index == last,
                THIS: item,
            })
            try:
                self._run(ins.body, frame, evaluator)
            finally:
                frame.pop_scope()

    def _include(self, ins: IncludeCall, frame: RenderFrame) -> None:
        if frame.include_hook is None:
            raise RenderError(
                f"Cannot include '{ins.name}': no include loader configured",
                line=ins.position.line, column=ins.position.column,
                details={"template": ins.name},
            )
        frame.include_hook(ins.name, frame)

    # ---------------------------- batch / stream ---------------------------- #

    def render_batch(self, requests: Iterable[RenderRequest], *, include_hook: Optional[IncludeHook] = None) -> List[RenderResult]:
        """Независимый рендеринг набора (шаблон, переменные, опции)."""
        return [
            self.render(r.template, r.variables, r.options or self.options, include_hook=include_hook)
            for r in requests
        ]

    def render_stream(
        self,
        compiled: CompiledTemplate,
        variables: Optional[Mapping[str, Any]] = None,
        chunk_size: int = 1024,
        **kwargs: Any,
    ) -> Iterator[str]:
        """
        Полный рендеринг с последующей нарезкой результата на куски.

        Raises:
            ValueError: chunk_size < 1
            RenderError: Рендеринг завершился ошибкой
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        result = self.render(compiled, variables, **kwargs)
        if result.error is not None:
            raise RenderError(result.error, details={"code": result.error_code})
        return _chunks(result.output, chunk_size)

    # ---------------------------- analysis ---------------------------- #

    @staticmethod
    def validate_dependencies(compiled: CompiledTemplate, available: Iterable[str]) -> DependencyCheck:
        """
        Сверяет зависимости шаблона с доступными переменными.

        Доступное имя 'user' покрывает зависимости 'user.*'.
        """
        names = list(dict.fromkeys(available))
        name_set = set(names)

        def covered(dep: str) -> bool:
            parts = dep.split(".")
            return any(".".join(parts[:i]) in name_set for i in range(1, len(parts) + 1))

        missing = [dep for dep in compiled.dependencies if not covered(dep)]
        extra = [
            name for name in names
            if not any(dep == name or dep.startswith(name + ".") for dep in compiled.dependencies)
        ]
        return DependencyCheck(valid=not missing, missing=missing, extra=extra)

    @staticmethod
    def statistics(results: Iterable[RenderResult]) -> RenderStatistics:
        results = list(results)
        successful = [r for r in results if r.error is None]
        used: Dict[str, None] = {}
        missing_counts: Dict[str, int] = {}
        for r in results:
            for name in r.used_variables:
                used.setdefault(name, None)
            for name in r.missing_variables:
                missing_counts[name] = missing_counts.get(name, 0) + 1

        # sorted устойчив: при равенстве сохраняется порядок первого появления
        common = sorted(missing_counts.items(), key=lambda kv: kv[1], reverse=True)[:10]
        average = sum(r.render_time_ms for r in successful) / len(successful) if successful else 0.0
        return RenderStatistics(
            total_renders=len(results),
            successful_renders=len(successful),
            failed_renders=len(results) - len(successful),
            average_render_time_ms=average,
            used_variables=list(used),
            common_missing_variables=common,
        )


def _chunks(text: str, size: int) -> Iterator[str]:
    for i in range(0, len(text), size):
        yield text[i:i + size]


__all__ = [
    "Renderer",
    "RenderRequest",
    "DependencyCheck",
    "RenderStatistics",
    "IncludeHook",
    "escape",
]
