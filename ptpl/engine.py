"""
Движок шаблонов.

Координирует стадии lexer → parser → compiler → renderer,
владеет кэшем скомпилированных шаблонов и окружением фильтров/функций.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from .cache.template_cache import CacheSnapshot, TemplateCache, sha1_text
from .compiler.compiler import TemplateCompiler, collect_expression_issues
from .config.model import EngineConfig, RenderOptions
from .environment import Environment, Filter, Function
from .errors import InvalidTemplate, RenderError, TemplateError
from .render.context import RenderFrame
from .render.renderer import Renderer
from .template.lexer import TemplateLexer
from .template.nodes import IncludeNode, TemplateNode
from .template.parser import TemplateParser, ast_statistics, validate_ast
from .types import CompiledTemplate, ProcessResult, ProcessStatistics, RenderResult, ValidationReport
from .version import tool_version

logger = logging.getLogger(__name__)

IncludeLoader = Callable[[str], Optional[str]]


def _ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class TemplateEngine:
    """
    Движок шаблонов.

    Кэш и окружение защищены реентерабельной блокировкой; рендеринг
    не изменяет ни скомпилированные шаблоны, ни кэш, ни реестры.
    Запись кэша другой ревизии окружения не используется: окружение
    может быть общим для нескольких движков или меняться напрямую.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        environment: Optional[Environment] = None,
        include_loader: Optional[IncludeLoader] = None,
    ):
        """
        Args:
            config: Конфигурация движка
            environment: Реестры фильтров и функций (по умолчанию — со встроенными)
            include_loader: Загрузчик текстов для ${include name}
        """
        self.config = config or EngineConfig()
        self.environment = environment or Environment()
        self.include_loader = include_loader
        self.cache = TemplateCache(enabled=self.config.cache.enabled, max_entries=self.config.cache.max_entries)
        self.renderer = Renderer(self.config.render)
        self._lock = threading.RLock()
        self._version = tool_version()

    # ---------------------------- pipeline ---------------------------- #

    def process(self, text: str, use_cache: bool = True) -> ProcessResult:
        """
        Полная обработка текста шаблона: лексический и синтаксический
        анализ и компиляция.

        Returns:
            ProcessResult; при попадании в кэш — нулевые времена стадий и cached=True

        Raises:
            InvalidTemplate: Ошибка в тексте шаблона
            RenderError: Ошибка компиляции или непредвиденный сбой
        """
        start = time.perf_counter()
        key = sha1_text(text)

        if use_cache:
            with self._lock:
                cached = self.cache.get(key, revision=self.environment.revision)
            if cached is not None:
                return ProcessResult(
                    compiled=cached,
                    statistics=ProcessStatistics(dependency_count=len(cached.dependencies), cached=True),
                )

        with self._lock:
            snapshot = self.environment.snapshot()

        try:
            lex_start = time.perf_counter()
            tokens = TemplateLexer(self.config.lexer).tokenize(text)
            lex_time = _ms(lex_start)

            parse_start = time.perf_counter()
            ast = TemplateParser(self.config.parser).parse(tokens)
            parse_time = _ms(parse_start)

            output = TemplateCompiler(snapshot).compile(ast)
        except TemplateError:
            raise
        except Exception as e:
            logger.exception("Unexpected failure while processing template")
            raise RenderError(f"Template processing failed: {e}") from e

        compiled = CompiledTemplate(
            id=key,
            ast=ast,
            procedure=output.procedure,
            dependencies=output.dependencies,
            compiled_at=datetime.now(timezone.utc),
            version=self._version,
        )

        if use_cache:
            with self._lock:
                # реестр мог измениться во время компиляции
                if snapshot.revision == self.environment.revision:
                    self.cache.put(key, compiled)

        statistics = ProcessStatistics(
            lex_time_ms=lex_time,
            parse_time_ms=parse_time,
            compile_time_ms=output.compile_time_ms,
            total_time_ms=_ms(start),
            token_count=len(tokens),
            node_count=ast_statistics(ast).total_nodes,
            dependency_count=len(compiled.dependencies),
            cached=False,
        )
        logger.debug(
            f"Processed template {key[:12]}: {statistics.token_count} tokens, "
            f"{statistics.node_count} nodes in {statistics.total_time_ms:.2f}ms"
        )
        return ProcessResult(compiled=compiled, statistics=statistics)

    def compile(self, text: str, use_cache: bool = True) -> CompiledTemplate:
        return self.process(text, use_cache).compiled

    def render(
        self,
        text: str,
        variables: Optional[Mapping[str, Any]] = None,
        options: Optional[RenderOptions] = None,
        **overrides: Any,
    ) -> RenderResult:
        """
        Компилирует (с кэшем) и рендерит шаблон.

        Ошибки шаблона не пробрасываются: возвращается неуспешный результат.

        Args:
            text: Текст шаблона
            variables: Дерево переменных
            options: Опции рендеринга (по умолчанию — из конфигурации)
            **overrides: Точечные переопределения опций (strict=True, timeout_ms=…)
        """
        opts = (options or self.config.render).merged(**overrides)
        try:
            compiled = self.compile(text)
        except TemplateError as e:
            logger.debug(f"Render failed before execution: {e}")
            return RenderResult(output="", render_time_ms=0.0, error=str(e), error_code=e.code)
        return self.renderer.render(compiled, variables, opts, include_hook=self._include)

    def validate(self, text: str) -> ValidationReport:
        """
        Проверка шаблона без компиляции.

        Лексический анализ и баланс блоков, разбор и проверка AST,
        синтаксис выражений. Неизвестные фильтры/функции и включения
        без загрузчика — предупреждения.
        """
        errors: List[str] = []
        warnings: List[str] = []

        lexer = TemplateLexer(self.config.lexer)
        try:
            tokens = lexer.tokenize(text)
        except InvalidTemplate as e:
            errors.append(str(e))
            return ValidationReport(valid=False, errors=errors, warnings=warnings)

        errors.extend(lexer.validate(tokens).errors)

        try:
            ast = TemplateParser(self.config.parser).parse(tokens)
        except InvalidTemplate as e:
            errors.append(str(e))
            return ValidationReport(valid=False, errors=errors, warnings=warnings, tokens=tokens)

        errors.extend(validate_ast(ast, max_depth=self.config.parser.max_depth).errors)

        with self._lock:
            snapshot = self.environment.snapshot()
        expression_errors, expression_warnings = collect_expression_issues(ast, snapshot)
        errors.extend(expression_errors)
        warnings.extend(expression_warnings)

        if self.include_loader is None:
            for node in _iter_nodes(ast):
                if isinstance(node, IncludeNode):
                    warnings.append(
                        f"Include '{node.name}' at {node.position} cannot be resolved: no include loader configured"
                    )

        return ValidationReport(valid=not errors, errors=errors, warnings=warnings, tokens=tokens, ast=ast)

    # ---------------------------- includes ---------------------------- #

    def _include(self, name: str, frame: RenderFrame) -> None:
        """Выполняет включаемый шаблон в текущем контексте рендеринга."""
        limit = self.config.max_include_depth
        if frame.include_depth >= limit:
            raise RenderError(
                f"Maximum include depth ({limit}) exceeded while including '{name}'",
                details={"template": name},
            )
        if self.include_loader is None:
            raise RenderError(
                f"Cannot include '{name}': no include loader configured",
                details={"template": name},
            )
        try:
            text = self.include_loader(name)
        except TemplateError:
            raise
        except Exception as e:
            raise RenderError(f"Failed to load included template '{name}': {e}", details={"template": name}) from e
        if text is None:
            raise RenderError(f"Included template not found: {name}", details={"template": name})

        compiled = self.compile(text)
        frame.include_depth += 1
        try:
            self.renderer.execute(compiled, frame)
        finally:
            frame.include_depth -= 1

    # ---------------------------- registries ---------------------------- #

    def add_filter(self, name: str, func: Filter) -> None:
        with self._lock:
            self.environment.add_filter(name, func)
            self.cache.clear()

    def remove_filter(self, name: str) -> bool:
        with self._lock:
            removed = self.environment.remove_filter(name)
            if removed:
                self.cache.clear()
            return removed

    def add_function(self, name: str, func: Function) -> None:
        with self._lock:
            self.environment.add_function(name, func)
            self.cache.clear()

    def remove_function(self, name: str) -> bool:
        with self._lock:
            removed = self.environment.remove_function(name)
            if removed:
                self.cache.clear()
            return removed

    def filters(self) -> Dict[str, Filter]:
        with self._lock:
            return self.environment.filters()

    def functions(self) -> Dict[str, Function]:
        with self._lock:
            return self.environment.functions()

    # ---------------------------- cache & stats ---------------------------- #

    def clear_cache(self) -> int:
        with self._lock:
            return self.cache.clear()

    def cache_statistics(self) -> CacheSnapshot:
        return self.cache.snapshot()

    def engine_statistics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "lexer": asdict(self.config.lexer),
                "parser": asdict(self.config.parser),
                "render": asdict(self.config.render),
                "filterCount": len(self.environment.filters()),
                "functionCount": len(self.environment.functions()),
                "cacheSize": len(self.cache),
                "revision": self.environment.revision,
                "version": self._version,
            }


def _iter_nodes(node: TemplateNode):
    yield node
    for child in node.iter_children():
        yield from _iter_nodes(child)


__all__ = ["TemplateEngine", "IncludeLoader"]
