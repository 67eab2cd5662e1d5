from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import EngineConfig, find_config, load_config, read_yaml
from .engine import TemplateEngine
from .errors import PtplUserError, TemplateError
from .expressions.parser import coerce_filter_arg
from .jsonic import dumps as jdumps
from .loaders import DirectoryLoader
from .report_schema import (
    AstStatsSection,
    InspectReport,
    ProcessSection,
    RenderSection,
    RunReport,
    TokenStatsSection,
    ValidationSection,
)
from .stats import DEFAULT_ENCODER, TokenCounter
from .template.lexer import TemplateLexer
from .template.parser import TemplateParser, ast_statistics
from .version import tool_version

_LOG = logging.getLogger("ptpl")


def _setup_logging_once() -> None:
    if getattr(_setup_logging_once, "_inited", False):
        return
    _setup_logging_once._inited = True  # type: ignore[attr-defined]
    level = logging.DEBUG if os.environ.get("PTPL_DEBUG") else logging.WARNING
    _LOG.setLevel(level)
    if not _LOG.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        _LOG.addHandler(h)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ptpl",
        description="Prompt template engine",
        add_help=True,
    )
    p.add_argument("-v", "--version", action="version", version=f"%(prog)s {tool_version()}")
    sub = p.add_subparsers(dest="cmd", required=True)

    # Общие аргументы для всех подкоманд
    def add_template(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("template", help="путь к шаблону или - для чтения из stdin")
        sp.add_argument("--config", metavar="FILE", help="YAML-конфигурация движка (по умолчанию ./ptpl.yaml)")

    # Аргументы рендеринга для render/report
    def add_render(sp: argparse.ArgumentParser) -> None:
        add_template(sp)
        sp.add_argument("--vars", metavar="FILE", help="файл переменных (YAML или JSON)")
        sp.add_argument(
            "--set",
            dest="assignments",
            action="append",
            metavar="PATH=VALUE",
            help="переменная по точечному пути (можно указать несколько)",
        )
        sp.add_argument("--strict", action="store_true", help="отсутствующая переменная — ошибка")
        sp.add_argument("--timeout", type=float, metavar="MS", help="лимит времени рендеринга, мс (0 — без лимита)")
        sp.add_argument("--auto-escape", action="store_true", help="экранировать HTML-символы в результате")

    sp_render = sub.add_parser("render", help="Только финальный текст (не JSON)")
    add_render(sp_render)

    sp_report = sub.add_parser("report", help="JSON-отчёт: результат, статистика, токены")
    add_render(sp_report)
    sp_report.add_argument("--encoder", default=DEFAULT_ENCODER, help="энкодер tiktoken для подсчёта токенов")

    sp_validate = sub.add_parser("validate", help="Проверка шаблона (JSON); код 1 при ошибках")
    add_template(sp_validate)

    sp_inspect = sub.add_parser("inspect", help="Токены, AST и зависимости (JSON)")
    add_template(sp_inspect)

    return p


def _read_template(arg: str) -> Tuple[str, Path]:
    """Текст шаблона и каталог для поиска включений."""
    if arg == "-":
        return sys.stdin.read(), Path.cwd()
    path = Path(arg)
    if not path.is_file():
        raise ValueError(f"Template file not found: {path}")
    return path.read_text(encoding="utf-8"), path.resolve().parent


def _load_engine_config(ns: argparse.Namespace) -> EngineConfig:
    if ns.config:
        return load_config(Path(ns.config))
    return load_config(find_config())


def _make_engine(ns: argparse.Namespace, template_dir: Path) -> TemplateEngine:
    cfg = _load_engine_config(ns)
    base = Path(cfg.includes.dir) if cfg.includes.dir else template_dir
    return TemplateEngine(cfg, include_loader=DirectoryLoader(base, cfg.includes.suffix))


def _set_path(target: Dict[str, Any], path: str, value: Any) -> None:
    parts = [p for p in path.split(".")]
    if not all(parts):
        raise ValueError(f"Invalid variable path '{path}'")
    node = target
    for part in parts[:-1]:
        nxt = node.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            node[part] = nxt
        node = nxt
    node[parts[-1]] = value


def _parse_variables(vars_file: Optional[str], assignments: Optional[List[str]]) -> Dict[str, Any]:
    """
    Собирает дерево переменных.

    Сначала файл --vars, затем --set PATH=VALUE поверх него.
    Значения --set приводятся так же, как аргументы фильтров.
    """
    variables: Dict[str, Any] = {}
    if vars_file:
        data = read_yaml(Path(vars_file))
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Variables file must contain a mapping: {vars_file}")
        variables.update(data)

    for item in assignments or []:
        if "=" not in item:
            raise ValueError(f"Invalid assignment '{item}'. Expected 'PATH=VALUE'")
        path, raw = item.split("=", 1)
        _set_path(variables, path.strip(), coerce_filter_arg(raw))
    return variables


def _overrides(ns: argparse.Namespace) -> Dict[str, Any]:
    return {
        "strict": True if ns.strict else None,
        "timeout_ms": ns.timeout,
        "auto_escape": True if ns.auto_escape else None,
    }


def _run_render(ns: argparse.Namespace) -> int:
    text, template_dir = _read_template(ns.template)
    engine = _make_engine(ns, template_dir)
    variables = _parse_variables(ns.vars, ns.assignments)
    result = engine.render(text, variables, **_overrides(ns))
    if not result.success:
        sys.stderr.write(f"{result.error}\n")
        return 2
    sys.stdout.write(result.output)
    return 0


def _run_report(ns: argparse.Namespace) -> int:
    text, template_dir = _read_template(ns.template)
    engine = _make_engine(ns, template_dir)
    variables = _parse_variables(ns.vars, ns.assignments)

    template_id: Optional[str] = None
    dependencies: List[str] = []
    process: Optional[ProcessSection] = None
    try:
        processed = engine.process(text)
    except TemplateError as e:
        _LOG.debug(f"Template failed to compile: {e}")
    else:
        st = processed.statistics
        template_id = processed.compiled.id
        dependencies = list(processed.compiled.dependencies)
        process = ProcessSection(
            lex_time_ms=st.lex_time_ms,
            parse_time_ms=st.parse_time_ms,
            compile_time_ms=st.compile_time_ms,
            total_time_ms=st.total_time_ms,
            token_count=st.token_count,
            node_count=st.node_count,
            dependency_count=st.dependency_count,
            cached=st.cached,
        )

    result = engine.render(text, variables, **_overrides(ns))
    report = RunReport(
        tool_version=tool_version(),
        template_id=template_id,
        dependencies=dependencies,
        encoder=ns.encoder,
        prompt_tokens=TokenCounter(ns.encoder).count_text(result.output),
        render=RenderSection(
            output=result.output,
            render_time_ms=result.render_time_ms,
            used_variables=result.used_variables,
            missing_variables=result.missing_variables,
            error=result.error,
            error_code=result.error_code,
        ),
        process=process,
    )
    sys.stdout.write(jdumps(report.model_dump(by_alias=True, mode="json")))
    return 0


def _run_validate(ns: argparse.Namespace) -> int:
    text, template_dir = _read_template(ns.template)
    engine = _make_engine(ns, template_dir)
    report = engine.validate(text)
    section = ValidationSection(
        valid=report.valid,
        errors=report.errors,
        warnings=report.warnings,
        token_count=len(report.tokens) if report.tokens is not None else None,
        node_count=ast_statistics(report.ast).total_nodes if report.ast is not None else None,
    )
    sys.stdout.write(jdumps(section.model_dump(by_alias=True, mode="json")))
    return 0 if report.valid else 1


def _run_inspect(ns: argparse.Namespace) -> int:
    text, template_dir = _read_template(ns.template)
    engine = _make_engine(ns, template_dir)

    tokens = TemplateLexer(engine.config.lexer).tokenize(text)
    token_stats = TemplateLexer.statistics(tokens)
    ast = TemplateParser(engine.config.parser).parse(tokens)
    node_stats = ast_statistics(ast)
    compiled = engine.compile(text)

    report = InspectReport(
        template_id=compiled.id,
        tokens=TokenStatsSection(total_tokens=token_stats.total_tokens, token_counts=token_stats.token_counts),
        ast=AstStatsSection(
            total_nodes=node_stats.total_nodes,
            node_counts=node_stats.node_counts,
            max_depth=node_stats.max_depth,
        ),
        dependencies=list(compiled.dependencies),
        tree=ast.to_dict(),
    )
    sys.stdout.write(jdumps(report.model_dump(by_alias=True, mode="json")))
    return 0


_COMMANDS = {
    "render": _run_render,
    "report": _run_report,
    "validate": _run_validate,
    "inspect": _run_inspect,
}


def main(argv: list[str] | None = None) -> int:
    _setup_logging_once()
    ns = _build_parser().parse_args(argv)

    try:
        return _COMMANDS[ns.cmd](ns)
    except (PtplUserError, ValueError, OSError) as e:
        sys.stderr.write(f"{e}\n")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
