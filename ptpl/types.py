from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .compiler.instructions import RenderProcedure
from .template.nodes import RootNode
from .template.tokens import Token


@dataclass(frozen=True)
class CompiledTemplate:
    """
    Скомпилированный шаблон.

    Attributes:
        id: sha1 текста шаблона (он же ключ кэша)
        ast: Дерево разбора (для инструментов)
        procedure: Процедура рендеринга
        dependencies: Пути переменных в порядке первого появления
        compiled_at: Момент компиляции (UTC)
        version: Версия инструмента
    """
    id: str
    ast: RootNode
    procedure: RenderProcedure
    dependencies: Tuple[str, ...]
    compiled_at: datetime
    version: str


@dataclass
class RenderResult:
    output: str
    render_time_ms: float
    used_variables: List[str] = field(default_factory=list)
    missing_variables: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class ProcessStatistics:
    lex_time_ms: float = 0.0
    parse_time_ms: float = 0.0
    compile_time_ms: float = 0.0
    total_time_ms: float = 0.0
    token_count: int = 0
    node_count: int = 0
    dependency_count: int = 0
    cached: bool = False


@dataclass
class ProcessResult:
    compiled: CompiledTemplate
    statistics: ProcessStatistics


@dataclass
class ValidationReport:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    tokens: Optional[List[Token]] = None
    ast: Optional[RootNode] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


__all__ = [
    "CompiledTemplate",
    "RenderResult",
    "ProcessStatistics",
    "ProcessResult",
    "ValidationReport",
]
