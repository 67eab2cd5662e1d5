"""
Движок промпт-шаблонов: ${…}-директивы, фильтры, функции, кэш компиляции.
"""

from __future__ import annotations

from .config import CacheConfig, EngineConfig, LexerConfig, ParserConfig, RenderOptions, load_config
from .engine import IncludeLoader, TemplateEngine
from .environment import Environment
from .errors import (
    ConfigError,
    InvalidTemplate,
    PtplUserError,
    RenderError,
    RenderTimeout,
    TemplateError,
    UndefinedVariable,
)
from .types import CompiledTemplate, ProcessResult, ProcessStatistics, RenderResult, ValidationReport

__all__ = [
    "TemplateEngine",
    "IncludeLoader",
    "Environment",
    "EngineConfig",
    "LexerConfig",
    "ParserConfig",
    "RenderOptions",
    "CacheConfig",
    "load_config",
    "PtplUserError",
    "ConfigError",
    "TemplateError",
    "InvalidTemplate",
    "RenderError",
    "RenderTimeout",
    "UndefinedVariable",
    "CompiledTemplate",
    "ProcessResult",
    "ProcessStatistics",
    "RenderResult",
    "ValidationReport",
]
