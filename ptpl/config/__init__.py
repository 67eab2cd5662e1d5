from .model import (
    LexerConfig,
    ParserConfig,
    RenderOptions,
    CacheConfig,
    IncludesConfig,
    EngineConfig,
)
from .load import load_config, find_config, read_yaml
from .typed import build_typed, ConfigCoerceError

__all__ = [
    "LexerConfig",
    "ParserConfig",
    "RenderOptions",
    "CacheConfig",
    "IncludesConfig",
    "EngineConfig",
    "load_config",
    "find_config",
    "read_yaml",
    "build_typed",
    "ConfigCoerceError",
]
