from .context import RenderFrame
from .renderer import (
    Renderer,
    RenderRequest,
    DependencyCheck,
    RenderStatistics,
    IncludeHook,
    escape,
)

__all__ = [
    "RenderFrame",
    "Renderer",
    "RenderRequest",
    "DependencyCheck",
    "RenderStatistics",
    "IncludeHook",
    "escape",
]
