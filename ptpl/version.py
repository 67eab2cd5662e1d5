from __future__ import annotations

from importlib import metadata

DIST_NAME = "prompt-templater"


def tool_version() -> str:
    """Версия установленного дистрибутива; 0.0.0 для запуска из исходников."""
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["tool_version", "DIST_NAME"]
