"""
Файловый загрузчик включений для CLI.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class DirectoryLoader:
    """
    Загружает ${include name} из каталога: <dir>/<name><suffix>.

    Имена с выходом за пределы каталога отвергаются.
    """

    def __init__(self, base: Path, suffix: str = ".tpl"):
        self.base = base.resolve()
        self.suffix = suffix

    def path_for(self, name: str) -> Optional[Path]:
        candidate = (self.base / name).resolve()
        if self.suffix and not candidate.name.endswith(self.suffix):
            candidate = candidate.with_name(candidate.name + self.suffix)
        try:
            candidate.relative_to(self.base)
        except ValueError:
            logger.warning(f"Include '{name}' points outside of {self.base}")
            return None
        return candidate

    def __call__(self, name: str) -> Optional[str]:
        path = self.path_for(name)
        if path is None or not path.is_file():
            return None
        logger.debug(f"Loading include '{name}' from {path}")
        return path.read_text(encoding="utf-8")


__all__ = ["DirectoryLoader"]
