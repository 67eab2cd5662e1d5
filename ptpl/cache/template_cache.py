from __future__ import annotations

import hashlib
import logging
import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from ..types import CompiledTemplate

logger = logging.getLogger(__name__)


def sha1_text(text: str) -> str:
    """sha1 текста шаблона: ключ кэша и идентификатор шаблона."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheSnapshot:
    enabled: bool
    entries: int
    hits: int
    misses: int
    max_entries: int

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class TemplateCache:
    """
    Кэш скомпилированных шаблонов в памяти.

    Ключ — sha1 текста. При max_entries > 0 вытесняется давно
    не использованная запись. Переменная окружения PTPL_CACHE
    перекрывает флаг enabled.
    """

    def __init__(self, *, enabled: Optional[bool] = None, max_entries: int = 0):
        env = os.environ.get("PTPL_CACHE", None)
        if env is not None:
            self.enabled = env.strip().lower() not in {"0", "false", "no", "off", ""}
        elif enabled is not None:
            self.enabled = bool(enabled)
        else:
            self.enabled = True
        self.max_entries = max(0, int(max_entries))
        self._entries: "OrderedDict[str, CompiledTemplate]" = OrderedDict()
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str, revision: Optional[int] = None) -> Optional[CompiledTemplate]:
        """
        Args:
            key: sha1 текста шаблона
            revision: Текущая ревизия окружения; запись другой ревизии
                      удаляется и считается промахом
        """
        if not self.enabled:
            return None
        with self._lock:
            compiled = self._entries.get(key)
            if compiled is not None and revision is not None and compiled.procedure.revision != revision:
                del self._entries[key]
                logger.debug(f"Cache stale {key[:12]} (revision {compiled.procedure.revision} != {revision})")
                compiled = None
            if compiled is None:
                self.misses += 1
                logger.debug(f"Cache miss {key[:12]}")
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            logger.debug(f"Cache hit {key[:12]}")
            return compiled

    def put(self, key: str, compiled: CompiledTemplate) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries[key] = compiled
            self._entries.move_to_end(key)
            while self.max_entries and len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache evicted {evicted[:12]}")

    def clear(self) -> int:
        """
        Returns:
            Число удалённых записей
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            if count:
                logger.debug(f"Cache cleared ({count} entries)")
            return count

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def snapshot(self) -> CacheSnapshot:
        with self._lock:
            return CacheSnapshot(
                enabled=self.enabled,
                entries=len(self._entries),
                hits=self.hits,
                misses=self.misses,
                max_entries=self.max_entries,
            )


__all__ = ["TemplateCache", "CacheSnapshot", "sha1_text"]
