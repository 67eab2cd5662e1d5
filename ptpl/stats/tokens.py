from __future__ import annotations

from dataclasses import dataclass

import tiktoken

DEFAULT_ENCODER = "cl100k_base"


@dataclass(frozen=True)
class TokenCounter:
    """
    Обёртка над tiktoken с единым энкодером.

    Считает токены отрендеренного промпта для отчёта CLI.
    """

    encoder_name: str = DEFAULT_ENCODER

    def __post_init__(self):
        # Ленивая инициализация энкодера при первом обращении
        object.__setattr__(self, "_enc", None)

    def _get_encoder(self):
        enc = getattr(self, "_enc", None)
        if enc is None:
            try:
                enc = tiktoken.get_encoding(self.encoder_name)
            except (KeyError, ValueError):
                enc = tiktoken.encoding_for_model(self.encoder_name)
            object.__setattr__(self, "_enc", enc)
        return enc

    def count_text(self, text: str) -> int:
        """Подсчитать токены в тексте."""
        if not text:
            return 0
        return len(self._get_encoder().encode(text))


__all__ = ["TokenCounter", "DEFAULT_ENCODER"]
