from .tokens import TokenCounter, DEFAULT_ENCODER

__all__ = ["TokenCounter", "DEFAULT_ENCODER"]
