import pytest

from ptpl import EngineConfig, TemplateEngine


@pytest.fixture(autouse=True)
def _no_cache_override(monkeypatch):
    # тесты не должны зависеть от окружения разработчика
    monkeypatch.delenv("PTPL_CACHE", raising=False)


@pytest.fixture
def engine() -> TemplateEngine:
    return TemplateEngine(EngineConfig())


@pytest.fixture
def includes():
    """Словарь включаемых шаблонов и загрузчик поверх него."""
    sources = {}

    def loader(name: str):
        return sources.get(name)

    return sources, loader
